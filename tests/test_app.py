"""Tests for the hostmon dashboard."""

from datetime import datetime, timezone

import pytest

from hostmon.app import HeaderStats, HostmonApp, ProcessTable, SortKey, usage_bar
from hostmon.models import CpuSnapshot, MonitorSnapshot, ProcessEntry, ProcessMemorySnapshot, SystemMemorySnapshot

ENTRIES = [
    ProcessEntry(pid=300, name="beta", working_set_bytes=1024),
    ProcessEntry(pid=100, name="Alpha", working_set_bytes=4096),
    ProcessEntry(pid=200, name="gamma", working_set_bytes=2048),
]


def fake_lister(limit):
    return ENTRIES[:limit]


def make_app(fake_monitor) -> HostmonApp:
    return HostmonApp(fake_monitor, top_n=5, process_lister=fake_lister)


def test_usage_bar_width():
    """Test bars are always the requested width."""
    assert usage_bar(0.5, "green").count("█") == 10
    assert usage_bar(2.0, "green").count("█") == 20
    assert usage_bar(0.0, "green").count("░") == 20


class TestSortKey:
    """Tests for SortKey enum."""

    def test_sort_key_members(self):
        """Test SortKey enum has all expected members."""
        assert [k.value for k in SortKey] == ["mem", "pid", "name"]


@pytest.mark.asyncio
async def test_app_creation(fake_monitor):
    """Test HostmonApp can be instantiated."""
    app = make_app(fake_monitor)
    assert app.title == "hostmon"
    assert app.monitor is fake_monitor


@pytest.mark.asyncio
async def test_app_compose(fake_monitor):
    """Test HostmonApp composes correctly."""
    app = make_app(fake_monitor)
    async with app.run_test() as pilot:
        assert pilot.app.query_one("#header-stats") is not None
        assert pilot.app.query_one("#process-table") is not None


@pytest.mark.asyncio
async def test_app_starts_monitor_and_shows_processes(fake_monitor):
    """Test the app starts sampling and fills the process table."""
    app = make_app(fake_monitor)
    async with app.run_test() as pilot:
        await pilot.pause(1.5)

        assert fake_monitor.is_running
        assert fake_monitor.latest is not None
        process_table = pilot.app.query_one(ProcessTable)
        assert process_table.pids == [100, 200, 300]


@pytest.mark.asyncio
async def test_app_quit_binding(fake_monitor):
    """Test that 'q' stops the monitor and quits."""
    app = make_app(fake_monitor)
    async with app.run_test() as pilot:
        await pilot.press("q")
        assert pilot.app._exit
        assert not fake_monitor.is_running


@pytest.mark.asyncio
async def test_process_table_cycle_sort(fake_monitor):
    """Test ProcessTable sort key cycling."""
    app = make_app(fake_monitor)
    async with app.run_test() as pilot:
        process_table = pilot.app.query_one(ProcessTable)
        process_table.update_processes(ENTRIES)

        assert process_table.sort_key == SortKey.MEM
        assert process_table.pids == [100, 200, 300]

        process_table.cycle_sort()
        assert process_table.sort_key == SortKey.PID
        assert process_table.pids == [100, 200, 300]

        process_table.cycle_sort()
        assert process_table.sort_key == SortKey.NAME
        assert process_table.pids == [100, 300, 200]

        # Should wrap back to MEM
        process_table.cycle_sort()
        assert process_table.sort_key == SortKey.MEM


@pytest.mark.asyncio
async def test_app_sort_binding(fake_monitor):
    """Test that F6 binding cycles sort key."""
    app = make_app(fake_monitor)
    async with app.run_test() as pilot:
        process_table = pilot.app.query_one(ProcessTable)
        initial_sort = process_table.sort_key

        await pilot.press("f6")

        assert process_table.sort_key != initial_sort


@pytest.mark.asyncio
async def test_header_stats_update(fake_monitor):
    """Test that header stats render a snapshot."""
    app = make_app(fake_monitor)
    async with app.run_test() as pilot:
        header = pilot.app.query_one("#header-stats", HeaderStats)
        snapshot = MonitorSnapshot(
            cpu=CpuSnapshot(0.5, 2, (0.1, 0.9)),
            system_memory=SystemMemorySnapshot.from_counters(16 * 1024**3, 8 * 1024**3),
            process_memory=ProcessMemorySnapshot(1, 1024),
            timestamp=datetime.now(timezone.utc),
            tick=7,
        )

        header.update_stats(snapshot)

        assert "CPU0" in header._get_cpu_info()
        assert "CPU1" in header._get_cpu_info()
        assert "8 GB/16 GB" in header._get_mem_info()
        assert "tick 7" in header._get_mem_info()


@pytest.mark.asyncio
async def test_app_exits_with_error_when_monitor_gives_up(make_monitor, failing_memory):
    """Test the dashboard exits non-zero once sampling has given up."""
    monitor = make_monitor(memory_reader=failing_memory, max_consecutive_failures=1)
    app = make_app(monitor)
    async with app.run_test() as pilot:
        await pilot.pause(1.0)
        assert monitor.gave_up
        assert pilot.app._exit

    assert app.return_code == 1
