"""Shared fixtures: monitors wired to synthetic readers."""

import itertools

import pytest

from hostmon.cpu import CpuSampler, WindowsCpuReader, WindowsSystemTimes
from hostmon.errors import CounterReadError
from hostmon.models import ProcessMemorySnapshot, SystemMemorySnapshot
from hostmon.monitor import ResourceMonitor


class CountingReader(WindowsCpuReader):
    """CPU reader whose counters advance half busy, half idle on every read."""

    def __init__(self):
        super().__init__()
        self._steps = itertools.count()

    def read_counters(self):
        step = next(self._steps)
        return WindowsSystemTimes(idle=50 * step, kernel=100 * step, user=0)


def _system_memory() -> SystemMemorySnapshot:
    return SystemMemorySnapshot.from_counters(total=1000, available=250)


def _process_memory() -> ProcessMemorySnapshot:
    return ProcessMemorySnapshot(process_id=1234, working_set_bytes=4096, private_bytes=2048)


def _failing_memory() -> SystemMemorySnapshot:
    raise CounterReadError("MemTotal missing")


@pytest.fixture
def failing_memory():
    """A system memory reader that always fails."""
    return _failing_memory


@pytest.fixture
def make_monitor():
    """
    Factory for ResourceMonitors sampling synthetic counters.

    Every monitor it builds is stopped at teardown.
    """
    monitors: list[ResourceMonitor] = []

    def factory(interval=0.05, memory_reader=_system_memory, max_consecutive_failures=None):
        monitor = ResourceMonitor(
            interval=interval,
            sampler=CpuSampler(CountingReader()),
            memory_reader=memory_reader,
            process_reader=_process_memory,
            max_consecutive_failures=max_consecutive_failures,
        )
        monitors.append(monitor)
        return monitor

    yield factory
    for monitor in monitors:
        monitor.stop()


@pytest.fixture
def fake_monitor(make_monitor):
    """A ResourceMonitor sampling synthetic counters quickly."""
    return make_monitor()
