"""hostmon - Textual dashboard."""

from collections.abc import Callable
from enum import Enum

from textual import work
from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.widgets import DataTable, Footer, Static

from hostmon.console import format_bytes
from hostmon.models import MonitorSnapshot, ProcessEntry
from hostmon.monitor import ResourceMonitor
from hostmon.process import top_by_working_set


class SortKey(Enum):
    """Sort keys for the process table."""

    MEM = "mem"
    PID = "pid"
    NAME = "name"


def usage_bar(ratio: float, color: str, width: int = 20) -> str:
    """Render a ratio as a fixed-width markup bar."""
    filled = min(int(ratio * width), width)
    return f"[{color}]█[/{color}]" * filled + "[dim]░[/dim]" * (width - filled)


class HeaderStats(Static):
    """Header widget showing CPU and memory statistics."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 5;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize HeaderStats."""
        super().__init__(*args, **kwargs)
        self._snapshot: MonitorSnapshot | None = None

    def compose(self) -> ComposeResult:
        """Compose the header stats layout."""
        yield Horizontal(
            Static(self._get_cpu_info(), id="cpu-info"),
            Static(self._get_mem_info(), id="mem-info"),
        )

    def update_stats(self, snapshot: MonitorSnapshot) -> None:
        """Update the statistics from a monitor snapshot."""
        self._snapshot = snapshot
        self.query_one("#cpu-info", Static).update(self._get_cpu_info())
        self.query_one("#mem-info", Static).update(self._get_mem_info())

    def _get_cpu_info(self) -> str:
        """Get CPU info display."""
        if self._snapshot is None:
            return "Loading CPU info..."
        cpu = self._snapshot.cpu
        lines = [
            f"CPU   \\[{usage_bar(cpu.overall_usage_ratio, 'green')}] "
            f"{cpu.overall_usage_ratio * 100:5.1f}%  ({cpu.logical_processor_count} logical)"
        ]
        for i, ratio in enumerate(cpu.per_core_usage_ratios):
            lines.append(f"CPU{i:<2} \\[{usage_bar(ratio, 'green')}] {ratio * 100:5.1f}%")
        return "\n".join(lines)

    def _get_mem_info(self) -> str:
        """Get memory info display."""
        if self._snapshot is None:
            return "Loading memory info..."
        mem = self._snapshot.system_memory
        proc = self._snapshot.process_memory
        return (
            f"Mem\\[{usage_bar(mem.used_percent / 100.0, 'cyan')}] "
            f"{format_bytes(mem.used_bytes)}/{format_bytes(mem.total_bytes)}\n"
            f"Available: {format_bytes(mem.available_bytes)}\n"
            f"Self (pid {proc.process_id}): WS {format_bytes(proc.working_set_bytes)}  "
            f"Private {format_bytes(proc.private_bytes)}  Paged {format_bytes(proc.paged_bytes)}\n"
            f"Updated: {self._snapshot.timestamp:%H:%M:%S} UTC (tick {self._snapshot.tick})"
        )


class ProcessTable(Container):
    """Container for the top processes table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._entries: list[ProcessEntry] = []
        self._sort_key: SortKey = SortKey.MEM

    @property
    def sort_key(self) -> SortKey:
        """Get current sort key."""
        return self._sort_key

    @property
    def pids(self) -> list[int]:
        """PIDs currently shown, in display order."""
        return [entry.pid for entry in self._sorted()]

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key, redraw, and return it."""
        keys = list(SortKey)
        self._sort_key = keys[(keys.index(self._sort_key) + 1) % len(keys)]
        self._redraw()
        return self._sort_key

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"
        table.add_column("PID", key="pid", width=8)
        table.add_column("WS", key="ws", width=12)
        table.add_column("Name", key="name")

    def update_processes(self, entries: list[ProcessEntry]) -> None:
        """Replace the listing with new entries."""
        self._entries = list(entries)
        self._redraw()

    def _sorted(self) -> list[ProcessEntry]:
        key_func = {
            SortKey.MEM: lambda e: e.working_set_bytes,
            SortKey.PID: lambda e: e.pid,
            SortKey.NAME: lambda e: e.name.lower(),
        }
        return sorted(self._entries, key=key_func[self._sort_key], reverse=self._sort_key is SortKey.MEM)

    def _redraw(self) -> None:
        table = self.query_one("#process-table", DataTable)
        table.clear()
        for entry in self._sorted():
            table.add_row(str(entry.pid), format_bytes(entry.working_set_bytes), entry.name[:50])


class HostmonApp(App):
    """Dashboard over the latest published snapshot."""

    TITLE = "hostmon"
    SUB_TITLE = "Host CPU & Memory Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
        height: auto;
        min-height: 6;
    }

    Horizontal {
        height: auto;
    }

    #cpu-info {
        width: 1fr;
        padding-right: 2;
    }

    #mem-info {
        width: 1fr;
        padding-left: 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("f6", "sort", "Sort"),
    ]

    def __init__(
        self,
        monitor: ResourceMonitor,
        top_n: int = 10,
        process_lister: Callable[[int], list[ProcessEntry]] = top_by_working_set,
    ) -> None:
        """Initialize the HostmonApp."""
        super().__init__()
        self._monitor = monitor
        self._top_n = top_n
        self._process_lister = process_lister
        self._last_tick = 0

    @property
    def monitor(self) -> ResourceMonitor:
        return self._monitor

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderStats(id="header-stats")
        yield ProcessTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start the monitor and poll its latest snapshot."""
        self._monitor.start()
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Refresh the UI when the monitor has published a new tick."""
        if self._monitor.gave_up:
            self.exit(
                return_code=1,
                message=f"Sampling stopped after {self._monitor.consecutive_failures} consecutive failed ticks",
            )
            return
        snapshot = self._monitor.latest
        if snapshot is None or snapshot.tick == self._last_tick:
            return
        self._last_tick = snapshot.tick
        self.query_one("#header-stats", HeaderStats).update_stats(snapshot)
        self._refresh_processes()

    @work(thread=True, exclusive=True)
    def _refresh_processes(self) -> None:
        """List processes off the UI thread and hand the rows back."""
        entries = self._process_lister(self._top_n)
        self.call_from_thread(self._show_processes, entries)

    def _show_processes(self, entries: list[ProcessEntry]) -> None:
        self.query_one(ProcessTable).update_processes(entries)

    def action_sort(self) -> None:
        """Handle sort action - cycle through sort keys."""
        new_sort_key = self.query_one(ProcessTable).cycle_sort()
        self.notify(f"Sort: {new_sort_key.value.upper()}")

    def action_quit(self) -> None:
        """Stop the monitor and exit."""
        self._monitor.stop()
        self.exit()
