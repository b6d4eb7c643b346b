"""Plain-text console printer for the latest snapshot."""

import sys
from typing import TextIO

from hostmon.models import MonitorSnapshot
from hostmon.monitor import ResourceMonitor

RULE = "-" * 100


def format_bytes(size: int) -> str:
    """Format bytes as a human-readable string, e.g. ``1.5 KB``."""
    units = ["B", "KB", "MB", "GB", "TB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {units[index]}"


def format_report(snapshot: MonitorSnapshot) -> str:
    """Render one snapshot as the four-line console report plus a rule."""
    mem = snapshot.system_memory
    cpu = snapshot.cpu
    proc = snapshot.process_memory
    return "\n".join(
        [
            f"UTC: {snapshot.timestamp.isoformat()}",
            f"System  Total={format_bytes(mem.total_bytes)}  Used={format_bytes(mem.used_bytes)}  "
            f"Avail={format_bytes(mem.available_bytes)}  Used%={mem.used_percent:.1f}%",
            f"CPU     Overall={cpu.overall_usage_ratio:.1%}  LogicalCores={cpu.logical_processor_count}  "
            f"PerCore={len(cpu.per_core_usage_ratios)} entries",
            f"Process WS={format_bytes(proc.working_set_bytes)}  Paged={format_bytes(proc.paged_bytes)}  "
            f"Private={format_bytes(proc.private_bytes)}",
            RULE,
        ]
    )


class ConsolePrinter:
    """Prints each newly published snapshot once."""

    def __init__(self, monitor: ResourceMonitor, stream: TextIO | None = None) -> None:
        self._monitor = monitor
        self._stream = stream if stream is not None else sys.stdout
        self._last_tick = 0

    def print_latest(self) -> bool:
        """Print the latest snapshot if it has not been printed yet."""
        snapshot = self._monitor.latest
        if snapshot is None or snapshot.tick == self._last_tick:
            return False
        self._last_tick = snapshot.tick
        print(format_report(snapshot), file=self._stream, flush=True)
        return True
