"""
CPU utilization sampling.

Each OS exposes monotonically increasing CPU time counters with its own
units and field layout. A reader keeps the previous counter reading as its
baseline and turns the difference to the next reading into a utilization
ratio. The delta arithmetic is pure and platform-agnostic; only
``read_counters`` touches the OS.
"""

import logging
import sys
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Generic, TypeVar

import psutil

from hostmon import native
from hostmon.errors import CounterReadError, UnsupportedPlatformError
from hostmon.models import CpuSnapshot, clamp_ratio

LOGGER = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Counter readings
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class LinuxCpuTicks:
    """One /proc/stat cpu line, in clock ticks."""

    user: int
    nice: int
    system: int
    idle_ticks: int
    iowait: int = 0
    irq: int = 0
    softirq: int = 0
    steal: int = 0

    @property
    def idle(self) -> int:
        # Time waiting on I/O is idle time from the CPU's point of view
        return self.idle_ticks + self.iowait

    @property
    def total(self) -> int:
        return (
            self.user
            + self.nice
            + self.system
            + self.idle_ticks
            + self.iowait
            + self.irq
            + self.softirq
            + self.steal
        )


@dataclass(slots=True, frozen=True)
class LinuxStatReading:
    """Aggregate line plus one line per logical core."""

    aggregate: LinuxCpuTicks
    cores: tuple[LinuxCpuTicks, ...] = ()


@dataclass(slots=True, frozen=True)
class MacCpuTicks:
    """kern.cp_time counters: user, nice, sys, idle, interrupt."""

    user: int = 0
    nice: int = 0
    system: int = 0
    idle_ticks: int = 0
    interrupt: int = 0

    @classmethod
    def from_values(cls, values: Sequence[int]) -> "MacCpuTicks":
        """Build from however many of the five fields the kernel returned."""
        padded = list(values[:5]) + [0] * (5 - min(len(values), 5))
        return cls(*(max(int(v), 0) for v in padded))

    @property
    def idle(self) -> int:
        return self.idle_ticks

    @property
    def total(self) -> int:
        return self.user + self.nice + self.system + self.idle_ticks + self.interrupt


@dataclass(slots=True, frozen=True)
class WindowsSystemTimes:
    """GetSystemTimes values in 100ns units. Kernel time includes idle time."""

    idle: int
    kernel: int
    user: int

    @property
    def total(self) -> int:
        return self.kernel + self.user


# ---------------------------------------------------------------------------
# Delta algorithms
# ---------------------------------------------------------------------------


def usage_between(
    previous: LinuxCpuTicks | MacCpuTicks, current: LinuxCpuTicks | MacCpuTicks
) -> float:
    """
    Utilization ratio between two readings whose idle fields are siblings of
    the busy fields.

    Returns 0.0 when no time elapsed or the counters went backwards.
    """
    total_delta = current.total - previous.total
    if total_delta <= 0:
        return 0.0
    idle_delta = current.idle - previous.idle
    return clamp_ratio(1.0 - idle_delta / total_delta)


def windows_usage_between(previous: WindowsSystemTimes, current: WindowsSystemTimes) -> float:
    """
    Utilization ratio between two GetSystemTimes readings.

    Idle time is a subset of kernel time, so busy time is
    ``(kernel - idle) + user`` and total time is ``kernel + user``.
    """
    idle_delta = max(current.idle - previous.idle, 0)
    kernel_delta = max(current.kernel - previous.kernel, 0)
    user_delta = max(current.user - previous.user, 0)

    total_delta = kernel_delta + user_delta
    if total_delta <= 0:
        return 0.0
    busy_delta = (kernel_delta - idle_delta) + user_delta
    return clamp_ratio(busy_delta / total_delta)


def per_core_usage(
    previous: Sequence[LinuxCpuTicks], current: Sequence[LinuxCpuTicks]
) -> tuple[float, ...]:
    """Per-core ratios, pairing cores by index over the overlapping prefix."""
    return tuple(usage_between(prev, cur) for prev, cur in zip(previous, current))


# ---------------------------------------------------------------------------
# /proc/stat parsing
# ---------------------------------------------------------------------------


def _parse_cpu_line(line: str) -> LinuxCpuTicks:
    """
    Parse ``cpu[N] user nice system idle [iowait irq softirq steal ...]``.

    Older kernels expose fewer columns; anything after idle defaults to 0.
    """
    parts = line.split()
    if len(parts) < 5:
        raise CounterReadError(f"truncated cpu line in /proc/stat: {line!r}")
    try:
        values = [int(p) for p in parts[1:9]]
    except ValueError as exc:
        raise CounterReadError(f"malformed cpu line in /proc/stat: {line!r}") from exc
    values += [0] * (8 - len(values))
    return LinuxCpuTicks(*values)


def parse_proc_stat(text: str) -> tuple[LinuxCpuTicks | None, tuple[LinuxCpuTicks, ...]]:
    """
    Extract the aggregate and per-core cpu lines from /proc/stat content.

    Scanning ends at the first line that does not start with ``cpu`` once
    cpu lines have been seen.
    """
    aggregate: LinuxCpuTicks | None = None
    cores: list[LinuxCpuTicks] = []
    seen_cpu = False

    for line in text.splitlines():
        if not line.startswith("cpu"):
            if seen_cpu:
                break
            continue
        seen_cpu = True
        if line.startswith("cpu "):
            aggregate = _parse_cpu_line(line)
        else:
            cores.append(_parse_cpu_line(line))

    return aggregate, tuple(cores)


# ---------------------------------------------------------------------------
# Readers
# ---------------------------------------------------------------------------

ReadingT = TypeVar("ReadingT")


def _logical_cpu_count() -> int:
    return psutil.cpu_count(logical=True) or 1


class CpuReader(ABC, Generic[ReadingT]):
    """
    Stateful CPU reader for one platform.

    The baseline reading is replaced wholesale after each successful sample,
    so consecutive calls measure the interval between them. Not safe for
    concurrent sampling; one owner only.
    """

    def __init__(self) -> None:
        self._baseline: ReadingT | None = None
        self._last: CpuSnapshot | None = None

    @property
    def primed(self) -> bool:
        """True once a baseline reading is held."""
        return self._baseline is not None

    @abstractmethod
    def read_counters(self) -> ReadingT:
        """Read the raw counters. Raises CounterReadError on failure."""

    @abstractmethod
    def compute(self, previous: ReadingT, current: ReadingT) -> CpuSnapshot:
        """Turn two readings into a snapshot."""

    def empty_snapshot(self) -> CpuSnapshot:
        """Zero-usage snapshot reported before any good sample exists."""
        return CpuSnapshot(0.0, _logical_cpu_count())

    def prime(self) -> bool:
        """Take the initial baseline reading. Returns False if counters are unreadable."""
        try:
            self._baseline = self.read_counters()
        except CounterReadError as exc:
            LOGGER.warning("CPU counters unavailable while priming: %s", exc)
            return False
        return True

    def sample(self) -> CpuSnapshot:
        """
        Compute utilization since the previous sample and advance the baseline.

        Primes on first use, in which case the result is a zero-delta
        snapshot. A failed counter read returns the last good snapshot
        instead of raising.
        """
        try:
            current = self.read_counters()
        except CounterReadError as exc:
            LOGGER.warning("CPU sample failed, reusing previous value: %s", exc)
            return self._last if self._last is not None else self.empty_snapshot()

        previous = self._baseline if self._baseline is not None else current
        snapshot = self.compute(previous, current)
        self._baseline = current
        self._last = snapshot
        return snapshot


class LinuxCpuReader(CpuReader[LinuxStatReading]):
    """Reads per-CPU tick counters from /proc/stat."""

    def __init__(self, stat_path: str | Path = "/proc/stat") -> None:
        super().__init__()
        self._stat_path = Path(stat_path)

    def read_counters(self) -> LinuxStatReading:
        try:
            text = self._stat_path.read_text()
        except OSError as exc:
            raise CounterReadError(f"cannot read {self._stat_path}: {exc}") from exc

        aggregate, cores = parse_proc_stat(text)
        if aggregate is None:
            raise CounterReadError(f"no aggregate cpu line in {self._stat_path}")
        return LinuxStatReading(aggregate, cores)

    def compute(self, previous: LinuxStatReading, current: LinuxStatReading) -> CpuSnapshot:
        return CpuSnapshot(
            overall_usage_ratio=usage_between(previous.aggregate, current.aggregate),
            logical_processor_count=len(current.cores) or _logical_cpu_count(),
            per_core_usage_ratios=per_core_usage(previous.cores, current.cores),
        )


class MacCpuReader(CpuReader[MacCpuTicks]):
    """Reads the aggregate kern.cp_time counters. No per-core data."""

    def __init__(self) -> None:
        super().__init__()
        self._logical = _logical_cpu_count()

    def read_counters(self) -> MacCpuTicks:
        return MacCpuTicks.from_values(native.sysctl_long_array("kern.cp_time"))

    def compute(self, previous: MacCpuTicks, current: MacCpuTicks) -> CpuSnapshot:
        return CpuSnapshot(usage_between(previous, current), self._logical)


class WindowsCpuReader(CpuReader[WindowsSystemTimes]):
    """Reads GetSystemTimes. No per-core data."""

    def __init__(self) -> None:
        super().__init__()
        self._logical = _logical_cpu_count()

    def read_counters(self) -> WindowsSystemTimes:
        return WindowsSystemTimes(*native.get_system_times())

    def compute(self, previous: WindowsSystemTimes, current: WindowsSystemTimes) -> CpuSnapshot:
        return CpuSnapshot(windows_usage_between(previous, current), self._logical)


def select_cpu_reader(platform: str | None = None) -> CpuReader:
    """Pick the reader for a ``sys.platform`` value."""
    platform = sys.platform if platform is None else platform
    if platform.startswith("linux"):
        return LinuxCpuReader()
    if platform == "darwin":
        return MacCpuReader()
    if platform in ("win32", "cygwin"):
        return WindowsCpuReader()
    raise UnsupportedPlatformError(f"no CPU reader for platform {platform!r}")


class CpuSampler:
    """Owns the platform CPU reader chosen once at construction."""

    def __init__(self, reader: CpuReader | None = None) -> None:
        self._reader = reader if reader is not None else select_cpu_reader()

    @property
    def reader(self) -> CpuReader:
        return self._reader

    @property
    def primed(self) -> bool:
        return self._reader.primed

    def prime(self) -> bool:
        """Take the initial baseline. Returns False if counters are unreadable."""
        return self._reader.prime()

    def sample(self) -> CpuSnapshot:
        """Utilization since the previous sample."""
        return self._reader.sample()
