"""Host physical memory readers. Memory counters are instantaneous, no delta needed."""

import logging
import sys
from pathlib import Path

from hostmon import native
from hostmon.errors import CounterReadError, UnsupportedPlatformError
from hostmon.models import SystemMemorySnapshot

LOGGER = logging.getLogger(__name__)


def _kb_value(line: str) -> int | None:
    """Parse ``Key:   12345 kB`` into bytes, or None if malformed."""
    parts = line.split()
    if len(parts) < 2:
        return None
    try:
        return int(parts[1]) * 1024
    except ValueError:
        return None


def parse_meminfo(text: str) -> tuple[int, int]:
    """
    Return (total, available) bytes from /proc/meminfo content.

    MemAvailable already accounts for reclaimable caches and is preferred;
    MemFree is the fallback on kernels that lack it.
    """
    values: dict[str, int] = {}
    for line in text.splitlines():
        key, _, _ = line.partition(":")
        if key in ("MemTotal", "MemAvailable", "MemFree"):
            value = _kb_value(line)
            if value is not None:
                values[key] = value

    total = values.get("MemTotal", 0)
    if total == 0:
        raise CounterReadError("MemTotal missing from /proc/meminfo")

    available = values.get("MemAvailable")
    if available is None:
        available = values.get("MemFree", 0)
    return total, available


def read_linux_memory(meminfo_path: str | Path = "/proc/meminfo") -> SystemMemorySnapshot:
    """Read system memory from /proc/meminfo."""
    path = Path(meminfo_path)
    try:
        text = path.read_text()
    except OSError as exc:
        raise CounterReadError(f"cannot read {path}: {exc}") from exc
    return SystemMemorySnapshot.from_counters(*parse_meminfo(text))


def _optional_sysctl(name: str) -> int:
    try:
        return native.sysctl_uint(name)
    except CounterReadError as exc:
        LOGGER.debug("sysctl %s unavailable, counting as 0: %s", name, exc)
        return 0


def read_mac_memory() -> SystemMemorySnapshot:
    """
    Read system memory via sysctl.

    There is no single kernel counter for available memory; it is estimated
    as (free + inactive + speculative) pages and capped at the total.
    """
    total = native.sysctl_uint("hw.memsize")
    page_size = native.sysctl_uint("hw.pagesize")

    pages = (
        _optional_sysctl("vm.page_free_count")
        + _optional_sysctl("vm.page_inactive_count")
        + _optional_sysctl("vm.page_speculative_count")
    )
    return SystemMemorySnapshot.from_counters(total, min(pages * page_size, total))


def read_windows_memory() -> SystemMemorySnapshot:
    """Read system memory via GlobalMemoryStatusEx."""
    total, available = native.global_memory_status()
    return SystemMemorySnapshot.from_counters(total, available)


def read_system_memory(platform: str | None = None) -> SystemMemorySnapshot:
    """
    Read host memory for the running (or given) platform.

    Raises:
        CounterReadError: required counters could not be read.
        UnsupportedPlatformError: no reader exists for the platform.
    """
    platform = sys.platform if platform is None else platform
    if platform.startswith("linux"):
        return read_linux_memory()
    if platform == "darwin":
        return read_mac_memory()
    if platform in ("win32", "cygwin"):
        return read_windows_memory()
    raise UnsupportedPlatformError(f"no memory reader for platform {platform!r}")
