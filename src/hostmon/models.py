"""Data models for hostmon."""

import math
from dataclasses import dataclass, field
from datetime import datetime


def clamp_ratio(value: float) -> float:
    """Clamp a ratio into [0.0, 1.0]. NaN becomes 0.0."""
    if math.isnan(value):
        return 0.0
    return min(max(value, 0.0), 1.0)


@dataclass(slots=True, frozen=True)
class CpuSnapshot:
    """Immutable CPU utilization reading for one sampling interval."""

    overall_usage_ratio: float  # 0.0 - 1.0
    logical_processor_count: int
    # Empty where the platform has no per-core counters
    per_core_usage_ratios: tuple[float, ...] = field(default_factory=tuple)


@dataclass(slots=True, frozen=True)
class SystemMemorySnapshot:
    """Immutable host physical memory reading."""

    total_bytes: int
    available_bytes: int
    used_bytes: int
    used_percent: float  # 0.0 - 100.0

    @classmethod
    def from_counters(cls, total: int, available: int) -> "SystemMemorySnapshot":
        """
        Derive used bytes and used percent from total and available bytes.

        Available is clamped to [0, total]; a zero total yields 0% rather
        than a division error.
        """
        available = min(max(available, 0), total)
        used = total - available
        percent = used / total * 100.0 if total > 0 else 0.0
        return cls(
            total_bytes=total,
            available_bytes=available,
            used_bytes=used,
            used_percent=min(max(percent, 0.0), 100.0),
        )


@dataclass(slots=True, frozen=True)
class ProcessMemorySnapshot:
    """Memory footprint of the monitoring process itself."""

    process_id: int
    working_set_bytes: int
    private_bytes: int = 0  # 0 when unsupported
    paged_bytes: int = 0  # 0 when unsupported


@dataclass(slots=True, frozen=True)
class ProcessEntry:
    """One row of the top-N process listing."""

    pid: int
    name: str
    working_set_bytes: int


@dataclass(slots=True, frozen=True)
class MonitorSnapshot:
    """The three readings taken on one tick, published together."""

    cpu: CpuSnapshot
    system_memory: SystemMemorySnapshot
    process_memory: ProcessMemorySnapshot
    timestamp: datetime
    tick: int
