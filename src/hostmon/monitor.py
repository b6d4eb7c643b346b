"""Sampling loop that publishes the latest combined snapshot."""

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum

import psutil

from hostmon.cpu import CpuSampler
from hostmon.errors import CounterReadError
from hostmon.memory import read_system_memory
from hostmon.models import MonitorSnapshot, ProcessMemorySnapshot, SystemMemorySnapshot
from hostmon.process import read_process_memory

LOGGER = logging.getLogger(__name__)


class MonitorPhase(Enum):
    """Whether the CPU baseline has been taken yet."""

    COLD = "cold"
    WARM = "warm"


class ResourceMonitor:
    """
    Resource monitor that samples CPU and memory on a fixed interval.

    Runs in a separate daemon thread, which is the only caller of the CPU
    sampler. Each tick's readings are published as one MonitorSnapshot by a
    single reference swap, so readers of ``latest`` always see a complete
    group from one tick and never trigger a sample themselves.
    """

    def __init__(
        self,
        interval: float = 1.0,
        sampler: CpuSampler | None = None,
        memory_reader: Callable[[], SystemMemorySnapshot] = read_system_memory,
        process_reader: Callable[[], ProcessMemorySnapshot] = read_process_memory,
        max_consecutive_failures: int | None = None,
    ) -> None:
        """
        Initialize the ResourceMonitor.

        Args:
            interval: Seconds between ticks. Default 1.0s.
            sampler: CPU sampler to drive; one for the running OS by default.
            memory_reader: Callable returning the host memory snapshot.
            process_reader: Callable returning this process's memory snapshot.
            max_consecutive_failures: Stop the loop after this many failed
                ticks in a row. None keeps going forever.
        """
        self._interval = interval
        self._sampler = sampler if sampler is not None else CpuSampler()
        self._memory_reader = memory_reader
        self._process_reader = process_reader
        self._max_failures = max_consecutive_failures
        self._stop_event = threading.Event()
        self._published = threading.Event()
        self._thread: threading.Thread | None = None
        self._latest: MonitorSnapshot | None = None
        self._tick = 0
        self._failures = 0
        self._gave_up = False

    @property
    def interval(self) -> float:
        """Get the current sampling interval."""
        return self._interval

    @interval.setter
    def interval(self, value: float) -> None:
        """Set the sampling interval."""
        self._interval = max(0.1, value)  # Minimum 0.1 seconds

    @property
    def phase(self) -> MonitorPhase:
        return MonitorPhase.WARM if self._sampler.primed else MonitorPhase.COLD

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def consecutive_failures(self) -> int:
        return self._failures

    @property
    def gave_up(self) -> bool:
        """True once the loop stopped itself after too many failed ticks."""
        return self._gave_up

    @property
    def latest(self) -> MonitorSnapshot | None:
        """The most recently published snapshot, or None before the first tick."""
        return self._latest

    def wait_for_snapshot(self, timeout: float | None = None) -> MonitorSnapshot | None:
        """Block until the first snapshot is published or the timeout expires."""
        self._published.wait(timeout=timeout)
        return self._latest

    def prime(self) -> bool:
        """Take the CPU baseline, moving the monitor from cold to warm."""
        primed = self._sampler.prime()
        if not primed:
            LOGGER.warning("CPU baseline not taken; the first sample will prime instead")
        return primed

    def start(self) -> None:
        """Prime the CPU sampler and start the monitoring thread."""
        if self.is_running:
            return

        if self.phase is MonitorPhase.COLD:
            self.prime()

        self._stop_event.clear()
        self._failures = 0
        self._gave_up = False
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="ResourceMonitor",
        )
        self._thread.start()
        LOGGER.info("Resource monitor started, sampling every %.1fs", self._interval)

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread after its current tick.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
            LOGGER.info("Resource monitor stopped")

    def tick(self) -> MonitorSnapshot:
        """
        Take one reading of each kind and publish them together.

        Raises:
            CounterReadError: system memory totals could not be read.
        """
        system_memory = self._memory_reader()
        process_memory = self._process_reader()
        cpu = self._sampler.sample()

        self._tick += 1
        snapshot = MonitorSnapshot(
            cpu=cpu,
            system_memory=system_memory,
            process_memory=process_memory,
            timestamp=datetime.now(timezone.utc),
            tick=self._tick,
        )
        self._latest = snapshot
        self._published.set()
        return snapshot

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            try:
                self.tick()
                self._failures = 0
            except (CounterReadError, psutil.Error) as exc:
                self._failures += 1
                LOGGER.error("Sampling tick failed (%d in a row): %s", self._failures, exc)
                if self._max_failures is not None and self._failures >= self._max_failures:
                    LOGGER.critical("Giving up after %d consecutive failed ticks", self._failures)
                    self._gave_up = True
                    break

            # Wait for the interval or until stop is requested
            self._stop_event.wait(timeout=self._interval)
