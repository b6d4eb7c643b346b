"""Process memory reading and listing using psutil."""

import logging

import psutil

from hostmon.models import ProcessEntry, ProcessMemorySnapshot

LOGGER = logging.getLogger(__name__)


def read_process_memory(process: psutil.Process | None = None) -> ProcessMemorySnapshot:
    """
    Read the memory footprint of a process (the current one by default).

    The working set is always reported. Private and paged bytes are
    best-effort and reported as 0 when the platform or permissions do not
    allow reading them.
    """
    process = process if process is not None else psutil.Process()
    info = process.memory_info()

    # Windows reports both directly on memory_info()
    private = getattr(info, "private", None)
    paged = getattr(info, "pagefile", None)

    if private is None or paged is None:
        try:
            full = process.memory_full_info()
        except (psutil.Error, NotImplementedError) as exc:
            LOGGER.debug("memory_full_info unavailable for pid %s: %s", process.pid, exc)
            full = None
        if private is None:
            private = getattr(full, "uss", 0)
        if paged is None:
            paged = getattr(full, "swap", 0)

    return ProcessMemorySnapshot(
        process_id=process.pid,
        working_set_bytes=info.rss,
        private_bytes=private or 0,
        paged_bytes=paged or 0,
    )


def top_by_working_set(limit: int = 10) -> list[ProcessEntry]:
    """
    Return the ``limit`` processes with the largest working set.

    Processes that exit mid-scan or deny access are skipped.
    """
    entries: list[ProcessEntry] = []

    for proc in psutil.process_iter(attrs=["pid", "name", "memory_info"]):
        try:
            info = proc.info
            mem_info = info.get("memory_info")
            entries.append(
                ProcessEntry(
                    pid=info.get("pid", 0),
                    name=info.get("name") or "",
                    working_set_bytes=mem_info.rss if mem_info else 0,
                )
            )
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            continue

    entries.sort(key=lambda e: e.working_set_bytes, reverse=True)
    return entries[:limit]
