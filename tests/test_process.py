"""Tests for process memory reading and listing."""

import os
from types import SimpleNamespace

import psutil

from hostmon.models import ProcessEntry, ProcessMemorySnapshot
from hostmon.process import read_process_memory, top_by_working_set


class FakeProcess:
    """Stand-in for psutil.Process with controllable memory calls."""

    pid = 4242

    def __init__(self, info, full=None, full_error=None):
        self._info = info
        self._full = full
        self._full_error = full_error

    def memory_info(self):
        return self._info

    def memory_full_info(self):
        if self._full_error is not None:
            raise self._full_error
        return self._full


def test_reads_current_process():
    """Test the current process is read by default."""
    snapshot = read_process_memory()

    assert isinstance(snapshot, ProcessMemorySnapshot)
    assert snapshot.process_id == os.getpid()
    assert snapshot.working_set_bytes > 0
    assert snapshot.private_bytes >= 0
    assert snapshot.paged_bytes >= 0


def test_repeated_reads_never_zero():
    """Test repeated reads of a healthy process stay positive."""
    readings = [read_process_memory().working_set_bytes for _ in range(5)]
    assert all(value > 0 for value in readings)


def test_windows_style_fields_used_directly():
    """Test private and pagefile on memory_info skip the full read."""
    proc = FakeProcess(
        SimpleNamespace(rss=100, private=40, pagefile=60),
        full_error=AssertionError("should not be called"),
    )

    snapshot = read_process_memory(proc)

    assert snapshot == ProcessMemorySnapshot(4242, 100, 40, 60)


def test_uss_and_swap_from_full_info():
    """Test uss and swap fill private and paged bytes elsewhere."""
    proc = FakeProcess(SimpleNamespace(rss=100), full=SimpleNamespace(uss=30, swap=5))

    snapshot = read_process_memory(proc)

    assert snapshot.private_bytes == 30
    assert snapshot.paged_bytes == 5


def test_access_denied_reports_zero():
    """Test optional fields fall back to zero when access is denied."""
    proc = FakeProcess(SimpleNamespace(rss=100), full_error=psutil.AccessDenied(4242))

    snapshot = read_process_memory(proc)

    assert snapshot.working_set_bytes == 100
    assert snapshot.private_bytes == 0
    assert snapshot.paged_bytes == 0


def test_top_by_working_set_sorted_and_limited():
    """Test the listing is sorted by working set and limited."""
    entries = top_by_working_set(5)

    assert 0 < len(entries) <= 5
    assert all(isinstance(e, ProcessEntry) for e in entries)
    sizes = [e.working_set_bytes for e in entries]
    assert sizes == sorted(sizes, reverse=True)
