"""Tests for the ctypes helpers that do not need the native library."""

import ctypes
import struct
import sys

import pytest

from hostmon import native
from hostmon.errors import CounterReadError


def test_filetime_combines_halves():
    """Test FILETIME high and low words form one 64-bit value."""
    ft = native.FILETIME(dwLowDateTime=5, dwHighDateTime=1)
    assert ft.to_int() == (1 << 32) + 5


def test_sysctl_uint_widths(monkeypatch):
    """Test 4- and 8-byte scalars are both accepted."""
    monkeypatch.setattr(native, "sysctl_bytes", lambda name: struct.pack("=I", 4096))
    assert native.sysctl_uint("hw.pagesize") == 4096

    monkeypatch.setattr(native, "sysctl_bytes", lambda name: struct.pack("=Q", 2**34))
    assert native.sysctl_uint("hw.memsize") == 2**34


def test_sysctl_uint_bad_width(monkeypatch):
    """Test an unexpected value size is a read error."""
    monkeypatch.setattr(native, "sysctl_bytes", lambda name: b"\x00\x01")
    with pytest.raises(CounterReadError):
        native.sysctl_uint("hw.weird")


def test_sysctl_long_array_variable_length(monkeypatch):
    """Test any number of longs is decoded, dropping a partial trailer."""
    width = ctypes.sizeof(ctypes.c_long)
    fmt = "q" if width == 8 else "l"
    raw = struct.pack(f"=3{fmt}", 1, 2, 3) + b"\x00"
    monkeypatch.setattr(native, "sysctl_bytes", lambda name: raw)

    assert native.sysctl_long_array("kern.cp_time") == (1, 2, 3)


def test_sysctl_long_array_empty(monkeypatch):
    """Test an empty buffer yields no values."""
    monkeypatch.setattr(native, "sysctl_bytes", lambda name: b"")
    assert native.sysctl_long_array("kern.cp_time") == ()


@pytest.mark.skipif(sys.platform == "win32", reason="kernel32 exists on Windows")
def test_windows_calls_fail_cleanly_elsewhere():
    """Test Win32 helpers raise CounterReadError off Windows."""
    native._kernel32.cache_clear()
    with pytest.raises(CounterReadError):
        native.get_system_times()
