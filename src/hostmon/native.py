"""
ctypes bindings for the native counter sources on macOS and Windows.

Libraries are loaded on first use so this module imports on any OS. Every
failed call raises CounterReadError; nothing here retries.
"""

import ctypes
import ctypes.util
import os
import struct
from functools import lru_cache

from hostmon.errors import CounterReadError


# ---------------------------------------------------------------------------
# macOS: sysctlbyname
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def _libc() -> ctypes.CDLL:
    """Load the C library exposing sysctlbyname."""
    path = ctypes.util.find_library("c") or "libSystem.dylib"
    try:
        lib = ctypes.CDLL(path, use_errno=True)
        func = lib.sysctlbyname
    except (OSError, AttributeError) as exc:
        raise CounterReadError(f"sysctlbyname unavailable: {exc}") from exc
    func.argtypes = [
        ctypes.c_char_p,
        ctypes.c_void_p,
        ctypes.POINTER(ctypes.c_size_t),
        ctypes.c_void_p,
        ctypes.c_size_t,
    ]
    func.restype = ctypes.c_int
    return lib


def sysctl_bytes(name: str) -> bytes:
    """
    Fetch the raw value of a sysctl key.

    Two-phase query: the first call asks for the required buffer size, the
    second fetches into a buffer of that size. The returned length may be
    shorter than the size query reported.
    """
    lib = _libc()
    key = name.encode("ascii")
    size = ctypes.c_size_t(0)
    if lib.sysctlbyname(key, None, ctypes.byref(size), None, 0) != 0:
        errno = ctypes.get_errno()
        raise CounterReadError(f"sysctl {name} size query failed: {os.strerror(errno)}")
    if size.value == 0:
        return b""

    buf = ctypes.create_string_buffer(size.value)
    if lib.sysctlbyname(key, buf, ctypes.byref(size), None, 0) != 0:
        errno = ctypes.get_errno()
        raise CounterReadError(f"sysctl {name} failed: {os.strerror(errno)}")
    return buf.raw[: size.value]


def sysctl_uint(name: str) -> int:
    """Read an unsigned 32- or 64-bit scalar sysctl value."""
    raw = sysctl_bytes(name)
    if len(raw) == 8:
        return struct.unpack("=Q", raw)[0]
    if len(raw) == 4:
        return struct.unpack("=I", raw)[0]
    raise CounterReadError(f"sysctl {name} returned {len(raw)} bytes, expected 4 or 8")


def sysctl_long_array(name: str) -> tuple[int, ...]:
    """Read a sysctl value as an array of C longs; any trailing partial long is dropped."""
    raw = sysctl_bytes(name)
    width = ctypes.sizeof(ctypes.c_long)
    count = len(raw) // width
    return struct.unpack(f"={count}{'q' if width == 8 else 'l'}", raw[: count * width])


# ---------------------------------------------------------------------------
# Windows: kernel32
# ---------------------------------------------------------------------------


class FILETIME(ctypes.Structure):
    """Win32 FILETIME: a 64-bit count of 100ns intervals split in two halves."""

    _fields_ = [("dwLowDateTime", ctypes.c_uint32), ("dwHighDateTime", ctypes.c_uint32)]

    def to_int(self) -> int:
        return (self.dwHighDateTime << 32) | self.dwLowDateTime


class MEMORYSTATUSEX(ctypes.Structure):
    _fields_ = [
        ("dwLength", ctypes.c_uint32),
        ("dwMemoryLoad", ctypes.c_uint32),
        ("ullTotalPhys", ctypes.c_uint64),
        ("ullAvailPhys", ctypes.c_uint64),
        ("ullTotalPageFile", ctypes.c_uint64),
        ("ullAvailPageFile", ctypes.c_uint64),
        ("ullTotalVirtual", ctypes.c_uint64),
        ("ullAvailVirtual", ctypes.c_uint64),
        ("ullAvailExtendedVirtual", ctypes.c_uint64),
    ]


@lru_cache(maxsize=1)
def _kernel32():
    """Load kernel32 and declare the signatures used here."""
    try:
        lib = ctypes.WinDLL("kernel32", use_last_error=True)  # type: ignore[attr-defined]
    except (AttributeError, OSError) as exc:
        raise CounterReadError(f"kernel32 unavailable: {exc}") from exc
    lib.GetSystemTimes.argtypes = [ctypes.POINTER(FILETIME)] * 3
    lib.GetSystemTimes.restype = ctypes.c_int
    lib.GlobalMemoryStatusEx.argtypes = [ctypes.POINTER(MEMORYSTATUSEX)]
    lib.GlobalMemoryStatusEx.restype = ctypes.c_int
    return lib


def _last_error() -> int:
    return ctypes.get_last_error()  # type: ignore[attr-defined]


def get_system_times() -> tuple[int, int, int]:
    """Return (idle, kernel, user) system times in 100ns units. Kernel includes idle."""
    lib = _kernel32()
    idle, kernel, user = FILETIME(), FILETIME(), FILETIME()
    if not lib.GetSystemTimes(ctypes.byref(idle), ctypes.byref(kernel), ctypes.byref(user)):
        raise CounterReadError(f"GetSystemTimes failed (error {_last_error()})")
    return idle.to_int(), kernel.to_int(), user.to_int()


def global_memory_status() -> tuple[int, int]:
    """Return (total, available) physical memory in bytes."""
    lib = _kernel32()
    status = MEMORYSTATUSEX()
    status.dwLength = ctypes.sizeof(MEMORYSTATUSEX)
    if not lib.GlobalMemoryStatusEx(ctypes.byref(status)):
        raise CounterReadError(f"GlobalMemoryStatusEx failed (error {_last_error()})")
    return int(status.ullTotalPhys), int(status.ullAvailPhys)
