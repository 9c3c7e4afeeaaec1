"""
Process enumeration and read-only attachment using the Windows API.

``WindowsProcessApi`` wraps the raw kernel32 calls. ``RemoteProcess`` is the
only object the rest of the package uses to touch another process: it owns
one handle and exposes bounded reads plus pointer-chain walking.
"""

from __future__ import annotations

import ctypes
import ctypes.wintypes as wt
import logging
import platform
import struct
from dataclasses import dataclass
from typing import Protocol

from ..errors import (
    MemoryReadError,
    PlatformNotSupportedError,
    ProcessAccessError,
)
from ..games import PointerChain

log = logging.getLogger(__name__)

# Windows constants
PROCESS_VM_READ = 0x0010
PROCESS_QUERY_INFORMATION = 0x0400
STILL_ACTIVE = 259
MODULE_NAME_BUFFER = 256
POINTER_SIZE = 8


class MODULEINFO(ctypes.Structure):
    _fields_ = [
        ("lpBaseOfDll", ctypes.c_void_p),
        ("SizeOfImage", wt.DWORD),
        ("EntryPoint", ctypes.c_void_p),
    ]


@dataclass
class ModuleInfo:
    """Base address and image size of a loaded module."""
    base_address: int
    size: int


class ProcessApi(Protocol):
    """The process primitives the reader depends on."""

    def supports_memory_read(self) -> bool: ...

    def enum_process_ids(self) -> list[int]: ...

    def open_process(self, pid: int) -> int: ...

    def close_handle(self, handle: int) -> None: ...

    def module_base_name(self, handle: int) -> bytes: ...

    def module_info(self, handle: int) -> ModuleInfo: ...

    def read_memory(self, handle: int, address: int, size: int) -> bytes: ...

    def exit_code(self, handle: int) -> int | None: ...


class WindowsProcessApi:
    """kernel32 bindings, loaded only on Windows."""

    def __init__(self):
        self._system = platform.system().lower()
        self._kernel32 = None
        if self._system == "windows":
            self._kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)
            self._bind(self._kernel32)

    @staticmethod
    def _bind(k32) -> None:
        k32.OpenProcess.argtypes = [wt.DWORD, wt.BOOL, wt.DWORD]
        k32.OpenProcess.restype = wt.HANDLE

        k32.CloseHandle.argtypes = [wt.HANDLE]
        k32.CloseHandle.restype = wt.BOOL

        k32.ReadProcessMemory.argtypes = [
            wt.HANDLE,
            ctypes.c_void_p,
            ctypes.c_void_p,
            ctypes.c_size_t,
            ctypes.POINTER(ctypes.c_size_t),
        ]
        k32.ReadProcessMemory.restype = wt.BOOL

        k32.GetExitCodeProcess.argtypes = [wt.HANDLE, ctypes.POINTER(wt.DWORD)]
        k32.GetExitCodeProcess.restype = wt.BOOL

        k32.K32EnumProcesses.argtypes = [ctypes.POINTER(wt.DWORD), wt.DWORD, ctypes.POINTER(wt.DWORD)]
        k32.K32EnumProcesses.restype = wt.BOOL

        k32.K32EnumProcessModules.argtypes = [
            wt.HANDLE,
            ctypes.POINTER(wt.HMODULE),
            wt.DWORD,
            ctypes.POINTER(wt.DWORD),
        ]
        k32.K32EnumProcessModules.restype = wt.BOOL

        k32.K32GetModuleBaseNameA.argtypes = [wt.HANDLE, wt.HMODULE, ctypes.c_char_p, wt.DWORD]
        k32.K32GetModuleBaseNameA.restype = wt.DWORD

        k32.K32GetModuleInformation.argtypes = [
            wt.HANDLE,
            wt.HMODULE,
            ctypes.POINTER(MODULEINFO),
            wt.DWORD,
        ]
        k32.K32GetModuleInformation.restype = wt.BOOL

    def supports_memory_read(self) -> bool:
        return self._system == "windows" and self._kernel32 is not None

    def _require(self):
        if self._kernel32 is None:
            raise PlatformNotSupportedError("kernel32 is unavailable; the reader runs on Windows only.")
        return self._kernel32

    def enum_process_ids(self) -> list[int]:
        """Snapshot all process ids, growing the buffer until it fits."""
        k32 = self._require()
        capacity = 1024
        while True:
            pids = (wt.DWORD * capacity)()
            needed = wt.DWORD(0)
            if not k32.K32EnumProcesses(pids, ctypes.sizeof(pids), ctypes.byref(needed)):
                log.debug("EnumProcesses failed, winerr=%d", ctypes.get_last_error())
                return []
            count = needed.value // ctypes.sizeof(wt.DWORD)
            # A full buffer may mean the list was truncated
            if count < capacity:
                return [int(pids[i]) for i in range(count)]
            capacity *= 2

    def open_process(self, pid: int) -> int:
        k32 = self._require()
        handle = k32.OpenProcess(PROCESS_VM_READ | PROCESS_QUERY_INFORMATION, False, pid)
        if not handle:
            winerr = ctypes.get_last_error()
            raise ProcessAccessError(f"OpenProcess failed for pid={pid}, winerr={winerr}")
        return int(handle)

    def close_handle(self, handle: int) -> None:
        if self._kernel32 is None or not handle:
            return
        self._kernel32.CloseHandle(handle)

    def _first_module(self, handle: int) -> wt.HMODULE:
        k32 = self._require()
        module = wt.HMODULE()
        needed = wt.DWORD(0)
        if not k32.K32EnumProcessModules(handle, ctypes.byref(module), ctypes.sizeof(module), ctypes.byref(needed)):
            winerr = ctypes.get_last_error()
            raise MemoryReadError(f"EnumProcessModules failed, winerr={winerr}")
        return module

    def module_base_name(self, handle: int) -> bytes:
        k32 = self._require()
        module = self._first_module(handle)
        buf = ctypes.create_string_buffer(MODULE_NAME_BUFFER)
        length = k32.K32GetModuleBaseNameA(handle, module, buf, MODULE_NAME_BUFFER)
        if length == 0:
            winerr = ctypes.get_last_error()
            raise MemoryReadError(f"GetModuleBaseName failed, winerr={winerr}")
        return buf.raw[:length]

    def module_info(self, handle: int) -> ModuleInfo:
        k32 = self._require()
        module = self._first_module(handle)
        info = MODULEINFO()
        if not k32.K32GetModuleInformation(handle, module, ctypes.byref(info), ctypes.sizeof(info)):
            winerr = ctypes.get_last_error()
            raise MemoryReadError(f"GetModuleInformation failed, winerr={winerr}")
        return ModuleInfo(base_address=int(info.lpBaseOfDll or 0), size=int(info.SizeOfImage))

    def read_memory(self, handle: int, address: int, size: int) -> bytes:
        k32 = self._require()
        buf = ctypes.create_string_buffer(size)
        read = ctypes.c_size_t(0)
        ok = k32.ReadProcessMemory(
            handle,
            ctypes.c_void_p(address),
            buf,
            size,
            ctypes.byref(read),
        )
        if not ok or read.value != size:
            winerr = ctypes.get_last_error()
            raise MemoryReadError(
                f"ReadProcessMemory failed: addr={hex(address)} size={size} read={read.value} winerr={winerr}"
            )
        return buf.raw[:size]

    def exit_code(self, handle: int) -> int | None:
        k32 = self._require()
        code = wt.DWORD(0)
        if not k32.GetExitCodeProcess(handle, ctypes.byref(code)):
            return None
        return int(code.value)


class RemoteProcess:
    """
    Read-only view of another process through one open handle.

    Usage:
        with RemoteProcess.open(api, pid) as proc:
            data = proc.read_bytes(address, 16)
    """

    def __init__(self, api: ProcessApi, pid: int, handle: int):
        self._api = api
        self._pid = pid
        self._handle: int | None = handle
        self._module: ModuleInfo | None = None

    @classmethod
    def open(cls, api: ProcessApi, pid: int) -> RemoteProcess:
        return cls(api, pid, api.open_process(pid))

    @property
    def pid(self) -> int:
        return self._pid

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    def _require_handle(self) -> int:
        if self._handle is None:
            raise MemoryReadError(f"Process {self._pid} is closed")
        return self._handle

    def module_base_name(self) -> bytes:
        return self._api.module_base_name(self._require_handle())

    def module_info(self) -> ModuleInfo:
        """First module's base and image size, cached for the handle's lifetime."""
        if self._module is None:
            self._module = self._api.module_info(self._require_handle())
        return self._module

    def read_bytes(self, address: int, length: int) -> bytes:
        """Read exactly ``length`` bytes or raise MemoryReadError."""
        data = self._api.read_memory(self._require_handle(), address, length)
        if len(data) != length:
            raise MemoryReadError(
                f"Short read at {hex(address)}: wanted {length}, got {len(data)}"
            )
        return data

    def read_u8(self, address: int) -> int:
        return self.read_bytes(address, 1)[0]

    def read_pointer(self, address: int) -> int:
        """Read a 64-bit pointer."""
        return struct.unpack("<Q", self.read_bytes(address, POINTER_SIZE))[0]

    def follow_pointer_chain(self, start: int, chain: PointerChain) -> int:
        """
        Walk ``chain`` from ``start``.

        Each offset is added to the current address and the pointer stored
        there becomes the next address. When the chain does not dereference
        its last offset, that final sum is returned as is.
        """
        addr = start
        last = len(chain.offsets) - 1
        for i, offset in enumerate(chain.offsets):
            candidate = addr + offset
            if i == last and not chain.deref_last:
                addr = candidate
            else:
                addr = self.read_pointer(candidate)
        return addr

    def is_running(self) -> bool:
        if self._handle is None:
            return False
        return self._api.exit_code(self._handle) == STILL_ACTIVE

    def close(self) -> None:
        if self._handle is not None:
            self._api.close_handle(self._handle)
            log.debug("Closed handle for pid %d", self._pid)
        self._handle = None
        self._module = None

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def __repr__(self) -> str:
        state = "open" if self.is_open else "closed"
        return f"RemoteProcess(pid={self._pid}, {state})"
