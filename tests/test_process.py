from __future__ import annotations

import struct
import unittest

from fake_process import FakeProcess, FakeProcessApi, write_chain

from gamedata_reader.errors import MemoryReadError, PlatformNotSupportedError
from gamedata_reader.games import PointerChain
from gamedata_reader.memory.process import STILL_ACTIVE, RemoteProcess, WindowsProcessApi


class RemoteProcessTests(unittest.TestCase):
    def setUp(self) -> None:
        self.proc = FakeProcess(pid=42, name=b"mame.exe", base_address=0x10000)
        self.api = FakeProcessApi([self.proc])

    def test_read_bytes_and_scalars(self) -> None:
        self.proc.write(0x5000, bytes([7, 1, 2, 3, 4, 5, 6, 7, 8]))
        with RemoteProcess.open(self.api, 42) as remote:
            self.assertEqual(remote.read_bytes(0x5000, 2), bytes([7, 1]))
            self.assertEqual(remote.read_u8(0x5000), 7)
            self.assertEqual(
                remote.read_pointer(0x5001),
                struct.unpack("<Q", bytes([1, 2, 3, 4, 5, 6, 7, 8]))[0],
            )

    def test_unmapped_read_raises(self) -> None:
        with RemoteProcess.open(self.api, 42) as remote:
            with self.assertRaises(MemoryReadError):
                remote.read_bytes(0xDEAD, 4)

    def test_chain_dereferences_every_offset(self) -> None:
        offsets = (0x100, 0x08, 0x10)
        write_chain(self.proc, 0x10000, offsets, 0x9999_0000)
        with RemoteProcess.open(self.api, 42) as remote:
            self.assertEqual(remote.follow_pointer_chain(0x10000, PointerChain(offsets)), 0x9999_0000)

    def test_chain_adds_last_offset_without_dereference(self) -> None:
        offsets = (0x100, 0x08, 0x10)
        write_chain(self.proc, 0x10000, offsets, 0, deref_last=False)
        with RemoteProcess.open(self.api, 42) as remote:
            result = remote.follow_pointer_chain(0x10000, PointerChain(offsets, deref_last=False))
        # Second link points at 0x2001_0000; the last offset is only added
        self.assertEqual(result, 0x2001_0000 + 0x10)

    def test_static_chain_performs_no_reads(self) -> None:
        chain = PointerChain((0xB16D7C,), relative_to_module=False, deref_last=False)
        with RemoteProcess.open(self.api, 42) as remote:
            self.assertEqual(remote.follow_pointer_chain(0, chain), 0xB16D7C)
        self.assertEqual(self.api.read_calls, [])

    def test_liveness_follows_exit_code(self) -> None:
        remote = RemoteProcess.open(self.api, 42)
        self.assertTrue(remote.is_running())
        self.proc.exit_code = 0
        self.assertFalse(remote.is_running())
        self.proc.exit_code = STILL_ACTIVE
        remote.close()
        self.assertFalse(remote.is_running())

    def test_close_is_idempotent_and_blocks_reads(self) -> None:
        remote = RemoteProcess.open(self.api, 42)
        remote.close()
        remote.close()
        self.assertEqual(len(self.api.closed), 1)
        self.assertFalse(remote.is_open)
        with self.assertRaises(MemoryReadError):
            remote.read_bytes(0x5000, 1)

    def test_module_info_is_cached(self) -> None:
        with RemoteProcess.open(self.api, 42) as remote:
            first = remote.module_info()
            self.proc.base_address = 0x20000
            self.assertIs(remote.module_info(), first)
            self.assertEqual(first.base_address, 0x10000)


class WindowsProcessApiTests(unittest.TestCase):
    def test_non_windows_platform_reports_unsupported(self) -> None:
        api = WindowsProcessApi()
        if api.supports_memory_read():
            self.skipTest("running on Windows")
        with self.assertRaises(PlatformNotSupportedError):
            api.enum_process_ids()
        # Closing a handle without kernel32 is a no-op
        api.close_handle(123)


if __name__ == "__main__":
    unittest.main()
