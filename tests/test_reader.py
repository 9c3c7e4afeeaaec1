from __future__ import annotations

import unittest

import numpy as np
from fake_process import FakeProcess, FakeProcessApi

from gamedata_reader.games import Game, RankLayout, SmashTVLayout
from gamedata_reader.memory.process import RemoteProcess
from gamedata_reader.memory.reader import SMASH_TV_BLOCK, Rank, SmashTV

GHOULS = RankLayout(0x092A, 16)
PARODIUS = RankLayout(0x0088, 32)


class RankHistoryTests(unittest.TestCase):
    def test_starts_full_of_neutral_values(self) -> None:
        rank = Rank(Game.GRADIUS3_SNES, RankLayout(0x84, 16), length=5)
        self.assertEqual(rank.values, [0.0] * 5)
        self.assertEqual(len(rank), 5)

    def test_push_evicts_oldest_in_fifo_order(self) -> None:
        rank = Rank(Game.GRADIUS3_SNES, RankLayout(0x84, 16), length=3)
        for value in (1, 2, 3, 4):
            rank.push(value)
        self.assertEqual(rank.values, [2.0, 3.0, 4.0])
        self.assertEqual(rank.latest, 4.0)

    def test_resize_grow_pads_oldest_side(self) -> None:
        rank = Rank(Game.GRADIUS3_SNES, RankLayout(0x84, 16), length=3)
        for value in (1, 2, 3):
            rank.push(value)
        rank.resize(5)
        self.assertEqual(rank.values, [0.0, 0.0, 1.0, 2.0, 3.0])
        rank.push(9)
        self.assertEqual(rank.values, [0.0, 1.0, 2.0, 3.0, 9.0])

    def test_resize_shrink_keeps_most_recent(self) -> None:
        rank = Rank(Game.GRADIUS3_SNES, RankLayout(0x84, 16), length=4)
        for value in (1, 2, 3, 4):
            rank.push(value)
        rank.resize(2)
        self.assertEqual(rank.values, [3.0, 4.0])

    def test_clear_keeps_length(self) -> None:
        rank = Rank(Game.GRADIUS3_SNES, RankLayout(0x84, 16), length=4)
        rank.push(5)
        rank.clear()
        self.assertEqual(rank.values, [0.0] * 4)

    def test_invalid_length_rejected(self) -> None:
        with self.assertRaises(ValueError):
            Rank(Game.GRADIUS3_SNES, RankLayout(0x84, 16), length=0)
        rank = Rank(Game.GRADIUS3_SNES, RankLayout(0x84, 16), length=2)
        with self.assertRaises(ValueError):
            rank.resize(0)

    def test_as_array_is_float32_copy(self) -> None:
        rank = Rank(Game.GRADIUS3_SNES, RankLayout(0x84, 16), length=3)
        rank.push(7)
        array = rank.as_array()
        self.assertEqual(array.dtype, np.float32)
        np.testing.assert_array_equal(array, np.array([0.0, 0.0, 7.0], dtype=np.float32))

    def test_summary_spans_whole_window(self) -> None:
        rank = Rank(Game.GRADIUS3_SNES, RankLayout(0x84, 16), length=4)
        for value in (2, 6, 4):
            rank.push(value)
        summary = rank.summary()
        self.assertEqual((summary.low, summary.high, summary.samples), (0, 6, 4))
        self.assertAlmostEqual(summary.mean, 3.0)


class RankDecodeTests(unittest.TestCase):
    def setUp(self) -> None:
        self.proc = FakeProcess(pid=12, name=b"mame.exe")
        self.api = FakeProcessApi([self.proc])
        self.remote = RemoteProcess.open(self.api, 12)
        self.base = 0x3000_0000

    def tearDown(self) -> None:
        self.remote.close()

    def test_ghouls_rank_is_shifted(self) -> None:
        self.proc.write(self.base + GHOULS.offset, bytes([0x7F]))
        rank = Rank(Game.GHOULS_ARCADE, GHOULS, length=4)
        self.assertEqual(rank.update(self.remote, self.base), 0x7F >> 3)
        self.assertEqual(rank.latest, 15.0)

    def test_out_of_range_rank_becomes_zero(self) -> None:
        self.proc.write(self.base + GHOULS.offset, bytes([130]))
        rank = Rank(Game.GHOULS_ARCADE, GHOULS, length=4)
        rank.push(5)
        with self.assertLogs("gamedata_reader.memory.reader", level="WARNING"):
            value = rank.update(self.remote, self.base)
        self.assertEqual(value, 0)
        self.assertEqual(rank.values, [0.0, 0.0, 5.0, 0.0])
        self.assertEqual(rank.rejected, 1)

    def test_history_never_holds_out_of_range_values(self) -> None:
        rank = Rank(Game.PARODIUS_SNES, PARODIUS, length=300)
        for raw in range(256):
            self.proc.write(self.base + PARODIUS.offset, bytes([raw]))
            rank.update(self.remote, self.base)
        self.assertTrue(all(0 <= v < PARODIUS.steps for v in rank.values))
        self.assertEqual(rank.rejected, 256 - 32)

    def test_failed_read_pushes_neutral_value(self) -> None:
        rank = Rank(Game.GRADIUS3_SNES, RankLayout(0x84, 16), length=2)
        rank.push(3)
        self.assertEqual(rank.update(self.remote, self.base), 0)
        self.assertEqual(rank.values, [3.0, 0.0])
        self.assertEqual(rank.read_failures, 1)
        self.assertEqual(rank.rejected, 0)


class SmashTVTests(unittest.TestCase):
    def test_slots_are_reversed(self) -> None:
        block = bytearray(SMASH_TV_BLOCK)
        for x in range(7):
            block[x] = 0x10 + x
        table = SmashTV()
        table.decode(bytes(block), 0)
        self.assertEqual(table.enemy_type[6], 0x10)
        self.assertEqual(table.enemy_type[0], 0x16)
        self.assertEqual(table.enemy_type, [0x16, 0x15, 0x14, 0x13, 0x12, 0x11, 0x10])

    def test_sixteen_bit_fields_from_split_rows(self) -> None:
        block = bytearray(SMASH_TV_BLOCK)
        # slot 0 in the source block, displayed last
        block[7 * 1 + 0] = 0x34
        block[7 * 2 + 0] = 0x12
        block[7 * 8 + 0] = 0x78
        block[7 * 9 + 0] = 0x01
        # slot 6 in the source block, displayed first
        block[7 * 1 + 6] = 0x05
        block[7 * 9 + 6] = 0x02
        table = SmashTV()
        table.decode(bytes(block), 3)
        self.assertEqual(table.enemy_count[6], 0x1234)
        self.assertEqual(table.spawn_timer[6], 0x0178)
        self.assertEqual(table.enemy_count[0], 5)
        self.assertEqual(table.spawn_timer[0], 0x0200)
        self.assertEqual(table.active_enemies, 3)

    def test_update_reads_block_and_active_counter(self) -> None:
        proc = FakeProcess(pid=12, name=b"bsnes.exe")
        api = FakeProcessApi([proc])
        layout = SmashTVLayout()
        base = 0xB16D7C
        block = bytearray(SMASH_TV_BLOCK)
        block[6] = 1
        block[7 * 1 + 6] = 20
        block[7 * 8 + 6] = 120
        proc.write(base + layout.block_offset, bytes(block))
        proc.write(base + layout.active_offset, bytes([4]))

        table = SmashTV(layout)
        with RemoteProcess.open(api, 12) as remote:
            table.update(remote, base)

        rows = list(table.rows())
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].name, "Grunt")
        self.assertEqual(rows[0].count, 20)
        self.assertAlmostEqual(rows[0].spawn_seconds, 2.0)
        self.assertEqual(rows[0].total, 24)

    def test_each_update_overwrites_table(self) -> None:
        table = SmashTV()
        block = bytearray(SMASH_TV_BLOCK)
        block[0] = 3
        table.decode(bytes(block), 1)
        table.decode(bytes(SMASH_TV_BLOCK), 0)
        self.assertEqual(table.enemy_type, [0] * 7)
        self.assertEqual(list(table.rows()), [])

    def test_failed_read_zeroes_table(self) -> None:
        proc = FakeProcess(pid=12, name=b"bsnes.exe")
        api = FakeProcessApi([proc])
        table = SmashTV()
        table.decode(bytes([1] * SMASH_TV_BLOCK), 2)
        with RemoteProcess.open(api, 12) as remote:
            table.update(remote, 0xB16D7C)
        self.assertEqual(table.enemy_type, [0] * 7)
        self.assertEqual(table.active_enemies, 0)
        self.assertEqual(table.read_failures, 1)

    def test_name_uses_low_nibble(self) -> None:
        block = bytearray(SMASH_TV_BLOCK)
        block[6] = 0x8F
        table = SmashTV()
        table.decode(bytes(block), 0)
        self.assertEqual(next(table.rows()).name, "Mine")

    def test_wrong_block_size_rejected(self) -> None:
        with self.assertRaises(ValueError):
            SmashTV().decode(bytes(10), 0)


if __name__ == "__main__":
    unittest.main()
