from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from pydantic import ValidationError

from gamedata_reader.config import ReaderConfig


class ReaderConfigTests(unittest.TestCase):
    def test_defaults(self) -> None:
        config = ReaderConfig()
        self.assertEqual(config.polling.tick_ms, 20)
        self.assertEqual(config.polling.timer_ticks, 100)
        self.assertEqual(config.polling.settle_delay_s, 2.0)
        self.assertEqual(config.history.data_points, 240)
        self.assertEqual(config.debug.log_file, "")

    def test_missing_file_falls_back_to_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config = ReaderConfig.load(Path(tmp) / "absent.toml")
        self.assertEqual(config.to_dict(), ReaderConfig().to_dict())

    def test_loads_toml_and_clamps_ranges(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "reader.toml"
            path.write_text(
                "[polling]\n"
                "timer_ticks = 2\n"
                "settle_delay_s = 1.5\n"
                "\n"
                "[history]\n"
                "data_points = 9000\n"
                "\n"
                "[debug]\n"
                'trace_file = "trace.json"\n',
                encoding="utf-8",
            )
            config = ReaderConfig.load(path)

        self.assertEqual(config.polling.timer_ticks, 5)
        self.assertEqual(config.polling.settle_delay_s, 1.5)
        self.assertEqual(config.history.data_points, 500)
        self.assertEqual(config.debug.trace_file, "trace.json")

    def test_small_history_is_clamped_up(self) -> None:
        config = ReaderConfig.model_validate({"history": {"data_points": 3}})
        self.assertEqual(config.history.data_points, 30)

    def test_invalid_values_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            ReaderConfig.model_validate({"polling": {"tick_ms": 0}})
        with self.assertRaises(ValidationError):
            ReaderConfig.model_validate({"polling": {"settle_delay_s": -1}})

    def test_bundled_config_matches_defaults(self) -> None:
        path = Path(__file__).resolve().parents[1] / "configs" / "reader.toml"
        config = ReaderConfig.from_toml(path)
        self.assertEqual(config.to_dict(), ReaderConfig().to_dict())


if __name__ == "__main__":
    unittest.main()
