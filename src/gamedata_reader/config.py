"""
Configuration models and loaders for gamedata_reader.
Uses Pydantic for validation and TOML for file format.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from pydantic import BaseModel, Field, field_validator

from .memory.reader import DEFAULT_HISTORY_LENGTH, clamp_history_length

DEFAULT_CONFIG_PATH = Path("configs/reader.toml")


class PollingConfig(BaseModel):
    """Tick cadence and discovery timing."""
    tick_ms: int = 20
    timer_ticks: int = 100
    settle_delay_s: float = 2.0

    @field_validator("tick_ms")
    @classmethod
    def validate_tick_ms(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("tick_ms must be positive")
        return v

    @field_validator("timer_ticks")
    @classmethod
    def clamp_timer_ticks(cls, v: int) -> int:
        return max(5, min(125, v))

    @field_validator("settle_delay_s")
    @classmethod
    def validate_settle_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("settle_delay_s cannot be negative")
        return v


class HistoryConfig(BaseModel):
    """Rank history settings."""
    data_points: int = DEFAULT_HISTORY_LENGTH

    @field_validator("data_points")
    @classmethod
    def clamp_data_points(cls, v: int) -> int:
        return clamp_history_length(v)


class DebugConfig(BaseModel):
    """Debug and diagnostic settings."""
    log_file: str = ""
    trace_file: str = ""


class ReaderConfig(BaseModel):
    """Complete reader configuration."""
    polling: PollingConfig = Field(default_factory=PollingConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    debug: DebugConfig = Field(default_factory=DebugConfig)

    @classmethod
    def from_toml(cls, path: str | Path) -> ReaderConfig:
        """Load configuration from TOML file."""
        path = Path(path)
        with path.open("rb") as f:
            data = tomllib.load(f)
        return cls.model_validate(data)

    @classmethod
    def load(cls, path: str | Path | None = None) -> ReaderConfig:
        """Load configuration, falling back to defaults if the file is missing."""
        path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
        if not path.exists():
            return cls()
        return cls.from_toml(path)

    def to_dict(self) -> dict[str, Any]:
        """Export configuration as dictionary."""
        return self.model_dump()
