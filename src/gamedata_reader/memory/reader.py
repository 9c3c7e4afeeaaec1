"""
Decoders that turn raw game memory into displayable values.

``Rank`` keeps a fixed-length history of rank samples for plotting.
``SmashTV`` decodes the enemy wave table, overwritten on every sample.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Iterator

import numpy as np

from ..errors import MemoryReadError
from ..games import Game, RankLayout, SmashTVLayout
from .process import RemoteProcess

log = logging.getLogger(__name__)

DEFAULT_HISTORY_LENGTH = 240
MIN_HISTORY_LENGTH = 30
MAX_HISTORY_LENGTH = 500
NEUTRAL_RANK = 0.0

SMASH_TV_SLOTS = 7
SMASH_TV_FIELDS = 10
SMASH_TV_BLOCK = SMASH_TV_SLOTS * SMASH_TV_FIELDS

# Field rows inside the enemy block, each SMASH_TV_SLOTS bytes wide
_ROW_TYPE = 0
_ROW_COUNT_LO = 1
_ROW_COUNT_HI = 2
_ROW_TIMER_LO = 8
_ROW_TIMER_HI = 9

ENEMY_NAMES = (
    "Empty", "Grunt", "Wall gunner", "Worm",
    "Red flier", "Snakes", "Snake man", "Laser orb",
    "Tank", "Red cluster", "Mr. Shrapnel", "Worm (blue)",
    "Electric orb", "?", "?", "Mine",
)

FRAMES_PER_SECOND = 60


def clamp_history_length(length: int) -> int:
    return max(MIN_HISTORY_LENGTH, min(MAX_HISTORY_LENGTH, int(length)))


class Rank:
    """Rank history with a fixed, caller-chosen length."""

    def __init__(self, game: Game, layout: RankLayout, length: int = DEFAULT_HISTORY_LENGTH):
        if length < 1:
            raise ValueError("history length must be positive")
        self.game = game
        self.offset = layout.offset
        self.steps = layout.steps
        self.rejected = 0
        self.read_failures = 0
        self._values: deque[float] = deque([NEUTRAL_RANK] * length, maxlen=length)

    def __len__(self) -> int:
        return len(self._values)

    @property
    def values(self) -> list[float]:
        """Oldest first."""
        return list(self._values)

    @property
    def latest(self) -> float:
        return self._values[-1]

    def push(self, value: float) -> None:
        """Append a sample, evicting the oldest."""
        self._values.append(float(value))

    def accept(self, raw: int) -> int:
        """Format a raw byte into a rank step; out-of-range steps become 0."""
        value = self.game.format_rank(raw)
        if value >= self.steps:
            log.warning("Rank out of range: %d (raw %d, steps %d)", value, raw, self.steps)
            self.rejected += 1
            return 0
        return value

    def update(self, process: RemoteProcess, base_address: int) -> int:
        """Read one rank byte and push it."""
        try:
            raw = process.read_u8(base_address + self.offset)
        except MemoryReadError as exc:
            log.debug("Rank read failed: %s", exc)
            self.read_failures += 1
            raw = 0
        value = self.accept(raw)
        self.push(value)
        return value

    def resize(self, length: int) -> None:
        """
        Change the history length.

        The most recent samples are kept; new slots are padded with the
        neutral value on the oldest side.
        """
        if length < 1:
            raise ValueError("history length must be positive")
        if length == len(self._values):
            return
        recent = list(self._values)[-length:]
        padding = [NEUTRAL_RANK] * (length - len(recent))
        self._values = deque(padding + recent, maxlen=length)

    def clear(self) -> None:
        """Reset every sample, keeping the length."""
        self._values = deque([NEUTRAL_RANK] * len(self._values), maxlen=len(self._values))

    def as_array(self) -> np.ndarray:
        return np.asarray(self._values, dtype=np.float32)

    def summary(self) -> RankSummary:
        """Minimum, maximum and mean over the whole history window."""
        values = self.as_array()
        return RankSummary(
            low=int(values.min()),
            high=int(values.max()),
            mean=float(values.mean()),
            samples=len(values),
        )


@dataclass
class RankSummary:
    low: int
    high: int
    mean: float
    samples: int


@dataclass
class SmashTVSlot:
    """One occupied enemy slot, ready for display."""
    name: str
    count: int
    spawn_seconds: float
    total: int


@dataclass
class SmashTV:
    """Smash T.V. enemy table. No history is kept."""
    layout: SmashTVLayout = field(default_factory=SmashTVLayout)
    enemy_type: list[int] = field(default_factory=lambda: [0] * SMASH_TV_SLOTS)
    enemy_count: list[int] = field(default_factory=lambda: [0] * SMASH_TV_SLOTS)
    spawn_timer: list[int] = field(default_factory=lambda: [0] * SMASH_TV_SLOTS)
    active_enemies: int = 0
    read_failures: int = 0

    def decode(self, block: bytes, active: int) -> None:
        """
        Overwrite the table from a raw enemy block.

        The block stores slots in reverse display order and splits 16-bit
        fields into separate low and high byte rows.
        """
        if len(block) != SMASH_TV_BLOCK:
            raise ValueError(f"enemy block must be {SMASH_TV_BLOCK} bytes, got {len(block)}")

        def at(row: int, x: int) -> int:
            return block[SMASH_TV_SLOTS * row + x]

        self.active_enemies = active
        for x in range(SMASH_TV_SLOTS):
            y = SMASH_TV_SLOTS - 1 - x
            self.enemy_type[y] = at(_ROW_TYPE, x)
            self.enemy_count[y] = int.from_bytes(bytes((at(_ROW_COUNT_LO, x), at(_ROW_COUNT_HI, x))), "little")
            self.spawn_timer[y] = int.from_bytes(bytes((at(_ROW_TIMER_LO, x), at(_ROW_TIMER_HI, x))), "little")

    def update(self, process: RemoteProcess, base_address: int) -> None:
        try:
            block = process.read_bytes(base_address + self.layout.block_offset, SMASH_TV_BLOCK)
            active = process.read_u8(base_address + self.layout.active_offset)
        except MemoryReadError as exc:
            log.debug("Enemy table read failed: %s", exc)
            self.read_failures += 1
            block, active = bytes(SMASH_TV_BLOCK), 0
        self.decode(block, active)

    def rows(self) -> Iterator[SmashTVSlot]:
        """Occupied slots in display order."""
        for x in range(SMASH_TV_SLOTS):
            if self.enemy_type[x] == 0:
                continue
            yield SmashTVSlot(
                name=ENEMY_NAMES[self.enemy_type[x] & 0x0F],
                count=self.enemy_count[x],
                spawn_seconds=self.spawn_timer[x] / FRAMES_PER_SECOND,
                total=self.active_enemies + self.enemy_count[x],
            )
