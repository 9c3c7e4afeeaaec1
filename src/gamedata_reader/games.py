"""
Supported emulators, builds and games.

Everything the reader needs to know about a target lives in the tables at
the bottom of this module: which executable names are emulators, which image
sizes are known builds, where each build keeps the loaded game's title
string, and the pointer chain that leads from the module base to the game's
live state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping

from .errors import UnsupportedTitleError, UnsupportedVersionError


class Emulator(str, Enum):
    """Supported host emulators."""
    BSNES = "bsnes"
    MAME = "mame"


class Game(str, Enum):
    """Supported titles."""
    GRADIUS3_SNES = "gradius3_snes"
    PARODIUS_SNES = "parodius_snes"
    SMASH_TV_SNES = "smash_tv_snes"
    GHOULS_ARCADE = "ghouls_arcade"
    GRADIUS3_ARCADE = "gradius3_arcade"

    @property
    def info(self) -> GameInfo:
        return GAME_INFO[self]

    @property
    def display_name(self) -> str:
        return GAME_INFO[self].display_name

    @property
    def emulator(self) -> Emulator:
        return GAME_INFO[self].emulator

    def format_rank(self, raw: int) -> int:
        """Convert a raw rank byte to the displayed rank step."""
        return raw >> GAME_INFO[self].rank_shift


@dataclass(frozen=True)
class RankLayout:
    """Single-byte rank at ``base + offset`` with valid range ``[0, steps)``."""
    offset: int
    steps: int


@dataclass(frozen=True)
class SmashTVLayout:
    """Enemy wave table of Smash T.V."""
    block_offset: int = 0x1902
    active_offset: int = 0x18E4


DataType = RankLayout | SmashTVLayout


@dataclass(frozen=True)
class GameInfo:
    display_name: str
    emulator: Emulator
    data_type: DataType
    rank_shift: int = 0


@dataclass(frozen=True)
class PointerChain:
    """
    Walk from a stable address to a runtime-only one.

    Starting at the module base (or at 0 when ``relative_to_module`` is
    False), each offset is added and the pointer stored there is read.
    With ``deref_last=False`` the final offset is only added.
    """
    offsets: tuple[int, ...]
    relative_to_module: bool = True
    deref_last: bool = True

    @property
    def dereferences(self) -> int:
        if not self.offsets:
            return 0
        return len(self.offsets) - (0 if self.deref_last else 1)

    def __str__(self) -> str:
        return " -> ".join(f"0x{o:X}" for o in self.offsets)


@dataclass(frozen=True)
class EmulatorBuild:
    """Layout of one emulator build."""
    emulator: Emulator
    version: int | None
    name_offset: int
    name_relative_to_module: bool
    chains: Mapping[Game, PointerChain] = field(default_factory=dict)

    def chain_for(self, game: Game) -> PointerChain:
        chain = self.chains.get(game)
        if chain is None:
            raise UnsupportedTitleError(
                f"{self.emulator.value} build {self.version} has no pointer chain for {game.display_name}"
            )
        return chain


@dataclass(frozen=True)
class EmulatorProfile:
    emulator: Emulator
    executable: str
    builds: Mapping[int | None, EmulatorBuild]
    titles: Mapping[str, Game]
    # None means a single supported layout regardless of image size
    image_sizes: Mapping[int, int] | None = None

    def version_for(self, image_size: int) -> int | None:
        """
        Map a module image size to a build version.

        Raises UnsupportedVersionError for sizes missing from the table.
        """
        if self.image_sizes is None:
            return None
        version = self.image_sizes.get(image_size)
        if version is None:
            raise UnsupportedVersionError(
                f"Unsupported {self.emulator.value} build (image size 0x{image_size:X})"
            )
        return version

    def build_for(self, image_size: int) -> EmulatorBuild:
        return self.builds[self.version_for(image_size)]

    def game_for_title(self, title: str) -> Game | None:
        return self.titles.get(title)


# ─── Tables ────────────────────────────────────────────────────

GAME_INFO: dict[Game, GameInfo] = {
    Game.GRADIUS3_SNES: GameInfo("Gradius III (SNES)", Emulator.BSNES, RankLayout(0x0084, 16)),
    Game.PARODIUS_SNES: GameInfo("Parodius (SNES)", Emulator.BSNES, RankLayout(0x0088, 32)),
    Game.SMASH_TV_SNES: GameInfo("Smash T.V. (SNES)", Emulator.BSNES, SmashTVLayout()),
    Game.GHOULS_ARCADE: GameInfo(
        "Ghouls 'n Ghosts (Arcade)", Emulator.MAME, RankLayout(0x092A, 16), rank_shift=3
    ),
    Game.GRADIUS3_ARCADE: GameInfo("Gradius III (Arcade)", Emulator.MAME, RankLayout(0x39C0, 16)),
}

# bsnes keeps both the title and the WRAM mirror at fixed addresses
BSNES_NAME_ADDRESS = 0xB151E8
BSNES_STATE_ADDRESS = 0xB16D7C

_BSNES_STATE = PointerChain((BSNES_STATE_ADDRESS,), relative_to_module=False, deref_last=False)

MAME_IMAGE_SIZES: dict[int, int] = {
    0x129FB000: 242,
    0x12A82000: 243,
}

MAME_NAME_OFFSETS: dict[int, int] = {
    242: 0x11EC4450,
    243: 0x11F3C970,
}

MAME_CHAINS: dict[tuple[int, Game], PointerChain] = {
    (242, Game.GHOULS_ARCADE): PointerChain(
        (0x11B72B48, 0x08, 0x10, 0x28, 0x38, 0x60, 0x18, 0x80, 0x18)
    ),
    (242, Game.GRADIUS3_ARCADE): PointerChain((0x11B72B48, 0x38, 0x150, 0x8, 0x10)),
    (243, Game.GHOULS_ARCADE): PointerChain(
        (0x11BF4390, 0x8, 0x10, 0x38, 0x40, 0x80, 0x18, 0x80, 0x18)
    ),
    (243, Game.GRADIUS3_ARCADE): PointerChain((0x11BF4390, 0x28, 0x150, 0x8, 0x10)),
}

BSNES_TITLES: dict[str, Game] = {
    "gradius 3": Game.GRADIUS3_SNES,
    "GRADIUS 3": Game.GRADIUS3_SNES,
    "PARODIUS": Game.PARODIUS_SNES,
    "SMASH T.V.": Game.SMASH_TV_SNES,
}

MAME_TITLES: dict[str, Game] = {
    "gradius3": Game.GRADIUS3_ARCADE,
    "gradius3a": Game.GRADIUS3_ARCADE,
    "gradius3j": Game.GRADIUS3_ARCADE,
    "gradius3js": Game.GRADIUS3_ARCADE,
    "ghouls": Game.GHOULS_ARCADE,
    "ghoulsu": Game.GHOULS_ARCADE,
    "daimakai": Game.GHOULS_ARCADE,
    "daimakair": Game.GHOULS_ARCADE,
}


def _mame_builds() -> dict[int | None, EmulatorBuild]:
    builds: dict[int | None, EmulatorBuild] = {}
    for version, name_offset in MAME_NAME_OFFSETS.items():
        builds[version] = EmulatorBuild(
            emulator=Emulator.MAME,
            version=version,
            name_offset=name_offset,
            name_relative_to_module=True,
            chains={game: chain for (v, game), chain in MAME_CHAINS.items() if v == version},
        )
    return builds


PROFILES: dict[Emulator, EmulatorProfile] = {
    Emulator.BSNES: EmulatorProfile(
        emulator=Emulator.BSNES,
        executable="bsnes.exe",
        builds={
            None: EmulatorBuild(
                emulator=Emulator.BSNES,
                version=None,
                name_offset=BSNES_NAME_ADDRESS,
                name_relative_to_module=False,
                chains={game: _BSNES_STATE for game in BSNES_TITLES.values()},
            ),
        },
        titles=BSNES_TITLES,
    ),
    Emulator.MAME: EmulatorProfile(
        emulator=Emulator.MAME,
        executable="mame.exe",
        builds=_mame_builds(),
        titles=MAME_TITLES,
        image_sizes=MAME_IMAGE_SIZES,
    ),
}

EXECUTABLES: dict[str, Emulator] = {p.executable: e for e, p in PROFILES.items()}


def profile_for_executable(name: str) -> EmulatorProfile | None:
    """Case-sensitive match of a module base name against known emulators."""
    emulator = EXECUTABLES.get(name)
    return PROFILES[emulator] if emulator is not None else None
