"""
Live game data reader for bsnes and MAME.

Attaches read-only to a running emulator, recognises the loaded game from
its title string and samples rank history or enemy tables from memory.
"""

from .config import ReaderConfig
from .errors import (
    DiscoveryError,
    MemoryReadError,
    MemoryReaderError,
    PlatformNotSupportedError,
    ProcessAccessError,
)
from .games import Emulator, Game, PointerChain, PROFILES
from .memory import AttachmentSession, Rank, RemoteProcess, SmashTV, WindowsProcessApi, find_game
from .runtime.control import PollController, PollState, poll_once

__version__ = "0.3.0"

__all__ = [
    "ReaderConfig",
    "DiscoveryError",
    "MemoryReadError",
    "MemoryReaderError",
    "PlatformNotSupportedError",
    "ProcessAccessError",
    "Emulator",
    "Game",
    "PointerChain",
    "PROFILES",
    "AttachmentSession",
    "Rank",
    "RemoteProcess",
    "SmashTV",
    "WindowsProcessApi",
    "find_game",
    "PollController",
    "PollState",
    "poll_once",
]
