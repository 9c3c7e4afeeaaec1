"""
Read-only process memory access and game discovery.

Process handles are opened through the Windows API, emulator builds are
identified from their module image size, and the game's live state is
found by walking a pointer chain from the module base.
"""

from .process import ModuleInfo, ProcessApi, RemoteProcess, WindowsProcessApi
from .reader import Rank, RankSummary, SmashTV, SmashTVSlot
from .session import AttachmentSession
from .discovery import find_game, locate_emulator, resolve_base_address, resolve_build, resolve_title

__all__ = [
    "ModuleInfo",
    "ProcessApi",
    "RemoteProcess",
    "WindowsProcessApi",
    "Rank",
    "RankSummary",
    "SmashTV",
    "SmashTVSlot",
    "AttachmentSession",
    "find_game",
    "locate_emulator",
    "resolve_base_address",
    "resolve_build",
    "resolve_title",
]
