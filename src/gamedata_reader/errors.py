"""Exception hierarchy for process access and game discovery."""

from __future__ import annotations


class MemoryReaderError(RuntimeError):
    """Base exception for memory reader failures."""


class PlatformNotSupportedError(MemoryReaderError):
    """Raised when the Windows process API is unavailable."""


class ProcessAccessError(MemoryReaderError):
    """Raised when a process handle cannot be opened."""


class MemoryReadError(MemoryReaderError):
    """Raised when a memory read operation fails."""


class DiscoveryError(MemoryReaderError):
    """Abandons the current discovery attempt; retried on a later tick."""


class ModuleNameDecodeError(DiscoveryError):
    """Raised when a module base name is not valid text."""


class UnsupportedVersionError(DiscoveryError):
    """Raised when the emulator image size is not a known build."""


class UnsupportedTitleError(DiscoveryError):
    """Raised when a known build has no pointer chain for the loaded title."""


class TitleDecodeError(DiscoveryError):
    """Raised when the embedded game title is not valid text."""
