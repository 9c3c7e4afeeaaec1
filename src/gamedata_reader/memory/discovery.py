"""
Find a supported game running inside a supported emulator.

One discovery pass runs the whole sequence:

    enumerate pids -> locate emulator -> identify build -> read title
    -> settle -> walk pointer chain -> AttachmentSession

Any stage may abandon the pass by raising a DiscoveryError (or returning
None); the opened handle is always released before ``find_game`` returns.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from ..debug.trace import Tracer
from ..errors import (
    DiscoveryError,
    MemoryReadError,
    ModuleNameDecodeError,
    ProcessAccessError,
    TitleDecodeError,
)
from ..games import EmulatorBuild, EmulatorProfile, Game, profile_for_executable
from .process import ProcessApi, RemoteProcess
from .session import AttachmentSession

log = logging.getLogger(__name__)

TITLE_WINDOW = 21
DEFAULT_SETTLE_DELAY = 2.0


def classify_process(process: RemoteProcess) -> EmulatorProfile | None:
    """Match the first module's base name against known emulator executables."""
    raw = process.module_base_name()
    try:
        name = raw.decode("ascii")
    except UnicodeDecodeError as exc:
        raise ModuleNameDecodeError(f"Module name of pid {process.pid} is not text: {raw!r}") from exc
    return profile_for_executable(name)


def locate_emulator(api: ProcessApi) -> tuple[RemoteProcess, EmulatorProfile] | None:
    """
    Open every accessible process and keep the last supported emulator.

    Processes that cannot be opened, whose module name cannot be read, or
    that are not emulators are skipped; their handles are closed at once.
    """
    found: tuple[RemoteProcess, EmulatorProfile] | None = None

    for pid in api.enum_process_ids():
        try:
            process = RemoteProcess.open(api, pid)
        except ProcessAccessError:
            continue

        try:
            profile = classify_process(process)
        except (ModuleNameDecodeError, MemoryReadError) as exc:
            log.debug("Skipping pid %d: %s", pid, exc)
            profile = None
        except BaseException:
            process.close()
            raise

        if profile is None:
            process.close()
            continue

        if found is not None:
            log.debug("Replacing %s match pid %d with pid %d", found[1].emulator.value, found[0].pid, pid)
            found[0].close()
        found = (process, profile)

    return found


def resolve_build(process: RemoteProcess, profile: EmulatorProfile) -> EmulatorBuild:
    """Pick the build tables from the module image size."""
    module = process.module_info()
    return profile.build_for(module.size)


def title_address(process: RemoteProcess, build: EmulatorBuild) -> int:
    if build.name_relative_to_module:
        return process.module_info().base_address + build.name_offset
    return build.name_offset


def read_title(process: RemoteProcess, build: EmulatorBuild) -> str:
    """Read the emulator's NUL-terminated game title."""
    window = process.read_bytes(title_address(process, build), TITLE_WINDOW) + b"\x00"
    terminator = window.find(b"\x00")
    try:
        return window[:terminator].decode("utf-8")
    except UnicodeDecodeError as exc:
        raise TitleDecodeError(f"Game title is not valid text: {window[:terminator]!r}") from exc


def resolve_title(process: RemoteProcess, profile: EmulatorProfile, build: EmulatorBuild) -> Game | None:
    """Return the running game, or None when the title is not supported."""
    title = read_title(process, build)
    game = profile.game_for_title(title)
    if game is None:
        log.debug("%s is running '%s', not a supported game", profile.emulator.value, title)
    return game


def resolve_base_address(
    process: RemoteProcess,
    build: EmulatorBuild,
    game: Game,
    *,
    settle_delay: float = DEFAULT_SETTLE_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """
    Walk the game's pointer chain to its live state.

    The emulator may still be loading the game when the title becomes
    readable, so chains that dereference wait ``settle_delay`` seconds
    first. A delay that was too short yields a wrong address.
    """
    chain = build.chain_for(game)
    if chain.dereferences and settle_delay > 0:
        log.debug("Waiting %.1fs for %s to settle", settle_delay, game.display_name)
        sleep(settle_delay)

    start = process.module_info().base_address if chain.relative_to_module else 0
    return process.follow_pointer_chain(start, chain)


def attach(
    process: RemoteProcess,
    profile: EmulatorProfile,
    *,
    history_length: int,
    settle_delay: float = DEFAULT_SETTLE_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> AttachmentSession | None:
    """Run identity, title and chain resolution on a located emulator."""
    build = resolve_build(process, profile)
    game = resolve_title(process, profile, build)
    if game is None:
        return None

    base = resolve_base_address(process, build, game, settle_delay=settle_delay, sleep=sleep)
    return AttachmentSession(process, build, game, base, history_length=history_length)


def find_game(
    api: ProcessApi,
    *,
    history_length: int,
    settle_delay: float = DEFAULT_SETTLE_DELAY,
    sleep: Callable[[float], None] = time.sleep,
    tracer: Tracer | None = None,
) -> AttachmentSession | None:
    """
    One full discovery pass.

    Returns a session on success. Every other outcome returns None with
    no handle left open. Abandoned attempts are recorded on ``tracer``.
    """
    located = locate_emulator(api)
    if located is None:
        return None
    process, profile = located

    try:
        session = attach(
            process,
            profile,
            history_length=history_length,
            settle_delay=settle_delay,
            sleep=sleep,
        )
    except (DiscoveryError, MemoryReadError) as exc:
        log.debug("Discovery abandoned for pid %d: %s", process.pid, exc)
        if tracer is not None:
            tracer.trace_error("discovery abandoned", {
                "pid": process.pid,
                "executable": profile.executable,
                "reason": type(exc).__name__,
                "message": str(exc),
            })
        session = None
    except BaseException:
        process.close()
        raise

    if session is None:
        process.close()
        return None

    log.info(
        "Attached to %s in %s (pid %d) base=0x%X",
        session.game.display_name,
        session.emulator_label,
        process.pid,
        session.base_address,
    )
    return session
