"""
Poll/attach state machine.

The host drives ``PollController.tick()`` from its own loop. Every
``timer_ticks`` ticks the controller performs one step: a discovery pass
while searching, or a liveness check plus one state sample while attached.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable

from ..debug.trace import Tracer
from ..memory.discovery import DEFAULT_SETTLE_DELAY, find_game
from ..memory.process import ProcessApi
from ..memory.reader import DEFAULT_HISTORY_LENGTH, clamp_history_length
from ..memory.session import AttachmentSession

log = logging.getLogger(__name__)

MIN_TIMER_TICKS = 5
MAX_TIMER_TICKS = 125
DEFAULT_TIMER_TICKS = 100
REFERENCE_TICKS_PER_SECOND = 50.0


class PollState(str, Enum):
    SEARCHING = "searching"
    ATTACHED = "attached"


def poll_once(
    api: ProcessApi,
    session: AttachmentSession | None,
    *,
    history_length: int = DEFAULT_HISTORY_LENGTH,
    settle_delay: float = DEFAULT_SETTLE_DELAY,
    sleep: Callable[[float], None] = time.sleep,
    tracer: Tracer | None = None,
) -> AttachmentSession | None:
    """
    Run one state machine step and return the session to keep.

    Searching -> Attached on a successful discovery pass.
    Attached -> Searching once the emulator has exited; the handle is closed.
    Attached -> Attached otherwise, after sampling the game state once.
    """
    if session is None:
        session = find_game(
            api,
            history_length=history_length,
            settle_delay=settle_delay,
            sleep=sleep,
            tracer=tracer,
        )
        if session is not None and tracer is not None:
            tracer.trace_attach(
                session.game.display_name,
                session.emulator_label,
                session.process.pid,
                session.base_address,
            )
        return session

    if not session.is_running():
        if tracer is not None:
            tracer.trace_detach(session.game.display_name, session.process.pid)
        session.close()
        return None

    rank = session.rank
    table = session.smash_tv
    rejected_before = rank.rejected if rank is not None else 0
    failures_before = _read_failures(session)
    session.update()

    if tracer is not None:
        if _read_failures(session) != failures_before:
            tracer.trace_error("state read failed", {
                "game": session.game.display_name,
                "base_address": f"0x{session.base_address:X}",
            })
        if rank is not None:
            tracer.trace_rank(rank.latest, rejected=rank.rejected != rejected_before)
        elif table is not None:
            tracer.trace_enemies(table.enemy_type, table.active_enemies)
    return session


def _read_failures(session: AttachmentSession) -> int:
    state = session.rank if session.rank is not None else session.smash_tv
    return state.read_failures if state is not None else 0


def clamp_timer_ticks(ticks: int) -> int:
    return max(MIN_TIMER_TICKS, min(MAX_TIMER_TICKS, int(ticks)))


class PollController:
    """
    Owns the optional attachment session and the update countdown.

    Usage:
        controller = PollController(WindowsProcessApi())
        while running:
            controller.tick()
            show(controller.session)
        controller.close()
    """

    def __init__(
        self,
        api: ProcessApi,
        *,
        timer_ticks: int = DEFAULT_TIMER_TICKS,
        history_length: int = DEFAULT_HISTORY_LENGTH,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
        tracer: Tracer | None = None,
    ):
        self.api = api
        self.timer_ticks = clamp_timer_ticks(timer_ticks)
        self.history_length = clamp_history_length(history_length)
        self.settle_delay = settle_delay
        self.tracer = tracer
        self._sleep = sleep
        self._update_timer = 0
        self._session: AttachmentSession | None = None
        self._stats = {
            "ticks": 0,
            "polls": 0,
            "attachments": 0,
            "detachments": 0,
            "start_time": time.perf_counter(),
        }

    @property
    def session(self) -> AttachmentSession | None:
        return self._session

    @property
    def state(self) -> PollState:
        return PollState.SEARCHING if self._session is None else PollState.ATTACHED

    @property
    def updates_per_second(self) -> float:
        """Poll rate at the reference 20 ms tick."""
        return REFERENCE_TICKS_PER_SECOND / self.timer_ticks

    def set_timer_ticks(self, ticks: int) -> None:
        self.timer_ticks = clamp_timer_ticks(ticks)

    def tick(self) -> bool:
        """
        Advance the countdown by one tick.

        Returns True when a poll step ran on this tick.
        """
        self._stats["ticks"] += 1
        self._update_timer -= 1
        if self._update_timer >= 0:
            return False
        self._update_timer = self.timer_ticks
        self.poll()
        return True

    def poll(self) -> None:
        """Run one state machine step immediately."""
        self._stats["polls"] += 1
        if self.tracer is not None:
            self.tracer.set_poll(self._stats["polls"])

        before = self.state
        self._session = poll_once(
            self.api,
            self._session,
            history_length=self.history_length,
            settle_delay=self.settle_delay,
            sleep=self._sleep,
            tracer=self.tracer,
        )

        if before is PollState.SEARCHING and self.state is PollState.ATTACHED:
            self._stats["attachments"] += 1
        elif before is PollState.ATTACHED and self.state is PollState.SEARCHING:
            self._stats["detachments"] += 1

    def resize_history(self, length: int) -> None:
        """
        Set the rank history length for the current and future sessions.

        Lengths outside 30..500 are clamped, as the config does.
        """
        self.history_length = clamp_history_length(length)
        if self._session is not None and self._session.rank is not None:
            self._session.rank.resize(self.history_length)

    def clear_history(self) -> None:
        if self._session is not None and self._session.rank is not None:
            self._session.rank.clear()

    def close(self) -> None:
        """Release the current session, if any."""
        if self._session is not None:
            self._session.close()
            self._session = None

    @property
    def stats(self) -> dict:
        stats = dict(self._stats)
        stats["runtime_seconds"] = time.perf_counter() - stats["start_time"]
        stats["state"] = self.state.value
        return stats
