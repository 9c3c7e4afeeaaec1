"""Attachment to one emulator process running one supported game."""

from __future__ import annotations

import logging

from ..games import EmulatorBuild, Game, RankLayout
from .process import RemoteProcess
from .reader import DEFAULT_HISTORY_LENGTH, Rank, SmashTV

log = logging.getLogger(__name__)


class AttachmentSession:
    """
    Owns the process handle, the resolved game and its dynamic base address.

    The base address is only meaningful for this session; a new discovery
    pass always resolves it again.
    """

    def __init__(
        self,
        process: RemoteProcess,
        build: EmulatorBuild,
        game: Game,
        base_address: int,
        *,
        history_length: int = DEFAULT_HISTORY_LENGTH,
    ):
        self.process = process
        self.build = build
        self.game = game
        self.base_address = base_address

        layout = game.info.data_type
        if isinstance(layout, RankLayout):
            self.state: Rank | SmashTV = Rank(game, layout, length=history_length)
        else:
            self.state = SmashTV(layout)

    @property
    def emulator_label(self) -> str:
        if self.build.version is None:
            return self.build.emulator.value
        return f"{self.build.emulator.value} {self.build.version}"

    @property
    def rank(self) -> Rank | None:
        return self.state if isinstance(self.state, Rank) else None

    @property
    def smash_tv(self) -> SmashTV | None:
        return self.state if isinstance(self.state, SmashTV) else None

    def is_running(self) -> bool:
        """True while the emulator process has not exited."""
        return self.process.is_running()

    def update(self) -> None:
        """Sample the game's state once."""
        self.state.update(self.process, self.base_address)

    def close(self) -> None:
        if self.process.is_open:
            log.info("Detached from %s (pid %d)", self.game.display_name, self.process.pid)
        self.process.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
