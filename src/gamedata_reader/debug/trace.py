"""
Event tracing and logging setup.

A ``Tracer`` keeps a bounded record of what a watch session saw: attach and
detach transitions, every rank or enemy table sample, and the failures that
were only logged at the time. ``watch --save-trace`` writes it out as JSON.
"""

from __future__ import annotations

import json
import logging
import time
from collections import Counter, deque
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class EventType(Enum):
    ATTACHED = "attached"
    DETACHED = "detached"
    RANK_SAMPLE = "rank_sample"
    RANK_REJECTED = "rank_rejected"
    ENEMY_TABLE = "enemy_table"
    ERROR = "error"


@dataclass
class TraceEvent:
    timestamp: float
    event_type: EventType
    data: dict[str, Any]
    poll_id: int = 0

    def to_dict(self) -> dict:
        return {
            "t": round(self.timestamp, 4),
            "poll": self.poll_id,
            "type": self.event_type.value,
            **self.data,
        }


@dataclass
class Tracer:
    """
    Bounded event recorder for one watch session.

    Once ``max_events`` is reached the oldest events are dropped, so a
    long-running watch keeps the most recent window only.
    """
    enabled: bool = True
    max_events: int = 50000

    _events: deque[TraceEvent] = field(init=False)
    _start_time: float = field(default=0.0, init=False)
    _poll_id: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        self._events = deque(maxlen=self.max_events)

    def start(self) -> None:
        self._start_time = time.perf_counter()
        self._events.clear()
        self._poll_id = 0

    def set_poll(self, poll_id: int) -> None:
        """Tag subsequent events with the controller's poll number."""
        self._poll_id = poll_id

    def trace(self, event_type: EventType, data: dict[str, Any] | None = None) -> None:
        if not self.enabled:
            return
        self._events.append(TraceEvent(
            timestamp=time.perf_counter() - self._start_time,
            event_type=event_type,
            data=data or {},
            poll_id=self._poll_id,
        ))

    def trace_attach(self, game: str, emulator: str, pid: int, base_address: int) -> None:
        self.trace(EventType.ATTACHED, {
            "game": game,
            "emulator": emulator,
            "pid": pid,
            "base_address": f"0x{base_address:X}",
        })

    def trace_detach(self, game: str, pid: int) -> None:
        self.trace(EventType.DETACHED, {"game": game, "pid": pid})

    def trace_rank(self, value: float, rejected: bool = False) -> None:
        event_type = EventType.RANK_REJECTED if rejected else EventType.RANK_SAMPLE
        self.trace(event_type, {"value": value})

    def trace_enemies(self, enemy_type: list[int], active: int) -> None:
        self.trace(EventType.ENEMY_TABLE, {"enemy_type": list(enemy_type), "active": active})

    def trace_error(self, error: str, details: dict[str, Any] | None = None) -> None:
        """Record a failure that the reader recovered from."""
        self.trace(EventType.ERROR, {"error": error, "details": details or {}})

    def get_events(self, event_type: EventType | None = None) -> list[TraceEvent]:
        if event_type is None:
            return list(self._events)
        return [e for e in self._events if e.event_type is event_type]

    def get_summary(self) -> dict[str, Any]:
        """Event counts by type, plus how many polls and seconds they span."""
        counts = Counter(e.event_type.value for e in self._events)
        return {
            "total_events": len(self._events),
            "polls": self._events[-1].poll_id if self._events else 0,
            "duration": self._events[-1].timestamp if self._events else 0.0,
            "event_counts": dict(counts),
        }

    def save(self, path: str | Path) -> None:
        """Write the summary and every event as JSON."""
        data = {
            "summary": self.get_summary(),
            "events": [e.to_dict() for e in self._events],
        }
        with Path(path).open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)


def setup_logging(level: int = logging.INFO, log_file: str | Path | None = None) -> None:
    """
    Send ``gamedata_reader`` logs to the console and optionally a file.

    Calling it again replaces the handlers installed by the previous call.
    """
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    logger = logging.getLogger("gamedata_reader")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
