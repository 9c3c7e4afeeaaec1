"""
Plain-text rendering of attachment sessions for the console.

Kept apart from the CLI so the output can be checked without a terminal.
"""

from __future__ import annotations

from .memory.reader import Rank, SmashTV
from .memory.session import AttachmentSession

SMASH_TV_HEADER = "Wave         | Count | Spawn timer | Total"


def format_session(session: AttachmentSession) -> str:
    """One-line description of what the reader is attached to."""
    return (
        f"{session.game.display_name} in {session.emulator_label} "
        f"(pid {session.process.pid}, base 0x{session.base_address:X})"
    )


def format_rank(rank: Rank) -> str:
    """Latest rank as a number and a bar with one cell per step."""
    value = int(rank.latest)
    bar = "#" * (value + 1) + "." * (rank.steps - value - 1)
    return f"rank {value:>2}/{rank.steps - 1} [{bar}]"


def format_rank_history(rank: Rank) -> str:
    summary = rank.summary()
    return f"low {summary.low}  high {summary.high}  mean {summary.mean:.2f}  over {summary.samples}"


def format_smash_tv(table: SmashTV) -> str:
    lines: list[str] = [SMASH_TV_HEADER, "-" * (len(SMASH_TV_HEADER) + 2)]
    rows = [
        f"{row.name:12} | {row.count:>5} | {row.spawn_seconds:>11.1f} | {row.total}"
        for row in table.rows()
    ]
    lines.extend(rows or ["(no waves queued)"])
    return "\n".join(lines)


def format_state(session: AttachmentSession) -> str:
    """Whatever the session's game exposes, ready to print."""
    if session.rank is not None:
        return f"{format_rank(session.rank)}  {format_rank_history(session.rank)}"
    if session.smash_tv is not None:
        return format_smash_tv(session.smash_tv)
    return ""
