"""Fixed eight-position work/break cycle policy."""

from __future__ import annotations

from .constants import (
    CYCLE_LENGTH,
    LONG_BREAK_POSITION,
    SESSION_DURATIONS_SECONDS,
    SESSION_LONG_BREAK,
    SESSION_SHORT_BREAK,
    SESSION_WORK,
)


def session_kind_for_position(position: int) -> str:
    """Map a 1-indexed cycle position to its session kind."""
    if position % 2 == 1:
        return SESSION_WORK
    if position == LONG_BREAK_POSITION:
        return SESSION_LONG_BREAK
    return SESSION_SHORT_BREAK


def duration_for_kind(kind: str) -> int:
    """Return the fixed duration in seconds for a session kind."""
    return SESSION_DURATIONS_SECONDS[kind]


def advance(position: int) -> int:
    """Return the next cycle position, wrapping 8 back to 1."""
    return (position % CYCLE_LENGTH) + 1


def is_valid_position(position: object) -> bool:
    return (
        isinstance(position, int)
        and not isinstance(position, bool)
        and 1 <= position <= CYCLE_LENGTH
    )
