"""Text builders for the viewer's countdown display."""

from __future__ import annotations

from pomodoro.constants import (
    CYCLE_LENGTH,
    SESSION_LONG_BREAK,
    SESSION_SHORT_BREAK,
    SESSION_WORK,
)

_SESSION_LABELS = {
    SESSION_WORK: "Work",
    SESSION_SHORT_BREAK: "Short break",
    SESSION_LONG_BREAK: "Long break",
}


def format_time_left(seconds: int) -> str:
    """Format a duration in seconds as `MM:SS`."""
    minutes, remainder = divmod(max(0, int(seconds)), 60)
    return f"{minutes:02d}:{remainder:02d}"


def session_label(session_type: str) -> str:
    return _SESSION_LABELS.get(session_type, session_type)


def status_line(
    time_left: int,
    *,
    session_type: str,
    cycle_position: int,
    is_running: bool,
) -> str:
    state = "running" if is_running else "paused"
    return (
        f"{format_time_left(time_left)}  {session_label(session_type)} "
        f"[{cycle_position}/{CYCLE_LENGTH}] {state}"
    )


def completion_text(completed_session_type: str, next_session_type: str) -> str:
    return (
        f"{session_label(completed_session_type)} finished. "
        f"Next: {session_label(next_session_type)}."
    )
