"""Session, cycle, timing, and reason constants used by the timer engine."""

from __future__ import annotations

SESSION_WORK = "work"
SESSION_SHORT_BREAK = "shortBreak"
SESSION_LONG_BREAK = "longBreak"

SESSION_KINDS: frozenset[str] = frozenset(
    {SESSION_WORK, SESSION_SHORT_BREAK, SESSION_LONG_BREAK}
)

SESSION_DURATIONS_SECONDS: dict[str, int] = {
    SESSION_WORK: 25 * 60,
    SESSION_SHORT_BREAK: 5 * 60,
    SESSION_LONG_BREAK: 15 * 60,
}

CYCLE_LENGTH = 8
FIRST_CYCLE_POSITION = 1
LONG_BREAK_POSITION = 8

DEFAULT_SYNC_INTERVAL_SECONDS = 30
DEFAULT_DRIFT_THRESHOLD_MS = 2000
DEFAULT_REFRESH_INTERVAL_SECONDS = 1.0

# Viewer presets in seconds: 25, 15, and 5 minutes plus a one-second test run
PRESET_SECONDS: tuple[int, ...] = (25 * 60, 15 * 60, 5 * 60, 1)

ACTION_START = "start"
ACTION_PAUSE = "pause"
ACTION_RESET = "reset"
ACTION_SET_TIME = "set_time"
ACTION_SET_TIME_AND_RESET = "set_time_and_reset"
ACTION_GET_STATE = "get_state"
ACTION_JUMP = "jump_to_position"
ACTION_COMPLETED = "completed"
ACTION_RESTORE = "restore"

REASON_STARTED = "started"
REASON_PAUSED = "paused"
REASON_RESET = "reset"
REASON_TIME_SET = "time_set"
REASON_RESENT = "resent"
REASON_JUMPED = "jumped"
REASON_COMPLETED = "completed"
REASON_RESTORED = "restored"
REASON_NOTHING_PERSISTED = "nothing_persisted"
REASON_ALREADY_RUNNING = "already_running"
REASON_NOT_RUNNING = "not_running"
REASON_NOT_DUE = "not_due"
REASON_INVALID_SECONDS = "invalid_seconds"
REASON_INVALID_POSITION = "invalid_position"
REASON_UNSUPPORTED_COMMAND = "unsupported_command"
