"""Wire-level type tags, store key, and alarm names shared by service and viewers."""

from __future__ import annotations

# Persistence store key holding the authoritative timer projection
STORE_KEY = "pomodoroState"

# Alarm names
ALARM_TIMER = "pomodoroTimer"
ALARM_SYNC = "pomodoroSync"

# Viewer -> service commands
COMMAND_START_TIMER = "START_TIMER"
COMMAND_PAUSE_TIMER = "PAUSE_TIMER"
COMMAND_RESET_TIMER = "RESET_TIMER"
COMMAND_SET_TIME = "SET_TIME"
COMMAND_SET_TIME_AND_RESET = "SET_TIME_AND_RESET"
COMMAND_GET_STATE = "GET_STATE"
COMMAND_JUMP_TO_POSITION = "JUMP_TO_POSITION"

COMMAND_TYPES: frozenset[str] = frozenset(
    {
        COMMAND_START_TIMER,
        COMMAND_PAUSE_TIMER,
        COMMAND_RESET_TIMER,
        COMMAND_SET_TIME,
        COMMAND_SET_TIME_AND_RESET,
        COMMAND_GET_STATE,
        COMMAND_JUMP_TO_POSITION,
    }
)

# Service -> viewer events
EVENT_STATE_SYNC = "STATE_SYNC"
EVENT_STORAGE_CHANGED = "STORAGE_CHANGED"
EVENT_SESSION_COMPLETED = "SESSION_COMPLETED"

STICKY_EVENT_TYPES: frozenset[str] = frozenset(
    {EVENT_STORAGE_CHANGED, EVENT_SESSION_COMPLETED}
)

# State first, so a replayed completion prompt is shown over a painted display
STICKY_EVENT_ORDER: tuple[str, ...] = (EVENT_STORAGE_CHANGED, EVENT_SESSION_COMPLETED)
