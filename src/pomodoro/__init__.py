from .clock import Clock, remaining_seconds, system_clock
from .commands import (
    Command,
    CommandParseError,
    GetState,
    JumpToPosition,
    PauseTimer,
    ResetTimer,
    SessionCompleted,
    SetTime,
    SetTimeAndReset,
    StartTimer,
    StateSync,
    command_to_payload,
    parse_command,
)
from .contracts import StoreError
from .cycle import advance, duration_for_kind, session_kind_for_position
from .service import TimerActionResult, TimerService
from .state import PersistedState, StateRecordError, TimerState

__all__ = [
    "Clock",
    "Command",
    "CommandParseError",
    "GetState",
    "JumpToPosition",
    "PauseTimer",
    "PersistedState",
    "ResetTimer",
    "SessionCompleted",
    "SetTime",
    "SetTimeAndReset",
    "StartTimer",
    "StateRecordError",
    "StateSync",
    "StoreError",
    "TimerActionResult",
    "TimerService",
    "TimerState",
    "advance",
    "command_to_payload",
    "duration_for_kind",
    "parse_command",
    "remaining_seconds",
    "session_kind_for_position",
    "system_clock",
]
