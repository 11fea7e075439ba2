"""Closed set of viewer commands and service broadcasts with their wire encoding."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Mapping, Optional, Union

from contracts.ui_protocol import (
    COMMAND_GET_STATE,
    COMMAND_JUMP_TO_POSITION,
    COMMAND_PAUSE_TIMER,
    COMMAND_RESET_TIMER,
    COMMAND_SET_TIME,
    COMMAND_SET_TIME_AND_RESET,
    COMMAND_START_TIMER,
    EVENT_SESSION_COMPLETED,
    EVENT_STATE_SYNC,
)

from .constants import SESSION_KINDS


class CommandParseError(ValueError):
    """Raised when a wire payload is not a well-formed command or event."""


@dataclass(frozen=True)
class StartTimer:
    type: ClassVar[str] = COMMAND_START_TIMER


@dataclass(frozen=True)
class PauseTimer:
    type: ClassVar[str] = COMMAND_PAUSE_TIMER


@dataclass(frozen=True)
class ResetTimer:
    type: ClassVar[str] = COMMAND_RESET_TIMER


@dataclass(frozen=True)
class SetTime:
    time_left: int
    type: ClassVar[str] = COMMAND_SET_TIME


@dataclass(frozen=True)
class SetTimeAndReset:
    time_left: int
    type: ClassVar[str] = COMMAND_SET_TIME_AND_RESET


@dataclass(frozen=True)
class GetState:
    type: ClassVar[str] = COMMAND_GET_STATE


@dataclass(frozen=True)
class JumpToPosition:
    position: int
    type: ClassVar[str] = COMMAND_JUMP_TO_POSITION


Command = Union[
    StartTimer,
    PauseTimer,
    ResetTimer,
    SetTime,
    SetTimeAndReset,
    GetState,
    JumpToPosition,
]

_FIELDLESS_COMMANDS: dict[str, Command] = {
    COMMAND_START_TIMER: StartTimer(),
    COMMAND_PAUSE_TIMER: PauseTimer(),
    COMMAND_RESET_TIMER: ResetTimer(),
    COMMAND_GET_STATE: GetState(),
}


def command_to_payload(command: Command) -> dict[str, Any]:
    payload: dict[str, Any] = {"type": command.type}
    if isinstance(command, (SetTime, SetTimeAndReset)):
        payload["timeLeft"] = command.time_left
    elif isinstance(command, JumpToPosition):
        payload["position"] = command.position
    return payload


def parse_command(raw: Any) -> Command:
    """Decode a decoded JSON object into a command variant."""
    if not isinstance(raw, Mapping):
        raise CommandParseError("command payload must be an object")

    command_type = raw.get("type")
    fieldless = _FIELDLESS_COMMANDS.get(command_type) if isinstance(command_type, str) else None
    if fieldless is not None:
        return fieldless
    if command_type == COMMAND_SET_TIME:
        return SetTime(time_left=_required_int(raw, "timeLeft"))
    if command_type == COMMAND_SET_TIME_AND_RESET:
        return SetTimeAndReset(time_left=_required_int(raw, "timeLeft"))
    if command_type == COMMAND_JUMP_TO_POSITION:
        return JumpToPosition(position=_required_int(raw, "position"))
    raise CommandParseError(f"unknown command type: {command_type!r}")


@dataclass(frozen=True)
class StateSync:
    """Periodic lightweight snapshot broadcast to listening viewers."""
    end_time: Optional[int]
    session_type: str
    cycle_position: int
    is_running: bool
    time_left: int
    type: ClassVar[str] = EVENT_STATE_SYNC

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "endTime": self.end_time,
            "sessionType": self.session_type,
            "cyclePosition": self.cycle_position,
            "isRunning": self.is_running,
            "timeLeft": self.time_left,
        }

    @classmethod
    def from_payload(cls, raw: Mapping[str, Any]) -> "StateSync":
        if raw.get("type") != EVENT_STATE_SYNC:
            raise CommandParseError("payload is not a STATE_SYNC event")
        session_type = raw.get("sessionType")
        if session_type not in SESSION_KINDS:
            raise CommandParseError(f"unknown sessionType: {session_type!r}")
        is_running = raw.get("isRunning")
        if not isinstance(is_running, bool):
            raise CommandParseError("isRunning must be a boolean")
        end_time = raw.get("endTime")
        return cls(
            end_time=None if end_time is None else _required_int(raw, "endTime"),
            session_type=session_type,
            cycle_position=_required_int(raw, "cyclePosition"),
            is_running=is_running,
            time_left=_required_int(raw, "timeLeft"),
        )


@dataclass(frozen=True)
class SessionCompleted:
    """Signal for the completion surface after a session ends."""
    completed_session_type: str
    session_type: str
    cycle_position: int
    type: ClassVar[str] = EVENT_SESSION_COMPLETED

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "completedSessionType": self.completed_session_type,
            "sessionType": self.session_type,
            "cyclePosition": self.cycle_position,
        }


Broadcast = Union[StateSync, SessionCompleted]


def _required_int(raw: Mapping[str, Any], field: str) -> int:
    value = raw.get(field)
    if isinstance(value, bool):
        raise CommandParseError(f"{field} must be an integer")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if not isinstance(value, int):
        raise CommandParseError(f"{field} must be an integer")
    return value
