"""Authoritative timer state and its persisted projection."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .clock import remaining_seconds
from .constants import FIRST_CYCLE_POSITION, SESSION_KINDS, SESSION_WORK
from .cycle import duration_for_kind, is_valid_position


class StateRecordError(ValueError):
    """Raised when a persisted state record cannot be interpreted."""


@dataclass(frozen=True)
class PersistedState:
    """Serializable projection written to the store under ``pomodoroState``."""
    time_left: int
    is_running: bool
    last_save_time: Optional[int]
    session_type: str
    cycle_position: int
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    paused_at: Optional[int] = None
    paused_duration: float = 0.0

    def to_record(self) -> dict[str, Any]:
        return {
            "timeLeft": self.time_left,
            "isRunning": self.is_running,
            "lastSaveTime": self.last_save_time,
            "sessionType": self.session_type,
            "cyclePosition": self.cycle_position,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "pausedAt": self.paused_at,
            "pausedDuration": self.paused_duration,
        }

    @classmethod
    def from_record(cls, raw: Any) -> "PersistedState":
        """Validate a raw store record.

        Records written before the deadline-based format carry only
        ``timeLeft``/``isRunning``/``lastSaveTime``. A running legacy record
        gets its deadline reconstructed from ``lastSaveTime``; without one it
        restores as stopped.
        """
        if not isinstance(raw, Mapping):
            raise StateRecordError("state record must be a mapping")

        time_left = _as_int(raw.get("timeLeft"), "timeLeft")
        if time_left is None or time_left < 0:
            raise StateRecordError("timeLeft must be a non-negative number")

        is_running = raw.get("isRunning", False)
        if not isinstance(is_running, bool):
            raise StateRecordError("isRunning must be a boolean")

        session_type = raw.get("sessionType", SESSION_WORK)
        if session_type not in SESSION_KINDS:
            raise StateRecordError(f"unknown sessionType: {session_type!r}")

        cycle_position = raw.get("cyclePosition", FIRST_CYCLE_POSITION)
        if not is_valid_position(cycle_position):
            raise StateRecordError(f"cyclePosition out of range: {cycle_position!r}")

        last_save_time = _as_int(raw.get("lastSaveTime"), "lastSaveTime")
        end_time = _as_int(raw.get("endTime"), "endTime")
        if is_running and end_time is None:
            if last_save_time is None:
                is_running = False
            else:
                end_time = last_save_time + time_left * 1000

        paused_duration = raw.get("pausedDuration", 0.0)
        if paused_duration is None:
            paused_duration = 0.0
        if isinstance(paused_duration, bool) or not isinstance(
            paused_duration, (int, float)
        ):
            raise StateRecordError("pausedDuration must be a number")

        return cls(
            time_left=time_left,
            is_running=is_running,
            last_save_time=last_save_time,
            session_type=session_type,
            cycle_position=cycle_position,
            start_time=_as_int(raw.get("startTime"), "startTime"),
            end_time=end_time,
            paused_at=_as_int(raw.get("pausedAt"), "pausedAt"),
            paused_duration=float(paused_duration),
        )


@dataclass
class TimerState:
    """Mutable authoritative state owned by the timer service.

    While ``is_running`` the live remaining time is derived from ``end_time``;
    ``time_left`` is only a snapshot. While stopped, ``time_left`` is
    authoritative.
    """
    is_running: bool = False
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    paused_at: Optional[int] = None
    paused_duration: float = 0.0
    time_left: int = duration_for_kind(SESSION_WORK)
    session_type: str = SESSION_WORK
    cycle_position: int = FIRST_CYCLE_POSITION
    last_update_time: Optional[int] = None

    def remaining_at(self, now: int) -> int:
        if self.is_running and self.end_time is not None:
            return remaining_seconds(self.end_time, now)
        return self.time_left

    def copy(self) -> "TimerState":
        return dataclasses.replace(self)

    def to_persisted(self, save_time: int) -> PersistedState:
        return PersistedState(
            time_left=self.time_left,
            is_running=self.is_running,
            last_save_time=save_time,
            session_type=self.session_type,
            cycle_position=self.cycle_position,
            start_time=self.start_time,
            end_time=self.end_time,
            paused_at=self.paused_at,
            paused_duration=self.paused_duration,
        )

    @classmethod
    def from_persisted(cls, persisted: PersistedState) -> "TimerState":
        return cls(
            is_running=persisted.is_running,
            start_time=persisted.start_time,
            end_time=persisted.end_time if persisted.is_running else None,
            paused_at=persisted.paused_at,
            paused_duration=persisted.paused_duration,
            time_left=persisted.time_left,
            session_type=persisted.session_type,
            cycle_position=persisted.cycle_position,
            last_update_time=persisted.last_save_time,
        )


def _as_int(value: Any, field: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise StateRecordError(f"{field} must be a number")
    return int(value)
