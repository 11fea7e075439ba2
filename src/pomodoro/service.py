"""Authoritative deadline-based timer state machine."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from contracts.ui_protocol import ALARM_SYNC, ALARM_TIMER, STORE_KEY

from .clock import Clock, remaining_seconds, system_clock
from .commands import (
    Broadcast,
    Command,
    GetState,
    JumpToPosition,
    PauseTimer,
    ResetTimer,
    SessionCompleted,
    SetTime,
    SetTimeAndReset,
    StartTimer,
    StateSync,
)
from .constants import (
    ACTION_COMPLETED,
    ACTION_GET_STATE,
    ACTION_JUMP,
    ACTION_PAUSE,
    ACTION_RESET,
    ACTION_RESTORE,
    ACTION_SET_TIME,
    ACTION_SET_TIME_AND_RESET,
    ACTION_START,
    DEFAULT_SYNC_INTERVAL_SECONDS,
    REASON_ALREADY_RUNNING,
    REASON_COMPLETED,
    REASON_INVALID_POSITION,
    REASON_INVALID_SECONDS,
    REASON_JUMPED,
    REASON_NOT_DUE,
    REASON_NOT_RUNNING,
    REASON_NOTHING_PERSISTED,
    REASON_PAUSED,
    REASON_RESENT,
    REASON_RESET,
    REASON_RESTORED,
    REASON_STARTED,
    REASON_TIME_SET,
    REASON_UNSUPPORTED_COMMAND,
)
from .contracts import (
    AlarmFacility,
    CompletionNotifier,
    KeyValueStore,
    MessageBus,
    StoreError,
)
from .cycle import advance, duration_for_kind, is_valid_position, session_kind_for_position
from .state import PersistedState, StateRecordError, TimerState


@dataclass(frozen=True)
class TimerActionResult:
    """Result envelope returned after applying a service operation."""
    action: str
    accepted: bool
    reason: str
    state: TimerState


class TimerService:
    """Owns the authoritative timer state.

    Remaining time is always derived from the absolute ``end_time`` fixed at
    ``start()``, so a process that is destroyed and recreated recovers the
    countdown from the store alone. Not thread-safe: the service runtime
    delivers commands, alarms, and sync ticks on a single thread.
    """

    def __init__(
        self,
        *,
        store: KeyValueStore,
        alarms: AlarmFacility,
        bus: Optional[MessageBus] = None,
        notifier: Optional[CompletionNotifier] = None,
        clock: Clock = system_clock,
        sync_interval_seconds: int = DEFAULT_SYNC_INTERVAL_SECONDS,
        logger: Optional[logging.Logger] = None,
    ):
        if sync_interval_seconds <= 0:
            raise ValueError("sync_interval_seconds must be greater than zero")

        self._store = store
        self._alarms = alarms
        self._bus = bus
        self._notifier = notifier
        self._clock = clock
        self._sync_interval_ms = int(sync_interval_seconds * 1000)
        self._logger = logger or logging.getLogger("pomodoro")
        self._state = TimerState()

    @property
    def state(self) -> TimerState:
        return self._state.copy()

    def remaining(self) -> int:
        return self._state.remaining_at(self._clock())

    # Lifecycle

    def initialize(self) -> TimerActionResult:
        """Restore persisted state, persist the result, and arm the sync alarm."""
        result = self.restore()
        if result.action != ACTION_COMPLETED:
            self._commit(self._clock())
        self._alarms.schedule_every(ALARM_SYNC, self._sync_interval_ms)
        return result

    def restore(self) -> TimerActionResult:
        raw = self._read_store()
        if raw is None:
            self._logger.info("No persisted timer state; using defaults")
            return self._result(ACTION_RESTORE, False, REASON_NOTHING_PERSISTED)

        try:
            persisted = PersistedState.from_record(raw)
        except StateRecordError as error:
            self._logger.warning("Ignoring invalid persisted timer state: %s", error)
            return self._result(ACTION_RESTORE, False, REASON_NOTHING_PERSISTED)

        self._state = TimerState.from_persisted(persisted)
        if not self._state.is_running or self._state.end_time is None:
            self._logger.info(
                "Timer restored stopped: session=%s position=%s remaining=%ss",
                self._state.session_type,
                self._state.cycle_position,
                self._state.time_left,
            )
            return self._result(ACTION_RESTORE, True, REASON_RESTORED)

        now = self._clock()
        remaining = remaining_seconds(self._state.end_time, now)
        if remaining == 0:
            self._logger.info("Deadline passed while suspended; completing session")
            return self.on_completion_alarm()

        self._state.time_left = remaining
        self._alarms.schedule_at(ALARM_TIMER, self._state.end_time)
        self._logger.info(
            "Timer restored running: session=%s remaining=%ss",
            self._state.session_type,
            remaining,
        )
        return self._result(ACTION_RESTORE, True, REASON_RESTORED)

    # Commands

    def handle_command(self, command: Command) -> TimerActionResult:
        if isinstance(command, StartTimer):
            return self.start()
        if isinstance(command, PauseTimer):
            return self.pause()
        if isinstance(command, ResetTimer):
            return self.reset()
        if isinstance(command, SetTime):
            return self.set_time(command.time_left)
        if isinstance(command, SetTimeAndReset):
            return self.set_time_and_reset(command.time_left)
        if isinstance(command, GetState):
            return self.get_state()
        if isinstance(command, JumpToPosition):
            return self.jump_to_position(command.position)
        self._logger.warning("Unsupported command: %r", command)
        return self._result(type(command).__name__, False, REASON_UNSUPPORTED_COMMAND)

    def start(self) -> TimerActionResult:
        if self._state.is_running:
            return self._result(ACTION_START, False, REASON_ALREADY_RUNNING)

        now = self._clock()
        state = self._state
        if state.paused_at is not None:
            state.paused_duration += max(0, now - state.paused_at) / 1000
        state.start_time = now
        state.end_time = now + state.time_left * 1000
        state.paused_at = None
        state.is_running = True

        self._alarms.cancel(ALARM_TIMER)
        self._alarms.schedule_at(ALARM_TIMER, state.end_time)
        self._logger.info(
            "Timer started: session=%s position=%s duration=%ss",
            state.session_type,
            state.cycle_position,
            state.time_left,
        )
        self._commit(now)
        return self._result(ACTION_START, True, REASON_STARTED)

    def pause(self) -> TimerActionResult:
        if not self._state.is_running:
            return self._result(ACTION_PAUSE, False, REASON_NOT_RUNNING)

        now = self._clock()
        state = self._state
        remaining = state.remaining_at(now)
        state.is_running = False
        state.paused_at = now
        state.time_left = remaining
        state.end_time = None

        self._alarms.cancel(ALARM_TIMER)
        self._logger.info(
            "Timer paused: session=%s remaining=%ss",
            state.session_type,
            remaining,
        )
        self._commit(now)
        return self._result(ACTION_PAUSE, True, REASON_PAUSED)

    def reset(self) -> TimerActionResult:
        self._reset_state()
        self._logger.info("Timer reset")
        self._commit(self._clock())
        return self._result(ACTION_RESET, True, REASON_RESET)

    def set_time(self, seconds: int) -> TimerActionResult:
        if self._state.is_running:
            return self._result(ACTION_SET_TIME, False, REASON_ALREADY_RUNNING)
        if not _is_positive_int(seconds):
            self._logger.warning("Rejected time value: %r", seconds)
            return self._result(ACTION_SET_TIME, False, REASON_INVALID_SECONDS)

        self._state.time_left = seconds
        self._logger.info("Timer set: remaining=%ss", seconds)
        self._commit(self._clock())
        return self._result(ACTION_SET_TIME, True, REASON_TIME_SET)

    def set_time_and_reset(self, seconds: int) -> TimerActionResult:
        if not _is_positive_int(seconds):
            self._logger.warning("Rejected time value: %r", seconds)
            return self._result(ACTION_SET_TIME_AND_RESET, False, REASON_INVALID_SECONDS)

        self._reset_state()
        self._state.time_left = seconds
        self._logger.info("Timer reset with remaining=%ss", seconds)
        self._commit(self._clock())
        return self._result(ACTION_SET_TIME_AND_RESET, True, REASON_TIME_SET)

    def get_state(self) -> TimerActionResult:
        self._commit(self._clock())
        return self._result(ACTION_GET_STATE, True, REASON_RESENT)

    def jump_to_position(self, position: int) -> TimerActionResult:
        """Stop any countdown and make ``position`` the fresh, idle session."""
        if not is_valid_position(position):
            self._logger.warning("Rejected cycle position: %r", position)
            return self._result(ACTION_JUMP, False, REASON_INVALID_POSITION)

        self._alarms.cancel(ALARM_TIMER)
        state = self._state
        state.is_running = False
        state.start_time = None
        state.end_time = None
        state.paused_at = None
        state.paused_duration = 0.0
        state.cycle_position = position
        state.session_type = session_kind_for_position(position)
        state.time_left = duration_for_kind(state.session_type)
        self._logger.info(
            "Jumped to position=%s session=%s",
            position,
            state.session_type,
        )
        self._commit(self._clock())
        return self._result(ACTION_JUMP, True, REASON_JUMPED)

    # Alarms

    def handle_alarm(self, name: str) -> Optional[TimerActionResult]:
        if name == ALARM_TIMER:
            return self.on_completion_alarm()
        if name == ALARM_SYNC:
            self.sync_tick()
            return None
        self._logger.warning("Ignoring unknown alarm: %s", name)
        return None

    def on_completion_alarm(self) -> TimerActionResult:
        state = self._state
        if not state.is_running:
            # Alarms are delivered at least once; a duplicate after completion
            # or a stale one after pause must not advance the cycle again.
            self._logger.info("Ignoring completion alarm: timer not running")
            return self._result(ACTION_COMPLETED, False, REASON_NOT_RUNNING)

        now = self._clock()
        if state.end_time is not None and remaining_seconds(state.end_time, now) > 0:
            self._alarms.schedule_at(ALARM_TIMER, state.end_time)
            return self._result(ACTION_COMPLETED, False, REASON_NOT_DUE)

        completed_kind = state.session_type
        next_position = advance(state.cycle_position)
        next_kind = session_kind_for_position(next_position)
        self._notify_completion(
            SessionCompleted(
                completed_session_type=completed_kind,
                session_type=next_kind,
                cycle_position=next_position,
            )
        )

        state.cycle_position = next_position
        state.session_type = next_kind
        state.time_left = duration_for_kind(next_kind)
        state.is_running = False
        state.start_time = None
        state.end_time = None
        state.paused_at = None
        state.paused_duration = 0.0

        self._alarms.cancel(ALARM_TIMER)
        self._logger.info(
            "Session completed: %s -> %s (position=%s)",
            completed_kind,
            next_kind,
            next_position,
        )
        self._commit(now)
        return self._result(ACTION_COMPLETED, True, REASON_COMPLETED)

    def sync_tick(self) -> StateSync:
        sync = self._sync_snapshot(self._clock())
        self._broadcast(sync)
        return sync

    # Internals

    def _reset_state(self) -> None:
        self._alarms.cancel(ALARM_TIMER)
        self._state = TimerState()

    def _sync_snapshot(self, now: int) -> StateSync:
        state = self._state
        return StateSync(
            end_time=state.end_time if state.is_running else None,
            session_type=state.session_type,
            cycle_position=state.cycle_position,
            is_running=state.is_running,
            time_left=state.remaining_at(now),
        )

    def _commit(self, now: int) -> None:
        self._state.last_update_time = now
        self._write_store(self._state.to_persisted(now).to_record())
        self._broadcast(self._sync_snapshot(now))

    def _read_store(self) -> Optional[dict[str, Any]]:
        try:
            return self._store.get(STORE_KEY)
        except StoreError as error:
            self._logger.warning("Timer state read failed, retrying: %s", error)
        try:
            return self._store.get(STORE_KEY)
        except StoreError as error:
            self._logger.error("Timer state read failed: %s", error)
            return None

    def _write_store(self, record: dict[str, Any]) -> None:
        try:
            self._store.set(STORE_KEY, record)
            return
        except StoreError as error:
            self._logger.warning("Timer state write failed, retrying: %s", error)
        try:
            self._store.set(STORE_KEY, record)
        except StoreError as error:
            self._logger.error("Timer state write failed: %s", error)

    def _broadcast(self, message: Broadcast) -> None:
        if self._bus is None:
            return
        try:
            self._bus.broadcast(message)
        except Exception as error:
            self._logger.debug("Broadcast dropped: %s", error)

    def _notify_completion(self, event: SessionCompleted) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier.open(event)
        except Exception as error:
            self._logger.error("Failed to open completion notification: %s", error)

    def _result(self, action: str, accepted: bool, reason: str) -> TimerActionResult:
        return TimerActionResult(
            action=action,
            accepted=accepted,
            reason=reason,
            state=self._state.copy(),
        )


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0
