"""Viewer-side mirror of the service state with bounded drift correction."""

from __future__ import annotations

import dataclasses
import logging
import threading
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

from contracts.ui_protocol import (
    EVENT_SESSION_COMPLETED,
    EVENT_STATE_SYNC,
    EVENT_STORAGE_CHANGED,
    STORE_KEY,
)
from pomodoro.clock import Clock, remaining_seconds, system_clock
from pomodoro.commands import (
    Command,
    CommandParseError,
    GetState,
    JumpToPosition,
    PauseTimer,
    ResetTimer,
    SetTime,
    StartTimer,
    StateSync,
)
from pomodoro.constants import (
    DEFAULT_DRIFT_THRESHOLD_MS,
    DEFAULT_REFRESH_INTERVAL_SECONDS,
    FIRST_CYCLE_POSITION,
    SESSION_WORK,
)
from pomodoro.contracts import KeyValueStore, StoreError
from pomodoro.cycle import duration_for_kind
from pomodoro.state import PersistedState, StateRecordError

from .client import ServiceUnreachableError
from .refresh import RefreshLoop


class ViewerInitializationError(Exception):
    """Raised when a viewer is built without its display surface."""


@dataclass
class DisplayState:
    """Local, possibly stale mirror of the authoritative timer state."""
    end_time: Optional[int] = None
    is_running: bool = False
    session_type: str = SESSION_WORK
    cycle_position: int = FIRST_CYCLE_POSITION
    time_left: int = duration_for_kind(SESSION_WORK)


class DisplaySurface(Protocol):
    def render(self, time_left: int, state: DisplayState) -> None:
        ...

    def show_completion(self, completed_session_type: str, next_session_type: str) -> None:
        ...


class CommandSender(Protocol):
    def send(self, command: Command) -> None:
        ...


class LoopHandle(Protocol):
    @property
    def is_running(self) -> bool:
        ...

    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...

    def close(self) -> None:
        ...


class DisplayReconciler:
    """Mirrors service state for smooth rendering and forwards user commands.

    Three inputs feed the mirror: the store read at startup, persisted-state
    change notifications, and the periodic STATE_SYNC broadcast. Only the
    first two decide whether the local refresh loop runs. A new deadline is
    adopted only when none is held yet or it differs from the held one by
    more than ``drift_threshold_ms``.
    """

    def __init__(
        self,
        display: Optional[DisplaySurface],
        *,
        store: Optional[KeyValueStore] = None,
        sender: Optional[CommandSender] = None,
        clock: Clock = system_clock,
        drift_threshold_ms: int = DEFAULT_DRIFT_THRESHOLD_MS,
        refresh_interval_seconds: float = DEFAULT_REFRESH_INTERVAL_SECONDS,
        refresh_loop: Optional[LoopHandle] = None,
        logger: Optional[logging.Logger] = None,
    ):
        if display is None:
            raise ViewerInitializationError("A display surface is required")
        if drift_threshold_ms < 0:
            raise ValueError("drift_threshold_ms must not be negative")

        self._display = display
        self._store = store
        self._sender = sender
        self._clock = clock
        self._drift_threshold_ms = drift_threshold_ms
        self._logger = logger or logging.getLogger("viewer")
        self._lock = threading.Lock()
        self._state = DisplayState()
        self._loop: LoopHandle = refresh_loop or RefreshLoop(
            self.refresh,
            interval_seconds=refresh_interval_seconds,
            logger=self._logger,
        )

    @property
    def state(self) -> DisplayState:
        with self._lock:
            return dataclasses.replace(self._state)

    @property
    def refresh_loop_running(self) -> bool:
        return self._loop.is_running

    def initialize(self) -> None:
        """Paint from the store, then ask the service for a fresh broadcast."""
        record = self._read_store()
        if record is not None:
            self.apply_record(record)
        else:
            self.refresh()
        self._send(GetState())

    def close(self) -> None:
        self._loop.stop()
        self._loop.close()

    # Inbound state

    def sync_display_state(self, persisted: PersistedState) -> None:
        with self._lock:
            state = self._state
            state.is_running = persisted.is_running
            state.session_type = persisted.session_type
            state.cycle_position = persisted.cycle_position
            state.time_left = persisted.time_left
            self._reconcile_end_time(persisted.is_running, persisted.end_time)

        if persisted.is_running:
            self._loop.start()
        else:
            self._loop.stop()
        self.refresh()

    def apply_record(self, record: Mapping[str, Any]) -> bool:
        try:
            persisted = PersistedState.from_record(record)
        except StateRecordError as error:
            self._logger.warning("Ignoring unreadable timer state: %s", error)
            return False
        self.sync_display_state(persisted)
        return True

    def handle_storage_change(
        self,
        old_value: Optional[Mapping[str, Any]],
        new_value: Optional[Mapping[str, Any]],
    ) -> None:
        del old_value  # The new value alone determines the mirror.
        if new_value is None:
            return
        self.apply_record(new_value)

    def handle_sync_message(self, sync: StateSync) -> None:
        with self._lock:
            state = self._state
            state.is_running = sync.is_running
            state.session_type = sync.session_type
            state.cycle_position = sync.cycle_position
            state.time_left = sync.time_left
            self._reconcile_end_time(sync.is_running, sync.end_time)
        self.refresh()

    def handle_message(self, message: Mapping[str, Any]) -> None:
        """Route a decoded bus event to the matching handler."""
        event_type = message.get("type")
        if event_type == EVENT_STATE_SYNC:
            try:
                sync = StateSync.from_payload(message)
            except CommandParseError as error:
                self._logger.warning("Ignoring malformed sync message: %s", error)
                return
            self.handle_sync_message(sync)
        elif event_type == EVENT_STORAGE_CHANGED:
            self.handle_storage_change(message.get("oldValue"), message.get("newValue"))
        elif event_type == EVENT_SESSION_COMPLETED:
            self._display.show_completion(
                str(message.get("completedSessionType", "")),
                str(message.get("sessionType", "")),
            )
        else:
            self._logger.debug("Ignoring bus event: %s", event_type)

    def on_store_changed(
        self,
        key: str,
        old_value: Optional[dict[str, Any]],
        new_value: Optional[dict[str, Any]],
    ) -> None:
        """Store listener for viewers sharing the service's store instance."""
        if key == STORE_KEY:
            self.handle_storage_change(old_value, new_value)

    # Rendering

    def calculate_display_time_left(self) -> int:
        with self._lock:
            return self._display_time_left_locked(self._clock())

    def refresh(self) -> None:
        with self._lock:
            time_left = self._display_time_left_locked(self._clock())
            snapshot = dataclasses.replace(self._state)
        self._display.render(time_left, snapshot)

    # Outbound commands

    def start(self) -> bool:
        return self._send(StartTimer())

    def pause(self) -> bool:
        return self._send(PauseTimer())

    def reset(self) -> bool:
        return self._send(ResetTimer())

    def set_time(self, seconds: int) -> bool:
        return self._send(SetTime(time_left=seconds))

    def apply_preset(self, seconds: int) -> bool:
        return self._send(ResetTimer(), SetTime(time_left=seconds), StartTimer())

    def jump_to_position(self, position: int) -> bool:
        return self._send(JumpToPosition(position=position))

    def acknowledge_completion(self) -> bool:
        """Completion surface dismissed: begin the session that is now queued."""
        return self._send(StartTimer())

    # Internals

    def _reconcile_end_time(self, is_running: bool, end_time: Optional[int]) -> None:
        state = self._state
        if not is_running:
            state.end_time = None
            return
        if end_time is None:
            return
        if (
            state.end_time is None
            or abs(end_time - state.end_time) > self._drift_threshold_ms
        ):
            state.end_time = end_time

    def _display_time_left_locked(self, now: int) -> int:
        state = self._state
        if not state.is_running:
            return state.time_left
        if state.end_time is None:
            return state.time_left
        return remaining_seconds(state.end_time, now)

    def _read_store(self) -> Optional[dict[str, Any]]:
        if self._store is None:
            return None
        try:
            return self._store.get(STORE_KEY)
        except StoreError as error:
            self._logger.warning("Timer state read failed, retrying: %s", error)
        try:
            return self._store.get(STORE_KEY)
        except StoreError as error:
            self._logger.error("Timer state read failed: %s", error)
            return None

    def _send(self, *commands: Command) -> bool:
        if self._sender is None:
            self._logger.info("No service connection; %s not sent", commands[0].type)
            return False
        for command in commands:
            try:
                self._sender.send(command)
            except ServiceUnreachableError as error:
                self._logger.warning(
                    "Service unreachable, %s not delivered: %s",
                    command.type,
                    error,
                )
                return False
        return True
