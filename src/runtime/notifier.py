"""Completion notifier that surfaces finished sessions to connected viewers."""

from __future__ import annotations

import logging
from typing import Optional

from pomodoro.commands import SessionCompleted
from pomodoro.contracts import MessageBus


class BroadcastCompletionNotifier:
    """Announces a finished session over the message bus and in the log."""
    def __init__(self, bus: Optional[MessageBus], logger: Optional[logging.Logger] = None):
        self._bus = bus
        self._logger = logger or logging.getLogger("pomodoro.notifier")

    def open(self, event: SessionCompleted) -> None:
        self._logger.info(
            "Session finished: %s (next: %s at position %s)",
            event.completed_session_type,
            event.session_type,
            event.cycle_position,
        )
        if self._bus is not None:
            self._bus.broadcast(event)
