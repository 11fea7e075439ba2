"""Single-threaded service loop that serializes commands, alarms, and sync ticks."""

from __future__ import annotations

import logging
from queue import Empty, Queue
from typing import Optional

from pomodoro import TimerService

from .events import AlarmFired, CommandReceived, RuntimeEvent, StopRequested


class ServiceRuntime:
    """Consumes the runtime queue and applies each event to the timer service.

    Exactly one event is handled at a time, so every service transition is
    complete before the next command, alarm, or sync tick is looked at.
    """

    def __init__(
        self,
        service: TimerService,
        event_queue: Queue,
        *,
        logger: Optional[logging.Logger] = None,
        poll_interval_seconds: float = 0.2,
    ):
        self._service = service
        self._queue = event_queue
        self._logger = logger or logging.getLogger("pomodoro.runtime")
        self._poll_interval_seconds = poll_interval_seconds
        self._stopped = False

    def run(self) -> int:
        self._service.initialize()
        self._logger.info("Timer service ready")
        try:
            while not self._stopped:
                try:
                    event = self._queue.get(timeout=self._poll_interval_seconds)
                except Empty:
                    continue
                self.handle_event(event)
        except KeyboardInterrupt:
            self._logger.info("Shutdown requested by keyboard interrupt.")
        return 0

    def run_pending(self) -> int:
        """Handle every queued event without blocking; returns the count handled."""
        handled = 0
        while not self._stopped:
            try:
                event = self._queue.get_nowait()
            except Empty:
                break
            self.handle_event(event)
            handled += 1
        return handled

    def handle_event(self, event: RuntimeEvent) -> None:
        if isinstance(event, StopRequested):
            self._logger.info("Stopping timer service%s", f": {event.reason}" if event.reason else "")
            self._stopped = True
            return

        try:
            if isinstance(event, CommandReceived):
                result = self._service.handle_command(event.command)
                if not result.accepted:
                    self._logger.info(
                        "Command %s not applied: %s",
                        event.command.type,
                        result.reason,
                    )
            elif isinstance(event, AlarmFired):
                self._service.handle_alarm(event.name)
            else:
                self._logger.warning("Dropping unknown runtime event: %r", event)
        except Exception as error:
            self._logger.error("Failed to handle %r: %s", event, error, exc_info=True)

    @property
    def stopped(self) -> bool:
        return self._stopped
