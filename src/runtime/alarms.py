"""Thread-backed alarm facility for one-shot deadlines and periodic ticks."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from pomodoro.clock import Clock, system_clock
from pomodoro.contracts import AlarmCallback


class ThreadingAlarms:
    """Schedules named alarms with ``threading.Timer``.

    Scheduling a name replaces any pending alarm with that name. Callbacks run
    on the timer thread and should only hand the alarm name to an event queue.
    """

    def __init__(
        self,
        callback: AlarmCallback,
        *,
        clock: Clock = system_clock,
        logger: Optional[logging.Logger] = None,
    ):
        self._callback = callback
        self._clock = clock
        self._logger = logger or logging.getLogger("alarms")
        self._timers: dict[str, threading.Timer] = {}
        self._lock = threading.Lock()

    def schedule_at(self, name: str, when_ms: int) -> None:
        delay_seconds = max(0.0, (when_ms - self._clock()) / 1000)
        self._arm(name, delay_seconds, period_seconds=None)
        self._logger.debug("Alarm %s scheduled in %.3fs", name, delay_seconds)

    def schedule_every(self, name: str, period_ms: int) -> None:
        if period_ms <= 0:
            raise ValueError("period_ms must be greater than zero")
        period_seconds = period_ms / 1000
        self._arm(name, period_seconds, period_seconds=period_seconds)
        self._logger.debug("Alarm %s scheduled every %.3fs", name, period_seconds)

    def cancel(self, name: str) -> None:
        with self._lock:
            timer = self._timers.pop(name, None)
        if timer is not None:
            timer.cancel()

    def pending(self) -> list[str]:
        with self._lock:
            return sorted(self._timers)

    def close(self) -> None:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()

    def _arm(self, name: str, delay_seconds: float, *, period_seconds: Optional[float]) -> None:
        timer = self._new_timer(name, delay_seconds, period_seconds)
        with self._lock:
            previous = self._timers.get(name)
            self._timers[name] = timer
        if previous is not None:
            previous.cancel()
        timer.start()

    def _new_timer(
        self,
        name: str,
        delay_seconds: float,
        period_seconds: Optional[float],
    ) -> threading.Timer:
        timer = threading.Timer(delay_seconds, self._fire, args=(name, period_seconds))
        timer.daemon = True
        timer.name = f"alarm-{name}"
        return timer

    def _fire(self, name: str, period_seconds: Optional[float]) -> None:
        current = threading.current_thread()
        follow_up: Optional[threading.Timer] = None
        with self._lock:
            if self._timers.get(name) is not current:
                return
            if period_seconds is None:
                del self._timers[name]
            else:
                follow_up = self._new_timer(name, period_seconds, period_seconds)
                self._timers[name] = follow_up

        if follow_up is not None:
            follow_up.start()

        try:
            self._callback(name)
        except Exception as error:
            self._logger.error("Alarm callback failed for %s: %s", name, error, exc_info=True)
