"""Cancellable once-per-interval display refresh loop."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from pomodoro.constants import DEFAULT_REFRESH_INTERVAL_SECONDS


class RefreshLoop:
    """Calls ``on_tick`` every interval on a daemon thread until stopped.

    ``start`` and ``stop`` are both idempotent. Each run owns its own stop
    event so a quick stop/start never revives the previous thread.
    """

    def __init__(
        self,
        on_tick: Callable[[], None],
        *,
        interval_seconds: float = DEFAULT_REFRESH_INTERVAL_SECONDS,
        logger: Optional[logging.Logger] = None,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be greater than zero")
        self._on_tick = on_tick
        self._interval_seconds = interval_seconds
        self._logger = logger or logging.getLogger("viewer.refresh")
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._stop_event is not None

    def start(self) -> None:
        with self._lock:
            if self._stop_event is not None:
                return
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run,
                args=(stop_event,),
                daemon=True,
                name="viewer-refresh",
            )
            self._stop_event = stop_event
            self._thread = thread
        thread.start()

    def stop(self) -> None:
        with self._lock:
            stop_event = self._stop_event
            self._stop_event = None
        if stop_event is not None:
            stop_event.set()

    def close(self, timeout_seconds: float = 2.0) -> None:
        """Stop and wait for the refresh thread to exit."""
        self.stop()
        with self._lock:
            thread = self._thread
            self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout_seconds)

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self._interval_seconds):
            try:
                self._on_tick()
            except Exception as error:
                self._logger.error("Display refresh failed: %s", error, exc_info=True)
