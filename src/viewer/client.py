"""Blocking websocket client a viewer uses to reach the timer service."""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Callable, Optional

import websockets
from websockets.sync.client import ClientConnection, connect

from pomodoro.commands import Command, command_to_payload
from server.events import MessageDecodeError, decode_message

MessageHandler = Callable[[dict[str, Any]], None]


class ServiceUnreachableError(Exception):
    """Raised when a command cannot be delivered to the timer service."""


class ServiceClient:
    """Sends commands to the service and feeds its broadcasts to a handler.

    The connection is opened lazily and re-opened on the next send after it
    drops. It lives on a daemon reader thread for its whole lifetime; ``send``
    uses it through the reference published under the lock.
    """

    def __init__(
        self,
        url: str,
        *,
        on_message: Optional[MessageHandler] = None,
        open_timeout_seconds: float = 2.0,
        logger: Optional[logging.Logger] = None,
    ):
        self._url = url
        self._on_message = on_message
        self._open_timeout_seconds = open_timeout_seconds
        self._logger = logger or logging.getLogger("viewer.client")
        self._lock = threading.Lock()
        self._connect_lock = threading.Lock()
        self._connection: Optional[ClientConnection] = None
        self._reader: Optional[threading.Thread] = None

    @property
    def is_connected(self) -> bool:
        with self._lock:
            return self._connection is not None

    def set_message_handler(self, handler: MessageHandler) -> None:
        self._on_message = handler

    def connect(self) -> None:
        with self._connect_lock:
            if self.is_connected:
                return

            opened = threading.Event()
            outcome: dict[str, Exception] = {}
            reader = threading.Thread(
                target=self._read_loop,
                args=(opened, outcome),
                daemon=True,
                name="viewer-reader",
            )
            reader.start()

            if not opened.wait(self._open_timeout_seconds + 1.0):
                raise ServiceUnreachableError(f"Timed out connecting to {self._url}")
            error = outcome.get("error")
            if error is not None:
                raise ServiceUnreachableError(
                    f"Cannot connect to {self._url}: {error}"
                ) from error
            if not self.is_connected:
                raise ServiceUnreachableError(f"Connection to {self._url} closed during open")

            with self._lock:
                self._reader = reader
        self._logger.info("Connected to timer service at %s", self._url)

    def send(self, command: Command) -> None:
        self.connect()
        with self._lock:
            connection = self._connection
        if connection is None:
            raise ServiceUnreachableError("Connection closed before send")
        try:
            connection.send(json.dumps(command_to_payload(command)))
        except (OSError, websockets.exceptions.WebSocketException) as error:
            self._drop(connection)
            raise ServiceUnreachableError(f"Failed to send {command.type}: {error}") from error

    def close(self) -> None:
        with self._lock:
            connection = self._connection
            self._connection = None
            reader = self._reader
            self._reader = None
        if connection is not None:
            connection.close()
        if reader is not None and reader is not threading.current_thread():
            reader.join(timeout=2.0)

    def _drop(self, connection: ClientConnection) -> None:
        with self._lock:
            if self._connection is connection:
                self._connection = None

    def _read_loop(self, opened: threading.Event, outcome: dict[str, Exception]) -> None:
        try:
            with connect(self._url, open_timeout=self._open_timeout_seconds) as connection:
                with self._lock:
                    self._connection = connection
                opened.set()
                try:
                    for raw in connection:
                        self._handle_frame(raw)
                except websockets.exceptions.ConnectionClosed:
                    pass
                finally:
                    self._drop(connection)
                    self._logger.info("Disconnected from timer service")
        except (OSError, TimeoutError, websockets.exceptions.WebSocketException) as error:
            if opened.is_set():
                self._logger.warning("Service connection failed: %s", error)
            else:
                outcome["error"] = error
        finally:
            opened.set()

    def _handle_frame(self, raw: str | bytes) -> None:
        try:
            message = decode_message(raw)
        except MessageDecodeError as error:
            self._logger.warning("Dropping malformed service event: %s", error)
            return
        handler = self._on_message
        if handler is None:
            return
        try:
            handler(message)
        except Exception as error:
            self._logger.error("Service event handler failed: %s", error, exc_info=True)
