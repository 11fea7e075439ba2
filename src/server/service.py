from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from typing import Any, Callable, Optional
from urllib.parse import urlsplit

import websockets
from websockets.asyncio.server import ServerConnection
from websockets.datastructures import Headers
from websockets.http11 import Request, Response

from contracts.ui_protocol import EVENT_SESSION_COMPLETED, EVENT_STORAGE_CHANGED, STORE_KEY
from pomodoro.commands import Broadcast, Command, CommandParseError, parse_command

from .config import HEALTHZ_PATH, BusServerConfig
from .events import MessageDecodeError, StickyEventStore, decode_message, encode_event

CommandHandler = Callable[[Command], None]


class BusServer:
    """Threaded asyncio websocket server carrying commands in and broadcasts out."""

    def __init__(
        self,
        config: BusServerConfig,
        on_command: CommandHandler,
        logger: Optional[logging.Logger] = None,
    ):
        self._config = config
        self._on_command = on_command
        self._logger = logger or logging.getLogger("bus_server")
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop_async: Optional[asyncio.Event] = None
        self._started = threading.Event()
        self._startup_error: Optional[Exception] = None
        self._connected_clients: set[ServerConnection] = set()
        self._sticky = StickyEventStore()
        self._completion_position: Optional[int] = None

    @property
    def host(self) -> str:
        return self._config.host

    @property
    def port(self) -> int:
        return self._config.port

    @property
    def is_running(self) -> bool:
        return (
            self._thread is not None
            and self._thread.is_alive()
            and self._startup_error is None
        )

    def start(self, timeout_seconds: float = 5.0) -> None:
        if self.is_running:
            self._logger.warning("Bus server is already running")
            return

        self._startup_error = None
        self._started.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            daemon=True,
            name="bus-server",
        )
        self._thread.start()

        if not self._started.wait(timeout_seconds):
            raise RuntimeError(
                f"Bus server did not start within {timeout_seconds:.1f}s"
            )

        if self._startup_error is not None:
            raise RuntimeError(f"Bus server startup failed: {self._startup_error}")

    def stop(self, timeout_seconds: float = 5.0) -> None:
        if self._thread is None:
            return

        if self._loop and self._stop_async:
            self._loop.call_soon_threadsafe(self._stop_async.set)

        self._thread.join(timeout=timeout_seconds)
        if self._thread.is_alive():
            self._logger.error(
                "Bus server thread did not stop within %.1fs",
                timeout_seconds,
            )

        self._thread = None
        self._loop = None
        self._stop_async = None

    def broadcast(self, message: Broadcast) -> None:
        self.publish(message.to_payload())

    def relay_store_change(
        self,
        key: str,
        old_value: Optional[dict[str, Any]],
        new_value: Optional[dict[str, Any]],
    ) -> None:
        """Store listener forwarding persisted-state changes to viewers.

        A pending completion prompt stays sticky until the stored state moves
        past the session it announced.
        """
        if key != STORE_KEY:
            return
        if new_value is not None and (
            new_value.get("isRunning")
            or new_value.get("cyclePosition") != self._completion_position
        ):
            self._sticky.forget(EVENT_SESSION_COMPLETED)
        self.publish(
            {
                "type": EVENT_STORAGE_CHANGED,
                "oldValue": old_value,
                "newValue": new_value,
            }
        )

    def publish(self, payload: dict[str, Any]) -> None:
        message = encode_event(payload)
        if payload["type"] == EVENT_SESSION_COMPLETED:
            self._completion_position = payload.get("cyclePosition")
        self._sticky.remember(payload["type"], message)

        if not self.is_running or self._loop is None:
            return

        try:
            future = asyncio.run_coroutine_threadsafe(
                self._broadcast(message),
                self._loop,
            )
            future.add_done_callback(self._consume_future_exception)
        except RuntimeError:
            # Loop may be shutting down.
            return

    @staticmethod
    def _consume_future_exception(future) -> None:
        with contextlib.suppress(Exception):
            future.result()

    def _run_loop(self) -> None:
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)
        self._stop_async = asyncio.Event()

        try:
            self._loop.run_until_complete(self._serve())
        except Exception as error:
            self._startup_error = error
            self._logger.error("Bus server failed: %s", error, exc_info=True)
            self._started.set()
        finally:
            if self._loop is not None:
                pending = asyncio.all_tasks(self._loop)
                for task in pending:
                    task.cancel()
                with contextlib.suppress(Exception):
                    self._loop.run_until_complete(
                        asyncio.gather(*pending, return_exceptions=True)
                    )
                self._loop.close()

    async def _serve(self) -> None:
        async with websockets.serve(
            self._handler,
            host=self._config.host,
            port=self._config.port,
            process_request=self._process_request,
            logger=self._logger,
        ):
            self._logger.info(
                "Bus server listening on %s",
                self._config.url,
            )
            self._started.set()
            await self._stop_async.wait()
            await self._close_clients()

    async def _handler(self, websocket: ServerConnection) -> None:
        request_path = (
            urlsplit(websocket.request.path).path
            if websocket.request is not None
            else ""
        )
        if request_path != self._config.websocket_path:
            await websocket.close(code=1008, reason="Invalid websocket path")
            return

        self._connected_clients.add(websocket)
        self._logger.info("Viewer connected: %s", websocket.remote_address)
        try:
            for message in self._sticky.snapshot():
                await websocket.send(message)
            async for raw in websocket:
                self._dispatch(raw)
        except websockets.exceptions.ConnectionClosed:
            self._logger.info("Viewer disconnected: %s", websocket.remote_address)
        finally:
            self._connected_clients.discard(websocket)

    def _dispatch(self, raw: str | bytes) -> None:
        try:
            command = parse_command(decode_message(raw))
        except (MessageDecodeError, CommandParseError) as error:
            self._logger.warning("Dropping malformed command: %s", error)
            return
        self._logger.debug("Received command: %s", command.type)
        self._on_command(command)

    async def _process_request(
        self,
        connection: ServerConnection,
        request: Request,
    ) -> Response | None:
        del connection  # Unused in routing.
        path = urlsplit(request.path).path

        if path == self._config.websocket_path:
            return None

        if path == HEALTHZ_PATH:
            return self._response(
                200,
                "OK",
                b"ok\n",
                "text/plain; charset=utf-8",
            )

        return self._response(
            404,
            "Not Found",
            b"not found\n",
            "text/plain; charset=utf-8",
        )

    def _response(
        self,
        status_code: int,
        reason_phrase: str,
        body: bytes,
        content_type: str,
    ) -> Response:
        headers = Headers()
        headers["Content-Type"] = content_type
        headers["Content-Length"] = str(len(body))
        headers["Cache-Control"] = "no-store"
        return Response(status_code, reason_phrase, headers, body)

    async def _close_clients(self) -> None:
        if not self._connected_clients:
            return

        tasks = [
            client.close(code=1001, reason="Service shutting down")
            for client in tuple(self._connected_clients)
        ]
        await asyncio.gather(*tasks, return_exceptions=True)
        self._connected_clients.clear()

    async def _broadcast(self, message: str) -> None:
        if not self._connected_clients:
            return

        clients = tuple(self._connected_clients)
        disconnected = []
        tasks = [client.send(message) for client in clients]
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for client, result in zip(clients, results):
            if isinstance(result, Exception):
                disconnected.append(client)
                self._logger.warning("Failed to send message to viewer: %s", result)

        for client in disconnected:
            self._connected_clients.discard(client)
