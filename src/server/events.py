"""JSON framing for bus messages and the sticky replay cache."""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from contracts.ui_protocol import STICKY_EVENT_ORDER, STICKY_EVENT_TYPES


class MessageDecodeError(ValueError):
    """Raised when a websocket frame is not a JSON object with a type tag."""


def encode_event(
    payload: Mapping[str, Any],
    *,
    now_fn: Callable[[], datetime] | None = None,
) -> str:
    """Serialize a tagged payload, stamping it with an ISO timestamp."""
    if not isinstance(payload.get("type"), str):
        raise ValueError("event payload requires a string 'type'")
    now = now_fn() if now_fn is not None else datetime.now(timezone.utc)
    return json.dumps({**payload, "timestamp": now.isoformat()})


def decode_message(raw: str | bytes) -> dict[str, Any]:
    try:
        message = json.loads(raw)
    except (TypeError, ValueError) as error:
        raise MessageDecodeError(f"invalid JSON frame: {error}") from error
    if not isinstance(message, dict) or not isinstance(message.get("type"), str):
        raise MessageDecodeError("frame must be an object with a string 'type'")
    return message


class StickyEventStore:
    """Latest sticky event per type, replayed to newly connected viewers."""
    def __init__(self):
        self._events: dict[str, str] = {}
        self._lock = threading.Lock()

    def remember(self, event_type: str, message: str) -> None:
        if event_type not in STICKY_EVENT_TYPES:
            return
        with self._lock:
            self._events[event_type] = message

    def forget(self, event_type: str) -> None:
        with self._lock:
            self._events.pop(event_type, None)

    def snapshot(self) -> list[str]:
        with self._lock:
            return [self._events[key] for key in STICKY_EVENT_ORDER if key in self._events]
