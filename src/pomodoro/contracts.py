"""Protocols describing the collaborators the timer service depends on."""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol

from .commands import Broadcast, SessionCompleted

StoreListener = Callable[[str, Optional[dict[str, Any]], Optional[dict[str, Any]]], None]
AlarmCallback = Callable[[str], None]


class StoreError(Exception):
    """Raised by a key-value store when a read or write fails."""


class KeyValueStore(Protocol):
    """Opaque key-value persistence with change notification."""
    def get(self, key: str) -> Optional[dict[str, Any]]:
        ...

    def set(self, key: str, value: dict[str, Any]) -> None:
        ...

    def add_listener(self, listener: StoreListener) -> None:
        ...


class AlarmFacility(Protocol):
    """One-shot and periodic wake-ups at absolute wall-clock instants."""
    def schedule_at(self, name: str, when_ms: int) -> None:
        ...

    def schedule_every(self, name: str, period_ms: int) -> None:
        ...

    def cancel(self, name: str) -> None:
        ...


class MessageBus(Protocol):
    """Fire-and-forget broadcast channel from the service to viewers."""
    def broadcast(self, message: Broadcast) -> None:
        ...


class CompletionNotifier(Protocol):
    """Opens the completion surface when a session ends."""
    def open(self, event: SessionCompleted) -> None:
        ...
