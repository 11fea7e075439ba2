"""Events delivered into the service runtime queue."""

from __future__ import annotations

from dataclasses import dataclass
from queue import Queue

from pomodoro.commands import Command


@dataclass(frozen=True)
class CommandReceived:
    """A viewer command taken off the message bus."""
    command: Command


@dataclass(frozen=True)
class AlarmFired:
    """A scheduled alarm reached its instant."""
    name: str


@dataclass(frozen=True)
class StopRequested:
    """Ends the runtime loop after the events queued before it."""
    reason: str = ""


RuntimeEvent = CommandReceived | AlarmFired | StopRequested


class QueueEventPublisher:
    """Pushes bus commands and alarm firings onto the runtime queue."""

    def __init__(self, queue: Queue):
        self._queue = queue

    def command_received(self, command: Command) -> None:
        self._queue.put(CommandReceived(command=command))

    def alarm_fired(self, name: str) -> None:
        self._queue.put(AlarmFired(name=name))

    def stop(self, reason: str = "") -> None:
        self._queue.put(StopRequested(reason=reason))
