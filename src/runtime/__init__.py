"""Service runtime exports."""

from .alarms import ThreadingAlarms
from .events import AlarmFired, CommandReceived, QueueEventPublisher, StopRequested
from .loop import ServiceRuntime
from .notifier import BroadcastCompletionNotifier

__all__ = [
    "AlarmFired",
    "BroadcastCompletionNotifier",
    "CommandReceived",
    "QueueEventPublisher",
    "ServiceRuntime",
    "StopRequested",
    "ThreadingAlarms",
]
