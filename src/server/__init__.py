"""Websocket message bus hosted by the timer service."""

from .config import BusServerConfig, ServerConfigurationError
from .service import BusServer

__all__ = [
    "BusServer",
    "BusServerConfig",
    "ServerConfigurationError",
]
