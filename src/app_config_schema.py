"""Dataclass schema objects used by runtime configuration loading."""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_CONFIG_FILE = "config.toml"
DEFAULT_STORE_FILE = "pomodoro_state.json"


class AppConfigurationError(Exception):
    """Raised when application configuration fails."""


@dataclass(frozen=True)
class BusSettings:
    """Websocket message bus settings from `[bus]`."""
    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = 8765
    ws_path: str = "/ws"


@dataclass(frozen=True)
class StoreSettings:
    """Persistence settings from `[store]`."""
    path: str = DEFAULT_STORE_FILE


@dataclass(frozen=True)
class TimerSettings:
    """Service timing settings from `[timer]`."""
    sync_interval_seconds: int = 30


@dataclass(frozen=True)
class ViewerSettings:
    """Viewer display and reconciliation settings from `[viewer]`."""
    refresh_interval_seconds: float = 1.0
    drift_threshold_ms: int = 2000
    connect_timeout_seconds: float = 2.0


@dataclass(frozen=True)
class LoggingSettings:
    """Logging settings from `[logging]`."""
    level: str = "INFO"


@dataclass(frozen=True)
class AppConfig:
    """Complete typed runtime configuration loaded from `config.toml`."""
    bus: BusSettings = field(default_factory=BusSettings)
    store: StoreSettings = field(default_factory=StoreSettings)
    timer: TimerSettings = field(default_factory=TimerSettings)
    viewer: ViewerSettings = field(default_factory=ViewerSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    source_file: str = ""
