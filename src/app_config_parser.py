"""Typed parser for config.toml sections into immutable app settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from app_config_schema import (
    AppConfig,
    AppConfigurationError,
    BusSettings,
    LoggingSettings,
    StoreSettings,
    TimerSettings,
    ViewerSettings,
)

_LOG_LEVELS = frozenset({"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"})


def parse_app_config(
    raw: Mapping[str, Any],
    *,
    base_dir: Path,
    source_file: str,
) -> AppConfig:
    """Parse raw TOML mappings into strongly typed application settings."""
    return AppConfig(
        bus=_parse_bus_settings(_section(raw, "bus")),
        store=_parse_store_settings(_section(raw, "store"), base_dir=base_dir),
        timer=_parse_timer_settings(_section(raw, "timer")),
        viewer=_parse_viewer_settings(_section(raw, "viewer")),
        logging=_parse_logging_settings(_section(raw, "logging")),
        source_file=source_file,
    )


def _parse_bus_settings(section: Mapping[str, Any]) -> BusSettings:
    return BusSettings(
        enabled=_as_bool(section.get("enabled", True), "bus.enabled"),
        host=_as_str(section.get("host", "127.0.0.1"), "bus.host"),
        port=_as_int(section.get("port", 8765), "bus.port"),
        ws_path=_as_str(section.get("ws_path", "/ws"), "bus.ws_path"),
    )


def _parse_store_settings(
    section: Mapping[str, Any],
    *,
    base_dir: Path,
) -> StoreSettings:
    raw_path = _as_str(section.get("path", StoreSettings.path), "store.path")
    if not raw_path:
        raise AppConfigurationError("store.path cannot be empty.")
    return StoreSettings(path=_resolve_path(base_dir, raw_path))


def _parse_timer_settings(section: Mapping[str, Any]) -> TimerSettings:
    interval = _as_int(
        section.get("sync_interval_seconds", 30),
        "timer.sync_interval_seconds",
    )
    if interval <= 0:
        raise AppConfigurationError("timer.sync_interval_seconds must be positive.")
    return TimerSettings(sync_interval_seconds=interval)


def _parse_viewer_settings(section: Mapping[str, Any]) -> ViewerSettings:
    refresh = _as_float(
        section.get("refresh_interval_seconds", 1.0),
        "viewer.refresh_interval_seconds",
    )
    if refresh <= 0:
        raise AppConfigurationError("viewer.refresh_interval_seconds must be positive.")
    drift = _as_int(section.get("drift_threshold_ms", 2000), "viewer.drift_threshold_ms")
    if drift < 0:
        raise AppConfigurationError("viewer.drift_threshold_ms must not be negative.")
    timeout = _as_float(
        section.get("connect_timeout_seconds", 2.0),
        "viewer.connect_timeout_seconds",
    )
    if timeout <= 0:
        raise AppConfigurationError("viewer.connect_timeout_seconds must be positive.")
    return ViewerSettings(
        refresh_interval_seconds=refresh,
        drift_threshold_ms=drift,
        connect_timeout_seconds=timeout,
    )


def _parse_logging_settings(section: Mapping[str, Any]) -> LoggingSettings:
    level = _as_str(section.get("level", "INFO"), "logging.level").upper()
    if level not in _LOG_LEVELS:
        raise AppConfigurationError(f"logging.level is not a known level: {level}")
    return LoggingSettings(level=level)


def _section(root: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    raw = root.get(name, {})
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise AppConfigurationError(f"[{name}] must be a table.")
    return raw


def _as_str(value: Any, field: str) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    raise AppConfigurationError(f"{field} must be a string.")


def _as_bool(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
    raise AppConfigurationError(f"{field} must be a boolean.")


def _as_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise AppConfigurationError(f"{field} must be an integer.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError as error:
            raise AppConfigurationError(f"{field} must be an integer.") from error
    raise AppConfigurationError(f"{field} must be an integer.")


def _as_float(value: Any, field: str) -> float:
    if isinstance(value, bool):
        raise AppConfigurationError(f"{field} must be a float.")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError as error:
            raise AppConfigurationError(f"{field} must be a float.") from error
    raise AppConfigurationError(f"{field} must be a float.")


def _resolve_path(base_dir: Path, raw: str) -> str:
    if not raw:
        return ""
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = (base_dir / path).resolve()
    return str(path)
