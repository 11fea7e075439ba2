from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for older runtimes
    import tomli as tomllib  # type: ignore

from app_config_parser import parse_app_config
from app_config_schema import (
    DEFAULT_CONFIG_FILE,
    AppConfig,
    AppConfigurationError,
    BusSettings,
    LoggingSettings,
    StoreSettings,
    TimerSettings,
    ViewerSettings,
)

__all__ = [
    "AppConfig",
    "AppConfigurationError",
    "BusSettings",
    "LoggingSettings",
    "StoreSettings",
    "TimerSettings",
    "ViewerSettings",
    "load_app_config",
    "load_app_config_or_defaults",
    "resolve_config_path",
]


def resolve_config_path(config_path: str | None = None) -> Path:
    env_path = os.getenv("APP_CONFIG_FILE")
    raw = config_path or env_path or DEFAULT_CONFIG_FILE
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = (Path.cwd() / path).resolve()
    return path


def load_app_config(config_path: str | None = None) -> AppConfig:
    path = resolve_config_path(config_path)
    if not path.exists():
        raise AppConfigurationError(f"Config file not found: {path}")
    if not path.is_file():
        raise AppConfigurationError(f"Config path is not a file: {path}")

    try:
        with open(path, "rb") as fh:
            raw = tomllib.load(fh)
    except Exception as error:
        raise AppConfigurationError(f"Failed to parse config TOML: {error}") from error

    return parse_app_config(raw, base_dir=path.parent, source_file=str(path))


def load_app_config_or_defaults(
    config_path: str | None = None,
    *,
    logger: Optional[logging.Logger] = None,
) -> AppConfig:
    """Load the config file, falling back to built-in defaults when it is absent.

    A file that exists but is invalid still raises.
    """
    path = resolve_config_path(config_path)
    if path.exists():
        return load_app_config(str(path))
    (logger or logging.getLogger("config")).info(
        "No config file at %s; using defaults", path
    )
    return parse_app_config({}, base_dir=Path.cwd(), source_file="")
