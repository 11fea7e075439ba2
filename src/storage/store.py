"""In-memory and JSON-file key-value stores that notify listeners on writes."""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Optional

from pomodoro.contracts import StoreError, StoreListener


class _ListenerMixin:
    def _init_listeners(self, logger: logging.Logger) -> None:
        self._listeners: list[StoreListener] = []
        self._listeners_lock = threading.Lock()
        self._logger = logger

    def add_listener(self, listener: StoreListener) -> None:
        with self._listeners_lock:
            self._listeners.append(listener)

    def _notify(
        self,
        key: str,
        old_value: Optional[dict[str, Any]],
        new_value: Optional[dict[str, Any]],
    ) -> None:
        with self._listeners_lock:
            listeners = tuple(self._listeners)
        for listener in listeners:
            try:
                listener(key, copy.deepcopy(old_value), copy.deepcopy(new_value))
            except Exception as error:
                self._logger.error("Store listener failed: %s", error, exc_info=True)


class MemoryStore(_ListenerMixin):
    """Thread-safe in-process store."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._data: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()
        self._init_listeners(logger or logging.getLogger("storage"))

    def get(self, key: str) -> Optional[dict[str, Any]]:
        with self._lock:
            value = self._data.get(key)
            return copy.deepcopy(value)

    def set(self, key: str, value: dict[str, Any]) -> None:
        stored = copy.deepcopy(value)
        with self._lock:
            old_value = self._data.get(key)
            self._data[key] = stored
        self._notify(key, old_value, stored)


class JsonFileStore(_ListenerMixin):
    """Store backed by a single JSON document, replaced atomically on write.

    Listeners only observe writes made through this instance; other processes
    learn about changes through the service's websocket relay.
    """

    def __init__(self, path: str | Path, logger: Optional[logging.Logger] = None):
        self._path = Path(path)
        self._lock = threading.Lock()
        self._init_listeners(logger or logging.getLogger("storage"))

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> Optional[dict[str, Any]]:
        with self._lock:
            value = self._load().get(key)
        if value is not None and not isinstance(value, dict):
            raise StoreError(f"Stored value for {key!r} is not an object")
        return value

    def set(self, key: str, value: dict[str, Any]) -> None:
        stored = copy.deepcopy(value)
        with self._lock:
            data = self._load()
            old_value = data.get(key)
            data[key] = stored
            self._dump(data)
        self._notify(key, old_value, stored)

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as fh:
                raw = json.load(fh)
        except (OSError, json.JSONDecodeError) as error:
            raise StoreError(f"Failed to read store {self._path}: {error}") from error
        if not isinstance(raw, dict):
            raise StoreError(f"Store root must be an object: {self._path}")
        return raw

    def _dump(self, data: dict[str, Any]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_name = tempfile.mkstemp(
                dir=str(self._path.parent),
                prefix=f".{self._path.name}.",
                suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(data, fh, indent=2, sort_keys=True)
                os.replace(temp_name, self._path)
            except BaseException:
                Path(temp_name).unlink(missing_ok=True)
                raise
        except OSError as error:
            raise StoreError(f"Failed to write store {self._path}: {error}") from error
