"""Key-value persistence backends with change notification."""

from .store import JsonFileStore, MemoryStore

__all__ = ["JsonFileStore", "MemoryStore"]
