"""Persistence module for fragmentscan.

Public API:
    KeyValueStore -- Abstract base class
    StorageError -- Raised on backend failure
    InMemoryStore -- Process-local store
    SqliteStore -- SQLite-backed store
    open_store -- Build a store from StorageConfig
"""

from __future__ import annotations

from fragmentscan.config.settings import StorageConfig
from fragmentscan.storage.base import KeyValueStore, StorageError
from fragmentscan.storage.memory import InMemoryStore
from fragmentscan.storage.sqlite import SqliteStore

__all__ = [
    "InMemoryStore",
    "KeyValueStore",
    "SqliteStore",
    "StorageError",
    "open_store",
]


def open_store(config: StorageConfig | None = None) -> KeyValueStore:
    """Create the store selected by ``config.backend``."""
    if config is None:
        config = StorageConfig()
    if config.backend == "sqlite":
        return SqliteStore(config.path)
    return InMemoryStore()
