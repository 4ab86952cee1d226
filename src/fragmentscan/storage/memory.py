"""In-process key-value store."""

from __future__ import annotations

import copy
import threading
from typing import Any

from fragmentscan.storage.base import KeyValueStore


class InMemoryStore(KeyValueStore):
    """Dict-backed store. Values are deep-copied in and out."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            return copy.deepcopy(self._data.get(key))

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)

    def compare_and_set(self, key: str, expected: Any | None, value: Any) -> bool:
        with self._lock:
            if self._data.get(key) != expected:
                return False
            self._data[key] = copy.deepcopy(value)
            return True

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)
