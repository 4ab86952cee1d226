"""Abstract key-value store used for quota counters and scan history.

Values are JSON-compatible (ints, strings, lists and dicts of those).
Backends must make ``compare_and_set`` atomic with respect to every
other writer of the same store, which is what keeps two concurrent
submissions from both slipping past a daily quota.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Minimal persistence interface for the scan pipeline."""

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the value stored at ``key`` or ``None`` if absent.

        Raises:
            StorageError: If the backend cannot be read.
        """
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store ``value`` at ``key``, replacing any previous value.

        Raises:
            StorageError: If the backend cannot be written.
        """
        ...

    @abstractmethod
    def compare_and_set(self, key: str, expected: Any | None, value: Any) -> bool:
        """Store ``value`` only if ``key`` currently holds ``expected``.

        ``expected=None`` means the key must be absent.

        Returns:
            True if the value was written, False if another writer got
            there first.

        Raises:
            StorageError: If the backend cannot be accessed.
        """
        ...

    def close(self) -> None:
        """Release backend resources. Safe to call multiple times."""

    def __enter__(self) -> KeyValueStore:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.close()


class StorageError(Exception):
    """Raised when the persistence backend fails."""

    def __init__(self, message: str, backend: str = "") -> None:
        super().__init__(message)
        self.backend = backend
