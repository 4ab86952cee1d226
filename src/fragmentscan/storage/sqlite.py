"""SQLite-backed key-value store.

Keeps every value as JSON text in a single ``kv`` table. Several
station processes may share one database file; ``compare_and_set`` is a
single conditional statement, so SQLite's write lock makes it atomic
across them.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from fragmentscan.storage.base import KeyValueStore, StorageError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
)
"""


class SqliteStore(KeyValueStore):
    """Key-value store persisted to a SQLite database.

    Args:
        path: Database file, or ``":memory:"`` for a private in-memory
            database.
    """

    def __init__(self, path: str | Path = ":memory:") -> None:
        self._path = str(path)
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn: sqlite3.Connection | None = sqlite3.connect(
                self._path, isolation_level=None, check_same_thread=False
            )
            self._conn.execute(_SCHEMA)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open {self._path}: {e}", backend="sqlite") from e
        logger.info("Opened key-value store at %s", self._path)

    @property
    def path(self) -> str:
        return self._path

    def get(self, key: str) -> Any | None:
        row = self._execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return json.loads(row[0]) if row else None

    def set(self, key: str, value: Any) -> None:
        self._execute(
            "INSERT INTO kv (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
            "updated_at = CURRENT_TIMESTAMP",
            (key, json.dumps(value)),
        )

    def compare_and_set(self, key: str, expected: Any | None, value: Any) -> bool:
        if expected is None:
            cursor = self._execute(
                "INSERT OR IGNORE INTO kv (key, value) VALUES (?, ?)",
                (key, json.dumps(value)),
            )
        else:
            cursor = self._execute(
                "UPDATE kv SET value = ?, updated_at = CURRENT_TIMESTAMP "
                "WHERE key = ? AND value = ?",
                (json.dumps(value), key, json.dumps(expected)),
            )
        return cursor.rowcount == 1

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Closed key-value store at %s", self._path)

    def _execute(self, sql: str, params: tuple) -> sqlite3.Cursor:
        if self._conn is None:
            raise StorageError("Store is closed", backend="sqlite")
        try:
            return self._conn.execute(sql, params)
        except sqlite3.Error as e:
            raise StorageError(f"SQLite query failed: {e}", backend="sqlite") from e
