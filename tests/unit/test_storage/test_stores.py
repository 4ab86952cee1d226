"""Tests for the key-value store backends."""

from __future__ import annotations

import pytest

from fragmentscan.config.settings import StorageConfig
from fragmentscan.storage import open_store
from fragmentscan.storage.base import KeyValueStore, StorageError
from fragmentscan.storage.memory import InMemoryStore
from fragmentscan.storage.sqlite import SqliteStore


@pytest.fixture(params=["memory", "sqlite"])
def kv(request, tmp_path) -> KeyValueStore:
    if request.param == "memory":
        store: KeyValueStore = InMemoryStore()
    else:
        store = SqliteStore(tmp_path / "kv.db")
    yield store
    store.close()


class TestKeyValueStore:
    def test_cannot_instantiate_abstract_class(self) -> None:
        with pytest.raises(TypeError):
            KeyValueStore()  # type: ignore[abstract]

    def test_missing_key_is_none(self, kv: KeyValueStore) -> None:
        assert kv.get("nope") is None

    def test_set_and_get(self, kv: KeyValueStore) -> None:
        kv.set("history", [{"raw_text": "BAR-1"}])
        kv.set("count", 2)

        assert kv.get("history") == [{"raw_text": "BAR-1"}]
        assert kv.get("count") == 2

    def test_compare_and_set_on_absent_key(self, kv: KeyValueStore) -> None:
        assert kv.compare_and_set("count", None, 1) is True
        assert kv.compare_and_set("count", None, 1) is False
        assert kv.get("count") == 1

    def test_compare_and_set_requires_expected_value(self, kv: KeyValueStore) -> None:
        kv.set("count", 2)

        assert kv.compare_and_set("count", 1, 5) is False
        assert kv.compare_and_set("count", 2, 3) is True
        assert kv.get("count") == 3

    def test_storage_error_metadata(self) -> None:
        error = StorageError("disk full", backend="sqlite")
        assert str(error) == "disk full"
        assert error.backend == "sqlite"


class TestInMemoryStore:
    def test_values_are_copied(self) -> None:
        store = InMemoryStore()
        entries = [1]
        store.set("log", entries)
        entries.append(2)
        store.get("log").append(3)

        assert store.get("log") == [1]
        assert store.keys() == ["log"]


class TestSqliteStore:
    def test_persists_across_connections(self, tmp_path) -> None:
        path = tmp_path / "nested" / "kv.db"
        with SqliteStore(path) as store:
            store.set("scans:barcode:agent-7:2025-03-14", 4)

        with SqliteStore(path) as store:
            assert store.get("scans:barcode:agent-7:2025-03-14") == 4

    def test_closed_store_raises(self) -> None:
        store = SqliteStore()
        store.close()
        store.close()

        with pytest.raises(StorageError):
            store.get("anything")


class TestOpenStore:
    def test_memory_default(self) -> None:
        assert isinstance(open_store(), InMemoryStore)

    def test_sqlite_backend(self, tmp_path) -> None:
        store = open_store(StorageConfig(backend="sqlite", path=str(tmp_path / "s.db")))
        try:
            assert isinstance(store, SqliteStore)
        finally:
            store.close()
