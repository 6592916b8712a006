#!/usr/bin/env python3
"""Unit tests for Palette key-value stores and JSON blob helpers."""

import json
import logging
import sqlite3
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "tools"))

from palette.errors import StoreCorrupt, StoreWriteError
from palette.storage import (
    KeyValueStore,
    MemoryStore,
    SqliteStore,
    decode_map,
    read_json_map,
    write_json_map,
)


class FailingStore(MemoryStore):
    """MemoryStore whose writes always fail, like a full localStorage quota."""

    def set(self, key, value):
        raise StoreWriteError("quota exceeded")


class TestKeyValueStore:
    def test_cannot_instantiate(self):
        with pytest.raises(TypeError, match="abstract"):
            KeyValueStore()

    def test_memory_store_get_set(self):
        store = MemoryStore()
        assert store.get("missing") is None
        store.set("k", "v")
        store.set("k", "v2")
        assert store.get("k") == "v2"
        assert store.keys() == ["k"]

    def test_memory_store_initial_data_is_copied(self):
        initial = {"k": "v"}
        store = MemoryStore(initial)
        store.set("k", "changed")
        assert initial["k"] == "v"


class TestSqliteStore:
    def test_creates_parent_dirs(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "storage.db"
        store = SqliteStore(str(db_path))
        try:
            assert db_path.exists()
            assert store.db_path == str(db_path)
        finally:
            store.close()

    def test_get_set_overwrite(self, tmp_path):
        store = SqliteStore(str(tmp_path / "s.db"))
        try:
            assert store.get("k") is None
            store.set("k", "one")
            store.set("k", "two")
            assert store.get("k") == "two"
        finally:
            store.close()

    def test_survives_reopen(self, tmp_path):
        db_path = str(tmp_path / "s.db")
        store = SqliteStore(db_path)
        store.set("color-picker-users", '{"alice": "pw1"}')
        store.close()

        reopened = SqliteStore(db_path)
        try:
            assert reopened.get("color-picker-users") == '{"alice": "pw1"}'
        finally:
            reopened.close()

    def test_write_after_close_raises_sqlite_error(self, tmp_path):
        store = SqliteStore(str(tmp_path / "s.db"))
        store.close()
        with pytest.raises(sqlite3.Error):
            store.set("k", "v")


class TestDecodeMap:
    def test_missing_and_empty_decode_to_empty_dict(self):
        assert decode_map("k", None) == {}
        assert decode_map("k", "") == {}

    def test_object(self):
        assert decode_map("k", '{"a": 1}') == {"a": 1}

    def test_invalid_json_raises_store_corrupt(self):
        with pytest.raises(StoreCorrupt) as exc_info:
            decode_map("users", "{not json")
        assert exc_info.value.key == "users"

    @pytest.mark.parametrize("raw", ["[]", "42", '"text"', "null"])
    def test_non_object_raises_store_corrupt(self, raw):
        with pytest.raises(StoreCorrupt):
            decode_map("k", raw)


class TestJsonMapHelpers:
    def test_read_missing_key(self):
        assert read_json_map(MemoryStore(), "k") == {}

    def test_read_corrupt_is_empty_and_logged(self, caplog):
        store = MemoryStore({"k": "{broken"})
        with caplog.at_level(logging.ERROR, logger="palette.storage"):
            assert read_json_map(store, "k") == {}
        assert "Failed to parse k" in caplog.text

    def test_write_then_read(self):
        store = MemoryStore()
        assert write_json_map(store, "k", {"alice": {"w": 1}}) is True
        assert json.loads(store.get("k")) == {"alice": {"w": 1}}
        assert read_json_map(store, "k") == {"alice": {"w": 1}}

    def test_write_failure_is_swallowed_and_logged(self, caplog):
        store = FailingStore()
        with caplog.at_level(logging.ERROR, logger="palette.storage"):
            assert write_json_map(store, "k", {"a": "b"}) is False
        assert store.get("k") is None
        assert "Failed to save k" in caplog.text

    def test_write_to_closed_sqlite_is_swallowed(self, tmp_path):
        store = SqliteStore(str(tmp_path / "s.db"))
        store.close()
        assert write_json_map(store, "k", {}) is False
