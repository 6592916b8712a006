"""Key-value storage backends and whole-blob JSON helpers.

A store is a synchronous string-keyed map with ``get`` and ``set``. Services
never talk to SQLite or a dict directly; they go through ``read_json_map`` and
``write_json_map``, which (de)serialize the entire blob held under one key.

Decode failures are treated as an empty mapping and write failures are
logged and dropped, so callers cannot tell a lost write from a successful one.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import StoreCorrupt, StoreWriteError

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = ".palette/storage.db"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


class KeyValueStore(ABC):
    """Synchronous string-keyed map, scoped to one client."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the value stored under ``key``, or None."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    def close(self) -> None:
        pass


class MemoryStore(KeyValueStore):
    """Dict-backed store. Nothing survives the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def keys(self) -> list[str]:
        return list(self._data)


class SqliteStore(KeyValueStore):
    """Persistent store in a single SQLite table.

    Args:
        db_path: Path to SQLite database file. Parent directories are created
                 automatically. Defaults to ".palette/storage.db".
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH) -> None:
        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    @property
    def db_path(self) -> str:
        return self._db_path

    def get(self, key: str) -> Optional[str]:
        row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        self._conn.execute(
            "INSERT INTO kv (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value),
        )
        self._conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()


def decode_map(key: str, raw: Optional[str]) -> Dict[str, Any]:
    """Decode a stored JSON object. Missing values decode to ``{}``.

    Raises:
        StoreCorrupt: the value is not JSON or not a JSON object.
    """
    if raw is None or raw == "":
        return {}
    try:
        value = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise StoreCorrupt(key, str(e)) from e
    if not isinstance(value, dict):
        raise StoreCorrupt(key, f"expected object, got {type(value).__name__}")
    return value


def read_json_map(store: KeyValueStore, key: str) -> Dict[str, Any]:
    """Read the whole blob under ``key``; corrupt blobs read as empty."""
    try:
        return decode_map(key, store.get(key))
    except StoreCorrupt as e:
        logger.error(f"Failed to parse {key} from storage: {e.reason}")
        return {}


def write_json_map(store: KeyValueStore, key: str, value: Dict[str, Any]) -> bool:
    """Serialize and write the whole blob under ``key``.

    Returns False when the store rejected the write. The failure is logged
    and otherwise dropped.
    """
    try:
        store.set(key, json.dumps(value))
    except (sqlite3.Error, OSError, StoreWriteError) as e:
        logger.error(f"Failed to save {key} to storage: {e}", exc_info=True)
        return False
    return True
