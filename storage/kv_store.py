"""Key-value stores used by PersistentBackend and KeyValueStoreSaver.

Values are JSON-compatible dicts addressed by (namespace, key), where the
namespace is a tuple of path segments such as ("project-a", "filesystem").
Listing a namespace returns only items stored directly under it.
"""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

Namespace = Sequence[str]


@dataclass
class StoreItem:
    key: str
    value: dict[str, Any]


class KeyValueStore(ABC):
    @abstractmethod
    async def get(self, namespace: Namespace, key: str) -> dict[str, Any] | None: ...

    @abstractmethod
    async def put(self, namespace: Namespace, key: str, value: dict[str, Any]) -> None: ...

    @abstractmethod
    async def delete(self, namespace: Namespace, key: str) -> None: ...

    @abstractmethod
    async def list(self, namespace: Namespace) -> list[StoreItem]: ...


def make_key(namespace: Namespace, key: str) -> str:
    return ":".join([*namespace, key])


class InMemoryStore(KeyValueStore):
    """Process-local store. Values are copied through JSON on the way in and out."""

    def __init__(self) -> None:
        self._data: dict[tuple[str, ...], dict[str, str]] = {}

    async def get(self, namespace: Namespace, key: str) -> dict[str, Any] | None:
        raw = self._data.get(tuple(namespace), {}).get(key)
        return json.loads(raw) if raw is not None else None

    async def put(self, namespace: Namespace, key: str, value: dict[str, Any]) -> None:
        self._data.setdefault(tuple(namespace), {})[key] = json.dumps(value)

    async def delete(self, namespace: Namespace, key: str) -> None:
        self._data.get(tuple(namespace), {}).pop(key, None)

    async def list(self, namespace: Namespace) -> list[StoreItem]:
        bucket = self._data.get(tuple(namespace), {})
        return [StoreItem(key=k, value=json.loads(v)) for k, v in bucket.items()]

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._data.values())


class SQLiteStore(KeyValueStore):
    """Durable store in a single SQLite table."""

    def __init__(self, db_path: str | Path | None = None, conn: sqlite3.Connection | None = None) -> None:
        self._own_conn = conn is None
        if conn is not None:
            self._conn = conn
        else:
            if db_path is None:
                db_path = Path.home() / ".deepagent" / "store.db"
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._lock = threading.Lock()
        self._ensure_table()

    def _ensure_table(self) -> None:
        with self._lock:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_items (
                    namespace TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    PRIMARY KEY (namespace, key)
                )
                """
            )
            self._conn.commit()

    def close(self) -> None:
        if self._own_conn:
            self._conn.close()

    @staticmethod
    def _ns(namespace: Namespace) -> str:
        return json.dumps(list(namespace))

    def _get_sync(self, namespace: Namespace, key: str) -> dict[str, Any] | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM kv_items WHERE namespace = ? AND key = ?",
                (self._ns(namespace), key),
            ).fetchone()
        return json.loads(row[0]) if row else None

    def _put_sync(self, namespace: Namespace, key: str, value: dict[str, Any]) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO kv_items (namespace, key, value) VALUES (?, ?, ?)",
                (self._ns(namespace), key, json.dumps(value)),
            )
            self._conn.commit()

    def _delete_sync(self, namespace: Namespace, key: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM kv_items WHERE namespace = ? AND key = ?", (self._ns(namespace), key))
            self._conn.commit()

    def _list_sync(self, namespace: Namespace) -> list[StoreItem]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT key, value FROM kv_items WHERE namespace = ? ORDER BY key",
                (self._ns(namespace),),
            ).fetchall()
        return [StoreItem(key=k, value=json.loads(v)) for k, v in rows]

    async def get(self, namespace: Namespace, key: str) -> dict[str, Any] | None:
        return await asyncio.to_thread(self._get_sync, namespace, key)

    async def put(self, namespace: Namespace, key: str, value: dict[str, Any]) -> None:
        await asyncio.to_thread(self._put_sync, namespace, key, value)

    async def delete(self, namespace: Namespace, key: str) -> None:
        await asyncio.to_thread(self._delete_sync, namespace, key)

    async def list(self, namespace: Namespace) -> list[StoreItem]:
        return await asyncio.to_thread(self._list_sync, namespace)
