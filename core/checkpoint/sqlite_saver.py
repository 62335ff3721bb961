"""SQLite checkpoint saver: one row per (namespace, thread_id)."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import threading
from pathlib import Path

from .types import BaseCheckpointSaver, Checkpoint, stamp

logger = logging.getLogger(__name__)


class SQLiteSaver(BaseCheckpointSaver):
    def __init__(
        self,
        db_path: str | Path | None = None,
        namespace: str = "default",
        conn: sqlite3.Connection | None = None,
    ) -> None:
        self.namespace = namespace
        self._own_conn = conn is None
        if conn is not None:
            self._conn = conn
        else:
            if db_path is None:
                db_path = Path.home() / ".deepagent" / "checkpoints.db"
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._lock = threading.Lock()
        self._ensure_table()

    def _ensure_table(self) -> None:
        with self._lock:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS agent_checkpoints (
                    namespace TEXT NOT NULL,
                    thread_id TEXT NOT NULL,
                    step INTEGER NOT NULL,
                    data TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (namespace, thread_id)
                )
                """
            )
            self._conn.commit()

    def close(self) -> None:
        if self._own_conn:
            self._conn.close()

    def _save_sync(self, checkpoint: Checkpoint) -> None:
        data = stamp(checkpoint).to_dict()
        with self._lock:
            self._conn.execute(
                """
                INSERT OR REPLACE INTO agent_checkpoints (namespace, thread_id, step, data, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    self.namespace,
                    checkpoint.thread_id,
                    checkpoint.step,
                    json.dumps(data, ensure_ascii=False),
                    checkpoint.created_at,
                    checkpoint.updated_at,
                ),
            )
            self._conn.commit()

    def _load_sync(self, thread_id: str) -> Checkpoint | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT data FROM agent_checkpoints WHERE namespace = ? AND thread_id = ?",
                (self.namespace, thread_id),
            ).fetchone()
        if row is None:
            return None
        try:
            return Checkpoint.from_dict(json.loads(row[0]))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Discarding unreadable checkpoint for thread %s: %s", thread_id, e)
            return None

    def _list_sync(self) -> list[str]:
        with self._lock:
            cursor = self._conn.execute(
                "SELECT thread_id FROM agent_checkpoints WHERE namespace = ? ORDER BY thread_id",
                (self.namespace,),
            )
            return [row[0] for row in cursor.fetchall()]

    def _delete_sync(self, thread_id: str) -> None:
        with self._lock:
            self._conn.execute(
                "DELETE FROM agent_checkpoints WHERE namespace = ? AND thread_id = ?",
                (self.namespace, thread_id),
            )
            self._conn.commit()

    async def save(self, checkpoint: Checkpoint) -> None:
        await asyncio.to_thread(self._save_sync, checkpoint)

    async def load(self, thread_id: str) -> Checkpoint | None:
        return await asyncio.to_thread(self._load_sync, thread_id)

    async def list(self) -> list[str]:
        return await asyncio.to_thread(self._list_sync)

    async def delete(self, thread_id: str) -> None:
        await asyncio.to_thread(self._delete_sync, thread_id)
