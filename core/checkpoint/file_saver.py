"""Checkpoint saver writing one JSON file per thread.

    <dir>/[<namespace>/]<sanitized thread id>.json

Thread ids are sanitized to [a-zA-Z0-9_-]; `list()` reads the real thread id
back from each file rather than reversing the sanitization.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from pathlib import Path

from .types import BaseCheckpointSaver, Checkpoint, stamp

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^a-zA-Z0-9_-]")


def sanitize_thread_id(thread_id: str) -> str:
    return _UNSAFE.sub("_", thread_id)


class FileSaver(BaseCheckpointSaver):
    def __init__(self, dir: str | Path, namespace: str | None = None):
        self.base_dir = Path(dir)
        self.namespace = namespace or "default"
        self.dir = self.base_dir / sanitize_thread_id(namespace) if namespace else self.base_dir
        self.dir.mkdir(parents=True, exist_ok=True)

    def _path(self, thread_id: str) -> Path:
        return self.dir / f"{sanitize_thread_id(thread_id)}.json"

    def _save_sync(self, checkpoint: Checkpoint) -> None:
        path = self._path(checkpoint.thread_id)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(stamp(checkpoint).to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
        tmp.replace(path)

    def _read_sync(self, path: Path) -> dict | None:
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Unreadable checkpoint file %s: %s", path, e)
            return None

    def _load_sync(self, thread_id: str) -> Checkpoint | None:
        data = self._read_sync(self._path(thread_id))
        if data is None:
            return None
        try:
            checkpoint = Checkpoint.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Malformed checkpoint for thread %s: %s", thread_id, e)
            return None
        if checkpoint.thread_id != thread_id:
            # two ids sanitized to the same file name
            logger.warning("Checkpoint file for %s belongs to thread %s", thread_id, checkpoint.thread_id)
            return None
        return checkpoint

    def _list_sync(self) -> list[str]:
        if not self.dir.exists():
            return []
        thread_ids = []
        for path in sorted(self.dir.glob("*.json")):
            data = self._read_sync(path)
            if data is None:
                continue
            thread_ids.append(data.get("threadId") or path.stem)
        return thread_ids

    def _delete_sync(self, thread_id: str) -> None:
        path = self._path(thread_id)
        data = self._read_sync(path)
        if data is not None and data.get("threadId") != thread_id:
            logger.warning("Not deleting %s: it belongs to thread %s", path, data.get("threadId"))
            return
        path.unlink(missing_ok=True)

    async def save(self, checkpoint: Checkpoint) -> None:
        await asyncio.to_thread(self._save_sync, checkpoint)

    async def load(self, thread_id: str) -> Checkpoint | None:
        return await asyncio.to_thread(self._load_sync, thread_id)

    async def list(self) -> list[str]:
        return await asyncio.to_thread(self._list_sync)

    async def delete(self, thread_id: str) -> None:
        await asyncio.to_thread(self._delete_sync, thread_id)

    async def exists(self, thread_id: str) -> bool:
        return await asyncio.to_thread(self._load_sync, thread_id) is not None
