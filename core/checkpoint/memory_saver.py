"""In-process checkpoint saver. Checkpoints are lost when the process exits."""

from __future__ import annotations

import logging
from typing import Any

from .types import BaseCheckpointSaver, Checkpoint, stamp

logger = logging.getLogger(__name__)


class MemorySaver(BaseCheckpointSaver):
    def __init__(self, namespace: str = "default"):
        self.namespace = namespace
        # Stored serialized so later mutation of a live run cannot leak into a saved checkpoint
        self._store: dict[str, dict[str, Any]] = {}

    def _key(self, thread_id: str) -> str:
        return f"{self.namespace}:{thread_id}"

    async def save(self, checkpoint: Checkpoint) -> None:
        self._store[self._key(checkpoint.thread_id)] = stamp(checkpoint).to_dict()

    async def load(self, thread_id: str) -> Checkpoint | None:
        data = self._store.get(self._key(thread_id))
        if data is None:
            return None
        try:
            return Checkpoint.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Discarding unreadable checkpoint for thread %s: %s", thread_id, e)
            return None

    async def list(self) -> list[str]:
        prefix = f"{self.namespace}:"
        return [key[len(prefix) :] for key in self._store if key.startswith(prefix)]

    async def delete(self, thread_id: str) -> None:
        self._store.pop(self._key(thread_id), None)

    async def exists(self, thread_id: str) -> bool:
        return self._key(thread_id) in self._store

    def clear(self) -> None:
        """Drop every checkpoint in this saver's namespace."""
        prefix = f"{self.namespace}:"
        for key in [k for k in self._store if k.startswith(prefix)]:
            del self._store[key]

    def __len__(self) -> int:
        prefix = f"{self.namespace}:"
        return sum(1 for k in self._store if k.startswith(prefix))
