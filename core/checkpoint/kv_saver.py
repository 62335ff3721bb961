"""Checkpoint saver on top of any KeyValueStore (namespace ("<namespace>", "checkpoints"))."""

from __future__ import annotations

import logging

from storage.kv_store import KeyValueStore

from .types import BaseCheckpointSaver, Checkpoint, stamp

logger = logging.getLogger(__name__)


class KeyValueStoreSaver(BaseCheckpointSaver):
    def __init__(self, store: KeyValueStore, namespace: str = "default"):
        self.store = store
        self.namespace = namespace

    @property
    def _ns(self) -> tuple[str, str]:
        return (self.namespace, "checkpoints")

    async def save(self, checkpoint: Checkpoint) -> None:
        await self.store.put(self._ns, checkpoint.thread_id, stamp(checkpoint).to_dict())

    async def load(self, thread_id: str) -> Checkpoint | None:
        data = await self.store.get(self._ns, thread_id)
        if data is None:
            return None
        try:
            return Checkpoint.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Discarding unreadable checkpoint for thread %s: %s", thread_id, e)
            return None

    async def list(self) -> list[str]:
        return [item.key for item in await self.store.list(self._ns)]

    async def delete(self, thread_id: str) -> None:
        await self.store.delete(self._ns, thread_id)

    async def exists(self, thread_id: str) -> bool:
        return await self.store.get(self._ns, thread_id) is not None
