"""Bounded event channel decoupling a running loop from its consumer.

The loop and its tools `put()` events; the caller iterates the channel. A
full queue blocks producers until the consumer catches up.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field

from core.events import AgentEvent

DEFAULT_QUEUE_SIZE = 256


class _Closed:
    pass


_CLOSED = _Closed()


@dataclass
class EventChannel:
    maxsize: int = DEFAULT_QUEUE_SIZE
    finished: asyncio.Event = field(default_factory=asyncio.Event)
    _queue: asyncio.Queue = field(init=False)

    def __post_init__(self) -> None:
        self._queue = asyncio.Queue(maxsize=self.maxsize)

    async def put(self, event: AgentEvent) -> None:
        if self.finished.is_set():
            raise RuntimeError("Event channel is closed")
        await self._queue.put(event)

    async def close(self) -> None:
        if self.finished.is_set():
            return
        self.finished.set()
        await self._queue.put(_CLOSED)

    async def __aiter__(self) -> AsyncIterator[AgentEvent]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item
