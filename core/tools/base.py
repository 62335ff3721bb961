"""Shared plumbing for the built-in tools."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from core.events import AgentEvent
from core.filesystem.backend import FileSystemBackend
from core.state import AgentState

EventSink = Callable[[AgentEvent], Awaitable[None]]


async def _discard(event: AgentEvent) -> None:
    return None


@dataclass
class ToolContext:
    """What a tool sees for the duration of one run."""

    backend: FileSystemBackend
    state: AgentState
    emit: EventSink = _discard
