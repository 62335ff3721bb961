"""Checkpoint record and the saver interface.

A checkpoint is the complete resumable snapshot of one thread: message
history, agent state, the step counter, and a pending approval (if the run
suspended on one). Each thread has at most one checkpoint; saving overwrites.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Literal

from langchain_core.messages import BaseMessage, messages_from_dict, messages_to_dict

from core.state import AgentState, utc_now


@dataclass
class InterruptData:
    """A tool call waiting on an approval decision."""

    tool_call_id: str
    tool_name: str
    args: dict[str, Any]
    step: int
    approval_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "toolCall": {"toolCallId": self.tool_call_id, "toolName": self.tool_name, "args": self.args},
            "approvalId": self.approval_id,
            "step": self.step,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InterruptData:
        call = data.get("toolCall", {})
        return cls(
            tool_call_id=call["toolCallId"],
            tool_name=call["toolName"],
            args=call.get("args") or {},
            step=int(data.get("step", 0)),
            approval_id=data.get("approvalId", ""),
        )


@dataclass
class ResumeDecision:
    type: Literal["approve", "deny"]
    modified_args: dict[str, Any] | None = None


@dataclass
class ResumeOptions:
    decisions: list[ResumeDecision] = field(default_factory=list)


@dataclass
class Checkpoint:
    thread_id: str
    step: int
    messages: list[BaseMessage]
    state: AgentState
    interrupt: InterruptData | None = None
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "threadId": self.thread_id,
            "step": self.step,
            "messages": messages_to_dict(self.messages),
            "state": self.state.to_dict(),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.interrupt is not None:
            data["interrupt"] = self.interrupt.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Checkpoint:
        interrupt = data.get("interrupt")
        return cls(
            thread_id=data["threadId"],
            step=int(data["step"]),
            messages=messages_from_dict(data.get("messages", [])),
            state=AgentState.from_dict(data.get("state")),
            interrupt=InterruptData.from_dict(interrupt) if interrupt else None,
            created_at=data.get("createdAt") or utc_now(),
            updated_at=data.get("updatedAt") or utc_now(),
        )


class BaseCheckpointSaver(ABC):
    """Storage for checkpoints, one per thread id within a namespace.

    `load` returns None for a missing thread and for a record that cannot be
    read back; implementations log the latter rather than raise.
    """

    namespace: str = "default"

    @abstractmethod
    async def save(self, checkpoint: Checkpoint) -> None: ...

    @abstractmethod
    async def load(self, thread_id: str) -> Checkpoint | None: ...

    @abstractmethod
    async def list(self) -> list[str]: ...

    @abstractmethod
    async def delete(self, thread_id: str) -> None: ...

    async def exists(self, thread_id: str) -> bool:
        return await self.load(thread_id) is not None


def stamp(checkpoint: Checkpoint) -> Checkpoint:
    """Set updated_at to now; savers call this on every save."""
    checkpoint.updated_at = utc_now()
    return checkpoint
