"""Model invocation: one model turn as a stream of typed chunks.

The loop only depends on ModelInvoker. ChatModelInvoker adapts any LangChain
chat model (bind_tools + astream); tests substitute a scripted invoker.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessageChunk, BaseMessage
from langchain_core.tools import BaseTool

logger = logging.getLogger(__name__)


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: Usage) -> Usage:
        return Usage(
            self.input_tokens + other.input_tokens,
            self.output_tokens + other.output_tokens,
            self.total_tokens + other.total_tokens,
        )


@dataclass
class TextDelta:
    text: str


@dataclass
class ToolCallRequest:
    tool_call_id: str
    tool_name: str
    args: dict[str, Any] = field(default_factory=dict)


@dataclass
class StepFinish:
    finish_reason: str | None = None
    usage: Usage | None = None


ModelChunk = TextDelta | ToolCallRequest | StepFinish


class ModelInvoker(ABC):
    """Runs one model turn over the given history and tools."""

    # Optional model with `ainvoke`, used for summarization
    chat_model: Any = None

    @abstractmethod
    def stream(
        self,
        messages: Sequence[BaseMessage],
        tools: Sequence[BaseTool],
        abort_signal: asyncio.Event | None = None,
    ) -> AsyncIterator[ModelChunk]: ...


def _chunk_text(chunk: AIMessageChunk) -> str:
    content = chunk.content
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def _usage(chunk: AIMessageChunk | None) -> Usage | None:
    meta = getattr(chunk, "usage_metadata", None) if chunk is not None else None
    if not meta:
        return None
    return Usage(
        input_tokens=meta.get("input_tokens", 0),
        output_tokens=meta.get("output_tokens", 0),
        total_tokens=meta.get("total_tokens", 0),
    )


class ChatModelInvoker(ModelInvoker):
    def __init__(self, model: BaseChatModel, **bind_kwargs: Any):
        self.chat_model = model
        self.bind_kwargs = bind_kwargs

    @classmethod
    def from_model_name(cls, model_name: str, **model_kwargs: Any) -> ChatModelInvoker:
        """Build from a "provider:model" string via langchain's init_chat_model."""
        from langchain.chat_models import init_chat_model

        return cls(init_chat_model(model_name, **model_kwargs))

    async def stream(
        self,
        messages: Sequence[BaseMessage],
        tools: Sequence[BaseTool],
        abort_signal: asyncio.Event | None = None,
    ) -> AsyncIterator[ModelChunk]:
        runnable = self.chat_model.bind_tools(list(tools), **self.bind_kwargs) if tools else self.chat_model
        merged: AIMessageChunk | None = None
        async for chunk in runnable.astream(list(messages)):
            if not isinstance(chunk, AIMessageChunk):
                continue
            merged = chunk if merged is None else merged + chunk
            text = _chunk_text(chunk)
            if text:
                yield TextDelta(text)

        if merged is not None:
            for call in merged.tool_calls:
                yield ToolCallRequest(
                    tool_call_id=call.get("id") or f"call_{uuid.uuid4().hex[:16]}",
                    tool_name=call["name"],
                    args=call.get("args") or {},
                )
            for invalid in merged.invalid_tool_calls:
                logger.warning("Model produced an unparseable tool call %s: %s", invalid.get("name"), invalid.get("error"))

        meta = merged.response_metadata if merged is not None else {}
        finish_reason = meta.get("finish_reason") or meta.get("stop_reason")
        yield StepFinish(finish_reason=finish_reason, usage=_usage(merged))
