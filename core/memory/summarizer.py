"""Conversation summarization when history outgrows a token threshold.

Older messages are folded into a single model-written summary; the leading
system message (if any) and the most recent messages are kept verbatim.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import Any

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage

logger = logging.getLogger(__name__)

DEFAULT_SUMMARIZATION_THRESHOLD = 170000
DEFAULT_KEEP_MESSAGES = 6
CHARS_PER_TOKEN = 4

SUMMARY_PREFIX = "[Previous conversation summary]"

SUMMARY_PROMPT = """\
Provide a detailed summary for continuing our conversation. Include:
1. Key decisions made and their rationale
2. Files created, modified, or read and their current state
3. Errors encountered and how they were resolved
4. Outstanding tasks and current progress
Be concise but retain all information needed to continue seamlessly."""


@dataclass
class SummarizationResult:
    messages: list[BaseMessage]
    summarized: bool
    tokens_before: int
    tokens_after: int


def _content_chars(content: Any) -> int:
    if isinstance(content, str):
        return len(content)
    total = 0
    for block in content or []:
        if isinstance(block, str):
            total += len(block)
        elif isinstance(block, dict):
            total += len(block.get("text", "")) if block.get("type") == "text" else len(json.dumps(block, default=str))
    return total


def estimate_messages_tokens(messages: list[BaseMessage]) -> int:
    chars = 0
    for msg in messages:
        chars += _content_chars(msg.content)
        if isinstance(msg, AIMessage) and msg.tool_calls:
            chars += len(json.dumps([{"name": c["name"], "args": c["args"]} for c in msg.tool_calls], default=str))
    return math.ceil(chars / CHARS_PER_TOKEN)


def needs_summarization(messages: list[BaseMessage], token_threshold: int = DEFAULT_SUMMARIZATION_THRESHOLD) -> bool:
    return estimate_messages_tokens(messages) >= token_threshold


def _split_index(messages: list[BaseMessage], keep_messages: int) -> int:
    """Index where the kept tail starts; a tool result never starts the tail."""
    split_idx = len(messages) - keep_messages
    while 0 < split_idx < len(messages) and isinstance(messages[split_idx], ToolMessage):
        split_idx -= 1
    return split_idx


def _format_messages_for_summary(messages: list[BaseMessage]) -> str:
    parts = []
    for msg in messages:
        role = msg.__class__.__name__.replace("Message", "")
        content = msg.content if isinstance(msg.content, str) else json.dumps(msg.content, default=str)
        if isinstance(msg, AIMessage) and msg.tool_calls:
            calls = ", ".join(f"{c['name']}({json.dumps(c['args'], default=str)})" for c in msg.tool_calls)
            content = f"{content}\n[tool calls: {calls}]" if content else f"[tool calls: {calls}]"
        if len(content) > 2000:
            content = content[:2000] + "..."
        parts.append(f"[{role}]: {content}")
    return "\n\n".join(parts)


async def generate_summary(messages: list[BaseMessage], model: Any) -> str:
    formatted = _format_messages_for_summary(messages)
    response = await model.ainvoke(
        [
            SystemMessage(content=SUMMARY_PROMPT),
            HumanMessage(content=f"Here is the conversation to summarize:\n\n{formatted}"),
        ]
    )
    content = response.content if hasattr(response, "content") else str(response)
    return content if isinstance(content, str) else json.dumps(content, default=str)


async def summarize_if_needed(
    messages: list[BaseMessage],
    model: Any,
    token_threshold: int = DEFAULT_SUMMARIZATION_THRESHOLD,
    keep_messages: int = DEFAULT_KEEP_MESSAGES,
    enabled: bool = True,
) -> SummarizationResult:
    """Summarize `messages` when they reach `token_threshold` tokens.

    `model` is any object with an async `ainvoke(messages)` returning a
    message, such as a LangChain chat model.
    """
    tokens_before = estimate_messages_tokens(messages)
    unchanged = SummarizationResult(list(messages), False, tokens_before, tokens_before)
    if not enabled or model is None or len(messages) <= keep_messages or tokens_before < token_threshold:
        return unchanged

    leading: list[BaseMessage] = []
    body = list(messages)
    if body and isinstance(body[0], SystemMessage):
        leading, body = body[:1], body[1:]

    split_idx = _split_index(body, keep_messages)
    if split_idx <= 0:
        return unchanged

    to_summarize, to_keep = body[:split_idx], body[split_idx:]
    summary = await generate_summary(to_summarize, model)
    summary_message = HumanMessage(content=f"{SUMMARY_PREFIX}\n{summary}", additional_kwargs={"summary": True})

    result = [*leading, summary_message, *to_keep]
    tokens_after = estimate_messages_tokens(result)
    logger.info(
        "Summarized %d messages (%d -> %d estimated tokens)", len(to_summarize), tokens_before, tokens_after
    )
    return SummarizationResult(result, True, tokens_before, tokens_after)
