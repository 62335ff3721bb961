"""Message history helpers: dangling tool calls, cancellation markers, text extraction."""

from __future__ import annotations

from typing import Any

from langchain_core.messages import AIMessage, BaseMessage, ToolMessage

PENDING_APPROVAL_KEY = "pending_approval"


def cancelled_text(tool_name: str, tool_call_id: str) -> str:
    return (
        f"Tool call {tool_name} with id {tool_call_id} was cancelled - "
        "another message came in before it could be completed."
    )


def cancelled_tool_message(tool_name: str, tool_call_id: str) -> ToolMessage:
    return ToolMessage(
        content=cancelled_text(tool_name, tool_call_id),
        tool_call_id=tool_call_id,
        name=tool_name,
        status="error",
        additional_kwargs={"cancelled": True},
    )


def pending_approval_message(tool_name: str, tool_call_id: str, approval_id: str) -> ToolMessage:
    """Placeholder result for a call suspended on an approval decision."""
    return ToolMessage(
        content=f"Tool call {tool_name} with id {tool_call_id} is awaiting approval.",
        tool_call_id=tool_call_id,
        name=tool_name,
        additional_kwargs={PENDING_APPROVAL_KEY: True, "approval_id": approval_id},
    )


def is_pending_approval(message: BaseMessage) -> bool:
    return isinstance(message, ToolMessage) and bool(message.additional_kwargs.get(PENDING_APPROVAL_KEY))


def answered_tool_call_ids(messages: list[BaseMessage]) -> set[str]:
    return {m.tool_call_id for m in messages if isinstance(m, ToolMessage)}


def has_dangling_tool_calls(messages: list[BaseMessage]) -> bool:
    answered = answered_tool_call_ids(messages)
    return any(
        call["id"] not in answered
        for m in messages
        if isinstance(m, AIMessage)
        for call in m.tool_calls
    )


def patch_tool_calls(messages: list[BaseMessage]) -> list[BaseMessage]:
    """Give every unanswered assistant tool call a synthetic cancelled result.

    The result is inserted directly after the assistant message (after any
    results it already has) so the history stays well-formed for the model.
    Returns a new list; the input is not modified.
    """
    if not has_dangling_tool_calls(messages):
        return list(messages)

    answered = answered_tool_call_ids(messages)
    patched: list[BaseMessage] = []
    pending: list[ToolMessage] = []
    for message in messages:
        if pending and not isinstance(message, ToolMessage):
            patched.extend(pending)
            pending = []
        patched.append(message)
        if isinstance(message, AIMessage):
            pending = [
                cancelled_tool_message(call["name"], call["id"])
                for call in message.tool_calls
                if call["id"] not in answered
            ]
    patched.extend(pending)
    return patched


def message_text(message: BaseMessage) -> str:
    """Plain text of a message, joining text blocks of list-style content."""
    content: Any = message.content
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)
