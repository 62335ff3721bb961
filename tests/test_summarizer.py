"""Tests for core.memory.summarizer."""

import pytest
from langchain_core.language_models.fake_chat_models import GenericFakeChatModel
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage

from core.memory.summarizer import SUMMARY_PREFIX, estimate_messages_tokens, summarize_if_needed


def _fake_model(text: str = "They discussed files."):
    return GenericFakeChatModel(messages=iter([AIMessage(content=text)]))


def _history(n: int, size: int = 400) -> list:
    messages = []
    for i in range(n):
        messages.append(HumanMessage(content=f"q{i} " + "x" * size))
        messages.append(AIMessage(content=f"a{i} " + "y" * size))
    return messages


@pytest.mark.asyncio
async def test_below_threshold_unchanged():
    messages = _history(3)
    result = await summarize_if_needed(messages, _fake_model(), token_threshold=10_000, keep_messages=2)
    assert not result.summarized
    assert result.messages == messages


@pytest.mark.asyncio
async def test_summarizes_prefix_and_keeps_tail():
    messages = [SystemMessage(content="sys"), *_history(10)]
    result = await summarize_if_needed(messages, _fake_model(), token_threshold=500, keep_messages=4)

    assert result.summarized
    assert isinstance(result.messages[0], SystemMessage)
    summary = result.messages[1]
    assert isinstance(summary, HumanMessage)
    assert summary.content.startswith(SUMMARY_PREFIX)
    assert "They discussed files." in summary.content
    assert summary.additional_kwargs["summary"] is True
    assert result.messages[2:] == messages[-4:]
    assert result.tokens_after < result.tokens_before == estimate_messages_tokens(messages)


@pytest.mark.asyncio
async def test_tail_never_starts_with_tool_result():
    messages = [
        *_history(5),
        AIMessage(content="", tool_calls=[{"id": "c1", "name": "ls", "args": {}, "type": "tool_call"}]),
        ToolMessage(content="z" * 400, tool_call_id="c1"),
        AIMessage(content="done"),
    ]
    result = await summarize_if_needed(messages, _fake_model(), token_threshold=100, keep_messages=2)

    tail = result.messages[1:]
    assert not isinstance(tail[0], ToolMessage)
    assert isinstance(tail[0], AIMessage) and tail[0].tool_calls[0]["id"] == "c1"
    assert len(tail) == 3


@pytest.mark.asyncio
async def test_disabled_or_no_model():
    messages = _history(10)
    assert not (await summarize_if_needed(messages, None, token_threshold=10)).summarized
    assert not (await summarize_if_needed(messages, _fake_model(), token_threshold=10, enabled=False)).summarized
