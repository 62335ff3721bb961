"""Tests for core.model.ChatModelInvoker: LangChain chunk streams to typed model chunks."""

from unittest.mock import MagicMock

import pytest
from langchain_core.messages import AIMessageChunk, HumanMessage
from langchain_core.tools import tool

from core.model import ChatModelInvoker, StepFinish, TextDelta, ToolCallRequest


class _Runnable:
    def __init__(self, chunks):
        self.chunks = chunks
        self.received = None

    async def astream(self, messages):
        self.received = messages
        for chunk in self.chunks:
            yield chunk


@tool
def ls(path: str = "/") -> str:
    """List files."""
    return path


def _model(chunks):
    runnable = _Runnable(chunks)
    model = MagicMock()
    model.bind_tools.return_value = runnable
    model.astream = runnable.astream
    return model, runnable


async def _drain(invoker, tools=(ls,)):
    return [c async for c in invoker.stream([HumanMessage(content="hi")], list(tools))]


@pytest.mark.asyncio
async def test_text_tool_calls_and_finish():
    chunks = [
        AIMessageChunk(content="Hel"),
        AIMessageChunk(
            content="lo",
            tool_call_chunks=[{"name": "ls", "args": '{"path": "/src"}', "id": "c1", "index": 0}],
        ),
        AIMessageChunk(
            content="",
            response_metadata={"finish_reason": "tool_calls"},
            usage_metadata={"input_tokens": 7, "output_tokens": 3, "total_tokens": 10},
        ),
    ]
    model, runnable = _model(chunks)
    out = await _drain(ChatModelInvoker(model, tool_choice="auto"))

    assert out[:2] == [TextDelta("Hel"), TextDelta("lo")]
    assert out[2] == ToolCallRequest("c1", "ls", {"path": "/src"})
    finish = out[3]
    assert isinstance(finish, StepFinish) and finish.finish_reason == "tool_calls"
    assert finish.usage.total_tokens == 10
    model.bind_tools.assert_called_once()
    assert model.bind_tools.call_args.kwargs == {"tool_choice": "auto"}
    assert runnable.received[0].content == "hi"


@pytest.mark.asyncio
async def test_missing_tool_call_id_is_generated():
    chunks = [AIMessageChunk(content="", tool_call_chunks=[{"name": "ls", "args": "{}", "id": None, "index": 0}])]
    model, _ = _model(chunks)
    out = await _drain(ChatModelInvoker(model))
    call = out[0]
    assert isinstance(call, ToolCallRequest) and call.tool_call_id.startswith("call_")


@pytest.mark.asyncio
async def test_unparseable_tool_call_is_dropped():
    chunks = [AIMessageChunk(content="", tool_call_chunks=[{"name": "ls", "args": "[1, 2]", "id": "c1", "index": 0}])]
    model, _ = _model(chunks)
    out = await _drain(ChatModelInvoker(model))
    assert [type(c) for c in out] == [StepFinish]


@pytest.mark.asyncio
async def test_no_tools_skips_binding():
    model, _ = _model([AIMessageChunk(content="plain")])
    out = await _drain(ChatModelInvoker(model), tools=())
    model.bind_tools.assert_not_called()
    assert out[0] == TextDelta("plain")


@pytest.mark.asyncio
async def test_list_content_blocks():
    model, _ = _model([AIMessageChunk(content=[{"type": "text", "text": "block", "index": 0}])])
    out = await _drain(ChatModelInvoker(model))
    assert out[0] == TextDelta("block")
