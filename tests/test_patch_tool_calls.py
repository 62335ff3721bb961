"""Tests for core.messages.patch_tool_calls and friends."""

from langchain_core.messages import AIMessage, HumanMessage, ToolMessage

from core.messages import cancelled_text, has_dangling_tool_calls, message_text, patch_tool_calls


def _ai(*ids: str, content: str = "") -> AIMessage:
    return AIMessage(content=content, tool_calls=[{"id": i, "name": "ls", "args": {}, "type": "tool_call"} for i in ids])


def test_well_formed_history_unchanged():
    messages = [HumanMessage(content="hi"), _ai("c1"), ToolMessage(content="ok", tool_call_id="c1")]
    assert not has_dangling_tool_calls(messages)
    patched = patch_tool_calls(messages)
    assert patched == messages
    assert patched is not messages


def test_dangling_calls_get_cancelled_results_after_existing_ones():
    messages = [
        HumanMessage(content="hi"),
        _ai("c1", "c2"),
        ToolMessage(content="ok", tool_call_id="c1"),
        HumanMessage(content="interrupting"),
    ]
    patched = patch_tool_calls(messages)

    assert [type(m).__name__ for m in patched] == ["HumanMessage", "AIMessage", "ToolMessage", "ToolMessage", "HumanMessage"]
    synthetic = patched[3]
    assert synthetic.tool_call_id == "c2"
    assert synthetic.content == cancelled_text("ls", "c2")
    assert synthetic.status == "error"
    assert len(messages) == 4


def test_dangling_call_at_end():
    patched = patch_tool_calls([HumanMessage(content="hi"), _ai("c1")])
    assert patched[-1].tool_call_id == "c1"
    assert not has_dangling_tool_calls(patched)


def test_message_text_joins_blocks():
    message = AIMessage(content=[{"type": "text", "text": "a"}, {"type": "tool_use", "id": "x"}, {"type": "text", "text": "b"}])
    assert message_text(message) == "ab"
