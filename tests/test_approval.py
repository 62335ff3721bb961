"""Tests for core.approval.ApprovalGate."""

import pytest

from core.approval import ApprovalGate, ApprovalRequest, DynamicApproval, has_approval_tools


@pytest.mark.asyncio
async def test_static_flags():
    gate = ApprovalGate({"execute": True, "ls": False})
    assert await gate.needs_approval("execute", {})
    assert not await gate.needs_approval("ls", {})
    assert not await gate.needs_approval("read_file", {})
    assert not gate.can_decide


@pytest.mark.asyncio
async def test_predicates_sync_and_async():
    async def only_etc(args):
        return args["file_path"].startswith("/etc")

    gate = ApprovalGate(
        {
            "write_file": only_etc,
            "execute": DynamicApproval(lambda args: "rm" in args["command"]),
            "edit_file": DynamicApproval(),
        }
    )
    assert await gate.needs_approval("write_file", {"file_path": "/etc/hosts"})
    assert not await gate.needs_approval("write_file", {"file_path": "/tmp/x"})
    assert await gate.needs_approval("execute", {"command": "rm -rf build"})
    assert not await gate.needs_approval("execute", {"command": "ls"})
    assert await gate.needs_approval("edit_file", {})


@pytest.mark.asyncio
async def test_decide_uses_callback():
    seen = []

    async def callback(request):
        seen.append(request)
        return request.args.get("ok", False)

    gate = ApprovalGate({"execute": True}, callback)
    assert gate.can_decide
    assert await gate.decide(ApprovalRequest("approval-1", "c1", "execute", {"ok": True}))
    assert not await gate.decide(ApprovalRequest("approval-2", "c2", "execute", {}))
    assert [r.approval_id for r in seen] == ["approval-1", "approval-2"]


@pytest.mark.asyncio
async def test_decide_without_callback_raises():
    with pytest.raises(RuntimeError):
        await ApprovalGate({"execute": True}).decide(ApprovalRequest("a", "c", "execute", {}))


def test_has_approval_tools():
    assert not has_approval_tools(None)
    assert not has_approval_tools({"ls": False})
    assert has_approval_tools({"execute": True})
