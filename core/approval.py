"""Approval gate for tool calls configured to require a human decision.

interrupt_on maps a tool name to either a bool or a predicate over the call
arguments. The predicate may be sync or async.

    gate = ApprovalGate({"execute": True, "write_file": lambda args: args["file_path"].startswith("/etc")})
"""

from __future__ import annotations

import inspect
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

ApprovalPredicate = Callable[[dict[str, Any]], bool | Awaitable[bool]]


@dataclass(frozen=True)
class DynamicApproval:
    should_approve: ApprovalPredicate | None = None


InterruptOnValue = bool | DynamicApproval | ApprovalPredicate
InterruptOn = dict[str, InterruptOnValue]


@dataclass
class ApprovalRequest:
    approval_id: str
    tool_call_id: str
    tool_name: str
    args: dict[str, Any]


ApprovalCallback = Callable[[ApprovalRequest], bool | Awaitable[bool]]


def rejected_text(tool_name: str) -> str:
    return f"Tool call {tool_name} was rejected by the user and was not executed."


def new_approval_id() -> str:
    return f"approval-{uuid.uuid4().hex[:12]}"


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class ApprovalGate:
    def __init__(self, interrupt_on: InterruptOn | None = None, on_approval_request: ApprovalCallback | None = None):
        self.interrupt_on = dict(interrupt_on or {})
        self.on_approval_request = on_approval_request

    @property
    def can_decide(self) -> bool:
        """Whether a decision callback is available; otherwise gated calls suspend the run."""
        return self.on_approval_request is not None

    def is_gated(self, tool_name: str) -> bool:
        config = self.interrupt_on.get(tool_name)
        return config is not None and config is not False

    async def needs_approval(self, tool_name: str, args: dict[str, Any]) -> bool:
        config = self.interrupt_on.get(tool_name)
        if config is None or config is False:
            return False
        if config is True:
            return True
        predicate = config.should_approve if isinstance(config, DynamicApproval) else config
        if predicate is None:
            return True
        return bool(await _maybe_await(predicate(args)))

    async def decide(self, request: ApprovalRequest) -> bool:
        """Wait for the caller's decision. There is no timeout; cancel the run to stop waiting."""
        if self.on_approval_request is None:
            raise RuntimeError("No approval callback configured")
        approved = bool(await _maybe_await(self.on_approval_request(request)))
        logger.info("Approval %s for %s: %s", request.approval_id, request.tool_name, "approved" if approved else "rejected")
        return approved


def has_approval_tools(interrupt_on: InterruptOn | None) -> bool:
    return any(v is not False for v in (interrupt_on or {}).values())
