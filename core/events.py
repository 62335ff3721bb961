"""Typed events streamed from an agent run.

Every variant is a frozen dataclass with a literal `type` tag, and AgentEvent
is the closed union of them, so consumers can dispatch with `match`:

    match event:
        case TextEvent(text=text): ...
        case ToolResultEvent(tool_name=name, is_error=True): ...
        case DoneEvent(status=status): ...

`done` or `error` is always the last event of a run.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal

from langchain_core.messages import BaseMessage, messages_to_dict

from core.state import AgentState, TodoItem

if TYPE_CHECKING:
    from core.checkpoint.types import InterruptData


class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUSPENDED = "suspended"
    COMPLETED = "completed"
    ABORTED = "aborted"
    FAILED = "failed"


# ============================================================================
# Text & steps
# ============================================================================


@dataclass(frozen=True)
class TextEvent:
    type: Literal["text"] = field(default="text", init=False)
    text: str


@dataclass(frozen=True)
class TextSegmentEvent:
    """Coalesced text of one uninterrupted stretch of model output."""

    type: Literal["text-segment"] = field(default="text-segment", init=False)
    text: str


@dataclass(frozen=True)
class UserMessageEvent:
    type: Literal["user-message"] = field(default="user-message", init=False)
    content: str


@dataclass(frozen=True)
class StepStartEvent:
    type: Literal["step-start"] = field(default="step-start", init=False)
    step_number: int


@dataclass(frozen=True)
class StepFinishEvent:
    type: Literal["step-finish"] = field(default="step-finish", init=False)
    step_number: int
    tool_calls: list[dict[str, Any]] = field(default_factory=list)
    finish_reason: str | None = None


# ============================================================================
# Tools
# ============================================================================


@dataclass(frozen=True)
class ToolCallEvent:
    type: Literal["tool-call"] = field(default="tool-call", init=False)
    tool_call_id: str
    tool_name: str
    args: dict[str, Any]


@dataclass(frozen=True)
class ToolResultEvent:
    type: Literal["tool-result"] = field(default="tool-result", init=False)
    tool_call_id: str
    tool_name: str
    result: str
    is_error: bool = False


@dataclass(frozen=True)
class ToolResultEvictedEvent:
    type: Literal["tool-result-evicted"] = field(default="tool-result-evicted", init=False)
    tool_call_id: str
    tool_name: str
    path: str
    tokens: int


@dataclass(frozen=True)
class TodosChangedEvent:
    type: Literal["todos-changed"] = field(default="todos-changed", init=False)
    todos: list[TodoItem]


@dataclass(frozen=True)
class FileWriteStartEvent:
    type: Literal["file-write-start"] = field(default="file-write-start", init=False)
    path: str
    content: str


@dataclass(frozen=True)
class FileWrittenEvent:
    type: Literal["file-written"] = field(default="file-written", init=False)
    path: str
    content: str


@dataclass(frozen=True)
class FileEditedEvent:
    type: Literal["file-edited"] = field(default="file-edited", init=False)
    path: str
    occurrences: int


@dataclass(frozen=True)
class FileReadEvent:
    type: Literal["file-read"] = field(default="file-read", init=False)
    path: str
    lines: int


@dataclass(frozen=True)
class LsEvent:
    type: Literal["ls"] = field(default="ls", init=False)
    path: str
    count: int


@dataclass(frozen=True)
class GlobEvent:
    type: Literal["glob"] = field(default="glob", init=False)
    pattern: str
    count: int


@dataclass(frozen=True)
class GrepEvent:
    type: Literal["grep"] = field(default="grep", init=False)
    pattern: str
    count: int


@dataclass(frozen=True)
class ExecuteStartEvent:
    type: Literal["execute-start"] = field(default="execute-start", init=False)
    command: str
    sandbox_id: str


@dataclass(frozen=True)
class ExecuteFinishEvent:
    type: Literal["execute-finish"] = field(default="execute-finish", init=False)
    command: str
    exit_code: int | None
    truncated: bool
    sandbox_id: str


# ============================================================================
# Subagents
# ============================================================================


@dataclass(frozen=True)
class SubagentStartEvent:
    type: Literal["subagent-start"] = field(default="subagent-start", init=False)
    name: str
    task: str


@dataclass(frozen=True)
class SubagentStepEvent:
    type: Literal["subagent-step"] = field(default="subagent-step", init=False)
    name: str
    step_number: int
    tool_calls: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class SubagentFinishEvent:
    type: Literal["subagent-finish"] = field(default="subagent-finish", init=False)
    name: str
    result: str


# ============================================================================
# Approval, checkpoints, context
# ============================================================================


@dataclass(frozen=True)
class ApprovalRequestedEvent:
    type: Literal["approval-requested"] = field(default="approval-requested", init=False)
    approval_id: str
    tool_call_id: str
    tool_name: str
    args: dict[str, Any]


@dataclass(frozen=True)
class ApprovalResponseEvent:
    type: Literal["approval-response"] = field(default="approval-response", init=False)
    approval_id: str
    approved: bool


@dataclass(frozen=True)
class CheckpointSavedEvent:
    type: Literal["checkpoint-saved"] = field(default="checkpoint-saved", init=False)
    thread_id: str
    step: int


@dataclass(frozen=True)
class CheckpointLoadedEvent:
    type: Literal["checkpoint-loaded"] = field(default="checkpoint-loaded", init=False)
    thread_id: str
    step: int
    message_count: int


@dataclass(frozen=True)
class ContextSummarizedEvent:
    type: Literal["context-summarized"] = field(default="context-summarized", init=False)
    tokens_before: int
    tokens_after: int


# ============================================================================
# Terminal
# ============================================================================


@dataclass(frozen=True)
class ErrorEvent:
    type: Literal["error"] = field(default="error", init=False)
    error: BaseException

    @property
    def message(self) -> str:
        return str(self.error) or self.error.__class__.__name__


@dataclass(frozen=True)
class DoneEvent:
    type: Literal["done"] = field(default="done", init=False)
    state: AgentState
    text: str
    messages: list[BaseMessage]
    status: RunStatus = RunStatus.COMPLETED
    interrupt: InterruptData | None = None


AgentEvent = (
    TextEvent
    | TextSegmentEvent
    | UserMessageEvent
    | StepStartEvent
    | StepFinishEvent
    | ToolCallEvent
    | ToolResultEvent
    | ToolResultEvictedEvent
    | TodosChangedEvent
    | FileWriteStartEvent
    | FileWrittenEvent
    | FileEditedEvent
    | FileReadEvent
    | LsEvent
    | GlobEvent
    | GrepEvent
    | ExecuteStartEvent
    | ExecuteFinishEvent
    | SubagentStartEvent
    | SubagentStepEvent
    | SubagentFinishEvent
    | ApprovalRequestedEvent
    | ApprovalResponseEvent
    | CheckpointSavedEvent
    | CheckpointLoadedEvent
    | ContextSummarizedEvent
    | ErrorEvent
    | DoneEvent
)

TERMINAL_EVENT_TYPES = frozenset({"done", "error"})


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, BaseException):
        return str(value) or value.__class__.__name__
    if isinstance(value, (AgentState, TodoItem)) or hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, list):
        if value and all(isinstance(v, BaseMessage) for v in value):
            return messages_to_dict(value)
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


def event_to_dict(event: AgentEvent) -> dict[str, Any]:
    """JSON-compatible view of an event, e.g. for SSE or logging."""
    return {f.name: _plain(getattr(event, f.name)) for f in fields(event)}
