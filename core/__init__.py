"""deepagent core: the step loop, its events and the DeepAgent facade."""

from core.agent import DeepAgent
from core.checkpoint import ResumeDecision, ResumeOptions
from core.events import AgentEvent, RunStatus
from core.loop import AgentLoop, RunResult, StepResult, SummarizationSettings
from core.model import ChatModelInvoker, ModelInvoker
from core.state import AgentState

__all__ = [
    "AgentEvent",
    "AgentLoop",
    "AgentState",
    "ChatModelInvoker",
    "DeepAgent",
    "ModelInvoker",
    "ResumeDecision",
    "ResumeOptions",
    "RunResult",
    "RunStatus",
    "StepResult",
    "SummarizationSettings",
]
