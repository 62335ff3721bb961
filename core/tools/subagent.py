"""task: delegate a self-contained piece of work to a subagent.

The subagent shares the parent's files but starts with an empty todo list
and its own message history. Its final text is the tool result.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from langchain_core.tools import BaseTool, StructuredTool, ToolException
from pydantic import BaseModel, Field

from config.types import SubAgentConfig
from core.events import SubagentFinishEvent, SubagentStartEvent

from .base import ToolContext

GENERAL_PURPOSE = SubAgentConfig(
    name="general-purpose",
    description="General-purpose agent for multi-step research and file work. Has the same tools as you.",
)

SubagentRunner = Callable[[SubAgentConfig, str, ToolContext], Awaitable[str]]


class TaskInput(BaseModel):
    description: str = Field(..., description="Detailed, self-contained description of the work to do")
    subagent_type: str = Field(default=GENERAL_PURPOSE.name, description="Name of the subagent to use")


def _describe(subagents: list[SubAgentConfig]) -> str:
    lines = ["Launch a subagent to handle a complex, self-contained task. Available subagents:"]
    lines.extend(f"- {s.name}: {s.description}" for s in subagents)
    return "\n".join(lines)


def create_task_tool(ctx: ToolContext, subagents: list[SubAgentConfig], run: SubagentRunner) -> BaseTool:
    available = {s.name: s for s in [GENERAL_PURPOSE, *subagents]}

    async def task(description: str, subagent_type: str = GENERAL_PURPOSE.name) -> str:
        config = available.get(subagent_type)
        if config is None:
            raise ToolException(
                f"Error: unknown subagent '{subagent_type}'. Available: {', '.join(sorted(available))}"
            )
        await ctx.emit(SubagentStartEvent(name=config.name, task=description))
        result = await run(config, description, ctx)
        await ctx.emit(SubagentFinishEvent(name=config.name, result=result))
        return result

    return StructuredTool.from_function(
        coroutine=task,
        name="task",
        description=_describe(list(available.values())),
        args_schema=TaskInput,
    )
