"""execute: run a shell command in the sandbox backend."""

from __future__ import annotations

from langchain_core.tools import BaseTool, StructuredTool
from pydantic import BaseModel, Field

from core.events import ExecuteFinishEvent, ExecuteStartEvent
from core.filesystem.backend import SandboxBackend

from .base import ToolContext

EXECUTE_DESCRIPTION = "Run a shell command in the sandbox and return its combined output and exit code."


class ExecuteInput(BaseModel):
    command: str = Field(..., description="Shell command to run")


def create_execute_tool(ctx: ToolContext) -> BaseTool | None:
    """None unless the run's backend can execute commands."""
    backend = ctx.backend
    if not isinstance(backend, SandboxBackend):
        return None

    async def execute(command: str) -> str:
        await ctx.emit(ExecuteStartEvent(command=command, sandbox_id=backend.id))
        response = await backend.execute(command)
        await ctx.emit(
            ExecuteFinishEvent(
                command=command,
                exit_code=response.exit_code,
                truncated=response.truncated,
                sandbox_id=backend.id,
            )
        )
        output = response.output
        if response.truncated:
            output += "\n... [output truncated]"
        return f"{output}\n[exit code: {response.exit_code}]"

    return StructuredTool.from_function(
        coroutine=execute,
        name="execute",
        description=EXECUTE_DESCRIPTION,
        args_schema=ExecuteInput,
    )
