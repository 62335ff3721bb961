"""write_todos: replace the agent's todo list."""

from __future__ import annotations

from langchain_core.tools import BaseTool, StructuredTool
from pydantic import BaseModel, Field

from core.events import TodosChangedEvent
from core.state import TodoItem, TodoStatus

from .base import ToolContext

WRITE_TODOS_DESCRIPTION = (
    "Replace the todo list used to plan and track multi-step work. "
    "Send the complete list every time; statuses are pending, in_progress, completed, cancelled."
)


class TodoInput(BaseModel):
    id: str = Field(..., description="Stable identifier")
    content: str = Field(..., description="What needs to be done")
    status: TodoStatus = Field(default=TodoStatus.PENDING)


class WriteTodosInput(BaseModel):
    todos: list[TodoInput] = Field(..., description="The full todo list")


def create_todo_tool(ctx: ToolContext) -> BaseTool:
    async def write_todos(todos: list[TodoInput]) -> str:
        parsed = [TodoInput.model_validate(t) if isinstance(t, dict) else t for t in todos]
        items = [TodoItem(id=t.id, content=t.content, status=TodoStatus(t.status)) for t in parsed]
        ctx.state.todos[:] = items
        await ctx.emit(TodosChangedEvent(todos=list(items)))
        done = sum(1 for t in items if t.status is TodoStatus.COMPLETED)
        return f"Updated todo list ({done}/{len(items)} completed)"

    return StructuredTool.from_function(
        coroutine=write_todos,
        name="write_todos",
        description=WRITE_TODOS_DESCRIPTION,
        args_schema=WriteTodosInput,
    )
