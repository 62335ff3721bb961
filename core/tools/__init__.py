"""Built-in agent tools."""

from core.tools.base import ToolContext
from core.tools.execute import create_execute_tool
from core.tools.filesystem import create_filesystem_tools
from core.tools.skills import create_skill_tool, format_skills_section
from core.tools.subagent import GENERAL_PURPOSE, create_task_tool
from core.tools.todos import create_todo_tool

__all__ = [
    "GENERAL_PURPOSE",
    "ToolContext",
    "create_execute_tool",
    "create_filesystem_tools",
    "create_skill_tool",
    "create_task_tool",
    "create_todo_tool",
    "format_skills_section",
]
