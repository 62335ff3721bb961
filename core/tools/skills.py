"""load_skill: progressive disclosure of discovered SKILL.md files.

Only names and descriptions reach the model up front. The body of a skill is
read from disk when the model asks for it.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from langchain_core.tools import BaseTool, StructuredTool, ToolException
from pydantic import BaseModel, Field

from config.types import SkillMetadata

TOOL_LOAD_SKILL = "load_skill"


class LoadSkillInput(BaseModel):
    skill_name: str = Field(..., description="Name of the skill to load")


def format_skills_section(skills: Sequence[SkillMetadata]) -> str:
    """System prompt section listing the available skills."""
    lines = [
        "# Skills",
        "",
        f"Specialized skills are available. Call `{TOOL_LOAD_SKILL}` with a skill name to read its instructions "
        "before starting work the skill covers.",
        "",
    ]
    lines.extend(f"- {s.name}: {s.description}" for s in skills)
    return "\n".join(lines)


def _strip_frontmatter(content: str) -> str:
    if not content.startswith("---"):
        return content.strip()
    parts = content.split("---", 2)
    return parts[2].strip() if len(parts) == 3 else content.strip()


def create_skill_tool(skills: Sequence[SkillMetadata]) -> BaseTool | None:
    if not skills:
        return None
    index = {s.name: s for s in skills}

    async def load_skill(skill_name: str) -> str:
        skill = index.get(skill_name)
        if skill is None:
            raise ToolException(f"Error: skill '{skill_name}' not found. Available: {', '.join(sorted(index))}")
        try:
            content = await asyncio.to_thread(skill.path.read_text, encoding="utf-8")
        except OSError as e:
            raise ToolException(f"Error loading skill '{skill_name}': {e}") from e
        return f"Loaded skill: {skill_name}\n\n{_strip_frontmatter(content)}"

    return StructuredTool.from_function(
        coroutine=load_skill,
        name=TOOL_LOAD_SKILL,
        description="Load a skill's instructions. Available skills:\n"
        + "\n".join(f"- {s.name}: {s.description}" for s in skills),
        args_schema=LoadSkillInput,
    )
