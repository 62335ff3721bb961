"""Type definitions for subagent and skill configuration."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field


class SubAgentConfig(BaseModel):
    """Subagent definition, inline or parsed from a .md file."""

    name: str
    description: str = ""
    system_prompt: str = ""
    tools: list[str] = Field(default_factory=lambda: ["*"])
    max_steps: int | None = None
    source_dir: Path | None = None

    def allows(self, tool_name: str) -> bool:
        return "*" in self.tools or tool_name in self.tools


class SkillMetadata(BaseModel):
    """A discovered SKILL.md. The body is read only when the skill is loaded."""

    name: str
    description: str
    path: Path
    source: Literal["user", "project"]
