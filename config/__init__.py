"""Configuration management for deepagent."""

from .loader import SettingsLoader, load_agent_memory, load_settings, load_skills, parse_skill_file, parse_subagent_file
from .schema import AgentSettings
from .types import SkillMetadata, SubAgentConfig

__all__ = [
    "AgentSettings",
    "SettingsLoader",
    "SkillMetadata",
    "SubAgentConfig",
    "load_agent_memory",
    "load_settings",
    "load_skills",
    "parse_skill_file",
    "parse_subagent_file",
]
