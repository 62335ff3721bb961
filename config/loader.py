"""Settings, subagent, skill and agent memory loader.

Configuration priority (highest to lowest):
1. Overrides
2. Project config (.deepagent/runtime.json in workspace)
3. User config (~/.deepagent/runtime.json)
4. System defaults (config/defaults/runtime.json)

Subagents are Markdown files with YAML frontmatter, discovered in
~/.deepagent/agents and <workspace>/.deepagent/agents (project wins on name
clashes):

    ---
    name: researcher
    description: Digs through files and reports findings
    tools: [ls, read_file, grep]
    ---
    You are a careful researcher...

Skills live one per directory as <dir>/<name>/SKILL.md, with the same
frontmatter shape (name and description required). They are discovered in
~/.deepagent/<agent_id>/skills and <workspace>/.deepagent/skills.

Agent memory is plain Markdown: ~/.deepagent/<agent_id>/agent.md plus any
other .md files beside it, and <workspace>/.deepagent/agent.md.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

import yaml

from config.schema import AgentSettings
from config.types import SkillMetadata, SubAgentConfig

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".deepagent"
MEMORY_FILE_NAME = "agent.md"
SKILL_FILE_NAME = "SKILL.md"


class SettingsLoader:
    def __init__(self, workspace_root: str | Path | None = None, home_dir: str | Path | None = None):
        self.workspace_root = Path(workspace_root).resolve() if workspace_root else None
        self.home_dir = Path(home_dir) if home_dir else Path.home()
        self._system_defaults_dir = Path(__file__).parent / "defaults"

    # ── Three-tier runtime config ──

    def load(self, overrides: dict[str, Any] | None = None) -> AgentSettings:
        """Load settings with three-tier merge, then attach subagents, skills and agent memory."""
        final_config = self._deep_merge(
            self._load_system_defaults(),
            self._load_user_config(),
            self._load_project_config(),
        )
        if overrides:
            final_config = self._deep_merge(final_config, overrides)

        final_config = self._expand_env_vars(final_config)
        final_config = self._remove_none_values(final_config)

        discovered = self.load_subagents()
        inline = final_config.get("subagents") or []
        inline_names = {s.get("name") for s in inline if isinstance(s, dict)}
        final_config["subagents"] = [
            *inline,
            *(s.model_dump() for s in discovered.values() if s.name not in inline_names),
        ]
        settings = AgentSettings(**final_config)

        agent_id = settings.runtime.agent_id
        if settings.memory.agent_memory:
            settings.loaded_memory = self.load_agent_memory(agent_id)
        if settings.skills.enabled:
            settings.loaded_skills = [
                s for s in self.load_skills(agent_id).values() if settings.skills.skills.get(s.name, True)
            ]
        return settings

    # ── Subagent .md parsing ──

    def load_subagents(self) -> dict[str, SubAgentConfig]:
        """Load subagents by priority (low -> high, later overrides earlier)."""
        agents: dict[str, SubAgentConfig] = {}
        self._load_subagents_from_dir(self.home_dir / CONFIG_DIR_NAME / "agents", agents)
        if self.workspace_root:
            self._load_subagents_from_dir(self.workspace_root / CONFIG_DIR_NAME / "agents", agents)
        return agents

    def _load_subagents_from_dir(self, dir_path: Path, into: dict[str, SubAgentConfig]) -> None:
        if not dir_path.is_dir():
            return
        for md_file in sorted(dir_path.glob("*.md")):
            config = parse_subagent_file(md_file)
            if config:
                into[config.name] = config

    # ── Skills and agent memory ──

    def user_agent_dir(self, agent_id: str | None) -> Path | None:
        return self.home_dir / CONFIG_DIR_NAME / agent_id if agent_id else None

    def project_dir(self) -> Path | None:
        return self.workspace_root / CONFIG_DIR_NAME if self.workspace_root else None

    def load_skills(self, agent_id: str | None = None) -> dict[str, SkillMetadata]:
        """Discover skills. Project skills override user skills with the same name."""
        return load_skills(self.user_agent_dir(agent_id), self.project_dir())

    def load_agent_memory(self, agent_id: str | None = None) -> str | None:
        return load_agent_memory(self.user_agent_dir(agent_id), self.project_dir())

    # ── Internal helpers ──

    def _load_system_defaults(self) -> dict[str, Any]:
        return self._load_json(self._system_defaults_dir / "runtime.json")

    def _load_user_config(self) -> dict[str, Any]:
        return self._load_json(self.home_dir / CONFIG_DIR_NAME / "runtime.json")

    def _load_project_config(self) -> dict[str, Any]:
        if not self.workspace_root:
            return {}
        return self._load_json(self.workspace_root / CONFIG_DIR_NAME / "runtime.json")

    @staticmethod
    def _load_json(path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable config %s: %s", path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring config %s: top level must be an object", path)
            return {}
        return data

    def _deep_merge(self, *dicts: dict[str, Any]) -> dict[str, Any]:
        """Deep merge multiple dictionaries. Later dicts override earlier ones."""
        result: dict[str, Any] = {}
        for d in dicts:
            for key, value in d.items():
                if key not in result:
                    result[key] = value
                elif value is None:
                    continue
                elif isinstance(value, dict) and isinstance(result[key], dict):
                    result[key] = self._deep_merge(result[key], value)
                else:
                    result[key] = value
        return result

    def _expand_env_vars(self, obj: Any) -> Any:
        """Recursively expand ${VAR} and ~ in string values."""
        if isinstance(obj, dict):
            return {k: self._expand_env_vars(v) for k, v in obj.items()}
        if isinstance(obj, list):
            return [self._expand_env_vars(v) for v in obj]
        if isinstance(obj, str):
            return os.path.expandvars(os.path.expanduser(obj))
        return obj

    def _remove_none_values(self, obj: Any) -> Any:
        """Recursively remove None values to allow Pydantic defaults."""
        if isinstance(obj, dict):
            return {k: self._remove_none_values(v) for k, v in obj.items() if v is not None}
        if isinstance(obj, list):
            return [self._remove_none_values(v) for v in obj if v is not None]
        return obj


def _read_frontmatter(path: Path) -> tuple[dict[str, Any], str] | None:
    """Split a Markdown file into (frontmatter, body). None if it has no usable frontmatter."""
    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        return None

    if not content.startswith("---"):
        return None
    parts = content.split("---", 2)
    if len(parts) < 3:
        return None

    try:
        fm = yaml.safe_load(parts[1])
    except yaml.YAMLError as e:
        logger.warning("Invalid frontmatter in %s: %s", path, e)
        return None

    if not isinstance(fm, dict):
        return None
    return fm, parts[2].strip()


def parse_subagent_file(path: Path) -> SubAgentConfig | None:
    """Parse Markdown file with YAML frontmatter into SubAgentConfig."""
    parsed = _read_frontmatter(path)
    if parsed is None:
        return None
    fm, body = parsed
    if "name" not in fm:
        return None

    tools = fm.get("tools", ["*"])
    if isinstance(tools, str):
        tools = [t.strip() for t in tools.split(",") if t.strip()]

    return SubAgentConfig(
        name=fm["name"],
        description=fm.get("description", ""),
        tools=tools,
        max_steps=fm.get("max_steps"),
        system_prompt=body,
        source_dir=path.resolve().parent,
    )


def parse_skill_file(path: Path, source: str) -> SkillMetadata | None:
    """Parse a SKILL.md. Both name and description are required."""
    parsed = _read_frontmatter(path)
    if parsed is None:
        return None
    fm, _ = parsed
    name, description = fm.get("name"), fm.get("description")
    if not name or not description:
        logger.warning("Skipping skill %s: frontmatter needs name and description", path)
        return None
    return SkillMetadata(name=str(name), description=str(description).strip(), path=path.resolve(), source=source)


def _skills_in(skills_dir: Path, source: str) -> list[SkillMetadata]:
    if not skills_dir.is_dir():
        return []
    found = []
    for entry in sorted(skills_dir.iterdir()):
        # Hidden and symlinked directories are never followed.
        if entry.name.startswith(".") or entry.is_symlink() or not entry.is_dir():
            continue
        skill_file = entry / SKILL_FILE_NAME
        if skill_file.is_symlink() or not skill_file.is_file():
            continue
        skill = parse_skill_file(skill_file, source)
        if skill:
            found.append(skill)
    return found


def load_skills(user_dir: Path | None, project_dir: Path | None) -> dict[str, SkillMetadata]:
    skills: dict[str, SkillMetadata] = {}
    for base, source in ((user_dir, "user"), (project_dir, "project")):
        if base is None:
            continue
        for skill in _skills_in(base / "skills", source):
            skills[skill.name] = skill
    return skills


def _read_memory(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8").strip()
    except OSError:
        return ""


MEMORY_USAGE = """## How to Use This Memory

- The memory above is long-term context kept in Markdown files. It is already in your context.
- User-level memory holds preferences and context that apply across projects.
- Project-level memory holds conventions and decisions for this workspace.
- Do not use memory for temporary task tracking; use write_todos for that."""


def load_agent_memory(user_dir: Path | None, project_dir: Path | None) -> str | None:
    """Build the <agent_memory> system prompt section, or None when there is no memory.

    Empty files are skipped. Extra .md files in the user agent directory are
    included after agent.md, in name order.
    """
    sections: list[str] = []
    extras: list[str] = []

    if user_dir is not None:
        user_file = user_dir / MEMORY_FILE_NAME
        if text := _read_memory(user_file):
            sections.append(
                f"# Agent Memory (User-Level)\n\nThe following is your persistent memory stored at {user_file}:\n\n{text}"
            )
        if user_dir.is_dir():
            for md_file in sorted(user_dir.glob("*.md")):
                if md_file.name == MEMORY_FILE_NAME:
                    continue
                if text := _read_memory(md_file):
                    extras.append(f"## {md_file.name}\n\n{text}")

    if project_dir is not None:
        project_file = project_dir / MEMORY_FILE_NAME
        if text := _read_memory(project_file):
            sections.append(
                "# Agent Memory (Project-Level)\n\n"
                f"The following is project-specific context stored at {project_file}:\n\n{text}"
            )

    if extras:
        sections.append("# Additional Context Files\n\n" + "\n\n".join(extras))
    if not sections:
        return None

    body = "\n\n---\n\n".join(sections)
    return f"<agent_memory>\n{body}\n\n---\n\n{MEMORY_USAGE}\n</agent_memory>"


def load_settings(
    workspace_root: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> AgentSettings:
    """Convenience function to load settings."""
    return SettingsLoader(workspace_root=workspace_root).load(overrides=overrides)
