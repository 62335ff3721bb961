"""Tests for config.loader: three-tier merge, subagent and skill files, agent memory."""

import json

import pytest

from config.loader import SettingsLoader, load_agent_memory, load_skills, parse_skill_file, parse_subagent_file


@pytest.fixture
def dirs(tmp_path):
    home = tmp_path / "home"
    (home / ".deepagent" / "agents").mkdir(parents=True)
    project = tmp_path / "project"
    (project / ".deepagent" / "agents").mkdir(parents=True)
    return home, project


def _write_json(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")


class TestSettingsLoader:
    def test_system_defaults_only(self, dirs):
        home, _ = dirs
        settings = SettingsLoader(home_dir=home).load()
        assert settings.runtime.max_steps == 100
        assert settings.checkpoint.kind == "memory"

    def test_project_overrides_user_overrides_defaults(self, dirs):
        home, project = dirs
        _write_json(home / ".deepagent" / "runtime.json", {"runtime": {"max_steps": 20, "system_prompt": "user"}})
        _write_json(project / ".deepagent" / "runtime.json", {"runtime": {"max_steps": 5}})

        settings = SettingsLoader(workspace_root=project, home_dir=home).load()
        assert settings.runtime.max_steps == 5
        assert settings.runtime.system_prompt == "user"
        assert settings.eviction.token_limit == 20000

    def test_overrides_win(self, dirs):
        home, project = dirs
        _write_json(project / ".deepagent" / "runtime.json", {"runtime": {"max_steps": 5}})
        settings = SettingsLoader(workspace_root=project, home_dir=home).load({"runtime": {"max_steps": 7}})
        assert settings.runtime.max_steps == 7

    def test_env_vars_expanded(self, dirs, monkeypatch, tmp_path):
        home, project = dirs
        monkeypatch.setenv("CP_DIR", str(tmp_path / "cps"))
        _write_json(project / ".deepagent" / "runtime.json", {"checkpoint": {"kind": "file", "dir": "${CP_DIR}"}})
        settings = SettingsLoader(workspace_root=project, home_dir=home).load()
        assert settings.checkpoint.dir == str(tmp_path / "cps")

    def test_unreadable_config_ignored(self, dirs):
        home, project = dirs
        (project / ".deepagent" / "runtime.json").write_text("{oops", encoding="utf-8")
        assert SettingsLoader(workspace_root=project, home_dir=home).load().runtime.max_steps == 100

    def test_none_values_fall_back_to_defaults(self, dirs):
        home, _ = dirs
        settings = SettingsLoader(home_dir=home).load({"runtime": {"max_steps": None}})
        assert settings.runtime.max_steps == 100

    def test_subagents_discovered_project_wins(self, dirs):
        home, project = dirs
        (home / ".deepagent" / "agents" / "r.md").write_text("---\nname: researcher\ndescription: home\n---\nHome prompt")
        (project / ".deepagent" / "agents" / "r.md").write_text(
            "---\nname: researcher\ndescription: project\ntools: ls, grep\n---\nProject prompt"
        )
        (project / ".deepagent" / "agents" / "w.md").write_text("---\nname: writer\n---\nWrite.")

        settings = SettingsLoader(workspace_root=project, home_dir=home).load()
        by_name = {s.name: s for s in settings.subagents}
        assert set(by_name) == {"researcher", "writer"}
        assert by_name["researcher"].description == "project"
        assert by_name["researcher"].tools == ["ls", "grep"]
        assert by_name["writer"].tools == ["*"]

    def test_inline_subagents_take_precedence(self, dirs):
        home, project = dirs
        (project / ".deepagent" / "agents" / "w.md").write_text("---\nname: writer\n---\nFrom file.")
        settings = SettingsLoader(workspace_root=project, home_dir=home).load(
            {"subagents": [{"name": "writer", "system_prompt": "Inline."}]}
        )
        assert [s.system_prompt for s in settings.subagents] == ["Inline."]


class TestParseSubagentFile:
    def test_full_file(self, tmp_path):
        path = tmp_path / "reviewer.md"
        path.write_text("---\nname: reviewer\ndescription: Reviews diffs\ntools: [read_file, grep]\nmax_steps: 8\n---\n\nYou review code.\n")
        config = parse_subagent_file(path)
        assert config.name == "reviewer"
        assert config.tools == ["read_file", "grep"]
        assert config.max_steps == 8
        assert config.system_prompt == "You review code."
        assert config.source_dir == tmp_path.resolve()
        assert config.allows("grep") and not config.allows("execute")

    @pytest.mark.parametrize(
        "content",
        ["no frontmatter", "---\ndescription: nameless\n---\nbody", "---\nname: [unclosed\n---\nbody", "---\nonly start"],
    )
    def test_invalid_files(self, tmp_path, content):
        path = tmp_path / "bad.md"
        path.write_text(content)
        assert parse_subagent_file(path) is None

    def test_missing_file(self, tmp_path):
        assert parse_subagent_file(tmp_path / "absent.md") is None


def _write_skill(base, dirname, name, description="Does things", body="Step one."):
    skill_dir = base / dirname
    skill_dir.mkdir(parents=True)
    fm = f"name: {name}\n" + (f"description: {description}\n" if description else "")
    (skill_dir / "SKILL.md").write_text(f"---\n{fm}---\n{body}\n", encoding="utf-8")
    return skill_dir / "SKILL.md"


class TestSkills:
    def test_parse_skill_file(self, tmp_path):
        path = _write_skill(tmp_path, "pdf", "pdf", "Work with PDF files")
        skill = parse_skill_file(path, "user")
        assert skill.name == "pdf"
        assert skill.description == "Work with PDF files"
        assert skill.path == path.resolve()
        assert skill.source == "user"

    def test_description_required(self, tmp_path):
        path = _write_skill(tmp_path, "pdf", "pdf", description=None)
        assert parse_skill_file(path, "user") is None

    def test_project_overrides_user_by_name(self, tmp_path):
        user, project = tmp_path / "user", tmp_path / "project"
        _write_skill(user / "skills", "pdf", "pdf", "user pdf")
        _write_skill(user / "skills", "csv", "csv", "user csv")
        _write_skill(project / "skills", "pdf-project", "pdf", "project pdf")

        skills = load_skills(user, project)
        assert sorted(skills) == ["csv", "pdf"]
        assert skills["pdf"].description == "project pdf"
        assert skills["pdf"].source == "project"
        assert skills["csv"].source == "user"

    def test_hidden_and_symlinked_dirs_skipped(self, tmp_path):
        user = tmp_path / "user"
        _write_skill(user / "skills", ".hidden", "hidden")
        real = _write_skill(tmp_path / "elsewhere", "linked", "linked").parent
        (user / "skills" / "linked").symlink_to(real, target_is_directory=True)
        _write_skill(user / "skills", "visible", "visible")

        assert list(load_skills(user, None)) == ["visible"]

    def test_missing_dirs(self, tmp_path):
        assert load_skills(None, tmp_path / "absent") == {}

    def test_settings_loader_filters_disabled_skills(self, dirs):
        home, project = dirs
        _write_skill(home / ".deepagent" / "coder" / "skills", "pdf", "pdf")
        _write_skill(project / ".deepagent" / "skills", "csv", "csv")
        _write_json(project / ".deepagent" / "runtime.json", {"runtime": {"agent_id": "coder"}, "skills": {"skills": {"csv": False}}})

        settings = SettingsLoader(workspace_root=project, home_dir=home).load()
        assert [s.name for s in settings.loaded_skills] == ["pdf"]

    def test_user_skills_need_agent_id(self, dirs):
        home, project = dirs
        _write_skill(home / ".deepagent" / "coder" / "skills", "pdf", "pdf")
        settings = SettingsLoader(workspace_root=project, home_dir=home).load()
        assert settings.loaded_skills == []


class TestAgentMemory:
    def test_no_memory(self, tmp_path):
        assert load_agent_memory(tmp_path / "user", tmp_path / "project") is None
        assert load_agent_memory(None, None) is None

    def test_user_project_and_extra_files(self, tmp_path):
        user, project = tmp_path / "user", tmp_path / "project"
        user.mkdir()
        project.mkdir()
        (user / "agent.md").write_text("  Prefers tabs.\n", encoding="utf-8")
        (user / "decisions.md").write_text("Use sqlite.", encoding="utf-8")
        (user / "empty.md").write_text("   \n", encoding="utf-8")
        (project / "agent.md").write_text("Run make test.", encoding="utf-8")

        section = load_agent_memory(user, project)
        assert section.startswith("<agent_memory>\n# Agent Memory (User-Level)")
        assert section.endswith("</agent_memory>")
        assert f"stored at {user / 'agent.md'}:\n\nPrefers tabs." in section
        assert "# Agent Memory (Project-Level)" in section
        assert "# Additional Context Files\n\n## decisions.md\n\nUse sqlite." in section
        assert "empty.md" not in section
        assert section.index("User-Level") < section.index("Project-Level") < section.index("Additional Context")

    def test_settings_loader_memory_toggle(self, dirs):
        home, project = dirs
        (project / ".deepagent" / "agent.md").write_text("Project notes.", encoding="utf-8")

        settings = SettingsLoader(workspace_root=project, home_dir=home).load()
        assert "Project notes." in settings.loaded_memory

        settings = SettingsLoader(workspace_root=project, home_dir=home).load({"memory": {"agent_memory": False}})
        assert settings.loaded_memory is None
