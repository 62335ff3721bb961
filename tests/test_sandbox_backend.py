"""Tests for sandbox.base file operations, driven through LocalSandbox."""

import shutil
import sys

import pytest

from sandbox import LocalSandbox

pytestmark = pytest.mark.skipif(shutil.which("bash") is None, reason="bash not available")


@pytest.fixture
def sandbox(tmp_path):
    return LocalSandbox(cwd=str(tmp_path), timeout=10, python_command=sys.executable)


@pytest.mark.asyncio
async def test_execute_merges_output_and_exit_code(sandbox):
    result = await sandbox.execute("echo out; echo err >&2; exit 3")
    assert result.exit_code == 3
    assert "out" in result.output and "err" in result.output
    assert sandbox.id.startswith("local-")


@pytest.mark.asyncio
async def test_execute_timeout(tmp_path):
    sandbox = LocalSandbox(cwd=str(tmp_path), timeout=0.2)
    result = await sandbox.execute("sleep 5")
    assert result.exit_code == 124
    assert "timed out" in result.output


@pytest.mark.asyncio
async def test_execute_truncates_output(tmp_path):
    sandbox = LocalSandbox(cwd=str(tmp_path), max_output_size=10)
    result = await sandbox.execute("printf '%050d' 0")
    assert result.truncated
    assert len(result.output) == 10


@pytest.mark.asyncio
async def test_file_operations(sandbox, tmp_path):
    path = str(tmp_path / "dir" / "a.txt")
    assert (await sandbox.write(path, "it's \"quoted\"\nline2")).success
    assert not (await sandbox.write(path, "again")).success

    data = await sandbox.read_raw(path)
    assert data.content == ["it's \"quoted\"", "line2"]

    edit = await sandbox.edit(path, "line2", "line two")
    assert edit.success and edit.occurrences == 1
    assert (await sandbox.read(path)).endswith("     2\tline two")

    missing = await sandbox.edit(path, "absent", "x")
    assert not missing.success and "not found" in missing.error


@pytest.mark.asyncio
async def test_edit_multiple_occurrences(sandbox, tmp_path):
    path = str(tmp_path / "dup.txt")
    await sandbox.write(path, "a a")
    result = await sandbox.edit(path, "a", "b")
    assert not result.success
    assert "appears 2 times" in result.error


@pytest.mark.asyncio
async def test_read_missing(sandbox, tmp_path):
    path = str(tmp_path / "missing.txt")
    assert (await sandbox.read(path)).startswith("Error: File")
    with pytest.raises(FileNotFoundError):
        await sandbox.read_raw(path)


@pytest.mark.asyncio
async def test_ls_grep_glob(sandbox, tmp_path):
    (tmp_path / "pkg").mkdir()
    (tmp_path / "pkg" / "m.py").write_text("def f():\n    pass\n")
    (tmp_path / "notes.md").write_text("def is not code here\n")

    entries = await sandbox.ls_info(str(tmp_path))
    assert [(e.path, e.is_dir) for e in entries] == [
        (str(tmp_path / "notes.md"), False),
        (str(tmp_path / "pkg") + "/", True),
    ]

    matches = await sandbox.grep_raw("^def", str(tmp_path), "*.py")
    assert [(m.path, m.line) for m in matches] == [(str(tmp_path / "pkg" / "m.py"), 1)]
    assert (await sandbox.grep_raw("[", str(tmp_path))).startswith("Invalid regex")

    found = await sandbox.glob_info("**/*.py", str(tmp_path))
    assert [f.path for f in found] == [str(tmp_path / "pkg" / "m.py")]


@pytest.mark.asyncio
async def test_write_failure_is_not_reported_as_existing(sandbox, tmp_path):
    (tmp_path / "afile").write_text("plain file")
    result = await sandbox.write(str(tmp_path / "afile" / "child.txt"), "x")
    assert not result.success
    assert "already exists" not in result.error
    assert "Traceback" in result.error


@pytest.mark.asyncio
async def test_grep_glob_supports_alternation(sandbox, tmp_path):
    (tmp_path / "a.py").write_text("TODO: py\n")
    (tmp_path / "b.md").write_text("TODO: md\n")
    (tmp_path / "c.txt").write_text("TODO: txt\n")

    matches = await sandbox.grep_raw("TODO", str(tmp_path), "*.{py,md}")
    assert sorted(m.path for m in matches) == [str(tmp_path / "a.py"), str(tmp_path / "b.md")]
