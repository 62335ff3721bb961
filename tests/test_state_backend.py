"""Tests for core.filesystem.state_backend: the in-state virtual filesystem."""

import pytest

from core.filesystem import StateBackend
from core.filesystem.utils import EMPTY_CONTENT_WARNING
from core.state import AgentState


@pytest.mark.asyncio
async def test_write_read_edit_scenario(state_backend):
    write = await state_backend.write("/a.txt", "hello\nworld")
    assert write.success and write.path == "/a.txt"

    edit = await state_backend.edit("/a.txt", "world", "there")
    assert edit.success and edit.occurrences == 1

    content = await state_backend.read("/a.txt")
    assert content == "     1\thello\n     2\tthere"


@pytest.mark.asyncio
async def test_write_existing_file_fails(state_backend):
    await state_backend.write("/a.txt", "one")
    result = await state_backend.write("/a.txt", "two")
    assert not result.success
    assert "already exists" in result.error
    assert (await state_backend.read_raw("/a.txt")).text == "one"


@pytest.mark.asyncio
async def test_edit_ambiguous_without_replace_all(state_backend):
    await state_backend.write("/dup.txt", "x x x")
    result = await state_backend.edit("/dup.txt", "x", "y")
    assert not result.success
    assert "multiple occurrences" in result.error

    result = await state_backend.edit("/dup.txt", "x", "y", replace_all=True)
    assert result.success and result.occurrences == 3
    assert (await state_backend.read_raw("/dup.txt")).text == "y y y"


@pytest.mark.asyncio
async def test_edit_keeps_created_at(state_backend):
    await state_backend.write("/a.txt", "abc")
    before = await state_backend.read_raw("/a.txt")
    await state_backend.edit("/a.txt", "b", "B")
    after = await state_backend.read_raw("/a.txt")
    assert after.created_at == before.created_at
    assert after.text == "aBc"


@pytest.mark.asyncio
async def test_missing_file(state_backend):
    assert await state_backend.read("/nope.txt") == "Error: File '/nope.txt' not found"
    with pytest.raises(FileNotFoundError):
        await state_backend.read_raw("/nope.txt")
    result = await state_backend.edit("/nope.txt", "a", "b")
    assert not result.success and "not found" in result.error


@pytest.mark.asyncio
async def test_read_offset_limit_and_empty(state_backend):
    await state_backend.write("/lines.txt", "\n".join(f"line{i}" for i in range(1, 11)))
    assert await state_backend.read("/lines.txt", offset=8, limit=5) == "     9\tline9\n    10\tline10"
    assert "exceeds file length" in await state_backend.read("/lines.txt", offset=50)

    await state_backend.write("/empty.txt", "")
    assert await state_backend.read("/empty.txt") == EMPTY_CONTENT_WARNING


@pytest.mark.asyncio
async def test_ls_lists_direct_children_with_implied_dirs(state_backend):
    await state_backend.write("/a.txt", "a")
    await state_backend.write("/src/main.py", "print(1)")
    await state_backend.write("/src/pkg/mod.py", "x = 1")

    root = await state_backend.ls_info("/")
    assert [(e.path, e.is_dir) for e in root] == [("/a.txt", False), ("/src/", True)]

    src = await state_backend.ls_info("/src")
    assert [e.path for e in src] == ["/src/main.py", "/src/pkg/"]


@pytest.mark.asyncio
async def test_grep_and_glob(state_backend):
    await state_backend.write("/src/a.py", "import os\nx = 1")
    await state_backend.write("/src/b.txt", "import nothing")
    await state_backend.write("/docs/readme.md", "no imports here")

    matches = await state_backend.grep_raw(r"^import", path="/src", glob="*.py")
    assert [(m.path, m.line, m.text) for m in matches] == [("/src/a.py", 1, "import os")]

    error = await state_backend.grep_raw("(")
    assert isinstance(error, str) and error.startswith("Invalid regex pattern")

    found = await state_backend.glob_info("**/*.py")
    assert [f.path for f in found] == ["/src/a.py"]
    found = await state_backend.glob_info("*.{md,txt}", "/docs")
    assert [f.path for f in found] == ["/docs/readme.md"]


@pytest.mark.asyncio
async def test_paths_are_normalized(state_backend):
    await state_backend.write("notes//today.txt", "hi")
    assert "/notes/today.txt" in state_backend.files
    assert (await state_backend.read_raw("/notes/./today.txt")).text == "hi"


@pytest.mark.asyncio
async def test_writes_land_in_shared_state():
    state = AgentState()
    await StateBackend(state).write("/shared.txt", "data")
    assert state.files["/shared.txt"].content == ["data"]
