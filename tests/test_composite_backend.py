"""Tests for core.filesystem.composite_backend: prefix routing."""

import pytest

from core.filesystem import CompositeBackend, PersistentBackend, StateBackend
from core.state import AgentState
from storage.kv_store import InMemoryStore


@pytest.fixture
def parts():
    state = AgentState()
    memories = PersistentBackend(InMemoryStore())
    archive = PersistentBackend(InMemoryStore())
    composite = CompositeBackend(
        StateBackend(state),
        {"/memories/": memories, "/memories/archive/": archive},
    )
    return state, memories, archive, composite


@pytest.mark.asyncio
async def test_routes_strip_and_restore_prefix(parts):
    state, memories, _, composite = parts
    result = await composite.write("/memories/notes.md", "note")
    assert result.path == "/memories/notes.md"
    assert (await memories.read_raw("/notes.md")).text == "note"
    assert "/memories/notes.md" not in state.files


@pytest.mark.asyncio
async def test_longest_prefix_wins(parts):
    _, memories, archive, composite = parts
    await composite.write("/memories/archive/old.md", "old")
    assert (await archive.read_raw("/old.md")).text == "old"
    with pytest.raises(FileNotFoundError):
        await memories.read_raw("/archive/old.md")


@pytest.mark.asyncio
async def test_unrouted_paths_use_default(parts):
    state, _, _, composite = parts
    await composite.write("/scratch.txt", "tmp")
    assert state.files["/scratch.txt"].text == "tmp"


@pytest.mark.asyncio
async def test_root_ls_shows_routes(parts):
    _, _, _, composite = parts
    await composite.write("/scratch.txt", "tmp")
    paths = [e.path for e in await composite.ls_info("/")]
    assert paths == ["/memories/", "/memories/archive/", "/scratch.txt"]

    await composite.write("/memories/a.md", "a")
    assert [e.path for e in await composite.ls_info("/memories")] == ["/memories/a.md"]


@pytest.mark.asyncio
async def test_root_grep_and_glob_fan_out(parts):
    _, _, _, composite = parts
    await composite.write("/todo.md", "TODO: default")
    await composite.write("/memories/m.md", "TODO: memory")

    matches = await composite.grep_raw("TODO")
    assert sorted(m.path for m in matches) == ["/memories/m.md", "/todo.md"]

    found = await composite.glob_info("**/*.md")
    assert [f.path for f in found] == ["/memories/m.md", "/todo.md"]


@pytest.mark.asyncio
async def test_not_found_error_mentions_caller_path(parts):
    _, _, _, composite = parts
    assert await composite.read("/memories/missing.md") == "Error: File '/memories/missing.md' not found"


@pytest.mark.asyncio
async def test_root_grep_results_in_path_order(parts):
    _, _, _, composite = parts
    await composite.write("/zeta.md", "hit\nhit")
    await composite.write("/alpha.md", "hit")
    await composite.write("/memories/archive/b.md", "hit")
    await composite.write("/memories/a.md", "hit")

    matches = await composite.grep_raw("hit")
    assert [(m.path, m.line) for m in matches] == [
        ("/alpha.md", 1),
        ("/memories/a.md", 1),
        ("/memories/archive/b.md", 1),
        ("/zeta.md", 1),
        ("/zeta.md", 2),
    ]
