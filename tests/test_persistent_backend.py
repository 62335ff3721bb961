"""Tests for core.filesystem.persistent_backend over both KeyValueStore implementations."""

import pytest

from core.filesystem import PersistentBackend
from storage.kv_store import InMemoryStore, SQLiteStore


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryStore()
    return SQLiteStore(tmp_path / "kv.db")


@pytest.mark.asyncio
async def test_files_survive_backend_instances(store):
    await PersistentBackend(store).write("/memories/notes.md", "remember this")

    other = PersistentBackend(store)
    assert (await other.read_raw("/memories/notes.md")).text == "remember this"
    assert [e.path for e in await other.ls_info("/")] == ["/memories/"]


@pytest.mark.asyncio
async def test_namespaces_are_isolated(store):
    await PersistentBackend(store, namespace="agent-a").write("/x.txt", "a")
    b = PersistentBackend(store, namespace="agent-b")
    assert (await b.read("/x.txt")).startswith("Error: File")
    assert (await b.write("/x.txt", "b")).success


@pytest.mark.asyncio
async def test_edit_grep_glob(store):
    backend = PersistentBackend(store)
    await backend.write("/a.py", "x = 1\ny = 2")
    result = await backend.edit("/a.py", "y = 2", "y = 3")
    assert result.success

    matches = await backend.grep_raw(r"y = \d")
    assert [(m.path, m.line, m.text) for m in matches] == [("/a.py", 2, "y = 3")]
    assert [f.path for f in await backend.glob_info("*.py")] == ["/a.py"]


@pytest.mark.asyncio
async def test_delete_file(store):
    backend = PersistentBackend(store)
    await backend.write("/gone.txt", "bye")
    await backend.delete_file("/gone.txt")
    with pytest.raises(FileNotFoundError):
        await backend.read_raw("/gone.txt")
