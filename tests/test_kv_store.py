"""Tests for storage.kv_store."""

import pytest

from storage import InMemoryStore, SQLiteStore, make_key


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryStore()
        return
    s = SQLiteStore(tmp_path / "kv.db")
    yield s
    s.close()


@pytest.mark.asyncio
async def test_put_get_delete(store):
    ns = ("project-a", "filesystem")
    assert await store.get(ns, "k") is None
    await store.put(ns, "k", {"content": ["a"]})
    await store.put(ns, "k", {"content": ["b"]})
    assert await store.get(ns, "k") == {"content": ["b"]}
    await store.delete(ns, "k")
    assert await store.get(ns, "k") is None
    await store.delete(ns, "k")


@pytest.mark.asyncio
async def test_list_is_scoped_to_exact_namespace(store):
    await store.put(("a",), "x", {"v": 1})
    await store.put(("a", "nested"), "y", {"v": 2})
    await store.put(("b",), "z", {"v": 3})
    items = await store.list(("a",))
    assert [(i.key, i.value) for i in items] == [("x", {"v": 1})]


@pytest.mark.asyncio
async def test_returned_values_are_copies():
    store = InMemoryStore()
    value = {"items": [1]}
    await store.put(("ns",), "k", value)
    value["items"].append(2)
    fetched = await store.get(("ns",), "k")
    fetched["items"].append(3)
    assert await store.get(("ns",), "k") == {"items": [1]}
    assert len(store) == 1


@pytest.mark.asyncio
async def test_sqlite_store_persists(tmp_path):
    first = SQLiteStore(tmp_path / "kv.db")
    await first.put(("ns",), "k", {"v": 1})
    first.close()
    second = SQLiteStore(tmp_path / "kv.db")
    assert await second.get(("ns",), "k") == {"v": 1}
    second.close()


def test_make_key():
    assert make_key(("a", "b"), "c") == "a:b:c"
