"""Tests for core.filesystem.local_backend: disk-backed virtual paths."""

import pytest

from core.filesystem import FilesystemBackend


@pytest.fixture
def backend(tmp_path):
    return FilesystemBackend(tmp_path)


@pytest.mark.asyncio
async def test_write_creates_parent_dirs(backend, tmp_path):
    result = await backend.write("/pkg/mod.py", "x = 1\n")
    assert result.success and result.path == "/pkg/mod.py"
    assert (tmp_path / "pkg" / "mod.py").read_text() == "x = 1\n"


@pytest.mark.asyncio
async def test_write_refuses_existing(backend, tmp_path):
    (tmp_path / "a.txt").write_text("keep")
    result = await backend.write("/a.txt", "overwrite")
    assert not result.success
    assert (tmp_path / "a.txt").read_text() == "keep"


@pytest.mark.asyncio
async def test_edit_and_read(backend, tmp_path):
    (tmp_path / "a.txt").write_text("alpha\nbeta\n")
    result = await backend.edit("/a.txt", "beta", "gamma")
    assert result.success and result.occurrences == 1
    assert (tmp_path / "a.txt").read_text() == "alpha\ngamma\n"
    assert (await backend.read("/a.txt", limit=2)) == "     1\talpha\n     2\tgamma"


@pytest.mark.asyncio
async def test_paths_outside_root_are_invisible(tmp_path):
    root = tmp_path / "root"
    root.mkdir()
    secret = tmp_path / "secret.txt"
    secret.write_text("secret")
    (root / "link.txt").symlink_to(secret)
    backend = FilesystemBackend(root)

    assert (await backend.read("/../secret.txt")).startswith("Error: File")
    with pytest.raises(FileNotFoundError):
        await backend.read_raw("/link.txt")
    assert not (await backend.write("/link.txt", "x")).success


@pytest.mark.asyncio
async def test_ls_marks_directories(backend, tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "main.py").write_text("print('hi')")
    (tmp_path / "README.md").write_text("# hi")

    entries = await backend.ls_info("/")
    assert [(e.path, e.is_dir) for e in entries] == [("/README.md", False), ("/src/", True)]
    assert await backend.ls_info("/missing") == []


@pytest.mark.asyncio
async def test_grep_and_glob(backend, tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "a.py").write_text("def foo():\n    return 1\n")
    (tmp_path / "src" / "b.md").write_text("def in markdown\n")

    matches = await backend.grep_raw(r"^def", "/", "*.py")
    assert [(m.path, m.line) for m in matches] == [("/src/a.py", 1)]

    found = await backend.glob_info("**/*.md")
    assert [f.path for f in found] == ["/src/b.md"]
