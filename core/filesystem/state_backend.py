"""Backend storing files in AgentState.files (lives as long as the thread's state)."""

from __future__ import annotations

from core.state import AgentState, FileData

from .backend import EditResult, FileInfo, FileSystemBackend, GrepMatch, WriteResult
from .utils import (
    create_file_data,
    file_exists_error,
    file_not_found,
    format_read_response,
    glob_match,
    grep_files,
    normalize_path,
    perform_string_replacement,
    relative_to,
    update_file_data,
    validate_path,
)


def list_children(files: dict[str, FileData], path: str) -> list[FileInfo]:
    """Direct children of `path` from a flat path->FileData mapping; subdirectories are implied."""
    base = validate_path(path)
    entries: dict[str, FileInfo] = {}
    for file_path, data in files.items():
        if not file_path.startswith(base):
            continue
        rest = file_path[len(base) :]
        if "/" in rest:
            dir_path = base + rest.split("/", 1)[0] + "/"
            entries.setdefault(dir_path, FileInfo(path=dir_path, is_dir=True))
        else:
            entries[file_path] = FileInfo(path=file_path, size=data.size, modified_at=data.modified_at)
    return sorted(entries.values(), key=lambda e: e.path)


def glob_files(files: dict[str, FileData], pattern: str, path: str) -> list[FileInfo]:
    base = validate_path(path)
    results = [
        FileInfo(path=file_path, size=data.size, modified_at=data.modified_at)
        for file_path, data in files.items()
        if file_path.startswith(base) and glob_match(relative_to(file_path, base), pattern.lstrip("/"))
    ]
    return sorted(results, key=lambda e: e.path)


class StateBackend(FileSystemBackend):
    def __init__(self, state: AgentState):
        self.state = state

    @property
    def files(self) -> dict[str, FileData]:
        return self.state.files

    async def ls_info(self, path: str) -> list[FileInfo]:
        return list_children(self.files, path)

    async def read(self, file_path: str, offset: int = 0, limit: int = 2000) -> str:
        data = self.files.get(normalize_path(file_path))
        if data is None:
            return file_not_found(file_path)
        return format_read_response(data, offset, limit)

    async def read_raw(self, file_path: str) -> FileData:
        data = self.files.get(normalize_path(file_path))
        if data is None:
            raise FileNotFoundError(file_path)
        return data

    async def write(self, file_path: str, content: str) -> WriteResult:
        key = normalize_path(file_path)
        if key in self.files:
            return WriteResult(success=False, error=file_exists_error(file_path))
        self.files[key] = create_file_data(content)
        return WriteResult(success=True, path=key)

    async def edit(self, file_path: str, old_string: str, new_string: str, replace_all: bool = False) -> EditResult:
        key = normalize_path(file_path)
        data = self.files.get(key)
        if data is None:
            return EditResult(success=False, error=file_not_found(file_path))
        result = perform_string_replacement(data.text, old_string, new_string, replace_all)
        if isinstance(result, str):
            return EditResult(success=False, error=result)
        new_content, occurrences = result
        self.files[key] = update_file_data(data, new_content)
        return EditResult(success=True, path=key, occurrences=occurrences)

    async def grep_raw(self, pattern: str, path: str | None = None, glob: str | None = None) -> list[GrepMatch] | str:
        return grep_files(self.files, pattern, path, glob)

    async def glob_info(self, pattern: str, path: str = "/") -> list[FileInfo]:
        return glob_files(self.files, pattern, path)
