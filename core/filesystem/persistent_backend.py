"""Backend persisting files in a KeyValueStore, surviving across threads and processes."""

from __future__ import annotations

import logging

from core.state import FileData
from storage.kv_store import KeyValueStore

from .backend import EditResult, FileInfo, FileSystemBackend, GrepMatch, WriteResult
from .state_backend import glob_files, list_children
from .utils import (
    create_file_data,
    file_exists_error,
    file_not_found,
    format_read_response,
    grep_files,
    normalize_path,
    perform_string_replacement,
    update_file_data,
)

logger = logging.getLogger(__name__)


class PersistentBackend(FileSystemBackend):
    def __init__(self, store: KeyValueStore, namespace: str = "default"):
        self.store = store
        self.namespace = namespace

    @property
    def _ns(self) -> tuple[str, str]:
        return (self.namespace, "filesystem")

    async def _get(self, file_path: str) -> FileData | None:
        value = await self.store.get(self._ns, normalize_path(file_path))
        return FileData.from_dict(value) if value is not None else None

    async def _put(self, key: str, data: FileData) -> None:
        await self.store.put(self._ns, key, data.to_dict())

    async def _all_files(self) -> dict[str, FileData]:
        files: dict[str, FileData] = {}
        for item in await self.store.list(self._ns):
            try:
                files[item.key] = FileData.from_dict(item.value)
            except (KeyError, TypeError) as e:
                logger.warning("Skipping malformed file record %s: %s", item.key, e)
        return files

    async def ls_info(self, path: str) -> list[FileInfo]:
        return list_children(await self._all_files(), path)

    async def read(self, file_path: str, offset: int = 0, limit: int = 2000) -> str:
        data = await self._get(file_path)
        if data is None:
            return file_not_found(file_path)
        return format_read_response(data, offset, limit)

    async def read_raw(self, file_path: str) -> FileData:
        data = await self._get(file_path)
        if data is None:
            raise FileNotFoundError(file_path)
        return data

    async def write(self, file_path: str, content: str) -> WriteResult:
        key = normalize_path(file_path)
        if await self._get(key) is not None:
            return WriteResult(success=False, error=file_exists_error(file_path))
        await self._put(key, create_file_data(content))
        return WriteResult(success=True, path=key)

    async def edit(self, file_path: str, old_string: str, new_string: str, replace_all: bool = False) -> EditResult:
        key = normalize_path(file_path)
        data = await self._get(key)
        if data is None:
            return EditResult(success=False, error=file_not_found(file_path))
        result = perform_string_replacement(data.text, old_string, new_string, replace_all)
        if isinstance(result, str):
            return EditResult(success=False, error=result)
        new_content, occurrences = result
        await self._put(key, update_file_data(data, new_content))
        return EditResult(success=True, path=key, occurrences=occurrences)

    async def grep_raw(self, pattern: str, path: str | None = None, glob: str | None = None) -> list[GrepMatch] | str:
        return grep_files(await self._all_files(), pattern, path, glob)

    async def glob_info(self, pattern: str, path: str = "/") -> list[FileInfo]:
        return glob_files(await self._all_files(), pattern, path)

    async def delete_file(self, file_path: str) -> None:
        await self.store.delete(self._ns, normalize_path(file_path))
