"""Local filesystem backend - direct disk I/O below a root directory.

Virtual paths ("/src/app.py") are anchored at `root_dir`; anything resolving
outside it is treated as nonexistent.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from pathlib import Path

from core.state import FileData

from .backend import EditResult, FileInfo, FileSystemBackend, GrepMatch, WriteResult
from .utils import (
    compile_pattern,
    file_exists_error,
    file_not_found,
    format_read_response,
    glob_match,
    normalize_path,
    perform_string_replacement,
    split_lines,
)

logger = logging.getLogger(__name__)


def _mtime_iso(p: Path) -> str:
    return datetime.fromtimestamp(p.stat().st_mtime, UTC).isoformat()


def _ctime_iso(p: Path) -> str:
    return datetime.fromtimestamp(p.stat().st_ctime, UTC).isoformat()


class FilesystemBackend(FileSystemBackend):
    """Backend that operates directly on the local filesystem."""

    def __init__(self, root_dir: str | Path | None = None):
        self.root = Path(root_dir or Path.cwd()).resolve()

    def _resolve(self, path: str | None) -> Path | None:
        target = (self.root / normalize_path(path).lstrip("/")).resolve()
        if target != self.root and self.root not in target.parents:
            logger.warning("Path escapes backend root: %s", path)
            return None
        return target

    def _virtual(self, p: Path) -> str:
        rel = p.relative_to(self.root).as_posix()
        return "/" if rel == "." else "/" + rel

    # ------------------------------------------------------------------
    # Sync implementations, run via asyncio.to_thread
    # ------------------------------------------------------------------

    def _ls_sync(self, path: str) -> list[FileInfo]:
        p = self._resolve(path)
        if p is None or not p.is_dir():
            return []
        entries = []
        try:
            for item in p.iterdir():
                if item.is_dir():
                    entries.append(FileInfo(path=self._virtual(item) + "/", is_dir=True))
                elif item.is_file():
                    entries.append(FileInfo(path=self._virtual(item), size=item.stat().st_size, modified_at=_mtime_iso(item)))
        except OSError as e:
            logger.warning("Failed to list %s: %s", p, e)
            return []
        return sorted(entries, key=lambda e: e.path)

    def _read_raw_sync(self, file_path: str) -> FileData:
        p = self._resolve(file_path)
        if p is None or not p.is_file():
            raise FileNotFoundError(file_path)
        content = p.read_text(encoding="utf-8", errors="replace")
        return FileData(content=split_lines(content), created_at=_ctime_iso(p), modified_at=_mtime_iso(p))

    def _write_sync(self, file_path: str, content: str) -> WriteResult:
        p = self._resolve(file_path)
        if p is None:
            return WriteResult(success=False, error=f"Error: Path '{file_path}' is outside the workspace")
        if p.exists():
            return WriteResult(success=False, error=file_exists_error(file_path))
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text(content, encoding="utf-8")
        except OSError as e:
            return WriteResult(success=False, error=f"Error writing file '{file_path}': {e}")
        return WriteResult(success=True, path=self._virtual(p))

    def _edit_sync(self, file_path: str, old: str, new: str, replace_all: bool) -> EditResult:
        p = self._resolve(file_path)
        if p is None or not p.is_file():
            return EditResult(success=False, error=file_not_found(file_path))
        content = p.read_text(encoding="utf-8", errors="replace")
        result = perform_string_replacement(content, old, new, replace_all)
        if isinstance(result, str):
            return EditResult(success=False, error=result)
        new_content, occurrences = result
        try:
            p.write_text(new_content, encoding="utf-8")
        except OSError as e:
            return EditResult(success=False, error=f"Error editing file '{file_path}': {e}")
        return EditResult(success=True, path=self._virtual(p), occurrences=occurrences)

    def _iter_files(self, base: Path):
        if base.is_file():
            yield base
            return
        for item in sorted(base.rglob("*")):
            if item.is_file():
                yield item

    def _grep_sync(self, pattern: str, path: str | None, glob: str | None) -> list[GrepMatch] | str:
        regex = compile_pattern(pattern)
        if isinstance(regex, str):
            return regex
        base = self._resolve(path)
        if base is None or not base.exists():
            return []
        matches: list[GrepMatch] = []
        for item in self._iter_files(base):
            if glob and not glob_match(item.name, glob):
                continue
            try:
                text = item.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                continue
            for idx, line in enumerate(split_lines(text), start=1):
                if regex.search(line):
                    matches.append(GrepMatch(path=self._virtual(item), line=idx, text=line))
        return matches

    def _glob_sync(self, pattern: str, path: str) -> list[FileInfo]:
        base = self._resolve(path)
        if base is None or not base.is_dir():
            return []
        results = []
        for item in self._iter_files(base):
            rel = item.relative_to(base).as_posix()
            if glob_match(rel, pattern.lstrip("/")):
                results.append(FileInfo(path=self._virtual(item), size=item.stat().st_size, modified_at=_mtime_iso(item)))
        return sorted(results, key=lambda e: e.path)

    # ------------------------------------------------------------------
    # FileSystemBackend
    # ------------------------------------------------------------------

    async def ls_info(self, path: str) -> list[FileInfo]:
        return await asyncio.to_thread(self._ls_sync, path)

    async def read(self, file_path: str, offset: int = 0, limit: int = 2000) -> str:
        try:
            data = await asyncio.to_thread(self._read_raw_sync, file_path)
        except FileNotFoundError:
            return file_not_found(file_path)
        return format_read_response(data, offset, limit)

    async def read_raw(self, file_path: str) -> FileData:
        return await asyncio.to_thread(self._read_raw_sync, file_path)

    async def write(self, file_path: str, content: str) -> WriteResult:
        return await asyncio.to_thread(self._write_sync, file_path, content)

    async def edit(self, file_path: str, old_string: str, new_string: str, replace_all: bool = False) -> EditResult:
        return await asyncio.to_thread(self._edit_sync, file_path, old_string, new_string, replace_all)

    async def grep_raw(self, pattern: str, path: str | None = None, glob: str | None = None) -> list[GrepMatch] | str:
        return await asyncio.to_thread(self._grep_sync, pattern, path, glob)

    async def glob_info(self, pattern: str, path: str = "/") -> list[FileInfo]:
        return await asyncio.to_thread(self._glob_sync, pattern, path)
