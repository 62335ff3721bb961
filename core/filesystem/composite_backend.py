"""Backend routing path prefixes to other backends.

    CompositeBackend(StateBackend(state), {"/memories/": PersistentBackend(store)})

"/memories/notes.md" is stored as "/notes.md" in the persistent backend and
reported back as "/memories/notes.md". The longest matching prefix wins;
equal-length prefixes keep their configuration order.
"""

from __future__ import annotations

from dataclasses import replace

from core.state import FileData

from .backend import EditResult, FileInfo, FileSystemBackend, GrepMatch, WriteResult
from .utils import glob_match, normalize_path, validate_path


class CompositeBackend(FileSystemBackend):
    def __init__(self, default: FileSystemBackend, routes: dict[str, FileSystemBackend]):
        self.default = default
        self.routes = {validate_path(prefix): backend for prefix, backend in routes.items()}
        # sorted() is stable, so ties stay in insertion order
        self._sorted_routes = sorted(self.routes.items(), key=lambda item: len(item[0]), reverse=True)

    def _route(self, path: str | None) -> tuple[FileSystemBackend, str, str]:
        """Return (backend, path inside backend, prefix to re-add)."""
        normalized = normalize_path(path)
        candidate = validate_path(normalized)
        for prefix, backend in self._sorted_routes:
            if candidate.startswith(prefix):
                inner = "/" + normalized[len(prefix) :] if len(normalized) >= len(prefix) else "/"
                return backend, normalize_path(inner), prefix.rstrip("/")
        return self.default, normalized, ""

    @staticmethod
    def _prefixed(prefix: str, path: str | None) -> str | None:
        if path is None or not prefix:
            return path
        return prefix + path

    def _restore_infos(self, prefix: str, infos: list[FileInfo]) -> list[FileInfo]:
        return [replace(info, path=prefix + info.path) for info in infos] if prefix else infos

    async def ls_info(self, path: str) -> list[FileInfo]:
        backend, inner, prefix = self._route(path)
        entries = self._restore_infos(prefix, await backend.ls_info(inner))
        if backend is self.default and normalize_path(path) == "/":
            existing = {e.path for e in entries}
            for route_prefix in self.routes:
                if route_prefix not in existing:
                    entries.append(FileInfo(path=route_prefix, is_dir=True))
        return sorted(entries, key=lambda e: e.path)

    async def read(self, file_path: str, offset: int = 0, limit: int = 2000) -> str:
        backend, inner, _ = self._route(file_path)
        result = await backend.read(inner, offset, limit)
        if result.startswith("Error: File '"):
            return result.replace(f"'{inner}'", f"'{file_path}'", 1)
        return result

    async def read_raw(self, file_path: str) -> FileData:
        backend, inner, _ = self._route(file_path)
        return await backend.read_raw(inner)

    async def write(self, file_path: str, content: str) -> WriteResult:
        backend, inner, prefix = self._route(file_path)
        result = await backend.write(inner, content)
        return replace(result, path=self._prefixed(prefix, result.path))

    async def edit(self, file_path: str, old_string: str, new_string: str, replace_all: bool = False) -> EditResult:
        backend, inner, prefix = self._route(file_path)
        result = await backend.edit(inner, old_string, new_string, replace_all)
        return replace(result, path=self._prefixed(prefix, result.path))

    async def grep_raw(self, pattern: str, path: str | None = None, glob: str | None = None) -> list[GrepMatch] | str:
        if normalize_path(path) == "/":
            targets = [(self.default, "/", "")] + [(b, "/", p.rstrip("/")) for p, b in self._sorted_routes]
        else:
            targets = [self._route(path)]
        matches: list[GrepMatch] = []
        for backend, inner, prefix in targets:
            result = await backend.grep_raw(pattern, inner, glob)
            if isinstance(result, str):
                return result
            matches.extend(replace(m, path=prefix + m.path) if prefix else m for m in result)
        return sorted(matches, key=lambda m: (m.path, m.line))

    async def glob_info(self, pattern: str, path: str = "/") -> list[FileInfo]:
        if normalize_path(path) == "/":
            targets = [(self.default, "/", "")] + [(b, "/", p.rstrip("/")) for p, b in self._sorted_routes]
        else:
            targets = [self._route(path)]
        results: list[FileInfo] = []
        root_level = normalize_path(path) == "/"
        for backend, inner, prefix in targets:
            if root_level and prefix:
                # a root-level pattern is relative to "/", so match it against the prefixed path
                found = self._restore_infos(prefix, await backend.glob_info("**", "/"))
                found = [f for f in found if glob_match(f.path.lstrip("/"), pattern.lstrip("/"))]
            else:
                found = self._restore_infos(prefix, await backend.glob_info(pattern, inner))
            results.extend(found)
        return sorted(results, key=lambda e: e.path)
