"""Virtual filesystem backends."""

from core.filesystem.backend import (
    BackendFactory,
    BackendInstance,
    BackendSource,
    EditResult,
    ExecuteResponse,
    FileInfo,
    FileSystemBackend,
    GrepMatch,
    SandboxBackend,
    WriteResult,
    as_backend_source,
    resolve_backend,
)
from core.filesystem.composite_backend import CompositeBackend
from core.filesystem.local_backend import FilesystemBackend
from core.filesystem.persistent_backend import PersistentBackend
from core.filesystem.state_backend import StateBackend

__all__ = [
    "BackendFactory",
    "BackendInstance",
    "BackendSource",
    "CompositeBackend",
    "EditResult",
    "ExecuteResponse",
    "FileInfo",
    "FileSystemBackend",
    "FilesystemBackend",
    "GrepMatch",
    "PersistentBackend",
    "SandboxBackend",
    "StateBackend",
    "WriteResult",
    "as_backend_source",
    "resolve_backend",
]
