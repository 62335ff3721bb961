"""FileSystem backend abstraction.

One async contract for every storage mechanism the agent can see as files:
agent state, local disk, a key-value store, a command sandbox, or a
prefix-routed combination of those.

Missing files, existing files and ambiguous edits are reported through the
result objects (or fixed strings for `read`), never raised. The one exception
is `read_raw`, which raises FileNotFoundError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.state import AgentState, FileData


@dataclass
class FileInfo:
    """Single entry returned by ls_info / glob_info."""

    path: str
    is_dir: bool = False
    size: int = 0
    modified_at: str | None = None


@dataclass
class GrepMatch:
    path: str
    line: int
    text: str


@dataclass
class WriteResult:
    success: bool
    path: str | None = None
    error: str | None = None


@dataclass
class EditResult:
    success: bool
    path: str | None = None
    occurrences: int = 0
    error: str | None = None


@dataclass
class ExecuteResponse:
    """Result of a sandbox command."""

    output: str
    exit_code: int | None = None
    truncated: bool = False


class FileSystemBackend(ABC):
    """Abstract backend for virtual filesystem I/O.

    Implementations:
    - StateBackend: files held in AgentState.files
    - FilesystemBackend: real directory on local disk
    - PersistentBackend: files held in a KeyValueStore
    - CompositeBackend: routes path prefixes to other backends
    - BaseSandbox (sandbox package): everything built on execute()
    """

    @abstractmethod
    async def ls_info(self, path: str) -> list[FileInfo]:
        """List the direct children of a directory, sorted by path."""
        ...

    @abstractmethod
    async def read(self, file_path: str, offset: int = 0, limit: int = 2000) -> str:
        """Read a window of lines formatted with line numbers.

        Returns the error/sentinel strings from core.filesystem.utils for a
        missing file, an empty file, or an offset past the end.
        """
        ...

    @abstractmethod
    async def read_raw(self, file_path: str) -> FileData:
        """Return the stored record. Raises FileNotFoundError."""
        ...

    @abstractmethod
    async def write(self, file_path: str, content: str) -> WriteResult:
        """Create a new file. Fails if the path already exists."""
        ...

    @abstractmethod
    async def edit(self, file_path: str, old_string: str, new_string: str, replace_all: bool = False) -> EditResult:
        """Replace `old_string` with `new_string`.

        Without replace_all the old string must occur exactly once.
        """
        ...

    @abstractmethod
    async def grep_raw(self, pattern: str, path: str | None = None, glob: str | None = None) -> list[GrepMatch] | str:
        """Regex search over file lines. An invalid pattern returns an error string."""
        ...

    @abstractmethod
    async def glob_info(self, pattern: str, path: str = "/") -> list[FileInfo]:
        """Files below `path` whose relative path matches `pattern`."""
        ...


class SandboxBackend(FileSystemBackend):
    """A backend that can also run shell commands."""

    @property
    @abstractmethod
    def id(self) -> str: ...

    @abstractmethod
    async def execute(self, command: str) -> ExecuteResponse: ...


# ============================================================================
# Backend source
# ============================================================================


@dataclass(frozen=True)
class BackendInstance:
    backend: FileSystemBackend


@dataclass(frozen=True)
class BackendFactory:
    factory: Callable[[AgentState], FileSystemBackend]


BackendSource = BackendInstance | BackendFactory


def as_backend_source(value: FileSystemBackend | BackendSource | Callable[[AgentState], FileSystemBackend] | None) -> BackendSource:
    """Accept a backend, a factory callable, or an explicit BackendSource."""
    if value is None:
        from .state_backend import StateBackend

        return BackendFactory(StateBackend)
    if isinstance(value, (BackendInstance, BackendFactory)):
        return value
    if isinstance(value, FileSystemBackend):
        return BackendInstance(value)
    if callable(value):
        return BackendFactory(value)
    raise TypeError(f"Unsupported backend source: {type(value).__name__}")


def resolve_backend(source: BackendSource, state: AgentState) -> FileSystemBackend:
    match source:
        case BackendInstance(backend=backend):
            return backend
        case BackendFactory(factory=factory):
            return factory(state)
    raise TypeError(f"Unsupported backend source: {type(source).__name__}")
