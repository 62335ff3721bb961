"""Per-thread mutable agent state.

AgentState is shared by reference with every tool and backend of one run.
Nothing here copies it; callers that need a snapshot serialize it.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


def utc_now() -> str:
    return datetime.now(UTC).isoformat()


class TodoStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass
class TodoItem:
    id: str
    content: str
    status: TodoStatus = TodoStatus.PENDING

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "content": self.content, "status": self.status.value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TodoItem:
        return cls(id=str(data["id"]), content=str(data["content"]), status=TodoStatus(data.get("status", "pending")))


@dataclass
class FileData:
    """One virtual file: content as lines plus creation/modification stamps."""

    content: list[str]
    created_at: str
    modified_at: str

    @property
    def text(self) -> str:
        return "\n".join(self.content)

    @property
    def size(self) -> int:
        return len(self.text)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FileData:
        return cls(
            content=list(data.get("content", [])),
            created_at=data.get("created_at") or data.get("createdAt") or utc_now(),
            modified_at=data.get("modified_at") or data.get("modifiedAt") or utc_now(),
        )


@dataclass
class AgentState:
    todos: list[TodoItem] = field(default_factory=list)
    files: dict[str, FileData] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "todos": [t.to_dict() for t in self.todos],
            "files": {path: f.to_dict() for path, f in self.files.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> AgentState:
        data = data or {}
        return cls(
            todos=[TodoItem.from_dict(t) for t in data.get("todos", [])],
            files={path: FileData.from_dict(f) for path, f in data.get("files", {}).items()},
        )

    def load_from(self, other: AgentState) -> None:
        """Replace contents in place so existing references see the restored state."""
        if other is self:
            return
        self.todos[:] = other.todos
        self.files.clear()
        self.files.update(other.files)
