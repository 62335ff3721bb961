"""Checkpoint savers: persist and restore per-thread run snapshots."""

from core.checkpoint.file_saver import FileSaver
from core.checkpoint.kv_saver import KeyValueStoreSaver
from core.checkpoint.memory_saver import MemorySaver
from core.checkpoint.sqlite_saver import SQLiteSaver
from core.checkpoint.types import (
    BaseCheckpointSaver,
    Checkpoint,
    InterruptData,
    ResumeDecision,
    ResumeOptions,
)

__all__ = [
    "BaseCheckpointSaver",
    "Checkpoint",
    "FileSaver",
    "InterruptData",
    "KeyValueStoreSaver",
    "MemorySaver",
    "ResumeDecision",
    "ResumeOptions",
    "SQLiteSaver",
]
