"""Build checkpoint savers and backends from settings."""

from __future__ import annotations

import logging

from config.schema import BackendConfig, CheckpointConfig
from core.checkpoint import BaseCheckpointSaver, FileSaver, MemorySaver, SQLiteSaver
from core.filesystem.backend import BackendFactory, BackendInstance, BackendSource
from core.filesystem.local_backend import FilesystemBackend
from core.filesystem.state_backend import StateBackend

logger = logging.getLogger(__name__)


def create_checkpointer(config: CheckpointConfig) -> BaseCheckpointSaver | None:
    match config.kind:
        case "none":
            return None
        case "memory":
            return MemorySaver(namespace=config.namespace)
        case "file":
            return FileSaver(config.dir, namespace=config.namespace)
        case "sqlite":
            return SQLiteSaver(config.db_path, namespace=config.namespace)
    raise ValueError(f"Unknown checkpoint kind: {config.kind}")


def create_backend(config: BackendConfig) -> BackendSource:
    match config.kind:
        case "state":
            return BackendFactory(StateBackend)
        case "filesystem":
            return BackendInstance(FilesystemBackend(config.root_dir))
        case "local_sandbox":
            from sandbox.local import LocalSandbox  # deferred: sandbox imports core

            logger.warning("local_sandbox backend runs commands on the host without isolation")
            return BackendInstance(LocalSandbox(cwd=config.root_dir, timeout=config.command_timeout))
    raise ValueError(f"Unknown backend kind: {config.kind}")
