"""Configuration schema for deepagent using Pydantic.

Groups:
- runtime: model, step limit, system prompt, event queue size
- memory: conversation summarization
- eviction: large tool result offloading
- checkpoint: where thread checkpoints are persisted
- approval: tools that require a human decision
- backend: the filesystem the built-in tools operate on
- skills: which discovered skills are offered to the model
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from config.types import SkillMetadata, SubAgentConfig

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"

# ============================================================================
# Runtime Configuration
# ============================================================================


class RuntimeConfig(BaseModel):
    """Model and loop configuration."""

    model: str = Field(DEFAULT_MODEL, description="Model name passed to init_chat_model")
    model_provider: str | None = Field(None, description="Explicit provider (openai/anthropic/etc)")
    temperature: float | None = Field(None, ge=0.0, le=2.0, description="Temperature")
    max_tokens: int | None = Field(None, gt=0, description="Max tokens")
    model_kwargs: dict[str, Any] = Field(default_factory=dict, description="Extra kwargs for init_chat_model")
    max_steps: int = Field(100, gt=0, description="Maximum model invocations per run")
    system_prompt: str | None = Field(None, description="System prompt prepended to every model call")
    event_queue_size: int = Field(256, gt=0, description="Bound of the event channel")
    agent_id: str | None = Field(None, description="Selects ~/.deepagent/<agent_id> for user memory and skills")

    def model_init_kwargs(self) -> dict[str, Any]:
        kwargs = dict(self.model_kwargs)
        if self.model_provider:
            kwargs["model_provider"] = self.model_provider
        if self.temperature is not None:
            kwargs["temperature"] = self.temperature
        if self.max_tokens is not None:
            kwargs["max_tokens"] = self.max_tokens
        return kwargs


# ============================================================================
# Memory Configuration
# ============================================================================


class SummarizationConfig(BaseModel):
    """Configuration for conversation summarization.

    Field names match SummarizationSettings for direct passthrough.
    """

    enabled: bool = Field(False, description="Summarize old history when it grows too large")
    token_threshold: int = Field(170000, gt=0, description="Estimated tokens that trigger summarization")
    keep_messages: int = Field(6, gt=0, description="Most recent messages kept verbatim")


class MemoryConfig(BaseModel):
    summarization: SummarizationConfig = Field(default_factory=SummarizationConfig)
    agent_memory: bool = Field(True, description="Append agent.md memory files to the system prompt")


class EvictionConfig(BaseModel):
    """Large tool results are written to the backend and replaced by a pointer."""

    enabled: bool = True
    token_limit: int = Field(20000, gt=0, description="Evict results estimated above this many tokens")


# ============================================================================
# Persistence Configuration
# ============================================================================


class CheckpointConfig(BaseModel):
    """Checkpoint saver selection."""

    kind: Literal["none", "memory", "file", "sqlite"] = Field("memory", description="Saver implementation")
    dir: str | None = Field(None, description="Directory for the file saver")
    db_path: str | None = Field(None, description="Database file for the sqlite saver")
    namespace: str = Field("default", description="Partition shared storage between agents")

    @model_validator(mode="after")
    def validate_location(self) -> CheckpointConfig:
        if self.kind == "file" and not self.dir:
            raise ValueError("checkpoint.dir is required when checkpoint.kind is 'file'")
        if self.kind == "sqlite" and not self.db_path:
            raise ValueError("checkpoint.db_path is required when checkpoint.kind is 'sqlite'")
        return self


class BackendConfig(BaseModel):
    """Filesystem backend for the built-in tools."""

    kind: Literal["state", "filesystem", "local_sandbox"] = Field("state", description="Backend implementation")
    root_dir: str | None = Field(None, description="Root directory for filesystem and local_sandbox backends")
    command_timeout: float = Field(30.0, gt=0, description="Command timeout in seconds (local_sandbox)")

    @field_validator("root_dir")
    @classmethod
    def validate_root_dir(cls, v: str | None) -> str | None:
        if v is None:
            return v
        path = Path(v).expanduser().resolve()
        if path.exists() and not path.is_dir():
            raise ValueError(f"Backend root is not a directory: {path}")
        return str(path)

    @model_validator(mode="after")
    def validate_root_required(self) -> BackendConfig:
        if self.kind != "state" and not self.root_dir:
            raise ValueError(f"backend.root_dir is required when backend.kind is '{self.kind}'")
        return self


class SkillsConfig(BaseModel):
    """Skill discovery. Skills are enabled unless switched off by name."""

    enabled: bool = Field(True, description="Offer discovered skills through the load_skill tool")
    skills: dict[str, bool] = Field(default_factory=dict, description="Skill enable/disable map")


class ApprovalConfig(BaseModel):
    """Static approval rules. Predicates can only be configured in code."""

    interrupt_on: dict[str, bool] = Field(default_factory=dict, description="Tool name -> requires approval")


# ============================================================================
# Main Settings
# ============================================================================


class AgentSettings(BaseModel):
    """Main deepagent configuration.

    Configuration priority (highest to lowest):
    1. Overrides passed to the loader
    2. Project config (.deepagent/runtime.json)
    3. User config (~/.deepagent/runtime.json)
    4. System defaults (config/defaults/runtime.json)
    """

    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig, description="Model and loop configuration")
    memory: MemoryConfig = Field(default_factory=MemoryConfig, description="Memory management")
    eviction: EvictionConfig = Field(default_factory=EvictionConfig, description="Tool result eviction")
    checkpoint: CheckpointConfig = Field(default_factory=CheckpointConfig, description="Checkpoint persistence")
    approval: ApprovalConfig = Field(default_factory=ApprovalConfig, description="Human approval")
    backend: BackendConfig = Field(default_factory=BackendConfig, description="Filesystem backend")
    skills: SkillsConfig = Field(default_factory=SkillsConfig, description="Skills")
    subagents: list[SubAgentConfig] = Field(default_factory=list, description="Additional subagents")

    # Filled by SettingsLoader from disk, not from runtime.json.
    loaded_memory: str | None = Field(None, description="Rendered agent memory section")
    loaded_skills: list[SkillMetadata] = Field(default_factory=list, description="Discovered, enabled skills")
