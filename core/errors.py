"""Exceptions raised by the agent runtime."""

from __future__ import annotations


class DeepAgentError(Exception):
    """Base class for runtime errors surfaced to callers."""


class NoValidInputError(DeepAgentError):
    """A run was started with no prompt, no messages and no checkpoint to resume."""

    def __init__(self, thread_id: str | None = None):
        detail = f" for thread '{thread_id}'" if thread_id else ""
        super().__init__(f"No valid input{detail}: provide a prompt, messages, or a thread with a saved checkpoint")
        self.thread_id = thread_id


class CheckpointError(DeepAgentError):
    """A checkpoint could not be written."""


class OutputValidationError(DeepAgentError):
    """The final response did not match the requested output schema."""

    def __init__(self, schema_name: str, detail: str):
        super().__init__(f"Final response does not match {schema_name}: {detail}")
        self.schema_name = schema_name
