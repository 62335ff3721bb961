"""Turn input resolution: decide the message history a run starts from.

Priority, first match wins:
    1. explicit non-empty `messages`   -> used as-is, checkpoint history dropped
    2. explicit empty `messages` ([])  -> reset: history cleared, prompt ignored,
                                          always a no-op, even over a pending approval
    3. `prompt`                        -> appended to checkpoint history (or alone)
    4. checkpoint history              -> resumed unchanged
    5. nothing                         -> NoValidInputError
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from langchain_core.messages import BaseMessage, HumanMessage

from core.errors import NoValidInputError


class InputSource(str, Enum):
    EXPLICIT_MESSAGES = "explicit_messages"
    RESET = "reset"
    PROMPT = "prompt"
    CHECKPOINT = "checkpoint"


@dataclass
class TurnInput:
    messages: list[BaseMessage]
    source: InputSource
    is_noop: bool = False

    @property
    def is_reset(self) -> bool:
        return self.source is InputSource.RESET


def build_turn_input(
    messages: list[BaseMessage] | None = None,
    prompt: str | None = None,
    checkpoint_messages: list[BaseMessage] | None = None,
    resume_in_progress: bool = False,
    thread_id: str | None = None,
) -> TurnInput:
    history = list(checkpoint_messages or [])

    if messages is not None and len(messages) > 0:
        result = TurnInput(list(messages), InputSource.EXPLICIT_MESSAGES)
    elif messages is not None:
        result = TurnInput([], InputSource.RESET)
    elif prompt:
        result = TurnInput([*history, HumanMessage(content=prompt)], InputSource.PROMPT)
    elif history:
        result = TurnInput(history, InputSource.CHECKPOINT)
    elif resume_in_progress:
        result = TurnInput([], InputSource.CHECKPOINT)
    else:
        raise NoValidInputError(thread_id)

    if result.is_reset or (not result.messages and not resume_in_progress):
        result.is_noop = True
    return result
