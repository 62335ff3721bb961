"""Structured output: the final response parsed into a pydantic model."""

from __future__ import annotations

import json
import re
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from core.errors import OutputValidationError

T = TypeVar("T", bound=BaseModel)

_FENCE = re.compile(r"```(?:json)?\s*\n(.*?)\n?```", re.DOTALL)


def output_instructions(schema: type[BaseModel]) -> str:
    """System prompt section asking for a JSON final answer."""
    return (
        "# Response format\n\n"
        "When the task is done, reply with a single JSON object and nothing else. "
        "It must validate against this JSON schema:\n\n"
        f"{json.dumps(schema.model_json_schema(), ensure_ascii=False)}"
    )


def _json_candidate(text: str) -> str:
    text = text.strip()
    if match := _FENCE.search(text):
        return match.group(1).strip()
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start and not text.startswith("{"):
        return text[start : end + 1]
    return text


def parse_output(text: str, schema: type[T]) -> T:
    """Validate the final text against `schema`.

    Accepts a bare JSON object, one inside a ```json fence, or one embedded
    in surrounding prose.
    """
    try:
        return schema.model_validate_json(_json_candidate(text))
    except ValidationError as e:
        raise OutputValidationError(schema.__name__, str(e)) from e
