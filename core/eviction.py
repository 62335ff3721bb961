"""Tool result eviction: move oversized results into the virtual filesystem.

A result whose estimated token count is strictly above the limit is written
to /large_tool_results/ on the run's backend and replaced in the history by a
short pointer the model can follow with read_file.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass

from core.filesystem.backend import FileSystemBackend

logger = logging.getLogger(__name__)

DEFAULT_EVICTION_TOKEN_LIMIT = 20000
CHARS_PER_TOKEN = 4
EVICTION_DIR = "/large_tool_results"

# Evicting read_file output would only produce another pointer to read
SKIP_TOOLS = frozenset({"read_file"})

_UNSAFE_ID = re.compile(r"[^a-zA-Z0-9_-]")


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def should_evict(result: str, token_limit: int = DEFAULT_EVICTION_TOKEN_LIMIT) -> bool:
    return estimate_tokens(result) > token_limit


def sanitize_tool_call_id(tool_call_id: str) -> str:
    return _UNSAFE_ID.sub("_", tool_call_id)[:100]


def eviction_path(tool_name: str, tool_call_id: str) -> str:
    return f"{EVICTION_DIR}/{tool_name}_{sanitize_tool_call_id(tool_call_id)}.txt"


def eviction_message(tokens: int, path: str) -> str:
    return (
        f"Tool result too large (~{tokens} tokens). Content saved to {path}. "
        "Use read_file to access the full content."
    )


@dataclass
class EvictionResult:
    content: str
    evicted: bool = False
    path: str | None = None
    tokens: int = 0


async def evict_if_needed(
    result: str,
    tool_call_id: str,
    tool_name: str,
    backend: FileSystemBackend,
    token_limit: int = DEFAULT_EVICTION_TOKEN_LIMIT,
) -> EvictionResult:
    """Return the content to put in the history for this tool result.

    A failed write keeps the original content; eviction never loses data.
    """
    if tool_name in SKIP_TOOLS or not should_evict(result, token_limit):
        return EvictionResult(content=result)

    tokens = estimate_tokens(result)
    path = eviction_path(tool_name, tool_call_id)
    try:
        written = await backend.write(path, result)
    except Exception as e:
        logger.warning("Eviction write for %s failed: %s", tool_call_id, e)
        return EvictionResult(content=result, tokens=tokens)
    if not written.success:
        logger.warning("Eviction write for %s failed: %s", tool_call_id, written.error)
        return EvictionResult(content=result, tokens=tokens)

    logger.debug("Evicted %s result (~%d tokens) to %s", tool_name, tokens, path)
    return EvictionResult(content=eviction_message(tokens, path), evicted=True, path=path, tokens=tokens)
