"""Context management for long conversations."""

from core.memory.summarizer import SummarizationResult, summarize_if_needed

__all__ = ["SummarizationResult", "summarize_if_needed"]
