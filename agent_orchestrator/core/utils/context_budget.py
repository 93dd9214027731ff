"""Utilities for keeping model conversations within configured context budgets."""
from __future__ import annotations

from typing import Sequence

from agent_orchestrator.providers.llm.base import Message

CHARS_PER_TOKEN = 4
MESSAGE_OVERHEAD_TOKENS = 8


def estimate_tokens(messages: Sequence[Message]) -> int:
    """Estimate token usage for a list of messages (4 chars ≈ 1 token)."""
    total = 0
    for msg in messages:
        total += len(msg.content or "") // CHARS_PER_TOKEN
        total += MESSAGE_OVERHEAD_TOKENS
    return total


def summarize_text(text: str, max_chars: int) -> str:
    """Return a truncated text summary that notes omitted content."""

    if len(text) <= max_chars:
        return text
    truncated = text[:max_chars].rstrip()
    omitted = len(text) - len(truncated)
    return f"{truncated}\n[... {omitted} characters omitted ...]"


__all__ = ["estimate_tokens", "summarize_text", "CHARS_PER_TOKEN"]
