"""Assemble the bounded conversation history sent to the model."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

from agent_orchestrator.core.utils.constants import (
    DEFAULT_KEEP_RECENT_MESSAGES,
    DEFAULT_MAX_CONTEXT_TOKENS,
    DEFAULT_MAX_TOOL_OUTPUT_CHARS,
    DEFAULT_RESPONSE_TOKENS,
)
from agent_orchestrator.core.utils.context_budget import estimate_tokens, summarize_text
from agent_orchestrator.core.utils.logger import get_logger
from agent_orchestrator.providers.llm.base import Message

LOGGER = get_logger(__name__)

TOOL_RESULT_PREFIX = "[tool_result"
OMISSION_NOTE = "[Context note] {count} earlier message(s) were omitted to fit the context budget."

# System prompt and goal.
PINNED_MESSAGES = 2


@dataclass
class ContextBuilderConfig:
    """Configurable knobs for bounding the request history."""

    max_total_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS
    response_tokens: int = DEFAULT_RESPONSE_TOKENS
    keep_recent_messages: int = DEFAULT_KEEP_RECENT_MESSAGES
    max_tool_output_chars: int = DEFAULT_MAX_TOOL_OUTPUT_CHARS

    def __post_init__(self) -> None:
        if self.keep_recent_messages < 1:
            self.keep_recent_messages = 1
        if self.response_tokens >= self.max_total_tokens:
            self.response_tokens = self.max_total_tokens // 2

    @property
    def request_budget(self) -> int:
        return self.max_total_tokens - self.response_tokens


@dataclass
class ContextWindow:
    """The messages chosen for one model request."""

    messages: List[Message] = field(default_factory=list)
    token_estimate: int = 0
    omitted: int = 0


class ContextBuilder:
    """Select pinned + most recent messages within the token budget.

    The system prompt and the goal are always sent. Tool results are clipped to
    ``max_tool_output_chars``; the oldest unpinned messages are dropped first,
    and the newest message is always kept.
    """

    def __init__(self, config: ContextBuilderConfig | None = None) -> None:
        self._config = config or ContextBuilderConfig()

    @property
    def config(self) -> ContextBuilderConfig:
        return self._config

    def build(self, messages: Sequence[Message]) -> ContextWindow:
        history = list(messages)
        pinned = history[:PINNED_MESSAGES]
        candidates = [self._clip(msg) for msg in history[PINNED_MESSAGES:]]

        recent = candidates[-self._config.keep_recent_messages :] if candidates else []
        omitted = len(candidates) - len(recent)

        budget = self._config.request_budget
        while len(recent) > 1 and estimate_tokens(self._assemble(pinned, recent, omitted)) > budget:
            recent.pop(0)
            omitted += 1

        window = self._assemble(pinned, recent, omitted)
        estimate = estimate_tokens(window)
        if omitted:
            LOGGER.debug("Context trimmed: %d message(s) omitted, ~%d tokens", omitted, estimate)
        if estimate > budget:
            LOGGER.warning("Context still exceeds budget (%d > %d tokens)", estimate, budget)
        return ContextWindow(messages=window, token_estimate=estimate, omitted=omitted)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _clip(self, message: Message) -> Message:
        if message.role != "user" or not message.content.startswith(TOOL_RESULT_PREFIX):
            return message
        clipped = summarize_text(message.content, self._config.max_tool_output_chars)
        if clipped is message.content:
            return message
        return Message(role=message.role, content=clipped, ordinal=message.ordinal)

    def _assemble(self, pinned: List[Message], recent: List[Message], omitted: int) -> List[Message]:
        if not omitted:
            return [*pinned, *recent]
        note = Message(role="user", content=OMISSION_NOTE.format(count=omitted), ordinal=-1)
        return [*pinned, note, *recent]


__all__ = ["ContextBuilder", "ContextBuilderConfig", "ContextWindow", "TOOL_RESULT_PREFIX"]
