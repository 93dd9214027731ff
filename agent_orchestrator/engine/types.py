"""Shared data structures for the orchestration loop."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from pydantic import BaseModel, Field, field_validator

from agent_orchestrator.core.utils.constants import (
    DEFAULT_KEEP_RECENT_MESSAGES,
    DEFAULT_MAX_CONTEXT_TOKENS,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MAX_TOOL_OUTPUT_CHARS,
    DEFAULT_RESPONSE_TOKENS,
    DEFAULT_TIMEOUT_SECONDS,
    LOOP_DETECTION_WINDOW_SECONDS,
    MAX_IDENTICAL_CALLS,
    MAX_SAME_TOOL_CALLS,
    RAPID_CALL_WINDOW_SECONDS,
)
from agent_orchestrator.session.models import Session, SessionStatus
from agent_orchestrator.tools.names import COMPLETE


class SessionPolicy(BaseModel):
    """Limits and thresholds applied to every session of an orchestrator."""

    max_iterations: int = DEFAULT_MAX_ITERATIONS
    timeout_seconds: float = float(DEFAULT_TIMEOUT_SECONDS)

    loop_window_seconds: float = float(LOOP_DETECTION_WINDOW_SECONDS)
    max_same_tool_calls: int = Field(MAX_SAME_TOOL_CALLS, description="Flag when a tool name exceeds this count.")
    max_identical_calls: int = Field(MAX_IDENTICAL_CALLS, description="Flag when an identical call reaches this count.")
    rapid_repeat_threshold: Optional[int] = Field(
        None, description="Optional: flag identical calls reaching this count within rapid_window_seconds."
    )
    rapid_window_seconds: float = float(RAPID_CALL_WINDOW_SECONDS)
    interventions_count_against_budget: bool = True

    max_context_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS
    response_tokens: int = DEFAULT_RESPONSE_TOKENS
    max_tool_output_chars: int = DEFAULT_MAX_TOOL_OUTPUT_CHARS
    keep_recent_messages: int = DEFAULT_KEEP_RECENT_MESSAGES

    completion_tool: str = COMPLETE

    @field_validator(
        "max_iterations",
        "max_same_tool_calls",
        "max_identical_calls",
        "max_context_tokens",
        "response_tokens",
        "max_tool_output_chars",
        "keep_recent_messages",
    )
    @classmethod
    def _ensure_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @field_validator("rapid_repeat_threshold")
    @classmethod
    def _ensure_positive_optional(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 1:
            raise ValueError("must be at least 1")
        return value

    @field_validator("timeout_seconds", "loop_window_seconds", "rapid_window_seconds")
    @classmethod
    def _ensure_positive_duration(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value


class ToolCallHistoryEntry(BaseModel):
    tool_name: str
    args_fingerprint: str
    timestamp: float
    iteration: int


class LoopVerdict(BaseModel):
    triggered: bool = False
    trigger: Optional[str] = Field(None, description="excessive_same_tool | identical_repeat | rapid_repeat")
    tool_name: Optional[str] = None
    reason: str = ""
    suggestion: str = ""


class ProgressEvent(BaseModel):
    """Emitted at the start of every iteration for host display."""

    session_id: str
    iteration: int
    max_iterations: int
    elapsed_seconds: float

    def describe(self) -> str:
        return f"iteration {self.iteration}/{self.max_iterations}, elapsed {self.elapsed_seconds:.1f}s"


StatusCallback = Callable[[Session, SessionStatus, SessionStatus], None]
ProgressCallback = Callable[[ProgressEvent], None]


@dataclass
class SessionHooks:
    """Observer callbacks for hosts (status transitions and iteration progress)."""

    on_status: Optional[StatusCallback] = None
    on_progress: Optional[ProgressCallback] = None


__all__ = [
    "SessionPolicy",
    "ToolCallHistoryEntry",
    "LoopVerdict",
    "ProgressEvent",
    "SessionHooks",
    "StatusCallback",
    "ProgressCallback",
]
