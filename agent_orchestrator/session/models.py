"""Core data structures for session state."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from agent_orchestrator.providers.llm.base import Message
from agent_orchestrator.tools.types import FileChange, ToolCallRequest, ToolResult


class SessionStatus(str, Enum):
    CREATED = "created"
    ACTIVE = "active"
    COMPLETED = "completed"
    ERROR = "error"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {SessionStatus.COMPLETED, SessionStatus.ERROR, SessionStatus.TIMEOUT, SessionStatus.CANCELLED}
)


class IterationRecord(BaseModel):
    """Audit/replay record for one loop pass."""

    iteration: int
    request: List[Dict[str, Any]] = Field(default_factory=list, description="Messages sent to the model.")
    raw_reply: Optional[str] = None
    parsed_tool_calls: List[ToolCallRequest] = Field(default_factory=list)
    tool_results: List[ToolResult] = Field(default_factory=list)
    parse_errors: List[str] = Field(default_factory=list)
    intervention: Optional[str] = None
    superseded: List[ToolCallRequest] = Field(default_factory=list)
    duplicates: List[ToolCallRequest] = Field(default_factory=list)


@dataclass
class Session:
    """One goal-directed run of the orchestrator loop.

    The orchestrator that created the session is its only writer; hosts should
    treat every field as read-only.
    """

    id: str
    goal: str
    status: SessionStatus = SessionStatus.CREATED
    iteration_count: int = 0
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    termination_reason: Optional[str] = None
    messages: List[Message] = field(default_factory=list)
    file_changes: List[FileChange] = field(default_factory=list)
    transcript: List[IterationRecord] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def append_message(self, role: str, content: str) -> Message:
        message = Message(role=role, content=content, ordinal=len(self.messages))
        self.messages.append(message)
        return message

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def transcript_as_dicts(self) -> List[Dict[str, Any]]:
        return [record.model_dump(mode="json") for record in self.transcript]

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "goal": self.goal,
            "status": self.status.value,
            "iterations": self.iteration_count,
            "termination_reason": self.termination_reason,
            "file_changes": len(self.file_changes),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
        }


__all__ = ["SessionStatus", "TERMINAL_STATUSES", "IterationRecord", "Session"]
