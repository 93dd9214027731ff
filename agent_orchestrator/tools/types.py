"""Value records exchanged between the parser, the dispatcher and the session."""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, model_validator


class FileChangeKind(str, Enum):
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"


class FileChange(BaseModel):
    """A workspace mutation accumulated for the host to apply."""

    kind: FileChangeKind
    path: str
    new_content: Optional[str] = Field(default=None, description="Content after the change; None for deletes.")
    old_content: Optional[str] = Field(default=None, description="Content before the change; None for creates.")

    @model_validator(mode="after")
    def _check_contents(self) -> "FileChange":
        if self.kind is FileChangeKind.DELETE:
            if self.new_content is not None:
                raise ValueError("delete changes carry no new content")
        elif self.new_content is None:
            raise ValueError(f"{self.kind.value} changes require new content")
        return self


class ToolCallRequest(BaseModel):
    """A tool invocation extracted from a model reply."""

    tool_name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    source_span: Tuple[int, int] = Field(default=(0, 0), description="Offsets of the block in the raw reply.")


class ToolResult(BaseModel):
    """Outcome of dispatching a single tool call."""

    tool_name: str
    success: bool
    output: str = ""
    error_message: Optional[str] = None
    side_effects: List[FileChange] = Field(default_factory=list)
    duration_ms: float = 0.0

    def render(self) -> str:
        """Format the result as the text fed back to the model."""
        status = "success" if self.success else "error"
        body = self.output if self.success else (self.error_message or "unknown error")
        return f"[tool_result name={self.tool_name} status={status}]\n{body}"


__all__ = ["FileChangeKind", "FileChange", "ToolCallRequest", "ToolResult"]
