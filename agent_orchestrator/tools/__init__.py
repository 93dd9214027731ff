"""Initialize built-in tool implementations."""
from __future__ import annotations

from .registry import SCHEMA_DIR, ToolContext, ToolRegistry, ToolSpec, registry
from .names import (
    ALL_TOOLS,
    COMPLETE,
    DELETE_FILE,
    EDIT_FILE,
    LIST_DIRECTORY,
    READ_FILE,
    SEARCH_PATTERN,
    WRITE_FILE,
)
from .types import FileChange, FileChangeKind, ToolCallRequest, ToolResult
from .workspace import StagedWorkspace, WorkspaceSnapshot

# Trigger tool registration by importing modules for their side effects.
from .filesystem import FILESYSTEM_TOOLS
from .search import SEARCH_TOOLS
from .completion import COMPLETION_TOOLS

from .dispatcher import ToolDispatcher

BUILTIN_TOOLS = (*FILESYSTEM_TOOLS, *SEARCH_TOOLS, *COMPLETION_TOOLS)


def create_default_registry() -> ToolRegistry:
    """Return a fresh registry holding the built-in tools."""
    fresh = ToolRegistry()
    for spec in BUILTIN_TOOLS:
        fresh.register(spec)
    return fresh


__all__ = [
    "ToolContext",
    "ToolSpec",
    "ToolRegistry",
    "ToolDispatcher",
    "registry",
    "create_default_registry",
    "BUILTIN_TOOLS",
    "SCHEMA_DIR",
    "FileChange",
    "FileChangeKind",
    "ToolCallRequest",
    "ToolResult",
    "StagedWorkspace",
    "WorkspaceSnapshot",
    "READ_FILE",
    "WRITE_FILE",
    "EDIT_FILE",
    "DELETE_FILE",
    "LIST_DIRECTORY",
    "SEARCH_PATTERN",
    "COMPLETE",
    "ALL_TOOLS",
]
