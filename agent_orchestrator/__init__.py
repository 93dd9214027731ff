"""Public package interface for the agent orchestrator."""
from __future__ import annotations

from importlib import metadata as _metadata

try:
    __version__ = _metadata.version("agent-orchestrator")
except _metadata.PackageNotFoundError:  # pragma: no cover - fallback when not installed
    __version__ = "0.1.0"

from . import core, engine, providers, session, tools
from .core import RetryConfig, RetryHandler, Settings, configure_logging, get_logger, load_settings
from .engine import (
    OrchestratorError,
    SessionBusyError,
    SessionHooks,
    SessionOrchestrator,
    SessionPolicy,
    SessionStateError,
    ToolCallParser,
)
from .providers.llm import (
    LLMClient,
    LLMConnectionError,
    LLMError,
    LLMRateLimitError,
    LLMResponseError,
    LLMRetryExhaustedError,
    LLMTimeoutError,
    Message,
    create_client,
)
from .session import IterationRecord, Session, SessionStatus
from .tools import (
    FileChange,
    FileChangeKind,
    ToolCallRequest,
    ToolContext,
    ToolRegistry,
    ToolResult,
    ToolSpec,
    WorkspaceSnapshot,
    create_default_registry,
    registry,
)

__all__ = [
    "__version__",
    "FileChange",
    "FileChangeKind",
    "IterationRecord",
    "LLMClient",
    "LLMConnectionError",
    "LLMError",
    "LLMRateLimitError",
    "LLMResponseError",
    "LLMRetryExhaustedError",
    "LLMTimeoutError",
    "Message",
    "OrchestratorError",
    "RetryConfig",
    "RetryHandler",
    "Session",
    "SessionBusyError",
    "SessionHooks",
    "SessionOrchestrator",
    "SessionPolicy",
    "SessionStateError",
    "SessionStatus",
    "Settings",
    "ToolCallParser",
    "ToolCallRequest",
    "ToolContext",
    "ToolRegistry",
    "ToolResult",
    "ToolSpec",
    "WorkspaceSnapshot",
    "configure_logging",
    "core",
    "create_client",
    "create_default_registry",
    "engine",
    "get_logger",
    "load_settings",
    "providers",
    "registry",
    "session",
    "tools",
]
