"""Session state, context assembly and prompt helpers."""
from .context_builder import ContextBuilder, ContextBuilderConfig, ContextWindow
from .models import IterationRecord, Session, SessionStatus, TERMINAL_STATUSES
from .prompt_builder import build_system_prompt

__all__ = [
    "ContextBuilder",
    "ContextBuilderConfig",
    "ContextWindow",
    "IterationRecord",
    "Session",
    "SessionStatus",
    "TERMINAL_STATUSES",
    "build_system_prompt",
]
