"""Errors raised by the orchestration API (never by the loop itself)."""
from __future__ import annotations


class OrchestratorError(RuntimeError):
    """Base class for misuse of the orchestrator API."""


class SessionBusyError(OrchestratorError):
    """Raised when a session is started while another one is active."""


class SessionStateError(OrchestratorError):
    """Raised when an operation does not fit the session's lifecycle state."""


__all__ = ["OrchestratorError", "SessionBusyError", "SessionStateError"]
