"""Orchestration engine: parser, loop detector, supervisor and the session loop."""
from __future__ import annotations

from .errors import OrchestratorError, SessionBusyError, SessionStateError
from .loop_detector import LoopDetector, fingerprint
from .orchestrator import SessionOrchestrator
from .parser import ParseDiagnostic, ParseResult, ToolCallParser
from .supervisor import STALE, CancellationSupervisor, CancellationToken
from .types import LoopVerdict, ProgressEvent, SessionHooks, SessionPolicy, ToolCallHistoryEntry

__all__ = [
    "CancellationSupervisor",
    "CancellationToken",
    "LoopDetector",
    "LoopVerdict",
    "OrchestratorError",
    "ParseDiagnostic",
    "ParseResult",
    "ProgressEvent",
    "STALE",
    "SessionBusyError",
    "SessionHooks",
    "SessionOrchestrator",
    "SessionPolicy",
    "SessionStateError",
    "ToolCallHistoryEntry",
    "ToolCallParser",
    "fingerprint",
]
