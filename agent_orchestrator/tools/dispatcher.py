"""Validate and execute one tool call against the registry and a workspace snapshot."""
from __future__ import annotations

import inspect
import time
from typing import Any, Dict, Optional

from agent_orchestrator.core.utils.logger import get_logger

from .registry import ToolContext, ToolRegistry
from .types import ToolCallRequest, ToolResult
from .workspace import WorkspaceSnapshot

LOGGER = get_logger(__name__)

RECOVERABLE_ERRORS = (ValueError, KeyError, FileNotFoundError, TypeError)


def _error_text(exc: BaseException) -> str:
    if isinstance(exc, KeyError) and exc.args:
        return str(exc.args[0])
    return str(exc) or exc.__class__.__name__


class ToolDispatcher:
    """Turn every tool call into a well-formed :class:`ToolResult`.

    Unknown tools, schema violations and handler failures are reported as
    ``success=False`` results; nothing raised by a handler escapes ``dispatch``.
    File mutations are staged and returned as ``side_effects``; committing them
    to the snapshot is left to the caller.
    """

    def __init__(self, registry: ToolRegistry) -> None:
        self.registry = registry

    async def dispatch(
        self,
        call: ToolCallRequest,
        workspace: WorkspaceSnapshot,
        *,
        session_id: Optional[str] = None,
        iteration: int = 0,
        extra: Optional[Dict[str, Any]] = None,
    ) -> ToolResult:
        started = time.perf_counter()
        name = call.tool_name

        try:
            spec = self.registry.get(name)
        except KeyError as exc:
            return self._failure(name, _error_text(exc), started)

        violations = self.registry.validate(name, call.arguments)
        if violations:
            LOGGER.info("Rejected %s call with invalid arguments: %s", name, violations[0])
            return self._failure(name, f"Invalid arguments for {name}: {'; '.join(violations)}", started)

        staged = workspace.stage()
        context = ToolContext(
            workspace=staged,
            session_id=session_id,
            iteration=iteration,
            extra=dict(extra or {}),
        )
        try:
            output = spec.handler(call.arguments, context)
            if inspect.isawaitable(output):
                output = await output
        except RECOVERABLE_ERRORS as exc:
            LOGGER.debug("Tool %s reported failure: %s", name, exc)
            return self._failure(name, _error_text(exc), started)
        except Exception as exc:  # noqa: BLE001 - surface to the model as a failed result
            LOGGER.exception("Tool %s execution failed", name)
            return self._failure(name, f"Tool {name} failed: {_error_text(exc)}", started)

        return ToolResult(
            tool_name=name,
            success=True,
            output="" if output is None else str(output),
            side_effects=staged.changes,
            duration_ms=_elapsed_ms(started),
        )

    def _failure(self, name: str, message: str, started: float) -> ToolResult:
        return ToolResult(
            tool_name=name,
            success=False,
            error_message=message,
            duration_ms=_elapsed_ms(started),
        )


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)


__all__ = ["ToolDispatcher", "RECOVERABLE_ERRORS"]
