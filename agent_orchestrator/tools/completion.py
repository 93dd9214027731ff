"""The designated terminal tool."""
from __future__ import annotations

from typing import Any, Mapping

from .names import COMPLETE
from .registry import SCHEMA_DIR, ToolContext, ToolSpec, registry


def _complete(payload: Mapping[str, Any], context: ToolContext) -> str:
    return payload["summary"].strip()


COMPLETION_TOOLS = (
    ToolSpec(
        name=COMPLETE,
        handler=_complete,
        request_schema_path=SCHEMA_DIR / "complete.request.json",
        description="Signal that the goal is satisfied. 'summary' describes what was done.",
        terminal=True,
        category="control",
    ),
)

for _spec in COMPLETION_TOOLS:
    registry.register(_spec)


__all__ = ["COMPLETION_TOOLS"]
