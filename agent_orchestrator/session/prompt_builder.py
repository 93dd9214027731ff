"""Helpers for constructing the system prompt and synthetic loop messages."""
from __future__ import annotations

from typing import Optional

from agent_orchestrator.tools.names import COMPLETE
from agent_orchestrator.tools.registry import ToolRegistry

_PROTOCOL = """\
To use a tool, write a block whose tag is the tool name and whose body is a JSON object of arguments:

<read_file>{{"path": "src/app.py"}}</read_file>

Rules:
- Only the tool names listed below are recognised as tags. Everything else is treated as commentary.
- The body must be strict JSON (double quotes, no trailing commas).
- You may issue several tool calls in one reply; they run in the order written.
- Results come back in the next message, one [tool_result ...] block per call.
- When the goal is satisfied, call <{complete}>{{"summary": "..."}}</{complete}>. Anything after it is ignored."""


def build_system_prompt(
    registry: ToolRegistry,
    *,
    completion_tool: str = COMPLETE,
    iteration_cap: Optional[int] = None,
    extra_instructions: Optional[str] = None,
) -> str:
    sections = [
        "You are an autonomous software agent working inside an in-memory workspace. "
        "Use the tools to inspect and change files until the user's goal is met.",
        _PROTOCOL.format(complete=completion_tool),
        "Available tools:\n" + registry.describe(),
    ]
    if iteration_cap:
        sections.append(
            f"You have at most {iteration_cap} replies. Avoid repeating identical tool calls; "
            "reuse results you already have."
        )
    if extra_instructions:
        sections.append(extra_instructions.strip())
    return "\n\n".join(sections)


def build_goal_message(goal: str) -> str:
    return f"Goal:\n{goal.strip()}"


def build_intervention_message(reason: str, suggestion: str, *, completion_tool: str = COMPLETE) -> str:
    return (
        f"STOP: repeated tool calls detected. {reason}. {suggestion}\n"
        "None of the tool calls in your last reply were executed. Stop exploring and work from the "
        f"results you already have; when the goal is met, call <{completion_tool}> with a summary."
    )


def build_parse_error_note(errors: list[str]) -> str:
    listed = "\n".join(f"- {error}" for error in errors)
    return f"[parser] Some tool blocks were skipped because their JSON was invalid:\n{listed}"


__all__ = [
    "build_system_prompt",
    "build_goal_message",
    "build_intervention_message",
    "build_parse_error_note",
]
