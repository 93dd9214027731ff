"""Tests for the system prompt and synthetic loop messages."""
from __future__ import annotations

from agent_orchestrator.engine.parser import ToolCallParser
from agent_orchestrator.session.prompt_builder import (
    build_goal_message,
    build_intervention_message,
    build_parse_error_note,
    build_system_prompt,
)
from agent_orchestrator.tools import create_default_registry


def test_system_prompt_renders_with_default_registry() -> None:
    registry = create_default_registry()

    prompt = build_system_prompt(registry)

    assert '<read_file>{"path": "src/app.py"}</read_file>' in prompt
    assert '<complete>{"summary": "..."}</complete>' in prompt
    for name in registry.names():
        assert name in prompt


def test_protocol_example_is_a_parseable_call() -> None:
    registry = create_default_registry()
    prompt = build_system_prompt(registry)

    result = ToolCallParser.for_registry(registry).parse(prompt)

    assert [call.tool_name for call in result.tool_calls][:1] == ["read_file"]
    assert result.tool_calls[0].arguments == {"path": "src/app.py"}


def test_system_prompt_optional_sections() -> None:
    prompt = build_system_prompt(
        create_default_registry(),
        completion_tool="complete",
        iteration_cap=7,
        extra_instructions="  Prefer small edits.  ",
    )

    assert "at most 7 replies" in prompt
    assert prompt.endswith("Prefer small edits.")


def test_goal_and_feedback_messages() -> None:
    assert build_goal_message("  fix the bug \n") == "Goal:\nfix the bug"

    intervention = build_intervention_message("Too many reads", "Summarise instead", completion_tool="finish")
    assert intervention.startswith("STOP: repeated tool calls detected. Too many reads. Summarise instead")
    assert "<finish>" in intervention

    note = build_parse_error_note(["<read_file> at offset 0: invalid JSON"])
    assert note.endswith("- <read_file> at offset 0: invalid JSON")
