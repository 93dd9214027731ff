"""Tests for the built-in tools and the dispatcher."""
from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from agent_orchestrator.tools import (
    COMPLETE,
    DELETE_FILE,
    EDIT_FILE,
    LIST_DIRECTORY,
    READ_FILE,
    SEARCH_PATTERN,
    WRITE_FILE,
    FileChangeKind,
    ToolCallRequest,
    ToolDispatcher,
    ToolRegistry,
    ToolSpec,
    WorkspaceSnapshot,
    create_default_registry,
)


def _dispatch(name, arguments, snapshot, registry=None):
    dispatcher = ToolDispatcher(registry or create_default_registry())
    call = ToolCallRequest(tool_name=name, arguments=arguments)
    return asyncio.run(dispatcher.dispatch(call, snapshot, session_id="s-1", iteration=1))


@pytest.fixture
def snapshot() -> WorkspaceSnapshot:
    return WorkspaceSnapshot(
        {
            "README.md": "# Demo\n",
            "src/app.py": "def main():\n    return 1\n",
            "src/pkg/util.py": "VALUE = 1\nOTHER = 1\n",
        }
    )


def test_read_file_numbers_lines(snapshot: WorkspaceSnapshot) -> None:
    result = _dispatch(READ_FILE, {"path": "src/app.py"}, snapshot)

    assert result.success, result.error_message
    assert "     1\tdef main():" in result.output
    assert "     2\t    return 1" in result.output
    assert result.side_effects == []


def test_read_file_pages_with_offset_and_limit() -> None:
    snapshot = WorkspaceSnapshot({"big.txt": "\n".join(f"line {n}" for n in range(1, 11))})

    result = _dispatch(READ_FILE, {"path": "big.txt", "offset": 3, "limit": 2}, snapshot)

    assert result.success
    assert "     3\tline 3" in result.output
    assert "     5\t" not in result.output
    assert "[Showing lines 3-4 of 10.]" in result.output


def test_read_file_truncates_long_files() -> None:
    snapshot = WorkspaceSnapshot({"huge.txt": "\n".join("x" for _ in range(2500))})

    result = _dispatch(READ_FILE, {"path": "huge.txt"}, snapshot)

    assert result.success
    assert "[TRUNCATED: Showing first 2000 lines of 2500 total lines." in result.output


def test_read_missing_file_is_a_failed_result(snapshot: WorkspaceSnapshot) -> None:
    result = _dispatch(READ_FILE, {"path": "nope.py"}, snapshot)

    assert result.success is False
    assert "not found" in result.error_message
    assert result.render().startswith("[tool_result name=read_file status=error]")


def test_write_file_records_change_without_committing(snapshot: WorkspaceSnapshot) -> None:
    result = _dispatch(WRITE_FILE, {"path": "src/new.py", "content": "X = 1\n"}, snapshot)

    assert result.success
    assert result.output == "Created src/new.py (1 lines)."
    assert len(result.side_effects) == 1
    change = result.side_effects[0]
    assert change.kind is FileChangeKind.CREATE
    assert change.new_content == "X = 1\n"
    assert change.old_content is None
    assert "src/new.py" not in snapshot


def test_write_file_over_existing_file_is_a_modify(snapshot: WorkspaceSnapshot) -> None:
    result = _dispatch(WRITE_FILE, {"path": "README.md", "content": "# New\n"}, snapshot)

    change = result.side_effects[0]
    assert change.kind is FileChangeKind.MODIFY
    assert change.old_content == "# Demo\n"


def test_write_file_rejects_paths_outside_workspace(snapshot: WorkspaceSnapshot) -> None:
    result = _dispatch(WRITE_FILE, {"path": "../escape.py", "content": ""}, snapshot)

    assert result.success is False
    assert "escapes workspace root" in result.error_message


def test_edit_file_requires_unique_match(snapshot: WorkspaceSnapshot) -> None:
    result = _dispatch(
        EDIT_FILE,
        {"path": "src/pkg/util.py", "old_string": "= 1", "new_string": "= 2"},
        snapshot,
    )

    assert result.success is False
    assert "appears 2 times" in result.error_message
    assert result.side_effects == []


def test_edit_file_replace_all(snapshot: WorkspaceSnapshot) -> None:
    result = _dispatch(
        EDIT_FILE,
        {"path": "src/pkg/util.py", "old_string": "= 1", "new_string": "= 2", "replace_all": True},
        snapshot,
    )

    assert result.success, result.error_message
    assert result.output == "Edited src/pkg/util.py: replaced 2 occurrence(s)."
    change = result.side_effects[0]
    assert change.kind is FileChangeKind.MODIFY
    assert change.new_content == "VALUE = 2\nOTHER = 2\n"
    assert change.old_content == "VALUE = 1\nOTHER = 1\n"


def test_edit_file_single_occurrence(snapshot: WorkspaceSnapshot) -> None:
    result = _dispatch(
        EDIT_FILE,
        {"path": "src/app.py", "old_string": "return 1", "new_string": "return 2"},
        snapshot,
    )

    assert result.success
    assert result.side_effects[0].new_content == "def main():\n    return 2\n"


def test_edit_file_reports_missing_text_and_identical_strings(snapshot: WorkspaceSnapshot) -> None:
    missing = _dispatch(EDIT_FILE, {"path": "src/app.py", "old_string": "nope", "new_string": "x"}, snapshot)
    identical = _dispatch(
        EDIT_FILE, {"path": "src/app.py", "old_string": "main", "new_string": "main"}, snapshot
    )

    assert missing.success is False
    assert "not found" in missing.error_message
    assert identical.success is False
    assert "identical" in identical.error_message


def test_delete_file(snapshot: WorkspaceSnapshot) -> None:
    result = _dispatch(DELETE_FILE, {"path": "README.md"}, snapshot)
    missing = _dispatch(DELETE_FILE, {"path": "ghost.md"}, snapshot)

    assert result.success
    change = result.side_effects[0]
    assert change.kind is FileChangeKind.DELETE
    assert change.new_content is None
    assert change.old_content == "# Demo\n"
    assert missing.success is False


def test_list_directory(snapshot: WorkspaceSnapshot) -> None:
    root = _dispatch(LIST_DIRECTORY, {"path": "."}, snapshot)
    nested = _dispatch(LIST_DIRECTORY, {"path": "src", "recursive": True}, snapshot)
    on_file = _dispatch(LIST_DIRECTORY, {"path": "README.md"}, snapshot)
    missing = _dispatch(LIST_DIRECTORY, {"path": "docs"}, snapshot)

    assert root.output == "Contents of .:\nREADME.md\nsrc/"
    assert nested.output == "Contents of src:\napp.py\npkg/\npkg/util.py"
    assert on_file.success is False
    assert missing.success is False


def test_search_pattern_literal_and_regex(snapshot: WorkspaceSnapshot) -> None:
    literal = _dispatch(SEARCH_PATTERN, {"pattern": "value", "case_sensitive": False}, snapshot)
    regex = _dispatch(SEARCH_PATTERN, {"pattern": r"^def \w+", "regex": True, "path": "src"}, snapshot)
    none = _dispatch(SEARCH_PATTERN, {"pattern": "zzz"}, snapshot)

    assert literal.success
    assert literal.output.startswith("1 match(es) in 1 file(s):")
    assert "src/pkg/util.py\n  1: VALUE = 1" in literal.output
    assert "src/app.py\n  1: def main():" in regex.output
    assert none.output == "No matches for 'zzz'."


def test_search_pattern_invalid_regex_is_a_failed_result(snapshot: WorkspaceSnapshot) -> None:
    result = _dispatch(SEARCH_PATTERN, {"pattern": "(unclosed", "regex": True}, snapshot)

    assert result.success is False
    assert "Invalid regular expression" in result.error_message


def test_search_pattern_respects_max_results(snapshot: WorkspaceSnapshot) -> None:
    result = _dispatch(SEARCH_PATTERN, {"pattern": "1", "max_results": 1}, snapshot)

    assert result.output.startswith("1 match(es) in 1 file(s) (stopped at 1; narrow the search):")


def test_complete_returns_summary(snapshot: WorkspaceSnapshot) -> None:
    result = _dispatch(COMPLETE, {"summary": "  Fixed the bug.  "}, snapshot)

    assert result.success
    assert result.output == "Fixed the bug."


def test_schema_violation_is_a_failed_result(snapshot: WorkspaceSnapshot) -> None:
    wrong_key = _dispatch(READ_FILE, {"paht": "README.md"}, snapshot)
    empty_summary = _dispatch(COMPLETE, {"summary": ""}, snapshot)

    assert wrong_key.success is False
    assert wrong_key.error_message.startswith("Invalid arguments for read_file:")
    assert empty_summary.success is False


def test_unknown_tool_is_a_failed_result(snapshot: WorkspaceSnapshot) -> None:
    result = _dispatch("run_shell", {}, snapshot)

    assert result.success is False
    assert "not registered" in result.error_message


def _custom_registry(tmp_path: Path, handler) -> ToolRegistry:
    schema_path = tmp_path / "custom.request.json"
    schema_path.write_text(json.dumps({"type": "object"}), encoding="utf-8")
    registry = ToolRegistry()
    registry.register(ToolSpec(name="custom", handler=handler, request_schema_path=schema_path))
    return registry


def test_unexpected_handler_error_is_contained(tmp_path: Path, snapshot: WorkspaceSnapshot) -> None:
    def explode(payload, context):
        raise RuntimeError("kaboom")

    result = _dispatch("custom", {}, snapshot, registry=_custom_registry(tmp_path, explode))

    assert result.success is False
    assert result.error_message == "Tool custom failed: kaboom"


def test_async_handler_is_awaited(tmp_path: Path, snapshot: WorkspaceSnapshot) -> None:
    async def handler(payload, context):
        await asyncio.sleep(0)
        return f"iteration {context.iteration} of {context.session_id}"

    result = _dispatch("custom", {}, snapshot, registry=_custom_registry(tmp_path, handler))

    assert result.success
    assert result.output == "iteration 1 of s-1"
    assert result.duration_ms >= 0


def test_registry_rejects_non_identifier_names(tmp_path: Path) -> None:
    registry = ToolRegistry()
    with pytest.raises(ValueError):
        registry.register(ToolSpec(name="code.search", handler=lambda p, c: "", request_schema_path=tmp_path / "x.json"))


def test_default_registry_catalogue() -> None:
    registry = create_default_registry()

    assert registry.terminal_tools() == frozenset({COMPLETE})
    assert registry.is_terminal(COMPLETE)
    assert not registry.is_terminal(READ_FILE)
    description = registry.describe()
    assert "- complete(summary: string) (ends the session):" in description
    assert "- read_file(path: string, offset?: integer, limit?: integer):" in description
