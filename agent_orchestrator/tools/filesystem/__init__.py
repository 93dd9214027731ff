"""Filesystem tool implementations backed by the workspace snapshot."""
from __future__ import annotations

from typing import Any, Mapping

from agent_orchestrator.core.utils.constants import (
    LIST_DIRECTORY_MAX_ENTRIES,
    READ_FILE_DEFAULT_LINE_LIMIT,
    READ_FILE_MAX_LINE_CHARS,
)

from ..names import DELETE_FILE, EDIT_FILE, LIST_DIRECTORY, READ_FILE, WRITE_FILE
from ..registry import SCHEMA_DIR, ToolContext, ToolSpec, registry


def _format_lines(lines: list[str], start_line: int) -> str:
    rendered = []
    for number, line in enumerate(lines, start=start_line):
        if len(line) > READ_FILE_MAX_LINE_CHARS:
            line = line[:READ_FILE_MAX_LINE_CHARS] + " [line truncated]"
        rendered.append(f"{number:6d}\t{line}")
    return "\n".join(rendered)


def _fs_read(payload: Mapping[str, Any], context: ToolContext) -> str:
    path = payload["path"]
    content = context.workspace.read(path)
    lines = content.splitlines()
    total = len(lines)
    if not lines:
        return f"{path} is empty."

    offset = payload.get("offset")
    limit = payload.get("limit")
    if offset is not None or limit is not None:
        start = (offset or 1) - 1
        if start >= total:
            raise ValueError(f"Offset {offset} is beyond the end of '{path}' ({total} lines)")
        end = total if limit is None else min(start + limit, total)
        body = _format_lines(lines[start:end], start + 1)
        if end < total:
            body += f"\n\n[Showing lines {start + 1}-{end} of {total}.]"
        return body

    if total > READ_FILE_DEFAULT_LINE_LIMIT:
        body = _format_lines(lines[:READ_FILE_DEFAULT_LINE_LIMIT], 1)
        return (
            f"{body}\n\n[TRUNCATED: Showing first {READ_FILE_DEFAULT_LINE_LIMIT} lines of {total} total lines. "
            "Use offset/limit to read specific sections.]"
        )
    return _format_lines(lines, 1)


def _fs_write(payload: Mapping[str, Any], context: ToolContext) -> str:
    change = context.workspace.write(payload["path"], payload["content"])
    verb = "Created" if change.old_content is None else "Updated"
    line_count = len(payload["content"].splitlines())
    return f"{verb} {change.path} ({line_count} lines)."


def _fs_edit(payload: Mapping[str, Any], context: ToolContext) -> str:
    path = payload["path"]
    old_string = payload["old_string"]
    new_string = payload["new_string"]
    replace_all = bool(payload.get("replace_all", False))

    if old_string == new_string:
        raise ValueError("old_string and new_string are identical; nothing to edit")

    content = context.workspace.read(path)
    occurrences = content.count(old_string)
    if occurrences == 0:
        preview = old_string[:100] + ("..." if len(old_string) > 100 else "")
        raise ValueError(f"Text to replace not found in '{path}': {preview!r}")
    if occurrences > 1 and not replace_all:
        raise ValueError(
            f"Text to replace appears {occurrences} times in '{path}'. "
            "Make old_string more specific or set replace_all to true."
        )

    if replace_all:
        updated = content.replace(old_string, new_string)
    else:
        updated = content.replace(old_string, new_string, 1)
    change = context.workspace.write(path, updated)
    replaced = occurrences if replace_all else 1
    return f"Edited {change.path}: replaced {replaced} occurrence(s)."


def _fs_delete(payload: Mapping[str, Any], context: ToolContext) -> str:
    change = context.workspace.delete(payload["path"])
    return f"Deleted {change.path}."


def _fs_list(payload: Mapping[str, Any], context: ToolContext) -> str:
    path = payload.get("path", ".")
    entries = context.workspace.list_directory(path, recursive=bool(payload.get("recursive", False)))
    shown_path = path if path not in ("", ".") else "."
    if not entries:
        return f"{shown_path} is empty."
    listing = entries[:LIST_DIRECTORY_MAX_ENTRIES]
    body = "\n".join(listing)
    if len(entries) > len(listing):
        body += f"\n[... {len(entries) - len(listing)} more entries omitted ...]"
    return f"Contents of {shown_path}:\n{body}"


FILESYSTEM_TOOLS = (
    ToolSpec(
        name=READ_FILE,
        handler=_fs_read,
        request_schema_path=SCHEMA_DIR / "read_file.request.json",
        description=(
            "Read a workspace file with line numbers. Large files are truncated to the first "
            f"{READ_FILE_DEFAULT_LINE_LIMIT} lines; use 'offset' (1-based) and 'limit' to page."
        ),
        category="file_read",
    ),
    ToolSpec(
        name=WRITE_FILE,
        handler=_fs_write,
        request_schema_path=SCHEMA_DIR / "write_file.request.json",
        description="Create a file or replace its entire content.",
        category="file_write",
    ),
    ToolSpec(
        name=EDIT_FILE,
        handler=_fs_edit,
        request_schema_path=SCHEMA_DIR / "edit_file.request.json",
        description=(
            "Replace 'old_string' with 'new_string' in a file. 'old_string' must match exactly once "
            "unless 'replace_all' is true."
        ),
        category="file_write",
    ),
    ToolSpec(
        name=DELETE_FILE,
        handler=_fs_delete,
        request_schema_path=SCHEMA_DIR / "delete_file.request.json",
        description="Delete a file from the workspace.",
        category="file_write",
    ),
    ToolSpec(
        name=LIST_DIRECTORY,
        handler=_fs_list,
        request_schema_path=SCHEMA_DIR / "list_directory.request.json",
        description="List a directory ('.' for the root). Directories end with '/'. Set 'recursive' for a full tree.",
        category="file_read",
    ),
)

for _spec in FILESYSTEM_TOOLS:
    registry.register(_spec)


__all__ = ["FILESYSTEM_TOOLS", "_fs_read", "_fs_write", "_fs_edit", "_fs_delete", "_fs_list"]
