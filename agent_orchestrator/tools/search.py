"""Content search across the workspace snapshot."""
from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Tuple

from agent_orchestrator.core.utils.constants import SEARCH_DEFAULT_MAX_RESULTS, SEARCH_HARD_MAX_RESULTS

from .names import SEARCH_PATTERN
from .registry import SCHEMA_DIR, ToolContext, ToolSpec, registry
from .workspace import normalize_path


def _compile(pattern: str, *, regex: bool, case_sensitive: bool) -> re.Pattern[str]:
    flags = 0 if case_sensitive else re.IGNORECASE
    source = pattern if regex else re.escape(pattern)
    try:
        return re.compile(source, flags)
    except re.error as exc:
        raise ValueError(f"Invalid regular expression {pattern!r}: {exc}") from exc


def search_pattern(payload: Mapping[str, Any], context: ToolContext) -> str:
    """Search file contents and group matching lines by file."""
    pattern = payload["pattern"]
    scope = normalize_path(payload.get("path", "."))
    limit = min(payload.get("max_results", SEARCH_DEFAULT_MAX_RESULTS), SEARCH_HARD_MAX_RESULTS)
    compiled = _compile(
        pattern,
        regex=bool(payload.get("regex", False)),
        case_sensitive=bool(payload.get("case_sensitive", True)),
    )

    candidates = [
        path
        for path in context.workspace.paths()
        if not scope or path == scope or path.startswith(f"{scope}/")
    ]
    if scope and not candidates:
        raise FileNotFoundError(f"Path '{payload.get('path')}' not found in workspace")

    grouped: Dict[str, List[Tuple[int, str]]] = {}
    total = 0
    truncated = False
    for path in candidates:
        for number, line in enumerate(context.workspace.read(path).splitlines(), start=1):
            if not compiled.search(line):
                continue
            if total >= limit:
                truncated = True
                break
            grouped.setdefault(path, []).append((number, line.strip()))
            total += 1
        if truncated:
            break

    if not grouped:
        return f"No matches for {pattern!r}."

    sections = []
    for path, matches in grouped.items():
        rendered = "\n".join(f"  {number}: {text}" for number, text in matches)
        sections.append(f"{path}\n{rendered}")
    summary = f"{total} match(es) in {len(grouped)} file(s)"
    if truncated:
        summary += f" (stopped at {limit}; narrow the search)"
    return summary + ":\n" + "\n".join(sections)


SEARCH_TOOLS = (
    ToolSpec(
        name=SEARCH_PATTERN,
        handler=search_pattern,
        request_schema_path=SCHEMA_DIR / "search_pattern.request.json",
        description=(
            "Search file contents for 'pattern' (literal unless 'regex' is true), optionally below 'path'. "
            f"Returns matching lines grouped by file, at most {SEARCH_HARD_MAX_RESULTS}."
        ),
        category="search",
    ),
)

for _spec in SEARCH_TOOLS:
    registry.register(_spec)


__all__ = ["SEARCH_TOOLS", "search_pattern"]
