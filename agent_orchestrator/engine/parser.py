"""Extract ``<tool_name>{json}</tool_name>`` invocations from a model reply."""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from agent_orchestrator.core.utils.logger import get_logger
from agent_orchestrator.tools.registry import ToolRegistry
from agent_orchestrator.tools.types import ToolCallRequest

LOGGER = get_logger(__name__)

_WHITESPACE = re.compile(r"\s*")


def _reject_constant(value: str) -> Any:
    raise ValueError(f"{value} is not valid JSON")


@dataclass(frozen=True)
class ParseDiagnostic:
    """Why a tool block was skipped."""

    tool_name: str
    offset: int
    message: str

    def __str__(self) -> str:
        return f"<{self.tool_name}> at offset {self.offset}: {self.message}"


@dataclass
class ParseResult:
    tool_calls: List[ToolCallRequest] = field(default_factory=list)
    prose: str = ""
    diagnostics: List[ParseDiagnostic] = field(default_factory=list)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


class ToolCallParser:
    """Parser whose tag vocabulary is the set of registered tool names.

    Any other ``<word>`` (HTML landmarks such as ``<main>``, XML inside JSON
    strings) is plain text. A block body is decoded as one strict JSON value
    starting right after the opening tag, so a registered tag name appearing
    inside a JSON string cannot close or open a block. A block whose body is
    not a JSON object is skipped with a diagnostic and parsing continues.
    When such a body runs into another registered opening tag before its own
    closing tag, the first tag is only a mention in prose and scanning resumes
    right after it.
    """

    def __init__(self, tool_names: Iterable[str]) -> None:
        names = sorted(set(tool_names), key=len, reverse=True)
        if not names:
            raise ValueError("ToolCallParser needs at least one tool name")
        self._names = frozenset(names)
        self._opening = re.compile("<(" + "|".join(re.escape(name) for name in names) + ")>")
        self._decoder = json.JSONDecoder(parse_constant=_reject_constant)

    @classmethod
    def for_registry(cls, registry: ToolRegistry) -> "ToolCallParser":
        return cls(registry.names())

    @property
    def vocabulary(self) -> frozenset[str]:
        return self._names

    def parse(self, text: str) -> ParseResult:
        result = ParseResult()
        prose_parts: List[str] = []
        prose_start = 0
        search_from = 0

        while True:
            match = self._opening.search(text, search_from)
            if match is None:
                break
            name = match.group(1)
            outcome = self._read_block(text, match.end(), f"</{name}>")
            if outcome is None:
                diagnostic = ParseDiagnostic(name, match.start(), "no closing tag")
                result.diagnostics.append(diagnostic)
                LOGGER.warning("Skipping tool block %s", diagnostic)
                search_from = match.end()
                continue

            arguments, block_end, error = outcome
            if error is not None and self._opening.search(text, match.end(), block_end - len(name) - 3):
                # A tag named in prose; the real blocks start further on.
                LOGGER.debug("Treating <%s> at offset %d as prose", name, match.start())
                search_from = match.end()
                continue
            prose_parts.append(text[prose_start : match.start()])
            if error is not None:
                diagnostic = ParseDiagnostic(name, match.start(), error)
                result.diagnostics.append(diagnostic)
                LOGGER.warning("Skipping tool block %s", diagnostic)
            else:
                result.tool_calls.append(
                    ToolCallRequest(
                        tool_name=name,
                        arguments=arguments or {},
                        source_span=(match.start(), block_end),
                    )
                )
            prose_start = search_from = block_end

        prose_parts.append(text[prose_start:])
        result.prose = "".join(prose_parts).strip()
        return result

    def _read_block(
        self, text: str, body_start: int, closing: str
    ) -> Optional[Tuple[Optional[Dict[str, Any]], int, Optional[str]]]:
        """Return ``(arguments, end_offset, error)`` or None when the block never closes."""

        index = _WHITESPACE.match(text, body_start).end()
        if text.startswith(closing, index):
            return {}, index + len(closing), None

        try:
            value, after = self._decoder.raw_decode(text, index)
        except ValueError as exc:
            error = f"invalid JSON ({exc})"
        else:
            tail = _WHITESPACE.match(text, after).end()
            if text.startswith(closing, tail):
                if not isinstance(value, dict):
                    return None, tail + len(closing), "arguments must be a JSON object"
                return value, tail + len(closing), None
            error = "unexpected text after the JSON arguments"

        closing_at = text.find(closing, body_start)
        if closing_at == -1:
            return None
        return None, closing_at + len(closing), error


__all__ = ["ToolCallParser", "ParseResult", "ParseDiagnostic"]
