"""Tool registry and validation helpers."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Union

from jsonschema import Draft7Validator

from agent_orchestrator.core.utils.logger import get_logger

from .workspace import StagedWorkspace

LOGGER = get_logger(__name__)

SCHEMA_DIR = Path(__file__).resolve().parent / "schemas" / "tools"


@dataclass
class ToolContext:
    """Runtime context passed to tool handlers."""

    workspace: StagedWorkspace
    session_id: Optional[str] = None
    iteration: int = 0
    extra: Dict[str, Any] = field(default_factory=dict)


ToolHandler = Callable[[Mapping[str, Any], ToolContext], Union[str, Awaitable[str]]]


@dataclass
class ToolSpec:
    """Metadata for a registered tool."""

    name: str
    handler: ToolHandler
    request_schema_path: Path
    description: str = ""
    terminal: bool = False
    category: Optional[str] = None

    @property
    def schema(self) -> Dict[str, Any]:
        return dict(_load_validator(self.request_schema_path).schema)


class ToolRegistry:
    """Registry that manages tool specifications and argument validation."""

    def __init__(self) -> None:
        self._tools: Dict[str, ToolSpec] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def register(self, spec: ToolSpec) -> None:
        if not spec.name.isidentifier():
            raise ValueError(f"Tool name '{spec.name}' must be a plain identifier")
        if spec.name in self._tools:
            LOGGER.debug("Overwriting existing tool registration for %s", spec.name)
        self._tools[spec.name] = spec

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)

    def get(self, name: str) -> ToolSpec:
        if name not in self._tools:
            raise KeyError(f"Tool '{name}' is not registered")
        return self._tools[name]

    def available(self) -> Iterable[str]:
        return sorted(self._tools.keys())

    def names(self) -> FrozenSet[str]:
        """Vocabulary of tag names the tool-call parser may treat as delimiters."""
        return frozenset(self._tools)

    def terminal_tools(self) -> FrozenSet[str]:
        return frozenset(name for name, spec in self._tools.items() if spec.terminal)

    def is_terminal(self, name: str) -> bool:
        spec = self._tools.get(name)
        return bool(spec and spec.terminal)

    def validate(self, name: str, arguments: Mapping[str, Any]) -> List[str]:
        """Return schema violations for ``arguments`` (empty when valid)."""
        spec = self.get(name)
        validator = _load_validator(spec.request_schema_path)
        errors = sorted(validator.iter_errors(arguments), key=lambda exc: list(exc.path))
        messages = []
        for error in errors:
            location = "/".join(str(part) for part in error.path)
            messages.append(f"{location}: {error.message}" if location else error.message)
        return messages

    def describe(self) -> str:
        """Render the tool catalogue for the system prompt."""
        lines: List[str] = []
        for name in self.available():
            spec = self._tools[name]
            schema = spec.schema
            properties = schema.get("properties", {})
            required = set(schema.get("required", []))
            params = ", ".join(
                f"{key}{'' if key in required else '?'}: {value.get('type', 'any')}"
                for key, value in properties.items()
            )
            suffix = " (ends the session)" if spec.terminal else ""
            lines.append(f"- {name}({params}){suffix}: {spec.description}")
        return "\n".join(lines)


@lru_cache(maxsize=64)
def _load_validator(schema_path: Path) -> Draft7Validator:
    with schema_path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    Draft7Validator.check_schema(data)
    return Draft7Validator(data)


# Global registry instance -------------------------------------------------

registry = ToolRegistry()


__all__ = ["ToolContext", "ToolHandler", "ToolSpec", "ToolRegistry", "registry", "SCHEMA_DIR"]
