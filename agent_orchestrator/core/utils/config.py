"""Configuration loading utilities for the orchestrator host."""
from __future__ import annotations

import json
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional, Sequence

from .constants import (
    DEFAULT_KEEP_RECENT_MESSAGES,
    DEFAULT_MAX_CONTEXT_TOKENS,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MAX_TOOL_OUTPUT_CHARS,
    DEFAULT_RESPONSE_TOKENS,
    DEFAULT_TIMEOUT_SECONDS,
    LOOP_DETECTION_WINDOW_SECONDS,
    MAX_IDENTICAL_CALLS,
    MAX_SAME_TOOL_CALLS,
)

if TYPE_CHECKING:  # pragma: no cover - typing only
    from agent_orchestrator.engine.types import SessionPolicy


ENV_PREFIX = "AGENT_ORCHESTRATOR_"
CONFIG_FILENAMES: tuple[str, ...] = (".agent-orchestrator.toml", "agent-orchestrator.toml")
DEFAULT_CONFIG_PATHS = (
    Path.home() / ".config" / "agent-orchestrator" / "config.toml",
    Path.home() / ".agent-orchestrator.toml",
)


def find_config_in_parents(
    start_path: Path, config_name: str | Sequence[str] = ".agent-orchestrator.toml"
) -> Optional[Path]:
    """Search parent directories starting from ``start_path`` for configuration files."""

    if isinstance(config_name, str):
        candidate_names: tuple[str, ...] = (config_name,)
    else:
        candidate_names = tuple(config_name)

    current = start_path.resolve()
    if current.is_file():
        current = current.parent

    while True:
        for name in candidate_names:
            candidate = current / name
            if candidate.is_file():
                return candidate.resolve()
        if current.parent == current:
            break
        current = current.parent
    return None


@dataclass
class Settings:
    """Runtime configuration for hosts driving the orchestrator."""

    provider: str = "openai"
    model: str = "gpt-4o-mini"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    request_timeout: float = 120.0
    request_headers: Dict[str, str] = field(default_factory=dict)
    workspace_root: Path = Path(".")
    log_level: str = "INFO"
    structured_logging: bool = False
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    timeout_seconds: float = float(DEFAULT_TIMEOUT_SECONDS)
    loop_window_seconds: float = float(LOOP_DETECTION_WINDOW_SECONDS)
    max_same_tool_calls: int = MAX_SAME_TOOL_CALLS
    max_identical_calls: int = MAX_IDENTICAL_CALLS
    rapid_repeat_threshold: Optional[int] = None
    interventions_count_against_budget: bool = True
    max_context_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS
    response_tokens: int = DEFAULT_RESPONSE_TOKENS
    max_tool_output_chars: int = DEFAULT_MAX_TOOL_OUTPUT_CHARS
    keep_recent_messages: int = DEFAULT_KEEP_RECENT_MESSAGES
    retry_max_attempts: int = 3
    retry_initial_delay: float = 0.5
    retry_max_delay: float = 8.0

    def to_policy(self) -> "SessionPolicy":
        """Project the loop-related settings onto a :class:`SessionPolicy`."""
        from agent_orchestrator.engine.types import SessionPolicy

        return SessionPolicy(
            max_iterations=self.max_iterations,
            timeout_seconds=self.timeout_seconds,
            loop_window_seconds=self.loop_window_seconds,
            max_same_tool_calls=self.max_same_tool_calls,
            max_identical_calls=self.max_identical_calls,
            rapid_repeat_threshold=self.rapid_repeat_threshold,
            interventions_count_against_budget=self.interventions_count_against_budget,
            max_context_tokens=self.max_context_tokens,
            response_tokens=self.response_tokens,
            max_tool_output_chars=self.max_tool_output_chars,
            keep_recent_messages=self.keep_recent_messages,
        )


_BOOL_FIELDS = {"structured_logging", "interventions_count_against_budget"}
_INT_FIELDS = {
    "max_iterations",
    "max_same_tool_calls",
    "max_identical_calls",
    "rapid_repeat_threshold",
    "max_context_tokens",
    "response_tokens",
    "max_tool_output_chars",
    "keep_recent_messages",
    "retry_max_attempts",
}
_FLOAT_FIELDS = {
    "request_timeout",
    "timeout_seconds",
    "loop_window_seconds",
    "retry_initial_delay",
    "retry_max_delay",
}


def _cast_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() in {"1", "true", "on", "yes", "y"}
    return bool(value)


def _load_from_file(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        return {}
    with path.open("rb") as handle:
        data = tomllib.load(handle)
    return {k.replace("-", "_"): v for k, v in data.items()}


def _load_from_env(prefix: str = ENV_PREFIX) -> Dict[str, Any]:
    env: Dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue
        name = key[len(prefix) :].lower()
        if name in _BOOL_FIELDS:
            env[name] = _cast_bool(value)
        elif name in _INT_FIELDS:
            env[name] = int(value)
        elif name in _FLOAT_FIELDS:
            env[name] = float(value)
        elif name == "workspace_root":
            env[name] = Path(value)
        elif name == "request_headers":
            try:
                env[name] = json.loads(value)
            except json.JSONDecodeError:
                env[name] = {}
        else:
            env[name] = value
    return env


def load_settings(explicit_path: Optional[Path] = None) -> Settings:
    """Load configuration, merging file and environment sources."""

    file_data: Dict[str, Any] = {}
    if explicit_path:
        file_data.update(_load_from_file(explicit_path))
    else:
        search_paths = []
        cwd = Path.cwd()
        project_config = find_config_in_parents(cwd, CONFIG_FILENAMES)
        if project_config:
            search_paths.append(project_config)
        search_paths.extend(DEFAULT_CONFIG_PATHS)
        seen_paths = set()
        for candidate in search_paths:
            if candidate in seen_paths:
                continue
            seen_paths.add(candidate)
            file_data = _load_from_file(candidate)
            if file_data:
                break

    merged: Dict[str, Any] = {**file_data, **_load_from_env()}

    if isinstance(merged.get("workspace_root"), str):
        merged["workspace_root"] = Path(merged["workspace_root"])
    headers = merged.get("request_headers")
    if isinstance(headers, str):
        try:
            merged["request_headers"] = json.loads(headers)
        except json.JSONDecodeError:
            merged["request_headers"] = {}

    # Unknown keys stay reachable as attributes for experimental toggles.
    known_fields = set(Settings.__dataclass_fields__)
    init_kwargs = {key: value for key, value in merged.items() if key in known_fields}
    settings = Settings(**init_kwargs)
    for key, value in merged.items():
        if key not in known_fields:
            setattr(settings, key, value)
    if not settings.workspace_root.is_absolute():
        settings.workspace_root = (Path.cwd() / settings.workspace_root).resolve()
    return settings


__all__ = ["Settings", "load_settings", "find_config_in_parents", "ENV_PREFIX"]
