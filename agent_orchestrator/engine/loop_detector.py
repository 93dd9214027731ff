"""Sliding-window detection of unproductive tool-call repetition."""
from __future__ import annotations

import hashlib
import json
import time
from collections import deque
from typing import Any, Callable, Deque, Iterable, Mapping, Optional, Sequence

from agent_orchestrator.core.utils.constants import (
    LOOP_DETECTION_WINDOW_SECONDS,
    MAX_IDENTICAL_CALLS,
    MAX_SAME_TOOL_CALLS,
    RAPID_CALL_WINDOW_SECONDS,
)
from agent_orchestrator.core.utils.logger import get_logger, log_fields
from agent_orchestrator.session.prompt_builder import build_intervention_message
from agent_orchestrator.tools.names import COMPLETE
from agent_orchestrator.tools.types import ToolCallRequest

from .types import LoopVerdict, SessionPolicy, ToolCallHistoryEntry

LOGGER = get_logger(__name__)

MAX_HISTORY_ENTRIES = 1_000

EXCESSIVE_SAME_TOOL = "excessive_same_tool"
IDENTICAL_REPEAT = "identical_repeat"
RAPID_REPEAT = "rapid_repeat"


def fingerprint(arguments: Mapping[str, Any]) -> str:
    """Stable hash of tool arguments (key order does not matter)."""
    canonical = json.dumps(arguments, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class LoopDetector:
    """Track attempted tool calls and flag repetition.

    Two independent triggers, either sufficient:

    * the same tool name appears more than ``max_same_tool`` times in the window;
    * the same ``(tool, arguments)`` pair appears ``max_identical`` times in the window.

    An optional third trigger flags identical calls reaching ``rapid_threshold``
    within ``rapid_window_seconds``. Expired entries are purged on every check
    and the history never holds more than ``max_entries`` entries.
    """

    def __init__(
        self,
        *,
        window_seconds: float = LOOP_DETECTION_WINDOW_SECONDS,
        max_same_tool: int = MAX_SAME_TOOL_CALLS,
        max_identical: int = MAX_IDENTICAL_CALLS,
        rapid_window_seconds: float = RAPID_CALL_WINDOW_SECONDS,
        rapid_threshold: Optional[int] = None,
        exempt_tools: Iterable[str] = (),
        max_entries: int = MAX_HISTORY_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_seconds = window_seconds
        self.max_same_tool = max_same_tool
        self.max_identical = max_identical
        self.rapid_window_seconds = rapid_window_seconds
        self.rapid_threshold = rapid_threshold
        self.exempt_tools = frozenset(exempt_tools)
        self._clock = clock
        self._history: Deque[ToolCallHistoryEntry] = deque(maxlen=max_entries)

    @classmethod
    def from_policy(cls, policy: SessionPolicy, *, exempt_tools: Iterable[str] = (), **kwargs: Any) -> "LoopDetector":
        return cls(
            window_seconds=policy.loop_window_seconds,
            max_same_tool=policy.max_same_tool_calls,
            max_identical=policy.max_identical_calls,
            rapid_window_seconds=policy.rapid_window_seconds,
            rapid_threshold=policy.rapid_repeat_threshold,
            exempt_tools=exempt_tools,
            **kwargs,
        )

    def __len__(self) -> int:
        return len(self._history)

    @property
    def history(self) -> Sequence[ToolCallHistoryEntry]:
        return tuple(self._history)

    def reset(self) -> None:
        self._history.clear()

    def check(self, calls: Sequence[ToolCallRequest], iteration: int) -> LoopVerdict:
        """Record ``calls`` in order and return the first verdict that triggers."""

        now = self._clock()
        self._purge(now)
        for call in calls:
            if call.tool_name in self.exempt_tools:
                continue
            entry = ToolCallHistoryEntry(
                tool_name=call.tool_name,
                args_fingerprint=fingerprint(call.arguments),
                timestamp=now,
                iteration=iteration,
            )
            self._history.append(entry)
            verdict = self._evaluate(entry, now)
            if verdict.triggered:
                LOGGER.warning(
                    "Loop detected at iteration %d: %s",
                    iteration,
                    verdict.reason,
                    extra=log_fields(iteration=iteration, trigger=verdict.trigger, tool=verdict.tool_name),
                )
                return verdict
        return LoopVerdict()

    def intervention_message(self, verdict: LoopVerdict, *, completion_tool: str = COMPLETE) -> str:
        return build_intervention_message(verdict.reason, verdict.suggestion, completion_tool=completion_tool)

    def _purge(self, now: float) -> None:
        while self._history and now - self._history[0].timestamp >= self.window_seconds:
            self._history.popleft()

    def _evaluate(self, entry: ToolCallHistoryEntry, now: float) -> LoopVerdict:
        same_tool = [item for item in self._history if item.tool_name == entry.tool_name]
        if len(same_tool) > self.max_same_tool:
            return LoopVerdict(
                triggered=True,
                trigger=EXCESSIVE_SAME_TOOL,
                tool_name=entry.tool_name,
                reason=(
                    f'Tool "{entry.tool_name}" called {len(same_tool)} times in the last '
                    f"{self.window_seconds / 60:g} minutes (max: {self.max_same_tool})"
                ),
                suggestion="Try a different approach instead of calling the same tool again",
            )

        identical = [item for item in same_tool if item.args_fingerprint == entry.args_fingerprint]
        if len(identical) >= self.max_identical:
            return LoopVerdict(
                triggered=True,
                trigger=IDENTICAL_REPEAT,
                tool_name=entry.tool_name,
                reason=(
                    f'Identical call to "{entry.tool_name}" repeated {len(identical)} times '
                    f"(limit: {self.max_identical})"
                ),
                suggestion="The earlier calls already returned this information; analyse those results",
            )

        if self.rapid_threshold is not None:
            rapid = [item for item in identical if now - item.timestamp < self.rapid_window_seconds]
            if len(rapid) >= self.rapid_threshold:
                return LoopVerdict(
                    triggered=True,
                    trigger=RAPID_REPEAT,
                    tool_name=entry.tool_name,
                    reason=(
                        f'Rapid repeated calls to "{entry.tool_name}" within '
                        f"{self.rapid_window_seconds:g} seconds"
                    ),
                    suggestion="Stop repeating the same tool call; the information has already been retrieved",
                )

        return LoopVerdict()


__all__ = [
    "LoopDetector",
    "fingerprint",
    "EXCESSIVE_SAME_TOOL",
    "IDENTICAL_REPEAT",
    "RAPID_REPEAT",
    "MAX_HISTORY_ENTRIES",
]
