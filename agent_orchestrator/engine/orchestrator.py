"""Goal-directed model/tool loop."""
from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Union

from agent_orchestrator.core.utils.logger import get_logger, reset_correlation_id, set_correlation_id
from agent_orchestrator.core.utils.retry_handler import RetryHandler
from agent_orchestrator.providers.llm.base import LLMClient, LLMError, Message
from agent_orchestrator.session.context_builder import ContextBuilder, ContextBuilderConfig
from agent_orchestrator.session.models import IterationRecord, Session, SessionStatus
from agent_orchestrator.session.prompt_builder import (
    build_goal_message,
    build_parse_error_note,
    build_system_prompt,
)
from agent_orchestrator.tools.dispatcher import ToolDispatcher
from agent_orchestrator.tools.registry import ToolRegistry
from agent_orchestrator.tools.registry import registry as default_registry
from agent_orchestrator.tools.types import ToolCallRequest, ToolResult
from agent_orchestrator.tools.workspace import WorkspaceSnapshot

from .errors import SessionBusyError, SessionStateError
from .loop_detector import LoopDetector, fingerprint
from .parser import ParseResult, ToolCallParser
from .supervisor import STALE, CancellationSupervisor
from .types import SessionHooks, SessionPolicy

LOGGER = get_logger(__name__)

WorkspaceInput = Union[WorkspaceSnapshot, Mapping[str, str], None]


@dataclass
class _RunState:
    session: Session
    supervisor: CancellationSupervisor
    generation: int
    parser: ToolCallParser
    detector: LoopDetector
    workspace: WorkspaceSnapshot
    free_iterations: int = 0
    last_intervention: Optional[int] = None


class SessionOrchestrator:
    """Drive one session at a time from goal to a terminal status.

    Each pass builds the bounded context, asks the model for a reply, parses
    tool calls out of it, checks for repetition and dispatches the calls in
    order. Liveness is re-checked after every suspension point; once the
    session has left its generation nothing awaited on its behalf can change
    it.
    """

    def __init__(
        self,
        llm_client: LLMClient,
        registry: Optional[ToolRegistry] = None,
        policy: Optional[SessionPolicy] = None,
        hooks: Optional[SessionHooks] = None,
        context_builder: Optional[ContextBuilder] = None,
        retry_handler: Optional[RetryHandler] = None,
        system_prompt: Optional[str] = None,
    ) -> None:
        self.llm_client = llm_client
        self.registry = registry if registry is not None else default_registry
        self.policy = policy or SessionPolicy()
        self.hooks = hooks or SessionHooks()
        self.context_builder = context_builder or ContextBuilder(
            ContextBuilderConfig(
                max_total_tokens=self.policy.max_context_tokens,
                response_tokens=self.policy.response_tokens,
                keep_recent_messages=self.policy.keep_recent_messages,
                max_tool_output_chars=self.policy.max_tool_output_chars,
            )
        )
        self.retry_handler = retry_handler or RetryHandler()
        self.dispatcher = ToolDispatcher(self.registry)
        self._system_prompt = system_prompt

        if self.policy.completion_tool not in self.registry:
            raise ValueError(f"Completion tool '{self.policy.completion_tool}' is not registered")

        self._current: Optional[Session] = None
        self._supervisors: Dict[str, CancellationSupervisor] = {}
        self._workspaces: Dict[str, WorkspaceSnapshot] = {}
        self._running: set[str] = set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def active_session(self) -> Optional[Session]:
        if self._current is not None and self._current.status is SessionStatus.ACTIVE:
            return self._current
        return None

    def start(self, goal: str, workspace: WorkspaceInput = None) -> Session:
        """Create a session for ``goal`` and make it Active."""

        if not goal or not goal.strip():
            raise ValueError("goal must be a non-empty string")
        active = self.active_session
        if active is not None:
            raise SessionBusyError(f"Session {active.id} is still active")

        snapshot = workspace if isinstance(workspace, WorkspaceSnapshot) else WorkspaceSnapshot(workspace)
        session = Session(id=uuid.uuid4().hex, goal=goal.strip())
        session.append_message("system", self._system_prompt or self._default_system_prompt())
        session.append_message("user", build_goal_message(goal))

        supervisor = CancellationSupervisor(session, self.policy, self.hooks)
        self._supervisors[session.id] = supervisor
        self._workspaces[session.id] = snapshot
        self._current = session
        supervisor.activate()
        return session

    async def run(self, session: Session) -> Session:
        """Iterate until ``session`` reaches a terminal status and return it."""

        supervisor = self._supervisors.get(session.id)
        if supervisor is None:
            if session.is_terminal:
                return session
            raise SessionStateError(f"Session {session.id} was not started by this orchestrator")
        if session.id in self._running:
            raise SessionStateError(f"Session {session.id} is already running")

        state = _RunState(
            session=session,
            supervisor=supervisor,
            generation=supervisor.generation,
            parser=ToolCallParser.for_registry(self.registry),
            detector=LoopDetector.from_policy(self.policy, exempt_tools=self._exempt_tools()),
            workspace=self._workspaces[session.id],
        )
        self._running.add(session.id)
        token = set_correlation_id(session.id)
        watchdog = asyncio.ensure_future(supervisor.watchdog(state.generation))
        try:
            while supervisor.is_current(state.generation):
                await self._iterate(state)
        except asyncio.CancelledError:
            supervisor.transition(state.generation, SessionStatus.CANCELLED, "run task cancelled")
            raise
        except Exception as exc:
            LOGGER.exception("Session %s failed", session.id)
            supervisor.transition(state.generation, SessionStatus.ERROR, f"unrecoverable error: {exc}")
        finally:
            watchdog.cancel()
            self._running.discard(session.id)
            self._supervisors.pop(session.id, None)
            reset_correlation_id(token)

        LOGGER.info(
            "Session %s finished with %s after %d iteration(s)",
            session.id,
            session.status.value,
            session.iteration_count,
        )
        return session

    async def execute(self, goal: str, workspace: WorkspaceInput = None) -> Session:
        return await self.run(self.start(goal, workspace))

    def cancel(self, session: Optional[Session] = None, reason: str = "cancelled by caller") -> bool:
        """Cancel ``session`` (default: the active one). False if it already ended."""

        target = session or self._current
        if target is None:
            return False
        supervisor = self._supervisors.get(target.id)
        if supervisor is None:
            return False
        return supervisor.cancel(reason)

    def workspace_for(self, session: Session) -> WorkspaceSnapshot:
        try:
            return self._workspaces[session.id]
        except KeyError:
            raise SessionStateError(f"No workspace recorded for session {session.id}") from None

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def _iterate(self, state: _RunState) -> None:
        session, supervisor, generation = state.session, state.supervisor, state.generation
        policy = self.policy

        if session.iteration_count - state.free_iterations >= policy.max_iterations:
            supervisor.transition(generation, SessionStatus.ERROR, "max iterations reached")
            return
        if supervisor.deadline_exceeded():
            supervisor.transition(generation, SessionStatus.TIMEOUT, supervisor.timeout_reason())
            return

        session.iteration_count += 1
        iteration = session.iteration_count
        supervisor.emit_progress(iteration)

        window = self.context_builder.build(session.messages)
        record = IterationRecord(iteration=iteration, request=[msg.to_payload() for msg in window.messages])

        try:
            reply = await supervisor.guard(self._request_completion(window.messages), generation)
        except LLMError as exc:
            self._fail(state, record, f"model call failed: {exc}")
            return
        if reply is STALE:
            LOGGER.info("Session %s ended while awaiting the model; reply dropped", session.id)
            return

        record.raw_reply = reply
        parsed = state.parser.parse(reply)
        record.parse_errors = [str(diagnostic) for diagnostic in parsed.diagnostics]
        calls = self._cut_at_completion(parsed.tool_calls, record)
        record.parsed_tool_calls = calls

        if not record.superseded and not self._has_completion(calls):
            verdict = state.detector.check(calls, iteration)
            if verdict.triggered:
                record.intervention = state.detector.intervention_message(
                    verdict, completion_tool=policy.completion_tool
                )
                session.append_message("assistant", reply)
                session.append_message("user", record.intervention)
                session.transcript.append(record)
                # Back-to-back interventions always consume budget.
                if not policy.interventions_count_against_budget and state.last_intervention != iteration - 1:
                    state.free_iterations += 1
                state.last_intervention = iteration
                return

        results: List[ToolResult] = []
        for call in self._drop_duplicates(calls, record):
            if not supervisor.is_current(generation):
                LOGGER.info("Session %s ended; %s and later calls not dispatched", session.id, call.tool_name)
                return
            result = await supervisor.guard(
                self.dispatcher.dispatch(call, state.workspace, session_id=session.id, iteration=iteration),
                generation,
            )
            if result is STALE:
                LOGGER.info("Session %s ended during %s; result dropped", session.id, call.tool_name)
                return
            if result.side_effects:
                state.workspace.apply(result.side_effects)
                session.file_changes.extend(result.side_effects)
            results.append(result)

        if not supervisor.is_current(generation):
            return
        record.tool_results = results

        completion = next(
            (result for result in results if result.tool_name == policy.completion_tool and result.success),
            None,
        )
        if completion is not None:
            session.metadata["summary"] = completion.output
            session.transcript.append(record)
            supervisor.transition(generation, SessionStatus.COMPLETED, "goal completed")
            return

        self._append_turn(session, reply, parsed, results)
        session.transcript.append(record)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _request_completion(self, messages: Sequence[Message]) -> str:
        return await self.retry_handler.execute_with_retry(
            self.llm_client.complete,
            list(messages),
            max_tokens=self.policy.response_tokens,
        )

    def _cut_at_completion(self, calls: Sequence[ToolCallRequest], record: IterationRecord) -> List[ToolCallRequest]:
        for index, call in enumerate(calls):
            if call.tool_name == self.policy.completion_tool:
                superseded = list(calls[index + 1 :])
                if superseded:
                    LOGGER.info(
                        "Ignoring %d tool call(s) after %s: %s",
                        len(superseded),
                        call.tool_name,
                        ", ".join(item.tool_name for item in superseded),
                    )
                    record.superseded = superseded
                return list(calls[: index + 1])
        return list(calls)

    def _drop_duplicates(self, calls: Sequence[ToolCallRequest], record: IterationRecord) -> List[ToolCallRequest]:
        unique: List[ToolCallRequest] = []
        seen: set[tuple[str, str]] = set()
        for call in calls:
            key = (call.tool_name, fingerprint(call.arguments))
            if key in seen:
                record.duplicates.append(call)
                continue
            seen.add(key)
            unique.append(call)
        if record.duplicates:
            LOGGER.info(
                "Dropping %d duplicate tool call(s): %s",
                len(record.duplicates),
                ", ".join(call.tool_name for call in record.duplicates),
            )
        return unique

    def _has_completion(self, calls: Sequence[ToolCallRequest]) -> bool:
        return any(call.tool_name == self.policy.completion_tool for call in calls)

    def _append_turn(
        self, session: Session, reply: str, parsed: ParseResult, results: Sequence[ToolResult]
    ) -> None:
        session.append_message("assistant", reply)
        for result in results:
            session.append_message("user", result.render())
        if parsed.diagnostics:
            session.append_message("user", build_parse_error_note([str(item) for item in parsed.diagnostics]))

    def _fail(self, state: _RunState, record: IterationRecord, reason: str) -> None:
        if not state.supervisor.is_current(state.generation):
            return
        state.session.transcript.append(record)
        state.supervisor.transition(state.generation, SessionStatus.ERROR, reason)

    def _exempt_tools(self) -> frozenset[str]:
        return self.registry.terminal_tools() | {self.policy.completion_tool}

    def _default_system_prompt(self) -> str:
        return build_system_prompt(
            self.registry,
            completion_tool=self.policy.completion_tool,
            iteration_cap=self.policy.max_iterations,
        )


__all__ = ["SessionOrchestrator"]
