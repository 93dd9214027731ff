"""Lifecycle ownership for a running session.

Every terminal transition goes through :meth:`CancellationSupervisor.transition`,
a compare-and-set on the session's generation. Async work is wrapped with
:meth:`CancellationSupervisor.guard`, which hands back :data:`STALE` instead of
a result once the generation it was started under is no longer current.
"""
from __future__ import annotations

import asyncio
import inspect
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from agent_orchestrator.core.utils.logger import get_logger, log_fields
from agent_orchestrator.session.models import Session, SessionStatus

from .errors import SessionStateError
from .types import ProgressEvent, SessionHooks, SessionPolicy

LOGGER = get_logger(__name__)


class _Stale:
    __slots__ = ()

    def __repr__(self) -> str:
        return "STALE"

    def __bool__(self) -> bool:
        return False


STALE: Any = _Stale()


class CancellationToken:
    """One-shot signal shared by everything awaiting on behalf of a session."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


class CancellationSupervisor:
    """Single writer of a session's lifecycle fields."""

    def __init__(
        self,
        session: Session,
        policy: SessionPolicy,
        hooks: Optional[SessionHooks] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session = session
        self.policy = policy
        self.hooks = hooks or SessionHooks()
        self.token = CancellationToken()
        self._clock = clock
        self._generation = 0
        self._started: Optional[float] = None

    @property
    def generation(self) -> int:
        return self._generation

    def activate(self) -> int:
        """Move the session from Created to Active and return the live generation."""

        if self.session.status is not SessionStatus.CREATED:
            raise SessionStateError(
                f"Session {self.session.id} cannot be activated from {self.session.status.value}"
            )
        self._started = self._clock()
        self._generation += 1
        self.session.started_at = datetime.now(timezone.utc)
        self.session.status = SessionStatus.ACTIVE
        LOGGER.info("Session %s active: %s", self.session.id, self.session.goal)
        self._notify_status(SessionStatus.CREATED, SessionStatus.ACTIVE)
        return self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation and self.session.status is SessionStatus.ACTIVE

    def transition(self, generation: int, status: SessionStatus, reason: Optional[str] = None) -> bool:
        """Move an Active session to a terminal ``status`` if ``generation`` is still live.

        Returns False, without touching the session, when another transition
        already happened.
        """

        if not status.is_terminal:
            raise ValueError(f"{status.value} is not a terminal status")
        if not self.is_current(generation):
            LOGGER.debug(
                "Ignoring %s transition for session %s (generation %d, now %d, status %s)",
                status.value,
                self.session.id,
                generation,
                self._generation,
                self.session.status.value,
            )
            return False

        previous = self.session.status
        self._generation += 1
        self.session.status = status
        self.session.termination_reason = reason
        self.session.ended_at = datetime.now(timezone.utc)
        self.token.cancel()
        LOGGER.info(
            "Session %s %s: %s",
            self.session.id,
            status.value,
            reason or "-",
            extra=log_fields(status=status.value, reason=reason, iterations=self.session.iteration_count),
        )
        self._notify_status(previous, status)
        return True

    def cancel(self, reason: str = "cancelled by caller") -> bool:
        return self.transition(self._generation, SessionStatus.CANCELLED, reason)

    def elapsed_seconds(self) -> float:
        if self._started is None:
            return 0.0
        return self._clock() - self._started

    def remaining_seconds(self) -> float:
        return self.policy.timeout_seconds - self.elapsed_seconds()

    def deadline_exceeded(self) -> bool:
        return self._started is not None and self.remaining_seconds() <= 0

    def timeout_reason(self) -> str:
        return f"timed out after {self.policy.timeout_seconds:g}s"

    async def watchdog(self, generation: int) -> None:
        """Fire the Timeout transition when the wall-clock budget runs out."""

        remaining = max(self.remaining_seconds(), 0.0)
        try:
            await asyncio.wait_for(self.token.wait(), timeout=remaining)
        except asyncio.TimeoutError:
            self.transition(generation, SessionStatus.TIMEOUT, self.timeout_reason())

    async def guard(self, awaitable: Awaitable[Any], generation: int) -> Any:
        """Await ``awaitable`` unless the session leaves ``generation`` first.

        The in-flight work is never cancelled: when the session ends first the
        task is left to finish and its outcome is logged and dropped.
        """

        if not self.is_current(generation):
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return STALE

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self.token.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if not waiter.done():
                waiter.cancel()

        if task in done and self.is_current(generation):
            return task.result()

        if task.done():
            self._discard(task)
        else:
            task.add_done_callback(self._discard)
        return STALE

    def emit_progress(self, iteration: int) -> ProgressEvent:
        event = ProgressEvent(
            session_id=self.session.id,
            iteration=iteration,
            max_iterations=self.policy.max_iterations,
            elapsed_seconds=round(self.elapsed_seconds(), 3),
        )
        LOGGER.info(
            "Session %s %s",
            self.session.id,
            event.describe(),
            extra=log_fields(iteration=event.iteration, elapsed_seconds=event.elapsed_seconds),
        )
        if self.hooks.on_progress is not None:
            try:
                self.hooks.on_progress(event)
            except Exception:
                LOGGER.exception("Progress observer failed")
        return event

    def _discard(self, task: "asyncio.Future[Any]") -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            LOGGER.info("Discarding failure from stale work in session %s: %s", self.session.id, error)
        else:
            LOGGER.info("Discarding stale result in session %s", self.session.id)

    def _notify_status(self, previous: SessionStatus, current: SessionStatus) -> None:
        if self.hooks.on_status is None:
            return
        try:
            self.hooks.on_status(self.session, previous, current)
        except Exception:
            LOGGER.exception("Status observer failed")


__all__ = ["STALE", "CancellationToken", "CancellationSupervisor"]
