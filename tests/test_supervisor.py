"""Tests for lifecycle transitions and stale-result handling."""
from __future__ import annotations

import asyncio

import pytest

from agent_orchestrator.engine.errors import SessionStateError
from agent_orchestrator.engine.supervisor import STALE, CancellationSupervisor
from agent_orchestrator.engine.types import SessionHooks, SessionPolicy
from agent_orchestrator.session.models import Session, SessionStatus


def _supervisor(hooks=None, **policy) -> CancellationSupervisor:
    return CancellationSupervisor(Session(id="s-1", goal="demo"), SessionPolicy(**policy), hooks)


def test_activate_and_terminal_transition_happen_once() -> None:
    seen = []
    supervisor = _supervisor(SessionHooks(on_status=lambda session, old, new: seen.append((old, new))))

    generation = supervisor.activate()
    first = supervisor.transition(generation, SessionStatus.COMPLETED, "goal completed")
    second = supervisor.transition(generation, SessionStatus.COMPLETED, "goal completed")
    late_cancel = supervisor.cancel()

    assert first is True
    assert second is False
    assert late_cancel is False
    assert supervisor.session.status is SessionStatus.COMPLETED
    assert supervisor.session.termination_reason == "goal completed"
    assert supervisor.session.ended_at is not None
    assert supervisor.token.cancelled
    assert seen == [
        (SessionStatus.CREATED, SessionStatus.ACTIVE),
        (SessionStatus.ACTIVE, SessionStatus.COMPLETED),
    ]


def test_activate_twice_is_rejected() -> None:
    supervisor = _supervisor()
    supervisor.activate()

    with pytest.raises(SessionStateError):
        supervisor.activate()


def test_non_terminal_transition_is_rejected() -> None:
    supervisor = _supervisor()
    generation = supervisor.activate()

    with pytest.raises(ValueError):
        supervisor.transition(generation, SessionStatus.ACTIVE)


def test_failing_observer_does_not_break_transitions() -> None:
    def broken(session, old, new):
        raise RuntimeError("observer bug")

    supervisor = _supervisor(SessionHooks(on_status=broken))
    generation = supervisor.activate()

    assert supervisor.transition(generation, SessionStatus.ERROR, "boom")
    assert supervisor.session.status is SessionStatus.ERROR


def test_guard_returns_result_while_current() -> None:
    supervisor = _supervisor()
    generation = supervisor.activate()

    async def work():
        await asyncio.sleep(0)
        return "value"

    assert asyncio.run(supervisor.guard(work(), generation)) == "value"


def test_guard_propagates_errors_while_current() -> None:
    supervisor = _supervisor()
    generation = supervisor.activate()

    async def work():
        raise KeyError("bad")

    with pytest.raises(KeyError):
        asyncio.run(supervisor.guard(work(), generation))


def test_cancel_mid_await_discards_late_result() -> None:
    supervisor = _supervisor()
    generation = supervisor.activate()
    finished = []

    async def slow():
        await asyncio.sleep(0.05)
        finished.append(True)
        return "late"

    async def scenario():
        asyncio.get_running_loop().call_later(0.01, supervisor.cancel, "user pressed stop")
        outcome = await supervisor.guard(slow(), generation)
        await asyncio.sleep(0.1)
        return outcome

    outcome = asyncio.run(scenario())

    assert outcome is STALE
    assert finished == [True]
    assert supervisor.session.status is SessionStatus.CANCELLED
    assert supervisor.session.termination_reason == "user pressed stop"


def test_guard_after_termination_never_starts_work() -> None:
    supervisor = _supervisor()
    generation = supervisor.activate()
    supervisor.cancel()
    started = []

    async def work():
        started.append(True)

    assert asyncio.run(supervisor.guard(work(), generation)) is STALE
    assert started == []


def test_watchdog_times_out_session() -> None:
    supervisor = _supervisor(timeout_seconds=0.01)
    generation = supervisor.activate()

    asyncio.run(supervisor.watchdog(generation))

    assert supervisor.session.status is SessionStatus.TIMEOUT
    assert supervisor.session.termination_reason == "timed out after 0.01s"
    assert supervisor.deadline_exceeded()


def test_progress_events_reach_observer() -> None:
    events = []
    supervisor = _supervisor(SessionHooks(on_progress=events.append), max_iterations=7)
    supervisor.activate()

    event = supervisor.emit_progress(3)

    assert events == [event]
    assert event.iteration == 3
    assert event.describe().startswith("iteration 3/7, elapsed ")
