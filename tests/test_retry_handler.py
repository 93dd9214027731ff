import asyncio

import pytest

from agent_orchestrator.core.utils.retry_handler import RetryConfig, RetryHandler
from agent_orchestrator.providers.llm.base import (
    LLMConnectionError,
    LLMResponseError,
    LLMRetryExhaustedError,
)


def _handler(**overrides) -> RetryHandler:
    config = RetryConfig(initial_delay=0.0, max_delay=0.0, **overrides)
    return RetryHandler(config)


def test_succeeds_after_transient_failures():
    attempts = []
    retries = []

    async def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise LLMConnectionError("reset")
        return "ok"

    handler = _handler(max_retries=3)
    result = asyncio.run(handler.execute_with_retry(flaky, on_retry=lambda n, exc, delay: retries.append(n)))

    assert result == "ok"
    assert len(attempts) == 3
    assert retries == [1, 2]
    assert handler.get_retry_stats()["retry_count"] == 0


def test_exhaustion_raises_retry_exhausted():
    async def always_down():
        raise LLMConnectionError("down")

    handler = _handler(max_retries=2)

    with pytest.raises(LLMRetryExhaustedError, match="Failed after 2 attempts: down"):
        asyncio.run(handler.execute_with_retry(always_down))
    assert handler.get_retry_stats()["last_error"] == "down"


def test_non_retryable_errors_propagate_immediately():
    attempts = []

    async def broken():
        attempts.append(1)
        raise LLMResponseError("bad request")

    with pytest.raises(LLMResponseError):
        asyncio.run(_handler(max_retries=5).execute_with_retry(broken))
    assert attempts == [1]


def test_jitter_stays_within_ratio(monkeypatch):
    captured = {}

    def fake_uniform(low: float, high: float) -> float:
        captured["low"] = low
        captured["high"] = high
        return high

    monkeypatch.setattr("agent_orchestrator.core.utils.retry_handler.random.uniform", fake_uniform)
    handler = RetryHandler(RetryConfig(jitter_ratio=0.25))

    delay = handler._add_jitter(4.0)

    assert delay == pytest.approx(5.0)
    assert captured["low"] == pytest.approx(-1.0)
    assert captured["high"] == pytest.approx(1.0)
