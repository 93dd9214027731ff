"""Retry handler with exponential backoff for model completion calls.

Implements jittered backoff for transient failures. Delays are awaited with
``asyncio.sleep`` so a caller racing the retry loop against a cancellation
token can abandon it between attempts.
"""
from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Set, TypeVar

from agent_orchestrator.providers.llm import TRANSIENT_ERRORS, LLMRetryExhaustedError

from .logger import get_logger

LOGGER = get_logger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior with exponential backoff."""

    max_retries: int = 3
    initial_delay: float = 0.5
    max_delay: float = 8.0
    backoff_multiplier: float = 2.0
    jitter_ratio: float = 0.1
    retryable_exceptions: Set[type] = field(default_factory=lambda: set(TRANSIENT_ERRORS))

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            self.max_retries = 1


class RetryHandler:
    """Retry async operations that fail with transient errors.

    Example:
        ```python
        handler = RetryHandler(RetryConfig(max_retries=4))
        reply = await handler.execute_with_retry(client.complete, messages)
        ```
    """

    def __init__(self, config: Optional[RetryConfig] = None):
        self.config = config or RetryConfig()
        self._retry_count = 0
        self._last_error: Optional[BaseException] = None

    async def execute_with_retry(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        on_retry: Optional[Callable[[int, Exception, float], None]] = None,
        **kwargs: Any,
    ) -> T:
        """Await ``func`` until it succeeds or the retry budget is spent.

        Raises:
            LLMRetryExhaustedError: If every attempt failed with a retryable error.
            Exception: The first non-retryable error, unchanged.
        """
        delay = self.config.initial_delay

        for attempt in range(1, self.config.max_retries + 1):
            try:
                result = await func(*args, **kwargs)
            except Exception as exc:
                self._last_error = exc
                if not self._is_retryable(exc):
                    raise
                if attempt == self.config.max_retries:
                    raise LLMRetryExhaustedError(
                        f"Failed after {self.config.max_retries} attempts: {exc}"
                    ) from exc

                jittered_delay = self._add_jitter(delay)
                LOGGER.warning(
                    "Transient model error on attempt %d/%d (%s); retrying in %.2fs",
                    attempt,
                    self.config.max_retries,
                    exc,
                    jittered_delay,
                )
                if on_retry:
                    on_retry(attempt, exc, jittered_delay)
                await asyncio.sleep(jittered_delay)
                delay = min(delay * self.config.backoff_multiplier, self.config.max_delay)
                self._retry_count = attempt
            else:
                self._retry_count = 0
                return result

        raise LLMRetryExhaustedError(  # pragma: no cover - loop always returns or raises
            f"Failed after {self.config.max_retries} attempts: {self._last_error}"
        )

    def _is_retryable(self, error: Exception) -> bool:
        return any(isinstance(error, exc_type) for exc_type in self.config.retryable_exceptions)

    def _add_jitter(self, delay: float) -> float:
        jitter_amount = delay * self.config.jitter_ratio
        jitter = random.uniform(-jitter_amount, jitter_amount)
        return max(0.0, delay + jitter)

    def get_retry_stats(self) -> dict:
        return {
            "retry_count": self._retry_count,
            "last_error": str(self._last_error) if self._last_error else None,
            "max_retries": self.config.max_retries,
        }


__all__ = ["RetryConfig", "RetryHandler"]
