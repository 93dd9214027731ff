"""Abstractions for the language-model completion service."""
from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Protocol, Sequence

import requests

ROLES = frozenset({"system", "user", "assistant"})


@dataclass(frozen=True)
class Message:
    role: str
    content: str
    ordinal: int = 0

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unsupported message role: {self.role!r}")

    def to_payload(self) -> Dict[str, Any]:
        return {"role": self.role, "content": self.content}


class LLMError(RuntimeError):
    """Raised when an LLM provider encounters an error."""


class LLMRateLimitError(LLMError):
    """Raised when the provider reports a rate limit condition."""


class LLMTimeoutError(LLMError):
    """Raised when a request times out before the provider responds."""


class LLMConnectionError(LLMError):
    """Raised when the client is unable to reach the provider."""


class LLMResponseError(LLMError):
    """Raised when the provider returns a malformed or error response."""


class LLMRetryExhaustedError(LLMError):
    """Raised when retry attempts are exhausted without success."""


TRANSIENT_ERRORS: tuple[type[LLMError], ...] = (
    LLMRateLimitError,
    LLMTimeoutError,
    LLMConnectionError,
)


class LLMClient(Protocol):
    """Protocol for chat-completion capable LLM clients."""

    async def complete(
        self,
        messages: Sequence[Message],
        *,
        max_tokens: int | None = None,
        temperature: float = 0.2,
    ) -> str:
        """Return the raw text reply for an ordered message list."""
        ...


class HTTPChatLLMClient(ABC):
    """Common HTTP/JSON client functionality shared by provider implementations.

    Each call performs a single HTTP attempt; retrying transient failures is the
    caller's responsibility so that backoff can observe session cancellation.
    """

    _COMPLETIONS_PATH = "/chat/completions"

    def __init__(
        self,
        provider_name: str,
        api_key: str,
        model: str,
        *,
        base_url: str,
        timeout: float = 120.0,
        default_headers: Dict[str, str] | None = None,
    ) -> None:
        self._provider_name = provider_name
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._default_headers = dict(default_headers or {})

    def configure_timeout(self, timeout: float) -> None:
        """Configure request timeout."""
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Request helpers
    # ------------------------------------------------------------------

    def _request_url(self) -> str:
        return f"{self.base_url}{self._COMPLETIONS_PATH}"

    def _build_headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if self._default_headers:
            headers.update(self._default_headers)
        return headers

    def _error_from_status(self, status_code: int, response_text: str) -> LLMError:
        message = f"{self._provider_name} API error {status_code}: {response_text}"
        if status_code == 429:
            return LLMRateLimitError(message)
        if status_code in {408, 504}:
            return LLMTimeoutError(message)
        if status_code in {500, 502, 503}:
            return LLMConnectionError(message)
        return LLMResponseError(message)

    def _wrap_transport_error(self, exc: Exception) -> LLMError:
        if isinstance(exc, requests.Timeout):
            return LLMTimeoutError(f"{self._provider_name} request timed out: {exc}")
        return LLMConnectionError(f"{self._provider_name} connection failed: {exc}")

    def _decode_json(self, response: requests.Response) -> Dict[str, Any]:
        try:
            return response.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise LLMResponseError(f"Invalid JSON response from {self._provider_name} API") from exc

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = requests.post(
                self._request_url(),
                headers=self._build_headers(),
                data=json.dumps(payload),
                timeout=self.timeout,
            )
        except (requests.Timeout, requests.ConnectionError) as exc:
            raise self._wrap_transport_error(exc) from exc
        except requests.RequestException as exc:
            raise LLMResponseError(f"{self._provider_name} request failed: {exc}") from exc

        if response.status_code >= 400:
            raise self._error_from_status(response.status_code, response.text)
        return self._decode_json(response)

    # ------------------------------------------------------------------
    # High level API
    # ------------------------------------------------------------------

    @abstractmethod
    def _prepare_payload(
        self,
        messages: Sequence[Message],
        temperature: float,
        max_tokens: int | None,
    ) -> Dict[str, Any]:
        """Return the provider-specific request payload."""

    def complete_sync(
        self,
        messages: Sequence[Message],
        *,
        max_tokens: int | None = None,
        temperature: float = 0.2,
    ) -> str:
        payload = self._prepare_payload(messages, temperature, max_tokens)
        data = self._post(payload)
        message = self._extract_choice_message(data)
        content = message.get("content")
        if not content:
            return ""
        if isinstance(content, str):
            return content.strip()
        return str(content).strip()

    async def complete(
        self,
        messages: Sequence[Message],
        *,
        max_tokens: int | None = None,
        temperature: float = 0.2,
    ) -> str:
        return await asyncio.to_thread(
            self.complete_sync,
            list(messages),
            max_tokens=max_tokens,
            temperature=temperature,
        )

    # ------------------------------------------------------------------
    # Response parsing helpers
    # ------------------------------------------------------------------

    def _extract_choice_message(self, data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            return data["choices"][0]["message"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMResponseError(
                f"Unexpected {self._provider_name} response structure for chat response"
            ) from exc


__all__ = [
    "Message",
    "LLMClient",
    "HTTPChatLLMClient",
    "LLMError",
    "LLMRateLimitError",
    "LLMTimeoutError",
    "LLMConnectionError",
    "LLMResponseError",
    "LLMRetryExhaustedError",
    "TRANSIENT_ERRORS",
    "ROLES",
]
