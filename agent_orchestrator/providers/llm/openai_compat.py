"""Chat-completions client for OpenAI-compatible endpoints."""
from __future__ import annotations

from typing import Any, Dict, Sequence

from .base import HTTPChatLLMClient, Message

OPENAI_DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEEPSEEK_DEFAULT_BASE_URL = "https://api.deepseek.com/v1"
OPENROUTER_DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"


class OpenAICompatibleClient(HTTPChatLLMClient):
    """Client for any provider exposing the ``/chat/completions`` contract."""

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        base_url: str = OPENAI_DEFAULT_BASE_URL,
        timeout: float = 120.0,
        provider_name: str = "OpenAI",
        default_headers: Dict[str, str] | None = None,
        extra_body: Dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            provider_name,
            api_key,
            model,
            base_url=base_url,
            timeout=timeout,
            default_headers=default_headers,
        )
        self._extra_body = dict(extra_body or {})

    def _prepare_payload(
        self,
        messages: Sequence[Message],
        temperature: float,
        max_tokens: int | None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [message.to_payload() for message in messages],
            "temperature": temperature,
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        if self._extra_body:
            payload.update(self._extra_body)
        return payload


__all__ = [
    "OpenAICompatibleClient",
    "OPENAI_DEFAULT_BASE_URL",
    "DEEPSEEK_DEFAULT_BASE_URL",
    "OPENROUTER_DEFAULT_BASE_URL",
]
