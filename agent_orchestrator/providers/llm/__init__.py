"""Factory helpers for LLM providers."""
from __future__ import annotations

from .base import (
    TRANSIENT_ERRORS,
    HTTPChatLLMClient,
    LLMClient,
    LLMConnectionError,
    LLMError,
    LLMRateLimitError,
    LLMResponseError,
    LLMRetryExhaustedError,
    LLMTimeoutError,
    Message,
)
from .openai_compat import (
    DEEPSEEK_DEFAULT_BASE_URL,
    OPENAI_DEFAULT_BASE_URL,
    OPENROUTER_DEFAULT_BASE_URL,
    OpenAICompatibleClient,
)

_PROVIDER_MAP = {
    "openai": {
        "provider_name": "OpenAI",
        "default_base_url": OPENAI_DEFAULT_BASE_URL,
    },
    "deepseek": {
        "provider_name": "DeepSeek",
        "default_base_url": DEEPSEEK_DEFAULT_BASE_URL,
    },
    "openrouter": {
        "provider_name": "OpenRouter",
        "default_base_url": OPENROUTER_DEFAULT_BASE_URL,
    },
}


def create_client(
    provider: str,
    api_key: str,
    model: str,
    base_url: str | None = None,
    **provider_kwargs,
) -> OpenAICompatibleClient:
    key = provider.lower()
    try:
        provider_entry = _PROVIDER_MAP[key]
    except KeyError as exc:
        raise ValueError(f"Unsupported LLM provider: {provider}") from exc

    init_kwargs = {
        k: v for k, v in provider_kwargs.items() if k in {"timeout", "default_headers", "extra_body"}
    }
    return OpenAICompatibleClient(
        api_key=api_key,
        model=model,
        base_url=base_url or provider_entry["default_base_url"],
        provider_name=provider_entry["provider_name"],
        **init_kwargs,
    )


__all__ = [
    "create_client",
    "HTTPChatLLMClient",
    "OpenAICompatibleClient",
    "LLMClient",
    "LLMError",
    "LLMRateLimitError",
    "LLMTimeoutError",
    "LLMConnectionError",
    "LLMResponseError",
    "LLMRetryExhaustedError",
    "Message",
    "TRANSIENT_ERRORS",
    "OPENAI_DEFAULT_BASE_URL",
    "DEEPSEEK_DEFAULT_BASE_URL",
    "OPENROUTER_DEFAULT_BASE_URL",
]
