import asyncio

import pytest
import requests

from agent_orchestrator.providers.llm import (
    DEEPSEEK_DEFAULT_BASE_URL,
    OPENROUTER_DEFAULT_BASE_URL,
    create_client,
)
from agent_orchestrator.providers.llm.base import (
    LLMConnectionError,
    LLMRateLimitError,
    LLMResponseError,
    LLMTimeoutError,
    Message,
)
from agent_orchestrator.providers.llm.openai_compat import OpenAICompatibleClient


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


def test_error_mapping():
    client = OpenAICompatibleClient(api_key="test", model="demo")

    assert isinstance(client._error_from_status(429, "Too Many Requests"), LLMRateLimitError)
    assert isinstance(client._error_from_status(504, "Gateway Timeout"), LLMTimeoutError)
    assert isinstance(client._error_from_status(503, "Unavailable"), LLMConnectionError)
    assert isinstance(client._error_from_status(400, "Bad Request"), LLMResponseError)


def test_complete_posts_chat_payload(monkeypatch):
    captured = {}

    def fake_post(url, headers=None, data=None, timeout=None):
        captured["url"] = url
        captured["headers"] = headers
        captured["data"] = data
        captured["timeout"] = timeout
        return FakeResponse(payload={"choices": [{"message": {"content": "  <complete>{}</complete>  "}}]})

    monkeypatch.setattr("agent_orchestrator.providers.llm.base.requests.post", fake_post)
    client = OpenAICompatibleClient(
        api_key="secret",
        model="demo",
        base_url="https://llm.example/v1/",
        timeout=5.0,
        default_headers={"X-Title": "tests"},
    )

    reply = asyncio.run(client.complete([Message(role="user", content="hi")], max_tokens=64))

    assert reply == "<complete>{}</complete>"
    assert captured["url"] == "https://llm.example/v1/chat/completions"
    assert captured["headers"]["Authorization"] == "Bearer secret"
    assert captured["headers"]["X-Title"] == "tests"
    assert captured["timeout"] == 5.0
    assert '"max_tokens": 64' in captured["data"]
    assert '"role": "user"' in captured["data"]


def test_http_errors_become_llm_errors(monkeypatch):
    monkeypatch.setattr(
        "agent_orchestrator.providers.llm.base.requests.post",
        lambda *args, **kwargs: FakeResponse(status_code=429, text="slow down"),
    )
    client = OpenAICompatibleClient(api_key="secret", model="demo")

    with pytest.raises(LLMRateLimitError, match="slow down"):
        client.complete_sync([Message(role="user", content="hi")])


def test_transport_errors_are_wrapped(monkeypatch):
    def boom(*args, **kwargs):
        raise requests.Timeout("read timed out")

    monkeypatch.setattr("agent_orchestrator.providers.llm.base.requests.post", boom)
    client = OpenAICompatibleClient(api_key="secret", model="demo")

    with pytest.raises(LLMTimeoutError):
        client.complete_sync([Message(role="user", content="hi")])


def test_malformed_response_is_a_response_error(monkeypatch):
    monkeypatch.setattr(
        "agent_orchestrator.providers.llm.base.requests.post",
        lambda *args, **kwargs: FakeResponse(payload={"choices": []}),
    )
    client = OpenAICompatibleClient(api_key="secret", model="demo")

    with pytest.raises(LLMResponseError):
        client.complete_sync([Message(role="user", content="hi")])


def test_create_client_uses_provider_defaults():
    deepseek = create_client("deepseek", api_key="k", model="deepseek-chat")
    openrouter = create_client("OpenRouter", api_key="k", model="m", timeout=9.0)

    assert deepseek.base_url == DEEPSEEK_DEFAULT_BASE_URL
    assert openrouter.base_url == OPENROUTER_DEFAULT_BASE_URL
    assert openrouter.timeout == 9.0

    with pytest.raises(ValueError):
        create_client("unknown", api_key="k", model="m")


def test_message_role_is_validated():
    with pytest.raises(ValueError):
        Message(role="tool", content="x")
    assert Message(role="assistant", content="hi").to_payload() == {"role": "assistant", "content": "hi"}
