import importlib

import pytest
import requests

llm_module = importlib.import_module("utils.call_llm")
from constants.llm import (
    ENV_GEMINI_API_KEY,
    ENV_GEMINI_PROJECT_ID,
    ENV_LLM_API_BASE_URL,
    ENV_LLM_API_KEY,
    ENV_OPENAI_API_KEY,
    ENV_OPENROUTER_API_KEY,
    LLM_PROVIDER_GENERIC,
    LLM_PROVIDER_OPENAI,
    LLM_PROVIDER_OPENROUTER,
    OPENROUTER_API_URL,
)
from utils.call_llm import build_messages, cache_key, call_llm, get_llm_provider
from utils.errors import GeneratorError, InputValidationError


class FakeResponse:

    def __init__(self, payload=None, status_error=None):
        self.payload = payload
        self.status_error = status_error

    def raise_for_status(self):
        if self.status_error:
            raise self.status_error

    def json(self):
        return self.payload


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    for name in (
        ENV_OPENAI_API_KEY,
        ENV_GEMINI_API_KEY,
        ENV_GEMINI_PROJECT_ID,
        ENV_OPENROUTER_API_KEY,
        ENV_LLM_API_BASE_URL,
        ENV_LLM_API_KEY,
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(llm_module, "cache_file", str(tmp_path / "llm_cache.json"))


@pytest.fixture
def posts(monkeypatch):
    """Records requests.post calls and answers with the queued responses."""
    calls = []
    queue = []

    def fake_post(url, headers=None, json=None, timeout=None):
        calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        return queue.pop(0)

    monkeypatch.setattr(llm_module.requests, "post", fake_post)
    return calls, queue


def _completion(text):
    return FakeResponse({"choices": [{"message": {"content": text}}]})


def test_provider_priority(monkeypatch):
    monkeypatch.setenv(ENV_LLM_API_BASE_URL, "http://localhost:8000")
    assert get_llm_provider() == LLM_PROVIDER_GENERIC
    monkeypatch.setenv(ENV_OPENROUTER_API_KEY, "or-key")
    assert get_llm_provider() == LLM_PROVIDER_OPENROUTER
    monkeypatch.setenv(ENV_OPENAI_API_KEY, "sk-key")
    assert get_llm_provider() == LLM_PROVIDER_OPENAI


def test_no_provider_is_an_input_error():
    with pytest.raises(InputValidationError, match="No LLM provider configured"):
        get_llm_provider()


def test_system_message_goes_first():
    assert build_messages("hi", "be brief") == [
        {"role": "system", "content": "be brief"},
        {"role": "user", "content": "hi"},
    ]
    assert build_messages("hi") == [{"role": "user", "content": "hi"}]


def test_cache_key_separates_system_instructions():
    assert cache_key("p") == "p"
    assert cache_key("p", "a") != cache_key("p", "b")


def test_openrouter_request(monkeypatch, posts):
    calls, queue = posts
    monkeypatch.setenv(ENV_OPENROUTER_API_KEY, "or-key")
    queue.append(_completion("hello"))

    assert call_llm("prompt", use_cache=False, system_instruction="sys") == "hello"

    sent = calls[0]
    assert sent["url"] == OPENROUTER_API_URL
    assert sent["headers"]["Authorization"] == "Bearer or-key"
    assert sent["json"]["messages"][0] == {"role": "system", "content": "sys"}
    assert sent["timeout"]


def test_generic_endpoint_url(monkeypatch, posts):
    calls, queue = posts
    monkeypatch.setenv(ENV_LLM_API_BASE_URL, "http://localhost:8000/")
    queue.append(_completion("ok"))

    call_llm("prompt", use_cache=False)

    assert calls[0]["url"] == "http://localhost:8000/v1/chat/completions"
    assert "Authorization" not in calls[0]["headers"]


def test_no_choices_is_a_generator_error(monkeypatch, posts):
    _, queue = posts
    monkeypatch.setenv(ENV_OPENROUTER_API_KEY, "or-key")
    queue.append(FakeResponse({"choices": []}))

    with pytest.raises(GeneratorError, match="No response choices"):
        call_llm("prompt", use_cache=False)


def test_blank_content_is_a_generator_error(monkeypatch, posts):
    _, queue = posts
    monkeypatch.setenv(ENV_OPENROUTER_API_KEY, "or-key")
    queue.append(_completion("   "))

    with pytest.raises(GeneratorError, match="empty response"):
        call_llm("prompt", use_cache=False)


def test_transport_failure_is_a_generator_error(monkeypatch, posts):
    _, queue = posts
    monkeypatch.setenv(ENV_LLM_API_BASE_URL, "http://localhost:8000")
    queue.append(FakeResponse(status_error=requests.exceptions.HTTPError("503 Service Unavailable")))

    with pytest.raises(GeneratorError, match="503"):
        call_llm("prompt", use_cache=False)


def test_cached_response_is_reused(monkeypatch, posts):
    calls, queue = posts
    monkeypatch.setenv(ENV_OPENROUTER_API_KEY, "or-key")
    queue.append(_completion("first"))

    assert call_llm("prompt", system_instruction="sys") == "first"
    assert call_llm("prompt", system_instruction="sys") == "first"
    assert len(calls) == 1

    queue.append(_completion("fresh"))
    assert call_llm("prompt", use_cache=False, system_instruction="sys") == "fresh"
    assert len(calls) == 2
