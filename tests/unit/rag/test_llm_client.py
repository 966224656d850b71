"""Tests for LiteLLM client wrapper."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from virtual_ta.rag.llm_client import (
    api_key_env,
    complete,
    embed,
    has_api_key,
    provider_of,
)


# ------------------------------------------------------------------
# Provider / API key checks
# ------------------------------------------------------------------


def test_provider_of_prefixed_and_bare():
    assert provider_of("anthropic/claude-3-5-sonnet") == "anthropic"
    assert provider_of("gpt-4o-mini") == "openai"


def test_api_key_env_unknown_provider_derived():
    assert api_key_env("deepseek/deepseek-chat") == "DEEPSEEK_API_KEY"


def test_has_api_key_ollama_needs_none():
    assert has_api_key("ollama/llama3") is True


def test_has_api_key_reads_environment(monkeypatch):
    assert has_api_key("openai/gpt-4o-mini") is False
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    assert has_api_key("openai/gpt-4o-mini") is True


def test_has_api_key_blank_value_is_missing(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "  ")
    assert has_api_key("anthropic/claude-3-5-sonnet-20241022") is False


def test_api_key_env_known_and_keyless():
    assert api_key_env("gemini/gemini-1.5-flash") == "GEMINI_API_KEY"
    assert api_key_env("ollama_chat/llama3") is None


# ------------------------------------------------------------------
# complete()
# ------------------------------------------------------------------


def test_complete_returns_content():
    mock_response = MagicMock()
    mock_response.choices[0].message.content = "Hello, world!"

    with patch("virtual_ta.rag.llm_client.litellm.completion", return_value=mock_response):
        result = complete("openai/gpt-4o", [{"role": "user", "content": "Hi"}])

    assert result == "Hello, world!"


def test_complete_returns_empty_string_on_none_content():
    mock_response = MagicMock()
    mock_response.choices[0].message.content = None

    with patch("virtual_ta.rag.llm_client.litellm.completion", return_value=mock_response):
        result = complete("openai/gpt-4o", [{"role": "user", "content": "Hi"}])

    assert result == ""


def test_complete_passes_params_to_litellm():
    mock_response = MagicMock()
    mock_response.choices[0].message.content = "ok"

    with patch("virtual_ta.rag.llm_client.litellm.completion", return_value=mock_response) as mock_c:
        complete(
            "openai/gpt-4o-mini",
            [{"role": "user", "content": "test"}],
            max_tokens=512,
            temperature=0.5,
            timeout=12.0,
        )

    call_kwargs = mock_c.call_args.kwargs
    assert call_kwargs["model"] == "openai/gpt-4o-mini"
    assert call_kwargs["max_tokens"] == 512
    assert call_kwargs["temperature"] == 0.5
    assert call_kwargs["timeout"] == 12.0
    assert call_kwargs["num_retries"] == 2


# ------------------------------------------------------------------
# embed()
# ------------------------------------------------------------------


def test_embed_returns_vector():
    mock_response = MagicMock()
    mock_response.data = [{"embedding": [0.1, 0.2, 0.3]}]

    with patch("virtual_ta.rag.llm_client.litellm.embedding", return_value=mock_response):
        result = embed("openai/text-embedding-3-small", "hello")

    assert result == [0.1, 0.2, 0.3]


def test_embed_passes_text_as_list():
    mock_response = MagicMock()
    mock_response.data = [{"embedding": [0.0]}]

    with patch("virtual_ta.rag.llm_client.litellm.embedding", return_value=mock_response) as mock_e:
        embed("openai/text-embedding-3-small", "test text", timeout=5.0)

    assert mock_e.call_args.kwargs["input"] == ["test text"]
    assert mock_e.call_args.kwargs["timeout"] == 5.0


def test_embed_accepts_object_items():
    item = MagicMock()
    item.embedding = [1, 2]
    mock_response = MagicMock()
    mock_response.data = [item]

    with patch("virtual_ta.rag.llm_client.litellm.embedding", return_value=mock_response):
        assert embed("openai/text-embedding-3-small", "x") == [1.0, 2.0]
