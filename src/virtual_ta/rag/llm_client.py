"""Thin LiteLLM layer for chat completions and embeddings.

Callers pass ``provider/model`` strings (a bare model name means OpenAI).
Each call is bounded by a timeout and uses LiteLLM's own retry with
exponential backoff. Credentials come from the environment only; use
:func:`has_api_key` to decide whether a model is usable before calling it.
"""

from __future__ import annotations

import os
from typing import Any

import litellm

# LiteLLM prints provider hints and debug banners by default.
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]

DEFAULT_RETRIES = 2

# Credential env var per provider prefix. None means no key is needed.
# Unlisted providers fall back to <PROVIDER>_API_KEY.
_KEY_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "google": "GOOGLE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,
    "ollama_chat": None,
}


def provider_of(model: str) -> str:
    """``"anthropic/claude-3-5-haiku"`` -> ``"anthropic"``; bare names -> ``"openai"``."""
    prefix, sep, _ = model.partition("/")
    return prefix.lower() if sep else "openai"


def api_key_env(model: str) -> str | None:
    provider = provider_of(model)
    if provider in _KEY_ENV:
        return _KEY_ENV[provider]
    return f"{provider.upper()}_API_KEY"


def has_api_key(model: str) -> bool:
    """True when *model* needs no key or its key is set and non-empty."""
    env_var = api_key_env(model)
    if env_var is None:
        return True
    return bool(os.environ.get(env_var, "").strip())


def complete(
    model: str,
    messages: list[dict[str, Any]],
    max_tokens: int = 2048,
    temperature: float = 0.7,
    timeout: float = 60.0,
    num_retries: int = DEFAULT_RETRIES,
) -> str:
    """Run one chat completion and return the first choice's text.

    *messages* may carry multimodal content parts (``image_url``) for vision
    models. LiteLLM exceptions propagate unchanged.
    """
    response = litellm.completion(
        model=model,
        messages=messages,
        max_tokens=max_tokens,
        temperature=temperature,
        timeout=timeout,
        num_retries=num_retries,
    )
    return response.choices[0].message.content or ""


def embed(
    model: str,
    text: str,
    timeout: float = 30.0,
    num_retries: int = DEFAULT_RETRIES,
) -> list[float]:
    """Embed a single *text* and return its vector."""
    response = litellm.embedding(
        model=model,
        input=[text],
        timeout=timeout,
        num_retries=num_retries,
    )
    item = response.data[0]
    vector = item["embedding"] if isinstance(item, dict) else item.embedding
    return [float(x) for x in vector]
