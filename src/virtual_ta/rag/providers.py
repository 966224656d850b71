"""Pluggable embedding and chat providers.

The pipeline only depends on the two protocols below. ``LiteLLMEmbedder`` and
``LiteLLMChat`` call real models; ``HashEmbedder`` is a deterministic,
offline embedder (hashed bag of words) used when no embedding credentials are
configured and in tests.
"""

from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass
from typing import Protocol

from virtual_ta.config import EmbeddingCfg
from virtual_ta.errors import ProviderError
from virtual_ta.rag import llm_client

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"\w+")


@dataclass
class CompletionOptions:
    model: str = "openai/gpt-4o-mini"
    temperature: float = 0.7
    max_tokens: int = 2048
    timeout: float = 60.0

    def __post_init__(self) -> None:
        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError(f"temperature must be within [0, 2], got {self.temperature}")
        if self.max_tokens < 1:
            raise ValueError(f"max_tokens must be >= 1, got {self.max_tokens}")


class EmbeddingProvider(Protocol):
    dimensions: int

    def embed(self, text: str) -> list[float]: ...


class ChatProvider(Protocol):
    def complete(self, system_prompt: str, user_prompt: str, options: CompletionOptions) -> str: ...


class LiteLLMEmbedder:
    """Embeds text with a LiteLLM embedding model."""

    def __init__(self, model: str, dimensions: int, timeout: float = 30.0) -> None:
        self.model = model
        self.dimensions = dimensions
        self.timeout = timeout

    def embed(self, text: str) -> list[float]:
        try:
            vector = llm_client.embed(self.model, text, timeout=self.timeout)
        except Exception as exc:
            raise ProviderError(f"Embedding call to '{self.model}' failed: {exc}") from exc
        if len(vector) != self.dimensions:
            raise ProviderError(
                f"Embedding model '{self.model}' returned {len(vector)} dimensions, "
                f"expected {self.dimensions}"
            )
        return vector


class HashEmbedder:
    """Deterministic hashed bag-of-words embedder.

    Each lower-cased word token is hashed to a signed slot, so texts that share
    words get positive cosine similarity. The same text always produces the
    same vector; empty text produces the zero vector.
    """

    def __init__(self, dimensions: int = 1536) -> None:
        if dimensions < 1:
            raise ValueError(f"dimensions must be >= 1, got {dimensions}")
        self.dimensions = dimensions

    def embed(self, text: str) -> list[float]:
        vector = [0.0] * self.dimensions
        for token in _TOKEN_RE.findall(text.lower()):
            digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
            value = int.from_bytes(digest, "big")
            slot = value % self.dimensions
            vector[slot] += 1.0 if (value >> 63) & 1 else -1.0
        return vector


class LiteLLMChat:
    """Chat completions through LiteLLM."""

    def complete(self, system_prompt: str, user_prompt: str, options: CompletionOptions) -> str:
        try:
            return llm_client.complete(
                model=options.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                max_tokens=options.max_tokens,
                temperature=options.temperature,
                timeout=options.timeout,
            )
        except Exception as exc:
            raise ProviderError(f"Completion call to '{options.model}' failed: {exc}") from exc


def make_embedder(cfg: EmbeddingCfg) -> EmbeddingProvider:
    """Select the embedding provider named by *cfg*.

    ``auto`` picks LiteLLM when the model's API key is present and falls back
    to :class:`HashEmbedder` otherwise.
    """
    if cfg.provider == "hash":
        return HashEmbedder(cfg.dimensions)
    if cfg.provider == "litellm" or llm_client.has_api_key(cfg.model):
        return LiteLLMEmbedder(cfg.model, cfg.dimensions, timeout=cfg.timeout)
    logger.warning(
        "No API key for embedding model '%s' (%s unset); using deterministic hash embeddings",
        cfg.model,
        llm_client.api_key_env(cfg.model),
    )
    return HashEmbedder(cfg.dimensions)
