"""virtual-ta configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site, not in this module)
  2. Environment variables  (VIRTUAL_TA_GENERATION_MODEL, VIRTUAL_TA_EMBEDDING_MODEL)
  3. Config-store entries   (system_config table; see apply_store_overrides)
  4. Per-project virtual_ta.yaml
  5. Global ~/.virtual_ta/config.yaml  (model defaults only, no API keys)
  6. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load(), never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".virtual_ta"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
PROJECT_CONFIG_NAME: str = "virtual_ta.yaml"

# Fields that suggest an API key; forbidden in global config.
# Does NOT match legitimate config keys like max_tokens.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["embedding", "generation", "retrieval", "image", "server"]
)

# Config-store keys the pipeline reads, with their descriptions.
STORE_KEYS: dict[str, str] = {
    "generation_model": "Primary chat model for answers",
    "embedding_model": "Embedding model for questions and content",
    "temperature": "Sampling temperature for answers (0-2)",
    "max_tokens": "Maximum output tokens for answers",
}


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config source contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding configuration (virtual_ta.yaml: embedding:).

    Attributes:
        model: LiteLLM embedding model string (provider/model format).
        dimensions: Fixed vector length shared by every stored embedding.
        provider: 'litellm', 'hash' (deterministic, offline), or 'auto'
            (litellm when the model's API key is set, hash otherwise).
        timeout: Seconds before an embedding call is abandoned.
    """

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1536
    provider: str = "auto"  # auto | litellm | hash
    timeout: float = 30.0


@dataclass
class GenerationCfg:
    """Answer generation configuration (virtual_ta.yaml: generation:)."""

    model: str = "openai/gpt-4o-mini"
    temperature: float = 0.7
    max_tokens: int = 2048
    timeout: float = 60.0
    offline: bool = False  # force the rule-based fallback responder


@dataclass
class RetrievalCfg:
    """Evidence retrieval limits (virtual_ta.yaml: retrieval:)."""

    vector_top_k: int = 5
    course_keyword_limit: int = 2
    forum_keyword_limit: int = 3
    max_evidence: int = 8
    max_links: int = 3


@dataclass
class ImageCfg:
    """Image payload handling (virtual_ta.yaml: image:)."""

    max_size_mb: float = 10.0
    vision_model: str | None = None


@dataclass
class ServerCfg:
    """HTTP server settings (virtual_ta.yaml: server:)."""

    host: str = "127.0.0.1"
    port: int = 8000
    db: str = ".virtual_ta.db"


@dataclass
class VirtualTAConfig:
    """Root configuration object, built by load_config() from merged layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    image: ImageCfg = field(default_factory=ImageCfg)
    server: ServerCfg = field(default_factory=ServerCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}'; ignored.",
                UserWarning,
                stacklevel=4,
            )


def validate_config(cfg: VirtualTAConfig) -> None:
    """Raise ConfigError for out-of-range values."""
    if not 0.0 <= cfg.generation.temperature <= 2.0:
        raise ConfigError(
            f"generation.temperature must be within [0, 2], got {cfg.generation.temperature}"
        )
    if cfg.generation.max_tokens < 1:
        raise ConfigError(f"generation.max_tokens must be >= 1, got {cfg.generation.max_tokens}")
    if cfg.embedding.dimensions < 1:
        raise ConfigError(f"embedding.dimensions must be >= 1, got {cfg.embedding.dimensions}")
    if cfg.embedding.provider not in ("auto", "litellm", "hash"):
        raise ConfigError(
            f"embedding.provider must be one of auto, litellm, hash; got '{cfg.embedding.provider}'"
        )
    for name in ("vector_top_k", "course_keyword_limit", "forum_keyword_limit", "max_links"):
        if getattr(cfg.retrieval, name) < 0:
            raise ConfigError(f"retrieval.{name} must be >= 0")
    if cfg.retrieval.max_evidence < 1:
        raise ConfigError("retrieval.max_evidence must be >= 1")
    if cfg.image.max_size_mb <= 0:
        raise ConfigError("image.max_size_mb must be > 0")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> VirtualTAConfig:
    """Build a *VirtualTAConfig* from a merged raw YAML dict."""
    cfg = VirtualTAConfig()

    try:
        if "embedding" in data:
            e = data["embedding"] or {}
            cfg.embedding = EmbeddingCfg(
                model=str(e.get("model", cfg.embedding.model)),
                dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
                provider=str(e.get("provider", cfg.embedding.provider)),
                timeout=float(e.get("timeout", cfg.embedding.timeout)),
            )

        if "generation" in data:
            g = data["generation"] or {}
            cfg.generation = GenerationCfg(
                model=str(g.get("model", cfg.generation.model)),
                temperature=float(g.get("temperature", cfg.generation.temperature)),
                max_tokens=int(g.get("max_tokens", cfg.generation.max_tokens)),
                timeout=float(g.get("timeout", cfg.generation.timeout)),
                offline=bool(g.get("offline", cfg.generation.offline)),
            )

        if "retrieval" in data:
            r = data["retrieval"] or {}
            cfg.retrieval = RetrievalCfg(
                vector_top_k=int(r.get("vector_top_k", cfg.retrieval.vector_top_k)),
                course_keyword_limit=int(
                    r.get("course_keyword_limit", cfg.retrieval.course_keyword_limit)
                ),
                forum_keyword_limit=int(
                    r.get("forum_keyword_limit", cfg.retrieval.forum_keyword_limit)
                ),
                max_evidence=int(r.get("max_evidence", cfg.retrieval.max_evidence)),
                max_links=int(r.get("max_links", cfg.retrieval.max_links)),
            )

        if "image" in data:
            i = data["image"] or {}
            cfg.image = ImageCfg(
                max_size_mb=float(i.get("max_size_mb", cfg.image.max_size_mb)),
                vision_model=i.get("vision_model") or cfg.image.vision_model,
            )

        if "server" in data:
            s = data["server"] or {}
            cfg.server = ServerCfg(
                host=str(s.get("host", cfg.server.host)),
                port=int(s.get("port", cfg.server.port)),
                db=str(s.get("db", cfg.server.db)),
            )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    return cfg


def _apply_env_overrides(cfg: VirtualTAConfig) -> VirtualTAConfig:
    """Apply VIRTUAL_TA_* environment variable overrides."""
    if model := os.environ.get("VIRTUAL_TA_GENERATION_MODEL"):
        cfg.generation.model = model
    if model := os.environ.get("VIRTUAL_TA_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> VirtualTAConfig:
    """Load and return a merged *VirtualTAConfig*.

    Applies layers in order: global → per-project → env vars. Config-store
    entries are applied separately with :func:`apply_store_overrides` once a
    database is open.

    Args:
        project_dir: Directory to search for *virtual_ta.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains API-key-like fields, or a value
            is malformed or out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)
    cfg = _apply_env_overrides(cfg)
    validate_config(cfg)
    return cfg


def apply_store_overrides(
    cfg: VirtualTAConfig, entries: Mapping[str, str]
) -> VirtualTAConfig:
    """Overlay config-store *entries* (key → value) onto *cfg*.

    Recognised keys are listed in :data:`STORE_KEYS`; others are ignored.
    Environment variables still win over store entries.

    Raises:
        ConfigError: If a numeric entry cannot be parsed or is out of range.
    """
    try:
        if value := entries.get("generation_model"):
            cfg.generation.model = value
        if value := entries.get("embedding_model"):
            cfg.embedding.model = value
        if value := entries.get("temperature"):
            cfg.generation.temperature = float(value)
        if value := entries.get("max_tokens"):
            cfg.generation.max_tokens = int(value)
    except ValueError as exc:
        raise ConfigError(f"Invalid config-store value: {exc}") from exc
    cfg = _apply_env_overrides(cfg)
    validate_config(cfg)
    return cfg


def write_project_config(path: Path, cfg: VirtualTAConfig | None = None) -> Path:
    """Write a commented *virtual_ta.yaml* with the values of *cfg* (defaults if None)."""
    cfg = cfg or VirtualTAConfig()
    content = (
        "# virtual-ta project configuration.\n"
        "# NEVER store API keys here; use environment variables:\n"
        "#   export OPENAI_API_KEY=sk-...\n"
        "\n"
        + yaml.safe_dump(
            {
                "embedding": {
                    "model": cfg.embedding.model,
                    "dimensions": cfg.embedding.dimensions,
                    "provider": cfg.embedding.provider,
                },
                "generation": {
                    "model": cfg.generation.model,
                    "temperature": cfg.generation.temperature,
                    "max_tokens": cfg.generation.max_tokens,
                },
                "retrieval": {
                    "vector_top_k": cfg.retrieval.vector_top_k,
                    "max_evidence": cfg.retrieval.max_evidence,
                },
                "image": {"max_size_mb": cfg.image.max_size_mb},
                "server": {"db": cfg.server.db},
            },
            sort_keys=False,
        )
    )
    path.write_text(content, encoding="utf-8")
    return path
