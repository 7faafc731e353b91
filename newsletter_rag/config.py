"""
Runtime configuration.

Tunables (paths, model ids, top-k, rate limit, timeouts) come from an
optional YAML file; credentials come from the environment, with `.env`
loaded through python-dotenv.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field

DEFAULT_CONFIG_PATH = "config/config.yaml"


class Settings(BaseModel):
    """All knobs for the newsletter RAG pipeline."""

    # Paths
    corpus_path: Path = Path("data/newsletters.txt")
    cache_path: Path = Path("data/embeddings_cache.json")

    # Embedding backend
    embedding_model: str = "gemini-embedding-001"
    embed_max_chars: int = 2000
    embed_batch_size: int = 10          # calls between rate-limit pauses
    embed_pause_s: float = 1.0          # ~60 requests/minute on free tiers

    # Generation backends
    openrouter_model: str = "openrouter/auto"
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_referer: str = "https://ask-andrew.vercel.app"
    gemini_model: str = "gemini-2.5-flash"
    max_tokens: int = 800

    # Retrieval
    top_k: int = 4

    # Outbound HTTP
    request_timeout_s: float = 30.0

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = "logs/newsletter_rag.log"

    # Credentials (environment only, never read from YAML)
    gemini_api_key: Optional[str] = Field(default=None, repr=False)
    openrouter_api_key: Optional[str] = Field(default=None, repr=False)


def _load_yaml(path: Path) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    return data


def load_settings(config_path: str | Path | None = None, **overrides: Any) -> Settings:
    """
    Build Settings from YAML (if present), the environment, and overrides.

    A missing default config file is fine; an explicitly requested one
    that does not exist raises FileNotFoundError.
    """
    load_dotenv(find_dotenv(usecwd=True))

    values: dict[str, Any] = {}
    path = Path(config_path or os.getenv("NEWSLETTER_RAG_CONFIG", DEFAULT_CONFIG_PATH))
    if path.exists():
        values.update(_load_yaml(path))
    elif config_path is not None:
        raise FileNotFoundError(f"Config file not found: {path}")

    values.pop("gemini_api_key", None)
    values.pop("openrouter_api_key", None)
    values["gemini_api_key"] = os.getenv("GEMINI_API_KEY") or None
    values["openrouter_api_key"] = os.getenv("OPENROUTER_API_KEY") or None

    values.update(overrides)
    return Settings(**values)
