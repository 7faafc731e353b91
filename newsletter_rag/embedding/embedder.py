"""
Gemini Embedding Client
------------------------
Wraps the Gemini embeddings endpoint (google-genai SDK) with:
  - Input truncation to a fixed character budget (cost/latency guard)
  - Retry logic via tenacity for transient API failures
  - A request timeout so a hung call cannot block a request forever
  - Call counting for usage logging

One text per call: cache population embeds chunks individually so a single
bad chunk can be skipped without losing its neighbours.
"""
from __future__ import annotations

import time
from typing import Any, Optional

from loguru import logger
from tenacity import retry, stop_after_attempt, wait_exponential

from newsletter_rag.errors import BackendError, ConfigurationError

MODEL = "gemini-embedding-001"
MAX_CHARS = 2000


class GeminiEmbedder:
    """
    Embeds single texts with one fixed Gemini embedding model.

    The client is created lazily so constructing an embedder without a
    credential is cheap; the missing credential only surfaces when
    embed() is actually called.
    """

    backend_name = "gemini-embedding"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = MODEL,
        max_chars: int = MAX_CHARS,
        timeout_s: float = 30.0,
        client: Any = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.max_chars = max_chars
        self.timeout_s = timeout_s
        self._client = client
        self.total_api_calls: int = 0

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) or self._client is not None

    def _get_client(self):
        if self._client is None:
            from google import genai  # lazy import keeps import graph clean
            from google.genai import types

            self._client = genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(timeout=int(self.timeout_s * 1000)),
            )
        return self._client

    def embed(self, text: str) -> list[float]:
        """
        Embed one string, truncated to max_chars.

        Raises:
            ConfigurationError: no Gemini credential is available.
            BackendError: the API call still failed after retries.
        """
        if not self.is_configured:
            raise ConfigurationError("Gemini not configured: set GEMINI_API_KEY")

        safe_text = text[: self.max_chars] if text.strip() else " "
        try:
            values = self._embed_remote(safe_text)
        except Exception as exc:
            raise BackendError(self.backend_name, str(exc)) from exc

        self.total_api_calls += 1
        return values

    def embed_query(self, text: str) -> list[float]:
        return self.embed(text)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        reraise=True,
    )
    def _embed_remote(self, text: str) -> list[float]:
        """Call the Gemini embed_content endpoint for a single text."""
        start = time.perf_counter()
        response = self._get_client().models.embed_content(model=self.model, contents=text)
        elapsed = time.perf_counter() - start

        if not response.embeddings or not response.embeddings[0].values:
            raise ValueError("empty embedding in response")
        values = [float(v) for v in response.embeddings[0].values]
        logger.debug(f"[Embedder] API call: {len(text)} chars, dim={len(values)}, {elapsed:.2f}s")
        return values

    def usage_summary(self) -> dict:
        return {
            "model": self.model,
            "total_api_calls": self.total_api_calls,
        }
