"""
Generation Backends
--------------------
Two chat/completion providers behind one complete(system_prompt, query)
interface:

  OpenRouterBackend -- OpenAI-compatible API, auto-routed model (primary)
  GeminiBackend     -- direct Gemini generation (fallback)

Each attempt is reported as a BackendOutcome instead of an exception so the
generator can walk the backend list with plain control flow.
"""
from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from loguru import logger

from newsletter_rag.generation.prompts import FALLBACK_PROMPT_TEMPLATE


class OutcomeStatus(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"      # backend not configured
    EMPTY = "empty"          # call succeeded but returned no usable text
    FAILED = "failed"        # call raised


@dataclass
class BackendOutcome:
    """Result of a single backend attempt."""

    backend: str
    status: OutcomeStatus
    answer: str = ""
    error: str = ""
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.OK


class GenerationBackend(ABC):
    """
    All generation providers inherit from this class.

    Subclasses implement _complete(); attempt() wraps it so that a missing
    credential, an empty reply and a raised error all come back as typed
    outcomes rather than exceptions.
    """

    name: str = "backend"

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """True if the backend has the credential it needs."""

    @abstractmethod
    def _complete(self, system_prompt: str, query: str) -> Optional[str]:
        """Call the provider and return the answer text (or None)."""

    def attempt(self, system_prompt: str, query: str) -> BackendOutcome:
        if not self.is_configured:
            return BackendOutcome(self.name, OutcomeStatus.SKIPPED, error="not configured")

        start = time.perf_counter()
        try:
            answer = self._complete(system_prompt, query)
        except Exception as exc:
            elapsed = (time.perf_counter() - start) * 1000
            logger.error(f"[{self.name}] Generation failed: {exc}")
            return BackendOutcome(self.name, OutcomeStatus.FAILED, error=str(exc), elapsed_ms=elapsed)

        elapsed = (time.perf_counter() - start) * 1000
        if not answer or not answer.strip():
            logger.warning(f"[{self.name}] Returned no usable content")
            return BackendOutcome(self.name, OutcomeStatus.EMPTY, elapsed_ms=elapsed)
        return BackendOutcome(self.name, OutcomeStatus.OK, answer=answer, elapsed_ms=elapsed)


# ---------------------------------------------------------------------------
# OpenRouter (primary)
# ---------------------------------------------------------------------------

class OpenRouterBackend(GenerationBackend):
    """
    OpenRouter through the OpenAI SDK.

    `openrouter/auto` lets OpenRouter pick the best available model per
    request; the HTTP-Referer header identifies the app to OpenRouter.
    """

    name = "openrouter"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "openrouter/auto",
        base_url: str = "https://openrouter.ai/api/v1",
        referer: Optional[str] = None,
        max_tokens: int = 800,
        timeout_s: float = 30.0,
        client: Any = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.referer = referer
        self.max_tokens = max_tokens
        self.timeout_s = timeout_s
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) or self._client is not None

    def _get_client(self):
        if self._client is None:
            from openai import OpenAI  # lazy import keeps import graph clean

            headers = {"HTTP-Referer": self.referer} if self.referer else None
            self._client = OpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout_s,
                max_retries=0,
                default_headers=headers,
            )
        return self._client

    def _complete(self, system_prompt: str, query: str) -> Optional[str]:
        logger.debug(f"[{self.name}] {self.model} | query={query[:60]!r}")
        response = self._get_client().chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": query},
            ],
            max_tokens=self.max_tokens,
        )
        if not response.choices:
            return None
        answer = response.choices[0].message.content
        if response.usage is not None:
            logger.info(
                f"[{self.name}] Done | model={getattr(response, 'model', self.model)} "
                f"prompt={response.usage.prompt_tokens} "
                f"completion={response.usage.completion_tokens}"
            )
        return answer


# ---------------------------------------------------------------------------
# Gemini (fallback)
# ---------------------------------------------------------------------------

class GeminiBackend(GenerationBackend):
    """Direct Gemini generation; system prompt and question in one text."""

    name = "gemini"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-2.5-flash",
        timeout_s: float = 30.0,
        client: Any = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout_s = timeout_s
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) or self._client is not None

    def _get_client(self):
        if self._client is None:
            from google import genai  # lazy import
            from google.genai import types

            self._client = genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(timeout=int(self.timeout_s * 1000)),
            )
        return self._client

    def _complete(self, system_prompt: str, query: str) -> Optional[str]:
        logger.debug(f"[{self.name}] {self.model} | query={query[:60]!r}")
        prompt = FALLBACK_PROMPT_TEMPLATE.format(system_prompt=system_prompt, query=query)
        response = self._get_client().models.generate_content(model=self.model, contents=prompt)
        return response.text
