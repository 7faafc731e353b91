"""
Answer Generator
-----------------
Turns a query plus retrieved newsletter excerpts into a grounded answer.

Order of evaluation for every query:
  1. Meta questions ("Who are you?") get a fixed answer -- no model call.
  2. An empty context gets the fixed refusal -- nothing to ground on.
  3. Backends are tried in order (OpenRouter, then Gemini); the first
     non-empty answer wins.
  4. If every backend is unconfigured or fails, a fixed unavailability
     message is returned.  generate() never raises.

No retries beyond the single walk down the backend list.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional, Sequence

from langsmith import traceable
from loguru import logger

from newsletter_rag.chunking.schemas import Chunk
from newsletter_rag.generation.backends import BackendOutcome, GenerationBackend
from newsletter_rag.generation.prompts import (
    EXCERPT_SEPARATOR,
    EXCERPT_TEMPLATE,
    LIFE_STORY_RESPONSE,
    REFUSAL_RESPONSE,
    SYSTEM_PROMPT,
    UNAVAILABLE_RESPONSE,
    WHO_ARE_YOU_RESPONSE,
)

# (pattern on the normalised query, fixed answer)
_META_QUESTIONS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"^(who|what) are you$"), WHO_ARE_YOU_RESPONSE),
    (re.compile(r"^who am i (talking|speaking) to$"), WHO_ARE_YOU_RESPONSE),
    (re.compile(r"^what have you done in (your )?life$"), LIFE_STORY_RESPONSE),
]


def _normalise(query: str) -> str:
    text = re.sub(r"[^a-z0-9\s]", " ", query.lower())
    return " ".join(text.split())


def match_meta_question(query: str) -> Optional[str]:
    """Return the fixed answer for an identity/meta question, else None."""
    normalised = _normalise(query)
    for pattern, answer in _META_QUESTIONS:
        if pattern.match(normalised):
            return answer
    return None


def build_context(chunks: Sequence[Chunk]) -> str:
    """Format chunks as "[title]\\ntext" excerpts joined by a separator."""
    return EXCERPT_SEPARATOR.join(
        EXCERPT_TEMPLATE.format(title=c.title, text=c.text) for c in chunks
    )


def build_system_prompt(context: str) -> str:
    return SYSTEM_PROMPT.format(context=context)


@dataclass
class GenerationResult:
    """Answer plus the trail of backend attempts that produced it."""

    answer: str
    backend: str                      # "meta" | "refusal" | backend name | "unavailable"
    attempts: list[BackendOutcome] = field(default_factory=list)


class AnswerGenerator:
    """
    Grounded answer synthesis over an ordered list of backends.

    Usage:
        generator = AnswerGenerator([OpenRouterBackend(key), GeminiBackend(key)])
        answer = generator.generate("What do you think about divorce?", context)
    """

    def __init__(self, backends: Sequence[GenerationBackend]) -> None:
        self.backends = list(backends)

    @property
    def available_backends(self) -> list[str]:
        return [b.name for b in self.backends if b.is_configured]

    def generate(self, query: str, context: str) -> str:
        return self.generate_detailed(query, context).answer

    @traceable(name="generate_answer", run_type="llm")
    def generate_detailed(self, query: str, context: str) -> GenerationResult:
        meta = match_meta_question(query)
        if meta is not None:
            logger.info(f"[Generator] Meta question answered directly: {query[:60]!r}")
            return GenerationResult(answer=meta, backend="meta")

        if not context.strip():
            logger.info("[Generator] Empty context, returning refusal")
            return GenerationResult(answer=REFUSAL_RESPONSE, backend="refusal")

        system_prompt = build_system_prompt(context)
        attempts: list[BackendOutcome] = []

        for backend in self.backends:
            outcome = backend.attempt(system_prompt, query)
            attempts.append(outcome)
            if outcome.ok:
                logger.info(
                    f"[Generator] Answered by {outcome.backend} in {outcome.elapsed_ms:.0f}ms "
                    f"after {len(attempts)} attempt(s)"
                )
                return GenerationResult(answer=outcome.answer, backend=outcome.backend, attempts=attempts)

        summary = ", ".join(f"{o.backend}={o.status.value}" for o in attempts) or "no backends"
        logger.error(f"[Generator] All backends unavailable ({summary})")
        return GenerationResult(answer=UNAVAILABLE_RESPONSE, backend="unavailable", attempts=attempts)
