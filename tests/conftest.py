"""Shared pytest fixtures for the newsletter RAG tests."""
from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional

import pytest

from newsletter_rag.embedding.cache import EmbeddingCache
from newsletter_rag.errors import BackendError
from newsletter_rag.generation.backends import GenerationBackend
from newsletter_rag.generation.generator import AnswerGenerator
from newsletter_rag.serving.pipeline import NewsletterRAGPipeline


# -- Corpus --

DIVORCE_PARAGRAPH = " ".join(
    ["Going through a divorce taught me that the hardest conversations are the ones worth having."] * 10
)

INVESTING_PARAGRAPH = " ".join(
    ["When I evaluate businesses I look for durable cash flow and owners who care about customers."] * 4
)

ADHD_PARAGRAPH = " ".join(
    ["Living with ADHD means building systems so that focus is not a matter of willpower alone."] * 4
)

SAMPLE_CORPUS = f"""March 3, 2021

On Divorce

{DIVORCE_PARAGRAPH}

April 10, 2021

How I Evaluate Businesses

{INVESTING_PARAGRAPH}

Thoughts on ADHD and focus

{ADHD_PARAGRAPH}
"""


# -- Fake embedding backend --

_VOCAB = ["divorce", "conversations", "businesses", "cash", "customers", "adhd", "focus", "willpower"]


class FakeEmbedder:
    """Bag-of-keywords embedder; deterministic and offline."""

    backend_name = "fake-embedding"

    def __init__(self, fail_on: Optional[set] = None, configured: bool = True):
        self.fail_on = fail_on or set()
        self.configured = configured
        self.calls: List[str] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    def embed(self, text: str) -> List[float]:
        index = len(self.calls)
        self.calls.append(text)
        if index in self.fail_on:
            raise BackendError(self.backend_name, f"simulated failure on call {index}")
        words = re.findall(r"[a-z]+", text.lower())
        return [float(words.count(term)) + 0.01 for term in _VOCAB]

    def embed_query(self, text: str) -> List[float]:
        return self.embed(text)


# -- Fake generation backend --

class FakeBackend(GenerationBackend):
    """Records prompts and replays a canned answer (or raises)."""

    def __init__(self, name: str = "fake", answer: Optional[str] = "canned answer",
                 configured: bool = True, error: Optional[Exception] = None):
        self.name = name
        self.answer = answer
        self.configured = configured
        self.error = error
        self.prompts: List[tuple] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    def _complete(self, system_prompt: str, query: str) -> Optional[str]:
        self.prompts.append((system_prompt, query))
        if self.error is not None:
            raise self.error
        return self.answer


# -- Fixtures --

@pytest.fixture
def corpus_path(tmp_path: Path) -> Path:
    path = tmp_path / "newsletters.txt"
    path.write_text(SAMPLE_CORPUS, encoding="utf-8")
    return path


@pytest.fixture
def cache(tmp_path: Path) -> EmbeddingCache:
    return EmbeddingCache(tmp_path / "embeddings_cache.json")


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def pipeline(corpus_path, cache, fake_embedder, fake_backend) -> NewsletterRAGPipeline:
    return NewsletterRAGPipeline(
        corpus_path=corpus_path,
        cache=cache,
        embedder=fake_embedder,
        generator=AnswerGenerator([fake_backend]),
        top_k=4,
        embed_pause_s=0.0,
    )
