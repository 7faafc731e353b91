"""
Newsletter RAG Serving Pipeline
--------------------------------
Owns the process-wide retrieval state and runs the per-query lifecycle:

    user query
        |
        v
    ensure_initialized()  (once: load cache, or chunk + embed + save)
        |
        v
    SimilarityRetriever  (embed query, cosine rank, top_k=4)
        |
        v
    AnswerGenerator      (OpenRouter -> Gemini -> fixed fallback)
        |
        v
    QueryResult          (answer + deduplicated source titles + timings)

Initialization is single-flight: the first caller builds the state while
concurrent callers wait on the same lock and reuse the result.  After that
the chunk list is read-only.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from langsmith import traceable
from loguru import logger

from newsletter_rag.chunking.chunker import NewsletterChunker
from newsletter_rag.chunking.schemas import Chunk
from newsletter_rag.config import Settings
from newsletter_rag.embedding.cache import CacheCorrupt, CacheHit, CacheMiss, EmbeddingCache
from newsletter_rag.embedding.embedder import GeminiEmbedder
from newsletter_rag.embedding.pipeline import build_index
from newsletter_rag.errors import ConfigurationError, RequestError
from newsletter_rag.generation.backends import GeminiBackend, OpenRouterBackend
from newsletter_rag.generation.generator import AnswerGenerator, build_context
from newsletter_rag.retrieval.retriever import SimilarityRetriever
from newsletter_rag.utils.helpers import dedupe_preserve_order


# ---------------------------------------------------------------------------
# Result schema
# ---------------------------------------------------------------------------

@dataclass
class QueryResult:
    """
    Full output from a single RAG query.

    Timing fields are in milliseconds.
    """

    query: str
    answer: str
    sources: list[str] = field(default_factory=list)
    scores: list[float] = field(default_factory=list)
    backend: str = ""

    # Latency breakdown
    init_ms: float = 0.0
    retrieval_ms: float = 0.0
    generation_ms: float = 0.0

    @property
    def total_ms(self) -> float:
        return self.init_ms + self.retrieval_ms + self.generation_ms

    def to_dict(self) -> dict:
        return {
            "query": self.query,
            "answer": self.answer,
            "sources": self.sources,
            "backend": self.backend,
            "latency_ms": {
                "init": round(self.init_ms, 1),
                "retrieval": round(self.retrieval_ms, 1),
                "generation": round(self.generation_ms, 1),
                "total": round(self.total_ms, 1),
            },
        }


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class NewsletterRAGPipeline:
    """
    End-to-end newsletter question answering.

    Create one instance per process and share it between requests.

    Usage:
        pipeline = NewsletterRAGPipeline.from_settings(load_settings())
        result = pipeline.answer("What did you learn from your divorce?")
        print(result.answer, result.sources)
    """

    def __init__(
        self,
        corpus_path: str | Path,
        cache: EmbeddingCache,
        embedder: GeminiEmbedder,
        generator: AnswerGenerator,
        top_k: int = 4,
        chunker: Optional[NewsletterChunker] = None,
        embed_batch_size: int = 10,
        embed_pause_s: float = 1.0,
    ) -> None:
        self.corpus_path = Path(corpus_path)
        self.cache = cache
        self.embedder = embedder
        self.generator = generator
        self.top_k = top_k
        self.chunker = chunker or NewsletterChunker()
        self.embed_batch_size = embed_batch_size
        self.embed_pause_s = embed_pause_s
        self.retriever = SimilarityRetriever(embedder=embedder, top_k=top_k)

        self._chunks: list[Chunk] = []
        self._initialized = False
        self._init_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "NewsletterRAGPipeline":
        embedder = GeminiEmbedder(
            api_key=settings.gemini_api_key,
            model=settings.embedding_model,
            max_chars=settings.embed_max_chars,
            timeout_s=settings.request_timeout_s,
        )
        generator = AnswerGenerator(
            [
                OpenRouterBackend(
                    api_key=settings.openrouter_api_key,
                    model=settings.openrouter_model,
                    base_url=settings.openrouter_base_url,
                    referer=settings.openrouter_referer,
                    max_tokens=settings.max_tokens,
                    timeout_s=settings.request_timeout_s,
                ),
                GeminiBackend(
                    api_key=settings.gemini_api_key,
                    model=settings.gemini_model,
                    timeout_s=settings.request_timeout_s,
                ),
            ]
        )
        return cls(
            corpus_path=settings.corpus_path,
            cache=EmbeddingCache(settings.cache_path),
            embedder=embedder,
            generator=generator,
            top_k=settings.top_k,
            embed_batch_size=settings.embed_batch_size,
            embed_pause_s=settings.embed_pause_s,
        )

    # --- State ----------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def chunks(self) -> tuple[Chunk, ...]:
        return tuple(self._chunks)

    def ensure_initialized(self, force_rebuild: bool = False) -> None:
        """
        Load the embedding cache, or build it if missing/invalid.

        Idempotent; concurrent callers block until the first one finishes.
        A failed build leaves the pipeline uninitialized so the next call
        retries.
        """
        if self._initialized and not force_rebuild:
            return

        with self._init_lock:
            if self._initialized and not force_rebuild:
                return

            result = None if force_rebuild else self.cache.load()
            if isinstance(result, CacheHit):
                chunks = result.chunks
                logger.info(f"[RAGPipeline] Loaded {len(chunks)} chunks from cache")
            else:
                if isinstance(result, CacheCorrupt):
                    logger.warning(f"[RAGPipeline] Cache corrupt ({result.reason}), rebuilding")
                elif isinstance(result, CacheMiss):
                    logger.info("[RAGPipeline] Cache miss, building index")
                chunks, _ = build_index(
                    corpus_path=self.corpus_path,
                    cache=self.cache,
                    embedder=self.embedder,
                    chunker=self.chunker,
                    batch_size=self.embed_batch_size,
                    pause_s=self.embed_pause_s,
                )

            self._chunks = list(chunks)
            self._initialized = True

    # --- Query ----------------------------------------------------------------

    @traceable(name="newsletter_query", run_type="chain")
    def answer(self, query: Optional[str], top_k: Optional[int] = None) -> QueryResult:
        """
        Answer one question from the newsletter archive.

        Raises:
            RequestError: the query is missing or blank.
            ConfigurationError: no embedding credential is configured.
        """
        if not isinstance(query, str) or not query.strip():
            raise RequestError("Query required")
        query = query.strip()
        logger.info(f"[RAGPipeline] Query: {query[:100]!r}")

        t0 = time.perf_counter()
        self.ensure_initialized()
        init_ms = (time.perf_counter() - t0) * 1000

        if not self.embedder.is_configured:
            raise ConfigurationError("Gemini not configured: set GEMINI_API_KEY")

        t1 = time.perf_counter()
        ranked = self.retriever.retrieve(
            query, self._chunks, top_k=self.top_k if top_k is None else top_k
        )
        retrieval_ms = (time.perf_counter() - t1) * 1000

        context = build_context([chunk for chunk, _ in ranked])

        t2 = time.perf_counter()
        generation = self.generator.generate_detailed(query, context)
        generation_ms = (time.perf_counter() - t2) * 1000

        sources = dedupe_preserve_order([chunk.title for chunk, _ in ranked])

        logger.info(
            f"[RAGPipeline] Complete | "
            f"init={init_ms:.0f}ms "
            f"retrieve={retrieval_ms:.0f}ms "
            f"generate={generation_ms:.0f}ms | "
            f"backend={generation.backend} sources={len(sources)}"
        )

        return QueryResult(
            query=query,
            answer=generation.answer,
            sources=sources,
            scores=[round(score, 4) for _, score in ranked],
            backend=generation.backend,
            init_ms=init_ms,
            retrieval_ms=retrieval_ms,
            generation_ms=generation_ms,
        )
