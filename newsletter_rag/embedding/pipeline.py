"""
Index Build - Chunk, Embed, Cache
-----------------------------------
Reads the newsletter archive, chunks it with NewsletterChunker, embeds
every chunk with the Gemini embedder and writes the embedding cache.

Runs only when the cache is missing or invalid.  The corpus is
best-effort: a chunk that fails to embed is logged and skipped so one bad
request never costs the whole index.  Embedding calls are paced to stay
under the free-tier rate limit (~60 requests/minute).
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from newsletter_rag.chunking.chunker import NewsletterChunker
from newsletter_rag.chunking.schemas import Chunk
from newsletter_rag.embedding.cache import EmbeddingCache
from newsletter_rag.embedding.embedder import GeminiEmbedder
from newsletter_rag.errors import BackendError, CacheError, ChunkEmbeddingError, ConfigurationError

ProgressCallback = Callable[[int, int], None]


@dataclass
class BuildReport:
    """Outcome of one cache population run."""

    total_chunks: int
    embedded: int
    skipped: list[int] = field(default_factory=list)
    dimensions: int = 0
    elapsed_s: float = 0.0


def _embed_chunk(embedder: GeminiEmbedder, index: int, chunk: Chunk, dimensions: int) -> Chunk:
    try:
        vector = embedder.embed(chunk.text)
    except BackendError as exc:
        raise ChunkEmbeddingError(index, exc) from exc
    if dimensions and len(vector) != dimensions:
        raise ChunkEmbeddingError(
            index, ValueError(f"dimension {len(vector)} != {dimensions}")
        )
    return chunk.with_embedding(vector)


def embed_chunks(
    chunks: list[Chunk],
    embedder: GeminiEmbedder,
    batch_size: int = 10,
    pause_s: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
    on_progress: Optional[ProgressCallback] = None,
) -> tuple[list[Chunk], list[int]]:
    """
    Embed chunks one at a time, in order.

    Returns:
        (embedded_chunks, skipped_indices).  Embedded chunks keep corpus order.

    Raises:
        ConfigurationError: the embedder has no credential.
    """
    if not embedder.is_configured:
        raise ConfigurationError("Gemini not configured: set GEMINI_API_KEY")

    embedded: list[Chunk] = []
    skipped: list[int] = []
    dimensions = 0
    total = len(chunks)

    for i, chunk in enumerate(chunks):
        try:
            result = _embed_chunk(embedder, i, chunk, dimensions)
            embedded.append(result)
            dimensions = dimensions or len(result.embedding)
        except ChunkEmbeddingError as exc:
            skipped.append(i)
            logger.error(f"[IndexBuild] Skipping {exc} | title={chunk.title!r}")

        if on_progress is not None:
            on_progress(i + 1, total)

        calls = i + 1
        if calls % batch_size == 0 and calls < total:
            logger.info(f"[IndexBuild] Embedded {calls}/{total}...")
            sleep(pause_s)

    return embedded, skipped


def build_index(
    corpus_path: str | Path,
    cache: EmbeddingCache,
    embedder: GeminiEmbedder,
    chunker: Optional[NewsletterChunker] = None,
    batch_size: int = 10,
    pause_s: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
    on_progress: Optional[ProgressCallback] = None,
) -> tuple[list[Chunk], BuildReport]:
    """
    Execute the full cold-cache build:
      1. Read the corpus
      2. Chunk with NewsletterChunker
      3. Embed each chunk (skip failures, pace for the rate limit)
      4. Save the cache

    Returns:
        (embedded_chunks, report)
    """
    started = time.perf_counter()
    corpus = Path(corpus_path)
    if not corpus.exists():
        raise FileNotFoundError(f"Newsletter corpus not found: {corpus}")

    logger.info("[IndexBuild] Generating embeddings (one-time operation)...")
    content = corpus.read_text(encoding="utf-8")
    chunks = (chunker or NewsletterChunker()).chunk_corpus(content)
    logger.info(f"[IndexBuild] Processing {len(chunks)} chunks...")

    embedded, skipped = embed_chunks(
        chunks,
        embedder,
        batch_size=batch_size,
        pause_s=pause_s,
        sleep=sleep,
        on_progress=on_progress,
    )
    if not embedded:
        raise CacheError(f"No chunks could be embedded ({len(chunks)} attempted)")

    cache.save(embedded)

    report = BuildReport(
        total_chunks=len(chunks),
        embedded=len(embedded),
        skipped=skipped,
        dimensions=len(embedded[0].embedding),
        elapsed_s=time.perf_counter() - started,
    )
    logger.info(
        f"[IndexBuild] Done | {report.embedded}/{report.total_chunks} chunks embedded | "
        f"{len(skipped)} skipped | dim={report.dimensions} | {report.elapsed_s:.1f}s"
    )
    return embedded, report
