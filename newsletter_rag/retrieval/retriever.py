"""
Dense Retriever
----------------
Embeds the user query and ranks the cached newsletter chunks by cosine
similarity.

The retriever is stateless per query -- call retrieve() as many times
as you like from the same instance.  It always returns best-effort
results, even when every chunk is only weakly related; refusing
off-topic questions is the generator's job.
"""
from __future__ import annotations

from typing import Sequence

from langsmith import traceable
from loguru import logger

from newsletter_rag.chunking.schemas import Chunk
from newsletter_rag.embedding.embedder import GeminiEmbedder
from newsletter_rag.retrieval.ranker import score_chunks


class SimilarityRetriever:
    """Query embedding + exact cosine ranking over an in-memory chunk list."""

    def __init__(self, embedder: GeminiEmbedder, top_k: int = 4) -> None:
        self.embedder = embedder
        self.top_k = top_k

    @traceable(name="retrieve", run_type="retriever")
    def retrieve(self, query: str, chunks: Sequence[Chunk], top_k: int | None = None) -> list[tuple[Chunk, float]]:
        """
        Embed the query and return the top-k chunks.

        Args:
            query: Raw user query string.
            chunks: Embedded chunks to search.
            top_k: Overrides the instance default.

        Returns:
            List of (Chunk, cosine_score) sorted by score descending.
        """
        k = self.top_k if top_k is None else top_k
        logger.debug(f"[Retriever] Query: {query[:80]!r}")

        query_vec = self.embedder.embed_query(query)
        results = score_chunks(query_vec, chunks)[: max(k, 0)]

        logger.info(
            f"[Retriever] Retrieved {len(results)} chunks "
            f"(top score: {results[0][1]:.4f})" if results else "[Retriever] No results"
        )
        return results
