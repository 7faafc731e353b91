"""
Similarity Ranker
------------------
Brute-force cosine ranking of every cached chunk against a query vector.
The archive is a few thousand chunks at most, so an exact scan over a
NumPy matrix is both simpler and faster than an ANN index.

All functions are pure: input chunks are never mutated.
"""
from __future__ import annotations

from typing import Sequence

import numpy as np

from newsletter_rag.chunking.schemas import Chunk


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """dot(a, b) / (|a| * |b|); 0.0 when either vector has zero length."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    if denom == 0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def score_chunks(query_vec: Sequence[float], chunks: Sequence[Chunk]) -> list[tuple[Chunk, float]]:
    """
    Score and sort every chunk against the query.

    Returns:
        List of (Chunk, cosine_score) sorted descending; equal scores keep
        their original order.
    """
    if not chunks:
        return []

    matrix = np.asarray([c.embedding for c in chunks], dtype=np.float64)
    q = np.asarray(query_vec, dtype=np.float64)

    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)
    dots = matrix @ q
    scores = np.divide(dots, norms, out=np.zeros_like(dots), where=norms != 0)

    order = np.argsort(-scores, kind="stable")
    return [(chunks[i], float(scores[i])) for i in order]


def rank(query_vec: Sequence[float], chunks: Sequence[Chunk], top_k: int = 4) -> list[Chunk]:
    """Return the top_k most similar chunks (fewer if the corpus is smaller)."""
    if top_k <= 0:
        return []
    return [chunk for chunk, _ in score_chunks(query_vec, chunks)[:top_k]]
