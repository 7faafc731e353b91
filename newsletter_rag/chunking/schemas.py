"""
Chunk schema - the atomic unit that gets embedded and cached.

A Chunk carries the newsletter date and the section heading it was found
under, so every retrieval result can be cited back to its newsletter.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

UNKNOWN_DATE = "Unknown"


class Chunk(BaseModel):
    """
    A single embeddable excerpt produced from one newsletter segment.

    `embedding` stays None until the cache-population phase fills it in.
    """

    # Content
    text: str                                # Trimmed excerpt body
    title: str                               # Detected heading, or the newsletter date
    date: str = UNKNOWN_DATE                 # e.g. "March 3, 2021"

    # Vector (same dimensionality for every chunk in one cache file)
    embedding: Optional[list[float]] = None

    @property
    def is_embedded(self) -> bool:
        return bool(self.embedding)

    def with_embedding(self, embedding: list[float]) -> "Chunk":
        """Return a copy carrying the given vector; the original is untouched."""
        return self.model_copy(update={"embedding": list(embedding)})
