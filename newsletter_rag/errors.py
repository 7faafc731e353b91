"""Exception hierarchy shared by every stage of the newsletter RAG pipeline."""
from __future__ import annotations


class NewsletterRAGError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(NewsletterRAGError):
    """A required backend credential or setting is missing."""


class CacheError(NewsletterRAGError):
    """The embedding cache could not be written or holds invalid data."""


class BackendError(NewsletterRAGError):
    """A remote embedding or generation call failed."""

    def __init__(self, backend: str, message: str) -> None:
        super().__init__(f"{backend}: {message}")
        self.backend = backend


class ChunkEmbeddingError(NewsletterRAGError):
    """A single chunk could not be embedded during cache population."""

    def __init__(self, chunk_index: int, cause: Exception) -> None:
        super().__init__(f"chunk {chunk_index} failed to embed: {cause}")
        self.chunk_index = chunk_index
        self.cause = cause


class RequestError(NewsletterRAGError):
    """The caller sent a missing or invalid query."""
