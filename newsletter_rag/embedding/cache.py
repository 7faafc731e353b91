"""
Embedding Cache
----------------
Persists the fully-embedded chunk list as a single JSON file so process
restarts never pay for re-embedding the archive.

Invalidation is all-or-nothing: the cache is either loaded verbatim or
regenerated wholesale.  load() never raises; it reports what it found as
one of three typed results and the caller decides what to do.

File layout (compatible with earlier cache files):
    [{"text": ..., "title": ..., "date": ..., "embedding": [...]}, ...]
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

import orjson
from loguru import logger
from pydantic import ValidationError

from newsletter_rag.chunking.schemas import Chunk
from newsletter_rag.errors import CacheError
from newsletter_rag.utils.helpers import load_json, save_json


# ---------------------------------------------------------------------------
# Load results
# ---------------------------------------------------------------------------

@dataclass
class CacheHit:
    chunks: list[Chunk] = field(default_factory=list)


@dataclass
class CacheMiss:
    path: Path


@dataclass
class CacheCorrupt:
    path: Path
    reason: str


CacheLoadResult = Union[CacheHit, CacheMiss, CacheCorrupt]


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

class EmbeddingCache:
    """Single-file chunk + vector store."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> CacheLoadResult:
        if not self.path.exists():
            logger.info(f"[Cache] No cache at {self.path}")
            return CacheMiss(self.path)

        try:
            raw = load_json(self.path)
        except (OSError, orjson.JSONDecodeError) as exc:
            return self._corrupt(f"unreadable: {exc}")

        if not isinstance(raw, list) or not raw:
            return self._corrupt("expected a non-empty list of chunks")
        if not isinstance(raw[0], dict) or not raw[0].get("embedding"):
            return self._corrupt("first entry has no embedding")

        try:
            chunks = [Chunk.model_validate(item) for item in raw]
        except ValidationError as exc:
            return self._corrupt(f"schema mismatch: {exc.error_count()} error(s)")

        dimensions = len(chunks[0].embedding)
        for i, chunk in enumerate(chunks):
            if not chunk.is_embedded:
                return self._corrupt(f"entry {i} has no embedding")
            if len(chunk.embedding) != dimensions:
                return self._corrupt(
                    f"entry {i} has dimension {len(chunk.embedding)}, expected {dimensions}"
                )

        logger.info(f"[Cache] Loaded {len(chunks)} chunks from {self.path}")
        return CacheHit(chunks)

    def save(self, chunks: list[Chunk]) -> None:
        """Replace the cache file with the given chunks (atomic rename)."""
        missing = [i for i, c in enumerate(chunks) if not c.is_embedded]
        if missing:
            raise CacheError(
                f"Refusing to cache {len(missing)} chunk(s) without embeddings "
                f"(first at index {missing[0]})"
            )

        try:
            save_json([c.model_dump(mode="json") for c in chunks], self.path, indent=False)
        except OSError as exc:
            raise CacheError(f"Could not write cache {self.path}: {exc}") from exc
        logger.info(f"[Cache] Saved {len(chunks)} embeddings -> {self.path}")

    def _corrupt(self, reason: str) -> CacheCorrupt:
        logger.warning(f"[Cache] Cache invalid ({reason}), will regenerate")
        return CacheCorrupt(self.path, reason)
