"""
Newsletter Chunker
-------------------
Turns the raw newsletter archive (one big text blob) into titled, dated
excerpts that are small enough for a focused embedding and large enough
to carry context.

Pipeline:
  1. Split the archive into newsletters at every "Month DD, YYYY" date.
  2. Split each newsletter into paragraphs on blank lines.
  3. Walk paragraphs greedily, tracking the most recent heading as the
     chunk title and flushing the buffer when it grows past a size cap
     or when a new heading starts a new section.

The thresholds below decide chunk boundaries, and chunk boundaries decide
what ends up in the embedding cache.  Changing any of them invalidates
every cached vector, so keep them stable.
"""
from __future__ import annotations

import re

from loguru import logger

from newsletter_rag.chunking.schemas import UNKNOWN_DATE, Chunk


# ── Constants ─────────────────────────────────────────────────────────────────

MIN_SEGMENT_CHARS = 200      # Newsletter segments at or below this are noise
MIN_PARAGRAPH_CHARS = 50     # Body paragraphs at or below this are dropped
MAX_HEADING_CHARS = 80       # Headings are strictly shorter than this
MIN_HEADING_CHARS = 5        # ...and strictly longer than this
HEADING_FLUSH_CHARS = 200    # Buffer must exceed this to flush on a new heading
MAX_BUFFER_CHARS = 800       # Flush once the buffer exceeds this
MIN_TAIL_CHARS = 100         # Leftover buffer must exceed this to be kept

SENTENCE_TERMINALS = (".", "!", "?")

_MONTHS = (
    "January|February|March|April|May|June|July|"
    "August|September|October|November|December"
)
DATE_PATTERN = re.compile(rf"(?:{_MONTHS})\s+\d{{1,2}},\s+\d{{4}}", re.IGNORECASE)
_SEGMENT_SPLIT = re.compile(rf"(?=(?:{_MONTHS})\s+\d{{1,2}},\s+\d{{4}})", re.IGNORECASE)
_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")


def split_newsletters(content: str) -> list[str]:
    """Split the archive at every long-form date, dropping short segments."""
    return [
        segment
        for segment in _SEGMENT_SPLIT.split(content)
        if len(segment.strip()) > MIN_SEGMENT_CHARS
    ]


def extract_date(segment: str) -> str:
    match = DATE_PATTERN.search(segment)
    return match.group(0) if match else UNKNOWN_DATE


def is_heading(paragraph: str) -> bool:
    """Short, unpunctuated lines are treated as section headings."""
    return (
        MIN_HEADING_CHARS < len(paragraph) < MAX_HEADING_CHARS
        and not paragraph.endswith(SENTENCE_TERMINALS)
    )


# ── Main Chunker ──────────────────────────────────────────────────────────────

class NewsletterChunker:
    """
    Greedy, heading-aware chunker for the newsletter archive.

    Usage:
        chunker = NewsletterChunker()
        chunks = chunker.chunk_corpus(Path("data/newsletters.txt").read_text())
    """

    def chunk_corpus(self, content: str) -> list[Chunk]:
        """
        Chunk the full archive.

        Args:
            content: Every newsletter concatenated into one string.

        Returns:
            Chunks in corpus order, without embeddings.
        """
        segments = split_newsletters(content)
        chunks: list[Chunk] = []
        for segment in segments:
            chunks.extend(self.chunk_newsletter(segment))

        logger.info(
            f"[Chunker] {len(segments)} newsletters -> {len(chunks)} chunks"
        )
        return chunks

    def chunk_newsletter(self, segment: str) -> list[Chunk]:
        """Chunk one newsletter segment."""
        date = extract_date(segment)
        paragraphs = [p.strip() for p in _PARAGRAPH_SPLIT.split(segment)]

        chunks: list[Chunk] = []
        buffer = ""
        current_title = date

        for para in paragraphs:
            if is_heading(para):
                if len(buffer) > HEADING_FLUSH_CHARS:
                    chunks.append(Chunk(text=buffer.strip(), title=current_title, date=date))
                    buffer = ""
                current_title = para
                continue

            if len(para) <= MIN_PARAGRAPH_CHARS:
                continue

            buffer += para + "\n\n"

            if len(buffer) > MAX_BUFFER_CHARS:
                chunks.append(Chunk(text=buffer.strip(), title=current_title, date=date))
                buffer = ""

        if len(buffer) > MIN_TAIL_CHARS:
            chunks.append(Chunk(text=buffer.strip(), title=current_title, date=date))

        logger.debug(f"[Chunker] {date} | {len(paragraphs)} paragraphs -> {len(chunks)} chunk(s)")
        return chunks
