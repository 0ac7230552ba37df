"""Normalization, truncation and chunking of extracted document text."""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

# ~4 characters per token
CHARS_PER_TOKEN = 4
TRUNCATION_MARKER = "\n\n[... text truncated ...]"

_HORIZONTAL_WHITESPACE = re.compile(r"[^\S\n]+")
_SPACE_AROUND_NEWLINE = re.compile(r" ?\n ?")
_BLANK_LINE_RUNS = re.compile(r"\n{3,}")


def clean(text: str) -> str:
    """Normalize whitespace in extracted text.

    Runs of spaces and tabs become one space, spaces touching a line break are
    dropped and more than one blank line in a row becomes a single blank line,
    so paragraph breaks survive. Applying it twice changes nothing.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _HORIZONTAL_WHITESPACE.sub(" ", text)
    text = _SPACE_AROUND_NEWLINE.sub("\n", text)
    text = _BLANK_LINE_RUNS.sub("\n\n", text)
    return text.strip()


def truncate(text: str, max_tokens: int) -> str:
    """Bound text to roughly ``max_tokens`` tokens, marking the cut."""
    limit = max_tokens * CHARS_PER_TOKEN
    if len(text) <= limit:
        return text

    logger.warning("truncating document text", extra={"length": len(text), "limit": limit})
    return text[:limit] + TRUNCATION_MARKER


def split(text: str, chunk_size: int) -> list[str]:
    """Split text into chunks of about ``chunk_size`` characters.

    Each cut, except at the end of the text, backs up to just after the last
    period or line break at or before the tentative end, when one exists past
    the start of the chunk. Chunks are trimmed and empty ones dropped.
    """
    if chunk_size < 1:
        raise ValueError(f"chunk size must be positive, got {chunk_size}")

    chunks: list[str] = []
    cursor = 0
    while cursor < len(text):
        end = cursor + chunk_size
        if end < len(text):
            boundary = max(text.rfind(".", cursor, end + 1), text.rfind("\n", cursor, end + 1))
            if boundary > cursor:
                end = boundary + 1

        if chunk := text[cursor:end].strip():
            chunks.append(chunk)
        cursor = end

    return chunks
