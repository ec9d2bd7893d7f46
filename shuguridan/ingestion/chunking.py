from __future__ import annotations

import math
import re


# Chunking constants keep ingestion deterministic across runs.
DEFAULT_MAX_TOKENS = 500
DEFAULT_OVERLAP_TOKENS = 50
# Rough estimate: one token is about four characters of English text.
CHARS_PER_TOKEN = 4
# Boundary search only looks this far back from the hard cut.
BOUNDARY_WINDOW_CHARS = 200

_SENTENCE_ENDS = (". ", ".\n", "? ", "! ")
_SECTION_RE = re.compile(r"(?=^#{2,}\s)", re.MULTILINE)


def estimate_token_count(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def _find_boundary(text: str, start: int, end: int) -> int:
    # Prefer paragraph, then sentence, then word boundaries inside the search window.
    search_start = max(end - BOUNDARY_WINDOW_CHARS, start)
    window = text[search_start:end]

    paragraph = window.rfind("\n\n")
    if paragraph != -1:
        return search_start + paragraph + 2

    sentence = max(window.rfind(marker) for marker in _SENTENCE_ENDS)
    if sentence != -1:
        return search_start + sentence + 2

    word = window.rfind(" ")
    if word != -1:
        return search_start + word + 1
    return end


def chunk_text(
    text: str,
    *,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    overlap_tokens: int = DEFAULT_OVERLAP_TOKENS,
) -> list[str]:
    """Split text into overlapping chunks of at most ``max_tokens`` estimated tokens.

    Text that already fits is returned unchanged as a single chunk. Longer text is
    cut at the last paragraph, sentence or word boundary before the size limit and
    consecutive chunks share ``overlap_tokens`` worth of characters.
    """
    max_chars = max_tokens * CHARS_PER_TOKEN
    overlap_chars = overlap_tokens * CHARS_PER_TOKEN
    if len(text) <= max_chars:
        return [text]

    chunks: list[str] = []
    length = len(text)
    start = 0
    while start < length:
        end = start + max_chars
        if end < length:
            end = _find_boundary(text, start, end)
        else:
            end = length
        chunk = text[start:end].strip()
        if chunk:
            chunks.append(chunk)
        if end >= length:
            break
        # Always advance, even when the overlap is larger than the chunk just emitted.
        start = max(end - overlap_chars, start + 1)
    return chunks


def chunk_by_section(text: str) -> list[str]:
    # Split on level-2+ markdown headings, keeping each heading with its body.
    sections = _SECTION_RE.split(text)
    return [section.strip() for section in sections if section.strip()]
