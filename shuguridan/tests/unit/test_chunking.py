from __future__ import annotations

from shuguridan.ingestion.chunking import (
    CHARS_PER_TOKEN,
    chunk_by_section,
    chunk_text,
    estimate_token_count,
)


def test_estimate_token_count_rounds_up() -> None:
    assert estimate_token_count("") == 0
    assert estimate_token_count("abcd") == 1
    assert estimate_token_count("abcde") == 2


def test_short_text_is_single_chunk() -> None:
    text = "constexpr functions may contain loops in C++14."
    assert chunk_text(text) == [text]


def test_long_text_splits_with_bounded_chunks() -> None:
    paragraph = "Generic lambdas accept auto parameters. " * 20
    text = "\n\n".join([paragraph] * 10)
    chunks = chunk_text(text, max_tokens=100, overlap_tokens=10)

    assert len(chunks) > 1
    assert all(len(chunk) <= 100 * CHARS_PER_TOKEN for chunk in chunks)
    # Every sentence survives chunking somewhere.
    assert "Generic lambdas accept auto parameters." in chunks[-1]


def test_chunks_overlap() -> None:
    words = " ".join(f"word{i}" for i in range(400))
    chunks = chunk_text(words, max_tokens=50, overlap_tokens=10)

    assert len(chunks) > 2
    first_tail = chunks[0].split()[-1]
    assert first_tail in chunks[1]


def test_unbroken_text_still_terminates() -> None:
    text = "x" * 5000
    chunks = chunk_text(text, max_tokens=100, overlap_tokens=99)

    assert chunks[0] == "x" * 400
    assert "".join(chunks).count("x") >= 5000


def test_chunk_by_section_keeps_headings() -> None:
    text = "# Title\nintro\n## auto\nbody one\n### nested\nbody two\n## lambdas\nbody three"
    sections = chunk_by_section(text)

    assert sections[0] == "# Title\nintro"
    assert sections[1].startswith("## auto")
    assert sections[-1] == "## lambdas\nbody three"
