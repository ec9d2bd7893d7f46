from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from shuguridan.core.errors import RetrievalError
from shuguridan.domain.models import SpecDocument
from shuguridan.providers.embedding.local import LocalEmbeddingProvider
from shuguridan.services.rag.retriever import DocumentRetriever, RetrievedDocument, format_context


class _Result:
    def __init__(self, rows: list) -> None:
        self._rows = rows

    def all(self) -> list:
        return self._rows


class _StubSession:
    def __init__(self, rows: list | None = None, error: Exception | None = None) -> None:
        self._rows = rows or []
        self._error = error
        self.statements: list = []

    async def execute(self, stmt):
        self.statements.append(stmt)
        if self._error is not None:
            raise self._error
        return _Result(self._rows)


def _row(doc_id: str, distance: float) -> tuple[SpecDocument, float]:
    doc = SpecDocument(
        id=doc_id,
        version_id="cpp17",
        title=f"Title {doc_id}",
        content=f"Body {doc_id}",
        metadata_json=None,
    )
    return doc, distance


def test_format_context_blocks() -> None:
    docs = [
        RetrievedDocument("a", "cpp11", "auto", "auto x = 1;", {}, 0.9),
        RetrievedDocument("b", "cpp17", "if constexpr", "if constexpr (B) {}", {}, 0.456),
    ]
    context = format_context(docs)

    first, second = context.split("\n\n---\n\n")
    assert first == "[Document 1] auto (cpp11)\nRelevance: 90.0%\n\nauto x = 1;"
    assert second.startswith("[Document 2] if constexpr (cpp17)\nRelevance: 45.6%")


def test_format_context_without_documents() -> None:
    assert format_context([]) == "No relevant documents found."


@pytest.mark.asyncio
async def test_retrieve_maps_rows_and_clamps_similarity() -> None:
    session = _StubSession([_row("d1", 0.25), _row("d2", -0.1)])
    retriever = DocumentRetriever(session, LocalEmbeddingProvider())

    docs = await retriever.retrieve("fold expressions", threshold=0.5, limit=5, version="cpp17")

    assert [doc.id for doc in docs] == ["d1", "d2"]
    assert docs[0].similarity == pytest.approx(0.75)
    assert docs[1].similarity == 1.0
    assert docs[0].metadata == {}
    assert "version_id = :" in str(session.statements[0])


@pytest.mark.asyncio
async def test_retrieve_without_version_does_not_filter() -> None:
    session = _StubSession([])
    docs = await DocumentRetriever(session, LocalEmbeddingProvider()).retrieve("x", threshold=0.5)

    assert docs == []
    assert "version_id = :" not in str(session.statements[0])


@pytest.mark.asyncio
async def test_retrieve_wraps_database_errors() -> None:
    session = _StubSession(error=OperationalError("SELECT", {}, Exception("connection reset")))
    retriever = DocumentRetriever(session, LocalEmbeddingProvider())

    with pytest.raises(RetrievalError):
        await retriever.retrieve("lambdas", threshold=0.5)


@pytest.mark.asyncio
async def test_retrieve_rejects_mismatched_embedding_dimensions() -> None:
    retriever = DocumentRetriever(_StubSession(), LocalEmbeddingProvider(dimensions=8))
    with pytest.raises(RetrievalError):
        await retriever.retrieve("lambdas", threshold=0.5)


@pytest.mark.asyncio
async def test_retrieve_multi_version_keys_results_by_version() -> None:
    session = _StubSession([_row("d1", 0.2)])
    results = await DocumentRetriever(session, LocalEmbeddingProvider()).retrieve_multi_version(
        "ranges", ["cpp17", "cpp20"], threshold=0.5, limit=3
    )

    assert list(results) == ["cpp17", "cpp20"]
    assert len(session.statements) == 2
