from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shuguridan.core.config import EMBED_DIM, get_settings
from shuguridan.core.errors import RetrievalError
from shuguridan.domain.models import SpecDocument
from shuguridan.providers.embedding.base import EmbeddingProvider


DEFAULT_LIMIT = 10


@dataclass
class RetrievedDocument:
    id: str
    version_id: str
    title: str
    content: str
    metadata: dict[str, Any]
    similarity: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "versionId": self.version_id,
            "title": self.title,
            "content": self.content,
            "metadata": self.metadata,
            "similarity": self.similarity,
        }


def format_context(documents: list[RetrievedDocument]) -> str:
    if not documents:
        return "No relevant documents found."
    blocks = []
    for index, doc in enumerate(documents, start=1):
        header = f"[Document {index}] {doc.title} ({doc.version_id})"
        relevance = f"Relevance: {doc.similarity * 100:.1f}%"
        blocks.append(f"{header}\n{relevance}\n\n{doc.content}")
    return "\n\n---\n\n".join(blocks)


class DocumentRetriever:
    def __init__(self, session: AsyncSession, embedder: EmbeddingProvider) -> None:
        self._session = session
        self._embedder = embedder
        # Concurrent callers share one session; serialize statement execution.
        self._query_lock = asyncio.Lock()

    async def _search(
        self,
        query_embedding: list[float],
        *,
        threshold: float,
        limit: int,
        version: str | None,
    ) -> list[RetrievedDocument]:
        if len(query_embedding) != EMBED_DIM:
            raise RetrievalError("query embedding dimension mismatch")

        # Use cosine distance from pgvector; lower is more similar.
        distance_expr = SpecDocument.embedding.cosine_distance(query_embedding)
        stmt = (
            select(SpecDocument, distance_expr.label("distance"))
            .where(SpecDocument.embedding.is_not(None))
            .where(distance_expr < 1.0 - threshold)
            .order_by(distance_expr.asc(), SpecDocument.id.asc())
            .limit(max(1, int(limit)))
        )
        if version:
            stmt = stmt.where(SpecDocument.version_id == version)

        try:
            async with self._query_lock:
                result = await self._session.execute(stmt)
                rows = result.all()
        except SQLAlchemyError as exc:
            raise RetrievalError("pgvector query failed") from exc

        return [
            RetrievedDocument(
                id=doc.id,
                version_id=doc.version_id,
                title=doc.title,
                content=doc.content,
                metadata=doc.metadata_json or {},
                similarity=max(0.0, min(1.0, 1.0 - float(distance))),
            )
            for doc, distance in rows
        ]

    async def retrieve(
        self,
        query: str,
        *,
        threshold: float | None = None,
        limit: int = DEFAULT_LIMIT,
        version: str | None = None,
    ) -> list[RetrievedDocument]:
        if threshold is None:
            threshold = get_settings().rag_match_threshold
        query_embedding = await self._embedder.embed(query)
        return await self._search(query_embedding, threshold=threshold, limit=limit, version=version)

    async def retrieve_multi_version(
        self,
        query: str,
        versions: list[str],
        *,
        threshold: float | None = None,
        limit: int = DEFAULT_LIMIT,
    ) -> dict[str, list[RetrievedDocument]]:
        results = await asyncio.gather(
            *(self.retrieve(query, threshold=threshold, limit=limit, version=version) for version in versions)
        )
        return dict(zip(versions, results))
