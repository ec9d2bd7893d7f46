from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shuguridan.core.config import get_settings
from shuguridan.core.errors import ProviderConfigError
from shuguridan.domain.models import SpecDocument
from shuguridan.ingestion.chunking import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_OVERLAP_TOKENS,
    chunk_text,
    estimate_token_count,
)
from shuguridan.persistence.repos import spec_documents as spec_documents_repo
from shuguridan.providers.embedding.base import EmbeddingProvider


logger = logging.getLogger(__name__)


@dataclass
class IngestDocumentInput:
    version_id: str
    title: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "versionId": self.version_id,
            "title": self.title,
            "metadata": self.metadata,
        }


@dataclass
class IngestResult:
    document_id: str
    chunks_created: int
    total_tokens: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "documentId": self.document_id,
            "chunksCreated": self.chunks_created,
            "totalTokens": self.total_tokens,
        }


@dataclass
class BatchIngestResult:
    successful: list[IngestResult] = field(default_factory=list)
    failed: list[tuple[IngestDocumentInput, str]] = field(default_factory=list)


class DocumentProcessor:
    """Chunk, embed and store corpus documents for one version."""

    def __init__(
        self,
        session: AsyncSession,
        embedder: EmbeddingProvider | None,
        *,
        concurrency: int | None = None,
    ) -> None:
        self._session = session
        self._embedder = embedder
        self._concurrency = concurrency or get_settings().ingest_batch_concurrency
        # One AsyncSession cannot run statements concurrently.
        self._write_lock = asyncio.Lock()

    def _require_embedder(self) -> EmbeddingProvider:
        # Counting and deleting work without embeddings; ingestion does not.
        if self._embedder is None:
            raise ProviderConfigError("No embedding provider configured: set OPENAI_API_KEY or EMBEDDING_PROVIDER.")
        return self._embedder

    async def _build_rows(self, doc: IngestDocumentInput) -> tuple[list[SpecDocument], int]:
        embedder = self._require_embedder()
        token_count = estimate_token_count(doc.content)
        if token_count <= DEFAULT_MAX_TOKENS:
            embedding = await embedder.embed(doc.content)
            row = SpecDocument(
                id=str(uuid4()),
                version_id=doc.version_id,
                title=doc.title,
                content=doc.content,
                embedding=embedding,
                metadata_json={**doc.metadata, "chunkIndex": 0, "totalChunks": 1},
            )
            return [row], token_count

        chunks = chunk_text(doc.content, max_tokens=DEFAULT_MAX_TOKENS, overlap_tokens=DEFAULT_OVERLAP_TOKENS)
        total = len(chunks)
        embeddings = await embedder.embed_batch(chunks)
        rows = [
            SpecDocument(
                id=str(uuid4()),
                version_id=doc.version_id,
                title=f"{doc.title} (Part {index + 1}/{total})",
                content=chunk,
                embedding=embeddings[index],
                metadata_json={
                    **doc.metadata,
                    "originalTitle": doc.title,
                    "chunkIndex": index,
                    "totalChunks": total,
                },
            )
            for index, chunk in enumerate(chunks)
        ]
        return rows, token_count

    async def _store(self, rows: list[SpecDocument]) -> None:
        async with self._write_lock:
            self._session.add_all(rows)
            try:
                await self._session.commit()
            except SQLAlchemyError:
                await self._session.rollback()
                raise

    async def ingest_document(self, doc: IngestDocumentInput) -> IngestResult:
        rows, token_count = await self._build_rows(doc)
        await self._store(rows)
        logger.info(
            "spec_document_ingested version=%s chunks=%s tokens=%s",
            doc.version_id,
            len(rows),
            token_count,
        )
        return IngestResult(document_id=rows[0].id, chunks_created=len(rows), total_tokens=token_count)

    async def ingest_batch(self, docs: list[IngestDocumentInput]) -> BatchIngestResult:
        semaphore = asyncio.Semaphore(self._concurrency)

        async def _run(doc: IngestDocumentInput) -> IngestResult:
            async with semaphore:
                return await self.ingest_document(doc)

        outcomes = await asyncio.gather(*(_run(doc) for doc in docs), return_exceptions=True)

        result = BatchIngestResult()
        for doc, outcome in zip(docs, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                logger.warning("spec_document_ingest_failed title=%s error=%s", doc.title, type(outcome).__name__)
                result.failed.append((doc, str(outcome) or type(outcome).__name__))
            else:
                result.successful.append(outcome)
        return result

    async def delete_by_version(self, version_id: str) -> int:
        deleted = await spec_documents_repo.delete_by_version(self._session, version_id)
        await self._session.commit()
        logger.info("spec_documents_deleted version=%s count=%s", version_id, deleted)
        return deleted

    async def count_documents(self, version_id: str | None = None) -> int:
        return await spec_documents_repo.count_documents(self._session, version_id)

    async def list_source_urls(self) -> list[str]:
        return await spec_documents_repo.list_source_urls(self._session)
