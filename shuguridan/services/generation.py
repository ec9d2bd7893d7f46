from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from shuguridan.core.config import get_settings
from shuguridan.core.errors import EmbeddingError, RetrievalError
from shuguridan.persistence.repos import generated_docs as generated_docs_repo
from shuguridan.persistence.repos import llm_cache as llm_cache_repo
from shuguridan.providers.llm.base import LLMProvider
from shuguridan.services import diff as diff_service
from shuguridan.services.prompts import (
    ModernizationContext,
    PromptContext,
    build_code_modernization_prompt,
    get_prompt_builder,
    get_system_prompt,
)
from shuguridan.services.rag.retriever import RetrievedDocument, format_context


logger = logging.getLogger(__name__)

DEFAULT_RAG_LIMIT = 5

NO_RETRIEVER_CONTEXT = "No RAG context available."
NO_MATCHES_CONTEXT = "No relevant documents found in knowledge base."
RETRIEVAL_FAILED_CONTEXT = "RAG retrieval failed."
RAG_DISABLED_CONTEXT = "RAG disabled."


class Retriever(Protocol):
    async def retrieve(
        self,
        query: str,
        *,
        threshold: float | None = None,
        limit: int = ...,
        version: str | None = None,
    ) -> list[RetrievedDocument]:
        ...


@dataclass
class GenerationOptions:
    target_level: str = "intermediate"
    output_language: str = "ko"
    output_format: str = "mixed"
    use_rag: bool = True
    rag_limit: int = DEFAULT_RAG_LIMIT

    def to_dict(self) -> dict[str, Any]:
        return {
            "targetLevel": self.target_level,
            "outputLanguage": self.output_language,
            "outputFormat": self.output_format,
            "useRag": self.use_rag,
            "ragLimit": self.rag_limit,
        }


@dataclass
class GenerationRequest:
    source_version: str
    target_version: str
    doc_type: str
    options: GenerationOptions = field(default_factory=GenerationOptions)
    code: str | None = None
    filename: str | None = None
    project_id: str | None = None


@dataclass
class GenerationResult:
    id: str
    source_version: str
    target_version: str
    doc_type: str
    content: str
    rag_sources_used: int
    generation_time_ms: int
    cached: bool
    created_at: datetime
    format: str = "markdown"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sourceVersion": self.source_version,
            "targetVersion": self.target_version,
            "docType": self.doc_type,
            "content": self.content,
            "format": self.format,
            "ragSourcesUsed": self.rag_sources_used,
            "generationTimeMs": self.generation_time_ms,
            "cached": self.cached,
            "createdAt": self.created_at.isoformat(),
        }


def hash_prompt(prompt: str) -> str:
    return hashlib.sha256(prompt.encode("utf-8")).hexdigest()


class DocumentGenerator:
    """Diff analysis + retrieval + prompt + cached LLM call."""

    def __init__(
        self,
        session: AsyncSession,
        llm: LLMProvider,
        retriever: Retriever | None = None,
    ) -> None:
        self._session = session
        self._llm = llm
        self._retriever = retriever
        self._settings = get_settings()

    async def retrieve_context(
        self,
        query: str,
        source_version: str,
        target_version: str,
        limit: int,
    ) -> tuple[str, int]:
        if self._retriever is None:
            return NO_RETRIEVER_CONTEXT, 0

        per_version = math.ceil(limit / 2)
        try:
            source_docs, target_docs = await asyncio.gather(
                self._retriever.retrieve(query, limit=per_version, version=source_version),
                self._retriever.retrieve(query, limit=per_version, version=target_version),
            )
        except (RetrievalError, EmbeddingError) as exc:
            logger.warning("rag_retrieval_failed error=%s", type(exc).__name__)
            return RETRIEVAL_FAILED_CONTEXT, 0

        docs = sorted([*source_docs, *target_docs], key=lambda doc: doc.similarity, reverse=True)[:limit]
        if not docs:
            return NO_MATCHES_CONTEXT, 0
        return format_context(docs), len(docs)

    async def _cached_completion(self, system_prompt: str, user_prompt: str) -> tuple[str, bool]:
        prompt_hash = hash_prompt(f"{system_prompt}\n\n{user_prompt}")
        now = datetime.now(timezone.utc)
        cached = await llm_cache_repo.get_cached_response(self._session, prompt_hash, now=now)
        if cached is not None:
            logger.info("llm_cache_hit hash=%s", prompt_hash[:12])
            return cached, True

        content = await self._llm.generate(user_prompt, system=system_prompt)
        await llm_cache_repo.upsert_cached_response(
            self._session,
            prompt_hash=prompt_hash,
            response=content,
            model=self._llm.model,
            expires_at=now + timedelta(hours=self._settings.llm_cache_ttl_hours),
        )
        return content, False

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        start = time.monotonic()
        options = request.options
        analysis = diff_service.analyze(request.source_version, request.target_version)

        if options.use_rag:
            rag_query = f"{request.source_version} to {request.target_version} migration: {analysis.summary}"
            rag_context, sources_used = await self.retrieve_context(
                rag_query,
                request.source_version,
                request.target_version,
                options.rag_limit,
            )
        else:
            rag_context, sources_used = RAG_DISABLED_CONTEXT, 0

        diff_json = json.dumps(analysis.diff, indent=2, ensure_ascii=False)
        system_prompt = get_system_prompt(request.doc_type)
        if request.code:
            user_prompt = build_code_modernization_prompt(
                ModernizationContext(
                    source_version=request.source_version,
                    target_version=request.target_version,
                    diff_summary=diff_json,
                    rag_context=rag_context,
                    output_language=options.output_language,
                    target_level=options.target_level,
                    old_code=request.code,
                    filename=request.filename,
                )
            )
        else:
            builder = get_prompt_builder(request.doc_type)
            user_prompt = builder(
                PromptContext(
                    source_version=request.source_version,
                    target_version=request.target_version,
                    diff_summary=diff_json,
                    rag_context=rag_context,
                    output_language=options.output_language,
                    target_level=options.target_level,
                )
            )

        content, cached = await self._cached_completion(system_prompt, user_prompt)
        doc_id = str(uuid4())
        elapsed_ms = int((time.monotonic() - start) * 1000)

        # Modernizations are returned directly; only documents are kept for listing and export.
        if not request.code:
            diff_row = await generated_docs_repo.create_diff_result(
                self._session,
                project_id=request.project_id,
                source_version=request.source_version,
                target_version=request.target_version,
                diff_data=analysis.to_dict(),
            )
            await generated_docs_repo.create_generated_doc(
                self._session,
                doc_id=doc_id,
                project_id=request.project_id,
                diff_result_id=diff_row.id,
                doc_type=request.doc_type,
                source_version=request.source_version,
                target_version=request.target_version,
                content=content,
                options=options.to_dict(),
                metadata_json={
                    "ragSourcesUsed": sources_used,
                    "generationTimeMs": elapsed_ms,
                    "cached": cached,
                    "model": self._llm.model,
                },
            )
        await self._session.commit()

        logger.info(
            "document_generated doc_type=%s source=%s target=%s cached=%s rag_sources=%s latency_ms=%s",
            request.doc_type,
            request.source_version,
            request.target_version,
            cached,
            sources_used,
            elapsed_ms,
        )
        return GenerationResult(
            id=doc_id,
            source_version=request.source_version,
            target_version=request.target_version,
            doc_type=request.doc_type,
            content=content,
            rag_sources_used=sources_used,
            generation_time_ms=elapsed_ms,
            cached=cached,
            created_at=datetime.now(timezone.utc),
        )
