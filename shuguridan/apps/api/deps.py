from __future__ import annotations

import asyncio
from typing import Any, AsyncGenerator, Callable

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from shuguridan.core.config import Settings, get_settings
from shuguridan.persistence.db import get_session
from shuguridan.providers.compiler.base import CompilerProvider
from shuguridan.providers.compiler.factory import get_compiler_provider
from shuguridan.providers.embedding.base import EmbeddingProvider
from shuguridan.providers.embedding.factory import get_embedding_provider
from shuguridan.providers.llm.base import LLMProvider
from shuguridan.providers.llm.factory import get_llm_provider
from shuguridan.services.rag.processor import DocumentProcessor
from shuguridan.services.rag.retriever import DocumentRetriever
from shuguridan.services.upload.jobs import JobManager, get_job_manager


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    # One AsyncSession per request; context manager ensures close on success/error.
    async with get_session() as session:
        yield session


def get_user_id(x_user_id: str | None = Header(default=None, alias="X-User-Id")) -> str | None:
    # Identity is asserted by the upstream gateway; blank headers mean anonymous.
    if x_user_id is None:
        return None
    value = x_user_id.strip()
    return value or None


_providers: dict[str, tuple[Settings, Any]] = {}
_providers_loop: asyncio.AbstractEventLoop | None = None


async def _close_provider(provider: Any) -> None:
    close = getattr(provider, "aclose", None)
    if close is not None:
        await close()


async def _cached_provider(kind: str, build: Callable[[], Any]) -> Any:
    # One provider (and one HTTP connection pool) per kind per process, rebuilt when settings reload.
    global _providers_loop
    current_loop = asyncio.get_running_loop()
    if _providers_loop is not current_loop:
        # Clients bound to a previous event loop cannot be reused or closed from this one.
        _providers.clear()
        _providers_loop = current_loop
    settings = get_settings()
    cached = _providers.get(kind)
    if cached is not None and cached[0] is settings:
        return cached[1]
    provider = build()
    _providers[kind] = (settings, provider)
    if cached is not None:
        await _close_provider(cached[1])
    return provider


async def close_providers() -> None:
    """Close cached provider clients; called on application shutdown."""
    cached = list(_providers.values())
    _providers.clear()
    for _settings, provider in cached:
        await _close_provider(provider)


def reset_provider_cache() -> None:
    # Drop cached providers for deterministic test setup.
    global _providers_loop
    _providers.clear()
    _providers_loop = None


async def get_llm() -> LLMProvider:
    # Raises ProviderConfigError, mapped to 503 before any work starts.
    return await _cached_provider("llm", get_llm_provider)


async def get_compiler() -> CompilerProvider:
    return await _cached_provider("compiler", get_compiler_provider)


async def get_embedder() -> EmbeddingProvider | None:
    return await _cached_provider("embedding", get_embedding_provider)


def get_retriever(
    db: AsyncSession = Depends(get_db),
    embedder: EmbeddingProvider | None = Depends(get_embedder),
) -> DocumentRetriever | None:
    # Without embeddings retrieval is skipped rather than failing the request.
    if embedder is None:
        return None
    return DocumentRetriever(db, embedder)


def get_processor(
    db: AsyncSession = Depends(get_db),
    embedder: EmbeddingProvider | None = Depends(get_embedder),
) -> DocumentProcessor:
    # Ingestion raises ProviderConfigError later when no embedder is configured.
    return DocumentProcessor(db, embedder)


def get_jobs() -> JobManager:
    return get_job_manager()
