from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from shuguridan.domain.models import LlmCacheEntry


async def get_cached_response(session: AsyncSession, prompt_hash: str, *, now: datetime) -> str | None:
    # Expired rows are ignored rather than deleted.
    result = await session.execute(
        select(LlmCacheEntry.response).where(
            LlmCacheEntry.prompt_hash == prompt_hash,
            LlmCacheEntry.expires_at > now,
        )
    )
    return result.scalar_one_or_none()


async def upsert_cached_response(
    session: AsyncSession,
    *,
    prompt_hash: str,
    response: str,
    model: str,
    expires_at: datetime,
) -> None:
    # Concurrent misses for the same prompt both write; the last one wins.
    dialect = session.get_bind().dialect.name
    insert_fn = sqlite.insert if dialect == "sqlite" else postgresql.insert
    stmt = insert_fn(LlmCacheEntry).values(
        id=str(uuid4()),
        prompt_hash=prompt_hash,
        response=response,
        model=model,
        expires_at=expires_at,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[LlmCacheEntry.prompt_hash],
        set_={
            "response": stmt.excluded.response,
            "model": stmt.excluded.model,
            "expires_at": stmt.excluded.expires_at,
        },
    )
    await session.execute(stmt)
