from __future__ import annotations

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shuguridan.domain.models import SpecDocument


async def count_documents(session: AsyncSession, version_id: str | None = None) -> int:
    stmt = select(func.count()).select_from(SpecDocument)
    if version_id:
        stmt = stmt.where(SpecDocument.version_id == version_id)
    result = await session.execute(stmt)
    return int(result.scalar() or 0)


async def count_by_version(session: AsyncSession) -> dict[str, int]:
    result = await session.execute(
        select(SpecDocument.version_id, func.count()).group_by(SpecDocument.version_id)
    )
    return {version_id: int(count) for version_id, count in result.all()}


async def delete_by_version(session: AsyncSession, version_id: str) -> int:
    result = await session.execute(delete(SpecDocument).where(SpecDocument.version_id == version_id))
    return int(result.rowcount or 0)


async def list_source_urls(session: AsyncSession) -> list[str]:
    url_expr = SpecDocument.metadata_json["url"].as_string()
    result = await session.execute(
        select(url_expr).where(url_expr.is_not(None)).distinct().order_by(url_expr)
    )
    return [url for url in result.scalars().all() if url]
