from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shuguridan.domain.models import DiffResult, GeneratedDoc


async def create_diff_result(
    session: AsyncSession,
    *,
    project_id: str | None,
    source_version: str,
    target_version: str,
    diff_data: dict[str, Any],
) -> DiffResult:
    row = DiffResult(
        project_id=project_id,
        source_version=source_version,
        target_version=target_version,
        diff_data=diff_data,
    )
    session.add(row)
    await session.flush()
    return row


async def create_generated_doc(
    session: AsyncSession,
    *,
    doc_id: str,
    project_id: str | None,
    diff_result_id: str | None,
    doc_type: str,
    source_version: str,
    target_version: str,
    content: str,
    options: dict[str, Any],
    metadata_json: dict[str, Any],
) -> GeneratedDoc:
    doc = GeneratedDoc(
        id=doc_id,
        project_id=project_id,
        diff_result_id=diff_result_id,
        doc_type=doc_type,
        source_version=source_version,
        target_version=target_version,
        content=content,
        format="markdown",
        options=options,
        metadata_json=metadata_json,
    )
    session.add(doc)
    await session.flush()
    return doc


async def get_generated_doc(session: AsyncSession, doc_id: str) -> GeneratedDoc | None:
    result = await session.execute(select(GeneratedDoc).where(GeneratedDoc.id == doc_id))
    return result.scalar_one_or_none()
