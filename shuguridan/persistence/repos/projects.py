from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shuguridan.domain.models import GeneratedDoc, Project


def _scoped(stmt, user_id: str | None):
    # Owner scoping applies only when the caller identity is known.
    if user_id is not None:
        stmt = stmt.where(Project.user_id == user_id)
    return stmt


async def list_projects(session: AsyncSession, *, user_id: str | None) -> list[Project]:
    stmt = _scoped(select(Project), user_id).order_by(Project.updated_at.desc(), Project.id)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_project(session: AsyncSession, project_id: str, *, user_id: str | None) -> Project | None:
    # Return None for owner mismatch to keep 404 semantics.
    stmt = _scoped(select(Project).where(Project.id == project_id), user_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def create_project(
    session: AsyncSession,
    *,
    user_id: str | None,
    name: str,
    description: str | None,
    source_version: str | None,
    target_version: str | None,
    settings: dict[str, Any] | None,
) -> Project:
    project = Project(
        user_id=user_id,
        name=name,
        description=description,
        source_version=source_version,
        target_version=target_version,
        settings=settings or {},
    )
    session.add(project)
    await session.flush()
    # Load server-side timestamps so callers can serialize without lazy loads.
    await session.refresh(project)
    return project


async def update_project(session: AsyncSession, project: Project, changes: dict[str, Any]) -> Project:
    # Only the supplied fields change; updated_at is refreshed by the column default.
    for field, value in changes.items():
        setattr(project, field, value)
    await session.flush()
    await session.refresh(project)
    return project


async def delete_project(session: AsyncSession, project: Project) -> None:
    await session.delete(project)
    await session.flush()


async def list_project_documents(session: AsyncSession, project_id: str) -> list[GeneratedDoc]:
    result = await session.execute(
        select(GeneratedDoc)
        .where(GeneratedDoc.project_id == project_id)
        .order_by(GeneratedDoc.created_at.desc(), GeneratedDoc.id)
    )
    return list(result.scalars().all())
