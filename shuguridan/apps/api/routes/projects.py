from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from shuguridan.apps.api.deps import get_db, get_user_id
from shuguridan.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from shuguridan.apps.api.response import SuccessEnvelope, success_response
from shuguridan.domain.models import GeneratedDoc, Project
from shuguridan.domain.schemas import CamelModel
from shuguridan.domain.versions import CppVersionId
from shuguridan.persistence.repos import projects as projects_repo

router = APIRouter(prefix="/projects", tags=["projects"], responses=DEFAULT_ERROR_RESPONSES)


class ProjectResponse(CamelModel):
    id: str
    name: str
    description: str | None
    source_version: str | None
    target_version: str | None
    settings: dict[str, Any]
    created_at: str
    updated_at: str


class ProjectDocumentResponse(CamelModel):
    id: str
    project_id: str | None
    doc_type: str
    source_version: str
    target_version: str
    content: str
    format: str
    options: dict[str, Any]
    metadata: dict[str, Any]
    created_at: str


class ProjectCreateRequest(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    source_version: CppVersionId
    target_version: CppVersionId
    settings: dict[str, Any] | None = None


class ProjectUpdateRequest(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    source_version: CppVersionId | None = None
    target_version: CppVersionId | None = None
    settings: dict[str, Any] | None = None

    # Reject unknown fields so ownership cannot be changed through the payload.
    model_config = ConfigDict(extra="forbid")


def _iso(value: datetime | None) -> str:
    return value.isoformat() if value is not None else ""


def _to_response(project: Project) -> ProjectResponse:
    return ProjectResponse(
        id=project.id,
        name=project.name,
        description=project.description,
        source_version=project.source_version,
        target_version=project.target_version,
        settings=project.settings or {},
        created_at=_iso(project.created_at),
        updated_at=_iso(project.updated_at),
    )


def _document_response(doc: GeneratedDoc) -> ProjectDocumentResponse:
    return ProjectDocumentResponse(
        id=doc.id,
        project_id=doc.project_id,
        doc_type=doc.doc_type,
        source_version=doc.source_version,
        target_version=doc.target_version,
        content=doc.content,
        format=doc.format,
        options=doc.options or {},
        metadata=doc.metadata_json or {},
        created_at=_iso(doc.created_at),
    )


async def _get_or_404(db: AsyncSession, project_id: str, user_id: str | None) -> Project:
    project = await projects_repo.get_project(db, project_id, user_id=user_id)
    if project is None:
        # Use 404 for other owners' projects to avoid leaking existence.
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.get("", response_model=SuccessEnvelope[list[ProjectResponse]])
async def list_projects(
    request: Request,
    db: AsyncSession = Depends(get_db),
    user_id: str | None = Depends(get_user_id),
) -> dict:
    projects = await projects_repo.list_projects(db, user_id=user_id)
    return success_response(request=request, data=[_to_response(project).to_wire() for project in projects])


@router.post("", status_code=201, response_model=SuccessEnvelope[ProjectResponse])
async def create_project(
    payload: ProjectCreateRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user_id: str | None = Depends(get_user_id),
) -> dict:
    project = await projects_repo.create_project(
        db,
        user_id=user_id,
        name=payload.name,
        description=payload.description,
        source_version=payload.source_version,
        target_version=payload.target_version,
        settings=payload.settings,
    )
    await db.commit()
    return success_response(request=request, data=_to_response(project))


@router.get("/{project_id}", response_model=SuccessEnvelope[ProjectResponse])
async def get_project(
    project_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user_id: str | None = Depends(get_user_id),
) -> dict:
    project = await _get_or_404(db, project_id, user_id)
    return success_response(request=request, data=_to_response(project))


@router.put("/{project_id}", response_model=SuccessEnvelope[ProjectResponse])
async def update_project(
    project_id: str,
    payload: ProjectUpdateRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user_id: str | None = Depends(get_user_id),
) -> dict:
    project = await _get_or_404(db, project_id, user_id)
    # Partial update: only fields present in the body are written.
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("name", "") is None:
        # name is NOT NULL; an explicit null leaves it unchanged.
        changes.pop("name")
    project = await projects_repo.update_project(db, project, changes)
    await db.commit()
    return success_response(request=request, data=_to_response(project))


@router.delete("/{project_id}", response_model=SuccessEnvelope[dict[str, Any]])
async def delete_project(
    project_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user_id: str | None = Depends(get_user_id),
) -> dict:
    project = await _get_or_404(db, project_id, user_id)
    await projects_repo.delete_project(db, project)
    await db.commit()
    return success_response(request=request, data={"id": project_id, "deleted": True})


@router.get("/{project_id}/documents", response_model=SuccessEnvelope[list[ProjectDocumentResponse]])
async def list_project_documents(
    project_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user_id: str | None = Depends(get_user_id),
) -> dict:
    await _get_or_404(db, project_id, user_id)
    docs = await projects_repo.list_project_documents(db, project_id)
    return success_response(request=request, data=[_document_response(doc).to_wire() for doc in docs])
