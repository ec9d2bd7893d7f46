from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from shuguridan.apps.api.deps import get_db, get_llm, get_retriever, get_user_id
from shuguridan.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from shuguridan.apps.api.response import SuccessEnvelope, success_response
from shuguridan.domain.schemas import CamelModel
from shuguridan.domain.versions import SelectableVersion, is_upgrade
from shuguridan.persistence.repos import projects as projects_repo
from shuguridan.providers.llm.base import LLMProvider
from shuguridan.services.generation import (
    DEFAULT_RAG_LIMIT,
    DocumentGenerator,
    GenerationOptions,
    GenerationRequest,
)
from shuguridan.services.prompts import DocType, OutputLanguage, TargetLevel
from shuguridan.services.rag.retriever import DocumentRetriever

router = APIRouter(prefix="/generate", tags=["generate"], responses=DEFAULT_ERROR_RESPONSES)


class GenerateOptionsBody(CamelModel):
    target_level: TargetLevel
    output_language: OutputLanguage
    output_format: Literal["bullet", "table", "prose", "mixed"] = "mixed"
    use_rag: bool = True
    rag_limit: int = Field(default=DEFAULT_RAG_LIMIT, ge=1, le=20)


class GenerateRequestBody(CamelModel):
    source_version: SelectableVersion
    target_version: SelectableVersion
    doc_type: DocType
    options: GenerateOptionsBody
    code: str | None = None
    filename: str | None = None
    project_id: str | None = None


class ModernizeRequestBody(CamelModel):
    source_version: SelectableVersion
    target_version: SelectableVersion
    code: str = Field(min_length=1)
    filename: str | None = None
    output_language: OutputLanguage = "ko"


def _require_upgrade(source: str, target: str) -> None:
    if not is_upgrade(source, target):
        raise HTTPException(
            status_code=400,
            detail={
                "code": "INVALID_VERSION_ORDER",
                "message": "Target version must be newer than source version",
            },
        )


@router.post("", response_model=SuccessEnvelope[dict[str, Any]])
async def generate_document(
    payload: GenerateRequestBody,
    request: Request,
    db: AsyncSession = Depends(get_db),
    llm: LLMProvider = Depends(get_llm),
    retriever: DocumentRetriever | None = Depends(get_retriever),
    user_id: str | None = Depends(get_user_id),
) -> dict:
    _require_upgrade(payload.source_version, payload.target_version)
    if payload.project_id is not None:
        # Documents can only be attached to projects the caller can see.
        project = await projects_repo.get_project(db, payload.project_id, user_id=user_id)
        if project is None:
            raise HTTPException(status_code=404, detail="Project not found")

    options = payload.options
    generator = DocumentGenerator(db, llm, retriever)
    result = await generator.generate(
        GenerationRequest(
            source_version=payload.source_version,
            target_version=payload.target_version,
            doc_type=payload.doc_type,
            options=GenerationOptions(
                target_level=options.target_level,
                output_language=options.output_language,
                output_format=options.output_format,
                use_rag=options.use_rag,
                rag_limit=options.rag_limit,
            ),
            code=payload.code,
            filename=payload.filename,
            project_id=payload.project_id,
        )
    )
    return success_response(request=request, data=result.to_dict())


@router.post("/modernize", response_model=SuccessEnvelope[dict[str, Any]])
async def modernize_code(
    payload: ModernizeRequestBody,
    request: Request,
    db: AsyncSession = Depends(get_db),
    llm: LLMProvider = Depends(get_llm),
    retriever: DocumentRetriever | None = Depends(get_retriever),
) -> dict:
    _require_upgrade(payload.source_version, payload.target_version)
    generator = DocumentGenerator(db, llm, retriever)
    result = await generator.generate(
        GenerationRequest(
            source_version=payload.source_version,
            target_version=payload.target_version,
            doc_type="migration_guide",
            options=GenerationOptions(output_language=payload.output_language),
            code=payload.code,
            filename=payload.filename,
        )
    )
    data = {
        "id": result.id,
        "sourceVersion": result.source_version,
        "targetVersion": result.target_version,
        "modernizedCode": result.content,
        "ragSourcesUsed": result.rag_sources_used,
        "generationTimeMs": result.generation_time_ms,
        "cached": result.cached,
    }
    return success_response(request=request, data=data)
