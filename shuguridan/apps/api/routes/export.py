from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from shuguridan.apps.api.deps import get_db
from shuguridan.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from shuguridan.apps.api.response import SuccessEnvelope, success_response
from shuguridan.domain.schemas import CamelModel
from shuguridan.domain.versions import CppVersionId, version_label
from shuguridan.persistence.repos import generated_docs as generated_docs_repo
from shuguridan.services import diff as diff_service
from shuguridan.services.export import (
    EXPORT_FORMATS,
    EXPORT_THEMES,
    DiffToExport,
    DocumentToExport,
    ExportOptions,
    doc_type_label,
    export_diff,
    export_document,
)
from shuguridan.services.export.types import ExportFormat, ExportTheme

router = APIRouter(prefix="/export", tags=["export"], responses=DEFAULT_ERROR_RESPONSES)

# Fields carried into exports for each diff item.
_EXPORT_ITEM_FIELDS = ("title", "description", "category", "impact", "examples")


class ExportOptionsBody(CamelModel):
    format: ExportFormat
    include_metadata: bool = True
    include_table_of_contents: bool = True
    theme: ExportTheme = "light"

    def to_options(self) -> ExportOptions:
        return ExportOptions(
            format=self.format,
            include_metadata=self.include_metadata,
            include_table_of_contents=self.include_table_of_contents,
            theme=self.theme,
        )


class ExportDocumentRequest(ExportOptionsBody):
    document_id: str


class ExportDiffRequest(ExportOptionsBody):
    source_version: CppVersionId
    target_version: CppVersionId


def _document_title(doc_type: str, source: str, target: str) -> str:
    return f"{version_label(source)} to {version_label(target)} {doc_type_label(doc_type)}"


@router.post("/document", response_model=SuccessEnvelope[dict[str, Any]])
async def export_generated_document(
    payload: ExportDocumentRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> dict:
    row = await generated_docs_repo.get_generated_doc(db, payload.document_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Document not found")

    doc = DocumentToExport(
        id=row.id,
        title=_document_title(row.doc_type, row.source_version, row.target_version),
        doc_type=row.doc_type,
        source_version=row.source_version,
        target_version=row.target_version,
        content=row.content,
        created_at=row.created_at.isoformat() if row.created_at else "",
        metadata=row.metadata_json or {},
    )
    result = export_document(doc, payload.to_options())
    return success_response(request=request, data=result.to_dict())


@router.post("/diff", response_model=SuccessEnvelope[dict[str, Any]])
async def export_diff_analysis(payload: ExportDiffRequest, request: Request) -> dict:
    analysis = diff_service.analyze(payload.source_version, payload.target_version)
    categories = {
        key: [{field: item[field] for field in _EXPORT_ITEM_FIELDS if field in item} for item in items]
        for key, items in analysis.diff.items()
    }
    diff = DiffToExport(
        source_version=payload.source_version,
        target_version=payload.target_version,
        summary=analysis.summary,
        total_changes=analysis.total_changes,
        categories=categories,
    )
    result = export_diff(diff, payload.to_options())
    return success_response(request=request, data=result.to_dict())


@router.get("/formats", response_model=SuccessEnvelope[dict[str, Any]])
async def list_formats(request: Request) -> dict:
    return success_response(request=request, data={"formats": EXPORT_FORMATS, "themes": EXPORT_THEMES})
