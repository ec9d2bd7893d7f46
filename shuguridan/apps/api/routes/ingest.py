from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import Field

from shuguridan.apps.api.deps import get_processor
from shuguridan.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from shuguridan.apps.api.response import SuccessEnvelope, success_response
from shuguridan.domain.schemas import CamelModel
from shuguridan.domain.versions import VERSION_ORDER, CppVersionId
from shuguridan.services.rag.processor import DocumentProcessor, IngestDocumentInput

router = APIRouter(prefix="/ingest", tags=["ingest"], responses=DEFAULT_ERROR_RESPONSES)


class IngestMetadata(CamelModel):
    category: Literal["language", "library", "compiler"] | None = None
    section: str | None = None
    feature: str | None = None
    url: str | None = None


class IngestDocumentBody(CamelModel):
    version_id: CppVersionId
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)
    metadata: IngestMetadata | None = None

    def to_input(self) -> IngestDocumentInput:
        metadata = self.metadata.model_dump(exclude_none=True) if self.metadata else {}
        return IngestDocumentInput(
            version_id=self.version_id,
            title=self.title,
            content=self.content,
            metadata=metadata,
        )


class IngestBatchBody(CamelModel):
    documents: list[IngestDocumentBody] = Field(min_length=1, max_length=100)


@router.post("", response_model=SuccessEnvelope[dict[str, Any]])
async def ingest_document(
    payload: IngestDocumentBody,
    request: Request,
    processor: DocumentProcessor = Depends(get_processor),
) -> dict:
    result = await processor.ingest_document(payload.to_input())
    return success_response(request=request, data=result.to_dict())


@router.post("/batch", response_model=SuccessEnvelope[dict[str, Any]])
async def ingest_batch(
    payload: IngestBatchBody,
    request: Request,
    processor: DocumentProcessor = Depends(get_processor),
) -> dict:
    docs = [doc.to_input() for doc in payload.documents]
    result = await processor.ingest_batch(docs)
    data = {
        "totalProcessed": len(docs),
        "successful": len(result.successful),
        "failed": len(result.failed),
        "results": {
            "successful": [item.to_dict() for item in result.successful],
            "failed": [{"input": doc.to_dict(), "error": error} for doc, error in result.failed],
        },
    }
    return success_response(request=request, data=data)


@router.get("/stats", response_model=SuccessEnvelope[dict[str, Any]])
async def ingest_stats(
    request: Request,
    version_id: CppVersionId | None = Query(default=None, alias="versionId"),
    processor: DocumentProcessor = Depends(get_processor),
) -> dict:
    count = await processor.count_documents(version_id)
    return success_response(request=request, data={"versionId": version_id or "all", "documentCount": count})


@router.get("/urls", response_model=SuccessEnvelope[dict[str, Any]])
async def ingest_urls(
    request: Request,
    processor: DocumentProcessor = Depends(get_processor),
) -> dict:
    urls = await processor.list_source_urls()
    return success_response(request=request, data={"urls": urls, "count": len(urls)})


@router.delete("/{version_id}", response_model=SuccessEnvelope[dict[str, Any]])
async def delete_version_documents(
    version_id: str,
    request: Request,
    processor: DocumentProcessor = Depends(get_processor),
) -> dict:
    if version_id not in VERSION_ORDER:
        raise HTTPException(
            status_code=400,
            detail={"code": "INVALID_VERSION", "message": f"Invalid version: {version_id}"},
        )
    deleted = await processor.delete_by_version(version_id)
    return success_response(request=request, data={"versionId": version_id, "deletedCount": deleted})
