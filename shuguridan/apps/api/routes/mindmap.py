from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from pydantic import Field

from shuguridan.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from shuguridan.apps.api.response import SuccessEnvelope, success_response
from shuguridan.domain.schemas import CamelModel
from shuguridan.domain.versions import SelectableVersion
from shuguridan.services.mindmap import mindmap_data, mindmap_pairs

router = APIRouter(prefix="/mindmap", tags=["mindmap"], responses=DEFAULT_ERROR_RESPONSES)


class MindmapRequest(CamelModel):
    source_version: SelectableVersion
    target_version: SelectableVersion
    # 1 shows categories only; 2 and above adds the individual changes.
    expand_level: int = Field(default=2, ge=1, le=3)


@router.post("/data", response_model=SuccessEnvelope[dict[str, Any]])
async def get_mindmap(payload: MindmapRequest, request: Request) -> dict:
    data = mindmap_data(payload.source_version, payload.target_version, payload.expand_level)
    return success_response(request=request, data=data)


@router.get("/pairs", response_model=SuccessEnvelope[dict[str, Any]])
async def get_pairs(request: Request) -> dict:
    return success_response(request=request, data=mindmap_pairs())
