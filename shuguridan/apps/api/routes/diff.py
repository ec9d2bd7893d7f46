from __future__ import annotations

import time
from typing import Any, Literal

from fastapi import APIRouter, HTTPException, Request

from shuguridan.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from shuguridan.apps.api.response import SuccessEnvelope, success_response
from shuguridan.domain.schemas import CamelModel
from shuguridan.domain.versions import VERSION_ORDER, CppVersionId, is_upgrade
from shuguridan.services import diff as diff_service

router = APIRouter(prefix="/diff", tags=["diff"], responses=DEFAULT_ERROR_RESPONSES)

DiffCategoryKey = Literal["newFeatures", "behaviorChanges", "deprecated", "removed", "libraryChanges"]


class DiffRequest(CamelModel):
    source_version: CppVersionId
    target_version: CppVersionId
    categories: list[DiffCategoryKey] | None = None


def _require_upgrade(source: str, target: str) -> None:
    if not is_upgrade(source, target):
        raise HTTPException(
            status_code=400,
            detail={
                "code": "INVALID_VERSION_ORDER",
                "message": "Target version must be newer than source version",
            },
        )


@router.get("/pairs", response_model=SuccessEnvelope[list[dict[str, str]]])
async def list_pairs(request: Request) -> dict:
    return success_response(request=request, data=diff_service.available_pairs())


@router.post("", response_model=SuccessEnvelope[dict[str, Any]])
async def analyze_diff(payload: DiffRequest, request: Request) -> dict:
    _require_upgrade(payload.source_version, payload.target_version)
    start = time.monotonic()
    analysis = diff_service.analyze(payload.source_version, payload.target_version, payload.categories)
    data = analysis.to_dict()
    data["meta"] = {"durationMs": int((time.monotonic() - start) * 1000)}
    return success_response(request=request, data=data)


@router.get("/{source}/{target}", response_model=SuccessEnvelope[dict[str, Any]])
async def quick_diff(source: str, target: str, request: Request) -> dict:
    if source not in VERSION_ORDER or target not in VERSION_ORDER:
        raise HTTPException(status_code=400, detail={"code": "INVALID_VERSION", "message": "Invalid version"})
    _require_upgrade(source, target)
    analysis = diff_service.analyze(source, target)
    return success_response(request=request, data=analysis.to_dict())
