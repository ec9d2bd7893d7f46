from __future__ import annotations

from fastapi import APIRouter, Request

from shuguridan.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from shuguridan.apps.api.response import SuccessEnvelope, success_response
from shuguridan.domain.schemas import CamelModel
from shuguridan.domain.versions import SELECTABLE_VERSIONS, get_version

router = APIRouter(prefix="/versions", tags=["versions"], responses=DEFAULT_ERROR_RESPONSES)


class VersionResponse(CamelModel):
    id: str
    name: str
    year: int
    standard_doc: str
    features: list[str]


def _selectable() -> list[VersionResponse]:
    versions = []
    for version_id in SELECTABLE_VERSIONS:
        version = get_version(version_id)
        if version is None:
            continue
        versions.append(
            VersionResponse(
                id=version.id,
                name=version.name,
                year=version.year,
                standard_doc=version.standard_doc,
                features=list(version.features),
            )
        )
    return versions


@router.get("", response_model=SuccessEnvelope[list[VersionResponse]])
async def list_versions(request: Request) -> dict:
    data = [version.to_wire() for version in _selectable()]
    return success_response(request=request, data=data)
