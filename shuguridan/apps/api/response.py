from __future__ import annotations

from typing import Any, Generic, TypeVar
from uuid import uuid4

from fastapi import Request
from pydantic import BaseModel, Field


API_VERSION = "v1"
API_PREFIX = "/api"

T = TypeVar("T")


def get_request_id(request: Request) -> str:
    # The request middleware assigns an id; handlers that run outside it mint one.
    request_id = getattr(request.state, "request_id", None) or request.headers.get("X-Request-Id")
    if not request_id:
        request_id = str(uuid4())
    request.state.request_id = request_id
    return request_id


class ResponseMeta(BaseModel):
    request_id: str
    api_version: str = Field(default=API_VERSION)

    @classmethod
    def for_request(cls, request: Request) -> dict[str, Any]:
        return cls(request_id=get_request_id(request)).model_dump()


class ErrorDetail(BaseModel):
    code: str
    message: str
    details: dict[str, Any] | None = None


class SuccessEnvelope(BaseModel, Generic[T]):
    data: T
    meta: ResponseMeta


class ErrorEnvelope(BaseModel):
    error: ErrorDetail
    meta: ResponseMeta


def is_api_request(request: Request) -> bool:
    # Only /api routes carry the envelope; the root banner stays bare.
    path = request.url.path
    return path == API_PREFIX or path.startswith(f"{API_PREFIX}/")


def _to_wire(data: Any) -> Any:
    # Response models serialize with their camelCase aliases.
    if isinstance(data, BaseModel):
        return data.model_dump(by_alias=True, mode="json")
    if isinstance(data, list):
        return [_to_wire(item) for item in data]
    return data


def success_response(*, request: Request, data: Any) -> Any:
    data = _to_wire(data)
    if not is_api_request(request):
        return data
    return {"data": data, "meta": ResponseMeta.for_request(request)}


def error_response(
    *,
    request: Request,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    error = ErrorDetail(code=code, message=message, details=details or None)
    return {"error": error.model_dump(exclude_none=True), "meta": ResponseMeta.for_request(request)}
