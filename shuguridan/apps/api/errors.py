from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from shuguridan.apps.api.response import error_response, is_api_request
from shuguridan.core.errors import (
    CompilerError,
    CompilerErrorCode,
    DiffPathNotFoundError,
    DocumentParseError,
    EmbeddingError,
    LLMError,
    ProviderConfigError,
    RetrievalError,
    ShuguridanError,
    UnsupportedFileError,
)


logger = logging.getLogger(__name__)

_DEFAULT_ERROR_CODES: dict[int, str] = {
    400: "BAD_REQUEST",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    413: "PAYLOAD_TOO_LARGE",
    415: "UNSUPPORTED_MEDIA_TYPE",
    422: "VALIDATION_ERROR",
    429: "RATE_LIMITED",
    500: "INTERNAL_ERROR",
    502: "UPSTREAM_ERROR",
    503: "SERVICE_UNCONFIGURED",
    504: "UPSTREAM_TIMEOUT",
}

_COMPILER_STATUS: dict[CompilerErrorCode, int] = {
    CompilerErrorCode.VALIDATION_FAILED: 400,
    CompilerErrorCode.FORBIDDEN_CODE: 400,
    CompilerErrorCode.UNSUPPORTED_STANDARD: 400,
    CompilerErrorCode.RATE_LIMITED: 429,
    CompilerErrorCode.COMPILE_TIMEOUT: 504,
    CompilerErrorCode.EXECUTE_TIMEOUT: 504,
    CompilerErrorCode.API_ERROR: 502,
}


def _default_code(status_code: int) -> str:
    return _DEFAULT_ERROR_CODES.get(status_code, "UNKNOWN_ERROR")


def _split_detail(detail: Any, status_code: int) -> tuple[str, str, dict[str, Any] | None]:
    # Extract code/message/details from HTTPException detail payloads.
    if isinstance(detail, dict):
        code = str(detail.get("code") or _default_code(status_code))
        message = str(detail.get("message") or "Request failed")
        details = {k: v for k, v in detail.items() if k not in {"code", "message"}}
        return code, message, details or None
    if isinstance(detail, str):
        return _default_code(status_code), detail, None
    return _default_code(status_code), "Request failed", None


def _json_error(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    if not is_api_request(request):
        return JSONResponse(content={"detail": message}, status_code=status_code, headers=headers)
    payload = error_response(request=request, code=code, message=message, details=details)
    return JSONResponse(content=payload, status_code=status_code, headers=headers)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    code, message, details = _split_detail(exc.detail, exc.status_code)
    return _json_error(
        request,
        status_code=exc.status_code,
        code=code,
        message=message,
        details=details,
        headers=exc.headers,
    )


async def starlette_http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    # Unknown paths and methods come through Starlette directly.
    code, message, details = _split_detail(exc.detail, exc.status_code)
    return _json_error(
        request,
        status_code=exc.status_code,
        code=code,
        message=message,
        details=details,
        headers=exc.headers,
    )


def _validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    # Validator contexts can hold exception objects; keep only JSON-safe fields.
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", ""), "type": error.get("type", "")}
        for error in exc.errors()
    ]


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return _json_error(
        request,
        status_code=400,
        code="VALIDATION_ERROR",
        message="Validation failed",
        details={"errors": _validation_errors(exc)},
    )


async def provider_config_exception_handler(request: Request, exc: ProviderConfigError) -> JSONResponse:
    logger.warning("provider_unconfigured path=%s error=%s", request.url.path, exc)
    return _json_error(request, status_code=503, code="SERVICE_UNCONFIGURED", message=str(exc))


async def compiler_exception_handler(request: Request, exc: CompilerError) -> JSONResponse:
    status_code = _COMPILER_STATUS.get(exc.code, 500)
    if status_code >= 500:
        logger.warning("compiler_error path=%s code=%s error=%s", request.url.path, exc.code.value, exc)
    headers = {"Retry-After": "60"} if exc.code == CompilerErrorCode.RATE_LIMITED else None
    return _json_error(
        request,
        status_code=status_code,
        code=exc.code.value,
        message=str(exc),
        details=exc.details,
        headers=headers,
    )


async def diff_path_exception_handler(request: Request, exc: DiffPathNotFoundError) -> JSONResponse:
    return _json_error(
        request,
        status_code=404,
        code="NOT_FOUND",
        message=str(exc),
        details={"sourceVersion": exc.source, "targetVersion": exc.target},
    )


async def service_exception_handler(request: Request, exc: ShuguridanError) -> JSONResponse:
    # Upstream provider failures surface as 502; input problems as 400.
    if isinstance(exc, (UnsupportedFileError, DocumentParseError)):
        return _json_error(request, status_code=400, code="BAD_REQUEST", message=str(exc))
    if isinstance(exc, LLMError):
        code = "LLM_ERROR"
    elif isinstance(exc, EmbeddingError):
        code = "EMBEDDING_ERROR"
    elif isinstance(exc, RetrievalError):
        code = "RETRIEVAL_ERROR"
    else:
        code = "UPSTREAM_ERROR"
    logger.warning("service_error path=%s code=%s error=%s", request.url.path, code, type(exc).__name__)
    return _json_error(request, status_code=502, code=code, message=str(exc))


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    # Shield clients from raw database errors.
    logger.error("database_error path=%s error=%s", request.url.path, type(exc).__name__)
    return _json_error(request, status_code=500, code="DB_ERROR", message="Database error")


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Avoid leaking stack traces; return a stable internal error envelope.
    logger.exception("unhandled_error path=%s", request.url.path)
    return _json_error(request, status_code=500, code="INTERNAL_ERROR", message="Internal server error")
