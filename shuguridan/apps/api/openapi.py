from __future__ import annotations

from typing import Any

from shuguridan.apps.api.response import API_VERSION, ErrorEnvelope


def _error_example(*, code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    # Build a consistent error envelope example for OpenAPI docs.
    payload: dict[str, Any] = {
        "error": {"code": code, "message": message},
        "meta": {"request_id": "req_example", "api_version": API_VERSION},
    }
    if details:
        payload["error"]["details"] = details
    return payload


def _entry(description: str, *, code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    return {
        "model": ErrorEnvelope,
        "description": description,
        "content": {
            "application/json": {
                "example": _error_example(code=code, message=message, details=details),
            }
        },
    }


DEFAULT_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: _entry(
        "Validation error",
        code="VALIDATION_ERROR",
        message="Validation failed",
        details={"errors": [{"loc": ["body", "sourceVersion"], "msg": "Field required", "type": "missing"}]},
    ),
    404: _entry("Not found", code="NOT_FOUND", message="Resource not found"),
    500: _entry("Internal server error", code="INTERNAL_ERROR", message="Internal server error"),
    503: _entry(
        "Provider not configured",
        code="SERVICE_UNCONFIGURED",
        message="LLM not configured: set ANTHROPIC_API_KEY or OPENAI_API_KEY.",
    ),
}

COMPILER_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    **DEFAULT_ERROR_RESPONSES,
    429: _entry(
        "Rate limited",
        code="RATE_LIMITED",
        message="Rate limit exceeded. Please try again later.",
        details={"limit": 10, "windowS": 60, "retryAfterMs": 42000},
    ),
    502: _entry("Compiler API error", code="API_ERROR", message="Wandbox API error"),
    504: _entry("Compiler timeout", code="COMPILE_TIMEOUT", message="Compilation timed out"),
}
