from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import Field

from shuguridan.apps.api.deps import get_compiler
from shuguridan.apps.api.openapi import COMPILER_ERROR_RESPONSES
from shuguridan.apps.api.rate_limit import enforce_compile_rate_limit
from shuguridan.apps.api.response import SuccessEnvelope, success_response
from shuguridan.core.errors import CompilerError, CompilerErrorCode
from shuguridan.domain.schemas import CamelModel
from shuguridan.domain.versions import SelectableVersion
from shuguridan.providers.compiler.base import CompilerProvider
from shuguridan.providers.compiler.types import (
    CPP_STANDARD_FLAGS,
    CompileRequest,
    CompileResult,
    CompilerMessage,
    ExecuteRequest,
)
from shuguridan.services.code_validation import prepare_code, validate_stdin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/compile", tags=["compile"], responses=COMPILER_ERROR_RESPONSES)

COMPILER_LABEL = "g++ (GCC)"


class CompileBody(CamelModel):
    code: str = Field(min_length=1)
    cpp_standard: SelectableVersion
    filename: str | None = None
    compiler_flags: list[str] | None = None
    timeout: int = Field(default=30000, ge=1000, le=60000)


class ExecuteBody(CompileBody):
    stdin: str = ""
    run_timeout: int = Field(default=10000, ge=1000, le=30000)


def _require_standard(compiler: CompilerProvider, cpp_standard: str) -> None:
    if cpp_standard not in compiler.supported_standards:
        raise CompilerError(
            f"{compiler.name} does not support {cpp_standard}",
            CompilerErrorCode.UNSUPPORTED_STANDARD,
            {"supportedStandards": list(compiler.supported_standards)},
        )


def _with_validation_warnings(result: CompileResult, warnings: list[str]) -> dict[str, Any]:
    # Static-analysis hints come first, compiler diagnostics after.
    merged = [CompilerMessage(type="warning", message=warning) for warning in warnings] + list(result.warnings)
    payload = result.model_copy(update={"warnings": merged}).to_wire()
    payload.pop("runResult", None)
    return payload


def _metadata(cpp_standard: str) -> dict[str, Any]:
    return {
        "compiler": COMPILER_LABEL,
        "standardUsed": CPP_STANDARD_FLAGS.get(cpp_standard, "-std=c++17"),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.post(
    "",
    response_model=SuccessEnvelope[dict[str, Any]],
    dependencies=[Depends(enforce_compile_rate_limit)],
)
async def compile_code(
    payload: CompileBody,
    request: Request,
    compiler: CompilerProvider = Depends(get_compiler),
) -> dict:
    code, warnings = prepare_code(payload.code)
    _require_standard(compiler, payload.cpp_standard)
    logger.info("compile_request provider=%s std=%s", compiler.name, payload.cpp_standard)

    result = await compiler.compile(
        CompileRequest(
            code=code,
            cpp_standard=payload.cpp_standard,
            filename=payload.filename,
            compiler_flags=payload.compiler_flags or [],
            timeout=payload.timeout,
        )
    )
    data = {
        "success": result.status == "success",
        "compileResult": _with_validation_warnings(result, warnings),
        "metadata": _metadata(payload.cpp_standard),
    }
    return success_response(request=request, data=data)


@router.post(
    "/execute",
    response_model=SuccessEnvelope[dict[str, Any]],
    dependencies=[Depends(enforce_compile_rate_limit)],
)
async def execute_code(
    payload: ExecuteBody,
    request: Request,
    compiler: CompilerProvider = Depends(get_compiler),
) -> dict:
    code, warnings = prepare_code(payload.code)
    stdin_check = validate_stdin(payload.stdin)
    if not stdin_check.valid:
        raise CompilerError(stdin_check.error or "Invalid input", CompilerErrorCode.VALIDATION_FAILED)
    _require_standard(compiler, payload.cpp_standard)
    logger.info("execute_request provider=%s std=%s", compiler.name, payload.cpp_standard)

    result = await compiler.execute(
        ExecuteRequest(
            code=code,
            cpp_standard=payload.cpp_standard,
            filename=payload.filename,
            compiler_flags=payload.compiler_flags or [],
            timeout=payload.timeout,
            stdin=payload.stdin,
            run_timeout=payload.run_timeout,
        )
    )
    run_ok = result.run_result is None or result.run_result.status == "success"
    data = {
        "success": result.status == "success" and run_ok,
        "compileResult": _with_validation_warnings(result, warnings),
        "runResult": result.run_result.to_wire() if result.run_result is not None else None,
        "metadata": _metadata(payload.cpp_standard),
    }
    return success_response(request=request, data=data)


@router.get("/status", response_model=SuccessEnvelope[dict[str, Any]])
async def compile_status(
    request: Request,
    compiler: CompilerProvider = Depends(get_compiler),
) -> dict:
    available = await compiler.is_available()
    data = {
        "available": available,
        "provider": compiler.name,
        "supportedStandards": list(compiler.supported_standards),
    }
    return success_response(request=request, data=data)
