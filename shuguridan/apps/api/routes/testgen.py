from __future__ import annotations

import logging
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import Field

from shuguridan.apps.api.deps import get_compiler, get_llm
from shuguridan.apps.api.openapi import COMPILER_ERROR_RESPONSES
from shuguridan.apps.api.response import SuccessEnvelope, success_response
from shuguridan.domain.schemas import CamelModel
from shuguridan.domain.versions import CppVersionId
from shuguridan.providers.compiler.base import CompilerProvider
from shuguridan.providers.llm.base import LLMProvider
from shuguridan.providers.llm.factory import is_llm_configured
from shuguridan.services.prompts import OutputLanguage
from shuguridan.services.testgen.service import TestGenerator
from shuguridan.services.testgen.types import GeneratedTest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/test", tags=["test"], responses=COMPILER_ERROR_RESPONSES)


class GenerateCasesBody(CamelModel):
    original_code: str = Field(min_length=1)
    modernized_code: str = Field(min_length=1)
    source_version: CppVersionId
    target_version: CppVersionId
    test_type: Literal["unit", "io", "both"] = "io"
    output_language: OutputLanguage = "ko"
    max_test_cases: int = Field(default=5, ge=1, le=10)


class RunCasesBody(CamelModel):
    code: str = Field(min_length=1)
    tests: list[GeneratedTest]
    cpp_standard: CppVersionId
    timeout: int = Field(default=10000, ge=1000, le=60000)


class CompareCasesBody(CamelModel):
    original_code: str = Field(min_length=1)
    modernized_code: str = Field(min_length=1)
    tests: list[GeneratedTest]
    source_version: CppVersionId
    target_version: CppVersionId
    timeout: int = Field(default=10000, ge=1000, le=60000)


@router.post("/generate", response_model=SuccessEnvelope[dict[str, Any]])
async def generate_cases(
    payload: GenerateCasesBody,
    request: Request,
    llm: LLMProvider = Depends(get_llm),
    compiler: CompilerProvider = Depends(get_compiler),
) -> dict:
    outcome = await TestGenerator(llm, compiler).generate(
        original_code=payload.original_code,
        modernized_code=payload.modernized_code,
        source_version=payload.source_version,
        target_version=payload.target_version,
        test_type=payload.test_type,
        output_language=payload.output_language,
        max_test_cases=payload.max_test_cases,
    )
    if not outcome.success:
        raise HTTPException(
            status_code=500,
            detail={
                "code": "TEST_GENERATION_FAILED",
                "message": outcome.error or "Failed to generate tests",
                "generationTimeMs": outcome.generation_time_ms,
            },
        )
    data = {
        "success": True,
        "tests": [test.to_wire() for test in outcome.tests],
        "generationTimeMs": outcome.generation_time_ms,
    }
    return success_response(request=request, data=data)


@router.post("/run", response_model=SuccessEnvelope[dict[str, Any]])
async def run_cases(
    payload: RunCasesBody,
    request: Request,
    compiler: CompilerProvider = Depends(get_compiler),
) -> dict:
    outcome = await TestGenerator(None, compiler).run(
        code=payload.code,
        tests=payload.tests,
        cpp_standard=payload.cpp_standard,
        timeout=payload.timeout,
    )
    return success_response(request=request, data=outcome)


@router.post("/compare", response_model=SuccessEnvelope[dict[str, Any]])
async def compare_cases(
    payload: CompareCasesBody,
    request: Request,
    compiler: CompilerProvider = Depends(get_compiler),
) -> dict:
    outcome = await TestGenerator(None, compiler).compare(
        original_code=payload.original_code,
        modernized_code=payload.modernized_code,
        tests=payload.tests,
        source_version=payload.source_version,
        target_version=payload.target_version,
        timeout=payload.timeout,
    )
    logger.info(
        "tests_compared matching=%s different=%s errors=%s",
        outcome.comparison.matching,
        outcome.comparison.different,
        outcome.comparison.errors,
    )
    return success_response(request=request, data=outcome)


@router.get("/status", response_model=SuccessEnvelope[dict[str, Any]])
async def testgen_status(
    request: Request,
    compiler: CompilerProvider = Depends(get_compiler),
) -> dict:
    llm_configured = is_llm_configured()
    data = {
        "available": llm_configured,
        "compilerProvider": compiler.name,
        "llmConfigured": llm_configured,
    }
    return success_response(request=request, data=data)
