from __future__ import annotations

import logging
import time

from shuguridan.core.errors import CompilerError, CompilerErrorCode, LLMError
from shuguridan.providers.compiler.base import CompilerProvider
from shuguridan.providers.compiler.types import ExecuteRequest
from shuguridan.providers.llm.base import LLMProvider
from shuguridan.services.code_validation import prepare_code
from shuguridan.services.prompts import OutputLanguage
from shuguridan.services.testgen.parser import outputs_match, parse_llm_tests
from shuguridan.services.testgen.prompts import generation_system_prompt, generation_user_prompt
from shuguridan.services.testgen.types import (
    CaseResult,
    CompareOutcome,
    ComparisonCounts,
    GeneratedTest,
    GenerateOutcome,
    RunOutcome,
    RunSummary,
)


logger = logging.getLogger(__name__)

# Each test gets a short run budget; the compile budget comes from the caller.
TEST_RUN_TIMEOUT_MS = 5000
_TIMEOUT_CODES = {CompilerErrorCode.COMPILE_TIMEOUT, CompilerErrorCode.EXECUTE_TIMEOUT}


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class TestGenerator:
    """Generate I/O tests with the LLM and check code against them on the compiler."""

    __test__ = False

    def __init__(self, llm: LLMProvider | None, compiler: CompilerProvider) -> None:
        self._llm = llm
        self._compiler = compiler

    async def generate(
        self,
        *,
        original_code: str,
        modernized_code: str,
        source_version: str,
        target_version: str,
        test_type: str = "io",
        output_language: OutputLanguage = "ko",
        max_test_cases: int = 5,
    ) -> GenerateOutcome:
        start = time.monotonic()
        if self._llm is None:
            return GenerateOutcome(success=False, error="LLM not configured", generation_time_ms=0)

        system = generation_system_prompt(output_language)
        prompt = generation_user_prompt(
            original_code=original_code,
            modernized_code=modernized_code,
            source_version=source_version,
            target_version=target_version,
            test_type=test_type,
            max_test_cases=max_test_cases,
            language=output_language,
        )
        try:
            reply = await self._llm.generate(prompt, system=system)
        except LLMError as exc:
            logger.warning("testgen_llm_failed error=%s", type(exc).__name__)
            return GenerateOutcome(success=False, error=str(exc), generation_time_ms=_elapsed_ms(start))

        tests = parse_llm_tests(reply)
        if tests is None:
            return GenerateOutcome(
                success=False,
                error="Failed to parse LLM response",
                generation_time_ms=_elapsed_ms(start),
            )
        logger.info(
            "tests_generated count=%s source=%s target=%s",
            len(tests),
            source_version,
            target_version,
        )
        return GenerateOutcome(success=True, tests=tests, generation_time_ms=_elapsed_ms(start))

    async def _run_one(
        self,
        *,
        code: str,
        test: GeneratedTest,
        cpp_standard: str,
        timeout: int,
    ) -> CaseResult:
        start = time.monotonic()
        if test.type != "io":
            return CaseResult(
                test_id=test.id,
                test_name=test.name,
                status="error",
                error_message="Only I/O tests are supported",
                run_time_ms=_elapsed_ms(start),
            )

        request = ExecuteRequest(
            code=code,
            cpp_standard=cpp_standard,
            stdin=test.input,
            timeout=timeout,
            run_timeout=TEST_RUN_TIMEOUT_MS,
        )
        try:
            result = await self._compiler.execute(request)
        except CompilerError as exc:
            status = "timeout" if exc.code in _TIMEOUT_CODES else "error"
            return CaseResult(
                test_id=test.id,
                test_name=test.name,
                status=status,
                error_message=str(exc),
                run_time_ms=_elapsed_ms(start),
            )
        except Exception as exc:  # noqa: BLE001 - a broken test must not abort the rest of the run
            logger.warning(
                "test_case_failed test=%s provider=%s error=%s",
                test.id,
                self._compiler.name,
                type(exc).__name__,
                exc_info=True,
            )
            return CaseResult(
                test_id=test.id,
                test_name=test.name,
                status="error",
                error_message=str(exc) or type(exc).__name__,
                run_time_ms=_elapsed_ms(start),
            )

        if result.status == "timeout":
            return CaseResult(
                test_id=test.id,
                test_name=test.name,
                status="timeout",
                run_time_ms=_elapsed_ms(start),
            )
        if result.status == "error":
            return CaseResult(
                test_id=test.id,
                test_name=test.name,
                status="error",
                error_message="\n".join(message.message for message in result.errors),
                run_time_ms=_elapsed_ms(start),
            )

        run = result.run_result
        if run is None:
            return CaseResult(
                test_id=test.id,
                test_name=test.name,
                status="error",
                error_message="No run result",
                run_time_ms=_elapsed_ms(start),
            )
        if run.status == "timeout":
            return CaseResult(test_id=test.id, test_name=test.name, status="timeout", run_time_ms=run.run_time_ms)
        if run.status in ("runtime_error", "error"):
            return CaseResult(
                test_id=test.id,
                test_name=test.name,
                status="error",
                actual_output=run.stdout,
                error_message=run.stderr,
                run_time_ms=run.run_time_ms,
            )

        passed = outputs_match(test.expected_output, run.stdout)
        return CaseResult(
            test_id=test.id,
            test_name=test.name,
            status="passed" if passed else "failed",
            actual_output=run.stdout,
            expected_output=test.expected_output,
            run_time_ms=run.run_time_ms,
        )

    async def run(
        self,
        *,
        code: str,
        tests: list[GeneratedTest],
        cpp_standard: str,
        timeout: int = 10000,
    ) -> RunOutcome:
        start = time.monotonic()
        # Forbidden code is rejected once, before any test reaches the compiler.
        sanitized, _warnings = prepare_code(code)

        # Tests run one at a time to stay within compiler rate limits.
        results = [
            await self._run_one(code=sanitized, test=test, cpp_standard=cpp_standard, timeout=timeout)
            for test in tests
        ]
        summary = RunSummary(
            total=len(results),
            passed=sum(1 for result in results if result.status == "passed"),
            failed=sum(1 for result in results if result.status == "failed"),
            errors=sum(1 for result in results if result.status in ("error", "timeout")),
        )
        logger.info(
            "tests_run provider=%s total=%s passed=%s failed=%s errors=%s",
            self._compiler.name,
            summary.total,
            summary.passed,
            summary.failed,
            summary.errors,
        )
        return RunOutcome(
            success=summary.errors == 0,
            results=results,
            summary=summary,
            total_time_ms=_elapsed_ms(start),
        )

    async def compare(
        self,
        *,
        original_code: str,
        modernized_code: str,
        tests: list[GeneratedTest],
        source_version: str,
        target_version: str,
        timeout: int = 10000,
    ) -> CompareOutcome:
        start = time.monotonic()
        original = await self.run(code=original_code, tests=tests, cpp_standard=source_version, timeout=timeout)
        modernized = await self.run(
            code=modernized_code, tests=tests, cpp_standard=target_version, timeout=timeout
        )

        counts = ComparisonCounts()
        for index in range(len(tests)):
            if index >= len(original.results) or index >= len(modernized.results):
                counts.errors += 1
                continue
            left = original.results[index]
            right = modernized.results[index]
            if left.status == "error" or right.status == "error":
                counts.errors += 1
            elif outputs_match(left.actual_output or "", right.actual_output or ""):
                counts.matching += 1
            else:
                counts.different += 1

        return CompareOutcome(
            success=counts.errors == 0 and counts.different == 0,
            original_results=original.results,
            modernized_results=modernized.results,
            comparison=counts,
            total_time_ms=_elapsed_ms(start),
        )
