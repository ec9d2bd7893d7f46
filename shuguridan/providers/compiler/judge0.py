from __future__ import annotations

import asyncio
import base64
import logging
import re
import time
from typing import Any, Awaitable, Callable

import httpx

from shuguridan.core.config import get_settings
from shuguridan.core.errors import CompilerError, CompilerErrorCode
from shuguridan.providers.compiler.types import (
    CPP_STANDARD_FLAGS,
    CompileRequest,
    CompileResult,
    CompilerMessage,
    ExecuteRequest,
    ExecuteResult,
    RunResult,
)


logger = logging.getLogger(__name__)

# C++ (GCC); the standard is selected through compiler_options.
LANGUAGE_ID = 54
MEMORY_LIMIT_KB = 256000

STATUS_IN_QUEUE = 1
STATUS_PROCESSING = 2
STATUS_ACCEPTED = 3
STATUS_WRONG_ANSWER = 4
STATUS_TIME_LIMIT_EXCEEDED = 5
STATUS_COMPILATION_ERROR = 6
STATUS_RUNTIME_ERROR_FIRST = 7
STATUS_RUNTIME_ERROR_LAST = 12
STATUS_INTERNAL_ERROR = 13
STATUS_EXEC_FORMAT_ERROR = 14

_DIAGNOSTIC_RE = re.compile(r"(?:[\w./]+):(\d+):(\d+):\s*(warning|error):\s*(.+?)(?=\n|$)", re.IGNORECASE)


def _b64encode(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def _b64decode(value: str | None) -> str | None:
    if not value:
        return None
    return base64.b64decode(value).decode("utf-8", errors="replace")


def parse_judge0_output(output: str) -> tuple[list[CompilerMessage], list[CompilerMessage]]:
    warnings: list[CompilerMessage] = []
    errors: list[CompilerMessage] = []
    for match in _DIAGNOSTIC_RE.finditer(output):
        line, column, kind, message = match.groups()
        kind = kind.lower()
        item = CompilerMessage(type=kind, line=int(line), column=int(column), message=message.strip())
        (warnings if kind == "warning" else errors).append(item)

    # Unstructured output only counts when it looks like an error; keep its first line.
    if not errors and not warnings and output.strip() and "error" in output.lower():
        errors.append(CompilerMessage(type="error", message=output.strip().split("\n")[0]))
    return warnings, errors


def run_status_for(status_id: int) -> str:
    if status_id == STATUS_TIME_LIMIT_EXCEEDED:
        return "timeout"
    if STATUS_RUNTIME_ERROR_FIRST <= status_id <= STATUS_RUNTIME_ERROR_LAST:
        return "runtime_error"
    if status_id not in {STATUS_ACCEPTED, STATUS_WRONG_ANSWER}:
        return "error"
    return "success"


class Judge0Provider:
    name = "judge0"
    supported_standards = ["cpp11", "cpp14", "cpp17", "cpp20", "cpp23"]

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        poll_interval_ms: int | None = None,
        max_polls: int | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        settings = get_settings()
        self._settings = settings
        self._api_key = api_key
        self._base_url = (base_url or settings.judge0_base_url).rstrip("/")
        self._client = client
        self._owns_client = client is None
        self._poll_interval_s = (poll_interval_ms if poll_interval_ms is not None else settings.judge0_poll_interval_ms) / 1000.0
        self._max_polls = max_polls if max_polls is not None else settings.judge0_max_polls
        self._sleep = sleep or asyncio.sleep

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        self._client = httpx.AsyncClient(timeout=self._settings.ext_call_timeout_ms / 1000.0)
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> dict[str, str]:
        return {
            "X-RapidAPI-Key": self._api_key,
            "X-RapidAPI-Host": self._settings.judge0_host,
        }

    async def _submit_and_wait(self, submission: dict[str, Any]) -> dict[str, Any]:
        client = self._get_client()
        try:
            response = await client.post(
                f"{self._base_url}/submissions",
                params={"base64_encoded": "true", "wait": "false"},
                json=submission,
                headers=self._headers(),
            )
        except httpx.TimeoutException as exc:
            raise CompilerError("Compilation timed out", CompilerErrorCode.COMPILE_TIMEOUT) from exc
        except httpx.HTTPError as exc:
            raise CompilerError(f"Judge0 API error: {exc}", CompilerErrorCode.API_ERROR) from exc

        if response.status_code == 429:
            raise CompilerError("Rate limit exceeded", CompilerErrorCode.RATE_LIMITED)
        if response.status_code >= 400:
            raise CompilerError(f"Judge0 API error: {response.text}", CompilerErrorCode.API_ERROR)

        token = response.json()["token"]
        for _ in range(self._max_polls):
            await self._sleep(self._poll_interval_s)
            try:
                polled = await client.get(
                    f"{self._base_url}/submissions/{token}",
                    params={"base64_encoded": "true", "fields": "*"},
                    headers=self._headers(),
                )
            except httpx.HTTPError as exc:
                raise CompilerError("Failed to get submission result", CompilerErrorCode.API_ERROR) from exc
            if polled.status_code >= 400:
                raise CompilerError("Failed to get submission result", CompilerErrorCode.API_ERROR)

            result = polled.json()
            status_id = int((result.get("status") or {}).get("id", STATUS_IN_QUEUE))
            if status_id in {STATUS_IN_QUEUE, STATUS_PROCESSING}:
                continue
            result["stdout"] = _b64decode(result.get("stdout"))
            result["stderr"] = _b64decode(result.get("stderr"))
            result["compile_output"] = _b64decode(result.get("compile_output"))
            return result

        logger.warning("judge0_poll_exhausted token=%s polls=%s", token, self._max_polls)
        raise CompilerError("Compilation timed out", CompilerErrorCode.COMPILE_TIMEOUT)

    @staticmethod
    def _compile_result(result: dict[str, Any], compile_time_ms: int) -> CompileResult:
        status_id = int(result["status"]["id"])
        failed = status_id == STATUS_COMPILATION_ERROR
        compile_output = result.get("compile_output") or ""
        warnings, errors = parse_judge0_output(compile_output)
        return CompileResult(
            status="error" if failed else "success",
            exit_code=1 if failed else 0,
            stdout=result.get("stdout") or "",
            stderr=compile_output,
            compile_time_ms=compile_time_ms,
            warnings=warnings,
            errors=errors,
        )

    @staticmethod
    def _run_result(result: dict[str, Any]) -> RunResult:
        status = run_status_for(int(result["status"]["id"]))
        raw_time = result.get("time")
        return RunResult(
            status=status,
            stdout=result.get("stdout") or "",
            stderr=result.get("stderr") or result.get("message") or "",
            exit_code=0 if status == "success" else 1,
            run_time_ms=float(raw_time) * 1000 if raw_time else 0,
            memory_used_kb=result.get("memory") or None,
        )

    def _options(self, request: CompileRequest, *extra: str) -> str:
        flag = CPP_STANDARD_FLAGS.get(request.cpp_standard, "-std=c++17")
        return " ".join([flag, *request.compiler_flags, *extra]).strip()

    async def compile(self, request: CompileRequest) -> CompileResult:
        code = request.code
        # Syntax-only builds still need an entry point to link the stub.
        if "int main" not in code:
            code = f"{code}\nint main() {{ return 0; }}"
        submission = {
            "source_code": _b64encode(code),
            "language_id": LANGUAGE_ID,
            "compiler_options": self._options(request, "-fsyntax-only", "-Wall", "-Wextra"),
            "cpu_time_limit": request.timeout / 1000,
            "memory_limit": MEMORY_LIMIT_KB,
        }
        start = time.monotonic()
        result = await self._submit_and_wait(submission)
        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info("judge0_compile std=%s status=%s", request.cpp_standard, result["status"]["id"])
        return self._compile_result(result, elapsed_ms)

    async def execute(self, request: ExecuteRequest) -> ExecuteResult:
        submission = {
            "source_code": _b64encode(request.code),
            "language_id": LANGUAGE_ID,
            "compiler_options": self._options(request, "-Wall", "-Wextra"),
            "cpu_time_limit": request.run_timeout / 1000,
            "memory_limit": MEMORY_LIMIT_KB,
        }
        if request.stdin:
            submission["stdin"] = _b64encode(request.stdin)
        start = time.monotonic()
        result = await self._submit_and_wait(submission)
        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info("judge0_execute std=%s status=%s", request.cpp_standard, result["status"]["id"])

        compile_result = self._compile_result(result, elapsed_ms)
        if int(result["status"]["id"]) == STATUS_COMPILATION_ERROR:
            return ExecuteResult(**compile_result.model_dump())
        return ExecuteResult(**compile_result.model_dump(), run_result=self._run_result(result))

    async def is_available(self) -> bool:
        try:
            response = await self._get_client().get(
                f"{self._base_url}/languages/{LANGUAGE_ID}",
                headers=self._headers(),
                timeout=5.0,
            )
        except httpx.HTTPError as exc:
            logger.warning("judge0_unavailable error=%s", type(exc).__name__)
            return False
        return response.status_code < 400
