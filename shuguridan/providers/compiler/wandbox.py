from __future__ import annotations

import logging
import re
import time
from typing import Any

import httpx

from shuguridan.core.config import get_settings
from shuguridan.core.errors import CompilerError, CompilerErrorCode
from shuguridan.providers.compiler.types import (
    CompileRequest,
    CompileResult,
    CompilerMessage,
    ExecuteRequest,
    ExecuteResult,
    RunResult,
)


logger = logging.getLogger(__name__)

# gcc-head is required for the standards the release compiler does not accept yet.
WANDBOX_COMPILERS: dict[str, str] = {
    "cpp98": "gcc-13.2.0",
    "cpp03": "gcc-13.2.0",
    "cpp11": "gcc-13.2.0",
    "cpp14": "gcc-13.2.0",
    "cpp17": "gcc-13.2.0",
    "cpp20": "gcc-13.2.0",
    "cpp23": "gcc-head",
    "cpp26": "gcc-head",
}

WANDBOX_STD_FLAGS: dict[str, str] = {
    "cpp98": "-std=c++98",
    "cpp03": "-std=c++03",
    "cpp11": "-std=c++11",
    "cpp14": "-std=c++14",
    "cpp17": "-std=c++17",
    "cpp20": "-std=c++20",
    "cpp23": "-std=c++2b",
    "cpp26": "-std=c++2c",
}

# file:line:column: warning|error: message
_DIAGNOSTIC_RE = re.compile(r"^(?:.*?):(\d+):(\d+):\s*(warning|error):\s*(.+)$", re.MULTILINE)
GENERIC_ERROR_MAX_CHARS = 500


def parse_gcc_output(output: str) -> tuple[list[CompilerMessage], list[CompilerMessage]]:
    """Split gcc diagnostics into (warnings, errors)."""
    warnings: list[CompilerMessage] = []
    errors: list[CompilerMessage] = []
    if not output:
        return warnings, errors

    for match in _DIAGNOSTIC_RE.finditer(output):
        line, column, kind, message = match.groups()
        item = CompilerMessage(type=kind, line=int(line), column=int(column), message=message.strip())
        (warnings if kind == "warning" else errors).append(item)

    # Linker failures and similar carry no file position.
    if not errors and "error" in output.lower():
        errors.append(CompilerMessage(type="error", message=output.strip()[:GENERIC_ERROR_MAX_CHARS]))
    return warnings, errors


def _exit_code(raw_status: Any) -> int:
    try:
        return int(raw_status or 0)
    except (TypeError, ValueError):
        return 0


class WandboxProvider:
    """Free hosted compiler; no credentials required."""

    name = "wandbox"
    supported_standards = list(WANDBOX_COMPILERS)

    def __init__(self, client: httpx.AsyncClient | None = None, base_url: str | None = None) -> None:
        self._settings = get_settings()
        self._client = client
        self._owns_client = client is None
        self._base_url = (base_url or self._settings.wandbox_base_url).rstrip("/")

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        self._client = httpx.AsyncClient(timeout=self._settings.ext_call_timeout_ms / 1000.0)
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _call(self, code: str, cpp_standard: str, stdin: str, timeout_ms: int) -> dict[str, Any]:
        body = {
            "compiler": WANDBOX_COMPILERS[cpp_standard],
            "code": code,
            "options": f"{WANDBOX_STD_FLAGS[cpp_standard]},-Wall,-Wextra",
            "stdin": stdin,
            "compiler-option-raw": "",
            "runtime-option-raw": "",
        }
        client = self._get_client()
        try:
            response = await client.post(
                f"{self._base_url}/compile.json",
                json=body,
                timeout=timeout_ms / 1000.0,
            )
        except httpx.TimeoutException as exc:
            logger.warning("wandbox_timeout std=%s timeout_ms=%s", cpp_standard, timeout_ms)
            raise CompilerError("Compilation timed out", CompilerErrorCode.COMPILE_TIMEOUT) from exc
        except httpx.HTTPError as exc:
            raise CompilerError(
                f"Wandbox API error: {exc}",
                CompilerErrorCode.API_ERROR,
            ) from exc

        if response.status_code >= 400:
            raise CompilerError(
                f"Wandbox API returned status {response.status_code}",
                CompilerErrorCode.API_ERROR,
                {"status": response.status_code},
            )
        return response.json()

    @staticmethod
    def _compile_result(payload: dict[str, Any], compile_time_ms: int) -> CompileResult:
        compiler_output = payload.get("compiler_output") or payload.get("compiler_message") or ""
        compiler_error = payload.get("compiler_error") or ""
        warnings, errors = parse_gcc_output(compiler_output + compiler_error)
        failed = bool(errors) or "error:" in compiler_error
        return CompileResult(
            status="error" if failed else "success",
            exit_code=1 if failed else 0,
            stdout=compiler_output,
            stderr=compiler_error,
            compile_time_ms=compile_time_ms,
            warnings=warnings,
            errors=errors,
        )

    @staticmethod
    def _run_result(payload: dict[str, Any]) -> RunResult:
        exit_code = _exit_code(payload.get("status"))
        # A reported signal (SIGSEGV, SIGKILL) means abnormal termination even with status 0.
        crashed = exit_code != 0 or bool(payload.get("signal"))
        return RunResult(
            status="runtime_error" if crashed else "success",
            stdout=payload.get("program_output") or "",
            stderr=payload.get("program_error") or "",
            exit_code=exit_code,
            run_time_ms=0,
        )

    async def compile(self, request: CompileRequest) -> CompileResult:
        start = time.monotonic()
        payload = await self._call(request.code, request.cpp_standard, "", request.timeout)
        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info("wandbox_compile std=%s latency_ms=%s", request.cpp_standard, elapsed_ms)
        return self._compile_result(payload, elapsed_ms)

    async def execute(self, request: ExecuteRequest) -> ExecuteResult:
        start = time.monotonic()
        payload = await self._call(request.code, request.cpp_standard, request.stdin, request.timeout)
        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info("wandbox_execute std=%s latency_ms=%s", request.cpp_standard, elapsed_ms)
        compile_result = self._compile_result(payload, elapsed_ms)
        if compile_result.status == "error":
            return ExecuteResult(**compile_result.model_dump())
        return ExecuteResult(**compile_result.model_dump(), run_result=self._run_result(payload))

    async def is_available(self) -> bool:
        try:
            response = await self._get_client().get(f"{self._base_url}/list.json", timeout=5.0)
        except httpx.HTTPError as exc:
            logger.warning("wandbox_unavailable error=%s", type(exc).__name__)
            return False
        return response.status_code < 400
