from __future__ import annotations

from typing import Literal

from pydantic import Field

from shuguridan.domain.schemas import CamelModel
from shuguridan.domain.versions import CppVersionId


CPP_STANDARD_FLAGS: dict[str, str] = {
    "cpp98": "-std=c++98",
    "cpp03": "-std=c++03",
    "cpp11": "-std=c++11",
    "cpp14": "-std=c++14",
    "cpp17": "-std=c++17",
    "cpp20": "-std=c++20",
    "cpp23": "-std=c++23",
    # Older toolchains only know the provisional name.
    "cpp26": "-std=c++2c",
}

CompileStatus = Literal["success", "error", "timeout"]
RunStatus = Literal["success", "error", "timeout", "runtime_error"]


class CompileRequest(CamelModel):
    code: str
    cpp_standard: CppVersionId
    filename: str | None = None
    compiler_flags: list[str] = Field(default_factory=list)
    timeout: int = 30000


class ExecuteRequest(CompileRequest):
    stdin: str = ""
    run_timeout: int = 10000


class CompilerMessage(CamelModel):
    type: Literal["warning", "error"]
    line: int | None = None
    column: int | None = None
    message: str


class CompileResult(CamelModel):
    status: CompileStatus
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    compile_time_ms: int
    warnings: list[CompilerMessage] = Field(default_factory=list)
    errors: list[CompilerMessage] = Field(default_factory=list)


class RunResult(CamelModel):
    status: RunStatus
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0
    run_time_ms: float = 0
    memory_used_kb: int | None = None


class ExecuteResult(CompileResult):
    run_result: RunResult | None = None
