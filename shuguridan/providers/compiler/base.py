from __future__ import annotations

from typing import Protocol

from shuguridan.providers.compiler.types import CompileRequest, CompileResult, ExecuteRequest, ExecuteResult


class CompilerProvider(Protocol):
    name: str
    supported_standards: list[str]

    async def compile(self, request: CompileRequest) -> CompileResult:
        ...

    async def execute(self, request: ExecuteRequest) -> ExecuteResult:
        ...

    async def is_available(self) -> bool:
        ...
