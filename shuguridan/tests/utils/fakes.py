from __future__ import annotations

from typing import AsyncIterator, Callable

from shuguridan.core.errors import LLMError, RetrievalError
from shuguridan.providers.compiler.types import (
    CompileRequest,
    CompileResult,
    CompilerMessage,
    ExecuteRequest,
    ExecuteResult,
    RunResult,
)
from shuguridan.services.rag.retriever import RetrievedDocument


class FakeCompiler:
    """In-process compiler double; stdout is computed from (code, stdin)."""

    name = "fake"

    def __init__(
        self,
        *,
        run: Callable[[str, str], str] | None = None,
        compile_errors: list[str] | None = None,
        run_status: str = "success",
        supported_standards: list[str] | None = None,
        available: bool = True,
    ) -> None:
        self._run = run or (lambda _code, stdin: stdin)
        self._compile_errors = compile_errors or []
        self._run_status = run_status
        self.supported_standards = supported_standards or ["cpp11", "cpp14", "cpp17", "cpp20", "cpp23", "cpp26"]
        self._available = available
        self.compile_requests: list[CompileRequest] = []
        self.execute_requests: list[ExecuteRequest] = []

    def _compile_result(self) -> CompileResult:
        errors = [CompilerMessage(type="error", line=1, column=1, message=message) for message in self._compile_errors]
        return CompileResult(
            status="error" if errors else "success",
            exit_code=1 if errors else 0,
            compile_time_ms=3,
            errors=errors,
        )

    async def compile(self, request: CompileRequest) -> CompileResult:
        self.compile_requests.append(request)
        return self._compile_result()

    async def execute(self, request: ExecuteRequest) -> ExecuteResult:
        self.execute_requests.append(request)
        compiled = self._compile_result()
        if compiled.status == "error":
            return ExecuteResult(**compiled.model_dump())
        run = RunResult(
            status=self._run_status,
            stdout=self._run(request.code, request.stdin),
            stderr="boom" if self._run_status != "success" else "",
            exit_code=0 if self._run_status == "success" else 1,
            run_time_ms=2,
        )
        return ExecuteResult(**compiled.model_dump(), run_result=run)

    async def is_available(self) -> bool:
        return self._available


class FakeRetriever:
    def __init__(self, documents: list[RetrievedDocument] | None = None, *, fail: bool = False) -> None:
        self._documents = documents or []
        self._fail = fail
        self.queries: list[tuple[str, str | None, int]] = []

    async def retrieve(
        self,
        query: str,
        *,
        threshold: float | None = None,
        limit: int = 10,
        version: str | None = None,
    ) -> list[RetrievedDocument]:
        self.queries.append((query, version, limit))
        if self._fail:
            raise RetrievalError("Vector search failed.")
        docs = [doc for doc in self._documents if version is None or doc.version_id == version]
        return docs[:limit]

    async def retrieve_multi_version(
        self,
        query: str,
        versions: list[str],
        *,
        threshold: float | None = None,
        limit: int = 10,
    ) -> dict[str, list[RetrievedDocument]]:
        return {version: await self.retrieve(query, limit=limit, version=version) for version in versions}


class FailingStreamLLM:
    name = "failing"
    model = "failing-model"

    async def generate(self, prompt: str, *, system: str | None = None) -> str:
        raise LLMError("LLM request failed.")

    async def stream(self, messages: list[dict], *, system: str | None = None) -> AsyncIterator[str]:
        yield "partial "
        raise LLMError("LLM stream interrupted.")


def make_document(doc_id: str, version_id: str, *, title: str = "Doc", similarity: float = 0.8) -> RetrievedDocument:
    return RetrievedDocument(
        id=doc_id,
        version_id=version_id,
        title=title,
        content=f"{title} content for {version_id}",
        metadata={},
        similarity=similarity,
    )
