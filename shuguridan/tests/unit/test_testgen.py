from __future__ import annotations

import json

import pytest

from shuguridan.core.errors import CompilerError, CompilerErrorCode
from shuguridan.providers.llm.fake import FakeLLMProvider
from shuguridan.services.testgen.parser import extract_json, normalize_output, outputs_match, parse_llm_tests
from shuguridan.services.testgen.prompts import generation_system_prompt, generation_user_prompt
from shuguridan.services.testgen.service import TestGenerator
from shuguridan.services.testgen.types import GeneratedTest
from shuguridan.tests.utils.fakes import FailingStreamLLM, FakeCompiler


def _reply(tests: list[dict]) -> str:
    return "Here you go:\n```json\n" + json.dumps({"tests": tests}) + "\n```"


def _io_case(name: str, stdin: str, expected: str) -> GeneratedTest:
    return GeneratedTest(
        id=f"id-{name}",
        name=name,
        description=name,
        type="io",
        input=stdin,
        expected_output=expected,
    )


def test_extract_json_prefers_fenced_block() -> None:
    text = 'noise {"ignored": true}\n```json\n{"tests": []}\n```'
    assert extract_json(text) == '{"tests": []}'


def test_extract_json_falls_back_to_object_span() -> None:
    assert extract_json('Result: {"tests": [{"a": {"b": 1}}]} done') == '{"tests": [{"a": {"b": 1}}]}'
    assert extract_json("no json here") is None


def test_parse_llm_tests_filters_invalid_entries() -> None:
    reply = _reply(
        [
            {"name": "sum", "description": "adds", "type": "io", "input": "1 2", "expectedOutput": "3", "assertions": []},
            {"name": "bad_type", "description": "x", "type": "fuzz", "assertions": []},
            {"name": "no_assertions", "description": "x", "type": "unit"},
        ]
    )
    tests = parse_llm_tests(reply)

    assert tests is not None
    assert [test.name for test in tests] == ["sum"]
    assert tests[0].expected_output == "3"
    assert tests[0].id


def test_parse_llm_tests_rejects_unparseable_replies() -> None:
    assert parse_llm_tests("I cannot help with that") is None
    assert parse_llm_tests("```json\n{not json}\n```") is None
    assert parse_llm_tests('{"cases": []}') is None


def test_outputs_match_normalizes_line_endings() -> None:
    assert normalize_output("a\r\nb\r") == "a\nb"
    assert outputs_match("3\n", "3\r\n")
    assert not outputs_match("3", "4")


def test_generation_prompts_mention_inputs() -> None:
    prompt = generation_user_prompt(
        original_code="int main() { return NULL; }",
        modernized_code="int main() { return 0; }",
        source_version="cpp11",
        target_version="cpp17",
        test_type="io",
        max_test_cases=3,
        language="en",
    )
    assert "int main() { return NULL; }" in prompt
    assert "3" in prompt
    assert "English" in generation_system_prompt("en")


@pytest.mark.asyncio
async def test_generate_returns_parsed_tests() -> None:
    llm = FakeLLMProvider(
        _reply([{"name": "echo", "description": "echo", "type": "io", "input": "x", "expectedOutput": "x", "assertions": []}])
    )
    outcome = await TestGenerator(llm, FakeCompiler()).generate(
        original_code="a", modernized_code="b", source_version="cpp11", target_version="cpp17"
    )

    assert outcome.success
    assert [test.name for test in outcome.tests] == ["echo"]
    assert llm.calls[0]["system"]


@pytest.mark.asyncio
async def test_generate_reports_parse_and_llm_failures() -> None:
    unparsed = await TestGenerator(FakeLLMProvider("no json"), FakeCompiler()).generate(
        original_code="a", modernized_code="b", source_version="cpp11", target_version="cpp17"
    )
    assert not unparsed.success
    assert unparsed.error == "Failed to parse LLM response"

    failed = await TestGenerator(FailingStreamLLM(), FakeCompiler()).generate(
        original_code="a", modernized_code="b", source_version="cpp11", target_version="cpp17"
    )
    assert not failed.success
    assert failed.error == "LLM request failed."


@pytest.mark.asyncio
async def test_run_compares_stdout_per_case() -> None:
    compiler = FakeCompiler(run=lambda _code, stdin: stdin.upper())
    tests = [
        _io_case("upper", "abc", "ABC\n"),
        _io_case("wrong", "abc", "abc"),
        GeneratedTest(id="u1", name="unit", description="unit", type="unit"),
    ]
    outcome = await TestGenerator(None, compiler).run(code="int main() {}", tests=tests, cpp_standard="cpp17")

    assert [result.status for result in outcome.results] == ["passed", "failed", "error"]
    assert outcome.results[2].error_message == "Only I/O tests are supported"
    assert outcome.summary.model_dump() == {"total": 3, "passed": 1, "failed": 1, "errors": 1}
    assert not outcome.success
    # Unit cases never reach the compiler.
    assert len(compiler.execute_requests) == 2
    assert compiler.execute_requests[0].run_timeout == 5000


@pytest.mark.asyncio
async def test_run_maps_compile_and_runtime_failures() -> None:
    broken = await TestGenerator(None, FakeCompiler(compile_errors=["expected ';'"])).run(
        code="int main() {", tests=[_io_case("c", "", "")], cpp_standard="cpp17"
    )
    assert broken.results[0].status == "error"
    assert broken.results[0].error_message == "expected ';'"

    crashed = await TestGenerator(None, FakeCompiler(run_status="runtime_error")).run(
        code="int main() {}", tests=[_io_case("c", "", "")], cpp_standard="cpp17"
    )
    assert crashed.results[0].status == "error"
    assert crashed.results[0].error_message == "boom"

    slow = await TestGenerator(None, FakeCompiler(run_status="timeout")).run(
        code="int main() {}", tests=[_io_case("c", "", "")], cpp_standard="cpp17"
    )
    assert slow.results[0].status == "timeout"
    assert slow.summary.errors == 1


@pytest.mark.asyncio
async def test_run_maps_compiler_errors_to_case_status() -> None:
    class TimingOutCompiler(FakeCompiler):
        async def execute(self, request):
            raise CompilerError("Compilation timed out", CompilerErrorCode.COMPILE_TIMEOUT)

    outcome = await TestGenerator(None, TimingOutCompiler()).run(
        code="int main() {}", tests=[_io_case("c", "", "")], cpp_standard="cpp17"
    )
    assert outcome.results[0].status == "timeout"


@pytest.mark.asyncio
async def test_run_isolates_unexpected_compiler_failures() -> None:
    class GarbledCompiler(FakeCompiler):
        async def execute(self, request):
            if request.stdin == "bad":
                raise json.JSONDecodeError("Expecting value", "<html>", 0)
            return await super().execute(request)

    outcome = await TestGenerator(None, GarbledCompiler()).run(
        code="int main() {}",
        tests=[_io_case("garbled", "bad", "bad"), _io_case("fine", "ok", "ok")],
        cpp_standard="cpp17",
    )

    garbled, fine = outcome.results
    assert garbled.status == "error"
    assert garbled.error_message.startswith("Expecting value")
    assert fine.status == "passed"
    assert outcome.summary.errors == 1
    assert not outcome.success


@pytest.mark.asyncio
async def test_run_rejects_forbidden_code_before_compiling() -> None:
    compiler = FakeCompiler()
    with pytest.raises(CompilerError) as excinfo:
        await TestGenerator(None, compiler).run(
            code='int main() { system("rm -rf /"); }', tests=[_io_case("c", "", "")], cpp_standard="cpp17"
        )
    assert excinfo.value.code == CompilerErrorCode.FORBIDDEN_CODE
    assert compiler.execute_requests == []


@pytest.mark.asyncio
async def test_compare_counts_matching_and_different_outputs() -> None:
    def run(code: str, stdin: str) -> str:
        # The "modernized" build prints one case differently.
        if "modern" in code and stdin == "2":
            return "two"
        return stdin

    tests = [_io_case("one", "1", "1"), _io_case("two", "2", "2")]
    outcome = await TestGenerator(None, FakeCompiler(run=run)).compare(
        original_code="int main() {} // legacy",
        modernized_code="int main() {} // modern",
        tests=tests,
        source_version="cpp11",
        target_version="cpp17",
    )

    assert outcome.comparison.model_dump() == {"matching": 1, "different": 1, "errors": 0}
    assert not outcome.success
    assert [result.status for result in outcome.modernized_results] == ["passed", "failed"]
