from __future__ import annotations

from typing import Literal

from pydantic import Field

from shuguridan.domain.schemas import CamelModel


CaseKind = Literal["unit", "io"]
CaseStatus = Literal["passed", "failed", "error", "timeout"]


class GeneratedTest(CamelModel):
    id: str
    name: str
    description: str
    type: CaseKind
    input: str = ""
    expected_output: str = ""
    assertions: list[str] = Field(default_factory=list)


class CaseResult(CamelModel):
    test_id: str
    test_name: str
    status: CaseStatus
    actual_output: str | None = None
    expected_output: str | None = None
    error_message: str | None = None
    run_time_ms: float = 0


class RunSummary(CamelModel):
    total: int = 0
    passed: int = 0
    failed: int = 0
    errors: int = 0


class GenerateOutcome(CamelModel):
    success: bool
    tests: list[GeneratedTest] = Field(default_factory=list)
    generation_time_ms: int = 0
    error: str | None = None


class RunOutcome(CamelModel):
    success: bool
    results: list[CaseResult] = Field(default_factory=list)
    summary: RunSummary = Field(default_factory=RunSummary)
    total_time_ms: int = 0


class ComparisonCounts(CamelModel):
    matching: int = 0
    different: int = 0
    errors: int = 0


class CompareOutcome(CamelModel):
    success: bool
    original_results: list[CaseResult] = Field(default_factory=list)
    modernized_results: list[CaseResult] = Field(default_factory=list)
    comparison: ComparisonCounts = Field(default_factory=ComparisonCounts)
    total_time_ms: int = 0
