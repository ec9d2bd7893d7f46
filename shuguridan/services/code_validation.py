from __future__ import annotations

import re
from dataclasses import dataclass, field

from shuguridan.core.errors import CompilerError, CompilerErrorCode


MAX_CODE_LENGTH = 100_000
MAX_STDIN_LENGTH = 10_000

# Snippets run on shared remote sandboxes; block host access outright.
FORBIDDEN_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"#include\s*<\s*fstream\s*>", re.IGNORECASE), "File stream operations are not allowed for security"),
    (re.compile(r"#include\s*<\s*filesystem\s*>", re.IGNORECASE), "Filesystem operations are not allowed for security"),
    (re.compile(r"#include\s*<\s*sys/", re.IGNORECASE), "System headers are not allowed for security"),
    (re.compile(r"#include\s*<\s*unistd\.h\s*>", re.IGNORECASE), "Unix system calls are not allowed for security"),
    (re.compile(r"#include\s*<\s*windows\.h\s*>", re.IGNORECASE), "Windows system calls are not allowed for security"),
    (re.compile(r"\bsystem\s*\("), "system() calls are not allowed for security"),
    (re.compile(r"\bexecl?\s*\("), "exec() calls are not allowed for security"),
    (re.compile(r"\bexeclp\s*\("), "execlp() calls are not allowed for security"),
    (re.compile(r"\bexecv\s*\("), "execv() calls are not allowed for security"),
    (re.compile(r"\bexecvp\s*\("), "execvp() calls are not allowed for security"),
    (re.compile(r"\bfork\s*\("), "fork() calls are not allowed for security"),
    (re.compile(r"\bpopen\s*\("), "popen() calls are not allowed for security"),
    (re.compile(r"__asm\b"), "Inline assembly is not allowed for security"),
    (re.compile(r"\basm\s*\("), "Assembly blocks are not allowed for security"),
    (re.compile(r"#pragma\s+comment\s*\(\s*lib", re.IGNORECASE), "Library pragma directives are not allowed"),
    (re.compile(r"\bsocket\s*\("), "Network socket operations are not allowed"),
    (re.compile(r"\bconnect\s*\("), "Network connect operations are not allowed"),
    (re.compile(r"\bbind\s*\("), "Network bind operations are not allowed"),
    (re.compile(r"\blisten\s*\("), "Network listen operations are not allowed"),
]

WARNING_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\bgoto\b"), "Using goto statement - consider using structured control flow"),
    (re.compile(r"\bvoid\s*\*\s*\w+\s*="), "Using void pointer - consider using typed pointers or templates"),
    (re.compile(r"\bmalloc\s*\("), "Using malloc - consider using new or smart pointers in modern C++"),
    (re.compile(r"\bfree\s*\("), "Using free - consider using delete or smart pointers in modern C++"),
    (re.compile(r"\bNULL\b"), "Using NULL - consider using nullptr in modern C++"),
]

_SHEBANG_RE = re.compile(r"^#!.*$", re.MULTILINE)


@dataclass
class ValidationResult:
    valid: bool
    error: str | None = None
    error_code: CompilerErrorCode | None = None
    warnings: list[str] = field(default_factory=list)


def validate_code(code: str) -> ValidationResult:
    if not code or not code.strip():
        return ValidationResult(False, "Code cannot be empty", CompilerErrorCode.VALIDATION_FAILED)
    if len(code) > MAX_CODE_LENGTH:
        return ValidationResult(
            False,
            f"Code exceeds maximum length of {MAX_CODE_LENGTH} characters",
            CompilerErrorCode.VALIDATION_FAILED,
        )

    for pattern, reason in FORBIDDEN_PATTERNS:
        if pattern.search(code):
            return ValidationResult(False, reason, CompilerErrorCode.FORBIDDEN_CODE)

    warnings = [warning for pattern, warning in WARNING_PATTERNS if pattern.search(code)]
    return ValidationResult(True, warnings=warnings)


def sanitize_code(code: str) -> str:
    sanitized = _SHEBANG_RE.sub("// [removed shebang]", code)
    return sanitized.replace("\r\n", "\n").replace("\r", "\n")


def prepare_code(code: str) -> tuple[str, list[str]]:
    """Sanitize then validate; raise CompilerError when the code must not run."""
    sanitized = sanitize_code(code)
    result = validate_code(sanitized)
    if not result.valid:
        raise CompilerError(
            result.error or "Validation failed",
            result.error_code or CompilerErrorCode.VALIDATION_FAILED,
        )
    return sanitized, result.warnings


def validate_stdin(stdin: str) -> ValidationResult:
    if len(stdin) > MAX_STDIN_LENGTH:
        return ValidationResult(
            False,
            f"Input exceeds maximum length of {MAX_STDIN_LENGTH} characters",
            CompilerErrorCode.VALIDATION_FAILED,
        )
    return ValidationResult(True)
