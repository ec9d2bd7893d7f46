from __future__ import annotations

from enum import Enum
from typing import Any


class ShuguridanError(Exception):
    """Base error for Shuguridan."""


class ProviderConfigError(ShuguridanError):
    """Missing or invalid provider configuration."""


class LLMError(ShuguridanError):
    """LLM provider request failure."""


class LLMAuthError(LLMError):
    """LLM provider authentication/authorization failure."""


class EmbeddingError(ShuguridanError):
    """Embedding provider request failure."""


class EmbeddingAuthError(EmbeddingError):
    """Embedding provider authentication/authorization failure."""


class RetrievalError(ShuguridanError):
    """Retrieval layer failure."""


class DiffPathNotFoundError(ShuguridanError):
    """No upgrade path exists between the requested versions."""

    def __init__(self, source: str, target: str) -> None:
        super().__init__(f"No upgrade path found from {source} to {target}")
        self.source = source
        self.target = target


class UnsupportedFileError(ShuguridanError):
    """Uploaded file type cannot be parsed."""


class DocumentParseError(ShuguridanError):
    """Uploaded file could not be converted to text."""


class CompilerErrorCode(str, Enum):
    VALIDATION_FAILED = "VALIDATION_FAILED"
    COMPILE_TIMEOUT = "COMPILE_TIMEOUT"
    EXECUTE_TIMEOUT = "EXECUTE_TIMEOUT"
    API_ERROR = "API_ERROR"
    RATE_LIMITED = "RATE_LIMITED"
    UNSUPPORTED_STANDARD = "UNSUPPORTED_STANDARD"
    FORBIDDEN_CODE = "FORBIDDEN_CODE"


class CompilerError(ShuguridanError):
    """Compiler provider or code validation failure."""

    def __init__(
        self,
        message: str,
        code: CompilerErrorCode,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details
