from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import PurePath

import pdfplumber

from shuguridan.core.errors import DocumentParseError, UnsupportedFileError


logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS: dict[str, str] = {
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".pdf": "application/pdf",
}


@dataclass(frozen=True)
class ParsedFile:
    filename: str
    content: str
    mime_type: str
    size: int


def supported_mime_type(filename: str) -> str | None:
    return SUPPORTED_EXTENSIONS.get(PurePath(filename).suffix.lower())


def is_supported_file(filename: str) -> bool:
    return supported_mime_type(filename) is not None


def title_from_filename(filename: str) -> str:
    # "guide.v2.md" -> "guide.v2"
    return PurePath(filename).stem or filename


def _extract_pdf_text(data: bytes) -> str:
    pages: list[str] = []
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        for page in pdf.pages:
            text = page.extract_text() or ""
            if text.strip():
                pages.append(text)
    return "\n\n".join(pages)


def parse_file(filename: str, data: bytes) -> ParsedFile:
    mime_type = supported_mime_type(filename)
    if mime_type is None:
        raise UnsupportedFileError(
            f"Unsupported file type: {filename}. Supported types: .md, .txt, .pdf"
        )

    if mime_type == "application/pdf":
        try:
            content = _extract_pdf_text(data)
        except Exception as exc:  # noqa: BLE001 - pdfminer raises a wide range of parse errors
            raise DocumentParseError(f"Failed to parse PDF: {exc}") from exc
    else:
        # Invalid byte sequences are replaced so one bad character does not drop a document.
        content = data.decode("utf-8", errors="replace")

    logger.debug("upload_file_parsed filename=%s mime=%s bytes=%s", filename, mime_type, len(data))
    return ParsedFile(filename=filename, content=content, mime_type=mime_type, size=len(data))
