from __future__ import annotations

import json

from shuguridan.services.export.html import export_diff_html, export_document_html, md_to_html
from shuguridan.services.export.markdown import export_diff_markdown, export_document_markdown
from shuguridan.services.export.types import (
    EXPORT_FORMATS,
    EXPORT_THEMES,
    DiffToExport,
    DocumentToExport,
    ExportOptions,
    ExportResult,
    diff_filename,
    doc_type_label,
    document_filename,
)


def export_document(doc: DocumentToExport, options: ExportOptions) -> ExportResult:
    if options.format == "markdown":
        return export_document_markdown(doc, options)
    if options.format == "html":
        return export_document_html(doc, options)
    if options.format == "json":
        return ExportResult(
            content=json.dumps(doc.to_dict(), indent=2, ensure_ascii=False),
            filename=document_filename(doc, "json"),
            mime_type="application/json",
        )
    raise ValueError(f"Unsupported export format: {options.format}")


def export_diff(diff: DiffToExport, options: ExportOptions) -> ExportResult:
    if options.format == "markdown":
        return export_diff_markdown(diff, options)
    if options.format == "html":
        return export_diff_html(diff, options)
    if options.format == "json":
        return ExportResult(
            content=json.dumps(diff.to_dict(), indent=2, ensure_ascii=False),
            filename=diff_filename(diff, "json"),
            mime_type="application/json",
        )
    raise ValueError(f"Unsupported export format: {options.format}")


__all__ = [
    "EXPORT_FORMATS",
    "EXPORT_THEMES",
    "DiffToExport",
    "DocumentToExport",
    "ExportOptions",
    "ExportResult",
    "doc_type_label",
    "export_diff",
    "export_document",
    "md_to_html",
]
