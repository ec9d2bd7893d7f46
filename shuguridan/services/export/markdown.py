from __future__ import annotations

from typing import Any

from shuguridan.domain.versions import version_label
from shuguridan.services.export.types import (
    DIFF_SECTIONS,
    DiffToExport,
    DocumentToExport,
    ExportOptions,
    ExportResult,
    diff_filename,
    doc_type_label,
    document_filename,
)


def _format_created(created_at: str) -> str:
    # ISO timestamps are shown as their date part.
    return created_at.split("T", 1)[0]


def _anchor(heading: str) -> str:
    return heading.lower().replace(" ", "-")


def _diff_item_lines(item: dict[str, Any]) -> list[str]:
    lines = [
        f"### {item.get('title', '')}",
        "",
        item.get("description", ""),
        "",
        f"- **Category**: {item.get('category', '')}",
        f"- **Impact**: {item.get('impact', '')}",
        "",
    ]
    examples = item.get("examples") or []
    if examples:
        lines += ["#### Examples", ""]
        for example in examples:
            lines += [
                "**Before:**",
                "```cpp",
                example.get("before", ""),
                "```",
                "",
                "**After:**",
                "```cpp",
                example.get("after", ""),
                "```",
                "",
                f"> {example.get('explanation', '')}",
                "",
            ]
    return lines


def export_document_markdown(doc: DocumentToExport, options: ExportOptions) -> ExportResult:
    parts = [f"# {doc.title}", ""]
    if options.include_metadata:
        parts += [
            "---",
            f"Document type: {doc_type_label(doc.doc_type)}",
            f"Source version: {version_label(doc.source_version)}",
            f"Target version: {version_label(doc.target_version)}",
            f"Created: {_format_created(doc.created_at)}",
            "---",
            "",
        ]
    parts.append(doc.content)
    return ExportResult(
        content="\n".join(parts),
        filename=document_filename(doc, "md"),
        mime_type="text/markdown",
    )


def export_diff_markdown(diff: DiffToExport, options: ExportOptions) -> ExportResult:
    parts = [
        f"# {version_label(diff.source_version)} → {version_label(diff.target_version)} Changes",
        "",
        "## Overview",
        "",
        diff.summary,
        "",
        f"**Total changes: {diff.total_changes}**",
        "",
    ]

    sections = [(key, heading) for key, heading, _ in DIFF_SECTIONS if diff.categories.get(key)]
    if options.include_table_of_contents and sections:
        parts += ["## Contents", ""]
        parts += [
            f"- [{heading}](#{_anchor(heading)}) ({len(diff.categories[key])})"
            for key, heading in sections
        ]
        parts.append("")

    for key, heading in sections:
        parts += [f"## {heading}", ""]
        for item in diff.categories[key]:
            parts += _diff_item_lines(item)

    return ExportResult(
        content="\n".join(parts),
        filename=diff_filename(diff, "md"),
        mime_type="text/markdown",
    )
