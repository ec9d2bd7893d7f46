from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal


ExportFormat = Literal["markdown", "html", "json"]
ExportTheme = Literal["light", "dark"]

EXPORT_FORMATS: list[dict[str, str]] = [
    {"id": "markdown", "name": "Markdown", "extension": ".md", "mimeType": "text/markdown"},
    {"id": "html", "name": "HTML", "extension": ".html", "mimeType": "text/html"},
    {"id": "json", "name": "JSON", "extension": ".json", "mimeType": "application/json"},
]

EXPORT_THEMES: list[dict[str, str]] = [
    {"id": "light", "name": "Light"},
    {"id": "dark", "name": "Dark"},
]

DOC_TYPE_LABELS: dict[str, str] = {
    "migration_guide": "Migration Guide",
    "release_notes": "Release Notes",
    "test_points": "Test Points",
}

# Section order and headings for diff exports.
DIFF_SECTIONS: tuple[tuple[str, str, str], ...] = (
    ("newFeatures", "New Features", "new"),
    ("behaviorChanges", "Behavior Changes", "behavior"),
    ("deprecated", "Deprecated", "deprecated"),
    ("removed", "Removed", "deprecated"),
    ("libraryChanges", "Library Changes", "library"),
)


@dataclass
class ExportOptions:
    format: ExportFormat
    include_metadata: bool = True
    include_table_of_contents: bool = True
    theme: ExportTheme = "light"


@dataclass
class ExportResult:
    content: str
    filename: str
    mime_type: str

    @property
    def size(self) -> int:
        return len(self.content.encode("utf-8"))

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "filename": self.filename,
            "mimeType": self.mime_type,
            "size": self.size,
        }


@dataclass
class DocumentToExport:
    id: str
    title: str
    doc_type: str
    source_version: str
    target_version: str
    content: str
    created_at: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "docType": self.doc_type,
            "sourceVersion": self.source_version,
            "targetVersion": self.target_version,
            "content": self.content,
            "createdAt": self.created_at,
            "metadata": self.metadata,
        }


@dataclass
class DiffToExport:
    source_version: str
    target_version: str
    summary: str
    total_changes: int
    categories: dict[str, list[dict[str, Any]]]

    def to_dict(self) -> dict[str, Any]:
        return {
            "sourceVersion": self.source_version,
            "targetVersion": self.target_version,
            "summary": self.summary,
            "totalChanges": self.total_changes,
            "categories": self.categories,
        }


def doc_type_label(doc_type: str) -> str:
    return DOC_TYPE_LABELS.get(doc_type, doc_type)


def document_filename(doc: DocumentToExport, ext: str) -> str:
    return f"{doc.doc_type}_{doc.source_version}_to_{doc.target_version}.{ext}"


def diff_filename(diff: DiffToExport, ext: str) -> str:
    return f"diff_{diff.source_version}_to_{diff.target_version}.{ext}"
