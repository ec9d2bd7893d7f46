from __future__ import annotations

import html
import re
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

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


_TEMPLATE_DIR = Path(__file__).parent / "templates"

_env = Environment(loader=FileSystemLoader(str(_TEMPLATE_DIR)), autoescape=True)


def _inline(text: str) -> str:
    # Input is already escaped; only inline markup is converted here.
    text = re.sub(r"`([^`]+)`", r"<code>\1</code>", text)
    text = re.sub(r"\*\*(.+?)\*\*", r"<strong>\1</strong>", text)
    text = re.sub(r"\*(.+?)\*", r"<em>\1</em>", text)
    return text


def _code_block(lines: list[str]) -> str:
    return "<pre><code>" + html.escape("\n".join(lines)) + "</code></pre>"


def md_to_html(text: str) -> str:
    """Minimal markdown-to-HTML for generated documents.

    Handles fenced code blocks, headings, bullet and numbered lists and
    inline emphasis. Everything else becomes a paragraph. Input is escaped
    before conversion so model output cannot inject markup.
    """
    result: list[str] = []
    in_code = False
    code_lines: list[str] = []
    list_tag: str | None = None

    def _close_list() -> None:
        nonlocal list_tag
        if list_tag:
            result.append(f"</{list_tag}>")
            list_tag = None

    def _open_list(tag: str) -> None:
        nonlocal list_tag
        if list_tag != tag:
            _close_list()
            result.append(f"<{tag}>")
            list_tag = tag

    for line in text.split("\n"):
        stripped = line.strip()

        if stripped.startswith("```"):
            if in_code:
                result.append(_code_block(code_lines))
                code_lines = []
                in_code = False
            else:
                _close_list()
                in_code = True
            continue
        if in_code:
            code_lines.append(line)
            continue

        escaped = html.escape(stripped, quote=False)

        heading = re.match(r"^(#{1,6})\s+(.+)$", escaped)
        if heading:
            _close_list()
            level = len(heading.group(1))
            result.append(f"<h{level}>{_inline(heading.group(2))}</h{level}>")
            continue

        if escaped.startswith(("- ", "* ")):
            _open_list("ul")
            result.append(f"<li>{_inline(escaped[2:])}</li>")
            continue

        numbered = re.match(r"^\d+\.\s+(.+)$", escaped)
        if numbered:
            _open_list("ol")
            result.append(f"<li>{_inline(numbered.group(1))}</li>")
            continue

        if escaped.startswith("&gt; "):
            _close_list()
            result.append(f"<blockquote>{_inline(escaped[5:])}</blockquote>")
            continue

        if not escaped:
            # Blank lines between list items keep the list open.
            continue
        _close_list()
        result.append(f"<p>{_inline(escaped)}</p>")

    # Unterminated fence: emit what was collected.
    if in_code:
        result.append(_code_block(code_lines))
    _close_list()
    return "\n".join(result)


def export_document_html(doc: DocumentToExport, options: ExportOptions) -> ExportResult:
    template = _env.get_template("document.html")
    content = template.render(
        title=doc.title,
        theme=options.theme,
        include_metadata=options.include_metadata,
        doc_type=doc_type_label(doc.doc_type),
        source=version_label(doc.source_version),
        target=version_label(doc.target_version),
        created=doc.created_at.split("T", 1)[0],
        body_html=md_to_html(doc.content),
    )
    return ExportResult(content=content, filename=document_filename(doc, "html"), mime_type="text/html")


def export_diff_html(diff: DiffToExport, options: ExportOptions) -> ExportResult:
    template = _env.get_template("diff.html")
    sections = [
        {
            "id": key,
            "heading": heading,
            "badge": badge,
            "items": diff.categories[key],
        }
        for key, heading, badge in DIFF_SECTIONS
        if diff.categories.get(key)
    ]
    content = template.render(
        title=f"{version_label(diff.source_version)} → {version_label(diff.target_version)} Changes",
        theme=options.theme,
        include_toc=options.include_table_of_contents,
        summary=diff.summary,
        total_changes=diff.total_changes,
        sections=sections,
    )
    return ExportResult(content=content, filename=diff_filename(diff, "html"), mime_type="text/html")
