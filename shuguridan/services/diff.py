from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from shuguridan.core.errors import DiffPathNotFoundError
from shuguridan.domain.versions import version_index, version_label


logger = logging.getLogger(__name__)

DIFF_DATA_DIR = Path(__file__).resolve().parent.parent / "data" / "diffs"

DIFF_CATEGORIES: tuple[str, ...] = (
    "newFeatures",
    "behaviorChanges",
    "deprecated",
    "removed",
    "libraryChanges",
)

# Direct pairs with curated data; longer migrations are chained through them.
VERSION_PAIRS: tuple[tuple[str, str], ...] = (
    ("cpp11", "cpp14"),
    ("cpp14", "cpp17"),
)

_SUMMARY_PARTS: tuple[tuple[str, str], ...] = (
    ("newFeatures", "new features"),
    ("behaviorChanges", "behavior changes"),
    ("deprecated", "deprecated items"),
    ("removed", "removed items"),
    ("libraryChanges", "library changes"),
)

_diff_cache: dict[str, dict[str, Any] | None] = {}


@dataclass
class DiffAnalysis:
    source: str
    target: str
    diff: dict[str, list[dict[str, Any]]]
    summary: str
    total_changes: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "diff": self.diff,
            "summary": self.summary,
            "totalChanges": self.total_changes,
        }


def load_diff_data(source: str, target: str) -> dict[str, Any] | None:
    """Load one pair file, memoized per process; None when no file exists."""
    key = f"{source}-{target}"
    if key in _diff_cache:
        return _diff_cache[key]

    path = DIFF_DATA_DIR / f"{key}.json"
    data: dict[str, Any] | None = None
    if path.is_file():
        with path.open(encoding="utf-8") as handle:
            data = json.load(handle)
    else:
        logger.debug("diff_data_missing pair=%s", key)
    _diff_cache[key] = data
    return data


def clear_diff_cache() -> None:
    _diff_cache.clear()


def available_pairs() -> list[dict[str, str]]:
    return [{"source": source, "target": target} for source, target in VERSION_PAIRS]


def upgrade_path(source: str, target: str) -> list[tuple[str, str]]:
    source_idx = version_index(source)
    target_idx = version_index(target)
    if source_idx == -1 or target_idx == -1 or source_idx >= target_idx:
        return []

    path: list[tuple[str, str]] = []
    current = source
    while current != target:
        next_pair = next((pair for pair in VERSION_PAIRS if pair[0] == current), None)
        if next_pair is None:
            # Partial path: return what is covered so far.
            break
        path.append(next_pair)
        current = next_pair[1]
    return path


def count_changes(diff: dict[str, list]) -> int:
    return sum(len(diff.get(category) or []) for category in DIFF_CATEGORIES)


def build_summary(source: str, target: str, diff: dict[str, list]) -> str:
    total = count_changes(diff)
    parts = [f"{len(diff[key])} {label}" for key, label in _SUMMARY_PARTS if diff.get(key)]
    prefix = f"Upgrading from {version_label(source)} to {version_label(target)}: {total} total changes"
    if not parts:
        return f"{prefix}."
    return f"{prefix} including {', '.join(parts)}."


def analyze(source: str, target: str, categories: list[str] | None = None) -> DiffAnalysis:
    path = upgrade_path(source, target)
    if not path:
        raise DiffPathNotFoundError(source, target)

    merged: dict[str, list[dict[str, Any]]] = {category: [] for category in DIFF_CATEGORIES}
    for pair_source, pair_target in path:
        data = load_diff_data(pair_source, pair_target)
        if data is None:
            continue
        for category in DIFF_CATEGORIES:
            merged[category].extend(data.get(category) or [])

    if categories:
        merged = {category: (items if category in categories else []) for category, items in merged.items()}

    return DiffAnalysis(
        source=source,
        target=target,
        diff=merged,
        summary=build_summary(source, target, merged),
        total_changes=count_changes(merged),
    )
