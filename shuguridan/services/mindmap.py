from __future__ import annotations

from typing import Any

from shuguridan.domain.versions import SELECTABLE_VERSIONS, version_label
from shuguridan.services.diff import DIFF_CATEGORIES, VERSION_PAIRS, load_diff_data


CATEGORY_COLORS: dict[str, str] = {
    "newFeatures": "#22c55e",
    "behaviorChanges": "#eab308",
    "deprecated": "#f97316",
    "removed": "#ef4444",
    "libraryChanges": "#3b82f6",
}

CATEGORY_LABELS: dict[str, str] = {
    "newFeatures": "New features",
    "behaviorChanges": "Behavior changes",
    "deprecated": "Deprecated",
    "removed": "Removed",
    "libraryChanges": "Library changes",
}

_ORIGIN = {"x": 0, "y": 0}


def _placeholder(source: str, target: str) -> dict[str, Any]:
    supported = ", ".join(f"{src}->{tgt}" for src, tgt in VERSION_PAIRS)
    return {
        "sourceVersion": source,
        "targetVersion": target,
        "newFeatures": [
            {
                "id": "no-data",
                "title": "Data not available yet",
                "description": (
                    f"Comparison data for {version_label(source)} -> {version_label(target)} is not available yet. "
                    f"Currently provided: {supported}."
                ),
                "category": "newFeatures",
            }
        ],
    }


def load_pair(source: str, target: str) -> dict[str, Any]:
    # Fall back to the reverse file so downgrades still render something useful.
    return load_diff_data(source, target) or load_diff_data(target, source) or _placeholder(source, target)


def build_mindmap(diff: dict[str, Any], expand_level: int) -> tuple[list[dict], list[dict]]:
    nodes: list[dict] = [
        {
            "id": "root",
            "type": "root",
            "data": {
                "label": f"{diff['sourceVersion'].upper()} → {diff['targetVersion'].upper()}",
                "description": "C++ version changes",
            },
            "position": dict(_ORIGIN),
        }
    ]
    edges: list[dict] = []

    for key in DIFF_CATEGORIES:
        items = diff.get(key) or []
        if not items:
            continue
        category_id = f"category-{key}"
        nodes.append(
            {
                "id": category_id,
                "type": "category",
                "data": {"label": CATEGORY_LABELS[key], "category": key, "itemCount": len(items)},
                "position": dict(_ORIGIN),
            }
        )
        edges.append({"id": f"edge-root-{key}", "source": "root", "target": category_id})

        if expand_level < 2:
            continue
        for index, item in enumerate(items):
            item_id = f"item-{key}-{index}"
            nodes.append(
                {
                    "id": item_id,
                    "type": "item",
                    "data": {
                        "label": item.get("title", ""),
                        "description": item.get("description"),
                        "category": key,
                        "impact": item.get("impact"),
                    },
                    "position": dict(_ORIGIN),
                }
            )
            edges.append({"id": f"edge-{key}-{index}", "source": category_id, "target": item_id})

    return nodes, edges


def mindmap_data(source: str, target: str, expand_level: int = 2) -> dict[str, Any]:
    nodes, edges = build_mindmap(load_pair(source, target), expand_level)
    return {
        "sourceVersion": source,
        "targetVersion": target,
        "nodes": nodes,
        "edges": edges,
        "categoryColors": CATEGORY_COLORS,
        "categoryLabels": CATEGORY_LABELS,
    }


def mindmap_pairs() -> dict[str, Any]:
    return {
        "versions": list(SELECTABLE_VERSIONS),
        "pairs": [{"source": src, "target": tgt, "available": True} for src, tgt in VERSION_PAIRS],
    }
