from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


CppVersionId = Literal["cpp98", "cpp03", "cpp11", "cpp14", "cpp17", "cpp20", "cpp23", "cpp26"]
# Versions the API accepts as migration endpoints.
SelectableVersion = Literal["cpp11", "cpp14", "cpp17", "cpp20", "cpp23", "cpp26"]


@dataclass(frozen=True)
class CppVersion:
    id: str
    name: str
    year: int
    standard_doc: str
    features: tuple[str, ...]


CPP_VERSIONS: tuple[CppVersion, ...] = (
    CppVersion(
        "cpp98",
        "C++98",
        1998,
        "ISO/IEC 14882:1998",
        ("STL", "Templates", "Exceptions", "RTTI"),
    ),
    CppVersion(
        "cpp03",
        "C++03",
        2003,
        "ISO/IEC 14882:2003",
        ("Value initialization fix", "Standard library fixes"),
    ),
    CppVersion(
        "cpp11",
        "C++11",
        2011,
        "ISO/IEC 14882:2011",
        (
            "auto keyword",
            "Range-based for",
            "Lambda expressions",
            "Smart pointers",
            "Move semantics",
            "nullptr",
            "constexpr",
            "Variadic templates",
            "Thread support",
        ),
    ),
    CppVersion(
        "cpp14",
        "C++14",
        2014,
        "ISO/IEC 14882:2014",
        (
            "Generic lambdas",
            "Return type deduction",
            "Variable templates",
            "Binary literals",
            "Digit separators",
            "std::make_unique",
        ),
    ),
    CppVersion(
        "cpp17",
        "C++17",
        2017,
        "ISO/IEC 14882:2017",
        (
            "Structured bindings",
            "if constexpr",
            "Fold expressions",
            "std::optional",
            "std::variant",
            "std::string_view",
            "Filesystem library",
            "Parallel algorithms",
        ),
    ),
    CppVersion(
        "cpp20",
        "C++20",
        2020,
        "ISO/IEC 14882:2020",
        (
            "Concepts",
            "Ranges",
            "Coroutines",
            "Modules",
            "Three-way comparison",
            "std::format",
            "std::span",
            "Calendar and timezone",
        ),
    ),
    CppVersion(
        "cpp23",
        "C++23",
        2023,
        "ISO/IEC 14882:2023",
        (
            "std::expected",
            "std::flat_map",
            "std::mdspan",
            "std::generator",
            "Deducing this",
            "std::print",
            "Ranges improvements",
        ),
    ),
    CppVersion(
        "cpp26",
        "C++26",
        2026,
        "ISO/IEC 14882:2026 (Draft)",
        (
            "Contracts",
            "Reflection",
            "std::execution",
            "Hazard pointers",
            "RCU",
            "Pack indexing",
            "Text encoding",
        ),
    ),
)

VERSION_ORDER: tuple[str, ...] = tuple(version.id for version in CPP_VERSIONS)
SELECTABLE_VERSIONS: tuple[str, ...] = ("cpp11", "cpp14", "cpp17", "cpp20", "cpp23", "cpp26")


def get_version(version_id: str) -> CppVersion | None:
    for version in CPP_VERSIONS:
        if version.id == version_id:
            return version
    return None


def version_index(version_id: str) -> int:
    # Unknown versions sort before everything so ordering checks fail closed.
    try:
        return VERSION_ORDER.index(version_id)
    except ValueError:
        return -1


def is_upgrade(source: str, target: str) -> bool:
    source_idx = version_index(source)
    target_idx = version_index(target)
    return source_idx != -1 and target_idx != -1 and source_idx < target_idx


def version_label(version_id: str) -> str:
    return version_id.replace("cpp", "C++")
