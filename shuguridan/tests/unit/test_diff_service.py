from __future__ import annotations

import pytest

from shuguridan.core.errors import DiffPathNotFoundError
from shuguridan.services import diff as diff_service


def _pair_total(source: str, target: str) -> int:
    data = diff_service.load_diff_data(source, target)
    assert data is not None
    return diff_service.count_changes(data)


def test_upgrade_path_chains_direct_pairs() -> None:
    assert diff_service.upgrade_path("cpp11", "cpp17") == [("cpp11", "cpp14"), ("cpp14", "cpp17")]
    assert diff_service.upgrade_path("cpp14", "cpp17") == [("cpp14", "cpp17")]


def test_upgrade_path_rejects_downgrades_and_unknown_versions() -> None:
    assert diff_service.upgrade_path("cpp17", "cpp11") == []
    assert diff_service.upgrade_path("cpp17", "cpp17") == []
    assert diff_service.upgrade_path("cpp42", "cpp17") == []


def test_upgrade_path_stops_where_data_ends() -> None:
    # Only the covered prefix of cpp14 -> cpp23 is returned.
    assert diff_service.upgrade_path("cpp14", "cpp23") == [("cpp14", "cpp17")]


def test_analyze_merges_chained_pairs() -> None:
    analysis = diff_service.analyze("cpp11", "cpp17")

    expected = _pair_total("cpp11", "cpp14") + _pair_total("cpp14", "cpp17")
    assert analysis.total_changes == expected
    assert set(analysis.diff) == set(diff_service.DIFF_CATEGORIES)
    assert analysis.summary.startswith(f"Upgrading from C++11 to C++17: {expected} total changes")


def test_analyze_filters_categories() -> None:
    analysis = diff_service.analyze("cpp11", "cpp14", categories=["newFeatures"])

    assert analysis.diff["newFeatures"]
    assert all(not analysis.diff[key] for key in diff_service.DIFF_CATEGORIES if key != "newFeatures")
    assert analysis.total_changes == len(analysis.diff["newFeatures"])


def test_analyze_without_path_raises() -> None:
    with pytest.raises(DiffPathNotFoundError) as excinfo:
        diff_service.analyze("cpp20", "cpp23")
    assert excinfo.value.source == "cpp20"
    assert excinfo.value.target == "cpp23"


def test_build_summary_without_changes() -> None:
    empty = {key: [] for key in diff_service.DIFF_CATEGORIES}
    assert diff_service.build_summary("cpp11", "cpp14", empty) == "Upgrading from C++11 to C++14: 0 total changes."


def test_load_diff_data_is_memoized() -> None:
    diff_service.clear_diff_cache()
    first = diff_service.load_diff_data("cpp11", "cpp14")
    second = diff_service.load_diff_data("cpp11", "cpp14")

    assert first is second
    assert diff_service.load_diff_data("cpp20", "cpp23") is None
