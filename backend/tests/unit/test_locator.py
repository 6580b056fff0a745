"""Unit tests for report discovery in a cloned repository tree.

Total: 10 tests
"""

from __future__ import annotations

import json
from pathlib import Path

from bddrunner.core.locator import (
    ReportFormat,
    discover_report,
    find_cucumber_report,
    find_files,
    find_junit_reports,
)

CUCUMBER_DOC = [
    {
        "name": "Checkout",
        "elements": [
            {"type": "scenario", "name": "pay", "steps": [{"keyword": "When", "name": "x", "result": {"status": "passed"}}]},
        ],
    }
]

JUNIT_DOC = '<testsuite name="S"><testcase name="a"/><testcase name="b"><failure message="boom"/></testcase></testsuite>'


def _write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def test_cucumber_preferred_over_junit(tmp_path: Path):
    _write(tmp_path / "reports" / "a-junit.xml", JUNIT_DOC)
    _write(tmp_path / "reports" / "z-cucumber.json", json.dumps(CUCUMBER_DOC))

    found = discover_report(tmp_path)

    assert found is not None
    assert found.format is ReportFormat.CUCUMBER
    assert found.path.name == "z-cucumber.json"
    assert found.report.features[0].name == "Checkout"


def test_junit_used_when_no_cucumber(tmp_path: Path):
    _write(tmp_path / "package.json", json.dumps({"name": "app", "scripts": {}}))
    _write(tmp_path / "build" / "results.xml", JUNIT_DOC)

    found = discover_report(tmp_path)

    assert found is not None
    assert found.format is ReportFormat.JUNIT
    assert found.report.summary.total == 2


def test_nothing_usable_returns_none(tmp_path: Path):
    _write(tmp_path / "pom.xml", "<project><modelVersion>4.0.0</modelVersion></project>")
    _write(tmp_path / "data.json", "[1, 2, 3]")

    assert discover_report(tmp_path) is None


def test_excluded_directories_are_pruned(tmp_path: Path):
    _write(tmp_path / "node_modules" / "pkg" / "cucumber.json", json.dumps(CUCUMBER_DOC))
    _write(tmp_path / ".git" / "junit.xml", JUNIT_DOC)

    assert list(find_files(tmp_path, ".json")) == []
    assert discover_report(tmp_path) is None


def test_malformed_json_is_skipped(tmp_path: Path):
    _write(tmp_path / "a.json", "[{\"elements\": [")
    good = _write(tmp_path / "b.json", json.dumps(CUCUMBER_DOC))

    assert find_cucumber_report(tmp_path) == (good, CUCUMBER_DOC)


def test_deeply_nested_json_is_skipped(tmp_path: Path):
    depth = 200_000
    _write(tmp_path / "a_deep.json", "[" * depth + "]" * depth)
    _write(tmp_path / "b_report.json", json.dumps(CUCUMBER_DOC))

    found = discover_report(tmp_path)

    assert found is not None
    assert found.format is ReportFormat.CUCUMBER
    assert found.path.name == "b_report.json"


def test_unparseable_junit_falls_through_to_next(tmp_path: Path):
    _write(tmp_path / "a.xml", "<testsuite name='broken'><testcase>")
    _write(tmp_path / "b.xml", JUNIT_DOC)

    found = discover_report(tmp_path)

    assert found is not None
    assert found.path.name == "b.xml"


def test_junit_candidates_need_marker(tmp_path: Path):
    _write(tmp_path / "config.xml", "<configuration/>")
    suite = _write(tmp_path / "TEST-suite.xml", JUNIT_DOC)

    assert list(find_junit_reports(tmp_path)) == [suite]


def test_walk_order_is_stable(tmp_path: Path):
    for name in ("c.json", "a.json", "b.json"):
        _write(tmp_path / name, "{}")
    _write(tmp_path / "sub" / "d.json", "{}")

    names = [p.name for p in find_files(tmp_path, ".json")]

    assert names == ["a.json", "b.json", "c.json", "d.json"]


def test_missing_root_yields_nothing(tmp_path: Path):
    assert discover_report(tmp_path / "does-not-exist") is None
