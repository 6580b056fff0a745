"""Find a usable test report inside a cloned repository.

This is a best-effort heuristic: files are sniffed, not schema-validated, and
when nothing usable turns up the executor falls back to the exit code.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from bddrunner.core.exceptions import ReportParseError
from bddrunner.core.parsers import parse_cucumber, parse_junit
from bddrunner.schemas.report import ParsedReport

logger = logging.getLogger(__name__)

EXCLUDED_DIRS = frozenset({
    "node_modules",
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    ".tox",
    "__pycache__",
})

JUNIT_MARKER = "<testsuite"


class ReportFormat(str, Enum):
    CUCUMBER = "cucumber"
    JUNIT = "junit"


@dataclass
class DiscoveredReport:
    """A parsed report and where it came from."""

    format: ReportFormat
    path: Path
    report: ParsedReport


def find_files(root: str | Path, extension: str, exclude_dirs: frozenset[str] = EXCLUDED_DIRS) -> Iterator[Path]:
    """Yield files under *root* ending in *extension*, in a stable order.

    Excluded directories are pruned by name at any depth. Unreadable
    directories are skipped.
    """
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in exclude_dirs)
        for filename in sorted(filenames):
            if filename.endswith(extension):
                yield Path(dirpath) / filename


def _load_cucumber(path: Path) -> list | None:
    """Return the decoded document if it looks like Cucumber JSON."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError, RecursionError):
        # ValueError covers JSONDecodeError and UnicodeDecodeError
        return None
    if isinstance(data, list) and data and isinstance(data[0], dict) and "elements" in data[0]:
        return data
    return None


def find_cucumber_report(root: str | Path) -> tuple[Path, list] | None:
    """First ``.json`` file whose top level is a list of feature-like records.

    Returns the path together with the decoded document.
    """
    for path in find_files(root, ".json"):
        doc = _load_cucumber(path)
        if doc is not None:
            return path, doc
    return None


def find_junit_reports(root: str | Path) -> Iterator[Path]:
    """``.xml`` files that mention a JUnit test suite, in walk order."""
    for path in find_files(root, ".xml"):
        try:
            content = path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            continue
        if JUNIT_MARKER in content:
            yield path


def discover_report(root: str | Path) -> DiscoveredReport | None:
    """Locate and parse the preferred report under *root*.

    Cucumber JSON wins over JUnit XML. Only one file is ever used; reports are
    not merged. A JUnit candidate that fails to parse is skipped in favour of
    the next one. Returns None when nothing usable exists.
    """
    cucumber = find_cucumber_report(root)
    if cucumber is not None:
        path, doc = cucumber
        logger.info("locator: using Cucumber JSON report %s", path)
        return DiscoveredReport(ReportFormat.CUCUMBER, path, parse_cucumber(doc))

    for path in find_junit_reports(root):
        try:
            report = parse_junit(path.read_text(encoding="utf-8", errors="replace"))
        except (OSError, ReportParseError) as exc:
            logger.warning("locator: skipping unparseable JUnit report %s: %s", path, exc)
            continue
        logger.info("locator: using JUnit XML report %s", path)
        return DiscoveredReport(ReportFormat.JUNIT, path, report)

    return None
