"""Convert Cucumber JSON and JUnit XML reports into the canonical schema.

Both parsers are pure: they take an already-loaded document (a decoded JSON
value or raw XML text) and never touch the filesystem. Missing optional
fields fall back to placeholders or zero instead of raising.
"""

from __future__ import annotations

import math
import xml.etree.ElementTree as ET
from enum import Enum
from typing import Any

from bddrunner.core.exceptions import ReportParseError
from bddrunner.schemas.report import Feature, ParsedReport, Scenario, ScenarioStatus, Step, Summary


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _to_float(value: Any) -> float:
    """Best-effort numeric conversion; anything unparseable counts as zero."""
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def derive_scenario_status(step_statuses: list[str]) -> ScenarioStatus:
    """failed beats skipped/undefined beats passed."""
    if any(s == "failed" for s in step_statuses):
        return "failed"
    if any(s in ("skipped", "undefined") for s in step_statuses):
        return "skipped"
    return "passed"


# ── Cucumber JSON ─────────────────────────────────────────────────────────────


def _cucumber_step(raw: dict[str, Any]) -> Step:
    result = raw.get("result")
    if not isinstance(result, dict):
        result = {}
    status = str(result.get("status") or "skipped")
    error = result.get("error_message") if status == "failed" else None
    return Step(
        keyword=str(raw.get("keyword") or "").strip(),
        text=str(raw.get("name") or ""),
        status=status,
        # Cucumber reports nanoseconds
        duration=_round_half_up(_to_float(result.get("duration")) / 1e6),
        error=str(error) if error else None,
    )


def _cucumber_tags(raw: Any) -> list[str]:
    if not isinstance(raw, list):
        return []
    tags: list[str] = []
    for tag in raw:
        if isinstance(tag, dict) and tag.get("name"):
            tags.append(str(tag["name"]))
        elif isinstance(tag, str):
            tags.append(tag)
    return tags


def parse_cucumber(doc: Any) -> ParsedReport:
    """Parse a decoded Cucumber JSON document.

    Only elements of type ``scenario`` are counted; backgrounds are ignored.
    The summary is incremented exactly once per scenario.
    """
    features: list[Feature] = []
    summary = Summary()

    if not isinstance(doc, list):
        return ParsedReport(features=features, summary=summary)

    for raw_feature in doc:
        if not isinstance(raw_feature, dict):
            continue
        scenarios: list[Scenario] = []
        elements = raw_feature.get("elements")
        for element in elements if isinstance(elements, list) else []:
            if not isinstance(element, dict) or element.get("type") != "scenario":
                continue

            raw_steps = element.get("steps")
            steps = [
                _cucumber_step(s)
                for s in (raw_steps if isinstance(raw_steps, list) else [])
                if isinstance(s, dict)
            ]
            status = derive_scenario_status([s.status for s in steps])
            summary.record(status)

            scenarios.append(
                Scenario(
                    name=str(element.get("name") or "Unnamed Scenario"),
                    status=status,
                    steps=steps,
                    tags=_cucumber_tags(element.get("tags")),
                    duration=sum(s.duration for s in steps),
                )
            )

        features.append(
            Feature(
                name=str(raw_feature.get("name") or "Unnamed Feature"),
                description=str(raw_feature.get("description") or ""),
                scenarios=scenarios,
            )
        )

    return ParsedReport(features=features, summary=summary)


# ── JUnit XML ─────────────────────────────────────────────────────────────────


class SuiteShape(str, Enum):
    """How the test suites are laid out at the top of a JUnit document."""

    SINGLE = "single"  # <testsuite> is the document element
    LIST = "list"  # several sibling <testsuite> elements
    WRAPPED = "wrapped"  # <testsuites><testsuite/>...</testsuites>
    EMPTY = "empty"


_SYNTHETIC_ROOT = "junit-report-root"


def _strip_declaration(xml_text: str) -> str:
    text = xml_text.lstrip("\ufeff").lstrip()
    if text.startswith("<?xml"):
        end = text.find("?>")
        if end != -1:
            text = text[end + 2 :]
    return text


def _load_root(xml_text: str) -> ET.Element:
    """Parse the document, wrapping it when it has several top-level suites."""
    if not xml_text.strip():
        return ET.Element(_SYNTHETIC_ROOT)
    try:
        return ET.fromstring(xml_text)
    except ET.ParseError as first_exc:
        # Sibling <testsuite> elements are not a well-formed document on their own
        try:
            return ET.fromstring(f"<{_SYNTHETIC_ROOT}>{_strip_declaration(xml_text)}</{_SYNTHETIC_ROOT}>")
        except ET.ParseError:
            raise ReportParseError(f"Invalid JUnit XML: {first_exc}") from first_exc


def classify_suites(root: ET.Element) -> tuple[SuiteShape, list[ET.Element]]:
    """Normalize the three top-level layouts into a flat list of suites."""
    if root.tag == "testsuite":
        return SuiteShape.SINGLE, [root]
    if root.tag == "testsuites":
        return SuiteShape.WRAPPED, root.findall("testsuite")
    if root.tag == _SYNTHETIC_ROOT:
        suites: list[ET.Element] = []
        for child in root:
            if child.tag == "testsuite":
                suites.append(child)
            elif child.tag == "testsuites":
                suites.extend(child.findall("testsuite"))
        return (SuiteShape.LIST if suites else SuiteShape.EMPTY), suites
    return SuiteShape.EMPTY, []


def _failure_text(element: ET.Element) -> str:
    message = element.get("message")
    if message:
        return message
    text = (element.text or "").strip()
    return text or "Test failed"


def _junit_scenario(testcase: ET.Element) -> Scenario:
    name = testcase.get("name") or "Unnamed Test"
    failure = testcase.find("failure")
    if failure is None:
        failure = testcase.find("error")

    steps: list[Step] = []
    status: ScenarioStatus
    if failure is not None:
        status = "failed"
        steps.append(
            Step(
                keyword="Then",
                text=testcase.get("name") or "",
                status="failed",
                duration=0,
                error=_failure_text(failure),
            )
        )
    elif testcase.find("skipped") is not None:
        status = "skipped"
    else:
        status = "passed"

    return Scenario(
        name=name,
        status=status,
        steps=steps,
        tags=[],
        duration=_round_half_up(_to_float(testcase.get("time")) * 1000),
    )


def parse_junit(xml_text: str) -> ParsedReport:
    """Parse JUnit XML text.

    Accepts a single ``<testsuite>``, sibling ``<testsuite>`` elements, or a
    ``<testsuites>`` wrapper. Raises :class:`ReportParseError` when the text
    is not XML at all.
    """
    _, suites = classify_suites(_load_root(xml_text))

    features: list[Feature] = []
    summary = Summary()
    for suite in suites:
        scenarios = [_junit_scenario(tc) for tc in suite.findall("testcase")]
        for scenario in scenarios:
            summary.record(scenario.status)
        features.append(
            Feature(
                name=suite.get("name") or "Test Suite",
                description="",
                scenarios=scenarios,
            )
        )

    return ParsedReport(features=features, summary=summary)
