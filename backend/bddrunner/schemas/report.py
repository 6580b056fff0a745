"""Canonical feature/scenario/step schema shared by every report format."""

from typing import Literal

from pydantic import BaseModel, Field

ScenarioStatus = Literal["passed", "failed", "skipped"]


class Step(BaseModel):
    """One executable instruction within a scenario."""

    keyword: str = ""
    text: str = ""
    status: str = "skipped"
    duration: int = 0
    error: str | None = None


class Scenario(BaseModel):
    """One test case."""

    name: str
    status: ScenarioStatus
    steps: list[Step] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    duration: int = 0


class Feature(BaseModel):
    """A named group of scenarios."""

    name: str
    description: str = ""
    scenarios: list[Scenario] = Field(default_factory=list)


class Summary(BaseModel):
    """Scenario counts by status. ``total`` always equals the sum of the others."""

    passed: int = 0
    failed: int = 0
    skipped: int = 0
    total: int = 0

    def record(self, status: ScenarioStatus) -> None:
        """Count one scenario with the given status."""
        if status == "passed":
            self.passed += 1
        elif status == "failed":
            self.failed += 1
        else:
            self.skipped += 1
        self.total += 1


class ParsedReport(BaseModel):
    """Features plus summary, as produced by a parser or the exit-code fallback."""

    features: list[Feature] = Field(default_factory=list)
    summary: Summary = Field(default_factory=Summary)
