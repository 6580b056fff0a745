"""Pydantic schemas for API validation."""

from bddrunner.schemas.project import (
    ProjectResponse,
    ProjectUpdate,
    ProjectUpsert,
)
from bddrunner.schemas.report import (
    Feature,
    ParsedReport,
    Scenario,
    Step,
    Summary,
)
from bddrunner.schemas.run import (
    FeatureResponse,
    RunCreate,
    RunCreatedResponse,
    RunDetailResponse,
    RunLogsResponse,
    RunResponse,
)

__all__ = [
    "ProjectUpsert",
    "ProjectUpdate",
    "ProjectResponse",
    "Step",
    "Scenario",
    "Feature",
    "Summary",
    "ParsedReport",
    "RunCreate",
    "RunCreatedResponse",
    "RunResponse",
    "RunDetailResponse",
    "FeatureResponse",
    "RunLogsResponse",
]
