"""Pydantic schemas for Run."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from bddrunner.models.run import RunStatus
from bddrunner.schemas.report import Summary


class RunCreate(BaseModel):
    """Schema for requesting a run.

    ``repo`` and ``make_target`` default to the project's configuration.
    """

    project_id: str = Field(..., min_length=1)
    repo: str | None = None
    tags: list[str] = Field(default_factory=list)
    branch: str | None = None
    make_target: str | None = None


class RunCreatedResponse(BaseModel):
    """Returned as soon as the pending run exists."""

    run_id: str
    status: RunStatus


class FeatureResponse(BaseModel):
    """Schema for a stored feature."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    scenarios: list[dict[str, Any]]


class RunResponse(BaseModel):
    """Schema for run list entries (features are not loaded)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    repo: str
    tags: list[str]
    branch: str
    make_target: str
    status: RunStatus
    created_at: datetime
    completed_at: datetime | None
    duration_ms: int
    summary: Summary
    error_message: str | None


class RunDetailResponse(RunResponse):
    """Schema for a single run with its features."""

    features: list[FeatureResponse] = Field(default_factory=list)


class RunLogsResponse(BaseModel):
    """A slice of a run's log starting at the requested offset."""

    logs: list[str]
    total: int
