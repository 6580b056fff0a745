"""Pydantic schemas for Project."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ProjectBase(BaseModel):
    """Base schema for Project."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    color: str | None = Field(None, max_length=32)
    repo: str = Field(..., min_length=1, max_length=500)
    make_target: str = Field("test-acceptance", min_length=1, max_length=255)
    tags: list[str] = Field(default_factory=list)


class ProjectUpsert(ProjectBase):
    """Schema for creating or replacing a project under a known id."""

    pass


class ProjectUpdate(BaseModel):
    """Schema for updating a project."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    color: str | None = Field(None, max_length=32)
    repo: str | None = Field(None, min_length=1, max_length=500)
    make_target: str | None = Field(None, min_length=1, max_length=255)
    tags: list[str] | None = None


class ProjectResponse(ProjectBase):
    """Schema for project response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime
    updated_at: datetime
