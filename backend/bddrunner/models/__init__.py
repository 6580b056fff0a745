"""Database models."""

from bddrunner.models.project import Project
from bddrunner.models.run import Feature, Run, RunStatus

__all__ = [
    "Project",
    "Run",
    "RunStatus",
    "Feature",
]
