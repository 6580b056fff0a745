"""Run and feature models."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bddrunner.db.base import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from bddrunner.models.project import Project


class RunStatus(str, Enum):
    """Lifecycle status of a run."""

    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.PASSED, RunStatus.FAILED)


class Run(Base, UUIDMixin, TimestampMixin):
    """One execution attempt of a project's make target."""

    __tablename__ = "runs"
    __table_args__ = (
        Index("ix_runs_project_id", "project_id"),
        Index("ix_runs_created_at", "created_at"),
    )

    project_id: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Request
    repo: Mapped[str] = mapped_column(String(500), nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)
    branch: Mapped[str] = mapped_column(String(255), default="main")
    make_target: Mapped[str] = mapped_column(String(255), default="test-acceptance")

    status: Mapped[RunStatus] = mapped_column(
        String(20),
        default=RunStatus.PENDING,
    )

    # Timing
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    duration_ms: Mapped[int] = mapped_column(Integer, default=0)

    # Results summary
    total_tests: Mapped[int] = mapped_column(Integer, default=0)
    passed_tests: Mapped[int] = mapped_column(Integer, default=0)
    failed_tests: Mapped[int] = mapped_column(Integer, default=0)
    skipped_tests: Mapped[int] = mapped_column(Integer, default=0)

    # Error info
    error_message: Mapped[str | None] = mapped_column(Text)

    # Relationships
    project: Mapped["Project"] = relationship("Project", back_populates="runs")
    features: Mapped[list["Feature"]] = relationship(
        "Feature",
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="Feature.id",
    )

    @property
    def summary(self) -> dict[str, int]:
        return {
            "passed": self.passed_tests or 0,
            "failed": self.failed_tests or 0,
            "skipped": self.skipped_tests or 0,
            "total": self.total_tests or 0,
        }

    def __repr__(self) -> str:
        return f"<Run(id={self.id}, status={self.status})>"


class Feature(Base):
    """A group of scenarios reported for one run.

    Scenarios and their steps are stored as a JSON blob; they are only ever
    read back together with the feature.
    """

    __tablename__ = "features"
    __table_args__ = (Index("ix_features_run_id", "run_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("runs.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    scenarios: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)

    # Relationships
    run: Mapped["Run"] = relationship("Run", back_populates="features")

    def __repr__(self) -> str:
        return f"<Feature(id={self.id}, name={self.name})>"
