"""Project model for test suite owners."""

from typing import TYPE_CHECKING

from sqlalchemy import JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bddrunner.db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from bddrunner.models.run import Run


class Project(Base, TimestampMixin):
    """A project whose acceptance suite can be run.

    The id is a stable slug chosen when the project is seeded. ``color`` is
    only carried through for presentation.
    """

    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    color: Mapped[str | None] = mapped_column(String(32))
    repo: Mapped[str] = mapped_column(String(500), nullable=False)
    make_target: Mapped[str] = mapped_column(String(255), default="test-acceptance")
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)

    # Relationships
    runs: Mapped[list["Run"]] = relationship(
        "Run",
        back_populates="project",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, name={self.name})>"
