"""Durable record of projects, runs and their features."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import select, update as sa_update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from bddrunner.core.exceptions import InvalidRunTransition
from bddrunner.models.project import Project
from bddrunner.models.run import Feature, Run, RunStatus
from bddrunner.schemas.report import Feature as ReportFeature
from bddrunner.schemas.report import Summary

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50


def _is_uuid(value: str) -> bool:
    try:
        UUID(str(value))
    except ValueError:
        return False
    return True


class RunStore:
    """Run-id keyed persistence operations.

    Every method opens its own session, so one store can be shared by the
    request handlers and any number of concurrent executors.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    # ── Projects ──────────────────────────────────────────────────────────────

    async def list_projects(self) -> list[Project]:
        async with self._session_factory() as db:
            result = await db.execute(select(Project).order_by(Project.name))
            return list(result.scalars().all())

    async def get_project(self, project_id: str) -> Project | None:
        async with self._session_factory() as db:
            return await db.get(Project, project_id)

    async def upsert_project(self, project_id: str, **fields: Any) -> Project:
        """Create the project or replace its fields."""
        async with self._session_factory() as db:
            project = await db.get(Project, project_id)
            if project is None:
                project = Project(id=project_id, **fields)
                db.add(project)
            else:
                for field, value in fields.items():
                    setattr(project, field, value)
            await db.commit()
            await db.refresh(project)
            return project

    async def update_project(self, project_id: str, **fields: Any) -> Project | None:
        async with self._session_factory() as db:
            project = await db.get(Project, project_id)
            if project is None:
                return None
            for field, value in fields.items():
                setattr(project, field, value)
            await db.commit()
            await db.refresh(project)
            return project

    # ── Runs ──────────────────────────────────────────────────────────────────

    async def create_run(
        self,
        *,
        project_id: str,
        repo: str,
        tags: list[str],
        branch: str,
        make_target: str,
    ) -> Run:
        """Insert a new run in ``pending`` state."""
        async with self._session_factory() as db:
            run = Run(
                project_id=project_id,
                repo=repo,
                tags=list(tags),
                branch=branch,
                make_target=make_target,
                status=RunStatus.PENDING.value,
            )
            db.add(run)
            await db.commit()
            await db.refresh(run)
            return run

    async def get_run(self, run_id: str) -> Run | None:
        """Run with its features, or None."""
        if not _is_uuid(run_id):
            return None
        async with self._session_factory() as db:
            result = await db.execute(
                select(Run)
                .where(Run.id == run_id)
                .options(selectinload(Run.features))
            )
            return result.scalar_one_or_none()

    async def list_runs(
        self,
        project_id: str | None = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> list[Run]:
        """Newest first, optionally for one project (features not loaded)."""
        query = select(Run)
        if project_id:
            query = query.where(Run.project_id == project_id)
        async with self._session_factory() as db:
            result = await db.execute(
                query.order_by(Run.created_at.desc()).limit(limit)
            )
            return list(result.scalars().all())

    async def update_run(self, run_id: str, **fields: Any) -> Run | None:
        """Patch run fields.

        Raises InvalidRunTransition when a non-terminal status is requested for
        a run that has already left ``pending``.
        """
        async with self._session_factory() as db:
            run = await db.get(Run, run_id)
            if run is None:
                return None

            requested = fields.get("status")
            if requested is not None:
                current = RunStatus(run.status)
                requested = RunStatus(requested)
                if not requested.is_terminal and current is not RunStatus.PENDING:
                    raise InvalidRunTransition(run_id, current.value, requested.value)
                fields["status"] = requested.value

            for field, value in fields.items():
                setattr(run, field, value)
            await db.commit()
            return run

    async def mark_running(self, run_id: str) -> Run | None:
        return await self.update_run(run_id, status=RunStatus.RUNNING)

    async def complete_run(
        self,
        run_id: str,
        *,
        status: RunStatus,
        duration_ms: int,
        summary: Summary | None = None,
        error_message: str | None = None,
    ) -> Run | None:
        """Move a run to its terminal status."""
        fields: dict[str, Any] = {
            "status": status,
            "duration_ms": duration_ms,
            "completed_at": datetime.now(timezone.utc),
        }
        if summary is not None:
            fields.update(
                passed_tests=summary.passed,
                failed_tests=summary.failed,
                skipped_tests=summary.skipped,
                total_tests=summary.total,
            )
        if error_message is not None:
            fields["error_message"] = error_message
        return await self.update_run(run_id, **fields)

    async def append_features(self, run_id: str, features: list[ReportFeature]) -> int:
        """Insert all features of a run in one transaction."""
        async with self._session_factory() as db:
            db.add_all([
                Feature(
                    run_id=run_id,
                    name=f.name,
                    description=f.description or "",
                    scenarios=[s.model_dump(mode="json", exclude_none=True) for s in f.scenarios],
                )
                for f in features
            ])
            await db.commit()
        return len(features)

    async def recover_orphaned_runs(self) -> list[str]:
        """Fail runs a previous process left pending or running."""
        async with self._session_factory() as db:
            result = await db.execute(
                sa_update(Run)
                .where(Run.status.in_([RunStatus.PENDING.value, RunStatus.RUNNING.value]))
                .values(
                    status=RunStatus.FAILED.value,
                    error_message="Server restarted during run",
                    completed_at=datetime.now(timezone.utc),
                )
                .returning(Run.id)
            )
            run_ids = [str(r[0]) for r in result.all()]
            await db.commit()

        if run_ids:
            logger.warning("store: recovered %d orphaned run(s): %s", len(run_ids), run_ids)
        return run_ids


def get_run_store() -> RunStore:
    """Dependency that provides a store bound to the application database."""
    from bddrunner.db.session import async_session_factory

    return RunStore(async_session_factory)
