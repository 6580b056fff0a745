"""Shared pytest fixtures for the BDD test runner backend tests."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, AsyncGenerator
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from bddrunner.core.log_buffer import InMemoryLogBuffer, get_log_store
from bddrunner.core.store import get_run_store
from bddrunner.main import app
from bddrunner.models.project import Project
from bddrunner.models.run import Feature, Run, RunStatus


# ── ORM object helpers ────────────────────────────────────────────────────────

def _now() -> datetime:
    return datetime.now(timezone.utc)


def make_project(
    *,
    project_id: str = "docmind",
    name: str = "Docmind",
    repo: str = "Axovia-AI/docmind-ai",
    make_target: str = "test-acceptance",
    tags: list[str] | None = None,
) -> Project:
    """Create a transient Project with every response field populated."""
    return Project(
        id=project_id,
        name=name,
        description=None,
        color="#3b82f6",
        repo=repo,
        make_target=make_target,
        tags=tags or [],
        created_at=_now(),
        updated_at=_now(),
    )


def make_run(
    *,
    run_id: str | None = None,
    project_id: str = "docmind",
    status: RunStatus = RunStatus.PENDING,
    features: list[Feature] | None = None,
    **fields: Any,
) -> Run:
    """Create a transient Run with every response field populated."""
    values: dict[str, Any] = {
        "repo": "Axovia-AI/docmind-ai",
        "tags": [],
        "branch": "main",
        "make_target": "test-acceptance",
        "completed_at": None,
        "duration_ms": 0,
        "total_tests": 0,
        "passed_tests": 0,
        "failed_tests": 0,
        "skipped_tests": 0,
        "error_message": None,
    }
    values.update(fields)
    run = Run(
        id=run_id or str(uuid4()),
        project_id=project_id,
        status=status.value,
        created_at=_now(),
        updated_at=_now(),
        **values,
    )
    run.features = features or []
    return run


# ── Store / session mocks ─────────────────────────────────────────────────────

def make_session_factory(session: MagicMock) -> MagicMock:
    """Wrap *session* so ``async with factory() as db`` yields it."""
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=session)
    ctx.__aexit__ = AsyncMock(return_value=None)
    return MagicMock(return_value=ctx)


@pytest.fixture
def mock_db() -> MagicMock:
    """Return a mock async SQLAlchemy session."""
    session = MagicMock()
    session.execute = AsyncMock()
    session.get = AsyncMock(return_value=None)
    session.add = MagicMock()
    session.add_all = MagicMock()
    session.commit = AsyncMock()
    session.refresh = AsyncMock()
    return session


@pytest.fixture
def mock_store() -> MagicMock:
    """A RunStore stand-in whose operations are all AsyncMocks."""
    store = MagicMock()
    for name in (
        "list_projects",
        "get_project",
        "upsert_project",
        "update_project",
        "create_run",
        "get_run",
        "list_runs",
        "update_run",
        "mark_running",
        "complete_run",
        "append_features",
        "recover_orphaned_runs",
    ):
        setattr(store, name, AsyncMock())
    return store


@pytest.fixture
def log_store() -> InMemoryLogBuffer:
    return InMemoryLogBuffer(max_lines=100)


@pytest.fixture
def started_runs(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    """Replace background execution with a recorder of submitted run ids."""
    submitted: list[str] = []

    async def fake_run_in_background(run_id: str) -> None:
        submitted.append(run_id)

    monkeypatch.setattr("bddrunner.api.v1.runs.run_in_background", fake_run_in_background)
    return submitted


@pytest.fixture
async def client(
    mock_store: MagicMock,
    log_store: InMemoryLogBuffer,
    started_runs: list[str],
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP test client with the store and log buffer overridden."""
    app.dependency_overrides[get_run_store] = lambda: mock_store
    app.dependency_overrides[get_log_store] = lambda: log_store

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
