"""Unit tests for RunStore against a mocked async session.

Total: 17 tests
"""

from __future__ import annotations

from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from bddrunner.core.exceptions import InvalidRunTransition
from bddrunner.core.store import RunStore
from bddrunner.models.project import Project
from bddrunner.models.run import Feature, Run, RunStatus
from bddrunner.schemas.report import Feature as ReportFeature
from bddrunner.schemas.report import Scenario, Step, Summary
from tests.conftest import make_project, make_run, make_session_factory


@pytest.fixture
def store(mock_db: MagicMock) -> RunStore:
    return RunStore(make_session_factory(mock_db))


# ── Projects ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_upsert_project_creates_when_missing(store: RunStore, mock_db):
    mock_db.get.return_value = None

    project = await store.upsert_project("docmind", name="Docmind", repo="Axovia-AI/docmind-ai")

    added = mock_db.add.call_args[0][0]
    assert isinstance(added, Project)
    assert project is added
    assert (added.id, added.name, added.repo) == ("docmind", "Docmind", "Axovia-AI/docmind-ai")
    mock_db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_upsert_project_replaces_existing_fields(store: RunStore, mock_db):
    existing = make_project(name="Old")
    mock_db.get.return_value = existing

    project = await store.upsert_project("docmind", name="New", tags=["smoke"])

    assert project is existing
    assert (project.name, project.tags) == ("New", ["smoke"])
    mock_db.add.assert_not_called()


@pytest.mark.asyncio
async def test_update_missing_project_returns_none(store: RunStore, mock_db):
    mock_db.get.return_value = None

    assert await store.update_project("ghost", name="x") is None
    mock_db.commit.assert_not_awaited()


# ── Runs ──────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_create_run_starts_pending(store: RunStore, mock_db):
    run = await store.create_run(
        project_id="docmind",
        repo="Axovia-AI/docmind-ai",
        tags=["smoke"],
        branch="main",
        make_target="test-acceptance",
    )

    added = mock_db.add.call_args[0][0]
    assert isinstance(added, Run)
    assert run is added
    assert run.status == RunStatus.PENDING.value
    assert run.tags == ["smoke"]
    mock_db.commit.assert_awaited_once()
    mock_db.refresh.assert_awaited_once_with(run)


@pytest.mark.asyncio
async def test_get_run_with_malformed_id_skips_query(store: RunStore, mock_db):
    assert await store.get_run("not-a-uuid") is None
    mock_db.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_get_run_returns_query_result(store: RunStore, mock_db):
    run = make_run()
    result = MagicMock()
    result.scalar_one_or_none.return_value = run
    mock_db.execute.return_value = result

    assert await store.get_run(run.id) is run


@pytest.mark.asyncio
async def test_list_runs_returns_list(store: RunStore, mock_db):
    runs = [make_run(), make_run()]
    result = MagicMock()
    result.scalars.return_value.all.return_value = runs
    mock_db.execute.return_value = result

    assert await store.list_runs(project_id="docmind", limit=2) == runs


@pytest.mark.asyncio
async def test_update_missing_run_returns_none(store: RunStore, mock_db):
    mock_db.get.return_value = None

    assert await store.update_run(str(uuid4()), status=RunStatus.RUNNING) is None


@pytest.mark.asyncio
async def test_mark_running_from_pending(store: RunStore, mock_db):
    run = make_run(status=RunStatus.PENDING)
    mock_db.get.return_value = run

    await store.mark_running(run.id)

    assert run.status == "running"
    mock_db.commit.assert_awaited_once()


@pytest.mark.asyncio
@pytest.mark.parametrize("terminal", [RunStatus.PASSED, RunStatus.FAILED])
async def test_terminal_run_cannot_be_resurrected(store: RunStore, mock_db, terminal: RunStatus):
    run = make_run(status=terminal)
    mock_db.get.return_value = run

    with pytest.raises(InvalidRunTransition):
        await store.mark_running(run.id)

    assert run.status == terminal.value
    mock_db.commit.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("requested", [RunStatus.RUNNING, RunStatus.PENDING])
async def test_running_run_cannot_be_restarted(store: RunStore, mock_db, requested: RunStatus):
    run = make_run(status=RunStatus.RUNNING)
    mock_db.get.return_value = run

    with pytest.raises(InvalidRunTransition):
        await store.update_run(run.id, status=requested)

    assert run.status == "running"
    mock_db.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_running_run_can_finish(store: RunStore, mock_db):
    run = make_run(status=RunStatus.RUNNING)
    mock_db.get.return_value = run

    await store.update_run(run.id, status=RunStatus.PASSED)

    assert run.status == "passed"


@pytest.mark.asyncio
async def test_complete_run_records_summary(store: RunStore, mock_db):
    run = make_run(status=RunStatus.RUNNING)
    mock_db.get.return_value = run

    await store.complete_run(
        run.id,
        status=RunStatus.FAILED,
        duration_ms=1234,
        summary=Summary(passed=3, failed=1, skipped=0, total=4),
    )

    assert run.status == "failed"
    assert run.duration_ms == 1234
    assert run.completed_at is not None
    assert run.summary == {"passed": 3, "failed": 1, "skipped": 0, "total": 4}
    assert run.error_message is None


@pytest.mark.asyncio
async def test_append_features_stores_scenarios_as_json(store: RunStore, mock_db):
    run_id = str(uuid4())
    feature = ReportFeature(
        name="Login",
        scenarios=[
            Scenario(
                name="bad password",
                status="failed",
                steps=[
                    Step(keyword="Given", text="a user", status="passed", duration=1),
                    Step(keyword="Then", text="denied", status="failed", duration=2, error="boom"),
                ],
            )
        ],
    )

    count = await store.append_features(run_id, [feature])

    assert count == 1
    rows = mock_db.add_all.call_args[0][0]
    assert len(rows) == 1
    assert isinstance(rows[0], Feature)
    assert rows[0].run_id == run_id
    steps = rows[0].scenarios[0]["steps"]
    assert "error" not in steps[0]
    assert steps[1]["error"] == "boom"


@pytest.mark.asyncio
async def test_recover_orphaned_runs(store: RunStore, mock_db):
    orphan_ids = [str(uuid4()), str(uuid4())]
    result = MagicMock()
    result.all.return_value = [(i,) for i in orphan_ids]
    mock_db.execute.return_value = result

    assert await store.recover_orphaned_runs() == orphan_ids
    mock_db.commit.assert_awaited_once()
