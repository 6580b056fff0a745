"""Run API endpoints."""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status

from bddrunner.config import settings
from bddrunner.core.executor import run_in_background
from bddrunner.core.log_buffer import LogStore, get_log_store
from bddrunner.core.store import RunStore, get_run_store
from bddrunner.models.run import Run, RunStatus
from bddrunner.schemas.run import (
    RunCreate,
    RunCreatedResponse,
    RunDetailResponse,
    RunLogsResponse,
    RunResponse,
)

router = APIRouter()


@router.post("", response_model=RunCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_run(
    run_in: RunCreate,
    background_tasks: BackgroundTasks,
    store: RunStore = Depends(get_run_store),
) -> RunCreatedResponse:
    """Record a pending run and start executing it in the background."""
    project = await store.get_project(run_in.project_id)
    if not project:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Project not found",
        )

    run = await store.create_run(
        project_id=project.id,
        repo=run_in.repo or project.repo,
        tags=run_in.tags,
        branch=run_in.branch or settings.default_branch,
        make_target=run_in.make_target or project.make_target or settings.default_make_target,
    )

    # Execution is not awaited; the response only promises the run exists
    background_tasks.add_task(run_in_background, str(run.id))

    return RunCreatedResponse(run_id=str(run.id), status=RunStatus.PENDING)


@router.get("", response_model=list[RunResponse])
async def list_runs(
    project_id: str | None = None,
    limit: int = Query(50, ge=1, le=200),
    store: RunStore = Depends(get_run_store),
) -> list[Run]:
    """List runs newest first, optionally for one project."""
    return await store.list_runs(project_id=project_id, limit=limit)


@router.get("/{run_id}", response_model=RunDetailResponse)
async def get_run(
    run_id: str,
    store: RunStore = Depends(get_run_store),
) -> Run:
    """Get a run with its features."""
    run = await store.get_run(run_id)
    if not run:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Run not found",
        )
    return run


@router.get("/{run_id}/logs", response_model=RunLogsResponse)
async def get_run_logs(
    run_id: str,
    offset: int = Query(0, ge=0),
    logs: LogStore = Depends(get_log_store),
) -> RunLogsResponse:
    """Log lines from ``offset`` onward; poll again with the returned total."""
    chunk = logs.read(run_id, offset)
    return RunLogsResponse(logs=chunk.lines, total=chunk.total)
