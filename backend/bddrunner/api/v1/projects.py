"""Project API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status

from bddrunner.core.store import RunStore, get_run_store
from bddrunner.models.project import Project
from bddrunner.schemas.project import ProjectResponse, ProjectUpdate, ProjectUpsert
from bddrunner.seed import seed_projects

router = APIRouter()


@router.get("", response_model=list[ProjectResponse])
async def list_projects(
    store: RunStore = Depends(get_run_store),
) -> list[Project]:
    """List all projects."""
    return await store.list_projects()


@router.post("/seed")
async def seed(
    store: RunStore = Depends(get_run_store),
) -> dict[str, int | bool]:
    """Insert or replace the default projects."""
    count = await seed_projects(store)
    return {"ok": True, "count": count}


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: str,
    store: RunStore = Depends(get_run_store),
) -> Project:
    """Get a specific project by ID."""
    project = await store.get_project(project_id)
    if not project:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Project not found",
        )
    return project


@router.put("/{project_id}", response_model=ProjectResponse)
async def upsert_project(
    project_id: str,
    project_in: ProjectUpsert,
    store: RunStore = Depends(get_run_store),
) -> Project:
    """Create or replace a project under the given id."""
    return await store.upsert_project(project_id, **project_in.model_dump())


@router.patch("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: str,
    project_in: ProjectUpdate,
    store: RunStore = Depends(get_run_store),
) -> Project:
    """Update a project."""
    update_data = project_in.model_dump(exclude_unset=True)
    project = await store.update_project(project_id, **update_data)
    if not project:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Project not found",
        )
    return project
