"""API v1 module."""

from fastapi import APIRouter

from bddrunner.api.v1.projects import router as projects_router
from bddrunner.api.v1.runs import router as runs_router

router = APIRouter()

router.include_router(projects_router, prefix="/projects", tags=["Projects"])
router.include_router(runs_router, prefix="/runs", tags=["Runs"])
