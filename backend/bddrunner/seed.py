"""Default projects loaded by ``POST /api/v1/projects/seed``."""

from __future__ import annotations

import logging
from typing import Any

from bddrunner.core.store import RunStore

logger = logging.getLogger(__name__)

DEFAULT_PROJECTS: list[dict[str, Any]] = [
    {
        "id": "docmind",
        "name": "Docmind",
        "repo": "Axovia-AI/docmind-ai",
        "make_target": "test-acceptance",
        "color": "#3b82f6",
        "description": "AI-powered document management and analysis platform",
        "tags": ["smoke", "upload", "security", "ai", "ocr", "classification", "search", "filter", "bulk"],
    },
    {
        "id": "flipper-ai",
        "name": "Flipper AI",
        "repo": "AXOVIA-ASPEN/flipper-ai",
        "make_target": "test-acceptance",
        "color": "#8b5cf6",
        "description": "Intelligent flashcard learning with AI-driven spaced repetition",
        "tags": ["smoke", "animation", "core", "mobile", "ai", "scheduling", "adaptive", "crud", "import", "csv"],
    },
    {
        "id": "real-random-portal",
        "name": "Real Random Portal",
        "repo": "Silverline-Software/real-random-portal",
        "make_target": "test-acceptance",
        "color": "#10b981",
        "description": "True random number generation API and developer portal",
        "tags": ["smoke", "api", "core", "security", "ratelimit", "portal", "registration", "apikey", "analytics"],
    },
]


async def seed_projects(store: RunStore, projects: list[dict[str, Any]] | None = None) -> int:
    """Insert or replace the default projects. Returns how many were written."""
    projects = DEFAULT_PROJECTS if projects is None else projects
    for data in projects:
        fields = {k: v for k, v in data.items() if k != "id"}
        await store.upsert_project(data["id"], **fields)
    logger.info("seed: seeded %d projects", len(projects))
    return len(projects)
