"""FastAPI application entry point."""

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, HTTPException, Query, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.requests import Request
from sqlalchemy import text

from bddrunner.api.v1 import router as api_v1_router
from bddrunner.config import settings
from bddrunner.core.log_buffer import get_log_store
from bddrunner.core.store import get_run_store
from bddrunner.db.session import engine, init_db
from bddrunner.ws import ws_run_logs_endpoint

logger = logging.getLogger("bddrunner.main")


def configure_logging() -> None:
    """Install a stream handler at the configured level (no-op if already configured)."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan context manager."""
    # Startup
    configure_logging()
    await init_db()
    # Runs are not resumed across restarts
    await get_run_store().recover_orphaned_runs()
    yield
    # Shutdown
    await engine.dispose()


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Runs BDD acceptance suites and normalizes their reports",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    cors_kw: dict[str, Any] = {
        "allow_origins": list(settings.cors_origins),
        "allow_credentials": True,
        "allow_methods": ["*"],
        "allow_headers": ["*"],
    }
    if settings.environment == "development":
        cors_kw["allow_origin_regex"] = r"http://(localhost|127\.0\.0\.1)(:\d+)?"
    app.add_middleware(CORSMiddleware, **cors_kw)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> Response:
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> Response:
        """Return JSON 500 instead of a bare traceback."""
        logger.exception("Unhandled exception: %s", exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    # Health check endpoint
    @app.get("/health", tags=["Health"])
    async def health_check() -> dict[str, Any]:
        """Health check endpoint with a real DB connectivity check."""
        result: dict[str, Any] = {
            "status": "healthy",
            "version": settings.app_version,
            "services": {},
        }

        try:
            start = time.monotonic()
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            db_latency_ms = round((time.monotonic() - start) * 1000, 2)
            result["services"]["database"] = {
                "status": "healthy",
                "latency_ms": db_latency_ms,
            }
        except Exception as exc:
            result["services"]["database"] = {
                "status": "unhealthy",
                "error": str(exc),
            }
            result["status"] = "degraded"

        return result

    # WebSocket endpoint for live run logs
    @app.websocket("/ws/runs/{run_id}/logs")
    async def ws_run_logs(websocket: WebSocket, run_id: str, offset: int = Query(0, ge=0)) -> None:
        await ws_run_logs_endpoint(websocket, run_id, get_log_store(), offset)

    # Include API routers
    app.include_router(api_v1_router, prefix="/api/v1")

    return app


app = create_application()
