"""
FastAPI application for practice-engine.

Provides REST API for:
- Practice sessions and attempt recording (maths, quantitative)
- Adaptive question selection and learning gaps
- Per-user adaptive settings
- Question catalog browsing and authoring
- Vocabulary word drill, mastery, streaks and metrics
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from config import get_settings
from src.core.subjects import Subject
from src.db.database import get_engine, init_db
from src.db.models import utcnow

settings = get_settings()


def _check_database_health() -> tuple[str, str | None]:
    """
    Check database connectivity.

    Returns:
        Tuple of (status, error_message). Status is "ok" or "error".
    """
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return "ok", None
    except SQLAlchemyError as e:
        return "error", str(e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    logger.info("Starting practice-engine service...")
    init_db()
    logger.info(f"Service started on {settings.api_host}:{settings.api_port}")

    yield

    # Shutdown
    logger.info("Shutting down practice-engine service...")


app = FastAPI(
    title="Practice Engine",
    description="""
    Quiz practice backend with progress tracking and adaptive selection.

    ## Features

    - **Practice**: Sessions per subtopic; each question answered once per session
    - **Progress**: Topic and subtopic mastery recomputed on session completion
    - **Adaptive Selection**: Next batch ranked by gaps, status, difficulty fit and settings
    - **Learning Gaps**: Concept areas with repeated incorrect answers
    - **Vocabulary**: Four-step word drill with per-word mastery and daily streaks

    ## Practice Flow

    ```
    start session
        ↓ answers (recorded once per question)
    complete session
        ↓ progress upsert
    feedback → learning gaps → next adaptive batch
    ```

    The caller's identity is read from the X-User-Id header set by the auth gateway.
    """,
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ========================================
# Health & Status Endpoints
# ========================================


@app.get("/", tags=["Health"])
def root() -> dict[str, str]:
    """Root endpoint returning service info."""
    return {
        "service": "practice-engine",
        "version": "1.0.0",
        "status": "ok",
    }


@app.get("/health", tags=["Health"])
def health_check() -> dict[str, Any]:
    """Health check with an actual database round trip."""
    db_status, db_error = _check_database_health()

    result: dict[str, Any] = {
        "status": "healthy" if db_status == "ok" else "unhealthy",
        "timestamp": utcnow().isoformat(),
        "components": {"database": db_status},
    }
    if db_error:
        result["errors"] = {"database": db_error}
    return result


@app.get("/config", tags=["Health"])
def get_config() -> dict[str, Any]:
    """Get current configuration (non-sensitive)."""
    return {
        "database_url": settings.database_url.split("@")[-1]
        if "@" in settings.database_url
        else "configured",
        "subjects": [subject.value for subject in Subject],
        "practice": settings.get_practice_config(),
        "gap_policy": settings.get_gap_policy(),
        "adaptive_defaults": settings.get_adaptive_defaults(),
    }


# ========================================
# Import and mount routers
# ========================================

from src.api.routers import (
    adaptive_router,
    catalog_router,
    practice_router,
    settings_router,
    vocabulary_router,
)

app.include_router(settings_router.router, prefix="/api/settings/adaptive", tags=["Settings"])
app.include_router(vocabulary_router.router, prefix="/api/vocabulary", tags=["Vocabulary"])
app.include_router(practice_router.router, prefix="/api/{subject}", tags=["Practice"])
app.include_router(adaptive_router.router, prefix="/api/{subject}/adaptive", tags=["Adaptive Learning"])
app.include_router(catalog_router.router, prefix="/api/{subject}", tags=["Catalog"])
