"""API routers for practice-engine."""

from src.api.routers import (
    adaptive_router,
    catalog_router,
    practice_router,
    settings_router,
    vocabulary_router,
)

__all__ = [
    "practice_router",
    "adaptive_router",
    "settings_router",
    "catalog_router",
    "vocabulary_router",
]
