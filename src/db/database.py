from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager, nullcontext
from typing import Any

from loguru import logger
from sqlalchemy import create_engine, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from config import get_settings
from src.db.models.base import Base

settings = get_settings()


def _engine_options(url: str) -> dict[str, Any]:
    """Engine keyword arguments for the configured backend."""
    options: dict[str, Any] = {"echo": settings.database_echo or settings.log_level == "DEBUG"}
    if url.startswith("sqlite"):
        # One shared connection so an in-memory database survives across sessions
        options["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url.rstrip("/") in ("sqlite:", "sqlite+pysqlite:"):
            options["poolclass"] = StaticPool
    else:
        options["pool_pre_ping"] = True
    return options


engine = create_engine(settings.database_url, **_engine_options(settings.database_url))
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def get_engine() -> Engine:
    """Get the database engine."""
    return engine


def init_db() -> None:
    """Initialize database tables."""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables initialized")


def drop_db() -> None:
    """Drop every table owned by the models. Used by tests and the CLI reset command."""
    Base.metadata.drop_all(bind=engine)
    logger.warning("Database tables dropped")


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Provide a transactional scope around a series of operations."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:  # Intentionally broad - rollback on any error before re-raising
        session.rollback()
        raise
    finally:
        session.close()


def get_session() -> Generator[Session, None, None]:
    """FastAPI dependency for database sessions."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


# Alias for compatibility
get_db = get_session


def use_session(session: Session | None):
    """
    Context manager over a caller-owned session, or a fresh ``session_scope()``.

    Services accept an optional session (the request's, in the API) and fall
    back to their own transactional scope when run from the CLI.
    """
    if session is not None:
        return nullcontext(session)
    return session_scope()


# --------------------------------------------------
# Data integrity validation
# Validates stored session aggregates match their attempts. Run via CLI or tests.
# --------------------------------------------------
def validate_session_aggregates() -> dict[str, Any]:
    """
    Validate test_sessions.total_questions matches the distinct attempted question count.

    Returns dict with:
        - valid: bool - True if all counts match
        - mismatches: list of {session_id, claimed, actual} for any mismatches
        - error: str if validation failed to run
    """
    from sqlalchemy.exc import SQLAlchemyError

    from src.db.models import QuestionAttempt, TestSession

    actual_counts = (
        select(
            QuestionAttempt.test_session_id.label("session_id"),
            func.count(func.distinct(QuestionAttempt.question_id)).label("actual"),
        )
        .group_by(QuestionAttempt.test_session_id)
        .subquery()
    )
    query = (
        select(TestSession.id, TestSession.total_questions, func.coalesce(actual_counts.c.actual, 0))
        .outerjoin(actual_counts, actual_counts.c.session_id == TestSession.id)
        .where(TestSession.total_questions != func.coalesce(actual_counts.c.actual, 0))
    )
    try:
        with engine.connect() as conn:
            mismatches = [
                {"session_id": row[0], "claimed": row[1], "actual": row[2]}
                for row in conn.execute(query).fetchall()
            ]
        return {"valid": len(mismatches) == 0, "mismatches": mismatches}
    except SQLAlchemyError as e:
        logger.warning(f"Session aggregate validation failed: {e}")
        return {"valid": False, "error": str(e), "mismatches": []}
