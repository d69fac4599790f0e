"""
Database Utility Functions.

Dialect-aware INSERT builders so conflict handling ("insert or ignore",
"insert or update") is a single atomic statement on both PostgreSQL and
SQLite.
"""
from __future__ import annotations

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session


def dialect_insert(session: Session, model: Any):
    """
    Return an INSERT construct that supports ``on_conflict_do_nothing`` /
    ``on_conflict_do_update`` for the session's backend.

    Raises:
        NotImplementedError: for backends without ON CONFLICT support
    """
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Upserts are not supported on '{dialect}'")


def round_half_up_percent(part: int, whole: int) -> int:
    """100 * part / whole rounded half up, using integer arithmetic. 0 when whole is 0."""
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)
