"""
Request-scoped dependencies shared by the routers.

The upstream auth gateway authenticates the caller and forwards the user id
in a header (``settings.user_id_header``, X-User-Id by default).
"""

from __future__ import annotations

from fastapi import Header, HTTPException

from config import get_settings
from src.core.errors import PracticeError
from src.core.subjects import Subject, SubjectProfile, get_profile
from src.db.database import get_session

settings = get_settings()

__all__ = ["get_session", "get_user_id", "get_subject_profile", "http_error"]


def get_user_id(user_id: str | None = Header(None, alias=settings.user_id_header)) -> str:
    """Authenticated user id; 401 when the gateway did not supply one."""
    if not user_id or not user_id.strip():
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user_id.strip()


def get_subject_profile(subject: Subject) -> SubjectProfile:
    """Profile for the ``{subject}`` path segment."""
    return get_profile(subject)


def http_error(exc: PracticeError) -> HTTPException:
    """Translate a domain error to its HTTP status."""
    return HTTPException(status_code=exc.status_code, detail=exc.message)
