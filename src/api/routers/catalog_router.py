"""
Catalog API Router.

Topics, subtopics and questions of one subject, with the caller's progress.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from sqlalchemy.orm import Session

from src.api.deps import get_session, get_subject_profile, get_user_id, http_error
from src.core.errors import PracticeError
from src.core.subjects import SubjectProfile
from src.practice import CatalogService, QuestionCreate

router = APIRouter()


@router.get("/topics", summary="List topics")
def list_topics(
    user_id: str = Depends(get_user_id),
    profile: SubjectProfile = Depends(get_subject_profile),
    db: Session = Depends(get_session),
) -> list[dict[str, Any]]:
    try:
        return CatalogService(profile, db).list_topics(user_id)
    except Exception as exc:
        logger.exception(f"Failed to list {profile.subject.value} topics")
        raise HTTPException(status_code=500, detail=str(exc))


@router.get("/topics/{topic_id}/subtopics", summary="List subtopics")
def list_subtopics(
    topic_id: int,
    user_id: str = Depends(get_user_id),
    profile: SubjectProfile = Depends(get_subject_profile),
    db: Session = Depends(get_session),
) -> list[dict[str, Any]]:
    try:
        return CatalogService(profile, db).list_subtopics(user_id, topic_id)
    except PracticeError as exc:
        raise http_error(exc)
    except Exception as exc:
        logger.exception(f"Failed to list subtopics of topic {topic_id}")
        raise HTTPException(status_code=500, detail=str(exc))


@router.get("/subtopics/{subtopic_id}/questions", summary="List questions")
def list_questions(
    subtopic_id: int,
    user_id: str = Depends(get_user_id),
    profile: SubjectProfile = Depends(get_subject_profile),
    db: Session = Depends(get_session),
) -> list[dict[str, Any]]:
    """Active questions with the caller's attempt count, success rate and status."""
    try:
        return CatalogService(profile, db).list_questions(user_id, subtopic_id)
    except PracticeError as exc:
        raise http_error(exc)
    except Exception as exc:
        logger.exception(f"Failed to list questions of subtopic {subtopic_id}")
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("/questions", status_code=201, summary="Create question")
def create_question(
    request: QuestionCreate,
    user_id: str = Depends(get_user_id),
    profile: SubjectProfile = Depends(get_subject_profile),
    db: Session = Depends(get_session),
) -> dict[str, Any]:
    """Author a question. Plain-string options are given ids o1, o2, ..."""
    try:
        return CatalogService(profile, db).create_question(request)
    except PracticeError as exc:
        raise http_error(exc)
    except Exception as exc:
        logger.exception(f"Failed to create question for {user_id}")
        raise HTTPException(status_code=500, detail=str(exc))
