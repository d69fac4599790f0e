"""
Vocabulary API Router.

Letter categories, words, and the four-step word drill. Mounted ahead of the
``/api/{subject}`` routers so "vocabulary" is never read as a subject.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from src.api.deps import get_session, get_user_id, http_error
from src.core.errors import PracticeError
from src.practice.vocabulary import VocabularyService

router = APIRouter()


class StepRequest(BaseModel):
    """
    One drill step outcome.

    Missing or unknown values are reported by the service as 400.
    """

    vocabulary_id: int | None = None
    step_type: str | None = Field(None, description="definition, usage, synonym or antonym")
    is_successful: bool = False


class AttemptRequest(StepRequest):
    response: str | None = None
    time_spent: int | None = Field(None, ge=0, description="Seconds spent on the step")


class StreakResponse(BaseModel):
    current_streak: int
    longest_streak: int
    last_activity_at: str


@router.get("/categories", summary="List letter categories")
def list_categories(db: Session = Depends(get_session)) -> dict[str, Any]:
    try:
        return {"categories": VocabularyService(db).list_categories()}
    except Exception as exc:
        logger.exception("Failed to list vocabulary categories")
        raise HTTPException(status_code=500, detail=str(exc))


@router.get("/categories/{category_id}/words", summary="List words in a category")
def list_words(category_id: int, db: Session = Depends(get_session)) -> dict[str, Any]:
    try:
        return {"words": VocabularyService(db).list_words(category_id)}
    except Exception as exc:
        logger.exception(f"Failed to list words for category {category_id}")
        raise HTTPException(status_code=500, detail=str(exc))


@router.get("/categories/{category_id}/words/{word_id}", summary="Get one word")
def get_word(category_id: int, word_id: int, db: Session = Depends(get_session)) -> dict[str, Any]:
    try:
        return {"word": VocabularyService(db).get_word(category_id, word_id)}
    except PracticeError as exc:
        raise http_error(exc)
    except Exception as exc:
        logger.exception(f"Failed to load word {word_id}")
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("/attempts", summary="Log a drill answer")
def track_attempt(
    request: AttemptRequest,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_session),
) -> dict[str, Any]:
    try:
        return VocabularyService(db).track_attempt(
            user_id,
            request.vocabulary_id,
            request.step_type,
            request.is_successful,
            response=request.response,
            time_spent=request.time_spent,
        )
    except PracticeError as exc:
        raise http_error(exc)
    except Exception as exc:
        logger.exception(f"Failed to track vocabulary attempt for {user_id}")
        raise HTTPException(status_code=500, detail=str(exc))


@router.api_route("/mastery", methods=["POST", "PUT"], summary="Update word mastery")
def update_mastery(
    request: StepRequest,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_session),
) -> dict[str, Any]:
    """Record a step outcome on the word's progress; mastery is the completed step count."""
    try:
        return VocabularyService(db).update_mastery(
            user_id, request.vocabulary_id, request.step_type, request.is_successful
        )
    except PracticeError as exc:
        raise http_error(exc)
    except Exception as exc:
        logger.exception(f"Failed to update vocabulary mastery for {user_id}")
        raise HTTPException(status_code=500, detail=str(exc))


@router.api_route("/streak", methods=["POST", "PUT"], response_model=StreakResponse, summary="Register activity")
def update_streak(
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_session),
) -> StreakResponse:
    try:
        return StreakResponse(**VocabularyService(db).update_streak(user_id))
    except PracticeError as exc:
        raise http_error(exc)
    except Exception as exc:
        logger.exception(f"Failed to update streak for {user_id}")
        raise HTTPException(status_code=500, detail=str(exc))


@router.get("/metrics", summary="Vocabulary dashboard metrics")
def get_metrics(
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_session),
) -> dict[str, Any]:
    try:
        return {"metrics": VocabularyService(db).get_metrics(user_id)}
    except PracticeError as exc:
        raise http_error(exc)
    except Exception as exc:
        logger.exception(f"Failed to load vocabulary metrics for {user_id}")
        raise HTTPException(status_code=500, detail=str(exc))
