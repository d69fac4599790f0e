"""
Adaptive Learning API Router.

Endpoints for the adaptive layer of one subject:
- Adaptive question batches
- Active learning gaps
- Post-practice feedback (gap update + recommendations)
- Subtopic recommendations for a topic
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from src.adaptive import AdaptiveSelector, GapDetector, QuestionResult, RecommendationService, serialize_gap
from src.api.deps import get_session, get_subject_profile, get_user_id, http_error
from src.core.errors import PracticeError
from src.core.subjects import SubjectProfile
from src.practice.catalog import get_owned_session, get_subtopic

router = APIRouter()


# ========================================
# Request/Response Models
# ========================================


class AdaptiveQuestionsRequest(BaseModel):
    """Request model for the next question batch."""

    subtopic_id: int = Field(..., gt=0, description="Subtopic to draw questions from")
    session_id: int | None = Field(None, description="Session to record selection provenance against")


class AdaptiveQuestionsResponse(BaseModel):
    questions: list[dict[str, Any]]
    count: int


class GapResponse(BaseModel):
    id: int
    subtopic_id: int
    concept_key: int
    severity: int
    evidence_question_ids: list[int]
    status: str
    detected_at: str | None
    resolved_at: str | None


class QuestionResultRequest(BaseModel):
    question_id: int = Field(..., gt=0)
    is_correct: bool


class FeedbackRequest(BaseModel):
    """Request model for post-practice feedback."""

    session_id: int = Field(..., gt=0, description="Session the results belong to")
    results: list[QuestionResultRequest] = Field(..., min_length=1, description="Answers to evaluate")


# ========================================
# Endpoints
# ========================================


@router.post(
    "/questions",
    response_model=AdaptiveQuestionsResponse,
    summary="Get adaptive question batch",
)
def get_adaptive_questions(
    request: AdaptiveQuestionsRequest,
    user_id: str = Depends(get_user_id),
    profile: SubjectProfile = Depends(get_subject_profile),
    db: Session = Depends(get_session),
) -> AdaptiveQuestionsResponse:
    """
    Select the next questions for a subtopic.

    Gap-related and unmastered questions are favoured according to the
    user's adaptive settings. Falls back to a random sample whenever
    adaptive ranking is disabled or unavailable.
    """
    try:
        if request.session_id is not None:
            get_owned_session(db, profile, request.session_id, user_id)
        selector = AdaptiveSelector(profile, db)
        pool = selector.build_pool(user_id, request.subtopic_id)
        selected = selector.select_questions(user_id, request.subtopic_id, pool, request.session_id)
        questions = [item.to_dict() for item in selected]
        return AdaptiveQuestionsResponse(questions=questions, count=len(questions))
    except PracticeError as exc:
        raise http_error(exc)
    except Exception as exc:
        logger.exception(f"Failed to select questions for {user_id}")
        raise HTTPException(status_code=500, detail=str(exc))


@router.get(
    "/gaps",
    response_model=list[GapResponse],
    summary="List active learning gaps",
)
def list_active_gaps(
    subtopic_id: int = Query(..., gt=0, description="Subtopic to inspect"),
    user_id: str = Depends(get_user_id),
    profile: SubjectProfile = Depends(get_subject_profile),
    db: Session = Depends(get_session),
) -> list[GapResponse]:
    """Open learning gaps for the user in a subtopic, most severe first."""
    try:
        get_subtopic(db, profile, subtopic_id)
        gaps = GapDetector(db).list_active_gaps(user_id, subtopic_id)
        return [GapResponse(**serialize_gap(gap)) for gap in gaps]
    except PracticeError as exc:
        raise http_error(exc)
    except Exception as exc:
        logger.exception(f"Failed to list gaps for {user_id}")
        raise HTTPException(status_code=500, detail=str(exc))


@router.post(
    "/feedback",
    summary="Update gaps and get recommendations",
)
def adaptive_feedback(
    request: FeedbackRequest,
    user_id: str = Depends(get_user_id),
    profile: SubjectProfile = Depends(get_subject_profile),
    db: Session = Depends(get_session),
) -> dict[str, Any]:
    """Evaluate a batch of answers, update learning gaps and return advice."""
    try:
        results = [QuestionResult(r.question_id, r.is_correct) for r in request.results]
        return RecommendationService(profile, db).build_feedback(user_id, request.session_id, results)
    except PracticeError as exc:
        raise http_error(exc)
    except Exception as exc:
        logger.exception(f"Failed to build feedback for session {request.session_id}")
        raise HTTPException(status_code=500, detail=str(exc))


@router.get(
    "/recommendations",
    summary="Recommend subtopics",
)
def recommend_subtopics(
    topic_id: int = Query(..., gt=0, description="Topic to recommend within"),
    user_id: str = Depends(get_user_id),
    profile: SubjectProfile = Depends(get_subject_profile),
    db: Session = Depends(get_session),
) -> dict[str, Any]:
    """Subtopics with learning gaps or low mastery, else the next one to start."""
    try:
        return RecommendationService(profile, db).recommend_subtopics(user_id, topic_id)
    except PracticeError as exc:
        raise http_error(exc)
    except Exception as exc:
        logger.exception(f"Failed to recommend subtopics for {user_id}")
        raise HTTPException(status_code=500, detail=str(exc))
