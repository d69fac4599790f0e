"""
Practice API Router.

Endpoints for one subject's practice flow:
- Session start
- Attempt recording (idempotent per session and question)
- Session completion (idempotent)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from src.api.deps import get_session, get_subject_profile, get_user_id, http_error
from src.core.errors import PracticeError
from src.core.subjects import SubjectProfile
from src.practice import AttemptRecorder, SessionCompleter

router = APIRouter()


# ========================================
# Request/Response Models
# ========================================


class SessionInitRequest(BaseModel):
    """Request model for starting a practice session."""

    subtopic_id: int = Field(..., gt=0, description="Subtopic to practise")


class SessionInitResponse(BaseModel):
    session_id: int


class AttemptRequest(BaseModel):
    """Request model for recording an answer."""

    question_id: int = Field(..., gt=0, description="Question answered")
    subtopic_id: int = Field(..., gt=0, description="Subtopic of the question")
    is_correct: bool = Field(..., description="Whether the answer was correct")
    user_answer: str = Field("", description="Submitted option id or text")
    time_spent: int = Field(0, ge=0, description="Seconds spent on the question")
    session_id: int | None = Field(None, description="Session the client believes it is in")


class AttemptResponse(BaseModel):
    session_id: int
    total_questions: int
    correct_answers: int
    score: int
    already_attempted: bool


class SessionSummaryResponse(BaseModel):
    session_id: int
    total_questions: int
    correct_answers: int
    score: int
    time_spent: int
    already_completed: bool


# ========================================
# Endpoints
# ========================================


@router.post(
    "/sessions",
    response_model=SessionInitResponse,
    summary="Start practice session",
)
def init_session(
    request: SessionInitRequest,
    user_id: str = Depends(get_user_id),
    profile: SubjectProfile = Depends(get_subject_profile),
    db: Session = Depends(get_session),
) -> SessionInitResponse:
    """Start a new in-progress session for a subtopic. Always creates a session."""
    try:
        session_id = AttemptRecorder(profile, db).init_session(user_id, request.subtopic_id)
        return SessionInitResponse(session_id=session_id)
    except PracticeError as exc:
        raise http_error(exc)
    except Exception as exc:
        logger.exception(f"Failed to start session for {user_id}")
        raise HTTPException(status_code=500, detail=str(exc))


@router.post(
    "/attempts",
    response_model=AttemptResponse,
    summary="Record an answer",
)
def record_attempt(
    request: AttemptRequest,
    user_id: str = Depends(get_user_id),
    profile: SubjectProfile = Depends(get_subject_profile),
    db: Session = Depends(get_session),
) -> AttemptResponse:
    """
    Record one answer.

    The session is resolved from the hint, then from the user's recent
    in-progress session for the subtopic, else created. A second answer to
    the same question in the same session is ignored and reported with
    ``already_attempted: true``.
    """
    try:
        outcome = AttemptRecorder(profile, db).record_attempt(
            user_id=user_id,
            question_id=request.question_id,
            subtopic_id=request.subtopic_id,
            is_correct=request.is_correct,
            user_answer=request.user_answer,
            time_spent=request.time_spent,
            session_id_hint=request.session_id,
        )
        return AttemptResponse(**outcome.to_dict())
    except PracticeError as exc:
        raise http_error(exc)
    except Exception as exc:
        logger.exception(f"Failed to record attempt for {user_id}")
        raise HTTPException(status_code=500, detail=str(exc))


@router.post(
    "/sessions/{session_id}/complete",
    response_model=SessionSummaryResponse,
    summary="Complete practice session",
)
def complete_session(
    session_id: int,
    user_id: str = Depends(get_user_id),
    profile: SubjectProfile = Depends(get_subject_profile),
    db: Session = Depends(get_session),
) -> SessionSummaryResponse:
    """Complete a session and refresh progress. Repeat calls return the stored result."""
    try:
        summary = SessionCompleter(profile, db).complete_session(session_id, user_id)
        return SessionSummaryResponse(**summary.to_dict())
    except PracticeError as exc:
        raise http_error(exc)
    except Exception as exc:
        logger.exception(f"Failed to complete session {session_id}")
        raise HTTPException(status_code=500, detail=str(exc))
