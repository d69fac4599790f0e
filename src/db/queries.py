"""
Centralized Queries for the Application.

Reusable SQLAlchemy Core queries shared by the recorder, session completion,
progress tracking and the repair tools. Session aggregates and progress both
count DISTINCT question ids, so the definitions live here once.

Usage:
    from src.db.queries import session_aggregates

    total, correct = session_aggregates(session, test_session_id)
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from src.db.models import Question, QuestionAttempt, TestSession


def _distinct_correct():
    return func.count(
        func.distinct(case((QuestionAttempt.is_correct.is_(True), QuestionAttempt.question_id)))
    )


# =============================================================================
# SESSION AGGREGATES
# =============================================================================


def session_aggregates(session: Session, test_session_id: int) -> tuple[int, int]:
    """
    Count distinct questions attempted and answered correctly in one session.

    Returns:
        (total_questions, correct_answers)
    """
    row = session.execute(
        select(
            func.count(func.distinct(QuestionAttempt.question_id)),
            _distinct_correct(),
        ).where(QuestionAttempt.test_session_id == test_session_id)
    ).one()
    return int(row[0] or 0), int(row[1] or 0)


# =============================================================================
# PROGRESS
# =============================================================================


def scope_attempt_counts(
    session: Session,
    user_id: str,
    topic_id: int | None = None,
    subtopic_id: int | None = None,
) -> tuple[int, int, datetime | None]:
    """
    All-time distinct attempted/correct question counts for a user in a topic or subtopic.

    Returns:
        (questions_attempted, questions_correct, last_attempt_at)
    """
    query = (
        select(
            func.count(func.distinct(QuestionAttempt.question_id)),
            _distinct_correct(),
            func.max(QuestionAttempt.created_at),
        )
        .join(TestSession, TestSession.id == QuestionAttempt.test_session_id)
        .join(Question, Question.id == QuestionAttempt.question_id)
        .where(TestSession.user_id == user_id)
    )
    if topic_id is not None:
        query = query.where(Question.topic_id == topic_id)
    if subtopic_id is not None:
        query = query.where(Question.subtopic_id == subtopic_id)
    row = session.execute(query).one()
    return int(row[0] or 0), int(row[1] or 0), row[2]


def active_question_count(
    session: Session,
    topic_id: int | None = None,
    subtopic_id: int | None = None,
) -> int:
    """Number of active questions in a topic or subtopic."""
    query = select(func.count(Question.id)).where(Question.is_active.is_(True))
    if topic_id is not None:
        query = query.where(Question.topic_id == topic_id)
    if subtopic_id is not None:
        query = query.where(Question.subtopic_id == subtopic_id)
    return int(session.scalar(query) or 0)


# =============================================================================
# ATTEMPT HISTORY
# =============================================================================


def recent_attempts(session: Session, user_id: str, subtopic_id: int, limit: int):
    """
    The user's latest attempts on questions of a subtopic, newest first.

    Rows are (question_id, question_type_id, is_correct, created_at).
    """
    return session.execute(
        select(
            QuestionAttempt.question_id,
            Question.question_type_id,
            QuestionAttempt.is_correct,
            QuestionAttempt.created_at,
        )
        .join(TestSession, TestSession.id == QuestionAttempt.test_session_id)
        .join(Question, Question.id == QuestionAttempt.question_id)
        .where(TestSession.user_id == user_id, Question.subtopic_id == subtopic_id)
        .order_by(QuestionAttempt.created_at.desc(), QuestionAttempt.id.desc())
        .limit(limit)
    ).all()


def question_history(session: Session, user_id: str, subtopic_id: int) -> dict[int, tuple[int, int]]:
    """Per-question (attempt_count, correct_count) for a user in a subtopic."""
    rows = session.execute(
        select(
            QuestionAttempt.question_id,
            func.count(QuestionAttempt.id),
            func.sum(case((QuestionAttempt.is_correct.is_(True), 1), else_=0)),
        )
        .join(TestSession, TestSession.id == QuestionAttempt.test_session_id)
        .join(Question, Question.id == QuestionAttempt.question_id)
        .where(TestSession.user_id == user_id, Question.subtopic_id == subtopic_id)
        .group_by(QuestionAttempt.question_id)
    ).all()
    return {row[0]: (int(row[1] or 0), int(row[2] or 0)) for row in rows}
