"""
Repair tools for derived data.

Session aggregates and progress rows are both recomputable from attempts.
These functions rebuild them after bugs, manual edits or imports.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from src.db.database import use_session
from src.db.models import Question, QuestionAttempt, TestSession, utcnow
from src.db.queries import session_aggregates
from src.db.utils import round_half_up_percent
from src.practice.progress import ProgressTracker


@dataclass
class RepairReport:
    checked: int = 0
    updated: int = 0
    details: list[dict] = field(default_factory=list)


def repair_session_aggregates(session: Session | None = None) -> RepairReport:
    """Recount every session's totals and score from its attempts."""
    report = RepairReport()
    with use_session(session) as db:
        for test_session in db.scalars(select(TestSession).order_by(TestSession.id)).all():
            report.checked += 1
            total, correct = session_aggregates(db, test_session.id)
            score = round_half_up_percent(correct, total)
            current = (test_session.total_questions, test_session.correct_answers, test_session.score)
            if current == (total, correct, score):
                continue
            report.details.append(
                {
                    "session_id": test_session.id,
                    "before": current,
                    "after": (total, correct, score),
                }
            )
            test_session.total_questions = total
            test_session.correct_answers = correct
            test_session.score = score
            test_session.updated_at = utcnow()
            report.updated += 1
        db.commit()
    logger.info(f"Session repair: {report.updated} of {report.checked} sessions updated")
    return report


def rebuild_progress(user_id: str | None = None, session: Session | None = None) -> RepairReport:
    """
    Rebuild topic and subtopic progress from attempts.

    Args:
        user_id: Limit the rebuild to one user (all users when None)
    """
    report = RepairReport()
    with use_session(session) as db:
        query = (
            select(TestSession.user_id, Question.topic_id, Question.subtopic_id)
            .join(QuestionAttempt, QuestionAttempt.test_session_id == TestSession.id)
            .join(Question, Question.id == QuestionAttempt.question_id)
            .distinct()
        )
        if user_id is not None:
            query = query.where(TestSession.user_id == user_id)

        tracker = ProgressTracker(db)
        for row_user, topic_id, subtopic_id in db.execute(query).all():
            mastery = tracker.refresh(row_user, topic_id, subtopic_id)
            report.checked += 1
            report.updated += 1
            report.details.append(
                {"user_id": row_user, "topic_id": topic_id, "subtopic_id": subtopic_id, **mastery}
            )
        db.commit()
    logger.info(f"Progress rebuild: {report.updated} subtopic scopes refreshed")
    return report
