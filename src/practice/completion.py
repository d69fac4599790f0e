"""
Session Completion.

Moves a session from in_progress to completed exactly once and refreshes the
user's topic and subtopic progress in the same transaction. Completing an
already completed session returns the stored aggregates and writes nothing.
"""
from __future__ import annotations

from loguru import logger
from sqlalchemy.orm import Session

from src.core.errors import ValidationError
from src.core.subjects import SubjectProfile
from src.db.database import use_session
from src.db.models import SessionStatus, TestSession, utcnow
from src.db.queries import session_aggregates
from src.db.utils import round_half_up_percent
from src.practice.catalog import get_owned_session
from src.practice.progress import ProgressTracker
from src.practice.schemas import SessionSummary


class SessionCompleter:
    """Complete practice sessions for one subject."""

    def __init__(self, profile: SubjectProfile, session: Session | None = None):
        self.profile = profile
        self._session = session

    def complete_session(self, session_id: int, user_id: str) -> SessionSummary:
        """
        Complete a session.

        Raises:
            ValidationError: missing session or user id
            NotFoundError: session unknown, owned by another user, or of another subject
        """
        if not session_id or not user_id:
            raise ValidationError("session_id and user_id are required")

        with self._get_session() as session:
            # Row lock serialises concurrent completions (no-op on SQLite)
            test_session = get_owned_session(session, self.profile, session_id, user_id, for_update=True)

            if test_session.is_completed:
                session.commit()
                logger.info(f"Session {session_id} already completed")
                return self._summary(test_session, already_completed=True)

            try:
                now = utcnow()
                total, correct = session_aggregates(session, test_session.id)
                test_session.status = SessionStatus.COMPLETED
                test_session.end_time = now
                test_session.time_spent = max(0, int((now - test_session.start_time).total_seconds()))
                test_session.total_questions = total
                test_session.correct_answers = correct
                test_session.score = round_half_up_percent(correct, total)
                session.flush()

                mastery = ProgressTracker(session).refresh(
                    user_id, test_session.subtopic.topic_id, test_session.subtopic_id
                )
                session.commit()
            except Exception:
                session.rollback()
                raise

            logger.info(
                f"Completed session {session_id} for {user_id}: {correct}/{total} "
                f"score={test_session.score} subtopic mastery={mastery['subtopic']}%"
            )
            return self._summary(test_session)

    @staticmethod
    def _summary(test_session: TestSession, already_completed: bool = False) -> SessionSummary:
        return SessionSummary(
            session_id=test_session.id,
            total_questions=test_session.total_questions or 0,
            correct_answers=test_session.correct_answers or 0,
            score=test_session.score or 0,
            time_spent=test_session.time_spent or 0,
            already_completed=already_completed,
        )

    def _get_session(self):
        """Get session context manager."""
        return use_session(self._session)
