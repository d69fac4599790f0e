"""
Attempt Recorder.

Records answers exactly once per (session, question) and keeps the owning
session's aggregates in step with its attempts.

Session resolution, in order:
1. The session id hint, if it is an in-progress session owned by the user
2. The user's most recent in-progress session for the subtopic, if it
   started within the reuse window
3. A new session

At-most-once is enforced by the (test_session_id, question_id) unique
constraint with INSERT ... ON CONFLICT DO NOTHING, so concurrent duplicate
submissions cannot both land.
"""
from __future__ import annotations

from datetime import timedelta

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from config import get_settings
from src.core.errors import NotFoundError, ValidationError
from src.core.subjects import SubjectProfile
from src.db.database import use_session
from src.db.models import Question, QuestionAttempt, SessionStatus, TestSession, utcnow
from src.db.queries import session_aggregates
from src.db.utils import dialect_insert, round_half_up_percent
from src.practice.catalog import get_subtopic
from src.practice.schemas import AttemptOutcome


class AttemptRecorder:
    """Record question attempts for one subject."""

    def __init__(self, profile: SubjectProfile, session: Session | None = None):
        self.profile = profile
        self._session = session
        self.reuse_window = timedelta(minutes=get_settings().session_reuse_window_minutes)

    def init_session(self, user_id: str, subtopic_id: int) -> int:
        """Create a new in-progress session. Always creates."""
        _require(user_id=user_id, subtopic_id=subtopic_id)
        with self._get_session() as session:
            get_subtopic(session, self.profile, subtopic_id)
            test_session = self._create_session(session, user_id, subtopic_id)
            session.commit()
            return test_session.id

    def record_attempt(
        self,
        user_id: str,
        question_id: int,
        subtopic_id: int,
        is_correct: bool,
        user_answer: str = "",
        time_spent: int = 0,
        session_id_hint: int | None = None,
    ) -> AttemptOutcome:
        """
        Record one answer.

        Args:
            user_id: Learner identifier
            question_id: Question answered
            subtopic_id: Subtopic the question belongs to
            is_correct: Whether the answer was correct
            user_answer: Submitted answer (option id or text)
            time_spent: Seconds spent on the question
            session_id_hint: Session the client believes it is in

        Returns:
            AttemptOutcome with the session's current aggregates.
            ``already_attempted`` is True when the session already holds an
            answer to this question; nothing is written in that case.

        Raises:
            ValidationError: missing ids or negative time
            NotFoundError: unknown or inactive question, or question outside the subtopic
        """
        _require(user_id=user_id, question_id=question_id, subtopic_id=subtopic_id)
        if is_correct is None:
            raise ValidationError("is_correct is required")
        if time_spent is not None and time_spent < 0:
            raise ValidationError("time_spent must not be negative")

        with self._get_session() as session:
            question = session.get(Question, question_id)
            if question is None or not question.is_active or question.subtopic_id != subtopic_id:
                raise NotFoundError(f"Question {question_id} not found in subtopic {subtopic_id}")
            get_subtopic(session, self.profile, subtopic_id)

            test_session = self._resolve_session(session, user_id, subtopic_id, session_id_hint)

            existing = session.scalar(
                select(QuestionAttempt.id).where(
                    QuestionAttempt.test_session_id == test_session.id,
                    QuestionAttempt.question_id == question_id,
                )
            )
            if existing is not None:
                session.commit()
                logger.info(f"Duplicate attempt ignored: session {test_session.id}, question {question_id}")
                return self._outcome(test_session, already_attempted=True)

            stmt = (
                dialect_insert(session, QuestionAttempt)
                .values(
                    test_session_id=test_session.id,
                    question_id=question_id,
                    user_answer=user_answer or "",
                    is_correct=bool(is_correct),
                    time_spent=time_spent or 0,
                    created_at=utcnow(),
                )
                .on_conflict_do_nothing(index_elements=["test_session_id", "question_id"])
            )
            if session.execute(stmt).rowcount == 0:
                # Lost a race with a concurrent submission of the same answer
                session.commit()
                logger.info(f"Duplicate attempt ignored: session {test_session.id}, question {question_id}")
                return self._outcome(test_session, already_attempted=True)

            self._refresh_aggregates(session, test_session)
            session.commit()
            logger.info(
                f"Recorded attempt: user {user_id}, session {test_session.id}, question {question_id}, "
                f"correct={bool(is_correct)} ({test_session.correct_answers}/{test_session.total_questions})"
            )
            return self._outcome(test_session)

    # =========================================================================
    # Session resolution
    # =========================================================================

    def _resolve_session(
        self,
        session: Session,
        user_id: str,
        subtopic_id: int,
        session_id_hint: int | None,
    ) -> TestSession:
        if session_id_hint is not None:
            hinted = session.scalar(
                select(TestSession).where(
                    TestSession.id == session_id_hint,
                    TestSession.user_id == user_id,
                    TestSession.subtopic_id == subtopic_id,
                    TestSession.status == SessionStatus.IN_PROGRESS,
                )
            )
            if hinted is not None:
                return hinted
            logger.debug(f"Session hint {session_id_hint} not usable for {user_id}")

        recent = session.scalar(
            select(TestSession)
            .where(
                TestSession.user_id == user_id,
                TestSession.subtopic_id == subtopic_id,
                TestSession.status == SessionStatus.IN_PROGRESS,
                TestSession.start_time >= utcnow() - self.reuse_window,
            )
            .order_by(TestSession.start_time.desc(), TestSession.id.desc())
            .limit(1)
        )
        if recent is not None:
            return recent
        return self._create_session(session, user_id, subtopic_id)

    def _create_session(self, session: Session, user_id: str, subtopic_id: int) -> TestSession:
        now = utcnow()
        test_session = TestSession(
            user_id=user_id,
            subtopic_id=subtopic_id,
            status=SessionStatus.IN_PROGRESS,
            start_time=now,
            total_questions=0,
            correct_answers=0,
            score=0,
        )
        session.add(test_session)
        session.flush()
        logger.info(f"Started {self.profile.subject.value} session {test_session.id} for {user_id} (subtopic {subtopic_id})")
        return test_session

    @staticmethod
    def _refresh_aggregates(session: Session, test_session: TestSession) -> None:
        total, correct = session_aggregates(session, test_session.id)
        test_session.total_questions = total
        test_session.correct_answers = correct
        test_session.score = round_half_up_percent(correct, total)
        test_session.updated_at = utcnow()
        session.flush()

    @staticmethod
    def _outcome(test_session: TestSession, already_attempted: bool = False) -> AttemptOutcome:
        return AttemptOutcome(
            session_id=test_session.id,
            total_questions=test_session.total_questions or 0,
            correct_answers=test_session.correct_answers or 0,
            score=test_session.score or 0,
            already_attempted=already_attempted,
        )

    def _get_session(self):
        """Get session context manager."""
        return use_session(self._session)


def _require(**fields) -> None:
    missing = [name for name, value in fields.items() if value is None or value == ""]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
