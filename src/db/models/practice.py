"""
Practice Models.

Test sessions, their question attempts, and the per-user progress caches
derived from attempts:
- TestSession: one practice run scoped to a subtopic
- QuestionAttempt: one answer per (session, question)
- TopicProgress / SubtopicProgress: recomputable aggregates, one row per (user, scope)
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, utcnow

if TYPE_CHECKING:
    from .adaptive import AdaptiveQuestionSelection
    from .catalog import Question, Subtopic, Topic


class SessionStatus:
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TestSession(Base):
    """
    A practice session.

    Aggregates are recomputed from attempts rather than incremented:
    ``total_questions`` counts distinct questions attempted and
    ``correct_answers`` distinct questions with a correct attempt.
    """

    __tablename__ = "test_sessions"
    __test__ = False  # not a pytest test class

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    subtopic_id: Mapped[int] = mapped_column(ForeignKey("subtopics.id"), nullable=False)

    # Session state
    status: Mapped[str] = mapped_column(
        Text, default=SessionStatus.IN_PROGRESS
    )  # 'in_progress', 'completed'
    start_time: Mapped[datetime] = mapped_column(default=utcnow)
    end_time: Mapped[datetime | None] = mapped_column()

    # Aggregates
    total_questions: Mapped[int] = mapped_column(Integer, default=0)
    correct_answers: Mapped[int] = mapped_column(Integer, default=0)
    score: Mapped[int | None] = mapped_column(Integer)  # 0-100
    time_spent: Mapped[int | None] = mapped_column(Integer)  # seconds

    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)

    # Relationships
    subtopic: Mapped[Subtopic] = relationship(back_populates="sessions")
    attempts: Mapped[list[QuestionAttempt]] = relationship(
        back_populates="session", cascade="all, delete-orphan"
    )
    selections: Mapped[list[AdaptiveQuestionSelection]] = relationship(
        back_populates="session", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_test_session_user_subtopic_status", "user_id", "subtopic_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<TestSession id={self.id} user={self.user_id} status={self.status} score={self.score}>"

    @property
    def is_completed(self) -> bool:
        return self.status == SessionStatus.COMPLETED


class QuestionAttempt(Base):
    """One recorded answer. At most one row exists per (session, question)."""

    __tablename__ = "question_attempts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    test_session_id: Mapped[int] = mapped_column(
        ForeignKey("test_sessions.id", ondelete="CASCADE"), nullable=False
    )
    question_id: Mapped[int] = mapped_column(ForeignKey("questions.id"), nullable=False)
    user_answer: Mapped[str] = mapped_column(Text, default="")
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    time_spent: Mapped[int] = mapped_column(Integer, default=0)  # seconds
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    # Relationships
    session: Mapped[TestSession] = relationship(back_populates="attempts")
    question: Mapped[Question] = relationship()

    __table_args__ = (
        UniqueConstraint("test_session_id", "question_id", name="uq_attempt_session_question"),
        Index("idx_attempt_question", "question_id"),
    )

    def __repr__(self) -> str:
        return f"<QuestionAttempt session={self.test_session_id} question={self.question_id} correct={self.is_correct}>"


class TopicProgress(Base):
    """All-time progress of one user across one topic."""

    __tablename__ = "topic_progress"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    topic_id: Mapped[int] = mapped_column(ForeignKey("topics.id"), nullable=False)
    questions_attempted: Mapped[int] = mapped_column(Integer, default=0)
    questions_correct: Mapped[int] = mapped_column(Integer, default=0)
    mastery_level: Mapped[int] = mapped_column(Integer, default=0)  # 0-100
    last_attempt_at: Mapped[datetime | None] = mapped_column()
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)

    topic: Mapped[Topic] = relationship(back_populates="progress")

    __table_args__ = (UniqueConstraint("user_id", "topic_id", name="uq_topic_progress_user_topic"),)

    def __repr__(self) -> str:
        return f"<TopicProgress user={self.user_id} topic={self.topic_id} mastery={self.mastery_level}>"


class SubtopicProgress(Base):
    """All-time progress of one user across one subtopic."""

    __tablename__ = "subtopic_progress"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    subtopic_id: Mapped[int] = mapped_column(ForeignKey("subtopics.id"), nullable=False)
    questions_attempted: Mapped[int] = mapped_column(Integer, default=0)
    questions_correct: Mapped[int] = mapped_column(Integer, default=0)
    mastery_level: Mapped[int] = mapped_column(Integer, default=0)  # 0-100
    last_attempt_at: Mapped[datetime | None] = mapped_column()
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)

    subtopic: Mapped[Subtopic] = relationship(back_populates="progress")

    __table_args__ = (
        UniqueConstraint("user_id", "subtopic_id", name="uq_subtopic_progress_user_subtopic"),
    )

    def __repr__(self) -> str:
        return f"<SubtopicProgress user={self.user_id} subtopic={self.subtopic_id} mastery={self.mastery_level}>"
