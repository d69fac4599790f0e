"""
Adaptive Learning Models.

SQLAlchemy models for the adaptive layer:
- Learning gaps per user, subtopic and concept key
- Per-user adaptive settings
- Provenance of adaptive question selections
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Index, Integer, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, JSONType, utcnow

if TYPE_CHECKING:
    from .practice import TestSession


class GapStatus:
    ACTIVE = "active"
    RESOLVED = "resolved"


class LearningGap(Base):
    """
    A concept area where a learner keeps answering incorrectly.

    The concept key is the question type id. At most one open gap
    (``resolved_at IS NULL``) exists per (user, subtopic, concept key).
    """

    __tablename__ = "learning_gaps"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    subtopic_id: Mapped[int] = mapped_column(ForeignKey("subtopics.id"), nullable=False)
    concept_key: Mapped[int] = mapped_column(Integer, nullable=False)

    severity: Mapped[int] = mapped_column(Integer, default=1)  # 1-10
    evidence_question_ids: Mapped[list] = mapped_column(JSONType, default=list)
    status: Mapped[str] = mapped_column(Text, default=GapStatus.ACTIVE)  # 'active', 'resolved'

    detected_at: Mapped[datetime] = mapped_column(default=utcnow)
    resolved_at: Mapped[datetime | None] = mapped_column()
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index(
            "uq_learning_gap_open",
            "user_id",
            "subtopic_id",
            "concept_key",
            unique=True,
            postgresql_where=text("resolved_at IS NULL"),
            sqlite_where=text("resolved_at IS NULL"),
        ),
        Index("idx_learning_gap_user_subtopic", "user_id", "subtopic_id"),
    )

    def __repr__(self) -> str:
        return f"<LearningGap user={self.user_id} subtopic={self.subtopic_id} concept={self.concept_key} severity={self.severity}>"

    @property
    def is_active(self) -> bool:
        return self.resolved_at is None


class UserAdaptiveSettings(Base):
    """Per-user adaptive preferences. One row per user."""

    __tablename__ = "user_adaptive_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    adaptivity_level: Mapped[int] = mapped_column(Integer, default=5)  # 1-10
    difficulty_preference: Mapped[str] = mapped_column(
        Text, default="balanced"
    )  # 'easier', 'balanced', 'challenging'
    enable_adaptive_learning: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<UserAdaptiveSettings user={self.user_id} level={self.adaptivity_level} pref={self.difficulty_preference}>"


class AdaptiveQuestionSelection(Base):
    """Audit row: which question was served in a session, why, and in what position."""

    __tablename__ = "adaptive_question_selections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    test_session_id: Mapped[int] = mapped_column(
        ForeignKey("test_sessions.id", ondelete="CASCADE"), nullable=False
    )
    question_id: Mapped[int] = mapped_column(ForeignKey("questions.id"), nullable=False)
    selection_reason: Mapped[str] = mapped_column(
        Text, nullable=False
    )  # 'filling_learning_gap', 'appropriate_difficulty', 'reinforcing_weak_area', ...
    difficulty_level: Mapped[int] = mapped_column(Integer, nullable=False)
    sequence_position: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    session: Mapped[TestSession] = relationship(back_populates="selections")

    __table_args__ = (Index("idx_selection_session", "test_session_id"),)

    def __repr__(self) -> str:
        return f"<AdaptiveQuestionSelection session={self.test_session_id} question={self.question_id} reason={self.selection_reason}>"
