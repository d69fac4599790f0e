"""
Vocabulary Models.

Words grouped by starting letter, and the per-user state of the four-step
word drill:
- AlphabetCategory / VocabularyWord: the word list
- VocabularyAttempt: one row per drill step answered (append-only)
- VocabularyProgress: step completion and mastery (0-4), one row per (user, word)
- UserStreak: consecutive-day activity, one row per user
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, JSONType, utcnow


class AlphabetCategory(Base):
    """Words starting with one letter."""

    __tablename__ = "alphabet_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    letter: Mapped[str] = mapped_column(String(1), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)

    words: Mapped[list[VocabularyWord]] = relationship(back_populates="category")

    def __repr__(self) -> str:
        return f"<AlphabetCategory id={self.id} letter={self.letter}>"


class VocabularyWord(Base):
    __tablename__ = "vocabulary"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    word: Mapped[str] = mapped_column(Text, nullable=False)
    definition: Mapped[str] = mapped_column(Text, nullable=False)
    synonyms: Mapped[str | None] = mapped_column(Text)  # comma separated
    antonyms: Mapped[str | None] = mapped_column(Text)
    part_of_speech: Mapped[str] = mapped_column(Text, nullable=False)
    sentence: Mapped[str | None] = mapped_column(Text)
    category_id: Mapped[int | None] = mapped_column(ForeignKey("alphabet_categories.id"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)

    category: Mapped[AlphabetCategory | None] = relationship(back_populates="words")

    def __repr__(self) -> str:
        return f"<VocabularyWord id={self.id} word={self.word}>"


class VocabularyAttempt(Base):
    __tablename__ = "vocabulary_attempts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    vocabulary_id: Mapped[int] = mapped_column(ForeignKey("vocabulary.id"), nullable=False)
    step_type: Mapped[str] = mapped_column(Text, nullable=False)  # definition, usage, synonym, antonym
    is_successful: Mapped[bool] = mapped_column(Boolean, default=False)
    response: Mapped[str | None] = mapped_column(Text)
    time_spent: Mapped[int | None] = mapped_column(Integer)  # seconds
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    __table_args__ = (Index("idx_vocabulary_attempt_user_created", "user_id", "created_at"),)


class VocabularyProgress(Base):
    """
    Drill progress for one word.

    ``step_completion`` maps each step type to whether its latest answer was
    correct; ``mastery_level`` is the number of completed steps.
    """

    __tablename__ = "vocabulary_progress"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    vocabulary_id: Mapped[int] = mapped_column(ForeignKey("vocabulary.id"), nullable=False)
    mastery_level: Mapped[int] = mapped_column(Integer, default=0)  # 0-4
    step_completion: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    last_attempt_at: Mapped[datetime | None] = mapped_column()
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "vocabulary_id", name="uq_vocabulary_progress_user_word"),
    )

    def __repr__(self) -> str:
        return f"<VocabularyProgress user={self.user_id} word={self.vocabulary_id} mastery={self.mastery_level}>"


class UserStreak(Base):
    __tablename__ = "user_streaks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    current_streak: Mapped[int] = mapped_column(Integer, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0)
    last_activity_at: Mapped[datetime | None] = mapped_column()
