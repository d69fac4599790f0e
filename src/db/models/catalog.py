"""
Question catalog models.

Topic -> Subtopic -> Question hierarchy shared by every subject. The subject a
row belongs to is recorded once, on the topic.

Question options are stored as a JSON list of ``{"id": str, "text": str}``
objects. They are validated when a question is written (see
``src.practice.schemas.QuestionOption``) and trusted on read.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, JSONType, utcnow

if TYPE_CHECKING:
    from .practice import SubtopicProgress, TestSession, TopicProgress


class Topic(Base):
    """A topic within one subject (e.g. maths: "Algebra")."""

    __tablename__ = "topics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subject: Mapped[str] = mapped_column(Text, nullable=False)  # 'maths', 'quantitative'
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)

    # Relationships
    subtopics: Mapped[list[Subtopic]] = relationship(back_populates="topic")
    progress: Mapped[list[TopicProgress]] = relationship(back_populates="topic")

    __table_args__ = (
        UniqueConstraint("subject", "name", name="uq_topic_subject_name"),
        Index("idx_topic_subject", "subject"),
    )

    def __repr__(self) -> str:
        return f"<Topic id={self.id} subject={self.subject} name={self.name}>"


class Subtopic(Base):
    """A subtopic; practice sessions are scoped to one subtopic."""

    __tablename__ = "subtopics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    topic_id: Mapped[int] = mapped_column(ForeignKey("topics.id"), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)

    # Relationships
    topic: Mapped[Topic] = relationship(back_populates="subtopics")
    questions: Mapped[list[Question]] = relationship(back_populates="subtopic")
    sessions: Mapped[list[TestSession]] = relationship(back_populates="subtopic")
    progress: Mapped[list[SubtopicProgress]] = relationship(back_populates="subtopic")

    __table_args__ = (Index("idx_subtopic_topic", "topic_id"),)

    def __repr__(self) -> str:
        return f"<Subtopic id={self.id} topic={self.topic_id} name={self.name}>"


class Question(Base):
    """
    A multiple-choice practice question.

    ``question_type_id`` doubles as the coarse concept key used by learning-gap
    detection. ``difficulty_level_id`` runs from 1 (easiest) to 5 (hardest).
    """

    __tablename__ = "questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    topic_id: Mapped[int] = mapped_column(ForeignKey("topics.id"), nullable=False)
    subtopic_id: Mapped[int] = mapped_column(ForeignKey("subtopics.id"), nullable=False)
    question_type_id: Mapped[int] = mapped_column(Integer, nullable=False)
    difficulty_level_id: Mapped[int] = mapped_column(Integer, nullable=False, default=3)

    # Content
    question: Mapped[str] = mapped_column(Text, nullable=False)
    options: Mapped[list] = mapped_column(JSONType, nullable=False)
    correct_answer: Mapped[str] = mapped_column(Text, nullable=False)
    explanation: Mapped[str] = mapped_column(Text, default="")
    formula: Mapped[str | None] = mapped_column(Text)
    time_allocation: Mapped[int] = mapped_column(Integer, default=60)  # seconds

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)

    # Relationships
    subtopic: Mapped[Subtopic] = relationship(back_populates="questions")

    __table_args__ = (
        Index("idx_question_subtopic_active", "subtopic_id", "is_active"),
        Index("idx_question_topic_active", "topic_id", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<Question id={self.id} subtopic={self.subtopic_id} type={self.question_type_id}>"
