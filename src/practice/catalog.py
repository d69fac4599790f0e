"""
Question catalog access for one subject.

Lookups here enforce that a topic, subtopic or question belongs to the
subject in the request path; anything else is reported as not found.
"""

from __future__ import annotations

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from src.core.errors import NotFoundError
from src.core.mastery import QuestionStats
from src.core.subjects import SubjectProfile
from src.db.database import use_session
from src.db.models import Question, Subtopic, SubtopicProgress, TestSession, Topic, TopicProgress
from src.db.queries import question_history
from src.practice.schemas import QuestionCreate


def get_topic(session: Session, profile: SubjectProfile, topic_id: int) -> Topic:
    topic = session.get(Topic, topic_id)
    if topic is None or topic.subject != profile.subject.value:
        raise NotFoundError(f"Topic {topic_id} not found")
    return topic


def get_subtopic(session: Session, profile: SubjectProfile, subtopic_id: int) -> Subtopic:
    subtopic = session.get(Subtopic, subtopic_id)
    if subtopic is None or subtopic.topic.subject != profile.subject.value:
        raise NotFoundError(f"Subtopic {subtopic_id} not found")
    return subtopic


def get_owned_session(
    session: Session,
    profile: SubjectProfile,
    session_id: int,
    user_id: str,
    for_update: bool = False,
) -> TestSession:
    """A test session of this subject owned by the user, optionally row-locked."""
    query = select(TestSession).where(TestSession.id == session_id, TestSession.user_id == user_id)
    if for_update:
        query = query.with_for_update()
    test_session = session.scalar(query)
    if test_session is None or test_session.subtopic.topic.subject != profile.subject.value:
        raise NotFoundError(f"Session {session_id} not found")
    return test_session


def serialize_question(question: Question) -> dict:
    """API shape of a question. Options are already validated, so they are passed through."""
    return {
        "id": question.id,
        "topic_id": question.topic_id,
        "subtopic_id": question.subtopic_id,
        "question_type_id": question.question_type_id,
        "difficulty_level_id": question.difficulty_level_id,
        "question": question.question,
        "options": question.options,
        "correct_answer": question.correct_answer,
        "explanation": question.explanation,
        "formula": question.formula,
        "time_allocation": question.time_allocation,
    }


def _progress_dict(progress: TopicProgress | SubtopicProgress | None) -> dict:
    if progress is None:
        return {"questions_attempted": 0, "questions_correct": 0, "mastery_level": 0, "last_attempt_at": None}
    return {
        "questions_attempted": progress.questions_attempted,
        "questions_correct": progress.questions_correct,
        "mastery_level": progress.mastery_level,
        "last_attempt_at": progress.last_attempt_at.isoformat() if progress.last_attempt_at else None,
    }


class CatalogService:
    """Browse and author questions for one subject."""

    def __init__(self, profile: SubjectProfile, session: Session | None = None):
        self.profile = profile
        self._session = session

    def list_topics(self, user_id: str) -> list[dict]:
        """Active topics of the subject with the user's topic progress."""
        with self._get_session() as session:
            topics = session.scalars(
                select(Topic)
                .where(Topic.subject == self.profile.subject.value, Topic.is_active.is_(True))
                .order_by(Topic.id)
            ).all()
            progress = {
                row.topic_id: row
                for row in session.scalars(
                    select(TopicProgress).where(
                        TopicProgress.user_id == user_id,
                        TopicProgress.topic_id.in_([t.id for t in topics]),
                    )
                )
            }
            return [
                {
                    "id": topic.id,
                    "name": topic.name,
                    "description": topic.description,
                    "progress": _progress_dict(progress.get(topic.id)),
                }
                for topic in topics
            ]

    def list_subtopics(self, user_id: str, topic_id: int) -> list[dict]:
        """Active subtopics of a topic with the user's subtopic progress."""
        with self._get_session() as session:
            get_topic(session, self.profile, topic_id)
            subtopics = session.scalars(
                select(Subtopic)
                .where(Subtopic.topic_id == topic_id, Subtopic.is_active.is_(True))
                .order_by(Subtopic.id)
            ).all()
            progress = {
                row.subtopic_id: row
                for row in session.scalars(
                    select(SubtopicProgress).where(
                        SubtopicProgress.user_id == user_id,
                        SubtopicProgress.subtopic_id.in_([s.id for s in subtopics]),
                    )
                )
            }
            return [
                {
                    "id": subtopic.id,
                    "topic_id": subtopic.topic_id,
                    "name": subtopic.name,
                    "description": subtopic.description,
                    "progress": _progress_dict(progress.get(subtopic.id)),
                }
                for subtopic in subtopics
            ]

    def list_questions(self, user_id: str, subtopic_id: int) -> list[dict]:
        """Active questions of a subtopic, each with the user's attempt stats and status."""
        with self._get_session() as session:
            get_subtopic(session, self.profile, subtopic_id)
            questions = session.scalars(
                select(Question)
                .where(Question.subtopic_id == subtopic_id, Question.is_active.is_(True))
                .order_by(Question.id)
            ).all()
            history = question_history(session, user_id, subtopic_id)

            results = []
            for question in questions:
                attempts, correct = history.get(question.id, (0, 0))
                stats = QuestionStats.build(
                    question.id,
                    question.question_type_id,
                    question.difficulty_level_id,
                    attempt_count=attempts,
                    correct_count=correct,
                    threshold=self.profile.mastery_threshold_percent,
                )
                results.append(
                    {
                        **serialize_question(question),
                        "attempt_count": stats.attempt_count,
                        "success_rate": round(stats.success_rate, 1),
                        "status": stats.status.value,
                    }
                )
            return results

    def create_question(self, data: QuestionCreate) -> dict:
        """Store a validated question under its subtopic."""
        with self._get_session() as session:
            subtopic = get_subtopic(session, self.profile, data.subtopic_id)
            question = Question(
                topic_id=subtopic.topic_id,
                subtopic_id=subtopic.id,
                question_type_id=data.question_type_id,
                difficulty_level_id=data.difficulty_level_id,
                question=data.question,
                options=[option.model_dump() for option in data.options],
                correct_answer=data.correct_answer,
                explanation=data.explanation,
                formula=data.formula,
                time_allocation=data.time_allocation or self.profile.default_time_allocation,
            )
            session.add(question)
            session.commit()
            logger.info(f"Created {self.profile.subject.value} question {question.id} in subtopic {subtopic.id}")
            return serialize_question(question)

    def _get_session(self):
        """Get session context manager."""
        return use_session(self._session)
