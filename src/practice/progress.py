"""
Progress Tracker.

Topic and subtopic progress are a derived cache over attempts. Each refresh
recomputes the all-time distinct counts for the scope and writes them with a
single atomic upsert keyed by (user, scope).
"""
from __future__ import annotations

from datetime import datetime

from loguru import logger
from sqlalchemy.orm import Session

from src.db.models import SubtopicProgress, TopicProgress, utcnow
from src.db.queries import active_question_count, scope_attempt_counts
from src.db.utils import dialect_insert, round_half_up_percent


def mastery_level(questions_correct: int, active_questions: int) -> int:
    """
    Percentage of a scope's active questions answered correctly at least once.

    Clamped to 0-100: correct answers to since-deactivated questions can push
    the raw ratio past 100. A scope without active questions has mastery 0.
    """
    if active_questions <= 0:
        return 0
    return max(0, min(100, round_half_up_percent(questions_correct, active_questions)))


class ProgressTracker:
    """Recompute and upsert progress rows inside the caller's transaction."""

    def __init__(self, session: Session):
        self.session = session

    def refresh(self, user_id: str, topic_id: int, subtopic_id: int) -> dict[str, int]:
        """
        Refresh both the topic and the subtopic row for a user.

        Returns:
            Mastery levels keyed by "topic" and "subtopic"
        """
        topic_mastery = self._upsert(TopicProgress, "topic_id", user_id, topic_id)
        subtopic_mastery = self._upsert(SubtopicProgress, "subtopic_id", user_id, subtopic_id)
        logger.debug(
            f"Progress for {user_id}: topic {topic_id}={topic_mastery}%, "
            f"subtopic {subtopic_id}={subtopic_mastery}%"
        )
        return {"topic": topic_mastery, "subtopic": subtopic_mastery}

    def _upsert(self, model, scope_column: str, user_id: str, scope_id: int) -> int:
        scope = {scope_column: scope_id}
        attempted, correct, last_attempt_at = scope_attempt_counts(self.session, user_id, **scope)
        mastery = mastery_level(correct, active_question_count(self.session, **scope))
        now = utcnow()
        values = {
            "questions_attempted": attempted,
            "questions_correct": correct,
            "mastery_level": mastery,
            "last_attempt_at": _as_datetime(last_attempt_at) or now,
            "updated_at": now,
        }
        stmt = dialect_insert(self.session, model).values(user_id=user_id, created_at=now, **scope, **values)
        stmt = stmt.on_conflict_do_update(index_elements=["user_id", scope_column], set_=values)
        self.session.execute(stmt)
        return mastery


def _as_datetime(value) -> datetime | None:
    # SQLite returns aggregate timestamps (MAX) as strings
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))
