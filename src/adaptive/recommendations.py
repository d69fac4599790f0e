"""
Adaptive recommendations.

Post-practice feedback (gap update plus canned advice) and "what to practise
next" suggestions across the subtopics of a topic.
"""
from __future__ import annotations

from typing import Any

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from src.adaptive.gap_detector import GapDetector, QuestionResult, group_gaps_by_subtopic, serialize_gap
from src.adaptive.settings_store import SettingsStore
from src.core.errors import ValidationError
from src.core.subjects import SubjectProfile
from src.db.database import use_session
from src.db.models import LearningGap, Subtopic, SubtopicProgress
from src.db.utils import round_half_up_percent
from src.practice.catalog import get_owned_session, get_topic

REVIEW_BELOW_PERCENT = 60
PROGRESSION_FROM_PERCENT = 85
LOW_MASTERY_BELOW = 50
NEXT_SUBTOPIC_ABOVE = 70

GAP_RECOMMENDATION = {
    "type": "learning_gap",
    "message": "We noticed you might need more practice in specific areas.",
    "action": "Continue practicing with adaptive questions focused on your learning gaps.",
}
REVIEW_RECOMMENDATION = {
    "type": "performance",
    "message": "You might benefit from reviewing the core concepts in this subtopic.",
    "action": "Try reviewing the explanations and formulas before attempting more questions.",
}
PROGRESSION_RECOMMENDATION = {
    "type": "progression",
    "message": "Great job! You're showing strong mastery of this content.",
    "action": "You might be ready to move on to more challenging subtopics.",
}


class RecommendationService:
    """Feedback and next-step suggestions for one subject."""

    def __init__(self, profile: SubjectProfile, session: Session | None = None):
        self.profile = profile
        self._session = session

    def build_feedback(self, user_id: str, session_id: int, results: list[QuestionResult]) -> dict[str, Any]:
        """
        Update gaps from a batch of answers and return advice.

        Gap persistence is best effort; the advice is built from whatever
        gaps are readable afterwards.

        Raises:
            ValidationError: empty results
            NotFoundError: session unknown or owned by another user
        """
        if not results:
            raise ValidationError("results must not be empty")

        with self._get_session() as session:
            test_session = get_owned_session(session, self.profile, session_id, user_id)
            subtopic_id = test_session.subtopic_id

            detector = GapDetector(session)
            detector.update_gaps(user_id, subtopic_id, results)
            gaps = detector.list_active_gaps(user_id, subtopic_id)

        correct_count = sum(1 for result in results if result.is_correct)
        total_count = len(results)
        correct_percentage = round_half_up_percent(correct_count, total_count)

        recommendations = []
        if gaps:
            recommendations.append(GAP_RECOMMENDATION)
        if correct_percentage < REVIEW_BELOW_PERCENT:
            recommendations.append(REVIEW_RECOMMENDATION)
        elif correct_percentage >= PROGRESSION_FROM_PERCENT:
            recommendations.append(PROGRESSION_RECOMMENDATION)

        logger.info(
            f"Feedback for {user_id}, session {session_id}: {correct_count}/{total_count}, "
            f"{len(gaps)} active gaps"
        )
        return {
            "gaps": [serialize_gap(gap) for gap in gaps],
            "recommendations": recommendations,
            "performance_metrics": {
                "correct_count": correct_count,
                "total_count": total_count,
                "correct_percentage": correct_percentage,
            },
        }

    def recommend_subtopics(self, user_id: str, topic_id: int) -> dict[str, Any]:
        """
        Subtopics of a topic worth practising next.

        Order: subtopics with open gaps, then subtopics below 50% mastery.
        With neither, and some subtopic above 70%, the first unpractised one.
        """
        with self._get_session() as session:
            get_topic(session, self.profile, topic_id)
            enabled = SettingsStore(session).get_settings(user_id).enable_adaptive_learning

            subtopics = session.scalars(
                select(Subtopic)
                .where(Subtopic.topic_id == topic_id, Subtopic.is_active.is_(True))
                .order_by(Subtopic.id)
            ).all()
            by_id = {subtopic.id: subtopic for subtopic in subtopics}

            progress = session.scalars(
                select(SubtopicProgress).where(
                    SubtopicProgress.user_id == user_id,
                    SubtopicProgress.subtopic_id.in_(list(by_id)),
                )
            ).all()
            gaps = session.scalars(
                select(LearningGap).where(
                    LearningGap.user_id == user_id,
                    LearningGap.subtopic_id.in_(list(by_id)),
                    LearningGap.resolved_at.is_(None),
                )
            ).all()

            gap_subtopics = group_gaps_by_subtopic(gaps)
            recommended = []
            for subtopic in subtopics:
                if subtopic.id in gap_subtopics:
                    recommended.append(
                        _recommendation(subtopic, "Learning gap detected - practice needed")
                    )
            for row in sorted(progress, key=lambda p: p.subtopic_id):
                if row.mastery_level < LOW_MASTERY_BELOW and row.subtopic_id not in gap_subtopics:
                    recommended.append(
                        _recommendation(by_id[row.subtopic_id], "Low mastery level - more practice recommended")
                    )

            if not recommended and progress:
                if max(row.mastery_level for row in progress) > NEXT_SUBTOPIC_ABOVE:
                    practised = {row.subtopic_id for row in progress}
                    unpractised = [subtopic for subtopic in subtopics if subtopic.id not in practised]
                    if unpractised:
                        recommended.append(_recommendation(unpractised[0], "Next subtopic in progression"))

            session.commit()
            return {
                "recommended_subtopics": recommended,
                "learning_gaps_count": len(gaps),
                "adaptive_learning_enabled": enabled,
            }

    def _get_session(self):
        """Get session context manager."""
        return use_session(self._session)


def _recommendation(subtopic: Subtopic, reason: str) -> dict[str, Any]:
    return {"id": subtopic.id, "name": subtopic.name, "reason": reason}
