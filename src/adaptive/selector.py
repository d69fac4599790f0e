"""
Adaptive Selector.

Ranks a subtopic's question pool for one learner and serves the top N.

Score per question:

    bias * (2 * difficulty_fit + 3 * gap_severity + status_weight + success_deficit)
        + recent_penalty + jitter

    bias            adaptivity_level / 5 (level 10 doubles the pull toward weak areas)
    difficulty_fit  10 - |difficulty - target|, target from subtopic mastery and preference
    gap_severity    severity of an open gap the question addresses, else 0
    status_weight   6 To Start, 4 Learning, 0 Mastered
    success_deficit 10 - success_rate / 10 (50% assumed for unseen questions)
    recent_penalty  -15 for questions among the learner's latest attempts
    jitter          uniform [0, 5)

The selector never fails a request because of ranking: adaptive disabled, an
empty pool, a pool with no weak signal, or any error while ranking all fall
back to a uniform random sample.
"""
from __future__ import annotations

import math
import random
from dataclasses import dataclass

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import get_settings
from src.adaptive.gap_detector import GapDetector
from src.adaptive.settings_store import AdaptiveSettings, SettingsStore
from src.core.mastery import QuestionStats, QuestionStatus
from src.core.subjects import SubjectProfile
from src.db.database import use_session
from src.db.models import AdaptiveQuestionSelection, LearningGap, Question, SubtopicProgress
from src.db.queries import question_history, recent_attempts
from src.practice.catalog import get_subtopic, serialize_question

DIFFICULTY_WEIGHT = 2.0
GAP_WEIGHT = 3.0
RECENT_PENALTY = -15.0
JITTER = 5.0
UNSEEN_SUCCESS_RATE = 50.0
MIN_DIFFICULTY, MAX_DIFFICULTY = 1, 5


class SelectionReason:
    FILLING_LEARNING_GAP = "filling_learning_gap"
    APPROPRIATE_DIFFICULTY = "appropriate_difficulty"
    REINFORCING_WEAK_AREA = "reinforcing_weak_area"
    BALANCED_SELECTION = "balanced_selection"
    RANDOM_SAMPLE = "random_sample"


@dataclass
class SelectedQuestion:
    """A served question with the reason it was picked."""

    stats: QuestionStats
    reason: str
    score: float | None = None

    def to_dict(self) -> dict:
        return {
            **(self.stats.payload or {"id": self.stats.question_id}),
            "status": self.stats.status.value,
            "attempt_count": self.stats.attempt_count,
            "success_rate": round(self.stats.success_rate, 1),
            "selection_reason": self.reason,
        }


def target_difficulty(mastery_level: float, preference: str) -> int:
    """Difficulty (1-5) to aim for: higher mastery aims higher, shifted by preference."""
    base = max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, math.ceil(mastery_level / 20)))
    if preference == "easier":
        return max(MIN_DIFFICULTY, base - 1)
    if preference == "challenging":
        return min(MAX_DIFFICULTY, base + 1)
    return base


def gap_severity_for(stats: QuestionStats, gaps: list[LearningGap]) -> int:
    """Severity of the worst open gap the question addresses."""
    severity = 0
    for gap in gaps:
        if stats.question_id in (gap.evidence_question_ids or []) or stats.question_type_id == gap.concept_key:
            severity = max(severity, gap.severity)
    return severity


class AdaptiveSelector:
    """Pick the next batch of questions for a learner."""

    def __init__(
        self,
        profile: SubjectProfile,
        session: Session | None = None,
        rng: random.Random | None = None,
        limit: int | None = None,
    ):
        settings = get_settings()
        self.profile = profile
        self._session = session
        self.rng = rng or random.Random()
        self.limit = limit or settings.selection_size
        self.recent_window = settings.recent_attempt_window

    def build_pool(self, user_id: str, subtopic_id: int) -> list[QuestionStats]:
        """Active questions of the subtopic with the learner's attempt stats."""
        with self._get_session() as session:
            get_subtopic(session, self.profile, subtopic_id)
            questions = session.scalars(
                select(Question)
                .where(Question.subtopic_id == subtopic_id, Question.is_active.is_(True))
                .order_by(Question.id)
            ).all()
            history = question_history(session, user_id, subtopic_id)
            pool = []
            for question in questions:
                attempts, correct = history.get(question.id, (0, 0))
                pool.append(
                    QuestionStats.build(
                        question.id,
                        question.question_type_id,
                        question.difficulty_level_id,
                        attempt_count=attempts,
                        correct_count=correct,
                        threshold=self.profile.mastery_threshold_percent,
                        payload=serialize_question(question),
                    )
                )
            return pool

    def select_questions(
        self,
        user_id: str,
        subtopic_id: int,
        pool: list[QuestionStats],
        session_id: int | None = None,
    ) -> list[SelectedQuestion]:
        """
        Select up to ``limit`` distinct questions from the pool.

        Returns:
            Selected questions in serving order. Empty only when the pool is empty.
        """
        if not pool:
            return []

        try:
            selected = self._select_adaptive(user_id, subtopic_id, pool)
        except Exception as e:  # Intentionally broad - ranking must never fail the request
            logger.exception(f"Adaptive ranking failed for {user_id}, falling back to random: {e}")
            selected = None

        if selected is None:
            selected = self.random_sample(pool)

        if session_id is not None:
            self._record_selections(session_id, selected)
        return selected

    def random_sample(self, pool: list[QuestionStats]) -> list[SelectedQuestion]:
        """Uniform sample without replacement, bounded by ``limit``."""
        picked = self.rng.sample(pool, min(self.limit, len(pool)))
        return [SelectedQuestion(stats, SelectionReason.RANDOM_SAMPLE) for stats in picked]

    # =========================================================================
    # Ranking
    # =========================================================================

    def _select_adaptive(
        self, user_id: str, subtopic_id: int, pool: list[QuestionStats]
    ) -> list[SelectedQuestion] | None:
        """Ranked selection, or None when a random sample should be served instead."""
        signals = self._load_signals(user_id, subtopic_id, pool)
        if signals is None:
            return None
        settings, gaps, mastery, recent_ids = signals
        return self.rank(pool, settings, gaps, mastery, recent_ids)

    def _load_signals(self, user_id: str, subtopic_id: int, pool: list[QuestionStats]):
        """
        Settings, open gaps, subtopic mastery and recent question ids, or None
        when ranking should be skipped.

        Only a failed read rolls the session back, since the transaction is
        unusable afterwards.
        """
        with self._get_session() as session:
            try:
                return self._read_signals(session, user_id, subtopic_id, pool)
            except SQLAlchemyError as e:
                logger.error(f"Failed to load adaptive signals for {user_id} in subtopic {subtopic_id}: {e}")
                session.rollback()
                return None

    def _read_signals(self, session: Session, user_id: str, subtopic_id: int, pool: list[QuestionStats]):
        settings = SettingsStore(session).get_settings(user_id)
        if not settings.enable_adaptive_learning:
            logger.debug(f"Adaptive learning disabled for {user_id}")
            return None

        gaps = GapDetector(session).list_active_gaps(user_id, subtopic_id)
        if not gaps and all(stats.status is QuestionStatus.MASTERED for stats in pool):
            logger.debug(f"No weak signal for {user_id} in subtopic {subtopic_id}")
            return None

        mastery = session.scalar(
            select(SubtopicProgress.mastery_level).where(
                SubtopicProgress.user_id == user_id,
                SubtopicProgress.subtopic_id == subtopic_id,
            )
        )
        recent_ids = {
            row[0] for row in recent_attempts(session, user_id, subtopic_id, self.recent_window)
        }
        return settings, gaps, mastery or 0, recent_ids

    def rank(
        self,
        pool: list[QuestionStats],
        settings: AdaptiveSettings,
        gaps: list[LearningGap],
        mastery_level: float,
        recent_ids: set[int],
    ) -> list[SelectedQuestion]:
        """Score every question and keep the top ``limit``."""
        bias = settings.adaptivity_level / 5
        target = target_difficulty(mastery_level, settings.difficulty_preference)

        scored = []
        for stats in pool:
            difficulty_fit = 10 - abs(stats.difficulty_level - target)
            severity = gap_severity_for(stats, gaps)
            rate = stats.success_rate if stats.attempt_count else UNSEEN_SUCCESS_RATE
            success_deficit = 10 - rate / 10

            score = bias * (
                DIFFICULTY_WEIGHT * difficulty_fit
                + GAP_WEIGHT * severity
                + stats.status.selection_weight
                + success_deficit
            )
            if stats.question_id in recent_ids:
                score += RECENT_PENALTY
            score += self.rng.random() * JITTER

            if severity:
                reason = SelectionReason.FILLING_LEARNING_GAP
            elif difficulty_fit > 7:
                reason = SelectionReason.APPROPRIATE_DIFFICULTY
            elif success_deficit > 5:
                reason = SelectionReason.REINFORCING_WEAK_AREA
            else:
                reason = SelectionReason.BALANCED_SELECTION
            scored.append(SelectedQuestion(stats, reason, score))

        scored.sort(key=lambda item: item.score, reverse=True)
        selected = scored[: self.limit]
        logger.debug(
            f"Ranked {len(pool)} questions (target difficulty {target}, bias {bias:.1f}): "
            f"{[(s.stats.question_id, round(s.score, 1)) for s in selected]}"
        )
        return selected

    # =========================================================================
    # Provenance
    # =========================================================================

    def _record_selections(self, session_id: int, selected: list[SelectedQuestion]) -> None:
        """Store why each question was served. Failures are logged and ignored."""
        with self._get_session() as session:
            try:
                for position, item in enumerate(selected, start=1):
                    session.add(
                        AdaptiveQuestionSelection(
                            test_session_id=session_id,
                            question_id=item.stats.question_id,
                            selection_reason=item.reason,
                            difficulty_level=item.stats.difficulty_level,
                            sequence_position=position,
                        )
                    )
                session.commit()
            except SQLAlchemyError as e:
                logger.error(f"Failed to record adaptive selections for session {session_id}: {e}")
                session.rollback()

    def _get_session(self):
        """Get session context manager."""
        return use_session(self._session)
