"""
Vocabulary drill service.

Learners work through a word in four steps (definition, usage, synonym,
antonym). Every answer is logged as an attempt; the latest outcome of each
step is kept on the word's progress row, and mastery is the number of
completed steps (0-4). A per-user streak counts consecutive days of
activity.
"""
from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Any

from loguru import logger
from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from src.core.errors import NotFoundError, ValidationError
from src.db.database import use_session
from src.db.models import (
    AlphabetCategory,
    UserStreak,
    VocabularyAttempt,
    VocabularyProgress,
    VocabularyWord,
    utcnow,
)
from src.db.utils import dialect_insert

STEP_TYPES = ("definition", "usage", "synonym", "antonym")
MAX_MASTERY = len(STEP_TYPES)
RECENT_ACTIVITY_LIMIT = 5


def empty_step_completion() -> dict[str, bool]:
    return {step: False for step in STEP_TYPES}


def merge_step(step_completion: dict[str, Any] | None, step_type: str, is_successful: bool) -> dict[str, bool]:
    """Step completion with one step's latest outcome applied. Unknown keys are dropped."""
    merged = empty_step_completion()
    for step, done in (step_completion or {}).items():
        if step in merged:
            merged[step] = bool(done)
    merged[step_type] = bool(is_successful)
    return merged


def mastery_from_steps(step_completion: dict[str, bool]) -> int:
    return min(sum(1 for done in step_completion.values() if done), MAX_MASTERY)


def next_streak(
    current: int, longest: int, last_activity_at: datetime | None, now: datetime
) -> tuple[int, int]:
    """
    Streak after activity at ``now``.

    Whole days elapsed since the last activity decide the outcome: 0 keeps
    the streak, 1 extends it, more (or no previous activity) starts over at 1.
    """
    days = None if last_activity_at is None else math.floor((now - last_activity_at) / timedelta(days=1))
    if days is not None and days <= 0:
        # Same day, but a first activity still counts as day one
        current = max(current, 1)
    elif days == 1:
        current += 1
    else:
        current = 1
    return current, max(longest, current)


def serialize_category(category: AlphabetCategory) -> dict[str, Any]:
    return {
        "id": category.id,
        "letter": category.letter,
        "description": category.description,
        "is_active": category.is_active,
    }


def serialize_word(word: VocabularyWord) -> dict[str, Any]:
    return {
        "id": word.id,
        "word": word.word,
        "definition": word.definition,
        "synonyms": word.synonyms,
        "antonyms": word.antonyms,
        "part_of_speech": word.part_of_speech,
        "sentence": word.sentence,
        "category_id": word.category_id,
        "is_active": word.is_active,
    }


def serialize_progress(progress: VocabularyProgress) -> dict[str, Any]:
    return {
        "user_id": progress.user_id,
        "vocabulary_id": progress.vocabulary_id,
        "mastery_level": progress.mastery_level,
        "step_completion": dict(progress.step_completion or {}),
        "last_attempt_at": progress.last_attempt_at.isoformat() if progress.last_attempt_at else None,
    }


def _validate_step(vocabulary_id: Any, step_type: Any) -> None:
    if not vocabulary_id or not step_type:
        raise ValidationError("vocabulary_id and step_type are required")
    if isinstance(vocabulary_id, bool) or not isinstance(vocabulary_id, int):
        raise ValidationError("vocabulary_id must be an integer")
    if step_type not in STEP_TYPES:
        raise ValidationError(f"step_type must be one of {', '.join(STEP_TYPES)}")


class VocabularyService:
    """Word lists, drill attempts, mastery and streaks."""

    def __init__(self, session: Session | None = None):
        self._session = session

    # =========================================================================
    # Word lists
    # =========================================================================

    def list_categories(self) -> list[dict[str, Any]]:
        """Active letter categories, A to Z."""
        with self._get_session() as session:
            categories = session.scalars(
                select(AlphabetCategory)
                .where(AlphabetCategory.is_active.is_(True))
                .order_by(AlphabetCategory.letter)
            )
            return [serialize_category(category) for category in categories]

    def list_words(self, category_id: int) -> list[dict[str, Any]]:
        with self._get_session() as session:
            words = session.scalars(
                select(VocabularyWord)
                .where(VocabularyWord.category_id == category_id)
                .order_by(VocabularyWord.word)
            )
            return [serialize_word(word) for word in words]

    def get_word(self, category_id: int, word_id: int) -> dict[str, Any]:
        with self._get_session() as session:
            word = session.scalar(
                select(VocabularyWord).where(
                    VocabularyWord.id == word_id, VocabularyWord.category_id == category_id
                )
            )
            if word is None:
                raise NotFoundError(f"Word {word_id} not found")
            return serialize_word(word)

    # =========================================================================
    # Drill
    # =========================================================================

    def track_attempt(
        self,
        user_id: str,
        vocabulary_id: int,
        step_type: str,
        is_successful: bool,
        response: str | None = None,
        time_spent: int | None = None,
    ) -> dict[str, Any]:
        """
        Log one drill answer.

        Raises:
            ValidationError: missing word id or step type, or unknown step type
            NotFoundError: unknown word
        """
        _validate_step(vocabulary_id, step_type)
        with self._get_session() as session:
            self._require_word(session, vocabulary_id)
            attempt = VocabularyAttempt(
                user_id=user_id,
                vocabulary_id=vocabulary_id,
                step_type=step_type,
                is_successful=bool(is_successful),
                response=response,
                time_spent=time_spent,
                created_at=utcnow(),
            )
            session.add(attempt)
            session.commit()
            logger.debug(f"Vocabulary attempt by {user_id}: word {vocabulary_id} {step_type} ok={attempt.is_successful}")
            return {
                "id": attempt.id,
                "user_id": attempt.user_id,
                "vocabulary_id": attempt.vocabulary_id,
                "step_type": attempt.step_type,
                "is_successful": attempt.is_successful,
                "response": attempt.response,
                "time_spent": attempt.time_spent,
                "created_at": attempt.created_at.isoformat(),
            }

    def update_mastery(self, user_id: str, vocabulary_id: int, step_type: str, is_successful: bool) -> dict[str, Any]:
        """Apply a step outcome to the word's progress and recompute mastery."""
        _validate_step(vocabulary_id, step_type)
        with self._get_session() as session:
            self._require_word(session, vocabulary_id)
            progress = self._get_or_create_progress(session, user_id, vocabulary_id)
            # Reassign rather than mutate so the JSON column change is flushed
            progress.step_completion = merge_step(progress.step_completion, step_type, is_successful)
            progress.mastery_level = mastery_from_steps(progress.step_completion)
            progress.last_attempt_at = utcnow()
            session.commit()
            return serialize_progress(progress)

    def update_streak(self, user_id: str, now: datetime | None = None) -> dict[str, Any]:
        """Register activity for today and return the streak."""
        if not user_id:
            raise ValidationError("user_id is required")
        now = now or utcnow()
        with self._get_session() as session:
            session.execute(
                dialect_insert(session, UserStreak)
                .values(user_id=user_id, current_streak=0, longest_streak=0, last_activity_at=None)
                .on_conflict_do_nothing(index_elements=["user_id"])
            )
            streak = session.scalar(select(UserStreak).where(UserStreak.user_id == user_id).with_for_update())
            streak.current_streak, streak.longest_streak = next_streak(
                streak.current_streak, streak.longest_streak, streak.last_activity_at, now
            )
            streak.last_activity_at = now
            session.commit()
            return {
                "current_streak": streak.current_streak,
                "longest_streak": streak.longest_streak,
                "last_activity_at": now.isoformat(),
            }

    # =========================================================================
    # Metrics
    # =========================================================================

    def get_metrics(self, user_id: str) -> dict[str, Any]:
        """Dashboard figures for one learner. Zeros when there is no activity."""
        if not user_id:
            raise ValidationError("user_id is required")
        successful = func.sum(case((VocabularyAttempt.is_successful.is_(True), 1), else_=0))
        with self._get_session() as session:
            total, correct, distinct_words = session.execute(
                select(
                    func.count(VocabularyAttempt.id),
                    successful,
                    func.count(func.distinct(VocabularyAttempt.vocabulary_id)),
                )
                .where(VocabularyAttempt.user_id == user_id)
            ).one()
            correct = correct or 0

            current_streak = session.scalar(
                select(UserStreak.current_streak).where(UserStreak.user_id == user_id)
            )
            total_words = session.scalar(
                select(func.count(func.distinct(VocabularyProgress.vocabulary_id))).where(
                    VocabularyProgress.user_id == user_id
                )
            )
            by_type = session.execute(
                select(VocabularyAttempt.step_type, func.count(VocabularyAttempt.id), successful)
                .where(VocabularyAttempt.user_id == user_id)
                .group_by(VocabularyAttempt.step_type)
                .order_by(VocabularyAttempt.step_type)
            ).all()
            recent = session.execute(
                select(
                    VocabularyAttempt.vocabulary_id,
                    VocabularyAttempt.step_type,
                    VocabularyAttempt.is_successful,
                    VocabularyAttempt.created_at,
                    VocabularyWord.word,
                )
                .outerjoin(VocabularyWord, VocabularyWord.id == VocabularyAttempt.vocabulary_id)
                .where(VocabularyAttempt.user_id == user_id)
                .order_by(VocabularyAttempt.created_at.desc(), VocabularyAttempt.id.desc())
                .limit(RECENT_ACTIVITY_LIMIT)
            ).all()

        return {
            "success_rate": round(100.0 * correct / total, 1) if total else 0.0,
            "current_streak": current_streak or 0,
            "average_attempts": round(total / distinct_words, 2) if distinct_words else 0.0,
            "total_words": total_words or 0,
            "performance_by_type": [
                {"category": step_type, "value": round(100.0 * (ok or 0) / count, 2)}
                for step_type, count, ok in by_type
            ],
            "recent_activity": [
                {
                    "vocabulary_id": vocabulary_id,
                    "step_type": step_type,
                    "is_successful": is_successful,
                    "created_at": created_at.isoformat(),
                    "word": word,
                }
                for vocabulary_id, step_type, is_successful, created_at, word in recent
            ],
        }

    def _require_word(self, session: Session, vocabulary_id: int) -> VocabularyWord:
        word = session.get(VocabularyWord, vocabulary_id)
        if word is None:
            raise NotFoundError(f"Word {vocabulary_id} not found")
        return word

    def _get_or_create_progress(self, session: Session, user_id: str, vocabulary_id: int) -> VocabularyProgress:
        session.execute(
            dialect_insert(session, VocabularyProgress)
            .values(
                user_id=user_id,
                vocabulary_id=vocabulary_id,
                mastery_level=0,
                step_completion=empty_step_completion(),
                created_at=utcnow(),
            )
            .on_conflict_do_nothing(index_elements=["user_id", "vocabulary_id"])
        )
        return session.scalar(
            select(VocabularyProgress).where(
                VocabularyProgress.user_id == user_id,
                VocabularyProgress.vocabulary_id == vocabulary_id,
            )
        )

    def _get_session(self):
        """Get session context manager."""
        return use_session(self._session)
