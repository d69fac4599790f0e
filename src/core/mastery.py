"""
Core Mastery Module.

Per-question mastery classification used by the adaptive selector and the
catalog views.

Design:
- QuestionStatus: Enum for the three practice states
- classify(): pure classifier from attempt count and success rate
- QuestionStats: attempt statistics for one question and one user

Status is recomputed on every read and never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

DEFAULT_MASTERY_THRESHOLD = 80.0


class QuestionStatus(str, Enum):
    """Practice state of one question for one learner."""

    TO_START = "To Start"
    LEARNING = "Learning"
    MASTERED = "Mastered"

    @property
    def selection_weight(self) -> float:
        """Weight added to the adaptive score; unpractised questions rank first."""
        return {
            QuestionStatus.TO_START: 6.0,
            QuestionStatus.LEARNING: 4.0,
            QuestionStatus.MASTERED: 0.0,
        }[self]

    @property
    def color(self) -> str:
        """Rich color for CLI display."""
        return {
            QuestionStatus.TO_START: "dim",
            QuestionStatus.LEARNING: "yellow",
            QuestionStatus.MASTERED: "green",
        }[self]


def classify(
    attempt_count: int,
    success_rate_percent: float,
    threshold: float = DEFAULT_MASTERY_THRESHOLD,
) -> QuestionStatus:
    """
    Classify a question from the learner's history with it.

    Args:
        attempt_count: Number of recorded attempts
        success_rate_percent: Correct attempts as a percentage (0-100)
        threshold: Success rate at or above which the question is mastered

    Returns:
        QuestionStatus
    """
    if attempt_count <= 0:
        return QuestionStatus.TO_START
    if success_rate_percent >= threshold:
        return QuestionStatus.MASTERED
    return QuestionStatus.LEARNING


def success_rate(correct: int, attempts: int) -> float:
    """Correct attempts as a percentage; 0 when there are no attempts."""
    if attempts <= 0:
        return 0.0
    return correct * 100.0 / attempts


@dataclass
class QuestionStats:
    """
    A question together with one learner's history on it.

    This is the unit the adaptive selector ranks.
    """

    question_id: int
    question_type_id: int
    difficulty_level: int
    attempt_count: int = 0
    correct_count: int = 0
    status: QuestionStatus = QuestionStatus.TO_START
    payload: dict | None = None  # serialised question for the API response

    @property
    def success_rate(self) -> float:
        return success_rate(self.correct_count, self.attempt_count)

    @classmethod
    def build(
        cls,
        question_id: int,
        question_type_id: int,
        difficulty_level: int,
        attempt_count: int = 0,
        correct_count: int = 0,
        threshold: float = DEFAULT_MASTERY_THRESHOLD,
        payload: dict | None = None,
    ) -> QuestionStats:
        """Create stats and derive the status with the given threshold."""
        status = classify(attempt_count, success_rate(correct_count, attempt_count), threshold)
        return cls(
            question_id=question_id,
            question_type_id=question_type_id,
            difficulty_level=difficulty_level,
            attempt_count=attempt_count,
            correct_count=correct_count,
            status=status,
            payload=payload,
        )
