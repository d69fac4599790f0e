"""
Unit tests for the question status classifier.

Pure functions only; no database.
"""

import pytest

from src.core.mastery import QuestionStats, QuestionStatus, classify, success_rate


class TestClassify:
    def test_no_attempts_is_to_start(self):
        assert classify(0, 0) is QuestionStatus.TO_START

    def test_threshold_is_inclusive(self):
        assert classify(5, 80) is QuestionStatus.MASTERED

    def test_just_below_threshold_is_learning(self):
        assert classify(5, 79) is QuestionStatus.LEARNING

    def test_no_attempts_wins_over_rate(self):
        # A stale rate without attempts still means the question was never tried
        assert classify(0, 100) is QuestionStatus.TO_START

    def test_custom_threshold(self):
        assert classify(3, 70, threshold=70) is QuestionStatus.MASTERED
        assert classify(3, 69.9, threshold=70) is QuestionStatus.LEARNING


class TestSuccessRate:
    def test_zero_attempts(self):
        assert success_rate(0, 0) == 0.0

    def test_percentage(self):
        assert success_rate(2, 3) == pytest.approx(66.667, rel=1e-3)


class TestQuestionStats:
    def test_build_derives_status(self):
        stats = QuestionStats.build(1, question_type_id=2, difficulty_level=3, attempt_count=4, correct_count=4)
        assert stats.status is QuestionStatus.MASTERED
        assert stats.success_rate == 100.0

    def test_build_unattempted(self):
        stats = QuestionStats.build(1, question_type_id=2, difficulty_level=3)
        assert stats.status is QuestionStatus.TO_START

    def test_selection_weights_favour_unmastered(self):
        assert QuestionStatus.TO_START.selection_weight > QuestionStatus.LEARNING.selection_weight
        assert QuestionStatus.LEARNING.selection_weight > QuestionStatus.MASTERED.selection_weight == 0
