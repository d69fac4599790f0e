"""
Unit tests for vocabulary step completion and streak arithmetic.
"""
from datetime import datetime, timedelta

from src.practice.vocabulary import empty_step_completion, mastery_from_steps, merge_step, next_streak

NOW = datetime(2026, 3, 10, 18, 0)


class TestStepCompletion:
    def test_first_success_sets_one_step(self):
        steps = merge_step(None, "usage", True)
        assert steps == {"definition": False, "usage": True, "synonym": False, "antonym": False}
        assert mastery_from_steps(steps) == 1

    def test_failure_clears_a_completed_step(self):
        steps = merge_step({"definition": True, "usage": True}, "usage", False)
        assert steps["definition"] is True
        assert steps["usage"] is False
        assert mastery_from_steps(steps) == 1

    def test_all_steps_give_full_mastery(self):
        steps = empty_step_completion()
        for step in steps:
            steps = merge_step(steps, step, True)
        assert mastery_from_steps(steps) == 4

    def test_unknown_stored_keys_are_dropped(self):
        steps = merge_step({"spelling": True, "antonym": True}, "synonym", True)
        assert "spelling" not in steps
        assert mastery_from_steps(steps) == 2


class TestNextStreak:
    def test_first_activity_starts_at_one(self):
        assert next_streak(0, 0, None, NOW) == (1, 1)

    def test_same_day_keeps_streak(self):
        assert next_streak(3, 5, NOW - timedelta(hours=5), NOW) == (3, 5)

    def test_next_day_extends_and_raises_longest(self):
        assert next_streak(5, 5, NOW - timedelta(hours=30), NOW) == (6, 6)

    def test_next_day_below_longest(self):
        assert next_streak(2, 9, NOW - timedelta(days=1), NOW) == (3, 9)

    def test_gap_of_two_days_resets(self):
        assert next_streak(7, 7, NOW - timedelta(days=2, minutes=1), NOW) == (1, 7)

    def test_clock_skew_counts_as_same_day(self):
        assert next_streak(2, 2, NOW + timedelta(minutes=5), NOW) == (2, 2)
