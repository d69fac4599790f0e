"""
Unit tests for score and mastery arithmetic.
"""

from src.db.utils import round_half_up_percent
from src.practice.progress import mastery_level


class TestRoundHalfUpPercent:
    def test_seven_of_ten(self):
        assert round_half_up_percent(7, 10) == 70

    def test_half_rounds_up(self):
        # 1/8 = 12.5% and 5/8 = 62.5%
        assert round_half_up_percent(1, 8) == 13
        assert round_half_up_percent(5, 8) == 63

    def test_below_half_rounds_down(self):
        assert round_half_up_percent(1, 3) == 33
        assert round_half_up_percent(2, 3) == 67

    def test_empty_denominator(self):
        assert round_half_up_percent(0, 0) == 0


class TestMasteryLevel:
    def test_regular_ratio(self):
        assert mastery_level(3, 12) == 25

    def test_clamped_to_100_when_correct_exceeds_active(self):
        # Correct answers to since-deactivated questions still count as correct
        assert mastery_level(15, 10) == 100

    def test_no_active_questions_is_zero(self):
        assert mastery_level(4, 0) == 0

    def test_never_negative(self):
        assert mastery_level(0, 5) == 0
