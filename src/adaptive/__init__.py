"""
Adaptive Learning Engine.

Components:
- SettingsStore: Per-user adaptivity level, difficulty preference and on/off switch
- GapDetector: Detects and resolves learning gaps per concept key
- AdaptiveSelector: Ranks a question pool and serves the next batch
- RecommendationService: Post-practice feedback and subtopic suggestions
"""
from src.adaptive.gap_detector import GapDetector, QuestionResult, serialize_gap
from src.adaptive.recommendations import RecommendationService
from src.adaptive.selector import AdaptiveSelector, SelectedQuestion, SelectionReason, target_difficulty
from src.adaptive.settings_store import (
    DIFFICULTY_PREFERENCES,
    AdaptiveSettings,
    SettingsStore,
    normalise_preference,
)

__all__ = [
    # Component classes
    "SettingsStore",
    "GapDetector",
    "AdaptiveSelector",
    "RecommendationService",
    # Data models
    "AdaptiveSettings",
    "QuestionResult",
    "SelectedQuestion",
    "SelectionReason",
    # Helpers
    "DIFFICULTY_PREFERENCES",
    "normalise_preference",
    "serialize_gap",
    "target_difficulty",
]
