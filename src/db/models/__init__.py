# SQLAlchemy models
from .adaptive import (
    AdaptiveQuestionSelection,
    GapStatus,
    LearningGap,
    UserAdaptiveSettings,
)
from .base import Base, utcnow
from .catalog import (
    Question,
    Subtopic,
    Topic,
)
from .practice import (
    QuestionAttempt,
    SessionStatus,
    SubtopicProgress,
    TestSession,
    TopicProgress,
)
from .vocabulary import (
    AlphabetCategory,
    UserStreak,
    VocabularyAttempt,
    VocabularyProgress,
    VocabularyWord,
)

__all__ = [
    # Base
    "Base",
    "utcnow",
    # Catalog
    "Topic",
    "Subtopic",
    "Question",
    # Practice
    "TestSession",
    "SessionStatus",
    "QuestionAttempt",
    "TopicProgress",
    "SubtopicProgress",
    # Adaptive
    "LearningGap",
    "GapStatus",
    "UserAdaptiveSettings",
    "AdaptiveQuestionSelection",
    # Vocabulary
    "AlphabetCategory",
    "VocabularyWord",
    "VocabularyAttempt",
    "VocabularyProgress",
    "UserStreak",
]
