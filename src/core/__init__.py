"""
Core Module - Shared domain models and interfaces.

Components:
- mastery: Question status classifier (QuestionStatus, classify)
- subjects: Subject enum and per-subject policy (SubjectProfile)
- errors: Domain error taxonomy

Design Principle:
The practice and adaptive packages import from src/core/ rather than
reimplementing shared concepts per subject.
"""

from src.core.errors import NotFoundError, PracticeError, ValidationError
from src.core.mastery import QuestionStats, QuestionStatus, classify
from src.core.subjects import Subject, SubjectProfile, get_profile

__all__ = [
    # Mastery
    "QuestionStatus",
    "QuestionStats",
    "classify",
    # Subjects
    "Subject",
    "SubjectProfile",
    "get_profile",
    # Errors
    "PracticeError",
    "ValidationError",
    "NotFoundError",
]
