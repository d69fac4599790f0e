"""
Subject profiles.

Maths and quantitative practice share one implementation. Everything that
differs between them is carried by a SubjectProfile looked up by subject.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from config import get_settings


class Subject(str, Enum):
    MATHS = "maths"
    QUANTITATIVE = "quantitative"

    @property
    def display_name(self) -> str:
        return self.value.title()


@dataclass(frozen=True)
class SubjectProfile:
    """Policy values for one subject."""

    subject: Subject
    mastery_threshold_percent: float
    default_time_allocation: int = 60  # seconds


def get_profile(subject: Subject | str) -> SubjectProfile:
    """
    Resolve the profile for a subject.

    Raises:
        ValueError: for an unknown subject name
    """
    subject = Subject(subject)
    settings = get_settings()
    if subject is Subject.QUANTITATIVE:
        # Quantitative reasoning items carry longer word problems
        return SubjectProfile(
            subject=subject,
            mastery_threshold_percent=settings.mastery_threshold_percent,
            default_time_allocation=90,
        )
    return SubjectProfile(
        subject=subject,
        mastery_threshold_percent=settings.mastery_threshold_percent,
    )
