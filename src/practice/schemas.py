"""
Practice data shapes.

Pydantic models validate question content once, at write time. Service
results are plain dataclasses, serialised by the routers.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from pydantic import BaseModel, Field, field_validator, model_validator


class QuestionOption(BaseModel):
    """One answer option as stored in ``questions.options``."""

    id: str = Field(..., min_length=1, description="Stable option identifier")
    text: str = Field(..., min_length=1, description="Option text (may contain LaTeX)")


class QuestionCreate(BaseModel):
    """A new question for a subtopic."""

    subtopic_id: int = Field(..., gt=0)
    question_type_id: int = Field(..., gt=0, description="Concept key used for learning-gap detection")
    difficulty_level_id: int = Field(3, ge=1, le=5)
    question: str = Field(..., min_length=1)
    options: list[QuestionOption] = Field(..., min_length=2)
    correct_answer: str = Field(..., min_length=1)
    explanation: str = ""
    formula: str | None = None
    time_allocation: int | None = Field(None, gt=0, description="Seconds; subject default when omitted")

    @field_validator("options", mode="before")
    @classmethod
    def normalise_options(cls, value):
        """Accept plain strings and assign positional ids (o1, o2, ...)."""
        if not isinstance(value, list):
            raise ValueError("options must be a list")
        normalised = []
        for index, option in enumerate(value, start=1):
            if isinstance(option, str):
                normalised.append({"id": f"o{index}", "text": option})
            else:
                normalised.append(option)
        return normalised

    @model_validator(mode="after")
    def check_options(self) -> QuestionCreate:
        ids = [option.id for option in self.options]
        if len(set(ids)) != len(ids):
            raise ValueError("option ids must be unique")
        texts = {option.text for option in self.options}
        if self.correct_answer not in ids and self.correct_answer not in texts:
            raise ValueError("correct_answer must match an option id or text")
        return self


@dataclass
class AttemptOutcome:
    session_id: int
    total_questions: int
    correct_answers: int
    score: int
    already_attempted: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SessionSummary:
    session_id: int
    total_questions: int
    correct_answers: int
    score: int
    time_spent: int
    already_completed: bool = False

    def to_dict(self) -> dict:
        return asdict(self)
