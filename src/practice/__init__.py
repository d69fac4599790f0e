"""
Practice Module.

Sessions, attempts and progress for the quiz subjects:
- AttemptRecorder: exactly-once attempts and live session aggregates
- SessionCompleter: idempotent completion with progress upsert
- ProgressTracker: topic/subtopic progress cache
- CatalogService: topics, subtopics and questions per subject
- repair: rebuild derived aggregates from attempts
- VocabularyService: word drill attempts, mastery, streaks and metrics
"""

from src.practice.catalog import CatalogService
from src.practice.completion import SessionCompleter
from src.practice.progress import ProgressTracker, mastery_level
from src.practice.recorder import AttemptRecorder
from src.practice.repair import RepairReport, rebuild_progress, repair_session_aggregates
from src.practice.schemas import AttemptOutcome, QuestionCreate, QuestionOption, SessionSummary
from src.practice.vocabulary import VocabularyService

__all__ = [
    "AttemptRecorder",
    "AttemptOutcome",
    "SessionCompleter",
    "SessionSummary",
    "ProgressTracker",
    "mastery_level",
    "CatalogService",
    "QuestionCreate",
    "QuestionOption",
    "RepairReport",
    "rebuild_progress",
    "repair_session_aggregates",
    "VocabularyService",
]
