"""
Gap Detector.

Flags concept areas (question types) within a subtopic where a learner keeps
answering incorrectly, and resolves them once later practice shows
improvement.

Policy (thresholds from config.Settings.get_gap_policy()):
- Resolve: a submission with at least ``min_results`` answers relevant to an
  open gap (an evidence question, or any question of the same concept key)
  of which at least ``correct_percent`` are correct.
- Detect: unless every submitted answer is correct, scan the latest
  ``history_window`` attempts in the subtopic. A concept key is flagged when
  it has at least ``min_incorrect`` incorrect attempts and its incorrect
  ratio exceeds ``incorrect_ratio_threshold``. Attempts older than the
  concept's latest resolution are ignored, so a resolved gap only reopens on
  fresh mistakes.
- Severity: min(10, ceil(incorrect / 2)).

Updates are best effort: persistence errors are logged and rolled back so
the caller's feedback flow carries on.
"""
from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import get_settings
from src.db.database import use_session
from src.db.models import GapStatus, LearningGap, Question, utcnow
from src.db.queries import recent_attempts
from src.db.utils import dialect_insert

MAX_SEVERITY = 10


@dataclass
class QuestionResult:
    question_id: int
    is_correct: bool


@dataclass
class ConceptTally:
    """Correct/incorrect counts for one concept key."""

    concept_key: int
    correct: int = 0
    incorrect: int = 0
    incorrect_question_ids: list[int] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.correct + self.incorrect

    @property
    def incorrect_ratio(self) -> float:
        return self.incorrect / self.total if self.total else 0.0

    @property
    def severity(self) -> int:
        return max(1, min(MAX_SEVERITY, math.ceil(self.incorrect / 2)))


def serialize_gap(gap: LearningGap) -> dict[str, Any]:
    return {
        "id": gap.id,
        "user_id": gap.user_id,
        "subtopic_id": gap.subtopic_id,
        "concept_key": gap.concept_key,
        "severity": gap.severity,
        "evidence_question_ids": list(gap.evidence_question_ids or []),
        "status": gap.status,
        "detected_at": gap.detected_at.isoformat() if gap.detected_at else None,
        "resolved_at": gap.resolved_at.isoformat() if gap.resolved_at else None,
    }


def tally_by_concept(rows: Iterable[tuple]) -> dict[int, ConceptTally]:
    """Group (question_id, concept_key, is_correct, ...) rows by concept key."""
    tallies: dict[int, ConceptTally] = {}
    for question_id, concept_key, is_correct, *_ in rows:
        tally = tallies.setdefault(concept_key, ConceptTally(concept_key))
        if is_correct:
            tally.correct += 1
        else:
            tally.incorrect += 1
            if question_id not in tally.incorrect_question_ids:
                tally.incorrect_question_ids.append(question_id)
    return tallies


class GapDetector:
    """Detect, refresh and resolve learning gaps."""

    def __init__(self, session: Session | None = None, policy: dict[str, Any] | None = None):
        self._session = session
        policy = policy or get_settings().get_gap_policy()
        self.detect_policy = policy["detect"]
        self.resolve_policy = policy["resolve"]

    def list_active_gaps(self, user_id: str, subtopic_id: int) -> list[LearningGap]:
        """Open gaps (resolved_at IS NULL), most severe first."""
        with self._get_session() as session:
            return list(
                session.scalars(
                    select(LearningGap)
                    .where(
                        LearningGap.user_id == user_id,
                        LearningGap.subtopic_id == subtopic_id,
                        LearningGap.resolved_at.is_(None),
                    )
                    .order_by(LearningGap.severity.desc(), LearningGap.id)
                )
            )

    def update_gaps(self, user_id: str, subtopic_id: int, results: list[QuestionResult]) -> dict[str, int]:
        """
        Resolve and detect gaps after a batch of answers. Never raises on
        persistence errors.

        Returns:
            Counts of gaps "resolved", "created" and "refreshed"
        """
        summary = {"resolved": 0, "created": 0, "refreshed": 0}
        if not results:
            return summary

        with self._get_session() as session:
            try:
                summary["resolved"] = self._resolve(session, user_id, subtopic_id, results)
                if not all(result.is_correct for result in results):
                    created, refreshed = self._detect(session, user_id, subtopic_id)
                    summary["created"], summary["refreshed"] = created, refreshed
                session.commit()
            except SQLAlchemyError as e:
                logger.error(f"Failed to update learning gaps for {user_id} in subtopic {subtopic_id}: {e}")
                session.rollback()
                return {"resolved": 0, "created": 0, "refreshed": 0}

        if any(summary.values()):
            logger.info(f"Learning gaps for {user_id} in subtopic {subtopic_id}: {summary}")
        return summary

    # =========================================================================
    # Resolution
    # =========================================================================

    def _resolve(self, session: Session, user_id: str, subtopic_id: int, results: list[QuestionResult]) -> int:
        open_gaps = session.scalars(
            select(LearningGap).where(
                LearningGap.user_id == user_id,
                LearningGap.subtopic_id == subtopic_id,
                LearningGap.resolved_at.is_(None),
            )
        ).all()
        if not open_gaps:
            return 0

        question_ids = {result.question_id for result in results}
        concept_of = dict(
            session.execute(
                select(Question.id, Question.question_type_id).where(Question.id.in_(question_ids))
            ).all()
        )

        resolved = 0
        now = utcnow()
        for gap in open_gaps:
            evidence = set(gap.evidence_question_ids or [])
            relevant = [
                result
                for result in results
                if result.question_id in evidence or concept_of.get(result.question_id) == gap.concept_key
            ]
            if len(relevant) < self.resolve_policy["min_results"]:
                continue
            correct_percent = 100.0 * sum(1 for r in relevant if r.is_correct) / len(relevant)
            if correct_percent >= self.resolve_policy["correct_percent"]:
                gap.resolved_at = now
                gap.status = GapStatus.RESOLVED
                gap.updated_at = now
                resolved += 1
                logger.debug(f"Resolved gap {gap.id} (concept {gap.concept_key}, {correct_percent:.0f}% correct)")
        session.flush()
        return resolved

    # =========================================================================
    # Detection
    # =========================================================================

    def _detect(self, session: Session, user_id: str, subtopic_id: int) -> tuple[int, int]:
        rows = recent_attempts(session, user_id, subtopic_id, self.detect_policy["history_window"])
        # Attempts made before a concept's last resolution no longer count against it
        resolved_at = self._last_resolved(session, user_id, subtopic_id)
        rows = [
            row
            for row in rows
            if row[1] not in resolved_at or row[3] > resolved_at[row[1]]
        ]
        flagged = [
            tally
            for tally in tally_by_concept(rows).values()
            if tally.incorrect >= self.detect_policy["min_incorrect"]
            and tally.incorrect_ratio > self.detect_policy["incorrect_ratio_threshold"]
        ]

        created = refreshed = 0
        for tally in flagged:
            if self._upsert_gap(session, user_id, subtopic_id, tally):
                created += 1
            else:
                refreshed += 1
        session.flush()
        return created, refreshed

    def _last_resolved(self, session: Session, user_id: str, subtopic_id: int) -> dict[int, datetime]:
        return dict(
            session.execute(
                select(LearningGap.concept_key, func.max(LearningGap.resolved_at))
                .where(
                    LearningGap.user_id == user_id,
                    LearningGap.subtopic_id == subtopic_id,
                    LearningGap.resolved_at.is_not(None),
                )
                .group_by(LearningGap.concept_key)
            ).all()
        )

    def _upsert_gap(self, session: Session, user_id: str, subtopic_id: int, tally: ConceptTally) -> bool:
        """Refresh the open gap for the concept, or insert one. Returns True when inserted."""
        now = utcnow()
        existing = session.scalar(
            select(LearningGap).where(
                LearningGap.user_id == user_id,
                LearningGap.subtopic_id == subtopic_id,
                LearningGap.concept_key == tally.concept_key,
                LearningGap.resolved_at.is_(None),
            )
        )
        if existing is not None:
            existing.severity = tally.severity
            existing.evidence_question_ids = sorted(tally.incorrect_question_ids)
            existing.updated_at = now
            return False

        stmt = (
            dialect_insert(session, LearningGap)
            .values(
                user_id=user_id,
                subtopic_id=subtopic_id,
                concept_key=tally.concept_key,
                severity=tally.severity,
                evidence_question_ids=sorted(tally.incorrect_question_ids),
                status=GapStatus.ACTIVE,
                detected_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(
                index_elements=["user_id", "subtopic_id", "concept_key"],
                index_where=LearningGap.resolved_at.is_(None),
            )
        )
        inserted = session.execute(stmt).rowcount > 0
        if inserted:
            logger.debug(
                f"New gap for {user_id}: subtopic {subtopic_id}, concept {tally.concept_key}, "
                f"{tally.incorrect}/{tally.total} incorrect"
            )
        return inserted

    def _get_session(self):
        """Get session context manager."""
        return use_session(self._session)


def group_gaps_by_subtopic(gaps: Iterable[LearningGap]) -> dict[int, list[LearningGap]]:
    grouped: dict[int, list[LearningGap]] = defaultdict(list)
    for gap in gaps:
        grouped[gap.subtopic_id].append(gap)
    return dict(grouped)
