"""
Adaptive Settings Store.

One settings row per user, created with defaults on first read.
Difficulty preference is stored in its canonical spelling
(easier | balanced | challenging); "easy" and "hard" are accepted on input.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from config import get_settings
from src.core.errors import ValidationError
from src.db.database import use_session
from src.db.models import UserAdaptiveSettings, utcnow
from src.db.utils import dialect_insert

DIFFICULTY_PREFERENCES = ("easier", "balanced", "challenging")
PREFERENCE_ALIASES = {"easy": "easier", "hard": "challenging"}
MIN_ADAPTIVITY_LEVEL = 1
MAX_ADAPTIVITY_LEVEL = 10


@dataclass
class AdaptiveSettings:
    user_id: str
    adaptivity_level: int
    difficulty_preference: str
    enable_adaptive_learning: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row: UserAdaptiveSettings) -> AdaptiveSettings:
        return cls(
            user_id=row.user_id,
            adaptivity_level=row.adaptivity_level,
            difficulty_preference=row.difficulty_preference,
            enable_adaptive_learning=row.enable_adaptive_learning,
        )


def normalise_preference(value: Any) -> str:
    """Canonical difficulty preference, or ValidationError."""
    if not isinstance(value, str):
        raise ValidationError("difficulty_preference must be a string")
    key = value.strip().lower()
    key = PREFERENCE_ALIASES.get(key, key)
    if key not in DIFFICULTY_PREFERENCES:
        raise ValidationError(
            f"difficulty_preference must be one of {', '.join(DIFFICULTY_PREFERENCES)}"
        )
    return key


def validate_level(value: Any) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("adaptivity_level must be an integer")
    if not MIN_ADAPTIVITY_LEVEL <= value <= MAX_ADAPTIVITY_LEVEL:
        raise ValidationError(
            f"adaptivity_level must be between {MIN_ADAPTIVITY_LEVEL} and {MAX_ADAPTIVITY_LEVEL}"
        )
    return value


class SettingsStore:
    """Read and update per-user adaptive settings."""

    UPDATABLE_FIELDS = ("adaptivity_level", "difficulty_preference", "enable_adaptive_learning")

    def __init__(self, session: Session | None = None):
        self._session = session

    def get_settings(self, user_id: str) -> AdaptiveSettings:
        """Settings for a user, creating the default row if there is none."""
        if not user_id:
            raise ValidationError("user_id is required")
        with self._get_session() as session:
            row = self._get_or_create(session, user_id)
            session.commit()
            return AdaptiveSettings.from_row(row)

    def update_settings(self, user_id: str, partial: dict[str, Any]) -> AdaptiveSettings:
        """
        Apply a partial update.

        Every supplied field is validated before anything is written.

        Raises:
            ValidationError: unknown field, level outside 1-10, or unknown preference
        """
        if not user_id:
            raise ValidationError("user_id is required")
        changes = self._validate(partial)

        with self._get_session() as session:
            row = self._get_or_create(session, user_id)
            for name, value in changes.items():
                setattr(row, name, value)
            row.updated_at = utcnow()
            session.commit()
            logger.info(f"Updated adaptive settings for {user_id}: {changes}")
            return AdaptiveSettings.from_row(row)

    def toggle_adaptive_learning(self, user_id: str) -> bool:
        """Flip enable_adaptive_learning and return the new value."""
        current = self.get_settings(user_id)
        updated = self.update_settings(
            user_id, {"enable_adaptive_learning": not current.enable_adaptive_learning}
        )
        return updated.enable_adaptive_learning

    def _validate(self, partial: dict[str, Any]) -> dict[str, Any]:
        unknown = set(partial) - set(self.UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown settings fields: {', '.join(sorted(unknown))}")

        changes: dict[str, Any] = {}
        if partial.get("adaptivity_level") is not None:
            changes["adaptivity_level"] = validate_level(partial["adaptivity_level"])
        if partial.get("difficulty_preference") is not None:
            changes["difficulty_preference"] = normalise_preference(partial["difficulty_preference"])
        if partial.get("enable_adaptive_learning") is not None:
            if not isinstance(partial["enable_adaptive_learning"], bool):
                raise ValidationError("enable_adaptive_learning must be a boolean")
            changes["enable_adaptive_learning"] = partial["enable_adaptive_learning"]
        return changes

    def _get_or_create(self, session: Session, user_id: str) -> UserAdaptiveSettings:
        row = session.scalar(select(UserAdaptiveSettings).where(UserAdaptiveSettings.user_id == user_id))
        if row is not None:
            return row

        defaults = get_settings().get_adaptive_defaults()
        now = utcnow()
        # Concurrent first reads for the same user must not create two rows
        session.execute(
            dialect_insert(session, UserAdaptiveSettings)
            .values(user_id=user_id, created_at=now, updated_at=now, **defaults)
            .on_conflict_do_nothing(index_elements=["user_id"])
        )
        logger.info(f"Created default adaptive settings for {user_id}")
        return session.scalar(select(UserAdaptiveSettings).where(UserAdaptiveSettings.user_id == user_id))

    def _get_session(self):
        """Get session context manager."""
        return use_session(self._session)
