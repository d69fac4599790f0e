"""
Adaptive Settings API Router.

Per-user adaptive preferences. Settings are shared by every subject.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from src.adaptive import SettingsStore
from src.api.deps import get_session, get_user_id, http_error
from src.core.errors import PracticeError

router = APIRouter()


class SettingsResponse(BaseModel):
    adaptivity_level: int
    difficulty_preference: str
    enable_adaptive_learning: bool


class SettingsUpdateRequest(BaseModel):
    """
    Partial settings update.

    Ranges are checked by the store so out-of-range values are reported as
    400 with a readable message.
    """

    adaptivity_level: int | None = Field(None, description="1 (light) to 10 (strong)")
    difficulty_preference: str | None = Field(None, description="easier, balanced or challenging")
    enable_adaptive_learning: bool | None = None


class ToggleResponse(BaseModel):
    enable_adaptive_learning: bool


def _response(settings) -> SettingsResponse:
    return SettingsResponse(
        adaptivity_level=settings.adaptivity_level,
        difficulty_preference=settings.difficulty_preference,
        enable_adaptive_learning=settings.enable_adaptive_learning,
    )


@router.get("", response_model=SettingsResponse, summary="Get adaptive settings")
def get_settings(
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_session),
) -> SettingsResponse:
    """Current settings; defaults are created on first read."""
    try:
        return _response(SettingsStore(db).get_settings(user_id))
    except PracticeError as exc:
        raise http_error(exc)
    except Exception as exc:
        logger.exception(f"Failed to load settings for {user_id}")
        raise HTTPException(status_code=500, detail=str(exc))


@router.put("", response_model=SettingsResponse, summary="Update adaptive settings")
def update_settings(
    request: SettingsUpdateRequest,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_session),
) -> SettingsResponse:
    """Validate and apply the supplied fields."""
    try:
        partial = request.model_dump(exclude_none=True)
        return _response(SettingsStore(db).update_settings(user_id, partial))
    except PracticeError as exc:
        raise http_error(exc)
    except Exception as exc:
        logger.exception(f"Failed to update settings for {user_id}")
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("/toggle", response_model=ToggleResponse, summary="Toggle adaptive learning")
def toggle_adaptive_learning(
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_session),
) -> ToggleResponse:
    """Switch adaptive selection on or off."""
    try:
        enabled = SettingsStore(db).toggle_adaptive_learning(user_id)
        return ToggleResponse(enable_adaptive_learning=enabled)
    except PracticeError as exc:
        raise http_error(exc)
    except Exception as exc:
        logger.exception(f"Failed to toggle adaptive learning for {user_id}")
        raise HTTPException(status_code=500, detail=str(exc))
