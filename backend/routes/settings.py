"""
Settings Routes
Choose the default language, the active AI provider and free-form UI settings.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from auth.dependencies import get_current_user
from auth.models import User
from config_service import (
    NotFoundError,
    get_owned_language,
    get_owned_provider,
    get_user_settings,
    mark_default_language,
)
from database import get_session
from models import UserSettings, utcnow

router = APIRouter(prefix="/settings", tags=["settings"])


class SettingsUpdate(BaseModel):
    # Only fields present in the request are changed; null clears a reference
    default_language_id: Optional[str] = None
    active_provider_id: Optional[str] = None
    settings_json: Optional[Dict[str, Any]] = None


def _settings_body(settings: Optional[UserSettings]) -> Dict[str, Any]:
    if settings is None:
        return {"default_language_id": None, "active_provider_id": None, "settings_json": {}}
    return {
        "default_language_id": str(settings.default_language_id) if settings.default_language_id else None,
        "active_provider_id": str(settings.active_provider_id) if settings.active_provider_id else None,
        "settings_json": settings.settings_json or {},
    }


@router.get("")
def get_settings(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Raw settings row (ids, not resolved references)."""
    return _settings_body(get_user_settings(session, user.id))


@router.put("")
def update_settings(
    req: SettingsUpdate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Create or update the user's settings row."""
    settings = get_user_settings(session, user.id) or UserSettings(user_id=user.id)
    fields = req.model_fields_set

    if "default_language_id" in fields:
        if req.default_language_id is None:
            settings.default_language_id = None
        else:
            language = get_owned_language(session, user.id, req.default_language_id)
            if language is None:
                raise NotFoundError("Language not found")
            mark_default_language(session, user.id, language)
            settings.default_language_id = language.id

    if "active_provider_id" in fields:
        if req.active_provider_id is None:
            settings.active_provider_id = None
        else:
            provider = get_owned_provider(session, user.id, req.active_provider_id)
            if provider is None:
                raise NotFoundError("AI provider not found")
            settings.active_provider_id = provider.id

    if "settings_json" in fields:
        settings.settings_json = dict(req.settings_json or {})

    settings.updated_at = utcnow()
    session.add(settings)
    session.commit()
    session.refresh(settings)
    return _settings_body(settings)
