"""
Configuration Service
Resolves the effective settings for a user and exports/imports configuration snapshots.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ai.providers.adapters import validate_base_url
from crypto import CredentialCipher, RECONFIGURATION_SENTINEL
from models import AIProvider, Language, ProviderKind, UserSettings, utcnow
from schemas import (
    AIProviderSnapshot,
    LanguageSnapshot,
    SettingsSnapshot,
    SNAPSHOT_VERSION,
    parse_uuid,
)

logger = logging.getLogger(__name__)

IMPORT_SUCCESS_MESSAGE = "Configuration imported successfully. Please re-enter API keys for security."

# Columns exported for providers; the credential column is never selected
_PROVIDER_EXPORT_COLUMNS = (
    AIProvider.id,
    AIProvider.name,
    AIProvider.kind,
    AIProvider.api_url,
    AIProvider.model,
    AIProvider.logo_url,
    AIProvider.languages_supported,
    AIProvider.created_at,
    AIProvider.updated_at,
)


class ServiceError(Exception):
    """Base error for request handlers, rendered as {"error": message}."""
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(ServiceError):
    """Referenced row is absent or owned by another user."""
    status_code = 404


class InvalidFormatError(ServiceError):
    """Request body does not have the expected shape."""
    status_code = 400


class ConflictError(ServiceError):
    """Write would violate a per-user uniqueness rule."""
    status_code = 409


# --- Shared helpers ---

def mark_default_language(session: Session, user_id: str, language: Language) -> None:
    """
    Make language the user's only default.

    Runs inside the caller's transaction: previous defaults are cleared and
    flushed before the new one is set, and the caller commits once. The
    partial unique index on (user_id) WHERE is_default rejects a racing writer.
    """
    previous = session.exec(
        select(Language).where(
            Language.user_id == user_id,
            Language.is_default == True,  # noqa: E712
            Language.id != language.id,
        )
    ).all()
    now = utcnow()
    for other in previous:
        other.is_default = False
        other.updated_at = now
        session.add(other)
    session.flush()

    language.is_default = True
    language.updated_at = now
    session.add(language)
    session.flush()


def get_owned_language(session: Session, user_id: str, language_id: Any) -> Optional[Language]:
    language_uuid = parse_uuid(language_id)
    if language_uuid is None:
        return None
    return session.exec(
        select(Language).where(Language.id == language_uuid, Language.user_id == user_id)
    ).first()


def get_owned_provider(session: Session, user_id: str, provider_id: Any) -> Optional[AIProvider]:
    provider_uuid = parse_uuid(provider_id)
    if provider_uuid is None:
        return None
    return session.exec(
        select(AIProvider).where(AIProvider.id == provider_uuid, AIProvider.user_id == user_id)
    ).first()


def get_user_settings(session: Session, user_id: str) -> Optional[UserSettings]:
    return session.exec(select(UserSettings).where(UserSettings.user_id == user_id)).first()


# --- Settings resolver ---

def _language_ref(session: Session, user_id: str, language_id: Optional[UUID], first: bool = False):
    query = select(Language.code, Language.label).where(Language.user_id == user_id)
    if first:
        query = query.order_by(Language.created_at)
    elif language_id is None:
        return None
    else:
        query = query.where(Language.id == language_id)

    row = session.exec(query).first()
    if row is None:
        return None
    code, label = row
    return {"code": code, "label": label}


def _provider_ref(session: Session, user_id: str, provider_id: Optional[UUID], first: bool = False):
    query = select(AIProvider.id, AIProvider.name, AIProvider.model).where(AIProvider.user_id == user_id)
    if first:
        query = query.order_by(AIProvider.created_at)
    elif provider_id is None:
        return None
    else:
        query = query.where(AIProvider.id == provider_id)

    row = session.exec(query).first()
    if row is None:
        return None
    provider_uuid, name, model = row
    return {"id": str(provider_uuid), "name": name, "model": model}


def resolve_public_config(session: Session, user_id: str) -> Dict[str, Any]:
    """
    Effective default language and active provider for a user.

    An existing settings row is authoritative even when its references dangle.
    Without a settings row, the earliest-created language and provider are used,
    each independently.
    """
    settings = get_user_settings(session, user_id)

    if settings is not None:
        return {
            "defaultLanguage": _language_ref(session, user_id, settings.default_language_id),
            "activeProvider": _provider_ref(session, user_id, settings.active_provider_id),
            "settings": settings.settings_json or {},
        }

    return {
        "defaultLanguage": _language_ref(session, user_id, None, first=True),
        "activeProvider": _provider_ref(session, user_id, None, first=True),
        "settings": {},
    }


# --- Exporter ---

def export_config(session: Session, user_id: str) -> Dict[str, Any]:
    """Snapshot of everything the user owns, without provider credentials."""
    languages = session.exec(
        select(Language).where(Language.user_id == user_id).order_by(Language.created_at)
    ).all()

    provider_rows = session.exec(
        select(*_PROVIDER_EXPORT_COLUMNS)
        .where(AIProvider.user_id == user_id)
        .order_by(AIProvider.created_at)
    ).all()
    column_names = [column.key for column in _PROVIDER_EXPORT_COLUMNS]

    settings = get_user_settings(session, user_id)
    if settings is not None:
        settings_out = {
            "default_language_id": settings.default_language_id,
            "active_provider_id": settings.active_provider_id,
            "settings_json": settings.settings_json or {},
        }
    else:
        settings_out = {
            "default_language_id": None,
            "active_provider_id": None,
            "settings_json": {},
        }

    return {
        "version": SNAPSHOT_VERSION,
        "exported_at": utcnow().isoformat().replace("+00:00", "Z"),
        "user_id": user_id,
        "languages": [
            {
                "id": language.id,
                "code": language.code,
                "label": language.label,
                "tts_voice_tag": language.tts_voice_tag,
                "is_default": language.is_default,
                "created_at": language.created_at,
                "updated_at": language.updated_at,
            }
            for language in languages
        ],
        "ai_providers": [dict(zip(column_names, row)) for row in provider_rows],
        "settings": settings_out,
    }


# --- Importer ---

def _upsert_language(session: Session, user_id: str, item: LanguageSnapshot) -> Language:
    language = session.exec(
        select(Language).where(Language.user_id == user_id, Language.code == item.code)
    ).first()
    now = utcnow()
    if language is None:
        language = Language(user_id=user_id, code=item.code, label=item.label)

    language.label = item.label
    language.tts_voice_tag = item.tts_voice_tag
    language.updated_at = now
    if not item.is_default:
        language.is_default = False
    session.add(language)
    session.flush()

    if item.is_default:
        mark_default_language(session, user_id, language)
    return language


def _upsert_provider(
    session: Session,
    user_id: str,
    item: AIProviderSnapshot,
    cipher: CredentialCipher,
    allow_internal_urls: bool,
) -> AIProvider:
    kind = ProviderKind.parse(item.kind, item.name)
    validate_base_url(item.api_url, allow_internal=allow_internal_urls or kind == ProviderKind.OLLAMA)

    provider = session.exec(
        select(AIProvider).where(AIProvider.user_id == user_id, AIProvider.name == item.name)
    ).first()
    if provider is None:
        provider = AIProvider(user_id=user_id, name=item.name, api_url=item.api_url, model=item.model)

    provider.kind = kind
    provider.api_url = item.api_url
    provider.model = item.model
    provider.logo_url = item.logo_url
    provider.languages_supported = list(item.languages_supported)
    # Never taken from the snapshot, even if one was hand-added
    provider.credential_encrypted = cipher.encrypt(RECONFIGURATION_SENTINEL)
    provider.updated_at = utcnow()
    session.add(provider)
    session.flush()
    return provider


def _remap(snapshot_id: Optional[str], imported_ids: Dict[str, UUID]) -> Optional[UUID]:
    if snapshot_id is None:
        return None
    if str(snapshot_id) in imported_ids:
        return imported_ids[str(snapshot_id)]
    return parse_uuid(snapshot_id)


def _upsert_settings(
    session: Session,
    user_id: str,
    item: SettingsSnapshot,
    language_ids: Dict[str, UUID],
    provider_ids: Dict[str, UUID],
) -> UserSettings:
    settings = get_user_settings(session, user_id)
    if settings is None:
        settings = UserSettings(user_id=user_id)

    settings.default_language_id = _remap(item.default_language_id, language_ids)
    settings.active_provider_id = _remap(item.active_provider_id, provider_ids)
    settings.settings_json = dict(item.settings_json)
    settings.updated_at = utcnow()
    session.add(settings)
    session.flush()
    return settings


def _describe(raw: Any, key: str) -> str:
    if isinstance(raw, dict):
        return repr(raw.get(key))
    return type(raw).__name__


def import_config(
    session: Session,
    user_id: str,
    payload: Any,
    cipher: CredentialCipher,
    allow_internal_urls: bool = False,
) -> Dict[str, Any]:
    """
    Merge a snapshot into the user's configuration.

    Languages are upserted on (user, code), providers on (user, name) and the
    settings row on user. A row that fails is logged and skipped; the rest of
    the batch still imports. Provider credentials are always reset to the
    reconfiguration sentinel.

    Raises:
        InvalidFormatError: If languages/ai_providers are missing or not lists
    """
    if (
        not isinstance(payload, dict)
        or not isinstance(payload.get("languages"), list)
        or not isinstance(payload.get("ai_providers"), list)
    ):
        raise InvalidFormatError("Invalid configuration format")

    languages: List[Any] = payload["languages"]
    ai_providers: List[Any] = payload["ai_providers"]

    language_ids: Dict[str, UUID] = {}
    for raw in languages:
        try:
            item = LanguageSnapshot.model_validate(raw)
            with session.begin_nested():
                language = _upsert_language(session, user_id, item)
            if item.id:
                language_ids[str(item.id)] = language.id
        except (ValidationError, SQLAlchemyError) as e:
            logger.warning("Error importing language %s for user %s: %s", _describe(raw, "code"), user_id, e)

    provider_ids: Dict[str, UUID] = {}
    for raw in ai_providers:
        try:
            item = AIProviderSnapshot.model_validate(raw)
            with session.begin_nested():
                provider = _upsert_provider(session, user_id, item, cipher, allow_internal_urls)
            if item.id:
                provider_ids[str(item.id)] = provider.id
        except (ValidationError, ValueError, SQLAlchemyError) as e:
            logger.warning("Error importing AI provider %s for user %s: %s", _describe(raw, "name"), user_id, e)

    raw_settings = payload.get("settings")
    if isinstance(raw_settings, dict):
        try:
            item = SettingsSnapshot.model_validate(raw_settings)
            with session.begin_nested():
                _upsert_settings(session, user_id, item, language_ids, provider_ids)
        except (ValidationError, SQLAlchemyError) as e:
            logger.warning("Error importing settings for user %s: %s", user_id, e)

    session.commit()
    logger.info(
        "Imported configuration for user %s: %d languages, %d AI providers",
        user_id, len(languages), len(ai_providers),
    )

    return {
        "success": True,
        "message": IMPORT_SUCCESS_MESSAGE,
        "imported": {
            "languages": len(languages),
            "ai_providers": len(ai_providers),
        },
    }
