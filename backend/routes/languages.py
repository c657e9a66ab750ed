"""
Language Routes
CRUD for a user's languages and their text-to-speech voice tags.
"""

import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from auth.dependencies import get_current_user
from auth.models import User
from config_service import ConflictError, NotFoundError, get_owned_language, mark_default_language
from database import get_session
from models import Language, utcnow

router = APIRouter(prefix="/languages", tags=["languages"])


# --- Request/Response Models ---

class LanguageCreate(BaseModel):
    code: str = Field(min_length=1)
    label: str = Field(min_length=1)
    tts_voice_tag: str = ""
    is_default: bool = False


class LanguageUpdate(BaseModel):
    code: Optional[str] = Field(default=None, min_length=1)
    label: Optional[str] = Field(default=None, min_length=1)
    tts_voice_tag: Optional[str] = None
    is_default: Optional[bool] = None


class LanguageResponse(BaseModel):
    id: UUID
    code: str
    label: str
    tts_voice_tag: str
    is_default: bool
    created_at: datetime.datetime
    updated_at: datetime.datetime


def _code_taken(session: Session, user_id: str, code: str, exclude_id: Optional[UUID] = None) -> bool:
    query = select(Language.id).where(Language.user_id == user_id, Language.code == code)
    if exclude_id is not None:
        query = query.where(Language.id != exclude_id)
    return session.exec(query).first() is not None


def _commit(session: Session, language: Language) -> Language:
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError("Language conflicts with an existing language")
    session.refresh(language)
    return language


# --- Endpoints ---

@router.get("", response_model=List[LanguageResponse])
def list_languages(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """List the user's languages, oldest first."""
    return session.exec(
        select(Language).where(Language.user_id == user.id).order_by(Language.created_at)
    ).all()


@router.post("", response_model=LanguageResponse)
def create_language(
    req: LanguageCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Create a language; marking it default clears the previous default."""
    if _code_taken(session, user.id, req.code):
        raise ConflictError(f"Language code '{req.code}' already exists")

    language = Language(
        user_id=user.id,
        code=req.code,
        label=req.label,
        tts_voice_tag=req.tts_voice_tag,
    )
    session.add(language)
    session.flush()
    if req.is_default:
        mark_default_language(session, user.id, language)
    return _commit(session, language)


@router.put("/{language_id}", response_model=LanguageResponse)
def update_language(
    language_id: str,
    req: LanguageUpdate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Update a language owned by the user."""
    language = get_owned_language(session, user.id, language_id)
    if language is None:
        raise NotFoundError("Language not found")

    if req.code is not None and req.code != language.code:
        if _code_taken(session, user.id, req.code, exclude_id=language.id):
            raise ConflictError(f"Language code '{req.code}' already exists")
        language.code = req.code
    if req.label is not None:
        language.label = req.label
    if req.tts_voice_tag is not None:
        language.tts_voice_tag = req.tts_voice_tag
    language.updated_at = utcnow()

    if req.is_default:
        mark_default_language(session, user.id, language)
    elif req.is_default is False:
        language.is_default = False

    session.add(language)
    return _commit(session, language)


@router.delete("/{language_id}")
def delete_language(
    language_id: str,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Delete a language. Settings that point at it are left dangling."""
    language = get_owned_language(session, user.id, language_id)
    if language is None:
        raise NotFoundError("Language not found")

    session.delete(language)
    session.commit()
    return {"success": True}
