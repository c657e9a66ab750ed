"""
AI Provider Routes
CRUD for a user's AI providers. API keys are write-only and encrypted at rest.
"""

import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ai.dependencies import get_cipher, get_provider_config
from ai.providers.adapters import validate_base_url
from auth.dependencies import get_current_user
from auth.models import User
from config import ProviderConfig
from config_service import ConflictError, InvalidFormatError, NotFoundError, get_owned_provider
from crypto import CredentialCipher
from database import get_session
from models import AIProvider, ProviderKind, utcnow

router = APIRouter(prefix="/ai-providers", tags=["ai-providers"])


# --- Request/Response Models ---

class ProviderCreate(BaseModel):
    name: str = Field(min_length=1)
    kind: Optional[ProviderKind] = None  # inferred from the name when omitted
    api_url: str
    model: str = Field(min_length=1)
    logo_url: Optional[str] = None
    languages_supported: List[str] = Field(default_factory=list)
    api_key: str = Field(min_length=1)


class ProviderUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    kind: Optional[ProviderKind] = None
    api_url: Optional[str] = None
    model: Optional[str] = Field(default=None, min_length=1)
    logo_url: Optional[str] = None
    languages_supported: Optional[List[str]] = None
    api_key: Optional[str] = None  # omitted or empty keeps the stored key


class ProviderResponse(BaseModel):
    id: UUID
    name: str
    kind: ProviderKind
    api_url: str
    model: str
    logo_url: Optional[str]
    languages_supported: List[str]
    has_credential: bool
    needs_reconfiguration: bool
    created_at: datetime.datetime
    updated_at: datetime.datetime


def _to_response(provider: AIProvider, cipher: CredentialCipher) -> ProviderResponse:
    return ProviderResponse(
        id=provider.id,
        name=provider.name,
        kind=provider.kind,
        api_url=provider.api_url,
        model=provider.model,
        logo_url=provider.logo_url,
        languages_supported=list(provider.languages_supported or []),
        has_credential=bool(provider.credential_encrypted),
        needs_reconfiguration=cipher.needs_reconfiguration(provider.credential_encrypted),
        created_at=provider.created_at,
        updated_at=provider.updated_at,
    )


def _check_url(api_url: str, kind: ProviderKind, provider_config: ProviderConfig) -> str:
    allow_internal = provider_config.allow_internal_urls or kind == ProviderKind.OLLAMA
    try:
        return validate_base_url(api_url, allow_internal=allow_internal)
    except ValueError as e:
        raise InvalidFormatError(str(e))


def _name_taken(session: Session, user_id: str, name: str, exclude_id: Optional[UUID] = None) -> bool:
    query = select(AIProvider.id).where(AIProvider.user_id == user_id, AIProvider.name == name)
    if exclude_id is not None:
        query = query.where(AIProvider.id != exclude_id)
    return session.exec(query).first() is not None


def _commit(session: Session, provider: AIProvider) -> AIProvider:
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError("AI provider conflicts with an existing provider")
    session.refresh(provider)
    return provider


# --- Endpoints ---

@router.get("", response_model=List[ProviderResponse])
def list_providers(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    cipher: CredentialCipher = Depends(get_cipher),
):
    """List the user's AI providers, oldest first. Credentials are never returned."""
    providers = session.exec(
        select(AIProvider).where(AIProvider.user_id == user.id).order_by(AIProvider.created_at)
    ).all()
    return [_to_response(provider, cipher) for provider in providers]


@router.post("", response_model=ProviderResponse)
def create_provider(
    req: ProviderCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    cipher: CredentialCipher = Depends(get_cipher),
    provider_config: ProviderConfig = Depends(get_provider_config),
):
    """Register an AI provider with its API key."""
    kind = req.kind or ProviderKind.infer(req.name)
    _check_url(req.api_url, kind, provider_config)
    if _name_taken(session, user.id, req.name):
        raise ConflictError(f"AI provider '{req.name}' already exists")

    provider = AIProvider(
        user_id=user.id,
        name=req.name,
        kind=kind,
        api_url=req.api_url,
        model=req.model,
        logo_url=req.logo_url,
        languages_supported=list(req.languages_supported),
        credential_encrypted=cipher.encrypt(req.api_key),
    )
    session.add(provider)
    return _to_response(_commit(session, provider), cipher)


@router.put("/{provider_id}", response_model=ProviderResponse)
def update_provider(
    provider_id: str,
    req: ProviderUpdate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    cipher: CredentialCipher = Depends(get_cipher),
    provider_config: ProviderConfig = Depends(get_provider_config),
):
    """Update an AI provider owned by the user."""
    provider = get_owned_provider(session, user.id, provider_id)
    if provider is None:
        raise NotFoundError("AI provider not found")

    if req.name is not None and req.name != provider.name:
        if _name_taken(session, user.id, req.name, exclude_id=provider.id):
            raise ConflictError(f"AI provider '{req.name}' already exists")
        provider.name = req.name
    if req.kind is not None:
        provider.kind = req.kind
    if req.api_url is not None:
        provider.api_url = req.api_url
    if req.api_url is not None or req.kind is not None:
        _check_url(provider.api_url, provider.kind, provider_config)
    if req.model is not None:
        provider.model = req.model
    if req.logo_url is not None:
        provider.logo_url = req.logo_url
    if req.languages_supported is not None:
        provider.languages_supported = list(req.languages_supported)
    if req.api_key:
        provider.credential_encrypted = cipher.encrypt(req.api_key)
    provider.updated_at = utcnow()

    session.add(provider)
    return _to_response(_commit(session, provider), cipher)


@router.delete("/{provider_id}")
def delete_provider(
    provider_id: str,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Delete an AI provider. Settings that point at it are left dangling."""
    provider = get_owned_provider(session, user.id, provider_id)
    if provider is None:
        raise NotFoundError("AI provider not found")

    session.delete(provider)
    session.commit()
    return {"success": True}
