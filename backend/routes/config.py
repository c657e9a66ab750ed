"""
Config Routes
Effective settings resolution and configuration snapshot export/import.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlmodel import Session

from ai.dependencies import get_cipher, get_provider_config
from auth.dependencies import get_current_user
from auth.models import User
from config import ProviderConfig
from config_service import export_config, import_config, resolve_public_config
from crypto import CredentialCipher
from database import get_session

router = APIRouter(tags=["config"])

EXPORT_FILENAME = "ai-dom-tutor-config.json"


@router.get("/public-config")
def get_public_config(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Effective default language, active provider and free-form settings."""
    return resolve_public_config(session, user.id)


@router.get("/export-config")
def get_export_config(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """
    Download the user's configuration as a portable snapshot.
    Provider credentials are never included.
    """
    snapshot = export_config(session, user.id)
    return JSONResponse(
        content=jsonable_encoder(snapshot),
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


@router.post("/import-config")
def post_import_config(
    payload: Any = Body(default=None),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    cipher: CredentialCipher = Depends(get_cipher),
    provider_config: ProviderConfig = Depends(get_provider_config),
):
    """
    Merge a snapshot into the user's configuration.

    Imported providers must have their API keys re-entered afterwards.
    """
    return import_config(
        session,
        user.id,
        payload,
        cipher,
        allow_internal_urls=provider_config.allow_internal_urls,
    )
