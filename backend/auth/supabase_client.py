"""Supabase client configuration and bearer token verification."""

import logging
from typing import Optional, Protocol

from supabase import create_client, Client

from config import SupabaseConfig
from .models import User

logger = logging.getLogger(__name__)


class TokenVerifier(Protocol):
    """Resolves a bearer token to a user, or None when the token is not valid."""

    def __call__(self, token: str) -> Optional[User]:
        ...


def create_supabase_client(config: SupabaseConfig) -> Optional[Client]:
    """
    Create a Supabase client with the anon key.

    Returns:
        Supabase client or None if not configured.
    """
    if not config.is_configured:
        return None

    return create_client(config.url, config.anon_key)


class SupabaseTokenVerifier:
    """Verifies Supabase-issued JWTs through the auth API."""

    def __init__(self, client: Client):
        self.client = client

    def __call__(self, token: str) -> Optional[User]:
        try:
            auth_response = self.client.auth.get_user(token)
        except Exception as e:
            # Token invalid or expired
            logger.info("Token verification failed: %s", type(e).__name__)
            return None

        if not auth_response or not auth_response.user:
            return None

        return User(id=str(auth_response.user.id), email=auth_response.user.email)


class UnconfiguredTokenVerifier:
    """Rejects every token; used when Supabase is not configured."""

    def __call__(self, token: str) -> Optional[User]:
        return None


def build_token_verifier(config: SupabaseConfig) -> TokenVerifier:
    client = create_supabase_client(config)
    if client is None:
        logger.warning(
            "Supabase is not configured. Set SUPABASE_URL and SUPABASE_ANON_KEY; "
            "all authenticated requests will be rejected."
        )
        return UnconfiguredTokenVerifier()
    return SupabaseTokenVerifier(client)
