# Auth module for the tutor backend
from .supabase_client import (
    build_token_verifier,
    SupabaseTokenVerifier,
    TokenVerifier,
)
from .dependencies import get_current_user
from .models import User

__all__ = [
    "build_token_verifier",
    "SupabaseTokenVerifier",
    "TokenVerifier",
    "get_current_user",
    "User",
]
