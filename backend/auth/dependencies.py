"""FastAPI dependencies for authentication."""

from typing import Optional
from fastapi import Request, HTTPException, Header
from .models import User


def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> User:
    """
    Get current authenticated user from the bearer token.

    The token is resolved by the verifier installed on app.state at startup.
    Missing or invalid tokens are rejected before any storage lookup.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized")

    token = authorization[len("Bearer "):].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")

    user = request.app.state.token_verifier(token)
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")

    return user
