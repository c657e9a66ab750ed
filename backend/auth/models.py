"""User model for authentication."""

from typing import Optional
from pydantic import BaseModel


class User(BaseModel):
    """Authenticated caller identity."""
    id: str
    email: Optional[str] = None
