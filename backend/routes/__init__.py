"""
Routes Package
Modular API route handlers for the AI DOM Tutor backend.
"""

from .config import router as config_router
from .instructions import router as instructions_router
from .languages import router as languages_router
from .providers import router as providers_router
from .settings import router as settings_router

__all__ = [
    "config_router",
    "instructions_router",
    "languages_router",
    "providers_router",
    "settings_router",
]
