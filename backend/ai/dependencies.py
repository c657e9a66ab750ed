"""
FastAPI Dependency Injection for AI provider handles.

The HTTP client, credential cipher and instruction service are built once at
startup (see main.create_app) and read from app.state per request, so tests
can install fakes without environment configuration.
"""

from fastapi import Request

from config import ProviderConfig
from crypto import CredentialCipher
from instruction_service import InstructionService


def get_cipher(request: Request) -> CredentialCipher:
    return request.app.state.cipher


def get_provider_config(request: Request) -> ProviderConfig:
    return request.app.state.config.providers


def get_instruction_service(request: Request) -> InstructionService:
    return request.app.state.instruction_service
