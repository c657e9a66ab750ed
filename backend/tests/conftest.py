"""
Pytest configuration and fixtures
"""
import datetime
from typing import Callable, List, Optional

import httpx
import pytest
from cryptography.fernet import Fernet
from fastapi.testclient import TestClient
from sqlmodel import Session

from auth.models import User
from config import AppConfig, DatabaseConfig, ProviderConfig, SupabaseConfig
from crypto import CredentialCipher
from database import build_engine
from main import create_app
from models import AIProvider, Language, ProviderKind

USERS = {
    "token-alice": User(id="alice", email="alice@example.com"),
    "token-bob": User(id="bob", email="bob@example.com"),
}

BASE_TIME = datetime.datetime(2024, 1, 1, 12, 0, 0, tzinfo=datetime.timezone.utc)


def auth(token: str = "token-alice") -> dict:
    return {"Authorization": f"Bearer {token}"}


class VendorStub:
    """Stands in for every third-party AI endpoint; records what was sent."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.handler: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(500)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


@pytest.fixture
def vendor() -> VendorStub:
    return VendorStub()


@pytest.fixture
def cipher() -> CredentialCipher:
    return CredentialCipher(Fernet.generate_key().decode())


@pytest.fixture
def engine():
    return build_engine(DatabaseConfig(url="sqlite://"))


@pytest.fixture
def app(engine, cipher, vendor):
    config = AppConfig(
        database=DatabaseConfig(url="sqlite://"),
        supabase=SupabaseConfig(),
        providers=ProviderConfig(timeout_seconds=2.0),
        credential_key=None,
    )
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(vendor))
    return create_app(
        config,
        engine=engine,
        token_verifier=USERS.get,
        http_client=http_client,
        cipher=cipher,
    )


@pytest.fixture
def client(app):
    """Test client; entering it runs startup, which creates the tables."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def new_session(client, engine):
    """
    Short-lived sessions for seeding and assertions.

    The in-memory database is one shared connection, so a session must not
    hold a transaction open while the app handles a request.
    """
    return lambda: Session(engine, expire_on_commit=False)


@pytest.fixture
def add_language(new_session):
    def _add(user_id: str, code: str, label: str, tts_voice_tag: str = "", is_default: bool = False,
             minutes: int = 0) -> Language:
        created = BASE_TIME + datetime.timedelta(minutes=minutes)
        language = Language(
            user_id=user_id,
            code=code,
            label=label,
            tts_voice_tag=tts_voice_tag,
            is_default=is_default,
            created_at=created,
            updated_at=created,
        )
        with new_session() as session:
            session.add(language)
            session.commit()
        return language
    return _add


@pytest.fixture
def add_provider(new_session, cipher):
    def _add(user_id: str, name: str, kind: ProviderKind = ProviderKind.OPENAI,
             api_url: str = "https://api.openai.com/v1/chat/completions", model: str = "gpt-4o-mini",
             credential: Optional[str] = "sk-test-key", languages_supported: Optional[List[str]] = None,
             minutes: int = 0) -> AIProvider:
        created = BASE_TIME + datetime.timedelta(minutes=minutes)
        provider = AIProvider(
            user_id=user_id,
            name=name,
            kind=kind,
            api_url=api_url,
            model=model,
            languages_supported=languages_supported or ["en", "es"],
            credential_encrypted=cipher.encrypt(credential) if credential is not None else "",
            created_at=created,
            updated_at=created,
        )
        with new_session() as session:
            session.add(provider)
            session.commit()
        return provider
    return _add
