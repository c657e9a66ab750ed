import asyncio

import httpx
import pytest
from cryptography.fernet import Fernet

from ai.prompts import build_instruction_messages, fallback_instruction
from ai.providers import UpstreamError, get_adapter, validate_base_url
from config import AppConfig, DatabaseConfig, ProviderConfig
from crypto import CredentialCipher, CredentialError, RECONFIGURATION_SENTINEL
from models import ProviderKind


@pytest.fixture
def messages():
    return build_instruction_messages("Save", "<button>Save</button>", "French")


# --- Provider kinds ---

@pytest.mark.parametrize("name, kind", [
    ("OpenAI", ProviderKind.OPENAI),
    ("Azure OpenAI (prod)", ProviderKind.AZURE_OPENAI),
    ("Claude", ProviderKind.ANTHROPIC),
    ("google gemini pro", ProviderKind.GEMINI),
    ("Ollama local", ProviderKind.OLLAMA),
    ("Qwen Max", ProviderKind.QWEN),
    ("", ProviderKind.OTHER),
])
def test_infer_kind_from_name(name, kind):
    assert ProviderKind.infer(name) == kind


def test_parse_prefers_explicit_kind():
    assert ProviderKind.parse("GEMINI", "OpenAI") == ProviderKind.GEMINI
    assert ProviderKind.parse("not-a-kind", "Anthropic") == ProviderKind.ANTHROPIC
    assert ProviderKind.parse(None, "Unknown") == ProviderKind.OTHER


def test_every_callable_kind_has_an_adapter():
    for kind in ProviderKind:
        if kind == ProviderKind.OTHER:
            assert get_adapter(kind) is None
        else:
            assert get_adapter(kind) is not None


# --- Payloads ---

def test_openai_payload(messages):
    payload = get_adapter(ProviderKind.DEEPSEEK).build_payload("deepseek-chat", messages)

    assert payload["model"] == "deepseek-chat"
    assert [message["role"] for message in payload["messages"]] == ["system", "user"]
    assert "French" in payload["messages"][0]["content"]
    assert "Element: Save" in payload["messages"][1]["content"]


def test_anthropic_payload_moves_system_prompt(messages):
    payload = get_adapter(ProviderKind.ANTHROPIC).build_payload("claude-3-haiku", messages)

    assert "French" in payload["system"]
    assert payload["messages"] == [
        {"role": "user", "content": "Element: Save\nHTML Context: <button>Save</button>\nLanguage: French"},
    ]


def test_ollama_options(messages):
    payload = get_adapter(ProviderKind.OLLAMA).build_payload("llama3", messages)

    assert payload["options"] == {"temperature": 0.7, "num_predict": 100}
    assert get_adapter(ProviderKind.OLLAMA).requires_credential is False


def test_generate_rejects_empty_text(messages):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={
        "content": [{"type": "text", "text": ""}],
    }))

    async def run():
        async with httpx.AsyncClient(transport=transport) as client:
            await get_adapter(ProviderKind.ANTHROPIC).generate(
                client, "https://api.anthropic.com/v1/messages", "claude", "key", messages, 1.0,
            )

    with pytest.raises(UpstreamError):
        asyncio.run(run())


def test_generate_raises_on_error_status(messages):
    transport = httpx.MockTransport(lambda request: httpx.Response(503))

    async def run():
        async with httpx.AsyncClient(transport=transport) as client:
            await get_adapter(ProviderKind.OPENAI).generate(
                client, "https://api.openai.com/v1/chat/completions", "gpt", "key", messages, 1.0,
            )

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(run())


def test_fallback_instruction():
    assert fallback_instruction("Sign in") == 'Click on the "Sign in" to proceed.'


# --- URL validation ---

def test_validate_base_url():
    assert validate_base_url("https://api.openai.com/v1") == "https://api.openai.com/v1"
    assert validate_base_url("http://localhost:11434", allow_internal=True) == "http://localhost:11434"
    assert validate_base_url("http://10.0.0.7:11434", allow_internal=True) == "http://10.0.0.7:11434"

    for url in ("", "file:///etc/passwd", "https://", "http://127.0.0.1:8000",
                "http://172.20.0.1", "http://169.254.169.254/latest/meta-data"):
        with pytest.raises(ValueError):
            validate_base_url(url)

    # Outside 172.16.0.0/12
    assert validate_base_url("http://172.32.0.1") == "http://172.32.0.1"


@pytest.mark.parametrize("url", [
    "http://127.0.0.2:8000/admin",
    "http://127.1/v1",
    "http://2130706433/v1",
    "http://0x7f.0.0.1/v1",
    "http://[::1]:8000/v1",
    "http://[::ffff:127.0.0.1]/v1",
    "http://[::ffff:10.0.0.1]/v1",
    "http://[fd00::1]/v1",
    "http://[fe80::1]/v1",
    "http://localhost./v1",
    "http://api.localhost/v1",
    "http://0.0.0.0:8000/v1",
    "http://240.0.0.1/v1",
])
def test_validate_base_url_rejects_internal_hosts(url):
    with pytest.raises(ValueError):
        validate_base_url(url)


@pytest.mark.parametrize("url", [
    "http://169.254.169.254/latest/meta-data",
    "http://[fe80::1]/v1",
    "http://metadata.google.internal/computeMetadata/v1",
])
def test_metadata_endpoints_blocked_even_when_internal_allowed(url):
    with pytest.raises(ValueError, match="link-local or metadata"):
        validate_base_url(url, allow_internal=True)


# --- Credentials ---

def test_cipher_round_trip():
    cipher = CredentialCipher(Fernet.generate_key().decode())
    token = cipher.encrypt("sk-secret")

    assert token != "sk-secret"
    assert cipher.decrypt(token) == "sk-secret"
    assert cipher.needs_reconfiguration(token) is False
    assert cipher.needs_reconfiguration(cipher.encrypt(RECONFIGURATION_SENTINEL)) is True


def test_cipher_rejects_foreign_tokens():
    cipher = CredentialCipher(Fernet.generate_key().decode())
    other = CredentialCipher(Fernet.generate_key().decode())

    with pytest.raises(CredentialError):
        cipher.decrypt(other.encrypt("sk-secret"))
    with pytest.raises(CredentialError):
        cipher.decrypt("")
    assert cipher.needs_reconfiguration("garbage") is True


def test_cipher_without_key_is_ephemeral(caplog):
    cipher = CredentialCipher(None)

    assert cipher.decrypt(cipher.encrypt("sk-secret")) == "sk-secret"
    assert "CREDENTIAL_ENCRYPTION_KEY" in caplog.text


# --- Configuration ---

def test_config_from_env(monkeypatch, tmp_path):
    key = Fernet.generate_key().decode()
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "data" / "tutor.db"))
    monkeypatch.setenv("PROVIDER_TIMEOUT_SECONDS", "4.5")
    monkeypatch.setenv("ALLOW_INTERNAL_PROVIDER_URLS", "true")
    monkeypatch.setenv("CREDENTIAL_ENCRYPTION_KEY", key)
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example.com, https://b.example.com")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = AppConfig.from_env()

    assert config.database.url == f"sqlite:///{tmp_path / 'data' / 'tutor.db'}"
    assert (tmp_path / "data").is_dir()
    assert config.providers == ProviderConfig(timeout_seconds=4.5, allow_internal_urls=True)
    assert config.credential_key == key
    assert config.cors_origins == ["https://a.example.com", "https://b.example.com"]
    assert config.log_level == "DEBUG"


def test_database_url_wins(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://tutor@db/tutor")
    monkeypatch.setenv("DATABASE_PATH", "/ignored/tutor.db")

    assert DatabaseConfig.from_env().url == "postgresql://tutor@db/tutor"
