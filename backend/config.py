"""
Application Configuration Module
Centralizes environment-driven settings for storage, auth, credentials and providers.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional
from dotenv import load_dotenv
from pathlib import Path

# Load .env from backend directory
env_path = Path(__file__).parent / '.env'
load_dotenv(dotenv_path=env_path)

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


@dataclass
class DatabaseConfig:
    """Relational store configuration."""
    url: str = ""
    echo: bool = False

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        url = os.getenv("DATABASE_URL", "")
        if not url:
            # Support custom database path for packaged deployments,
            # falling back to a local sqlite file in the backend directory
            database_path = os.getenv("DATABASE_PATH")
            if database_path:
                directory = os.path.dirname(database_path)
                if directory:
                    os.makedirs(directory, exist_ok=True)
                sqlite_file_name = database_path
            else:
                sqlite_file_name = str(Path(__file__).parent / "tutor.db")
            url = f"sqlite:///{sqlite_file_name}"
        return cls(url=url, echo=_env_flag("DATABASE_ECHO"))


@dataclass
class SupabaseConfig:
    """Supabase auth collaborator configuration."""
    url: str = ""
    anon_key: str = ""

    @classmethod
    def from_env(cls) -> "SupabaseConfig":
        return cls(
            url=os.getenv("SUPABASE_URL", ""),
            anon_key=os.getenv("SUPABASE_ANON_KEY", ""),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.anon_key)


@dataclass
class ProviderConfig:
    """Outbound AI provider call settings."""
    timeout_seconds: float = 15.0
    allow_internal_urls: bool = False

    @classmethod
    def from_env(cls) -> "ProviderConfig":
        return cls(
            timeout_seconds=float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "15")),
            allow_internal_urls=_env_flag("ALLOW_INTERNAL_PROVIDER_URLS"),
        )


@dataclass
class AppConfig:
    """
    Main configuration container.
    Built once at process startup and handed to the application factory.
    """
    database: DatabaseConfig = field(default_factory=DatabaseConfig.from_env)
    supabase: SupabaseConfig = field(default_factory=SupabaseConfig.from_env)
    providers: ProviderConfig = field(default_factory=ProviderConfig.from_env)

    # Fernet key for credentials at rest
    credential_key: Optional[str] = None
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "AppConfig":
        origins = os.getenv("CORS_ORIGINS", "*")
        return cls(
            database=DatabaseConfig.from_env(),
            supabase=SupabaseConfig.from_env(),
            providers=ProviderConfig.from_env(),
            credential_key=os.getenv("CREDENTIAL_ENCRYPTION_KEY") or None,
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


# Global config instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global application configuration (lazy loaded)."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def reload_config() -> AppConfig:
    """Force reload configuration from environment."""
    global _config
    _config = AppConfig.from_env()
    return _config
