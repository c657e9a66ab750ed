from enum import Enum
from typing import Optional, List, Dict, Any
from uuid import UUID, uuid4
from datetime import datetime, timezone
from sqlalchemy import Column, DateTime, Index, JSON, UniqueConstraint, text
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Timezone-aware UTC now; timestamp columns reject naive datetimes."""
    return datetime.now(timezone.utc)


class ProviderKind(str, Enum):
    """Wire protocol spoken by an AI provider endpoint."""
    OPENAI = "openai"
    AZURE_OPENAI = "azure_openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"
    OLLAMA = "ollama"
    DEEPSEEK = "deepseek"
    QWEN = "qwen"
    CUSTOM = "custom"
    OTHER = "other"

    @classmethod
    def infer(cls, name: str) -> "ProviderKind":
        """
        Best-effort kind for rows that predate the stored kind field
        (e.g. snapshots exported by older versions). Only used at write time.
        """
        lowered = (name or "").lower()
        for keyword, kind in _NAME_HINTS:
            if keyword in lowered:
                return kind
        return cls.OTHER

    @classmethod
    def parse(cls, value: Optional[str], name: str = "") -> "ProviderKind":
        """Return the kind named by value, falling back to inference from the name."""
        if value:
            try:
                return cls(str(value).lower())
            except ValueError:
                pass
        return cls.infer(name)


# Order matters: "azure openai" must match before "openai"
_NAME_HINTS = [
    ("azure", ProviderKind.AZURE_OPENAI),
    ("openai", ProviderKind.OPENAI),
    ("anthropic", ProviderKind.ANTHROPIC),
    ("claude", ProviderKind.ANTHROPIC),
    ("gemini", ProviderKind.GEMINI),
    ("google", ProviderKind.GEMINI),
    ("ollama", ProviderKind.OLLAMA),
    ("deepseek", ProviderKind.DEEPSEEK),
    ("qwen", ProviderKind.QWEN),
]


class Language(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("user_id", "code", name="uq_language_user_code"),
        # At most one default language per user
        Index(
            "uq_language_user_default",
            "user_id",
            unique=True,
            sqlite_where=text("is_default = 1"),
            postgresql_where=text("is_default"),
        ),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(index=True)
    code: str
    label: str
    tts_voice_tag: str = ""
    is_default: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class AIProvider(SQLModel, table=True):
    __tablename__ = "ai_provider"
    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_ai_provider_user_name"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(index=True)
    name: str
    kind: ProviderKind = Field(default=ProviderKind.OTHER)
    api_url: str
    model: str
    logo_url: Optional[str] = None
    languages_supported: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    # Fernet token, never returned by any read endpoint
    credential_encrypted: str = ""
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class UserSettings(SQLModel, table=True):
    __tablename__ = "user_settings"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(index=True, unique=True)
    # Weak references: no foreign keys, dangling ids are tolerated
    default_language_id: Optional[UUID] = None
    active_provider_id: Optional[UUID] = None
    settings_json: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
