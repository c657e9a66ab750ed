"""Pydantic models for configuration snapshot rows."""

from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

SNAPSHOT_VERSION = "1.0"


class LanguageSnapshot(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    code: str = Field(min_length=1)
    label: str = Field(min_length=1)
    tts_voice_tag: str = ""
    is_default: bool = False

    @field_validator("tts_voice_tag", mode="before")
    @classmethod
    def _none_voice_tag(cls, value):
        return "" if value is None else value


class AIProviderSnapshot(BaseModel):
    # Unknown keys (including any hand-added credential field) are dropped
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: str = Field(min_length=1)
    kind: Optional[str] = None
    api_url: str = Field(min_length=1)
    model: str = Field(min_length=1)
    logo_url: Optional[str] = None
    languages_supported: List[str] = Field(default_factory=list)

    @field_validator("languages_supported", mode="before")
    @classmethod
    def _none_languages(cls, value):
        return [] if value is None else value


class SettingsSnapshot(BaseModel):
    model_config = ConfigDict(extra="ignore")

    default_language_id: Optional[str] = None
    active_provider_id: Optional[str] = None
    settings_json: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("settings_json", mode="before")
    @classmethod
    def _none_settings(cls, value):
        return {} if value is None else value


def parse_uuid(value: Optional[Any]) -> Optional[UUID]:
    """UUID from a snapshot or request field, None when absent or malformed."""
    if value is None or value == "":
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None
