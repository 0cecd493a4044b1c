"""
Configuration and settings for the Sikuwat service.
"""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Annotated, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from models import api_config


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_prefix: str = Field(default="/api")
    # JSON list or comma-separated, e.g. CORS_ORIGINS=https://a.id,https://b.id
    cors_origins: Annotated[list[str], NoDecode] = Field(default=["*"])
    log_level: str = Field(default="INFO")

    # Database (the hosted platform's Postgres, or any SQLAlchemy URL)
    database_url: Optional[str] = Field(default=None)

    # Hosted auth platform
    supabase_url: Optional[str] = Field(default=None)
    supabase_anon_key: Optional[str] = Field(default=None)
    supabase_service_role_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "SUPABASE_SERVICE_ROLE_KEY", "SERVICE_ROLE_KEY"
        ),
    )
    allow_admin_signup: bool = Field(default=True)

    # S3-compatible object storage
    storage_endpoint: Optional[str] = Field(default=None)
    storage_region: Optional[str] = Field(default=None)
    storage_bucket: str = Field(default="images")
    storage_access_key_id: Optional[str] = Field(default=None)
    storage_secret_access_key: Optional[str] = Field(default=None)
    storage_public_base_url: Optional[str] = Field(default=None)
    max_upload_bytes: int = Field(default=5 * 1024 * 1024)

    # LLM / Gemini
    gemini_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(*api_config.API_KEY_ENV_VARS),
    )
    gemini_model: str = Field(default=api_config.DEFAULT_MODEL)

    # Outbound HTTP (auth platform, article previews)
    request_timeout: float = Field(default=15.0)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value):
        if isinstance(value, str):
            value = value.strip()
            if value.startswith("["):
                return json.loads(value)
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    def public_storage_base(self) -> str:
        """Base URL that public object paths are appended to."""
        if self.storage_public_base_url:
            return self.storage_public_base_url.rstrip("/")
        if self.supabase_url:
            return (
                f"{self.supabase_url.rstrip('/')}/storage/v1/object/public/"
                f"{self.storage_bucket}"
            )
        return ""


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
