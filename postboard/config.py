"""
Configuration and settings for the post service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_prefix: str = Field(default="/api")

    # Database (Postgres expected, any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, validation_alias="POSTBOARD_USE_IN_MEMORY_BACKENDS"
    )

    # Identity provider
    identity_userinfo_url: Optional[str] = Field(default=None)
    identity_timeout_seconds: float = Field(default=10.0)
    identity_sign_in_url: Optional[str] = Field(default=None)
    identity_sign_up_url: Optional[str] = Field(default=None)
    session_cookie_name: str = Field(default="__session")

    # Token -> profile table used when no identity provider is configured,
    # e.g. {"dev-token": {"user_id": "u1", "first_name": "Dev"}}
    dev_identities: dict[str, dict] = Field(
        default_factory=dict, validation_alias="POSTBOARD_DEV_IDENTITIES"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
