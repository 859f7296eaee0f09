"""
Dependency wiring for the FastAPI app.

Backends are built once by the application factory and kept on ``app.state``;
handlers reach them through the request instead of module globals.
"""

from __future__ import annotations

from typing import Optional

from fastapi import HTTPException, Request

from postboard.config import Settings
from postboard.db import InMemoryPostStore, PostStore, SqlPostStore
from postboard.identity import (
    Identity,
    IdentityProvider,
    StaticIdentityProvider,
    UserInfoIdentityProvider,
)


def build_post_store(settings: Settings) -> PostStore:
    if settings.use_in_memory_backends or not settings.database_url:
        return InMemoryPostStore()
    return SqlPostStore(settings.database_url)


def build_identity_provider(settings: Settings) -> IdentityProvider:
    if settings.identity_userinfo_url:
        return UserInfoIdentityProvider(
            settings.identity_userinfo_url,
            timeout=settings.identity_timeout_seconds,
        )
    return StaticIdentityProvider.from_profiles(settings.dev_identities)


def get_post_store(request: Request) -> PostStore:
    return request.app.state.post_store


def get_settings_from_app(request: Request) -> Settings:
    return request.app.state.settings


def get_current_identity(request: Request) -> Optional[Identity]:
    """Identity resolved by the access gate, if any."""
    return getattr(request.state, "identity", None)


def require_identity(request: Request) -> Identity:
    identity = get_current_identity(request)
    if identity is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return identity
