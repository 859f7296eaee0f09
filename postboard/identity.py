"""
Adapters for the external identity provider.

The provider owns sign-in, sign-up and sessions. This service only turns a
session credential into an ``Identity`` and derives the display name that is
stored on posts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol

import requests

logger = logging.getLogger(__name__)

ANONYMOUS_USER_NAME = "Anonymous"


@dataclass(frozen=True)
class Identity:
    user_id: str
    first_name: Optional[str] = None
    email: Optional[str] = None

    @property
    def display_name(self) -> Optional[str]:
        return self.first_name or self.email or None


def resolve_user_name(identity: Identity, explicit: str | None = None) -> str:
    """
    Pick the name attributed to a post: the explicit value, then the
    provider's first name, then the email, then ``"Anonymous"``.
    """
    return explicit or identity.display_name or ANONYMOUS_USER_NAME


class IdentityProvider(Protocol):
    """Resolves a session credential into the caller's identity."""

    def authenticate(self, token: str) -> Optional[Identity]:
        ...


class StaticIdentityProvider:
    """Token table for local development and tests."""

    def __init__(self, identities: Mapping[str, Identity] | None = None):
        self.identities: dict[str, Identity] = dict(identities or {})

    @classmethod
    def from_profiles(cls, profiles: Mapping[str, dict]) -> "StaticIdentityProvider":
        return cls(
            {
                token: Identity(
                    user_id=profile["user_id"],
                    first_name=profile.get("first_name"),
                    email=profile.get("email"),
                )
                for token, profile in profiles.items()
            }
        )

    def add(self, token: str, identity: Identity) -> None:
        self.identities[token] = identity

    def authenticate(self, token: str) -> Optional[Identity]:
        return self.identities.get(token)


def _first_email(profile: dict) -> Optional[str]:
    if profile.get("email"):
        return profile["email"]
    for entry in profile.get("email_addresses") or []:
        address = entry.get("email_address") if isinstance(entry, dict) else entry
        if address:
            return address
    return None


def identity_from_profile(profile: dict) -> Optional[Identity]:
    """Map a user-info payload (OIDC or provider-native keys) to an Identity."""
    user_id = profile.get("sub") or profile.get("id")
    if not user_id:
        return None
    return Identity(
        user_id=str(user_id),
        first_name=profile.get("given_name") or profile.get("first_name"),
        email=_first_email(profile),
    )


class UserInfoIdentityProvider:
    """
    Calls the provider's user-info endpoint with the session token as a bearer
    credential. Rejected tokens resolve to ``None``; any other failure is
    raised to the caller.
    """

    def __init__(self, userinfo_url: str, timeout: float = 10.0, session=None):
        if not userinfo_url:
            raise ValueError("identity_userinfo_url is required")
        self.userinfo_url = userinfo_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def authenticate(self, token: str) -> Optional[Identity]:
        if not token:
            return None
        response = self.session.get(
            self.userinfo_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=self.timeout,
        )
        if response.status_code in (401, 403):
            logger.info("Identity provider rejected session token")
            return None
        response.raise_for_status()
        identity = identity_from_profile(response.json())
        if identity is None:
            logger.warning("Identity provider returned a profile without an id")
        return identity
