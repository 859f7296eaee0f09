"""
Access gate: decides which requests need a signed-in user.

Runs as HTTP middleware before routing. Every request that is not a static
asset or framework internal gets ``request.state.identity`` populated from the
session credential; protected routes without an identity are answered with
401 before any handler runs.
"""

from __future__ import annotations

import enum
import logging
import re
from typing import Optional

import requests
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from postboard.identity import Identity, IdentityProvider

logger = logging.getLogger(__name__)

_STATIC_ASSET = re.compile(r"/[^/]+\.\w+$")
_INTERNAL_PREFIXES = ("/docs", "/redoc", "/openapi.json", "/static/")
_PUBLIC_PAGES = re.compile(r"^/(sign-in|sign-up)(/.*)?$")


class RouteAccess(enum.Enum):
    EXCLUDED = "excluded"
    PUBLIC = "public"
    PROTECTED = "protected"


def classify_route(method: str, path: str, api_prefix: str = "/api") -> RouteAccess:
    if _STATIC_ASSET.search(path) or path.startswith(_INTERNAL_PREFIXES):
        return RouteAccess.EXCLUDED
    if path == "/" or _PUBLIC_PAGES.match(path):
        return RouteAccess.PUBLIC
    if method in ("GET", "HEAD") and path.rstrip("/") == f"{api_prefix}/posts":
        return RouteAccess.PUBLIC
    return RouteAccess.PROTECTED


def session_token(request: Request, cookie_name: str) -> Optional[str]:
    """Bearer token from the Authorization header, else the session cookie."""
    header = request.headers.get("authorization", "")
    scheme, _, credential = header.partition(" ")
    if scheme.lower() == "bearer" and credential.strip():
        return credential.strip()
    return request.cookies.get(cookie_name) or None


class AccessGateMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        *,
        identity_provider: IdentityProvider,
        api_prefix: str = "/api",
        cookie_name: str = "__session",
    ):
        super().__init__(app)
        self.identity_provider = identity_provider
        self.api_prefix = api_prefix
        self.cookie_name = cookie_name

    async def _resolve(self, request: Request) -> Optional[Identity]:
        token = session_token(request, self.cookie_name)
        if not token:
            return None
        return await run_in_threadpool(self.identity_provider.authenticate, token)

    async def dispatch(self, request: Request, call_next):
        access = classify_route(request.method, request.url.path, self.api_prefix)
        if access is RouteAccess.EXCLUDED:
            return await call_next(request)

        try:
            request.state.identity = await self._resolve(request)
        except requests.RequestException as exc:
            logger.warning(
                "Identity provider unavailable for %s %s: %s",
                request.method,
                request.url.path,
                exc,
            )
            if access is RouteAccess.PROTECTED:
                return JSONResponse(
                    {"detail": "Identity provider unavailable"}, status_code=503
                )
            request.state.identity = None

        if access is RouteAccess.PROTECTED and request.state.identity is None:
            logger.info(
                "Rejected unauthenticated %s %s", request.method, request.url.path
            )
            return JSONResponse({"detail": "Unauthorized"}, status_code=401)
        return await call_next(request)
