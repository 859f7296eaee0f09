"""
FastAPI application entry point for the post service.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from postboard.config import Settings, get_settings
from postboard.db import PostStore, StorageError
from postboard.dependencies import build_identity_provider, build_post_store
from postboard.gate import AccessGateMiddleware
from postboard.identity import IdentityProvider
from postboard.pages import router as pages_router
from postboard.routes import router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    store: PostStore = app.state.post_store
    store.connect()
    try:
        yield
    finally:
        store.close()


async def _storage_error_handler(request: Request, exc: StorageError):
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse({"detail": "Storage failure"}, status_code=500)


async def _request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse({"detail": "Malformed request"}, status_code=400)


def create_app(
    settings: Settings | None = None,
    *,
    post_store: PostStore | None = None,
    identity_provider: IdentityProvider | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    if post_store is None:
        post_store = build_post_store(settings)
    if identity_provider is None:
        identity_provider = build_identity_provider(settings)

    app = FastAPI(title="Postboard", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.post_store = post_store
    app.state.identity_provider = identity_provider

    app.add_middleware(
        AccessGateMiddleware,
        identity_provider=identity_provider,
        api_prefix=settings.api_prefix,
        cookie_name=settings.session_cookie_name,
    )
    app.add_exception_handler(StorageError, _storage_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.include_router(router, prefix=settings.api_prefix)
    app.include_router(pages_router)
    return app


app = create_app()
