"""
HTTP routes for the post collection API.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Type, TypeVar

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response
from pydantic import BaseModel, ValidationError

from postboard.db import PostRecord, PostStore
from postboard.dependencies import get_post_store, require_identity
from postboard.identity import Identity, resolve_user_name
from postboard.schemas import PostCreateRequest, PostResponse, PostUpdateRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["posts"])

ModelT = TypeVar("ModelT", bound=BaseModel)


def _validate_body(model: Type[ModelT], payload: Any, message: str) -> ModelT:
    try:
        return model.model_validate(payload if payload is not None else {})
    except ValidationError as exc:
        fields = sorted({str(err["loc"][0]) for err in exc.errors() if err["loc"]})
        logger.info("Rejected %s: invalid fields %s", model.__name__, fields)
        raise HTTPException(status_code=400, detail=message) from exc


def _owned_post(store: PostStore, post_id: str, identity: Identity) -> PostRecord:
    # Missing and foreign posts both answer 403.
    post = store.get_post(post_id)
    if not post or post.user_id != identity.user_id:
        logger.warning(
            "User %s denied access to post %s (%s)",
            identity.user_id,
            post_id,
            "missing" if not post else "not owner",
        )
        raise HTTPException(status_code=403, detail="Forbidden")
    return post


@router.get("/posts", response_model=list[PostResponse])
def list_posts(
    user_id: Optional[str] = Query(None, alias="userId"),
    store: PostStore = Depends(get_post_store),
):
    posts = store.list_posts(user_id=user_id or None)
    logger.debug("Fetched %d posts (userId=%s)", len(posts), user_id)
    return [PostResponse.from_record(post) for post in posts]


@router.post("/posts", response_model=PostResponse, status_code=201)
def create_post(
    payload: Any = Body(None),
    identity: Identity = Depends(require_identity),
    store: PostStore = Depends(get_post_store),
):
    body = _validate_body(
        PostCreateRequest, payload, "Title, content, and userName are required"
    )
    post = store.create_post(
        title=body.title,
        content=body.content,
        user_id=identity.user_id,
        user_name=resolve_user_name(identity, body.userName),
    )
    logger.info("Created post %s for user %s", post.id, post.user_id)
    return PostResponse.from_record(post)


@router.put("/posts/{post_id}", response_model=PostResponse)
def update_post(
    post_id: str,
    payload: Any = Body(None),
    identity: Identity = Depends(require_identity),
    store: PostStore = Depends(get_post_store),
):
    """
    Overwrite title and content of an owned post.

    The attributed ``userName`` is recomputed from the caller's current
    profile, so a renamed user shows up under the new name after editing.
    """
    _owned_post(store, post_id, identity)
    body = _validate_body(
        PostUpdateRequest, payload, "Title and content are required"
    )
    post = store.update_post(
        post_id,
        title=body.title,
        content=body.content,
        user_name=resolve_user_name(identity),
    )
    if post is None:
        raise HTTPException(status_code=403, detail="Forbidden")
    logger.info("Updated post %s", post.id)
    return PostResponse.from_record(post)


@router.delete("/posts/{post_id}")
def delete_post(
    post_id: str,
    identity: Identity = Depends(require_identity),
    store: PostStore = Depends(get_post_store),
):
    _owned_post(store, post_id, identity)
    if not store.delete_post(post_id):
        raise HTTPException(status_code=403, detail="Forbidden")
    logger.info("Deleted post %s", post_id)
    return Response(status_code=200)
