"""
One-off data fixes for stored posts.
"""

from __future__ import annotations

import logging

from postboard.db import PostStore
from postboard.identity import ANONYMOUS_USER_NAME

logger = logging.getLogger(__name__)

PLACEHOLDER_NAMES = ("", "Unknown User")


def needs_backfill(user_name: str | None) -> bool:
    return not user_name or user_name in PLACEHOLDER_NAMES


def backfill_user_names(store: PostStore, *, dry_run: bool = False) -> int:
    """
    Rewrite empty or placeholder ``userName`` values to "Anonymous".

    Returns the number of posts that were (or, with ``dry_run``, would be)
    updated.
    """
    updated = 0
    for post in store.list_posts():
        if not needs_backfill(post.user_name):
            continue
        updated += 1
        if dry_run:
            logger.info("Would update post %s", post.id)
            continue
        store.update_post(
            post.id,
            title=post.title,
            content=post.content,
            user_name=ANONYMOUS_USER_NAME,
        )
    return updated
