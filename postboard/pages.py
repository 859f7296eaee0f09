"""
Server-rendered pages: the public post list and redirects to the identity
provider's hosted sign-in / sign-up screens.
"""

from __future__ import annotations

from html import escape

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse, RedirectResponse

from postboard.config import Settings
from postboard.db import PostRecord, PostStore
from postboard.dependencies import get_post_store, get_settings_from_app

router = APIRouter(include_in_schema=False)

PAGE_TEMPLATE = """<!doctype html>
<html lang="en">
<head><meta charset="utf-8"><title>Postboard</title></head>
<body>
<header><h1>Postboard</h1><nav><a href="/sign-in">Sign in</a> <a href="/sign-up">Sign up</a></nav></header>
<main>
{posts}
</main>
</body>
</html>
"""


def render_post(post: PostRecord) -> str:
    return (
        "<article>"
        f"<h2>{escape(post.title)}</h2>"
        f"<p>{escape(post.content)}</p>"
        f"<footer>{escape(post.user_name)} &middot; "
        f'<time datetime="{post.created_at.isoformat()}">'
        f"{post.created_at:%Y-%m-%d %H:%M}</time></footer>"
        "</article>"
    )


@router.get("/", response_class=HTMLResponse)
def home(store: PostStore = Depends(get_post_store)):
    posts = store.list_posts()
    body = "\n".join(render_post(post) for post in posts) or "<p>No posts yet.</p>"
    return HTMLResponse(PAGE_TEMPLATE.format(posts=body))


def _redirect(url: str | None) -> RedirectResponse:
    if not url:
        raise HTTPException(status_code=404, detail="Not configured")
    return RedirectResponse(url)


@router.get("/sign-in")
@router.get("/sign-in/{rest:path}")
def sign_in(settings: Settings = Depends(get_settings_from_app)):
    return _redirect(settings.identity_sign_in_url)


@router.get("/sign-up")
@router.get("/sign-up/{rest:path}")
def sign_up(settings: Settings = Depends(get_settings_from_app)):
    return _redirect(settings.identity_sign_up_url)
