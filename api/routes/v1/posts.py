"""
api/routes/v1/posts.py -- Post CRUD endpoints.

Routes:
  GET    /api/v1/posts        -- list posts, newest first (public)
  GET    /api/v1/posts/{id}   -- one post or null (public)
  POST   /api/v1/posts        -- create post (requires login)
  PATCH  /api/v1/posts/{id}   -- change title, null if missing (requires login)
  DELETE /api/v1/posts/{id}   -- delete post, ok=false if missing (requires login)

Posts have no owner, so any logged-in user may edit any post.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.models import OkResponse, PostCreate, PostOut, PostPatch
from auth.dependencies import get_current_user
from auth.models import User
from posts.store import PostStore

router = APIRouter()


def _store(request: Request) -> PostStore:
    return request.app.state.post_store


@router.get("/posts", response_model=list[PostOut])
def list_posts(request: Request) -> list[PostOut]:
    return [PostOut.from_domain(p) for p in _store(request).list_posts()]


@router.get("/posts/{post_id}", response_model=Optional[PostOut])
def get_post(request: Request, post_id: int) -> Optional[PostOut]:
    post = _store(request).get_post(post_id)
    return PostOut.from_domain(post) if post is not None else None


@router.post("/posts", response_model=PostOut, status_code=201)
def create_post(
    request: Request,
    body: PostCreate,
    current_user: User = Depends(get_current_user),
) -> PostOut:
    return PostOut.from_domain(_store(request).create_post(body.title))


@router.patch("/posts/{post_id}", response_model=Optional[PostOut])
def update_post(
    request: Request,
    post_id: int,
    body: PostPatch,
    current_user: User = Depends(get_current_user),
) -> Optional[PostOut]:
    post = _store(request).update_post(post_id, body.title)
    return PostOut.from_domain(post) if post is not None else None


@router.delete("/posts/{post_id}", response_model=OkResponse)
def delete_post(
    request: Request,
    post_id: int,
    current_user: User = Depends(get_current_user),
) -> OkResponse:
    return OkResponse(ok=_store(request).delete_post(post_id))
