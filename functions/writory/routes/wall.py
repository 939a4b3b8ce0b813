"""
Community wall: user posts go through moderation before they are shown.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from shared.constants import MAX_PENDING_WALL_POSTS
from shared.types import WallPostStatus
from writory.auth import Identity
from writory.db import DbClient
from writory.dependencies import get_current_identity, get_db_client, require_admin
from writory.routes.access import current_user
from writory.schemas import (
    WallPostCreateRequest,
    WallPostModerationRequest,
    WallPostResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/wall-posts", tags=["wall"])


@router.post("", response_model=WallPostResponse, status_code=201)
def create_wall_post(
    payload: WallPostCreateRequest,
    identity: Identity = Depends(get_current_identity),
    db: DbClient = Depends(get_db_client),
):
    user = current_user(db, identity)
    if db.count_pending_wall_posts(user.uid) >= MAX_PENDING_WALL_POSTS:
        raise HTTPException(
            status_code=429,
            detail=(
                f"You already have {MAX_PENDING_WALL_POSTS} posts awaiting "
                "moderation."
            ),
        )
    return db.create_wall_post(
        user_id=user.id,
        user_uid=user.uid,
        title=payload.title,
        content=payload.content,
        category=payload.category,
        author_name=payload.author_name or user.name or "Anonymous",
        author_instagram=payload.author_instagram,
    )


@router.get("", response_model=list[WallPostResponse])
def list_approved_posts(
    limit: int = Query(100, ge=1, le=500), db: DbClient = Depends(get_db_client)
):
    return db.list_wall_posts(status=WallPostStatus.APPROVED.value, limit=limit)


@router.get("/admin", response_model=list[WallPostResponse])
def list_posts_for_moderation(
    status: Optional[WallPostStatus] = Query(None),
    limit: int = Query(200, ge=1, le=1000),
    _: Identity = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return db.list_wall_posts(
        status=status.value if status else None, limit=limit
    )


def _moderate(
    db: DbClient,
    post_id: int,
    status: WallPostStatus,
    admin: Identity,
    payload: Optional[WallPostModerationRequest],
):
    post = db.moderate_wall_post(
        post_id,
        status=status.value,
        moderated_by=admin.email,
        notes=payload.notes if payload else None,
    )
    logger.info("Admin %s set wall post %s to %s", admin.email, post_id, status)
    return post


@router.post("/{post_id}/approve", response_model=WallPostResponse)
def approve_post(
    post_id: int,
    payload: Optional[WallPostModerationRequest] = None,
    admin: Identity = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return _moderate(db, post_id, WallPostStatus.APPROVED, admin, payload)


@router.post("/{post_id}/reject", response_model=WallPostResponse)
def reject_post(
    post_id: int,
    payload: Optional[WallPostModerationRequest] = None,
    admin: Identity = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return _moderate(db, post_id, WallPostStatus.REJECTED, admin, payload)


def _set_like(db: DbClient, post_id: int, identity: Identity, liked: bool):
    post = db.get_wall_post(post_id)
    if not post or post.status != WallPostStatus.APPROVED:
        raise HTTPException(status_code=404, detail="Wall post not found")
    return db.set_wall_post_like(post_id, identity.uid, liked)


@router.post("/{post_id}/like", response_model=WallPostResponse)
def like_post(
    post_id: int,
    identity: Identity = Depends(get_current_identity),
    db: DbClient = Depends(get_db_client),
):
    return _set_like(db, post_id, identity, True)


@router.post("/{post_id}/unlike", response_model=WallPostResponse)
def unlike_post(
    post_id: int,
    identity: Identity = Depends(get_current_identity),
    db: DbClient = Depends(get_db_client),
):
    return _set_like(db, post_id, identity, False)
