"""
User profile routes. Accounts are created from a verified sign-in token.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response

from shared.constants import FREE_TIER_ENABLED, FREE_TIER_RESET_TIMESTAMP
from shared.types import contest_month_for
from writory.auth import Identity
from writory.db import DbClient
from writory.dependencies import get_current_identity, get_db_client
from writory.entitlements import effective_free_used, free_tier_enabled
from writory.routes.access import load_user_for
from writory.schemas import (
    SubmissionResponse,
    SubmissionStatusResponse,
    UserCreateRequest,
    UserResponse,
    UserUpdateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["users"])


@router.post("/users", response_model=UserResponse)
def create_user(
    payload: UserCreateRequest,
    response: Response,
    identity: Identity = Depends(get_current_identity),
    db: DbClient = Depends(get_db_client),
):
    """Creates the caller's account, or returns it if it already exists."""
    if not identity.email:
        raise HTTPException(
            status_code=400, detail="Signed-in account has no email address"
        )
    user, created = db.get_or_create_user(
        identity.uid,
        identity.email,
        name=payload.name or identity.name,
        phone=payload.phone or identity.phone,
    )
    if created:
        logger.info("Created user %s", user.uid)
    response.status_code = 201 if created else 200
    return user


@router.get("/users/{uid}", response_model=UserResponse)
def get_user(
    uid: str,
    identity: Identity = Depends(get_current_identity),
    db: DbClient = Depends(get_db_client),
):
    return load_user_for(db, uid, identity)


@router.patch("/users/{uid}", response_model=UserResponse)
def update_user(
    uid: str,
    payload: UserUpdateRequest,
    identity: Identity = Depends(get_current_identity),
    db: DbClient = Depends(get_db_client),
):
    load_user_for(db, uid, identity, allow_admin=False)
    return db.update_user_profile(
        uid,
        name=payload.name,
        phone=payload.phone,
        profile_picture_url=payload.profile_picture_url,
    )


@router.get(
    "/users/{uid}/submission-status", response_model=SubmissionStatusResponse
)
def submission_status(
    uid: str,
    identity: Identity = Depends(get_current_identity),
    db: DbClient = Depends(get_db_client),
):
    user = load_user_for(db, uid, identity)
    contest_month = contest_month_for()
    count = db.get_submission_count(user.id, contest_month)
    used = False
    total = 0
    if count:
        total = count.total_submissions
        used = effective_free_used(
            count.free_submission_used,
            count.free_used_at,
            db.get_setting(FREE_TIER_RESET_TIMESTAMP),
        )
    return SubmissionStatusResponse(
        free_submission_used=used,
        total_submissions=total,
        contest_month=contest_month,
        free_tier_enabled=free_tier_enabled(db.get_setting(FREE_TIER_ENABLED)),
    )


@router.get("/users/{uid}/submissions", response_model=list[SubmissionResponse])
def user_submissions(
    uid: str,
    identity: Identity = Depends(get_current_identity),
    db: DbClient = Depends(get_db_client),
):
    user = load_user_for(db, uid, identity)
    return db.list_submissions_by_user(user.id)
