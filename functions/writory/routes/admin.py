"""
Admin-only routes: settings, moderation, winners and the admin list.

Every handler depends on `require_admin`, which checks the verified token
email against the admin store.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

import dacite
from fastapi import APIRouter, Depends, HTTPException, Query

from shared.constants import (
    EDITABLE_SETTINGS,
    FREE_TIER_ENABLED,
    FREE_TIER_RESET_TIMESTAMP,
    MAX_SCORE,
    WINNER_POSITIONS,
)
from shared.types import ScoreBreakdown
from writory.auth import Identity
from writory.db import DbClient
from writory.dependencies import get_db_client, require_admin
from writory.entitlements import free_tier_enabled
from writory.schemas import (
    AdminCreateRequest,
    AdminSettingsResponse,
    AdminSettingsUpdateRequest,
    AdminUserResponse,
    ContactResponse,
    EvaluationRequest,
    StatusResponse,
    SubmissionResponse,
    UserResponse,
    WinnerUpdateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def _settings_response(db: DbClient) -> AdminSettingsResponse:
    return AdminSettingsResponse(
        settings={record.key: record.value for record in db.get_all_settings()}
    )


def _stamp_free_tier_reset(db: DbClient) -> str:
    stamp = datetime.now(timezone.utc).isoformat()
    db.update_setting(FREE_TIER_RESET_TIMESTAMP, stamp)
    return stamp


@router.get("/settings", response_model=AdminSettingsResponse)
def get_settings(
    _: Identity = Depends(require_admin), db: DbClient = Depends(get_db_client)
):
    return _settings_response(db)


@router.post("/settings", response_model=AdminSettingsResponse)
def update_settings(
    payload: AdminSettingsUpdateRequest,
    admin: Identity = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    unknown = sorted(set(payload.settings) - set(EDITABLE_SETTINGS))
    if unknown:
        raise HTTPException(
            status_code=400, detail=f"Unknown settings: {', '.join(unknown)}"
        )

    values = dict(payload.settings)
    was_enabled = free_tier_enabled(db.get_setting(FREE_TIER_ENABLED))
    if FREE_TIER_ENABLED in values:
        flag = values[FREE_TIER_ENABLED].strip().lower()
        if flag not in ("true", "false"):
            raise HTTPException(
                status_code=400,
                detail=f"{FREE_TIER_ENABLED} must be 'true' or 'false'",
            )
        values[FREE_TIER_ENABLED] = flag

    for key, value in values.items():
        db.update_setting(key, value)
    if values.get(FREE_TIER_ENABLED) == "true" and not was_enabled:
        # Re-enabling opens a fresh free slot for everyone this month.
        _stamp_free_tier_reset(db)
    logger.info("Admin %s updated settings %s", admin.email, sorted(values))
    return _settings_response(db)


@router.post("/reset-free-tier", response_model=AdminSettingsResponse)
def reset_free_tier(
    admin: Identity = Depends(require_admin), db: DbClient = Depends(get_db_client)
):
    stamp = _stamp_free_tier_reset(db)
    logger.info("Admin %s reset the free tier at %s", admin.email, stamp)
    return _settings_response(db)


@router.get("/submissions", response_model=list[SubmissionResponse])
def list_submissions(
    status: Optional[str] = Query(None),
    contest_month: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}$"),
    limit: int = Query(500, ge=1, le=5000),
    _: Identity = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return db.list_submissions(
        status=status, contest_month=contest_month, limit=limit
    )


@router.post(
    "/submissions/{submission_id}/evaluation", response_model=SubmissionResponse
)
def evaluate_submission(
    submission_id: int,
    payload: EvaluationRequest,
    _: Identity = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    score = payload.score
    if payload.score_breakdown is not None:
        try:
            breakdown = dacite.from_dict(ScoreBreakdown, payload.score_breakdown)
        except dacite.DaciteError as exc:
            raise HTTPException(
                status_code=400, detail=f"Invalid score breakdown: {exc}"
            )
        if score is None:
            score = breakdown.total()
        if score > MAX_SCORE:
            raise HTTPException(
                status_code=400, detail=f"Score cannot exceed {MAX_SCORE}"
            )
    return db.update_submission_evaluation(
        submission_id,
        score=score,
        status=payload.status.value,
        type=payload.type,
        score_breakdown=payload.score_breakdown,
    )


@router.post("/update-winner/{submission_id}", response_model=SubmissionResponse)
def update_winner(
    submission_id: int,
    payload: WinnerUpdateRequest,
    admin: Identity = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    if payload.is_winner and payload.winner_position not in WINNER_POSITIONS:
        raise HTTPException(
            status_code=400, detail="Winner position must be 1, 2 or 3"
        )
    record = db.update_winner(
        submission_id,
        is_winner=payload.is_winner,
        winner_position=payload.winner_position,
    )
    logger.info(
        "Admin %s set winner=%s position=%s on submission %s",
        admin.email,
        record.is_winner,
        record.winner_position,
        submission_id,
    )
    return record


@router.get("/users", response_model=list[UserResponse])
def list_users(
    limit: int = Query(500, ge=1, le=5000),
    _: Identity = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return db.list_users(limit=limit)


@router.get("/contacts", response_model=list[ContactResponse])
def list_contacts(
    limit: int = Query(500, ge=1, le=5000),
    _: Identity = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return db.list_contacts(limit=limit)


@router.get("/admins", response_model=list[AdminUserResponse])
def list_admins(
    _: Identity = Depends(require_admin), db: DbClient = Depends(get_db_client)
):
    return db.list_admins()


@router.post("/admins", response_model=AdminUserResponse, status_code=201)
def add_admin(
    payload: AdminCreateRequest,
    admin: Identity = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    if "@" not in payload.email:
        raise HTTPException(status_code=400, detail="A valid email is required")
    record = db.add_admin(payload.email)
    logger.info("Admin %s granted admin to %s", admin.email, record.email)
    return record


@router.delete("/admins/{email}", response_model=StatusResponse)
def remove_admin(
    email: str,
    admin: Identity = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    if email.strip().lower() == (admin.email or "").strip().lower():
        raise HTTPException(status_code=400, detail="You cannot remove yourself")
    if not db.remove_admin(email):
        raise HTTPException(status_code=404, detail="Admin not found")
    logger.info("Admin %s revoked admin from %s", admin.email, email)
    return StatusResponse()
