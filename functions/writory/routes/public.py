"""
Public, unauthenticated routes: contact form and contest timeline.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from shared.constants import (
    CONTEST_LAUNCH_DATE,
    FREE_TIER_ENABLED,
    FREE_TIER_RESET_TIMESTAMP,
    RESULT_ANNOUNCEMENT_DATE,
    SUBMISSION_DEADLINE,
)
from writory.db import DbClient
from writory.dependencies import get_db_client, get_queue_client
from writory.entitlements import free_tier_enabled
from writory.mailer import contact_ack_job
from writory.queue import JobQueue
from writory.schemas import ContactRequest, ContactResponse, FreeTierStatusResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["public"])


@router.post("/contact", response_model=ContactResponse, status_code=201)
def submit_contact(
    payload: ContactRequest,
    db: DbClient = Depends(get_db_client),
    queue: JobQueue = Depends(get_queue_client),
):
    if "@" not in payload.email:
        raise HTTPException(status_code=400, detail="A valid email is required")
    record = db.create_contact(
        name=payload.name.strip(),
        email=payload.email.strip(),
        message=payload.message,
        phone=payload.phone,
        subject=payload.subject,
    )
    try:
        queue.enqueue(contact_ack_job(to=record.email, name=record.name).to_json())
    except Exception:
        logger.exception("Could not queue contact acknowledgement %s", record.id)
    return record


@router.get("/free-tier-status", response_model=FreeTierStatusResponse)
def free_tier_status(db: DbClient = Depends(get_db_client)):
    return FreeTierStatusResponse(
        enabled=free_tier_enabled(db.get_setting(FREE_TIER_ENABLED)),
        reset_timestamp=db.get_setting(FREE_TIER_RESET_TIMESTAMP),
        contest_launch_date=db.get_setting(CONTEST_LAUNCH_DATE),
        submission_deadline=db.get_setting(SUBMISSION_DEADLINE),
        result_announcement_date=db.get_setting(RESULT_ANNOUNCEMENT_DATE),
    )
