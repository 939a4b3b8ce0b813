"""
In-app notifications: admin broadcast or personal messages, per-user inbox.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from writory.auth import Identity
from writory.db import DbClient
from writory.dependencies import (
    get_current_identity,
    get_db_client,
    get_queue_client,
    require_admin,
)
from writory.mailer import notification_job
from writory.queue import JobQueue
from writory.routes.access import load_user_for
from writory.schemas import (
    NotificationResponse,
    NotificationSendRequest,
    StatusResponse,
    UserNotificationResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["notifications"])

MAX_BROADCAST_RECIPIENTS = 100_000


@router.post(
    "/admin/notifications/send",
    response_model=NotificationResponse,
    status_code=201,
)
def send_notification(
    payload: NotificationSendRequest,
    admin: Identity = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
    queue: JobQueue = Depends(get_queue_client),
):
    target = None
    if payload.target_user_email:
        target = db.get_user_by_email(payload.target_user_email)
        if not target:
            raise HTTPException(status_code=404, detail="Target user not found")
        recipients = [target]
    else:
        recipients = db.list_users(limit=MAX_BROADCAST_RECIPIENTS)

    notification = db.create_notification(
        title=payload.title,
        message=payload.message,
        type=payload.type.value,
        sent_by=admin.email,
        recipient_user_ids=[user.id for user in recipients],
        target_user_email=target.email if target else None,
    )
    logger.info(
        "Admin %s sent notification %s to %d user(s)",
        admin.email,
        notification.id,
        notification.recipient_count,
    )

    if payload.send_email:
        for user in recipients:
            job = notification_job(
                to=user.email, title=payload.title, message=payload.message
            )
            try:
                queue.enqueue(job.to_json())
            except Exception:
                # The notification is already stored; email is best effort.
                logger.exception(
                    "Could not queue notification %s email to %s",
                    notification.id,
                    user.email,
                )
    return notification


@router.get(
    "/users/{uid}/notifications", response_model=list[UserNotificationResponse]
)
def list_notifications(
    uid: str,
    identity: Identity = Depends(get_current_identity),
    db: DbClient = Depends(get_db_client),
):
    user = load_user_for(db, uid, identity, allow_admin=False)
    return db.list_user_notifications(user.id)


@router.post("/notifications/{notification_id}/read", response_model=StatusResponse)
def mark_read(
    notification_id: int,
    identity: Identity = Depends(get_current_identity),
    db: DbClient = Depends(get_db_client),
):
    """Marks one of the caller's inbox items as read."""
    user = db.get_user_by_uid(identity.uid)
    if not user or not db.mark_notification_read(notification_id, user.id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return StatusResponse()
