"""
Submission intake: validates an entry, prices it and records it atomically.

Route handlers translate HTTP input into a `SubmissionRequest` and call
`submit_entry`. Everything that decides whether an entry is accepted lives
here so the multipart and JSON endpoints behave the same.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from shared.constants import (
    FREE_TIER_ENABLED,
    FREE_TIER_RESET_TIMESTAMP,
    MAX_POEM_TITLE_LENGTH,
    MAX_UPLOAD_BYTES,
    PHOTO_CONTENT_TYPE_PREFIX,
    POEM_FILE_CONTENT_TYPES,
    TIER_POEM_COUNTS,
    TIER_PRICES,
    validate_tier_poem_count,
)
from shared.types import PoemEntry, Tier, contest_month_for
from writory.auth import Identity
from writory.coupons import CouponResult, apply_discount, validate_coupon
from writory.db import DbClient, NewSubmission, SubmissionBatch, UserRecord
from writory.entitlements import free_tier_enabled, is_free_entry
from writory.errors import (
    CouponAlreadyUsedError,
    CouponTierMismatchError,
    FreeTierDisabledError,
    InvalidCouponError,
    InvalidSubmissionError,
    PaymentRequiredError,
    StorageUnavailableError,
    UploadError,
)
from writory.mailer import submission_confirmation_job
from writory.queue import JobQueue
from writory.storage import StorageClient

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass
class UploadedFile:
    filename: str
    content_type: str
    data: bytes


@dataclass
class SubmissionRequest:
    first_name: str
    email: str
    tier: str
    poems: list[PoemEntry]
    last_name: Optional[str] = None
    phone: Optional[str] = None
    age: Optional[str] = None
    photo_url: Optional[str] = None
    coupon_code: Optional[str] = None
    payment_id: Optional[str] = None
    payment_method: Optional[str] = None
    contest_type: Optional[str] = None
    challenge_title: Optional[str] = None


@dataclass
class SubmissionReceipt:
    submission_uuid: str
    submission_ids: list[int]
    tier: str
    contest_month: str
    price: Decimal
    discount_amount: Decimal
    final_price: Decimal
    free_entry: bool
    user_id: Optional[int] = None
    coupon: Optional[CouponResult] = None
    poem_titles: list[str] = field(default_factory=list)


def validate_upload(upload: UploadedFile, *, photo: bool = False) -> None:
    if not upload.data:
        raise UploadError(f"Uploaded file '{upload.filename}' is empty.")
    if len(upload.data) > MAX_UPLOAD_BYTES:
        raise UploadError(
            f"Uploaded file '{upload.filename}' exceeds the "
            f"{MAX_UPLOAD_BYTES // (1024 * 1024)} MB limit."
        )
    content_type = (upload.content_type or "").lower()
    if photo:
        if not content_type.startswith(PHOTO_CONTENT_TYPE_PREFIX):
            raise UploadError("Photo must be an image file.")
    elif content_type not in POEM_FILE_CONTENT_TYPES:
        raise UploadError("Poem file must be a PDF or Word document.")


@dataclass
class StagedUpload:
    """A validated file with its storage path decided but not yet written."""

    path: str
    url: str
    upload: UploadedFile


def stage_upload(
    storage: StorageClient,
    upload: UploadedFile,
    *,
    folder: str,
    photo: bool = False,
) -> StagedUpload:
    validate_upload(upload, photo=photo)
    safe_name = _UNSAFE_FILENAME_CHARS.sub("_", upload.filename or "upload")
    path = f"{folder}/{uuid.uuid4().hex}_{safe_name}"
    return StagedUpload(path=path, url=storage.public_url(path), upload=upload)


@dataclass
class PreparedEntry:
    """An entry that passed every check and only needs to be written."""

    tier: Tier
    contest_month: str
    user: Optional[UserRecord]
    coupon: Optional[CouponResult]
    free_entry: bool
    price: Decimal
    final_price: Decimal
    discount: Decimal


def _validate_request(request: SubmissionRequest) -> Tier:
    try:
        tier = Tier(request.tier)
    except ValueError:
        raise InvalidSubmissionError(f"Unknown tier '{request.tier}'.")
    if not validate_tier_poem_count(tier, len(request.poems)):
        raise InvalidSubmissionError(
            f"The {tier.value} tier requires exactly "
            f"{TIER_POEM_COUNTS[tier]} poem(s)."
        )
    if not (request.first_name or "").strip():
        raise InvalidSubmissionError("First name is required.")
    if not _EMAIL_RE.match(request.email or ""):
        raise InvalidSubmissionError("A valid email address is required.")
    for poem in request.poems:
        title = (poem.title or "").strip()
        if not title:
            raise InvalidSubmissionError("Every poem needs a title.")
        if len(title) > MAX_POEM_TITLE_LENGTH:
            raise InvalidSubmissionError("Poem title is too long.")
        if not poem.file_url and not (poem.text or "").strip():
            raise InvalidSubmissionError(
                f"Poem '{title}' needs a file or the poem text."
            )
    return tier


def _resolve_user(
    db: DbClient, request: SubmissionRequest, identity: Optional[Identity]
) -> Optional[UserRecord]:
    if identity is not None:
        user = db.get_user_by_uid(identity.uid)
        if user:
            return user
        user, _ = db.get_or_create_user(
            identity.uid,
            identity.email or request.email,
            name=identity.name or request.first_name,
            phone=identity.phone or request.phone,
        )
        return user
    return db.get_user_by_email(request.email)


def _check_coupon(
    db: DbClient,
    code: str,
    tier: Tier,
    user: Optional[UserRecord],
    contest_month: str,
) -> CouponResult:
    result = validate_coupon(code, tier)
    if not result.valid:
        if result.coupon_type is not None:
            raise CouponTierMismatchError(result.message)
        raise InvalidCouponError(result.message)
    if user and db.has_used_coupon(result.code, user.uid, contest_month):
        raise CouponAlreadyUsedError("This coupon code has already been used.")
    return result


def prepare_entry(
    db: DbClient,
    request: SubmissionRequest,
    *,
    identity: Optional[Identity] = None,
    now: Optional[datetime] = None,
) -> PreparedEntry:
    """
    Runs every acceptance check for an entry without recording it.

    The once-per-month and coupon-reuse rules are checked again inside the
    batch write, which is what makes them hold under concurrent requests.
    """
    now = now or datetime.now(timezone.utc)
    contest_month = contest_month_for(now)
    tier = _validate_request(request)
    user = _resolve_user(db, request, identity)

    coupon = None
    if (request.coupon_code or "").strip():
        coupon = _check_coupon(db, request.coupon_code, tier, user, contest_month)

    free_entry = is_free_entry(tier, coupon)
    if free_entry:
        if not free_tier_enabled(db.get_setting(FREE_TIER_ENABLED)):
            raise FreeTierDisabledError(
                "Free entries are currently closed. Please choose a paid tier."
            )
        if identity is None:
            raise InvalidSubmissionError("Please sign in to use your free entry.")

    price = TIER_PRICES[tier]
    final_price, discount = apply_discount(price, coupon)
    if final_price > 0 and not (request.payment_id or "").strip():
        raise PaymentRequiredError("Payment is required for this tier.")

    return PreparedEntry(
        tier=tier,
        contest_month=contest_month,
        user=user,
        coupon=coupon,
        free_entry=free_entry,
        price=price,
        final_price=final_price,
        discount=discount,
    )


def record_entry(
    db: DbClient,
    request: SubmissionRequest,
    entry: PreparedEntry,
    *,
    queue: Optional[JobQueue] = None,
) -> SubmissionReceipt:
    """Writes a prepared entry in one batch and queues the confirmation."""
    user = entry.user
    coupon = entry.coupon
    submission_uuid = uuid.uuid4().hex
    total = len(request.poems)
    rows = []
    for index, poem in enumerate(request.poems):
        # The entry's price is carried on the first poem row only.
        first = index == 0
        rows.append(
            NewSubmission(
                first_name=request.first_name.strip(),
                last_name=request.last_name,
                email=request.email.strip().lower(),
                phone=request.phone,
                age=request.age,
                poem_title=poem.title.strip(),
                poem_file_url=poem.file_url,
                poem_text=poem.text,
                photo_url=request.photo_url,
                tier=entry.tier.value,
                price=entry.final_price if first else Decimal("0.00"),
                coupon_code=coupon.code if coupon else None,
                discount_amount=entry.discount if first else Decimal("0.00"),
                payment_id=request.payment_id,
                payment_method=request.payment_method,
                contest_month=entry.contest_month,
                contest_type=request.contest_type,
                challenge_title=request.challenge_title,
                submission_uuid=submission_uuid,
                poem_index=index,
                total_poems=total,
            )
        )

    records = db.create_submission_batch(
        SubmissionBatch(
            rows=rows,
            contest_month=entry.contest_month,
            user_id=user.id if user else None,
            user_uid=user.uid if user else None,
            free_entry=entry.free_entry,
            free_tier_reset_timestamp=db.get_setting(FREE_TIER_RESET_TIMESTAMP),
            coupon_code=coupon.code if coupon else None,
            discount_amount=entry.discount,
        )
    )
    logger.info(
        "Accepted %s entry %s (%d poem(s)) for %s",
        entry.tier.value,
        submission_uuid,
        total,
        entry.contest_month,
    )

    receipt = SubmissionReceipt(
        submission_uuid=submission_uuid,
        submission_ids=[record.id for record in records],
        tier=entry.tier.value,
        contest_month=entry.contest_month,
        price=entry.price,
        discount_amount=entry.discount,
        final_price=entry.final_price,
        free_entry=entry.free_entry,
        user_id=user.id if user else None,
        coupon=coupon,
        poem_titles=[record.poem_title for record in records],
    )
    if queue is not None:
        enqueue_confirmation(queue, request, receipt)
    return receipt


def submit_entry(
    db: DbClient,
    request: SubmissionRequest,
    *,
    identity: Optional[Identity] = None,
    queue: Optional[JobQueue] = None,
    now: Optional[datetime] = None,
) -> SubmissionReceipt:
    """
    Accepts one contest entry (one or more poems) and returns its receipt.

    Raises a `WritoryError` subclass when the entry is rejected; in that case
    nothing is written.
    """
    entry = prepare_entry(db, request, identity=identity, now=now)
    return record_entry(db, request, entry, queue=queue)


def submit_entry_with_uploads(
    db: DbClient,
    storage: StorageClient,
    request: SubmissionRequest,
    uploads: list[StagedUpload],
    *,
    identity: Optional[Identity] = None,
    queue: Optional[JobQueue] = None,
    now: Optional[datetime] = None,
) -> SubmissionReceipt:
    """
    Like `submit_entry`, for entries whose files arrive with the request.

    `request` must already reference the staged URLs. Files are written only
    after the entry passes its checks, and removed again if the batch write
    fails.
    """
    entry = prepare_entry(db, request, identity=identity, now=now)
    stored: list[str] = []
    try:
        for staged in uploads:
            storage.upload_bytes(
                staged.path, staged.upload.data, staged.upload.content_type
            )
            stored.append(staged.path)
            logger.info(
                "Stored upload %s (%d bytes)", staged.path, len(staged.upload.data)
            )
        return record_entry(db, request, entry, queue=queue)
    except Exception:
        _discard_uploads(storage, stored)
        raise


def _discard_uploads(storage: StorageClient, paths: list[str]) -> None:
    for path in paths:
        try:
            storage.delete(path)
        except StorageUnavailableError:
            logger.exception("Could not remove orphaned upload %s", path)


def enqueue_confirmation(
    queue: JobQueue, request: SubmissionRequest, receipt: SubmissionReceipt
) -> None:
    job = submission_confirmation_job(
        to=request.email,
        first_name=request.first_name,
        poem_titles=receipt.poem_titles,
        tier=receipt.tier,
        contest_month=receipt.contest_month,
        submission_uuid=receipt.submission_uuid,
        final_price=str(receipt.final_price),
    )
    try:
        queue.enqueue(job.to_json())
    except Exception:
        # The entry is already recorded; a lost confirmation must not fail it.
        logger.exception("Could not queue confirmation for %s", receipt.submission_uuid)
