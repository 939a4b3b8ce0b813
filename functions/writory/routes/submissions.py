"""
Submission routes: multipart uploads, JSON intake and public results.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from shared.constants import TIER_POEM_COUNTS
from shared.types import PoemEntry, Tier
from writory.auth import Identity
from writory.db import DbClient
from writory.dependencies import (
    get_db_client,
    get_optional_identity,
    get_queue_client,
    get_storage_client,
)
from writory.queue import JobQueue
from writory.schemas import (
    SubmissionCreateRequest,
    SubmissionReceiptResponse,
    SubmissionStatsResponse,
    WinnerResponse,
)
from writory.storage import StorageClient
from writory.submissions import (
    StagedUpload,
    SubmissionReceipt,
    SubmissionRequest,
    UploadedFile,
    stage_upload,
    submit_entry,
    submit_entry_with_uploads,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["submissions"])

POEM_FOLDER = "poems"
PHOTO_FOLDER = "photos"


async def _read_upload(file: UploadFile) -> UploadedFile:
    return UploadedFile(
        filename=file.filename or "upload",
        content_type=file.content_type or "application/octet-stream",
        data=await file.read(),
    )


async def _stage_photo(
    storage: StorageClient, photo_file: Optional[UploadFile]
) -> Optional[StagedUpload]:
    if not photo_file:
        return None
    upload = await _read_upload(photo_file)
    return stage_upload(storage, upload, folder=PHOTO_FOLDER, photo=True)


def _receipt_response(receipt: SubmissionReceipt) -> SubmissionReceiptResponse:
    if receipt.free_entry:
        message = "Your free entry has been submitted."
    else:
        message = f"Your {receipt.tier} entry has been submitted."
    return SubmissionReceiptResponse(
        message=message,
        submission_uuid=receipt.submission_uuid,
        submission_ids=receipt.submission_ids,
        tier=receipt.tier,
        contest_month=receipt.contest_month,
        price=receipt.price,
        discount_amount=receipt.discount_amount,
        final_price=receipt.final_price,
        free_entry=receipt.free_entry,
    )


@router.post(
    "/submit-poem", response_model=SubmissionReceiptResponse, status_code=201
)
async def submit_poem(
    first_name: str = Form(..., alias="firstName"),
    email: str = Form(...),
    tier: str = Form(...),
    poem_title: str = Form(..., alias="poemTitle"),
    last_name: Optional[str] = Form(None, alias="lastName"),
    phone: Optional[str] = Form(None),
    age: Optional[str] = Form(None),
    poem_text: Optional[str] = Form(None, alias="poemText"),
    coupon_code: Optional[str] = Form(None, alias="couponCode"),
    payment_id: Optional[str] = Form(None, alias="paymentId"),
    payment_method: Optional[str] = Form(None, alias="paymentMethod"),
    contest_type: Optional[str] = Form(None, alias="contestType"),
    challenge_title: Optional[str] = Form(None, alias="challengeTitle"),
    poem_file: Optional[UploadFile] = File(None, alias="poemFile"),
    photo_file: Optional[UploadFile] = File(None, alias="photoFile"),
    identity: Optional[Identity] = Depends(get_optional_identity),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    queue: JobQueue = Depends(get_queue_client),
):
    """Single-poem entry (free or single tier) sent as multipart form data."""
    try:
        multi_poem = TIER_POEM_COUNTS[Tier(tier)] != 1
    except ValueError:
        # Unknown tiers are rejected by submit_entry.
        multi_poem = False
    if multi_poem:
        raise HTTPException(
            status_code=400,
            detail="Use /submit-multiple-poems for multi-poem tiers.",
        )

    poem = (
        stage_upload(storage, await _read_upload(poem_file), folder=POEM_FOLDER)
        if poem_file
        else None
    )
    photo = await _stage_photo(storage, photo_file)

    request = SubmissionRequest(
        first_name=first_name,
        last_name=last_name,
        email=email,
        phone=phone,
        age=age,
        tier=tier,
        poems=[
            PoemEntry(
                title=poem_title,
                file_url=poem.url if poem else None,
                text=poem_text,
            )
        ],
        photo_url=photo.url if photo else None,
        coupon_code=coupon_code,
        payment_id=payment_id,
        payment_method=payment_method,
        contest_type=contest_type,
        challenge_title=challenge_title,
    )
    staged = [item for item in (poem, photo) if item]
    receipt = submit_entry_with_uploads(
        db, storage, request, staged, identity=identity, queue=queue
    )
    return _receipt_response(receipt)


@router.post(
    "/submit-multiple-poems",
    response_model=SubmissionReceiptResponse,
    status_code=201,
)
async def submit_multiple_poems(
    first_name: str = Form(..., alias="firstName"),
    email: str = Form(...),
    tier: str = Form(...),
    poem_titles: list[str] = Form(..., alias="poemTitles"),
    poem_files: list[UploadFile] = File(..., alias="poemFiles"),
    last_name: Optional[str] = Form(None, alias="lastName"),
    phone: Optional[str] = Form(None),
    age: Optional[str] = Form(None),
    coupon_code: Optional[str] = Form(None, alias="couponCode"),
    payment_id: Optional[str] = Form(None, alias="paymentId"),
    payment_method: Optional[str] = Form(None, alias="paymentMethod"),
    contest_type: Optional[str] = Form(None, alias="contestType"),
    challenge_title: Optional[str] = Form(None, alias="challengeTitle"),
    photo_file: Optional[UploadFile] = File(None, alias="photoFile"),
    identity: Optional[Identity] = Depends(get_optional_identity),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    queue: JobQueue = Depends(get_queue_client),
):
    """Multi-poem entry (double or bulk tier); one file per title."""
    if len(poem_titles) != len(poem_files):
        raise HTTPException(
            status_code=400,
            detail="Each poem title needs exactly one poem file.",
        )

    poem_uploads = [
        stage_upload(storage, await _read_upload(f), folder=POEM_FOLDER)
        for f in poem_files
    ]
    photo = await _stage_photo(storage, photo_file)
    poems = [
        PoemEntry(title=title, file_url=staged.url)
        for title, staged in zip(poem_titles, poem_uploads)
    ]

    request = SubmissionRequest(
        first_name=first_name,
        last_name=last_name,
        email=email,
        phone=phone,
        age=age,
        tier=tier,
        poems=poems,
        photo_url=photo.url if photo else None,
        coupon_code=coupon_code,
        payment_id=payment_id,
        payment_method=payment_method,
        contest_type=contest_type,
        challenge_title=challenge_title,
    )
    staged = poem_uploads + ([photo] if photo else [])
    receipt = submit_entry_with_uploads(
        db, storage, request, staged, identity=identity, queue=queue
    )
    return _receipt_response(receipt)


@router.post(
    "/submissions", response_model=SubmissionReceiptResponse, status_code=201
)
def create_submission(
    payload: SubmissionCreateRequest,
    identity: Optional[Identity] = Depends(get_optional_identity),
    db: DbClient = Depends(get_db_client),
    queue: JobQueue = Depends(get_queue_client),
):
    """JSON intake for entries whose files were uploaded beforehand."""
    request = SubmissionRequest(
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email,
        phone=payload.phone,
        age=payload.age,
        tier=payload.tier,
        poems=[
            PoemEntry(title=p.title, file_url=p.file_url, text=p.text)
            for p in payload.poems
        ],
        photo_url=payload.photo_url,
        coupon_code=payload.coupon_code,
        payment_id=payload.payment_id,
        payment_method=payload.payment_method,
        contest_type=payload.contest_type,
        challenge_title=payload.challenge_title,
    )
    receipt = submit_entry(db, request, identity=identity, queue=queue)
    return _receipt_response(receipt)


@router.get("/submissions/winners", response_model=list[WinnerResponse])
def list_winners(db: DbClient = Depends(get_db_client)):
    return db.list_winners()


@router.get("/stats/submissions", response_model=SubmissionStatsResponse)
def submission_stats(db: DbClient = Depends(get_db_client)):
    total_poets, total_submissions = db.submission_stats()
    return SubmissionStatsResponse(
        total_poets=total_poets,
        total_submissions=total_submissions,
        last_updated=datetime.now(timezone.utc),
    )
