"""
Pydantic schemas for the contest API.

The frontend speaks camelCase; every model accepts and emits camelCase
aliases while still allowing snake_case field names in Python.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from shared.constants import (
    MAX_CONTACT_MESSAGE_LENGTH,
    MAX_POEM_TITLE_LENGTH,
    MAX_SCORE,
    MAX_WALL_POST_LENGTH,
)
from shared.types import NotificationType, SubmissionStatus


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class StatusResponse(ApiModel):
    status: Literal["ok"] = "ok"


# Coupons


class CouponValidationRequest(ApiModel):
    code: str = Field(..., max_length=64)
    tier: str
    uid: Optional[str] = None


class CouponValidationResponse(ApiModel):
    valid: bool
    code: Optional[str] = None
    type: Optional[str] = None
    discount_percent: int = 0
    message: str


# Users


class UserCreateRequest(ApiModel):
    name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)


class UserUpdateRequest(ApiModel):
    name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)
    profile_picture_url: Optional[str] = None


class UserResponse(ApiModel):
    id: int
    uid: str
    email: str
    name: Optional[str] = None
    phone: Optional[str] = None
    profile_picture_url: Optional[str] = None
    created_at: datetime


class SubmissionStatusResponse(ApiModel):
    free_submission_used: bool
    total_submissions: int
    contest_month: str
    free_tier_enabled: bool


# Submissions


class PoemPayload(ApiModel):
    title: str = Field(..., max_length=MAX_POEM_TITLE_LENGTH)
    file_url: Optional[str] = None
    text: Optional[str] = None


class SubmissionCreateRequest(ApiModel):
    first_name: str = Field(..., max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: str = Field(..., max_length=255)
    phone: Optional[str] = Field(None, max_length=32)
    age: Optional[str] = Field(None, max_length=10)
    tier: str
    poems: list[PoemPayload]
    photo_url: Optional[str] = None
    coupon_code: Optional[str] = None
    payment_id: Optional[str] = None
    payment_method: Optional[str] = None
    contest_type: Optional[str] = None
    challenge_title: Optional[str] = None


class SubmissionReceiptResponse(ApiModel):
    success: bool = True
    message: str
    submission_uuid: str
    submission_ids: list[int]
    tier: str
    contest_month: str
    price: Decimal
    discount_amount: Decimal
    final_price: Decimal
    free_entry: bool


class SubmissionResponse(ApiModel):
    id: int
    user_id: Optional[int] = None
    first_name: str
    last_name: Optional[str] = None
    email: str
    phone: Optional[str] = None
    age: Optional[str] = None
    poem_title: str
    poem_file_url: Optional[str] = None
    poem_text: Optional[str] = None
    photo_url: Optional[str] = None
    tier: str
    price: Decimal
    coupon_code: Optional[str] = None
    discount_amount: Decimal
    payment_id: Optional[str] = None
    payment_method: Optional[str] = None
    contest_month: str
    contest_type: Optional[str] = None
    challenge_title: Optional[str] = None
    submission_uuid: str
    poem_index: int
    total_poems: int
    submitted_at: datetime
    status: str
    score: Optional[int] = None
    type: str
    score_breakdown: Optional[dict] = None
    is_winner: bool
    winner_position: Optional[int] = None


class WinnerResponse(ApiModel):
    id: int
    first_name: str
    last_name: Optional[str] = None
    poem_title: str
    poem_file_url: Optional[str] = None
    photo_url: Optional[str] = None
    contest_month: str
    winner_position: Optional[int] = None
    score: Optional[int] = None


class SubmissionStatsResponse(ApiModel):
    total_poets: int
    total_submissions: int
    last_updated: datetime


class FreeTierStatusResponse(ApiModel):
    enabled: bool
    reset_timestamp: Optional[str] = None
    contest_launch_date: Optional[str] = None
    submission_deadline: Optional[str] = None
    result_announcement_date: Optional[str] = None


# Admin


class AdminSettingsResponse(ApiModel):
    settings: dict[str, str]


class AdminSettingsUpdateRequest(ApiModel):
    settings: dict[str, str]


class EvaluationRequest(ApiModel):
    score: Optional[int] = Field(None, ge=0, le=MAX_SCORE)
    status: SubmissionStatus = SubmissionStatus.EVALUATED
    type: str = Field("Human", max_length=50)
    score_breakdown: Optional[dict] = None


class WinnerUpdateRequest(ApiModel):
    is_winner: bool
    winner_position: Optional[int] = None


class AdminCreateRequest(ApiModel):
    email: str = Field(..., max_length=255)


class AdminUserResponse(ApiModel):
    id: int
    email: str
    role: str
    created_at: datetime


# Contact


class ContactRequest(ApiModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., max_length=255)
    phone: Optional[str] = Field(None, max_length=32)
    subject: Optional[str] = Field(None, max_length=255)
    message: str = Field(..., min_length=1, max_length=MAX_CONTACT_MESSAGE_LENGTH)


class ContactResponse(ApiModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    subject: Optional[str] = None
    message: str
    submitted_at: datetime


# Notifications


class NotificationSendRequest(ApiModel):
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    type: NotificationType = NotificationType.GENERAL
    target_user_email: Optional[str] = None
    send_email: bool = False


class NotificationResponse(ApiModel):
    id: int
    title: str
    message: str
    type: str
    target_user_email: Optional[str] = None
    sent_by: str
    recipient_count: int
    created_at: datetime


class UserNotificationResponse(ApiModel):
    id: int
    notification_id: int
    title: str
    message: str
    type: str
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


# Wall


class WallPostCreateRequest(ApiModel):
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1, max_length=MAX_WALL_POST_LENGTH)
    category: Optional[str] = Field(None, max_length=100)
    author_name: Optional[str] = Field(None, max_length=255)
    author_instagram: Optional[str] = Field(None, max_length=255)

    @field_validator("title", "content")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class WallPostModerationRequest(ApiModel):
    notes: Optional[str] = None


class WallPostResponse(ApiModel):
    id: int
    user_uid: str
    title: str
    content: str
    category: Optional[str] = None
    author_name: str
    author_instagram: Optional[str] = None
    status: str
    moderated_by: Optional[str] = None
    moderated_at: Optional[datetime] = None
    moderation_notes: Optional[str] = None
    likes: int
    liked_by: list[str]
    created_at: datetime
