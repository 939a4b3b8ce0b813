"""
Free-tier entitlement rules.

A user gets one free entry per contest month. Admins can restart eligibility
by resetting the free tier, which stamps `free_tier_reset_timestamp`; a
"free used" flag set before that stamp no longer counts.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from shared.constants import LOWEST_PAID_TIER
from shared.types import CouponType, Tier
from writory.coupons import CouponResult


def is_free_entry(tier: str, coupon: Optional[CouponResult]) -> bool:
    if tier == Tier.FREE:
        return True
    return (
        tier == LOWEST_PAID_TIER
        and coupon is not None
        and coupon.valid
        and coupon.coupon_type == CouponType.FREE
    )


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def effective_free_used(
    free_submission_used: bool,
    free_used_at: Optional[datetime],
    reset_timestamp: Optional[str],
) -> bool:
    if not free_submission_used:
        return False
    reset_at = parse_timestamp(reset_timestamp)
    if reset_at is None:
        return True
    if free_used_at is None:
        return False
    if free_used_at.tzinfo is None:
        free_used_at = free_used_at.replace(tzinfo=timezone.utc)
    return free_used_at > reset_at


def free_tier_enabled(setting_value: Optional[str]) -> bool:
    """Reads the `free_tier_enabled` admin setting; unset means enabled."""
    return (setting_value or "true").strip().lower() == "true"
