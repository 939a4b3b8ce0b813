"""
Coupon code validation.

Codes live in two static, disjoint sets. Validation is a pure lookup; the
caller records usage once a submission actually goes through.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from shared.constants import LOWEST_PAID_TIER
from shared.types import CouponType, Tier

# 100% off, Single tier only.
FREE_CODES = frozenset(
    {
        "INKWIN100",
        "FREEPASS100",
        "WRITORYWINNER",
        "WRITORYFREE1",
        "WRITORYFREE2",
        "WRITORYNEW",
        "WRITORY2025",
        "WRITORYWELCOME",
        "POETRYFREE",
        "WINNERFREE",
        "WRITORVIP",
        "FREEENTRY1",
        "FREEENTRY2",
        "FREEENTRY3",
        "UNLOCKFREE",
        "CHAMPION1",
        "CHAMPION2",
        "CHAMPION3",
        "WINNER2025",
        "FREEVIP1",
        "FREEVIP2",
    }
)

# 10% off any paid tier.
DISCOUNT_CODES = frozenset(
    {
        "DISCOUNT10",
        "POEMDEAL50",
        "SAVE10",
        "POETRY10",
        "WRITORY10",
        "DEAL2025",
        "OFFER10",
        "SPECIAL10",
        "SAVE2025",
        "DISCOUNT1",
        "DISCOUNT2",
        "DISCOUNT3",
        "DEAL1",
        "DEAL2",
        "DEAL3",
        "OFFER1",
        "OFFER2",
        "CODE10A",
        "CODE10B",
        "SAVE10A",
        "SAVE10B",
    }
)

DISCOUNT_PERCENT = 10

_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class CouponResult:
    valid: bool
    message: str
    code: Optional[str] = None
    coupon_type: Optional[CouponType] = None
    discount_percent: int = 0

    def as_dict(self) -> dict:
        return {
            "valid": self.valid,
            "code": self.code,
            "type": self.coupon_type.value if self.coupon_type else None,
            "discountPercent": self.discount_percent,
            "message": self.message,
        }


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def validate_coupon(code: str, tier: str) -> CouponResult:
    """Checks `code` against the static lists for the given tier."""
    normalized = normalize_code(code)
    try:
        tier_value = Tier(tier)
    except ValueError:
        return CouponResult(valid=False, message=f"Unknown tier '{tier}'.")

    if normalized in FREE_CODES:
        if tier_value != LOWEST_PAID_TIER:
            return CouponResult(
                valid=False,
                code=normalized,
                coupon_type=CouponType.FREE,
                message=(
                    "This 100% discount code is only valid for the Single "
                    "Poem tier."
                ),
            )
        return CouponResult(
            valid=True,
            code=normalized,
            coupon_type=CouponType.FREE,
            discount_percent=100,
            message="Valid code! Your Single Poem entry is free.",
        )

    if normalized in DISCOUNT_CODES:
        if tier_value == Tier.FREE:
            return CouponResult(
                valid=False,
                code=normalized,
                coupon_type=CouponType.DISCOUNT,
                message="Discount codes apply to paid tiers only.",
            )
        return CouponResult(
            valid=True,
            code=normalized,
            coupon_type=CouponType.DISCOUNT,
            discount_percent=DISCOUNT_PERCENT,
            message=f"Valid discount code! {DISCOUNT_PERCENT}% discount applied.",
        )

    return CouponResult(
        valid=False,
        message="Invalid coupon code. Please check and try again.",
    )


def apply_discount(price: Decimal, result: Optional[CouponResult]) -> tuple[Decimal, Decimal]:
    """Returns (final_price, discount_amount) for a validated coupon."""
    price = Decimal(price).quantize(_CENTS)
    if result is None or not result.valid:
        return price, Decimal("0.00")
    discount = (price * result.discount_percent / Decimal(100)).quantize(
        _CENTS, rounding=ROUND_HALF_UP
    )
    return price - discount, discount
