"""
Coupon validation endpoint used by the submit form before payment.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from shared.types import contest_month_for
from writory.coupons import CouponResult, validate_coupon
from writory.db import DbClient
from writory.dependencies import get_db_client
from writory.schemas import CouponValidationRequest, CouponValidationResponse

router = APIRouter(tags=["coupons"])


@router.post("/validate-coupon", response_model=CouponValidationResponse)
def validate_coupon_code(
    payload: CouponValidationRequest, db: DbClient = Depends(get_db_client)
):
    result = validate_coupon(payload.code, payload.tier)
    if (
        result.valid
        and payload.uid
        and db.has_used_coupon(result.code, payload.uid, contest_month_for())
    ):
        result = CouponResult(
            valid=False,
            code=result.code,
            coupon_type=result.coupon_type,
            message="This coupon code has already been used.",
        )
    return CouponValidationResponse.model_validate(result.as_dict())
