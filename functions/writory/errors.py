"""
Domain errors raised by the services and storage layer.

Each error carries the HTTP status the API responds with, so route handlers
can convert them without a lookup table.
"""

from __future__ import annotations


class WritoryError(Exception):
    status_code = 400


class NotFoundError(WritoryError):
    status_code = 404


class ConflictError(WritoryError):
    status_code = 409


class ForbiddenError(WritoryError):
    status_code = 403


class AuthError(WritoryError):
    status_code = 401


class InvalidSubmissionError(WritoryError):
    pass


class InvalidCouponError(WritoryError):
    pass


class CouponTierMismatchError(InvalidCouponError):
    pass


class CouponAlreadyUsedError(InvalidCouponError):
    pass


class FreeTierDisabledError(WritoryError):
    pass


class FreeSubmissionUsedError(ConflictError):
    pass


class PaymentRequiredError(WritoryError):
    status_code = 402


class UploadError(WritoryError):
    pass


class StorageUnavailableError(WritoryError):
    status_code = 502
