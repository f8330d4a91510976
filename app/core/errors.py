# app/core/errors.py
"""
Error taxonomy shared by every service.

Each class is an ``HTTPException`` so services can raise it directly the way
the routers expect; ``error_code`` is the stable machine-readable kind that the
exception handlers put in the response envelope.
"""
from typing import Any, Optional

from fastapi import HTTPException, status


class AppError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "system_error"
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(status_code=self.status_code, detail=self.message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "validation_error"
    default_message = "Invalid request data"


class InvalidTimestampError(ValidationError):
    error_code = "invalid_timestamp"
    default_message = "Missing or invalid time parameter"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "not_found"
    default_message = "Resource not found"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "conflict"
    default_message = "Resource already exists"


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "forbidden"
    default_message = "Permission denied"


class StateError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "state_error"
    default_message = "Operation not allowed in the current state"


class ServiceError(AppError):
    error_code = "system_error"


# --------------------------
# Voucher validation kinds
# --------------------------
class VoucherExpiredError(StateError):
    error_code = "voucher_expired"
    default_message = "Voucher is not yet valid or has expired"


class BelowMinimumPurchaseError(ValidationError):
    error_code = "below_minimum_purchase"


class ExcludedProductError(ValidationError):
    error_code = "excluded_product"
    default_message = "Voucher cannot be applied to some products in your cart"
