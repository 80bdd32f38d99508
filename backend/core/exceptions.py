"""
Domain exceptions for the payment back office.

All exceptions follow the standard error format:
{
    "error": {
        "code": "ERROR_CODE",
        "message": "Human-readable description",
        "details": {}
    }
"""

from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
import logging

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, code, message, details=None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(DomainError):
    """Validation error - request body or parameters fail validation."""

    def __init__(self, message, details=None):
        super().__init__("VALIDATION_ERROR", message, details)


class NotFoundError(DomainError):
    """Requested resource does not exist."""

    def __init__(self, message, details=None):
        super().__init__("NOT_FOUND", message, details)


class PermissionDeniedError(DomainError):
    """Authenticated user lacks required role."""

    def __init__(self, message, details=None):
        super().__init__("FORBIDDEN", message, details)


class InsufficientFundsError(DomainError):
    """A debit would drive a merchant balance below zero."""

    def __init__(self, message="Insufficient balance", details=None):
        super().__init__("INSUFFICIENT_FUNDS", message, details)


class IdempotencyInProgressError(DomainError):
    """Another execution under the same idempotency key has not finished yet."""

    def __init__(self, message, details=None):
        super().__init__("IDEMPOTENCY_IN_PROGRESS", message, details)


class PaymentStatusError(DomainError):
    """Typed failure of a payment status change or intake transition."""

    NOT_FOUND = "NOT_FOUND"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    INVALID_STATE = "INVALID_STATE"
    COMMENT_REQUIRED = "COMMENT_REQUIRED"
    AMOUNT_INVALID = "AMOUNT_INVALID"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"

    CODES = (
        NOT_FOUND,
        TYPE_MISMATCH,
        INVALID_STATE,
        COMMENT_REQUIRED,
        AMOUNT_INVALID,
        INSUFFICIENT_FUNDS,
    )

    def __init__(self, code, message, details=None):
        if code not in self.CODES:
            raise ValueError(f"Unknown payment status error code: {code}")
        super().__init__(code, message, details)


STATUS_CODE_MAP = {
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "TYPE_MISMATCH": status.HTTP_400_BAD_REQUEST,
    "COMMENT_REQUIRED": status.HTTP_400_BAD_REQUEST,
    "AMOUNT_INVALID": status.HTTP_400_BAD_REQUEST,
    "INVALID_STATE": status.HTTP_409_CONFLICT,
    "IDEMPOTENCY_IN_PROGRESS": status.HTTP_409_CONFLICT,
    "INSUFFICIENT_FUNDS": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "FORBIDDEN": status.HTTP_403_FORBIDDEN,
}


def domain_exception_handler(exc, context):
    """
    Custom exception handler for domain exceptions.

    Returns standard error format:
    {
        "error": {
            "code": "ERROR_CODE",
            "message": "Human-readable description",
            "details": {}
        }
    }
    """
    # Handle domain exceptions
    if isinstance(exc, DomainError):
        status_code = STATUS_CODE_MAP.get(exc.code, status.HTTP_400_BAD_REQUEST)

        response = Response(
            {
                "error": {
                    "code": exc.code,
                    "message": exc.message,
                    "details": exc.details,
                }
            },
            status=status_code,
        )
        if exc.code == "IDEMPOTENCY_IN_PROGRESS":
            response["Retry-After"] = "1"
        return response

    # Use default REST framework exception handler for other exceptions
    response = exception_handler(exc, context)

    if response is not None:
        # Format standard REST framework errors
        if "detail" in response.data:
            error_data = {
                "error": {
                    "code": getattr(exc, "default_code", "ERROR").upper(),
                    "message": str(response.data["detail"]),
                    "details": {},
                }
            }
        else:
            error_data = {
                "error": {
                    "code": "VALIDATION_ERROR",
                    "message": "Invalid request",
                    "details": response.data,
                }
            }

        response.data = error_data
        return response

    # Log unhandled exceptions
    logger.exception("Unhandled exception", exc_info=exc)
    return Response(
        {
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An internal error occurred",
                "details": {},
            }
        },
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
