"""
Custom exception classes for CarHaus.

Every domain error carries:
- a machine-readable error code for client-side handling
- a human-readable message
- structured details
- the HTTP status code the error handlers render it with
"""

from enum import StrEnum
from typing import Any

from fastapi import status

# =============================================================================
# Error Codes Enum
# =============================================================================


class ErrorCode(StrEnum):
    """Standardized error codes for client-side handling."""

    # General errors (1xxx)
    INTERNAL_ERROR = "ERR_1000"
    VALIDATION_ERROR = "ERR_1001"
    NOT_FOUND = "ERR_1002"
    UNAUTHORIZED = "ERR_1003"
    FORBIDDEN = "ERR_1004"
    CONFLICT = "ERR_1005"
    BAD_REQUEST = "ERR_1007"

    # Database errors (2xxx)
    DATABASE_ERROR = "ERR_2000"
    DATABASE_CONNECTION = "ERR_2001"
    DATABASE_INTEGRITY = "ERR_2003"
    POSTGRES_ERROR = "ERR_2010"

    # Marketplace errors (4xxx)
    FEATURED_LIMIT_REACHED = "ERR_4001"
    LISTING_LIMIT_REACHED = "ERR_4002"
    PHOTO_LIMIT_REACHED = "ERR_4003"
    INQUIRY_ARCHIVED = "ERR_4004"
    SUBSCRIPTION_ACTIVE = "ERR_4005"
    WEBHOOK_REJECTED = "ERR_4006"

    # Authentication errors (5xxx)
    AUTH_ERROR = "ERR_5000"
    TOKEN_EXPIRED = "ERR_5002"
    TOKEN_INVALID = "ERR_5003"


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.INTERNAL_ERROR: "An internal server error occurred. Please try again later.",
    ErrorCode.VALIDATION_ERROR: "Invalid data. Please check the submitted values.",
    ErrorCode.NOT_FOUND: "The requested resource was not found.",
    ErrorCode.UNAUTHORIZED: "Authentication is required for this operation.",
    ErrorCode.FORBIDDEN: "You do not have permission to perform this operation.",
    ErrorCode.CONFLICT: "The request conflicts with the current state of the resource.",
    ErrorCode.BAD_REQUEST: "Malformed request.",
    ErrorCode.DATABASE_ERROR: "A database error occurred. Please try again later.",
    ErrorCode.DATABASE_CONNECTION: "Could not connect to the database.",
    ErrorCode.DATABASE_INTEGRITY: "A data integrity error occurred.",
    ErrorCode.POSTGRES_ERROR: "PostgreSQL database error.",
    ErrorCode.FEATURED_LIMIT_REACHED: "Featured listing limit reached.",
    ErrorCode.LISTING_LIMIT_REACHED: "Listing limit for the current plan reached.",
    ErrorCode.PHOTO_LIMIT_REACHED: "Photo limit for the current plan reached.",
    ErrorCode.INQUIRY_ARCHIVED: "This conversation has been archived.",
    ErrorCode.SUBSCRIPTION_ACTIVE: "An active subscription already exists.",
    ErrorCode.WEBHOOK_REJECTED: "Webhook rejected.",
    ErrorCode.AUTH_ERROR: "Authentication error.",
    ErrorCode.TOKEN_EXPIRED: "The session has expired. Please sign in again.",
    ErrorCode.TOKEN_INVALID: "Invalid token.",
}


def get_error_message(code: ErrorCode, fallback: str | None = None) -> str:
    """Get the default message for an error code."""
    return ERROR_MESSAGES.get(code, fallback or "An unknown error occurred.")


# =============================================================================
# Base Exception Classes
# =============================================================================


class CarhausException(Exception):
    """
    Base exception class for all CarHaus exceptions.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional error context
        status_code: HTTP status code
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
            }
        }


# =============================================================================
# Validation Exceptions
# =============================================================================


class ValidationException(CarhausException):
    """Exception for validation errors."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        error_details = details or {}
        if field:
            error_details["field"] = field

        super().__init__(
            message=message,
            code=ErrorCode.VALIDATION_ERROR,
            details=error_details,
            status_code=status.HTTP_400_BAD_REQUEST,
        )


class FeaturedLimitExceededException(ValidationException):
    """Raised when featuring a listing would break the dealer or global cap.

    ``scope`` is ``"dealer"`` for the plan cap and ``"global"`` for the
    site-wide ceiling.
    """

    def __init__(self, scope: str, limit: int, current: int | None = None):
        if scope == "global":
            message = f"Maximum of {limit} featured listings reached"
        else:
            message = f"Dealer has reached the featured listing limit of {limit} for the current plan"

        details: dict[str, Any] = {"scope": scope, "limit": limit}
        if current is not None:
            details["current"] = current

        super().__init__(message=message, field="featured", details=details)
        self.code = ErrorCode.FEATURED_LIMIT_REACHED
        self.scope = scope
        self.limit = limit


class PlanLimitExceededException(ValidationException):
    """Raised when an action would exceed a plan's listing or photo allowance."""

    def __init__(self, message: str, limit: int, code: ErrorCode = ErrorCode.LISTING_LIMIT_REACHED):
        super().__init__(message=message, details={"limit": limit})
        self.code = code
        self.limit = limit


class InquiryArchivedException(ValidationException):
    """Raised when a buyer writes into a thread they archived."""

    def __init__(self, inquiry_id: str):
        super().__init__(
            message="This conversation has been archived",
            field="inquiry_id",
            details={"inquiry_id": inquiry_id},
        )
        self.code = ErrorCode.INQUIRY_ARCHIVED


# =============================================================================
# Resource Exceptions
# =============================================================================


class NotFoundException(CarhausException):
    """Exception for resource not found errors."""

    def __init__(
        self,
        message: str,
        resource_type: str | None = None,
        resource_id: str | None = None,
    ):
        details = {}
        if resource_type:
            details["resource_type"] = resource_type
        if resource_id:
            details["resource_id"] = resource_id

        super().__init__(
            message=message,
            code=ErrorCode.NOT_FOUND,
            details=details,
            status_code=status.HTTP_404_NOT_FOUND,
        )


class ConflictException(CarhausException):
    """Exception for state conflicts, such as a duplicate active subscription."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CONFLICT,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            code=code,
            details=details,
            status_code=status.HTTP_409_CONFLICT,
        )


# =============================================================================
# Database Exceptions
# =============================================================================


class DatabaseException(CarhausException):
    """Base exception for database errors."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.DATABASE_ERROR,
        details: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ):
        error_details = details or {}
        if original_error:
            error_details["original_error"] = str(original_error)

        super().__init__(
            message=message,
            code=code,
            details=error_details,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
        self.original_error = original_error


class PostgresException(DatabaseException):
    """Exception for PostgreSQL errors."""

    def __init__(
        self,
        message: str = "PostgreSQL database error.",
        details: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ):
        super().__init__(
            message=message,
            code=ErrorCode.POSTGRES_ERROR,
            details=details,
            original_error=original_error,
        )


class PostgresConnectionException(PostgresException):
    """Exception for PostgreSQL connection errors."""

    def __init__(
        self,
        message: str = "Could not connect to the PostgreSQL database.",
        original_error: Exception | None = None,
    ):
        super().__init__(
            message=message,
            details={"type": "connection"},
            original_error=original_error,
        )
        self.code = ErrorCode.DATABASE_CONNECTION


# =============================================================================
# Authentication Exceptions
# =============================================================================


class AuthenticationException(CarhausException):
    """Base exception for authentication errors."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.AUTH_ERROR,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            code=code,
            details=details,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class TokenExpiredException(AuthenticationException):
    """Exception for expired tokens."""

    def __init__(
        self,
        message: str = "The session has expired. Please sign in again.",
    ):
        super().__init__(
            message=message,
            code=ErrorCode.TOKEN_EXPIRED,
        )


class InvalidTokenException(AuthenticationException):
    """Exception for invalid tokens."""

    def __init__(
        self,
        message: str = "Invalid token.",
    ):
        super().__init__(
            message=message,
            code=ErrorCode.TOKEN_INVALID,
        )


class ForbiddenException(CarhausException):
    """Exception for forbidden access."""

    def __init__(
        self,
        message: str = "You do not have permission to perform this operation.",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            code=ErrorCode.FORBIDDEN,
            details=details,
            status_code=status.HTTP_403_FORBIDDEN,
        )


class WebhookRejectedException(ForbiddenException):
    """Raised when a payment webhook fails its shared-secret check."""

    def __init__(self, message: str = "Invalid webhook secret"):
        super().__init__(message=message)
        self.code = ErrorCode.WEBHOOK_REJECTED
