# Core module
"""
Core module for the CarHaus backend.

This module provides:
- Configuration management (config.py)
- Custom exceptions and error codes (exceptions.py)
- Global error handlers (error_handlers.py)
- Structured logging (logging.py)
- Prometheus metrics (metrics.py)
- JWT utilities (security.py)
"""

from carhaus.core.config import settings, get_settings
from carhaus.core.exceptions import (
    # Base exceptions
    CarhausException,
    ValidationException,
    NotFoundException,
    ConflictException,
    # Database exceptions
    DatabaseException,
    PostgresException,
    PostgresConnectionException,
    # Business logic exceptions
    FeaturedLimitExceededException,
    PlanLimitExceededException,
    InquiryArchivedException,
    # Authentication exceptions
    AuthenticationException,
    TokenExpiredException,
    InvalidTokenException,
    ForbiddenException,
    WebhookRejectedException,
    # Error codes
    ErrorCode,
    get_error_message,
)
from carhaus.core.logging import (
    setup_logging,
    get_logger,
    bind_user,
)

__all__ = [
    # Config
    "settings",
    "get_settings",
    # Exceptions
    "CarhausException",
    "ValidationException",
    "NotFoundException",
    "ConflictException",
    "DatabaseException",
    "PostgresException",
    "PostgresConnectionException",
    "FeaturedLimitExceededException",
    "PlanLimitExceededException",
    "InquiryArchivedException",
    "AuthenticationException",
    "TokenExpiredException",
    "InvalidTokenException",
    "ForbiddenException",
    "WebhookRejectedException",
    "ErrorCode",
    "get_error_message",
    # Logging
    "setup_logging",
    "get_logger",
    "bind_user",
]
