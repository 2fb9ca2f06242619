"""
Global exception handlers for the FastAPI application.

Every error leaves the API in the same envelope:

    {"error": {"code", "message", "details", "request_id"}}
"""

import traceback
import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from carhaus.core.config import settings
from carhaus.core.exceptions import CarhausException, ErrorCode, get_error_message
from carhaus.core.logging import get_logger

logger = get_logger(__name__)


# =============================================================================
# Error Response Builder
# =============================================================================


def build_error_response(
    request_id: str,
    code: ErrorCode,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
) -> JSONResponse:
    """
    Build a standardized error response.

    Args:
        request_id: Unique request identifier
        code: Error code enum
        message: Error message
        details: Additional error details
        status_code: HTTP status code

    Returns:
        JSONResponse with structured error body
    """
    content = {
        "error": {
            "code": code.value,
            "message": message,
            "details": details or {},
            "request_id": request_id,
        }
    }

    return JSONResponse(status_code=status_code, content=content)


def get_request_id(request: Request) -> str:
    """Extract request ID from request state."""
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def _collect_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, str]]:
    return [
        {
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in errors
    ]


# =============================================================================
# Exception Handlers
# =============================================================================


async def carhaus_exception_handler(
    request: Request,
    exc: CarhausException,
) -> JSONResponse:
    """Handle CarHaus domain exceptions."""
    request_id = get_request_id(request)

    logger.warning(
        f"CarHaus exception: {exc.message}",
        extra={
            "request_id": request_id,
            "error_code": exc.code.value,
            "details": exc.details,
            "path": request.url.path,
        },
    )

    return build_error_response(
        request_id=request_id,
        code=exc.code,
        message=exc.message,
        details=exc.details,
        status_code=exc.status_code,
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle request body/query validation errors."""
    request_id = get_request_id(request)
    errors = _collect_validation_errors(exc.errors())

    logger.warning(
        "Validation error",
        extra={"request_id": request_id, "errors": errors, "path": request.url.path},
    )

    return build_error_response(
        request_id=request_id,
        code=ErrorCode.VALIDATION_ERROR,
        message="Validation error",
        details={"validation_errors": errors},
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
    )


async def pydantic_validation_exception_handler(
    request: Request,
    exc: ValidationError,
) -> JSONResponse:
    """Handle Pydantic ValidationError raised outside request parsing."""
    request_id = get_request_id(request)
    errors = _collect_validation_errors(exc.errors())

    logger.warning(
        "Pydantic validation error",
        extra={"request_id": request_id, "errors": errors, "path": request.url.path},
    )

    return build_error_response(
        request_id=request_id,
        code=ErrorCode.VALIDATION_ERROR,
        message="Validation error",
        details={"validation_errors": errors},
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
    )


async def sqlalchemy_exception_handler(
    request: Request,
    exc: SQLAlchemyError,
) -> JSONResponse:
    """Handle SQLAlchemy database errors."""
    request_id = get_request_id(request)

    if isinstance(exc, OperationalError):
        code = ErrorCode.DATABASE_CONNECTION
        message = get_error_message(code)
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif isinstance(exc, IntegrityError):
        code = ErrorCode.DATABASE_INTEGRITY
        message = get_error_message(code)
        status_code = status.HTTP_409_CONFLICT
    else:
        code = ErrorCode.DATABASE_ERROR
        message = get_error_message(code)
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    log_details = {
        "request_id": request_id,
        "error_type": type(exc).__name__,
        "path": request.url.path,
    }
    if settings.DEBUG:
        log_details["error_message"] = str(exc)
        log_details["traceback"] = traceback.format_exc()

    logger.error(f"Database error: {type(exc).__name__}", extra=log_details)

    details = {}
    if settings.DEBUG:
        details["error_type"] = type(exc).__name__
        details["error_message"] = str(exc)[:200]

    return build_error_response(
        request_id=request_id,
        code=code,
        message=message,
        details=details,
        status_code=status_code,
    )


async def generic_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle all unhandled exceptions."""
    request_id = get_request_id(request)

    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {exc}",
        extra={
            "request_id": request_id,
            "error_type": type(exc).__name__,
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=True,
    )

    details = {}
    if settings.DEBUG:
        details["error_type"] = type(exc).__name__
        details["error_message"] = str(exc)[:200]

    return build_error_response(
        request_id=request_id,
        code=ErrorCode.INTERNAL_ERROR,
        message=get_error_message(ErrorCode.INTERNAL_ERROR),
        details=details,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


# =============================================================================
# Setup Function
# =============================================================================


def setup_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(CarhausException, carhaus_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, pydantic_validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)

    # Generic handler for unhandled exceptions (must be last)
    app.add_exception_handler(Exception, generic_exception_handler)

    logger.info("Exception handlers registered")
