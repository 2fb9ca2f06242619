"""
Logging configuration for CarHaus.

Provides:
- Structured JSON logging with request correlation
- Request ID and user ID tracking across the request lifecycle
- Configurable log levels per module
- Sentry integration when a DSN is configured
"""

from __future__ import annotations

import logging
import os
import sys
import time
import uuid
from collections.abc import Callable
from contextvars import ContextVar
from datetime import datetime, UTC
from typing import Any, Optional, TYPE_CHECKING

from pythonjsonlogger import jsonlogger
from starlette.middleware.base import BaseHTTPMiddleware

from carhaus.core.config import settings

if TYPE_CHECKING:
    from starlette.responses import Response
    from starlette.requests import Request

# Context variables for request correlation
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)

SERVICE_VERSION = "0.1.0"


class StructuredJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter adding service metadata and request correlation.

    Adds:
    - RFC 3339 timestamp
    - Log level and logger name
    - Service name, version, and environment
    - Request ID and user ID from context
    - Exception type and stack trace when present
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._hostname = os.uname().nodename if hasattr(os, "uname") else "unknown"
        self._pid = os.getpid()

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.now(UTC).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name

        log_record["service"] = {
            "name": settings.PROJECT_NAME,
            "version": SERVICE_VERSION,
            "environment": settings.ENVIRONMENT,
        }
        log_record["host"] = {"name": self._hostname, "pid": self._pid}

        request_id = request_id_var.get()
        if request_id:
            log_record["request_id"] = request_id

        user_id = user_id_var.get()
        if user_id:
            log_record["user_id"] = user_id

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, _ = record.exc_info
            log_record["error"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "stack_trace": self.formatException(record.exc_info),
            }

        for key in [k for k, v in log_record.items() if v is None]:
            del log_record[key]


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for request logging and correlation.

    Generates (or propagates) a request ID, logs request start and
    completion with timing, and echoes ``X-Request-ID`` and
    ``X-Response-Time`` on the response.
    """

    # High-frequency probes are not logged in detail
    EXCLUDED_PATHS = {"/health", "/metrics"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        request_id_token = request_id_var.set(request_id)
        user_id_token = user_id_var.set(None)

        logger = get_logger("request")
        should_log_detailed = request.url.path not in self.EXCLUDED_PATHS
        start_time = time.time()

        if should_log_detailed:
            logger.info(
                "Request started",
                extra={
                    "event": "request_start",
                    "http": {
                        "method": request.method,
                        "path": request.url.path,
                        "query": str(request.query_params) if request.query_params else None,
                    },
                    "client": {
                        "ip": request.client.host if request.client else None,
                        "user_agent": request.headers.get("User-Agent"),
                    },
                },
            )

        try:
            response = await call_next(request)
            duration_ms = (time.time() - start_time) * 1000

            if response.status_code >= 500:
                log_level = logging.ERROR
            elif response.status_code >= 400 or duration_ms > 5000:
                log_level = logging.WARNING
            else:
                log_level = logging.INFO

            if should_log_detailed:
                logger.log(
                    log_level,
                    f"Request completed: {request.method} {request.url.path} - {response.status_code} ({duration_ms:.2f}ms)",
                    extra={
                        "event": "request_complete",
                        "http": {
                            "method": request.method,
                            "path": request.url.path,
                            "status_code": response.status_code,
                        },
                        "timing": {"duration_ms": round(duration_ms, 2)},
                    },
                )

            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
            return response

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.url.path}",
                extra={
                    "event": "request_error",
                    "http": {"method": request.method, "path": request.url.path},
                    "timing": {"duration_ms": round(duration_ms, 2)},
                    "error": {"type": type(e).__name__, "message": str(e)},
                },
                exc_info=True,
            )
            raise

        finally:
            request_id_var.reset(request_id_token)
            user_id_var.reset(user_id_token)


# Logger configuration by module
LOGGER_CONFIG: dict[str, int] = {
    "uvicorn": logging.INFO,
    "uvicorn.access": logging.WARNING,
    "uvicorn.error": logging.ERROR,
    "sqlalchemy.engine": logging.WARNING,
    "sqlalchemy.pool": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "aiosqlite": logging.WARNING,
}


def setup_logging() -> None:
    """
    Configure application logging.

    JSON output for production, human-readable lines for development,
    per-module levels from ``LOGGER_CONFIG`` and Sentry when
    ``SENTRY_DSN`` is set.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper()))
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)

    if settings.LOG_FORMAT == "json":
        formatter = StructuredJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s"
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    for logger_name, level in LOGGER_CONFIG.items():
        logging.getLogger(logger_name).setLevel(level)

    if settings.SENTRY_DSN:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        from sentry_sdk.integrations.logging import LoggingIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENVIRONMENT,
            release=f"carhaus@{SERVICE_VERSION}",
            integrations=[
                FastApiIntegration(),
                SqlalchemyIntegration(),
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            ],
            traces_sample_rate=0.1 if settings.ENVIRONMENT == "production" else 1.0,
            send_default_pii=False,
        )
        logging.info("Sentry SDK initialized successfully")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the specified name.

    Args:
        name: Logger name, typically __name__ of the calling module

    Returns:
        Logger instance inheriting the root configuration
    """
    return logging.getLogger(name)


def bind_user(user_id: str | None) -> None:
    """Attach the authenticated user ID to log records of the current request."""
    user_id_var.set(user_id)
