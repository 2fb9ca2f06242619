"""
CarHaus - Vehicle Marketplace Backend
Main FastAPI Application Entry Point
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse

from carhaus.api.v1.router import api_router
from carhaus.core.config import settings
from carhaus.core.error_handlers import setup_exception_handlers
from carhaus.core.logging import SERVICE_VERSION, RequestLoggingMiddleware, get_logger, setup_logging
from carhaus.core.metrics import MetricsMiddleware, generate_metrics_response
from carhaus.db.postgres.session import dispose_engine

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan handler for startup and shutdown events."""
    setup_logging()
    logger.info("Starting CarHaus backend service")

    yield

    logger.info("Shutting down CarHaus backend service")
    await dispose_engine()
    logger.info("Database connections closed")


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""

    tags_metadata = [
        {
            "name": "Health",
            "description": "Service health monitoring and readiness probes.",
        },
        {
            "name": "Authentication",
            "description": "Current principal. Tokens are issued upstream and sent as `Authorization: Bearer <token>`.",
        },
        {
            "name": "Listings",
            "description": "Listing creation and photos, buyer inquiries and the public featured feed.",
        },
        {
            "name": "Dealers",
            "description": "Dealer inbox, featured placement requests and plan limits.",
        },
        {
            "name": "Users",
            "description": "Buyer inbox: threads the signed-in buyer started.",
        },
        {
            "name": "Admin",
            "description": "Featured slot management, plan overrides and the audit log.",
        },
        {
            "name": "Subscriptions",
            "description": "Plan catalogue and the dealer subscription lifecycle.",
        },
        {
            "name": "Payments",
            "description": "Payment provider webhook and payment history.",
        },
        {
            "name": "Notifications",
            "description": "Persisted notifications and the realtime event socket at `/api/v1/notifications/ws`.",
        },
        {
            "name": "Metrics",
            "description": "Prometheus metrics for monitoring.",
        },
    ]

    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="""
# CarHaus API

Vehicle marketplace backend.

## Features

- **Inquiry threads**: one conversation per buyer, dealer and listing
- **Featured placement**: capped, ordered display slots for the home page
- **Subscriptions**: plan limits for listings, photos and featured slots
- **Realtime notifications**: persisted notifications pushed over WebSocket

## Authentication

Most endpoints require a JWT bearer token.

```
Authorization: Bearer <access_token>
```
        """,
        version=SERVICE_VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url=f"{settings.API_V1_PREFIX}/docs",
        redoc_url=f"{settings.API_V1_PREFIX}/redoc",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
        openapi_tags=tags_metadata,
    )

    # GZip compression middleware - compress responses > 1KB
    application.add_middleware(GZipMiddleware, minimum_size=1000)

    # Metrics collection middleware (collects request metrics for Prometheus)
    application.add_middleware(MetricsMiddleware)

    # Request logging middleware (must be added before CORS)
    application.add_middleware(RequestLoggingMiddleware)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "Accept",
            "Origin",
            "X-Requested-With",
            "X-Request-ID",
        ],
        expose_headers=["X-Request-ID"],
    )

    @application.middleware("http")
    async def add_security_headers(request: Request, call_next):
        """Add security headers to all responses."""
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if not settings.DEBUG:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    setup_exception_handlers(application)

    application.include_router(api_router, prefix=settings.API_V1_PREFIX)

    # Root health check endpoint for container orchestration
    @application.get("/health", tags=["Health"])
    async def health_check():
        """Basic health check endpoint; use /api/v1/health for dependency status."""
        return {
            "status": "healthy",
            "version": SERVICE_VERSION,
            "service": "carhaus-backend",
            "environment": settings.ENVIRONMENT,
        }

    @application.get("/metrics", tags=["Metrics"])
    async def metrics():
        return generate_metrics_response()

    return application


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "carhaus.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
