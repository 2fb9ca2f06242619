"""
Health check endpoints.

Endpoints:
- /health - overall status with the database check
- /health/live - liveness probe (is the process running?)
- /health/ready - readiness probe (can the database be reached?)
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from carhaus.core.config import settings
from carhaus.core.logging import SERVICE_VERSION, get_logger
from carhaus.db.postgres.session import check_database_connection
from carhaus.services.realtime import get_connection_manager

logger = get_logger(__name__)

router = APIRouter()

_startup_time = time.time()


class ServiceHealth(BaseModel):
    """Health status for a single dependency."""

    name: str
    status: str  # "healthy" or "unhealthy"
    latency_ms: float = 0.0
    details: dict[str, Any] = {}


class HealthResponse(BaseModel):
    status: str
    version: str
    environment: str
    uptime_seconds: float
    services: dict[str, ServiceHealth]
    checked_at: str


class ProbeResponse(BaseModel):
    status: str
    checked_at: str


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def check_postgres_health() -> ServiceHealth:
    start_time = time.time()
    healthy = await check_database_connection()
    return ServiceHealth(
        name="PostgreSQL",
        status="healthy" if healthy else "unhealthy",
        latency_ms=round((time.time() - start_time) * 1000, 2),
    )


@router.get("", response_model=HealthResponse)
async def health_check():
    """Overall status; the realtime registry is reported for information only."""
    postgres = await check_postgres_health()
    realtime = ServiceHealth(
        name="Realtime",
        status="healthy",
        details={"connections": get_connection_manager().connection_count},
    )
    return HealthResponse(
        status=postgres.status,
        version=SERVICE_VERSION,
        environment=settings.ENVIRONMENT,
        uptime_seconds=round(time.time() - _startup_time, 2),
        services={"postgres": postgres, "realtime": realtime},
        checked_at=_now(),
    )


@router.get("/live", response_model=ProbeResponse)
async def liveness_check():
    return ProbeResponse(status="alive", checked_at=_now())


@router.get("/ready", response_model=ProbeResponse)
async def readiness_check():
    """503 while the database is unreachable."""
    if not await check_database_connection():
        logger.warning("Readiness check failed", extra={"event": "readiness_failed"})
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "message": "Database unavailable"},
        )
    return ProbeResponse(status="ready", checked_at=_now())
