"""
API v1 router - aggregates all endpoint routers.
"""

from fastapi import APIRouter

from carhaus.api.v1.endpoints import (
    admin,
    auth,
    dealers,
    health,
    listings,
    metrics,
    notifications,
    payments,
    subscriptions,
    users,
)

api_router = APIRouter()

api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Authentication"],
)

api_router.include_router(
    listings.router,
    prefix="/listings",
    tags=["Listings"],
)

api_router.include_router(
    dealers.router,
    prefix="/dealers",
    tags=["Dealers"],
)

api_router.include_router(
    users.router,
    prefix="/users",
    tags=["Users"],
)

api_router.include_router(
    admin.router,
    prefix="/admin",
    tags=["Admin"],
)

api_router.include_router(
    subscriptions.router,
    prefix="/subscriptions",
    tags=["Subscriptions"],
)

api_router.include_router(
    payments.router,
    prefix="/payments",
    tags=["Payments"],
)

api_router.include_router(
    notifications.router,
    prefix="/notifications",
    tags=["Notifications"],
)

api_router.include_router(
    health.router,
    prefix="/health",
    tags=["Health"],
)

api_router.include_router(
    metrics.router,
    prefix="/metrics",
    tags=["Metrics"],
)
