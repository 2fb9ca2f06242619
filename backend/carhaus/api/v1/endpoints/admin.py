"""
Admin endpoints - featured placement, dealer inquiries, plans and audit.

Every route requires the ADMIN role.
"""

from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from carhaus.api.v1.endpoints.auth import require_admin
from carhaus.api.v1.schemas.admin import ActivityLogPage, ActivityLogResponse
from carhaus.api.v1.schemas.inquiry import InquiryResponse, InquiryStatusFilter, Page, PageMeta
from carhaus.api.v1.schemas.listing import (
    FeatureListingRequest,
    FeaturedListingResponse,
    FeaturedOrderUpdate,
    FeaturedOverview,
    FeaturedSlotSummary,
    FeaturedStateResponse,
)
from carhaus.api.v1.schemas.subscription import (
    PlanDetailsUpdate,
    PlanResponse,
    SubscriptionAssign,
    SubscriptionResponse,
)
from carhaus.core.logging import get_logger
from carhaus.db.postgres.models import SubscriptionPlan, User
from carhaus.db.postgres.session import get_db
from carhaus.services.activity_log_service import ActivityLogService
from carhaus.services.featured_service import FeaturedListingService, get_featured_service
from carhaus.services.inquiry_service import InquiryService, get_inquiry_service
from carhaus.services.subscription_service import SubscriptionService, get_subscription_service

router = APIRouter()
logger = get_logger(__name__)


# =============================================================================
# OpenAPI Response Examples
# =============================================================================

FEATURE_RESPONSES: Dict[Union[int, str], Dict[str, Any]] = {
    400: {
        "description": "A featured cap was reached or the slot is out of range",
        "content": {
            "application/json": {
                "example": {
                    "error": {
                        "code": "ERR_4001",
                        "message": "Maximum of 10 featured listings reached",
                        "details": {"scope": "global", "limit": 10, "current": 10},
                        "request_id": "0b6c...",
                    }
                }
            }
        },
    },
    404: {"description": "Listing not found"},
}


# =============================================================================
# Featured placement
# =============================================================================


@router.post(
    "/listings/{listing_id}/feature",
    response_model=FeaturedStateResponse,
    responses=FEATURE_RESPONSES,
)
async def set_listing_featured(
    listing_id: UUID,
    data: FeatureListingRequest,
    admin: User = Depends(require_admin),
    service: FeaturedListingService = Depends(get_featured_service),
):
    """
    Feature or unfeature a listing.

    Featuring checks the dealer's plan allowance before the global cap and
    assigns the requested slot (splicing if taken) or the next free one.
    """
    return await service.set_featured(
        listing_id,
        data.featured,
        actor_id=admin.id,
        days=data.days,
        featured_order=data.featured_order,
    )


@router.put("/listings/{listing_id}/featured-order", response_model=List[FeaturedStateResponse])
async def reorder_featured_listing(
    listing_id: UUID,
    data: FeaturedOrderUpdate,
    admin: User = Depends(require_admin),
    service: FeaturedListingService = Depends(get_featured_service),
):
    """Move a featured listing to another slot; returns every slot after renumbering."""
    return await service.reorder(listing_id, data.order, actor_id=admin.id)


@router.get("/featured-listings", response_model=FeaturedOverview)
async def get_featured_overview(
    admin: User = Depends(require_admin),
    service: FeaturedListingService = Depends(get_featured_service),
):
    overview = await service.get_admin_overview()
    return FeaturedOverview(
        featured=[FeaturedListingResponse.from_listing(item) for item in overview["featured"]],
        pending_requests=[FeaturedListingResponse.from_listing(item) for item in overview["pending_requests"]],
        slots=FeaturedSlotSummary(**overview["slots"]),
    )


# =============================================================================
# Inquiries
# =============================================================================


@router.get("/dealers/{dealer_id}/inquiries", response_model=Page[InquiryResponse])
async def list_inquiries_for_dealer(
    dealer_id: UUID,
    status: Optional[InquiryStatusFilter] = Query(None),
    skip: int = Query(0, ge=0),
    take: int = Query(20, ge=1, le=100),
    admin: User = Depends(require_admin),
    service: InquiryService = Depends(get_inquiry_service),
):
    """All of a dealer's threads, archived ones included."""
    inquiries, total = await service.list_for_admin(dealer_id, status, skip, take)
    return Page[InquiryResponse](
        data=[InquiryResponse.from_inquiry(inquiry) for inquiry in inquiries],
        meta=PageMeta(total=total, skip=skip, take=take),
    )


@router.get("/inquiries/{inquiry_id}", response_model=InquiryResponse)
async def get_inquiry(
    inquiry_id: UUID,
    admin: User = Depends(require_admin),
    service: InquiryService = Depends(get_inquiry_service),
):
    return InquiryResponse.from_inquiry(await service.get_for_admin(inquiry_id))


# =============================================================================
# Subscriptions and plans
# =============================================================================


@router.post("/subscriptions/assign", response_model=SubscriptionResponse)
async def assign_subscription(
    data: SubscriptionAssign,
    admin: User = Depends(require_admin),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Put a dealer or user on a plan, replacing their current subscription."""
    return await service.upgrade(
        data.plan,
        data.billing_cycle,
        dealer_id=data.dealer_id,
        user_id=data.user_id,
        actor_id=admin.id,
    )


@router.put("/plans/{plan}", response_model=PlanResponse)
async def update_plan(
    plan: SubscriptionPlan,
    data: PlanDetailsUpdate,
    admin: User = Depends(require_admin),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Override plan-table values for subscriptions created from now on."""
    details = await service.update_plan_details(plan, data.overrides, actor_id=admin.id)
    return PlanResponse(plan=plan, **details)


# =============================================================================
# Audit
# =============================================================================


@router.get("/activity-logs", response_model=ActivityLogPage)
async def list_activity_logs(
    entity: Optional[str] = Query(None, max_length=50),
    entity_id: Optional[str] = Query(None, max_length=64),
    skip: int = Query(0, ge=0),
    take: int = Query(50, ge=1, le=200),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    entries, total = await ActivityLogService(db).recent(entity, entity_id, skip, take)
    return ActivityLogPage(
        data=[ActivityLogResponse.from_entry(entry) for entry in entries],
        meta=PageMeta(total=total, skip=skip, take=take),
    )
