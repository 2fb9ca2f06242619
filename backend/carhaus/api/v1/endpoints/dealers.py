"""
Dealer inbox endpoints.

All routes act on the dealer profile of the authenticated user.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from carhaus.api.v1.endpoints.auth import get_current_dealer, get_current_user_from_token
from carhaus.api.v1.schemas.inquiry import (
    InquiryResponse,
    InquiryStatusFilter,
    InquiryStatusUpdate,
    Page,
    PageMeta,
)
from carhaus.api.v1.schemas.listing import FeaturedStateResponse
from carhaus.api.v1.schemas.subscription import LimitsResponse
from carhaus.core.logging import get_logger
from carhaus.db.postgres.models import Dealer, User
from carhaus.services.featured_service import FeaturedListingService, get_featured_service
from carhaus.services.inquiry_service import InquiryService, InquirySide, get_inquiry_service
from carhaus.services.subscription_service import SubscriptionService, get_subscription_service

router = APIRouter()
logger = get_logger(__name__)


@router.get("/me/inquiries", response_model=Page[InquiryResponse])
async def list_dealer_inquiries(
    status: Optional[InquiryStatusFilter] = Query(None, description="NEW, READ, REPLIED, ARCHIVED or all"),
    skip: int = Query(0, ge=0),
    take: int = Query(20, ge=1, le=100),
    dealer: Dealer = Depends(get_current_dealer),
    service: InquiryService = Depends(get_inquiry_service),
):
    """
    Dealer inbox.

    Threads the dealer archived are hidden unless ``status=ARCHIVED``.
    """
    inquiries, total = await service.list_for_dealer(dealer.id, status, skip, take)
    return Page[InquiryResponse](
        data=[InquiryResponse.from_inquiry(inquiry) for inquiry in inquiries],
        meta=PageMeta(total=total, skip=skip, take=take),
    )


@router.get("/me/inquiries/{inquiry_id}", response_model=InquiryResponse)
async def get_dealer_inquiry(
    inquiry_id: UUID,
    dealer: Dealer = Depends(get_current_dealer),
    service: InquiryService = Depends(get_inquiry_service),
):
    inquiry = await service.get_for_dealer(inquiry_id, dealer)
    return InquiryResponse.from_inquiry(inquiry)


@router.put("/me/inquiries/{inquiry_id}/status", response_model=InquiryResponse)
async def update_inquiry_status(
    inquiry_id: UUID,
    data: InquiryStatusUpdate,
    dealer: Dealer = Depends(get_current_dealer),
    current_user: User = Depends(get_current_user_from_token),
    service: InquiryService = Depends(get_inquiry_service),
):
    """
    Change a thread's status and optionally reply.

    ``ARCHIVED`` archives the thread for the dealer only.
    """
    inquiry = await service.update_status(
        inquiry_id,
        dealer,
        data.status,
        reply=data.reply,
        actor_id=current_user.id,
    )
    return InquiryResponse.from_inquiry(inquiry)


@router.put("/me/inquiries/{inquiry_id}/archive", response_model=InquiryResponse)
async def archive_dealer_inquiry(
    inquiry_id: UUID,
    dealer: Dealer = Depends(get_current_dealer),
    service: InquiryService = Depends(get_inquiry_service),
):
    inquiry = await service.archive(inquiry_id, InquirySide.DEALER, dealer)
    return InquiryResponse.from_inquiry(inquiry)


@router.put("/me/inquiries/{inquiry_id}/read", response_model=InquiryResponse)
async def mark_dealer_inquiry_read(
    inquiry_id: UUID,
    dealer: Dealer = Depends(get_current_dealer),
    service: InquiryService = Depends(get_inquiry_service),
):
    inquiry = await service.mark_read(inquiry_id, InquirySide.DEALER, dealer)
    return InquiryResponse.from_inquiry(inquiry)


@router.post("/me/listings/{listing_id}/feature-request", response_model=FeaturedStateResponse)
async def request_featured_placement(
    listing_id: UUID,
    dealer: Dealer = Depends(get_current_dealer),
    service: FeaturedListingService = Depends(get_featured_service),
):
    """Queue a listing for admin review of featured placement."""
    return await service.request_featured(listing_id, dealer)


@router.get("/me/limits", response_model=LimitsResponse)
async def get_dealer_limits(
    dealer: Dealer = Depends(get_current_dealer),
    service: SubscriptionService = Depends(get_subscription_service),
):
    limits = await service.resolve_limits(dealer.id)
    return LimitsResponse(**limits.to_dict())
