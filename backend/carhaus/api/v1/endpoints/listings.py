"""
Listing endpoints - public featured feed, inquiries and listing management.

Provides endpoints to:
- Submit an inquiry about a listing (guests and signed-in buyers)
- Read the public featured carousel
- Create listings and attach photos within plan limits
"""

from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from carhaus.api.v1.endpoints.auth import get_current_user_from_token, get_optional_current_user
from carhaus.api.v1.schemas.inquiry import InquiryCreate, InquiryResponse, InquirySubmitResponse
from carhaus.api.v1.schemas.listing import (
    FeaturedListingResponse,
    ListingCreate,
    ListingMediaCreate,
    ListingResponse,
)
from carhaus.core.logging import get_logger
from carhaus.db.postgres.models import User
from carhaus.db.postgres.repositories import DealerRepository
from carhaus.db.postgres.session import get_db
from carhaus.services.featured_service import (
    GLOBAL_FEATURED_LIMIT,
    FeaturedListingService,
    get_featured_service,
)
from carhaus.services.inquiry_service import InquiryService, get_inquiry_service
from carhaus.services.listing_service import ListingService, get_listing_service

router = APIRouter()
logger = get_logger(__name__)


# =============================================================================
# OpenAPI Response Examples
# =============================================================================

INQUIRY_RESPONSES: Dict[Union[int, str], Dict[str, Any]] = {
    201: {
        "description": "Inquiry recorded (new thread or appended to the open one)",
        "content": {
            "application/json": {
                "example": {
                    "success": True,
                    "message": "Inquiry sent successfully",
                    "inquiry_id": "a3c1f0de-8f61-4a4e-9d7b-3b2f6f1c0e55",
                    "listing_id": "6f1c2d3e-4b5a-4c6d-8e7f-9a0b1c2d3e4f",
                }
            }
        },
    },
    404: {
        "description": "Listing or dealer not found",
        "content": {
            "application/json": {
                "example": {
                    "error": {
                        "code": "ERR_1002",
                        "message": "Listing not found",
                        "details": {"resource_type": "listing"},
                        "request_id": "0b6c...",
                    }
                }
            }
        },
    },
}


# =============================================================================
# Inquiries
# =============================================================================


@router.post(
    "/inquiry",
    response_model=InquirySubmitResponse,
    status_code=status.HTTP_201_CREATED,
    responses=INQUIRY_RESPONSES,
    summary="Send an inquiry about a listing",
)
async def submit_inquiry(
    data: InquiryCreate,
    current_user: Optional[User] = Depends(get_optional_current_user),
    service: InquiryService = Depends(get_inquiry_service),
):
    """
    Send a message to the dealer of a listing.

    Signed-in buyers who already have an open thread with the dealer about
    this listing get their message appended to that thread. Guests always
    write into the guest thread for the listing.
    """
    result = await service.submit(data, user_id=current_user.id if current_user else None)
    return InquirySubmitResponse(
        success=result["success"],
        message=result["message"],
        inquiry_id=result["inquiry_id"],
        listing_id=result["listing_id"],
        inquiry=InquiryResponse.from_inquiry(result["inquiry"]),
    )


# =============================================================================
# Featured
# =============================================================================


@router.get("/featured", response_model=List[FeaturedListingResponse])
async def get_featured_listings(
    limit: int = Query(GLOBAL_FEATURED_LIMIT, ge=1, le=GLOBAL_FEATURED_LIMIT),
    service: FeaturedListingService = Depends(get_featured_service),
):
    """Active featured listings in display order."""
    listings = await service.get_featured_listings(limit)
    return [FeaturedListingResponse.from_listing(listing) for listing in listings]


# =============================================================================
# Listing management
# =============================================================================


@router.post("", response_model=ListingResponse, status_code=status.HTTP_201_CREATED)
async def create_listing(
    data: ListingCreate,
    current_user: User = Depends(get_current_user_from_token),
    db: AsyncSession = Depends(get_db),
    service: ListingService = Depends(get_listing_service),
):
    """Create a listing; dealer staff create it under their dealer profile."""
    dealer = await DealerRepository(db).get_by_user(current_user.id)
    return await service.create(current_user, dealer, data.model_dump())


@router.get("/{listing_id}", response_model=ListingResponse)
async def get_listing(
    listing_id: UUID,
    service: ListingService = Depends(get_listing_service),
):
    return await service.get(listing_id)


@router.post("/{listing_id}/media", response_model=ListingResponse, status_code=status.HTTP_201_CREATED)
async def add_listing_media(
    listing_id: UUID,
    data: ListingMediaCreate,
    current_user: User = Depends(get_current_user_from_token),
    service: ListingService = Depends(get_listing_service),
):
    """Attach a photo to a listing the caller owns."""
    return await service.add_media(listing_id, current_user, data.url, data.is_primary)
