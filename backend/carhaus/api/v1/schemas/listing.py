"""
Listing and featured-placement schemas.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from carhaus.api.v1.schemas.inquiry import DealerPreview, primary_photo_url
from carhaus.db.postgres.models import FeaturedRequestStatus, Listing, ListingStatus


class ListingCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    make: str = Field(..., min_length=1, max_length=50)
    model: str = Field(..., min_length=1, max_length=50)
    year: int = Field(..., ge=1900, le=2100)
    price: Decimal = Field(..., ge=0)
    mileage: Optional[int] = Field(None, ge=0)
    body_type: Optional[str] = Field(None, max_length=30)
    city: Optional[str] = Field(None, max_length=100)
    province: Optional[str] = Field(None, max_length=50)
    publish: bool = Field(False, description="Publish immediately instead of saving a draft")


class ListingMediaCreate(BaseModel):
    url: str = Field(..., min_length=1, max_length=500)
    is_primary: bool = False


class ListingMediaResponse(BaseModel):
    id: UUID
    url: str
    is_primary: bool
    sort_order: int

    class Config:
        from_attributes = True


class ListingResponse(BaseModel):
    id: UUID
    dealer_id: Optional[UUID] = None
    title: str
    slug: str
    make: str
    model: str
    year: int
    price: Decimal
    mileage: Optional[int] = None
    body_type: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    status: ListingStatus
    views: int
    inquiries: int
    featured: bool
    featured_until: Optional[datetime] = None
    featured_order: Optional[int] = None
    featured_request_status: FeaturedRequestStatus
    created_at: datetime
    media: List[ListingMediaResponse] = Field(default_factory=list)

    class Config:
        from_attributes = True


class FeaturedListingResponse(BaseModel):
    """Listing card for featured carousels."""

    id: UUID
    title: str
    slug: str
    make: str
    model: str
    year: int
    price: Decimal
    mileage: Optional[int] = None
    city: Optional[str] = None
    province: Optional[str] = None
    status: ListingStatus
    featured_until: Optional[datetime] = None
    featured_order: Optional[int] = None
    featured_request_status: FeaturedRequestStatus
    photo: Optional[str] = None
    dealer: Optional[DealerPreview] = None

    @classmethod
    def from_listing(cls, listing: Listing) -> "FeaturedListingResponse":
        return cls(
            id=listing.id,
            title=listing.title,
            slug=listing.slug,
            make=listing.make,
            model=listing.model,
            year=listing.year,
            price=listing.price,
            mileage=listing.mileage,
            city=listing.city,
            province=listing.province,
            status=listing.status,
            featured_until=listing.featured_until,
            featured_order=listing.featured_order,
            featured_request_status=listing.featured_request_status,
            photo=primary_photo_url(listing),
            dealer=DealerPreview.from_dealer(listing.dealer) if listing.dealer else None,
        )


class FeatureListingRequest(BaseModel):
    """Admin toggle for featured placement."""

    featured: bool
    days: Optional[int] = Field(None, ge=1, le=365, description="Window length; open-ended when omitted")
    featured_order: Optional[int] = Field(None, description="Display slot 0-9; next free slot when omitted")


class FeaturedOrderUpdate(BaseModel):
    order: int = Field(..., description="Target display slot 0-9")


class FeaturedSlotSummary(BaseModel):
    total: int
    limit: int
    available: int


class FeaturedOverview(BaseModel):
    featured: List[FeaturedListingResponse]
    pending_requests: List[FeaturedListingResponse]
    slots: FeaturedSlotSummary


class FeaturedStateResponse(BaseModel):
    """Featured fields of a listing after a change."""

    id: UUID
    featured: bool
    featured_until: Optional[datetime] = None
    featured_order: Optional[int] = None
    featured_request_status: FeaturedRequestStatus

    class Config:
        from_attributes = True
