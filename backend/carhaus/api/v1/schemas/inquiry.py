"""
Inquiry schemas.

Thread responses embed a small preview of the listing (with its primary
photo) and of the dealer, so inbox views render without extra requests.
"""

from datetime import datetime
from decimal import Decimal
from typing import Generic, List, Literal, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from carhaus.db.postgres.models import Dealer, Inquiry, InquiryStatus, Listing

T = TypeVar("T")

InquiryStatusFilter = Literal["NEW", "READ", "REPLIED", "ARCHIVED", "all"]


class PageMeta(BaseModel):
    total: int
    skip: int
    take: int


class Page(BaseModel, Generic[T]):
    """Generic skip/take page."""

    data: List[T]
    meta: PageMeta


# =============================================================================
# Previews
# =============================================================================


def primary_photo_url(listing: Listing) -> Optional[str]:
    """URL of the primary photo, else the first photo by sort order."""
    media = list(listing.media)
    if not media:
        return None
    primary = next((item for item in media if item.is_primary), None)
    return (primary or min(media, key=lambda item: item.sort_order)).url


class ListingPreview(BaseModel):
    id: UUID
    title: str
    slug: str
    make: str
    model: str
    year: int
    price: Decimal
    photo: Optional[str] = None

    @classmethod
    def from_listing(cls, listing: Listing) -> "ListingPreview":
        return cls(
            id=listing.id,
            title=listing.title,
            slug=listing.slug,
            make=listing.make,
            model=listing.model,
            year=listing.year,
            price=listing.price,
            photo=primary_photo_url(listing),
        )


class DealerPreview(BaseModel):
    id: UUID
    business_name: str
    logo: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_dealer(cls, dealer: Dealer) -> "DealerPreview":
        return cls.model_validate(dealer)


# =============================================================================
# Requests
# =============================================================================


class InquiryCreate(BaseModel):
    """Buyer's message about a listing."""

    listing_id: UUID = Field(..., description="Listing the inquiry is about")
    dealer_id: Optional[UUID] = Field(None, description="Dealer; defaults to the listing's dealer")
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=30)
    message: str = Field(..., min_length=1, max_length=5000)

    class Config:
        json_schema_extra = {
            "example": {
                "listing_id": "6f1c2d3e-4b5a-4c6d-8e7f-9a0b1c2d3e4f",
                "name": "Jamie Buyer",
                "email": "jamie@example.com",
                "phone": "+1 604 555 0100",
                "message": "Is this vehicle still available?",
            }
        }


class InquiryStatusUpdate(BaseModel):
    """Dealer status change, optionally with a reply."""

    status: InquiryStatus
    reply: Optional[str] = Field(None, min_length=1, max_length=5000)


class InquiryMessage(BaseModel):
    message: str = Field(..., min_length=1, max_length=5000)


# =============================================================================
# Responses
# =============================================================================


class InquiryResponse(BaseModel):
    """A conversation thread."""

    id: UUID
    listing_id: UUID
    dealer_id: UUID
    user_id: Optional[UUID] = None
    name: str
    email: str
    phone: Optional[str] = None
    message: str
    reply: Optional[str] = None
    status: InquiryStatus
    is_read: bool
    read_at: Optional[datetime] = None
    replied_at: Optional[datetime] = None
    user_archived: bool
    dealer_archived: bool
    user_read_at: Optional[datetime] = None
    dealer_read_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    listing: Optional[ListingPreview] = None
    dealer: Optional[DealerPreview] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_inquiry(cls, inquiry: Inquiry) -> "InquiryResponse":
        """Build from a thread loaded with its listing, photos and dealer."""
        fields = {
            name: getattr(inquiry, name)
            for name in cls.model_fields
            if name not in ("listing", "dealer")
        }
        return cls(
            **fields,
            listing=ListingPreview.from_listing(inquiry.listing),
            dealer=DealerPreview.from_dealer(inquiry.dealer),
        )


class InquirySubmitResponse(BaseModel):
    success: bool = True
    message: str
    inquiry_id: UUID
    listing_id: UUID
    inquiry: InquiryResponse
