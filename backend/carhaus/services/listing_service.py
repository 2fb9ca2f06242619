"""Listing creation and photo uploads, bounded by the dealer's plan."""

import re
import secrets
from uuid import UUID

from fastapi import Depends
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from carhaus.core.exceptions import (
    ErrorCode,
    ForbiddenException,
    NotFoundException,
    PlanLimitExceededException,
)
from carhaus.core.logging import get_logger
from carhaus.db.postgres.models import Dealer, Listing, ListingMedia, ListingStatus, User, utcnow
from carhaus.db.postgres.repositories import ListingRepository
from carhaus.db.postgres.session import get_db
from carhaus.services.subscription_service import SubscriptionService, is_within_limit

logger = get_logger(__name__)

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def slugify(title: str) -> str:
    base = _SLUG_STRIP.sub("-", title.lower()).strip("-") or "listing"
    return f"{base[:200]}-{secrets.token_hex(3)}"


class ListingService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.listings = ListingRepository(db)
        self.subscriptions = SubscriptionService(db)

    async def get(self, listing_id: UUID) -> Listing:
        listing = await self.listings.get_with_media(listing_id)
        if listing is None:
            raise NotFoundException("Listing not found", resource_type="listing", resource_id=str(listing_id))
        return listing

    async def create(self, owner: User, dealer: Dealer | None, data: dict) -> Listing:
        """
        Create a listing for ``owner``.

        Dealer listings count against the plan's ``max_listings``; private
        sellers are not capped.
        """
        if dealer is not None:
            limits = await self.subscriptions.resolve_limits(dealer.id)
            current = await self.listings.count_for_dealer(dealer.id)
            if not is_within_limit(limits.max_listings, current):
                raise PlanLimitExceededException(
                    f"Listing limit of {limits.max_listings} reached for the {limits.plan} plan",
                    limit=limits.max_listings,
                )

        publish = data.pop("publish", False)
        listing = await self.listings.create(
            {
                **data,
                "user_id": owner.id,
                "dealer_id": dealer.id if dealer else None,
                "slug": slugify(data["title"]),
                "status": ListingStatus.ACTIVE if publish else ListingStatus.DRAFT,
                "published_at": utcnow() if publish else None,
            }
        )
        logger.info(
            "Listing created",
            extra={"listing_id": str(listing.id), "dealer_id": str(dealer.id) if dealer else None},
        )
        return await self.listings.get_with_media(listing.id, refresh=True)

    async def add_media(self, listing_id: UUID, owner: User, url: str, is_primary: bool = False) -> Listing:
        """Attach a photo; a dealer listing is held to the plan's ``max_photos_per_listing``."""
        listing = await self.get(listing_id)
        if listing.user_id != owner.id:
            raise ForbiddenException("Not authorized to modify this listing")

        current = await self.listings.count_media(listing.id)
        if listing.dealer_id is not None:
            limits = await self.subscriptions.resolve_limits(listing.dealer_id)
            if not is_within_limit(limits.max_photos_per_listing, current):
                raise PlanLimitExceededException(
                    f"Photo limit of {limits.max_photos_per_listing} per listing reached",
                    limit=limits.max_photos_per_listing,
                    code=ErrorCode.PHOTO_LIMIT_REACHED,
                )

        make_primary = is_primary or current == 0
        if make_primary:
            await self.db.execute(
                update(ListingMedia)
                .where(ListingMedia.listing_id == listing.id)
                .values(is_primary=False)
                .execution_options(synchronize_session=False)
            )
        self.db.add(
            ListingMedia(listing_id=listing.id, url=url, is_primary=make_primary, sort_order=current)
        )
        await self.db.flush()
        return await self.listings.get_with_media(listing.id, refresh=True)


def get_listing_service(db: AsyncSession = Depends(get_db)) -> ListingService:
    """FastAPI dependency returning a request-scoped ListingService."""
    return ListingService(db)
