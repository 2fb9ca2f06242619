"""
Featured-listing placement.

At most ``GLOBAL_FEATURED_LIMIT`` listings are featured at any instant,
and each dealer is further capped by the ``featured_listings`` allowance
of their plan. Featured listings occupy display slots
``0..MAX_FEATURED_ORDER``; reordering splices a listing into the slot
sequence and renumbers the rest.

Caps are checked with a read-then-write, so two concurrent requests for
the last slot can both succeed.
"""

from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from carhaus.core.config import settings
from carhaus.core.exceptions import (
    FeaturedLimitExceededException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from carhaus.core.logging import get_logger
from carhaus.core.metrics import track_featured_rejection, track_featured_transition
from carhaus.db.postgres.models import Dealer, FeaturedRequestStatus, Listing, utcnow
from carhaus.db.postgres.repositories import ListingRepository
from carhaus.db.postgres.session import get_db
from carhaus.services.activity_log_service import ActivityLogService
from carhaus.services.subscription_service import UNLIMITED, SubscriptionService

logger = get_logger(__name__)

GLOBAL_FEATURED_LIMIT = settings.FEATURED_GLOBAL_LIMIT
MAX_FEATURED_ORDER = GLOBAL_FEATURED_LIMIT - 1


def _snapshot(listing: Listing) -> dict[str, Any]:
    return {
        "featured": listing.featured,
        "featured_until": listing.featured_until,
        "featured_order": listing.featured_order,
        "featured_request_status": listing.featured_request_status,
    }


def _check_order(order: int, field: str) -> None:
    if not 0 <= order <= MAX_FEATURED_ORDER:
        raise ValidationException(
            f"Featured order must be between 0 and {MAX_FEATURED_ORDER}",
            field=field,
            details={"min": 0, "max": MAX_FEATURED_ORDER, "value": order},
        )


def splice(sequence: list[Listing], listing: Listing, position: int) -> list[Listing]:
    """
    Move ``listing`` to ``position`` in ``sequence`` and renumber from 0.

    Returns the listings whose ``featured_order`` changed.
    """
    ordered = [item for item in sequence if item.id != listing.id]
    ordered.insert(position, listing)
    changed = []
    for index, item in enumerate(ordered):
        if item.featured_order != index:
            item.featured_order = index
            changed.append(item)
    return changed


def claim_slot(others: list[Listing], position: int) -> list[Listing]:
    """
    Free ``position`` for a newly placed listing by shifting its neighbours.

    The contiguous run of slots starting at ``position`` moves up by one.
    When that run already ends at ``MAX_FEATURED_ORDER`` the run ending at
    ``position`` moves down into the nearest free slot below instead.
    Listings outside the run keep their slots. Returns the listings that moved.
    """
    by_order = {item.featured_order: item for item in others if item.featured_order is not None}
    if position not in by_order:
        return []

    top = position
    while top + 1 in by_order:
        top += 1
    if top < MAX_FEATURED_ORDER:
        run, step = range(top, position - 1, -1), 1
    else:
        bottom = position
        while bottom - 1 in by_order:
            bottom -= 1
        if bottom == 0:
            raise ValidationException("No free featured slot available", field="featured_order")
        run, step = range(bottom, position + 1), -1

    changed = []
    for order in run:
        item = by_order[order]
        item.featured_order = order + step
        changed.append(item)
    return changed


def next_free_order(occupied: list[int]) -> int:
    """One past the highest slot, or the lowest free slot when that overflows."""
    candidate = max(occupied) + 1 if occupied else 0
    if candidate <= MAX_FEATURED_ORDER:
        return candidate
    taken = set(occupied)
    return next(slot for slot in range(GLOBAL_FEATURED_LIMIT) if slot not in taken)


class FeaturedListingService:
    """Admin featuring, slot ordering and the public featured feed."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.listings = ListingRepository(db)
        self.subscriptions = SubscriptionService(db)
        self.audit = ActivityLogService(db)

    async def _get_listing(self, listing_id: UUID) -> Listing:
        listing = await self.listings.get(listing_id)
        if listing is None:
            raise NotFoundException("Listing not found", resource_type="listing", resource_id=str(listing_id))
        return listing

    async def _check_caps(self, listing: Listing, now: datetime) -> None:
        if listing.dealer_id is not None:
            limits = await self.subscriptions.resolve_limits(listing.dealer_id, now)
            cap = limits.featured_listings
            if cap != UNLIMITED:
                current = await self.listings.count_featured(
                    now, exclude_id=listing.id, dealer_id=listing.dealer_id
                )
                if current >= cap:
                    track_featured_rejection("dealer")
                    raise FeaturedLimitExceededException(scope="dealer", limit=cap, current=current)

        current = await self.listings.count_featured(now, exclude_id=listing.id)
        if current >= GLOBAL_FEATURED_LIMIT:
            track_featured_rejection("global")
            raise FeaturedLimitExceededException(scope="global", limit=GLOBAL_FEATURED_LIMIT, current=current)

    async def set_featured(
        self,
        listing_id: UUID,
        featured: bool,
        actor_id: UUID | None,
        days: int | None = None,
        featured_order: int | None = None,
    ) -> Listing:
        """
        Turn featured placement on or off for a listing.

        Turning it on checks the dealer cap, then the global cap, opens the
        window (``days`` from now, or open-ended) and assigns a slot: the
        explicit ``featured_order`` (shifting the listings around it)
        or the next free slot. A listing already holding a slot keeps it
        unless an explicit order is given.
        """
        if featured and featured_order is not None:
            _check_order(featured_order, "featured_order")

        listing = await self._get_listing(listing_id)
        now = utcnow()
        old_values = _snapshot(listing)

        if featured:
            await self._check_caps(listing, now)

            slotted = await self.listings.ordered_featured(now)
            others = [item for item in slotted if item.id != listing.id]
            holds_slot = len(others) != len(slotted)

            listing.featured = True
            listing.featured_until = now + timedelta(days=days) if days else None
            listing.featured_request_status = FeaturedRequestStatus.APPROVED

            if featured_order is None:
                if not holds_slot or listing.featured_order is None:
                    listing.featured_order = next_free_order([item.featured_order for item in others])
            else:
                claim_slot(others, featured_order)
                listing.featured_order = featured_order
            action = "feature"
        else:
            listing.featured = False
            listing.featured_until = None
            listing.featured_order = None
            listing.featured_request_status = FeaturedRequestStatus.NONE
            action = "unfeature"

        await self.db.flush()
        await self.audit.record(
            action="FEATURE_LISTING" if featured else "UNFEATURE_LISTING",
            entity="Listing",
            entity_id=listing.id,
            user_id=actor_id,
            old_values=old_values,
            new_values=_snapshot(listing),
            metadata={"days": days} if days else None,
        )
        track_featured_transition(action)
        logger.info(
            f"Listing {action}d",
            extra={
                "listing_id": str(listing.id),
                "featured_order": listing.featured_order,
                "actor_id": str(actor_id) if actor_id else None,
            },
        )
        return listing

    async def reorder(self, listing_id: UUID, new_order: int, actor_id: UUID | None) -> list[Listing]:
        """
        Move a featured listing to ``new_order`` and renumber all slots densely.

        Returns the full slot sequence after the move.
        """
        _check_order(new_order, "order")
        listing = await self._get_listing(listing_id)
        now = utcnow()

        slotted = await self.listings.ordered_featured(now)
        if not any(item.id == listing.id for item in slotted):
            raise ValidationException("Listing is not currently featured", field="listing_id")

        old_position = listing.featured_order
        changed = splice(slotted, listing, new_order)
        await self.db.flush()

        await self.audit.record(
            action="REORDER_FEATURED",
            entity="Listing",
            entity_id=listing.id,
            user_id=actor_id,
            old_values={"position": old_position + 1},
            new_values={"position": listing.featured_order + 1},
            metadata={"renumbered": [str(item.id) for item in changed]},
        )
        track_featured_transition("reorder")
        logger.info(
            "Featured listing reordered",
            extra={
                "listing_id": str(listing.id),
                "from": old_position,
                "to": listing.featured_order,
                "changed": len(changed),
            },
        )
        return sorted(slotted, key=lambda item: item.featured_order)

    async def get_featured_listings(self, limit: int = GLOBAL_FEATURED_LIMIT) -> list[Listing]:
        return await self.listings.public_featured(utcnow(), limit)

    async def get_admin_overview(self) -> dict[str, Any]:
        now = utcnow()
        featured = await self.listings.admin_featured(now)
        pending = await self.listings.pending_feature_requests()
        return {
            "featured": featured,
            "pending_requests": pending,
            "slots": {
                "total": len(featured),
                "limit": GLOBAL_FEATURED_LIMIT,
                "available": max(GLOBAL_FEATURED_LIMIT - len(featured), 0),
            },
        }

    async def request_featured(self, listing_id: UUID, dealer: Dealer) -> Listing:
        """Dealer asks for featured placement; an admin approves it with ``set_featured``."""
        listing = await self._get_listing(listing_id)
        if listing.dealer_id != dealer.id:
            raise ForbiddenException("Not authorized to request featuring for this listing")

        if await self.listings.is_currently_featured(listing.id, utcnow()):
            raise ValidationException("Listing is already featured", field="listing_id")
        if listing.featured_request_status == FeaturedRequestStatus.PENDING:
            return listing

        old_values = _snapshot(listing)
        listing.featured_request_status = FeaturedRequestStatus.PENDING
        await self.db.flush()
        await self.audit.record(
            action="REQUEST_FEATURED",
            entity="Listing",
            entity_id=listing.id,
            user_id=dealer.user_id,
            old_values=old_values,
            new_values=_snapshot(listing),
        )
        logger.info("Featured placement requested", extra={"listing_id": str(listing.id)})
        return listing


def get_featured_service(db: AsyncSession = Depends(get_db)) -> FeaturedListingService:
    """FastAPI dependency returning a request-scoped FeaturedListingService."""
    return FeaturedListingService(db)
