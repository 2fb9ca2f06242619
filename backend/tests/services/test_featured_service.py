"""
Tests for featured placement: caps, slot assignment, reordering and the
public feed.
"""

from datetime import timedelta
from types import SimpleNamespace
from uuid import uuid4

import pytest

from carhaus.core.exceptions import (
    ErrorCode,
    FeaturedLimitExceededException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from carhaus.db.postgres.models import FeaturedRequestStatus, ListingStatus, SubscriptionPlan, utcnow
from carhaus.services.activity_log_service import ActivityLogService
from carhaus.services.featured_service import (
    GLOBAL_FEATURED_LIMIT,
    FeaturedListingService,
    claim_slot,
    next_free_order,
    splice,
)


@pytest.fixture
def service(db_session) -> FeaturedListingService:
    return FeaturedListingService(db_session)


@pytest.fixture
def private_listings(make_listing, make_user):
    """Listings without a dealer, so only the global cap applies."""

    async def _private_listings(count: int, **overrides):
        owner = await make_user()
        return [await make_listing(owner=owner, title=f"Private car {i}", **overrides) for i in range(count)]

    return _private_listings


def slot(item_id, order):
    return SimpleNamespace(id=item_id, featured_order=order)


class TestSlotHelpers:
    def test_next_free_order_on_empty(self):
        assert next_free_order([]) == 0

    def test_next_free_order_appends(self):
        assert next_free_order([0, 1, 4]) == 5

    def test_next_free_order_fills_gap_when_top_taken(self):
        assert next_free_order([0, 2, 9]) == 1

    def test_splice_moves_and_renumbers(self):
        a, b, c = slot("a", 0), slot("b", 1), slot("c", 2)
        changed = splice([a, b, c], c, 0)

        assert [c.featured_order, a.featured_order, b.featured_order] == [0, 1, 2]
        assert {item.id for item in changed} == {"a", "b", "c"}

    def test_splice_compacts_sparse_sequence(self):
        a, b, new = slot("a", 0), slot("b", 5), slot("new", None)
        splice([a, b], new, 1)

        assert (a.featured_order, new.featured_order, b.featured_order) == (0, 1, 2)

    def test_claim_slot_shifts_contiguous_run_up(self):
        a, b, c = slot("a", 0), slot("b", 5), slot("c", 6)
        changed = claim_slot([a, b, c], 5)

        assert (a.featured_order, b.featured_order, c.featured_order) == (0, 6, 7)
        assert {item.id for item in changed} == {"b", "c"}

    def test_claim_slot_free_position_moves_nothing(self):
        a = slot("a", 0)

        assert claim_slot([a], 3) == []
        assert a.featured_order == 0

    def test_claim_slot_shifts_down_when_run_reaches_top(self):
        a, b, c = slot("a", 2), slot("b", 8), slot("c", 9)
        changed = claim_slot([a, b, c], 8)

        assert (a.featured_order, b.featured_order, c.featured_order) == (2, 7, 9)
        assert [item.id for item in changed] == ["b"]


class TestGlobalCap:
    @pytest.mark.asyncio
    async def test_cap_rejects_next_listing(self, service, private_listings, admin_user):
        listings = await private_listings(GLOBAL_FEATURED_LIMIT + 1)
        for listing in listings[:-1]:
            await service.set_featured(listing.id, True, admin_user.id)

        with pytest.raises(FeaturedLimitExceededException) as exc_info:
            await service.set_featured(listings[-1].id, True, admin_user.id)

        assert exc_info.value.message == f"Maximum of {GLOBAL_FEATURED_LIMIT} featured listings reached"
        assert exc_info.value.details["scope"] == "global"
        assert exc_info.value.code == ErrorCode.FEATURED_LIMIT_REACHED
        assert listings[-1].featured is False

    @pytest.mark.asyncio
    async def test_expired_windows_do_not_count(self, service, private_listings, admin_user):
        expired = await private_listings(
            GLOBAL_FEATURED_LIMIT,
            featured=True,
            featured_until=utcnow() - timedelta(days=1),
        )
        fresh = await private_listings(1)

        listing = await service.set_featured(fresh[0].id, True, admin_user.id)

        assert listing.featured is True
        assert len(expired) == GLOBAL_FEATURED_LIMIT

    @pytest.mark.asyncio
    async def test_refeaturing_does_not_count_itself(self, service, private_listings, admin_user):
        listings = await private_listings(GLOBAL_FEATURED_LIMIT)
        for listing in listings:
            await service.set_featured(listing.id, True, admin_user.id)

        again = await service.set_featured(listings[3].id, True, admin_user.id, days=7)
        assert again.featured_order == 3


class TestDealerCap:
    @pytest.mark.asyncio
    async def test_free_dealer_cannot_be_featured(self, service, listing, admin_user):
        with pytest.raises(FeaturedLimitExceededException) as exc_info:
            await service.set_featured(listing.id, True, admin_user.id)

        assert exc_info.value.details["scope"] == "dealer"
        assert exc_info.value.details["limit"] == 0
        assert exc_info.value.details["current"] == 0

    @pytest.mark.asyncio
    async def test_starter_plan_allows_two(self, service, dealer, make_listing, make_subscription, admin_user):
        await make_subscription(dealer, SubscriptionPlan.STARTER)
        listings = [await make_listing(dealer, title=f"Car {i}") for i in range(3)]

        await service.set_featured(listings[0].id, True, admin_user.id)
        await service.set_featured(listings[1].id, True, admin_user.id)
        with pytest.raises(FeaturedLimitExceededException) as exc_info:
            await service.set_featured(listings[2].id, True, admin_user.id)

        assert exc_info.value.details["scope"] == "dealer"
        assert exc_info.value.details["limit"] == 2

    @pytest.mark.asyncio
    async def test_dealer_cap_checked_before_global(
        self, service, dealer, make_listing, make_subscription, private_listings, admin_user
    ):
        await make_subscription(dealer, SubscriptionPlan.STARTER, featured_listings=1)
        own = [await make_listing(dealer, title=f"Car {i}") for i in range(2)]
        await service.set_featured(own[0].id, True, admin_user.id)
        for other in await private_listings(GLOBAL_FEATURED_LIMIT - 1):
            await service.set_featured(other.id, True, admin_user.id)

        with pytest.raises(FeaturedLimitExceededException) as exc_info:
            await service.set_featured(own[1].id, True, admin_user.id)

        assert exc_info.value.details["scope"] == "dealer"

    @pytest.mark.asyncio
    async def test_unlimited_plan_skips_dealer_cap(self, service, dealer, make_listing, make_subscription, admin_user):
        await make_subscription(dealer, SubscriptionPlan.ENTERPRISE, featured_listings=-1)
        listings = [await make_listing(dealer, title=f"Car {i}") for i in range(3)]

        for listing in listings:
            await service.set_featured(listing.id, True, admin_user.id)

        assert all(listing.featured for listing in listings)


class TestSlots:
    @pytest.mark.asyncio
    async def test_slots_assigned_in_sequence(self, service, private_listings, admin_user):
        listings = await private_listings(3)
        for listing in listings:
            await service.set_featured(listing.id, True, admin_user.id)

        assert [listing.featured_order for listing in listings] == [0, 1, 2]
        assert all(listing.featured_request_status == FeaturedRequestStatus.APPROVED for listing in listings)

    @pytest.mark.asyncio
    async def test_explicit_order_splices_on_collision(self, service, private_listings, admin_user):
        a, b, c, d = await private_listings(4)
        for listing in (a, b, c):
            await service.set_featured(listing.id, True, admin_user.id)

        await service.set_featured(d.id, True, admin_user.id, featured_order=1)

        assert (a.featured_order, d.featured_order, b.featured_order, c.featured_order) == (0, 1, 2, 3)

    @pytest.mark.asyncio
    async def test_explicit_order_is_kept_across_gaps(self, service, private_listings, admin_user):
        a, c, d = await private_listings(3)
        await service.set_featured(a.id, True, admin_user.id)
        await service.set_featured(c.id, True, admin_user.id, featured_order=5)

        await service.set_featured(d.id, True, admin_user.id, featured_order=5)

        assert (a.featured_order, d.featured_order, c.featured_order) == (0, 5, 6)

    @pytest.mark.asyncio
    async def test_explicit_free_order_is_used_as_is(self, service, private_listings, admin_user):
        a, b = await private_listings(2)
        await service.set_featured(a.id, True, admin_user.id)
        await service.set_featured(b.id, True, admin_user.id, featured_order=5)

        assert (a.featured_order, b.featured_order) == (0, 5)

    @pytest.mark.asyncio
    async def test_out_of_range_order_rejected(self, service, private_listings, admin_user):
        (listing,) = await private_listings(1)
        with pytest.raises(ValidationException):
            await service.set_featured(listing.id, True, admin_user.id, featured_order=GLOBAL_FEATURED_LIMIT)

    @pytest.mark.asyncio
    async def test_days_sets_window(self, service, private_listings, admin_user):
        (listing,) = await private_listings(1)
        before = utcnow()
        await service.set_featured(listing.id, True, admin_user.id, days=7)

        assert listing.featured_until >= before + timedelta(days=7)

    @pytest.mark.asyncio
    async def test_unfeature_clears_fields_without_compacting(self, service, private_listings, admin_user):
        a, b, c = await private_listings(3)
        for listing in (a, b, c):
            await service.set_featured(listing.id, True, admin_user.id)

        await service.set_featured(b.id, False, admin_user.id)

        assert b.featured is False
        assert b.featured_order is None
        assert b.featured_until is None
        assert b.featured_request_status == FeaturedRequestStatus.NONE
        assert (a.featured_order, c.featured_order) == (0, 2)

    @pytest.mark.asyncio
    async def test_unknown_listing(self, service, admin_user):
        with pytest.raises(NotFoundException):
            await service.set_featured(uuid4(), True, admin_user.id)


class TestReorder:
    @pytest.mark.asyncio
    async def test_move_to_front(self, service, db_session, private_listings, admin_user):
        a, b, c = await private_listings(3)
        for listing in (a, b, c):
            await service.set_featured(listing.id, True, admin_user.id)

        slots = await service.reorder(c.id, 0, admin_user.id)

        assert [item.id for item in slots] == [c.id, a.id, b.id]
        assert [item.featured_order for item in slots] == [0, 1, 2]

        entries, _ = await ActivityLogService(db_session).recent(entity="Listing", entity_id=str(c.id))
        reorder = next(entry for entry in entries if entry.action == "REORDER_FEATURED")
        assert reorder.old_values == {"position": 3}
        assert reorder.new_values == {"position": 1}

    @pytest.mark.asyncio
    async def test_move_beyond_end_lands_last(self, service, private_listings, admin_user):
        a, b, c = await private_listings(3)
        for listing in (a, b, c):
            await service.set_featured(listing.id, True, admin_user.id)

        slots = await service.reorder(a.id, 9, admin_user.id)

        assert [item.id for item in slots] == [b.id, c.id, a.id]
        assert a.featured_order == 2

    @pytest.mark.asyncio
    async def test_range_checked_first(self, service, admin_user):
        with pytest.raises(ValidationException):
            await service.reorder(uuid4(), -1, admin_user.id)

    @pytest.mark.asyncio
    async def test_unknown_listing(self, service, admin_user):
        with pytest.raises(NotFoundException):
            await service.reorder(uuid4(), 0, admin_user.id)

    @pytest.mark.asyncio
    async def test_not_featured(self, service, private_listings, admin_user):
        (listing,) = await private_listings(1)
        with pytest.raises(ValidationException) as exc_info:
            await service.reorder(listing.id, 0, admin_user.id)
        assert exc_info.value.message == "Listing is not currently featured"


class TestFeeds:
    @pytest.mark.asyncio
    async def test_public_feed_order_and_filters(self, service, private_listings, add_photo, admin_user):
        a, b, draft = await private_listings(3)
        draft.status = ListingStatus.DRAFT
        (expired,) = await private_listings(1, featured=True, featured_until=utcnow() - timedelta(hours=1))
        (unslotted,) = await private_listings(1, featured=True)
        await add_photo(b, "https://cdn.example.com/b.jpg", is_primary=True)

        for listing in (a, b, draft):
            await service.set_featured(listing.id, True, admin_user.id)
        await service.reorder(b.id, 0, admin_user.id)

        feed = await service.get_featured_listings()

        assert [item.id for item in feed] == [b.id, a.id, unslotted.id]
        assert expired.id not in {item.id for item in feed}
        assert feed[0].media[0].url == "https://cdn.example.com/b.jpg"

    @pytest.mark.asyncio
    async def test_public_feed_limit(self, service, private_listings, admin_user):
        listings = await private_listings(4)
        for listing in listings:
            await service.set_featured(listing.id, True, admin_user.id)

        assert len(await service.get_featured_listings(2)) == 2

    @pytest.mark.asyncio
    async def test_admin_overview(self, service, private_listings, listing, dealer, admin_user):
        featured = await private_listings(2)
        for item in featured:
            await service.set_featured(item.id, True, admin_user.id)
        await service.request_featured(listing.id, dealer)

        overview = await service.get_admin_overview()

        assert {item.id for item in overview["featured"]} == {item.id for item in featured}
        assert [item.id for item in overview["pending_requests"]] == [listing.id]
        assert overview["slots"] == {
            "total": 2,
            "limit": GLOBAL_FEATURED_LIMIT,
            "available": GLOBAL_FEATURED_LIMIT - 2,
        }


class TestFeatureRequests:
    @pytest.mark.asyncio
    async def test_request_sets_pending(self, service, listing, dealer):
        result = await service.request_featured(listing.id, dealer)
        assert result.featured_request_status == FeaturedRequestStatus.PENDING

    @pytest.mark.asyncio
    async def test_request_for_other_dealers_listing(self, service, listing, make_dealer):
        rival = await make_dealer("Rival Autos")
        with pytest.raises(ForbiddenException):
            await service.request_featured(listing.id, rival)

    @pytest.mark.asyncio
    async def test_request_for_featured_listing(
        self, service, listing, dealer, make_subscription, admin_user
    ):
        await make_subscription(dealer, SubscriptionPlan.PROFESSIONAL)
        await service.set_featured(listing.id, True, admin_user.id)

        with pytest.raises(ValidationException):
            await service.request_featured(listing.id, dealer)
