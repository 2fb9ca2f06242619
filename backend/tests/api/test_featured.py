"""
API tests for featured placement.

Tests:
- POST /api/v1/admin/listings/{id}/feature - Feature and unfeature
- PUT /api/v1/admin/listings/{id}/featured-order - Reorder slots
- GET /api/v1/admin/featured-listings - Admin overview
- GET /api/v1/listings/featured - Public feed
- POST /api/v1/dealers/me/listings/{id}/feature-request - Dealer request
"""

import pytest
from httpx import AsyncClient

from carhaus.db.postgres.models import SubscriptionPlan, User


@pytest.fixture
def admin_headers(auth_headers, admin_user):
    return auth_headers(admin_user)


@pytest.fixture
def private_listings(make_listing, make_user):
    async def _private_listings(count: int):
        owner = await make_user()
        return [await make_listing(owner=owner, title=f"Private car {i}") for i in range(count)]

    return _private_listings


async def feature(client, listing, headers, **body):
    return await client.post(
        f"/api/v1/admin/listings/{listing.id}/feature",
        json={"featured": True, **body},
        headers=headers,
    )


class TestAdminFeature:
    @pytest.mark.asyncio
    async def test_feature_assigns_slot(self, async_client: AsyncClient, private_listings, admin_headers):
        first, second = await private_listings(2)

        await feature(async_client, first, admin_headers)
        response = await feature(async_client, second, admin_headers, days=14)

        assert response.status_code == 200
        data = response.json()
        assert data["featured"] is True
        assert data["featured_order"] == 1
        assert data["featured_until"] is not None
        assert data["featured_request_status"] == "APPROVED"

    @pytest.mark.asyncio
    async def test_global_cap(self, async_client: AsyncClient, private_listings, admin_headers):
        listings = await private_listings(11)
        for listing in listings[:10]:
            assert (await feature(async_client, listing, admin_headers)).status_code == 200

        response = await feature(async_client, listings[10], admin_headers)

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "ERR_4001"
        assert error["message"] == "Maximum of 10 featured listings reached"

    @pytest.mark.asyncio
    async def test_dealer_cap(self, async_client: AsyncClient, listing, admin_headers):
        response = await feature(async_client, listing, admin_headers)

        assert response.status_code == 400
        assert response.json()["error"]["details"]["scope"] == "dealer"

    @pytest.mark.asyncio
    async def test_unfeature(self, async_client: AsyncClient, private_listings, admin_headers):
        (listing,) = await private_listings(1)
        await feature(async_client, listing, admin_headers)

        response = await async_client.post(
            f"/api/v1/admin/listings/{listing.id}/feature",
            json={"featured": False},
            headers=admin_headers,
        )

        assert response.json()["featured"] is False
        assert response.json()["featured_order"] is None

    @pytest.mark.asyncio
    async def test_requires_admin(self, async_client: AsyncClient, listing, buyer, auth_headers):
        response = await feature(async_client, listing, auth_headers(buyer))
        assert response.status_code == 403


class TestReorder:
    @pytest.mark.asyncio
    async def test_reorder_renumbers(self, async_client: AsyncClient, private_listings, admin_headers):
        a, b, c = await private_listings(3)
        for listing in (a, b, c):
            await feature(async_client, listing, admin_headers)

        response = await async_client.put(
            f"/api/v1/admin/listings/{c.id}/featured-order",
            json={"order": 0},
            headers=admin_headers,
        )

        assert response.status_code == 200
        slots = [(item["id"], item["featured_order"]) for item in response.json()]
        assert slots == [(str(c.id), 0), (str(a.id), 1), (str(b.id), 2)]

    @pytest.mark.asyncio
    async def test_out_of_range(self, async_client: AsyncClient, private_listings, admin_headers):
        (listing,) = await private_listings(1)
        await feature(async_client, listing, admin_headers)

        response = await async_client.put(
            f"/api/v1/admin/listings/{listing.id}/featured-order",
            json={"order": 10},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"]["details"]["max"] == 9


class TestFeeds:
    @pytest.mark.asyncio
    async def test_public_feed(self, async_client: AsyncClient, private_listings, add_photo, admin_headers):
        a, b = await private_listings(2)
        await add_photo(a, "https://cdn.example.com/a.jpg", is_primary=True)
        for listing in (a, b):
            await feature(async_client, listing, admin_headers)

        response = await async_client.get("/api/v1/listings/featured")

        assert response.status_code == 200
        data = response.json()
        assert [item["id"] for item in data] == [str(a.id), str(b.id)]
        assert data[0]["photo"] == "https://cdn.example.com/a.jpg"
        assert data[1]["photo"] is None

    @pytest.mark.asyncio
    async def test_feed_limit_bounds(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/listings/featured", params={"limit": 11})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_overview_with_pending_request(
        self, async_client: AsyncClient, listing, dealer, db_session, auth_headers, admin_headers
    ):
        owner = await db_session.get(User, dealer.user_id)
        requested = await async_client.post(
            f"/api/v1/dealers/me/listings/{listing.id}/feature-request",
            headers=auth_headers(owner),
        )
        assert requested.json()["featured_request_status"] == "PENDING"

        response = await async_client.get("/api/v1/admin/featured-listings", headers=admin_headers)

        data = response.json()
        assert [item["id"] for item in data["pending_requests"]] == [str(listing.id)]
        assert data["slots"] == {"total": 0, "limit": 10, "available": 10}


class TestApprovalFlow:
    @pytest.mark.asyncio
    async def test_dealer_on_paid_plan_gets_featured(
        self, async_client: AsyncClient, listing, dealer, make_subscription, admin_headers
    ):
        await make_subscription(dealer, SubscriptionPlan.STARTER)

        response = await feature(async_client, listing, admin_headers, featured_order=0)

        assert response.status_code == 200
        assert response.json()["featured_order"] == 0

        logs = await async_client.get(
            "/api/v1/admin/activity-logs",
            params={"entity": "Listing", "entity_id": str(listing.id)},
            headers=admin_headers,
        )
        entry = logs.json()["data"][0]
        assert entry["action"] == "FEATURE_LISTING"
        assert entry["new_values"]["featured"] is True
