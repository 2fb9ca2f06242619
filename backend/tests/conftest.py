"""
Pytest configuration and fixtures for CarHaus tests.

Database fixtures run against in-memory SQLite; the models only use
dialect-neutral column types.
"""

import os

# Set environment variables for testing BEFORE any imports
# These need to be set before the modules are imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test_jwt_secret_for_testing_only")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("PAYMENT_WEBHOOK_SECRET", "test_webhook_secret")

from datetime import timedelta
from decimal import Decimal
from typing import Any, AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from carhaus.core.security import create_access_token
from carhaus.db.postgres.models import (
    Base,
    BillingCycle,
    Dealer,
    Listing,
    ListingMedia,
    ListingStatus,
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
    User,
    UserRole,
    utcnow,
)
from carhaus.services.realtime import ConnectionManager
from carhaus.services.subscription_service import LIMIT_FIELDS, PLAN_DETAILS


# =============================================================================
# Realtime test double
# =============================================================================


class FakeSocket:
    """Records frames pushed to it; ``fail=True`` makes every send raise."""

    def __init__(self, fail: bool = False):
        self.sent: list[dict[str, Any]] = []
        self.fail = fail

    async def send_json(self, data: Any, mode: str = "text") -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    def events(self, name: str) -> list[dict[str, Any]]:
        return [frame["data"] for frame in self.sent if frame["event"] == name]


@pytest.fixture
def connections() -> ConnectionManager:
    """A fresh connection registry, isolated from the process-wide one."""
    return ConnectionManager()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def async_engine():
    """Create an async SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    session_factory = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_user(db_session: AsyncSession):
    async def _make_user(role: str = UserRole.USER, **overrides) -> User:
        user = User(
            id=uuid4(),
            email=overrides.pop("email", f"{uuid4().hex[:10]}@example.com"),
            full_name=overrides.pop("full_name", "Test User"),
            role=role,
            is_active=overrides.pop("is_active", True),
            **overrides,
        )
        db_session.add(user)
        await db_session.flush()
        return user

    return _make_user


@pytest.fixture
def make_dealer(db_session: AsyncSession, make_user):
    async def _make_dealer(business_name: str = "Maple Motors", **overrides) -> Dealer:
        owner = await make_user(role=UserRole.DEALER)
        dealer = Dealer(
            id=uuid4(),
            user_id=owner.id,
            business_name=business_name,
            city=overrides.pop("city", "Vancouver"),
            province=overrides.pop("province", "BC"),
            **overrides,
        )
        db_session.add(dealer)
        await db_session.flush()
        return dealer

    return _make_dealer


@pytest.fixture
def make_listing(db_session: AsyncSession):
    async def _make_listing(dealer: Dealer | None = None, owner: User | None = None, **overrides) -> Listing:
        listing_id = uuid4()
        listing = Listing(
            id=listing_id,
            user_id=owner.id if owner else dealer.user_id,
            dealer_id=dealer.id if dealer else None,
            title=overrides.pop("title", "2021 Honda Civic EX"),
            slug=f"listing-{listing_id.hex[:12]}",
            make=overrides.pop("make", "Honda"),
            model=overrides.pop("model", "Civic"),
            year=overrides.pop("year", 2021),
            price=overrides.pop("price", Decimal("24500.00")),
            status=overrides.pop("status", ListingStatus.ACTIVE),
            **overrides,
        )
        db_session.add(listing)
        await db_session.flush()
        return listing

    return _make_listing


@pytest.fixture
def add_photo(db_session: AsyncSession):
    async def _add_photo(listing: Listing, url: str, is_primary: bool = False, sort_order: int = 0) -> ListingMedia:
        media = ListingMedia(listing_id=listing.id, url=url, is_primary=is_primary, sort_order=sort_order)
        db_session.add(media)
        await db_session.flush()
        return media

    return _add_photo


@pytest.fixture
def make_subscription(db_session: AsyncSession):
    async def _make_subscription(
        dealer: Dealer,
        plan: SubscriptionPlan = SubscriptionPlan.STARTER,
        status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
        **limits,
    ) -> Subscription:
        now = utcnow()
        details = PLAN_DETAILS[plan]
        subscription = Subscription(
            id=uuid4(),
            dealer_id=dealer.id,
            plan=plan,
            status=status,
            price=Decimal(str(details["price"])),
            billing_cycle=BillingCycle.MONTHLY,
            start_date=now - timedelta(days=1),
            end_date=limits.pop("end_date", now + timedelta(days=30)),
            **{field: limits.get(field, details[field]) for field in LIMIT_FIELDS},
        )
        db_session.add(subscription)
        await db_session.flush()
        return subscription

    return _make_subscription


# =============================================================================
# Common fixtures
# =============================================================================


@pytest_asyncio.fixture
async def buyer(make_user) -> User:
    return await make_user(full_name="Jamie Buyer", email="jamie@example.com")


@pytest_asyncio.fixture
async def admin_user(make_user) -> User:
    return await make_user(role=UserRole.ADMIN, full_name="Admin User")


@pytest_asyncio.fixture
async def dealer(make_dealer) -> Dealer:
    return await make_dealer()


@pytest_asyncio.fixture
async def listing(make_listing, dealer: Dealer) -> Listing:
    return await make_listing(dealer)


@pytest.fixture
def auth_headers():
    """Build bearer headers for a user."""

    def _auth_headers(user: User) -> dict[str, str]:
        token = create_access_token(subject=str(user.id), additional_claims={"role": str(user.role)})
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture
def make_socket():
    """Factory for recording sockets: ``make_socket()`` or ``make_socket(fail=True)``."""
    return FakeSocket
