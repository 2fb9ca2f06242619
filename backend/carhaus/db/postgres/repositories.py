"""
Repository implementations for database operations.

Services talk to the database only through these classes. Time-window
predicates (subscription expiry, featured windows) are evaluated in SQL
against a caller-supplied ``now`` so every check in a unit of work uses
the same instant.
"""

from datetime import datetime
from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.sql.elements import ColumnElement

from carhaus.db.postgres.models import (
    ActivityLog,
    Base,
    Dealer,
    FeaturedRequestStatus,
    Inquiry,
    InquiryStatus,
    Listing,
    ListingMedia,
    ListingStatus,
    Notification,
    Payment,
    Subscription,
    SubscriptionStatus,
    SystemSetting,
    User,
)

# Generic type for models
ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository with common CRUD operations.

    Attributes:
        model: The SQLAlchemy model class.
        db: The async database session.
    """

    def __init__(self, model: type[ModelType], db: AsyncSession) -> None:
        self.model = model
        self.db = db

    async def get(self, id: UUID | str) -> ModelType | None:
        """Get a single record by primary key."""
        return await self.db.get(self.model, id)

    async def create(self, obj_in: dict[str, Any]) -> ModelType:
        """Create a new record."""
        db_obj = self.model(**obj_in)
        self.db.add(db_obj)
        await self.db.flush()
        await self.db.refresh(db_obj)
        return db_obj

    async def update(self, db_obj: ModelType, obj_in: dict[str, Any]) -> ModelType:
        """Apply field changes to a loaded record."""
        for key, value in obj_in.items():
            setattr(db_obj, key, value)
        await self.db.flush()
        return db_obj

    async def delete(self, db_obj: ModelType) -> None:
        await self.db.delete(db_obj)
        await self.db.flush()


class UserRepository(BaseRepository[User]):
    def __init__(self, db: AsyncSession) -> None:
        super().__init__(User, db)


class DealerRepository(BaseRepository[Dealer]):
    def __init__(self, db: AsyncSession) -> None:
        super().__init__(Dealer, db)

    async def get_by_user(self, user_id: UUID) -> Dealer | None:
        result = await self.db.execute(select(Dealer).where(Dealer.user_id == user_id))
        return result.scalar_one_or_none()


# =============================================================================
# Listings
# =============================================================================


def currently_featured(now: datetime) -> ColumnElement[bool]:
    """Featured flag set and the window open (no end date or end date ahead)."""
    return and_(
        Listing.featured.is_(True),
        or_(Listing.featured_until.is_(None), Listing.featured_until > now),
    )


class ListingRepository(BaseRepository[Listing]):
    """Listing queries, including the featured-slot views."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(Listing, db)

    async def get_with_media(self, listing_id: UUID, refresh: bool = False) -> Listing | None:
        query = select(Listing).options(selectinload(Listing.media)).where(Listing.id == listing_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def increment_inquiries(self, listing_id: UUID) -> None:
        """Bump the inquiry counter in a single UPDATE."""
        await self.db.execute(
            update(Listing)
            .where(Listing.id == listing_id)
            .values(inquiries=Listing.inquiries + 1)
            .execution_options(synchronize_session="fetch")
        )

    async def count_for_dealer(self, dealer_id: UUID) -> int:
        result = await self.db.execute(select(func.count(Listing.id)).where(Listing.dealer_id == dealer_id))
        return result.scalar_one()

    async def count_media(self, listing_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(ListingMedia.id)).where(ListingMedia.listing_id == listing_id)
        )
        return result.scalar_one()

    async def count_featured(
        self,
        now: datetime,
        exclude_id: UUID | None = None,
        dealer_id: UUID | None = None,
    ) -> int:
        """Count currently-featured listings, optionally per dealer and excluding one listing."""
        query = select(func.count(Listing.id)).where(currently_featured(now))
        if exclude_id is not None:
            query = query.where(Listing.id != exclude_id)
        if dealer_id is not None:
            query = query.where(Listing.dealer_id == dealer_id)
        result = await self.db.execute(query)
        return result.scalar_one()

    async def is_currently_featured(self, listing_id: UUID, now: datetime) -> bool:
        result = await self.db.execute(
            select(Listing.id).where(Listing.id == listing_id, currently_featured(now))
        )
        return result.first() is not None

    async def ordered_featured(self, now: datetime) -> list[Listing]:
        """Currently-featured listings holding a slot, by slot."""
        result = await self.db.execute(
            select(Listing)
            .where(currently_featured(now), Listing.featured_order.is_not(None))
            .order_by(Listing.featured_order.asc(), Listing.created_at.asc())
        )
        return list(result.scalars().all())

    async def public_featured(self, now: datetime, limit: int) -> list[Listing]:
        """Active, currently-featured listings: slot ascending (unslotted last), then newest."""
        result = await self.db.execute(
            select(Listing)
            .options(selectinload(Listing.media), selectinload(Listing.dealer))
            .where(currently_featured(now), Listing.status == ListingStatus.ACTIVE)
            .order_by(
                Listing.featured_order.is_(None),
                Listing.featured_order.asc(),
                Listing.created_at.desc(),
            )
            .limit(limit)
        )
        return list(result.scalars().all())

    async def admin_featured(self, now: datetime) -> list[Listing]:
        result = await self.db.execute(
            select(Listing)
            .options(selectinload(Listing.media), selectinload(Listing.dealer))
            .where(currently_featured(now))
            .order_by(
                Listing.featured_order.is_(None),
                Listing.featured_order.asc(),
                Listing.created_at.desc(),
            )
        )
        return list(result.scalars().all())

    async def pending_feature_requests(self) -> list[Listing]:
        result = await self.db.execute(
            select(Listing)
            .options(selectinload(Listing.media), selectinload(Listing.dealer))
            .where(Listing.featured_request_status == FeaturedRequestStatus.PENDING)
            .order_by(Listing.updated_at.asc())
        )
        return list(result.scalars().all())


# =============================================================================
# Inquiries
# =============================================================================


class InquiryRepository(BaseRepository[Inquiry]):
    """Inquiry thread queries."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(Inquiry, db)

    @staticmethod
    def _with_previews():
        return (
            selectinload(Inquiry.listing).selectinload(Listing.media),
            selectinload(Inquiry.dealer),
        )

    async def get_with_previews(self, inquiry_id: UUID) -> Inquiry | None:
        """Load a thread with its listing (and photos) and dealer, refreshing any cached copy."""
        result = await self.db.execute(
            select(Inquiry)
            .options(*self._with_previews())
            .where(Inquiry.id == inquiry_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_open_thread(
        self,
        listing_id: UUID,
        dealer_id: UUID,
        user_id: UUID | None,
    ) -> Inquiry | None:
        """
        Most recent thread for the (listing, dealer, buyer) key that can
        still receive messages.

        Guest threads (no user) only match other guest threads.
        """
        user_clause = Inquiry.user_id.is_(None) if user_id is None else Inquiry.user_id == user_id
        result = await self.db.execute(
            select(Inquiry)
            .where(
                Inquiry.listing_id == listing_id,
                Inquiry.dealer_id == dealer_id,
                user_clause,
                Inquiry.status != InquiryStatus.ARCHIVED,
                Inquiry.user_archived.is_(False),
            )
            .order_by(Inquiry.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_for_owner(
        self,
        owner_clause: ColumnElement[bool],
        archived_column,
        status_filter: str | None,
        skip: int,
        take: int,
    ) -> tuple[list[Inquiry], int]:
        """
        Page through one side's threads.

        ``archived_column`` is the side's archive flag. ``ARCHIVED`` selects
        only that side's archived threads; ``all``/None and every other
        status exclude them. Without an archive column (admin view) only
        the status filter applies.
        """
        filters = [owner_clause]
        if archived_column is None:
            if status_filter and status_filter != "all":
                filters.append(Inquiry.status == status_filter)
        elif status_filter == InquiryStatus.ARCHIVED:
            filters.append(archived_column.is_(True))
        else:
            filters.append(archived_column.is_(False))
            if status_filter and status_filter != "all":
                filters.append(Inquiry.status == status_filter)

        total = (await self.db.execute(select(func.count(Inquiry.id)).where(*filters))).scalar_one()
        result = await self.db.execute(
            select(Inquiry)
            .options(*self._with_previews())
            .where(*filters)
            .order_by(Inquiry.created_at.desc())
            .offset(skip)
            .limit(take)
        )
        return list(result.scalars().all()), total


# =============================================================================
# Notifications
# =============================================================================


class NotificationRepository(BaseRepository[Notification]):
    def __init__(self, db: AsyncSession) -> None:
        super().__init__(Notification, db)

    async def page_for_user(self, user_id: UUID, skip: int, limit: int) -> tuple[list[Notification], int]:
        total = (
            await self.db.execute(select(func.count(Notification.id)).where(Notification.user_id == user_id))
        ).scalar_one()
        result = await self.db.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def unread_count(self, user_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id, Notification.is_read.is_(False)
            )
        )
        return result.scalar_one()

    async def mark_all_read(self, user_id: UUID, now: datetime) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def delete_all(self, user_id: UUID) -> int:
        result = await self.db.execute(
            delete(Notification)
            .where(Notification.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0


# =============================================================================
# Billing
# =============================================================================


class SubscriptionRepository(BaseRepository[Subscription]):
    def __init__(self, db: AsyncSession) -> None:
        super().__init__(Subscription, db)

    @staticmethod
    def _owner_clause(dealer_id: UUID | None, user_id: UUID | None) -> ColumnElement[bool]:
        if dealer_id is not None:
            return Subscription.dealer_id == dealer_id
        return Subscription.user_id == user_id

    async def get_active(
        self,
        now: datetime,
        dealer_id: UUID | None = None,
        user_id: UUID | None = None,
    ) -> Subscription | None:
        """Latest ACTIVE subscription whose end date is still ahead."""
        result = await self.db.execute(
            select(Subscription)
            .where(
                self._owner_clause(dealer_id, user_id),
                Subscription.status == SubscriptionStatus.ACTIVE,
                Subscription.end_date > now,
            )
            .order_by(Subscription.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_latest(
        self,
        dealer_id: UUID | None = None,
        user_id: UUID | None = None,
    ) -> Subscription | None:
        result = await self.db.execute(
            select(Subscription)
            .where(self._owner_clause(dealer_id, user_id))
            .order_by(Subscription.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def history(self, dealer_id: UUID) -> list[Subscription]:
        result = await self.db.execute(
            select(Subscription)
            .where(Subscription.dealer_id == dealer_id)
            .order_by(Subscription.created_at.desc())
        )
        return list(result.scalars().all())


class PaymentRepository(BaseRepository[Payment]):
    def __init__(self, db: AsyncSession) -> None:
        super().__init__(Payment, db)

    async def get_by_transaction(self, transaction_id: str) -> Payment | None:
        result = await self.db.execute(select(Payment).where(Payment.transaction_id == transaction_id))
        return result.scalar_one_or_none()

    async def history(self, dealer_id: UUID) -> list[Payment]:
        result = await self.db.execute(
            select(Payment).where(Payment.dealer_id == dealer_id).order_by(Payment.created_at.desc())
        )
        return list(result.scalars().all())


# =============================================================================
# Administration
# =============================================================================


class ActivityLogRepository(BaseRepository[ActivityLog]):
    def __init__(self, db: AsyncSession) -> None:
        super().__init__(ActivityLog, db)

    async def recent(
        self,
        entity: str | None = None,
        entity_id: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[ActivityLog], int]:
        filters = []
        if entity:
            filters.append(ActivityLog.entity == entity)
        if entity_id:
            filters.append(ActivityLog.entity_id == entity_id)
        total = (await self.db.execute(select(func.count(ActivityLog.id)).where(*filters))).scalar_one()
        result = await self.db.execute(
            select(ActivityLog)
            .where(*filters)
            .order_by(ActivityLog.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total


class SystemSettingRepository(BaseRepository[SystemSetting]):
    def __init__(self, db: AsyncSession) -> None:
        super().__init__(SystemSetting, db)

    async def upsert(self, key: str, value: dict[str, Any]) -> SystemSetting:
        setting = await self.get(key)
        if setting is None:
            return await self.create({"key": key, "value": value})
        setting.value = value
        await self.db.flush()
        return setting
