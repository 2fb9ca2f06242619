"""
SQLAlchemy models for the marketplace database.

Column types are the dialect-neutral ones (``Uuid``, ``JSON``) so the same
metadata runs on PostgreSQL in production and SQLite in tests.
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


# =============================================================================
# Enumerations
# =============================================================================


class UserRole(StrEnum):
    USER = "USER"
    DEALER = "DEALER"
    ADMIN = "ADMIN"


class ListingStatus(StrEnum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    ACTIVE = "ACTIVE"
    REJECTED = "REJECTED"
    SOLD = "SOLD"


class FeaturedRequestStatus(StrEnum):
    NONE = "NONE"
    PENDING = "PENDING"
    APPROVED = "APPROVED"


class InquiryStatus(StrEnum):
    NEW = "NEW"
    READ = "READ"
    REPLIED = "REPLIED"
    # Legacy value; archiving is tracked per side with the *_archived flags
    ARCHIVED = "ARCHIVED"


class NotificationType(StrEnum):
    INQUIRY = "INQUIRY"
    INQUIRY_REPLY = "INQUIRY_REPLY"
    LISTING = "LISTING"
    SUBSCRIPTION = "SUBSCRIPTION"
    PAYMENT = "PAYMENT"
    SYSTEM = "SYSTEM"


class SubscriptionPlan(StrEnum):
    FREE = "FREE"
    STARTER = "STARTER"
    PROFESSIONAL = "PROFESSIONAL"
    ENTERPRISE = "ENTERPRISE"


class SubscriptionStatus(StrEnum):
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"
    PAST_DUE = "PAST_DUE"
    EXPIRED = "EXPIRED"


class BillingCycle(StrEnum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class PaymentStatus(StrEnum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


# =============================================================================
# Accounts
# =============================================================================


class User(Base):
    """Marketplace account; buyers, dealer staff and admins."""

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(100))
    phone: Mapped[str | None] = mapped_column(String(30))
    role: Mapped[str] = mapped_column(String(20), default=UserRole.USER, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    dealer = relationship("Dealer", back_populates="user", uselist=False)


class Dealer(Base):
    """Dealer profile owned by exactly one user."""

    __tablename__ = "dealers"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    business_name: Mapped[str] = mapped_column(String(200), nullable=False)
    logo: Mapped[str | None] = mapped_column(String(500))
    city: Mapped[str | None] = mapped_column(String(100))
    province: Mapped[str | None] = mapped_column(String(50))
    contact_email: Mapped[str | None] = mapped_column(String(255))
    contact_phone: Mapped[str | None] = mapped_column(String(30))
    verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="dealer")


# =============================================================================
# Listings
# =============================================================================


class Listing(Base):
    """Vehicle listing with its featured-placement state."""

    __tablename__ = "listings"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    dealer_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("dealers.id", ondelete="SET NULL"), index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(250), unique=True, nullable=False)
    make: Mapped[str] = mapped_column(String(50), nullable=False)
    model: Mapped[str] = mapped_column(String(50), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    mileage: Mapped[int | None] = mapped_column(Integer)
    body_type: Mapped[str | None] = mapped_column(String(30))
    city: Mapped[str | None] = mapped_column(String(100))
    province: Mapped[str | None] = mapped_column(String(50))
    status: Mapped[str] = mapped_column(String(20), default=ListingStatus.DRAFT, nullable=False)

    views: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    inquiries: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    featured: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    featured_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    featured_order: Mapped[int | None] = mapped_column(Integer)
    featured_request_status: Mapped[str] = mapped_column(
        String(20), default=FeaturedRequestStatus.NONE, nullable=False
    )

    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    media = relationship(
        "ListingMedia",
        back_populates="listing",
        cascade="all, delete-orphan",
        order_by="ListingMedia.sort_order",
    )
    dealer = relationship("Dealer")

    __table_args__ = (
        Index("ix_listings_featured", "featured", "featured_order"),
        Index("ix_listings_status_created", "status", "created_at"),
    )


class ListingMedia(Base):
    """Photo attached to a listing."""

    __tablename__ = "listing_media"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    listing_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("listings.id", ondelete="CASCADE"), index=True, nullable=False
    )
    url: Mapped[str] = mapped_column(String(500), nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    listing = relationship("Listing", back_populates="media")


# =============================================================================
# Inquiries
# =============================================================================


class Inquiry(Base):
    """
    Buyer-dealer conversation thread about one listing.

    ``message`` and ``reply`` are append-only logs; each later entry is
    preceded by a ``--- <timestamp> ---`` separator line.
    """

    __tablename__ = "inquiries"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    listing_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False
    )
    dealer_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("dealers.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[UUID | None] = mapped_column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(30))
    message: Mapped[str] = mapped_column(Text, nullable=False)
    reply: Mapped[str | None] = mapped_column(Text)

    status: Mapped[str] = mapped_column(String(20), default=InquiryStatus.NEW, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    replied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    replied_by: Mapped[UUID | None] = mapped_column(Uuid)

    user_archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    dealer_archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    user_read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    dealer_read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    listing = relationship("Listing")
    dealer = relationship("Dealer")

    __table_args__ = (
        Index("ix_inquiries_thread", "listing_id", "dealer_id", "user_id"),
        Index("ix_inquiries_dealer_created", "dealer_id", "created_at"),
        Index("ix_inquiries_user_created", "user_id", "created_at"),
    )


# =============================================================================
# Notifications
# =============================================================================


class Notification(Base):
    """Persisted in-app notification."""

    __tablename__ = "notifications"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("ix_notifications_user_read", "user_id", "is_read"),)


# =============================================================================
# Billing
# =============================================================================


class Subscription(Base):
    """
    Plan subscription with its limits snapshotted at creation.

    Later edits to the plan table never change an existing row.
    """

    __tablename__ = "subscriptions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    dealer_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("dealers.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    plan: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=SubscriptionStatus.ACTIVE, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    billing_cycle: Mapped[str] = mapped_column(String(10), default=BillingCycle.MONTHLY, nullable=False)

    max_listings: Mapped[int] = mapped_column(Integer, nullable=False)
    max_photos_per_listing: Mapped[int] = mapped_column(Integer, nullable=False)
    featured_listings: Mapped[int] = mapped_column(Integer, nullable=False)
    xml_import_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    analytics_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    priority_support: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Payment(Base):
    """Payment record for a subscription purchase."""

    __tablename__ = "payments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    dealer_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("dealers.id", ondelete="CASCADE"), index=True, nullable=False
    )
    subscription_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("subscriptions.id", ondelete="SET NULL")
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="CAD", nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=PaymentStatus.PENDING, nullable=False)
    invoice_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(String(255))
    payment_method: Mapped[str | None] = mapped_column(String(50))
    transaction_id: Mapped[str | None] = mapped_column(String(255), index=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


# =============================================================================
# Administration
# =============================================================================


class ActivityLog(Base):
    """Audit trail entry."""

    __tablename__ = "activity_logs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID | None] = mapped_column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    entity: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(64))
    old_values: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    new_values: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    # "metadata" is reserved on declarative classes
    extra: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON)
    ip_address: Mapped[str | None] = mapped_column(String(45))
    user_agent: Mapped[str | None] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("ix_activity_logs_entity", "entity", "entity_id"),)


class SystemSetting(Base):
    """Key/value store for admin-editable configuration."""

    __tablename__ = "system_settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
