"""
Subscription and plan-limit evaluation.

Limits are copied onto the subscription row when it is created, so a later
edit of the plan table never changes what an existing subscriber gets.
Dealers without an active subscription are held to the FREE defaults.
A limit of ``-1`` means unlimited.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from dateutil.relativedelta import relativedelta
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from carhaus.core.exceptions import (
    ConflictException,
    ErrorCode,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from carhaus.core.logging import get_logger
from carhaus.core.metrics import track_subscription_change
from carhaus.db.postgres.models import (
    BillingCycle,
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
    utcnow,
)
from carhaus.db.postgres.repositories import SubscriptionRepository, SystemSettingRepository
from carhaus.db.postgres.session import get_db
from carhaus.services.activity_log_service import ActivityLogService

logger = get_logger(__name__)

UNLIMITED = -1

YEARLY_PRICE_MULTIPLIER = 10

PLAN_DETAILS: dict[SubscriptionPlan, dict[str, Any]] = {
    SubscriptionPlan.FREE: {
        "name": "Free",
        "price": 0,
        "max_listings": 3,
        "max_photos_per_listing": 5,
        "featured_listings": 0,
        "xml_import_enabled": False,
        "analytics_enabled": False,
        "priority_support": False,
        "description": "Perfect for trying out the platform",
    },
    SubscriptionPlan.STARTER: {
        "name": "Starter",
        "price": 49.99,
        "max_listings": 25,
        "max_photos_per_listing": 15,
        "featured_listings": 2,
        "xml_import_enabled": False,
        "analytics_enabled": True,
        "priority_support": False,
        "description": "Great for small dealerships",
    },
    SubscriptionPlan.PROFESSIONAL: {
        "name": "Professional",
        "price": 149.99,
        "max_listings": 100,
        "max_photos_per_listing": 30,
        "featured_listings": 10,
        "xml_import_enabled": True,
        "analytics_enabled": True,
        "priority_support": True,
        "description": "For growing dealerships",
    },
    SubscriptionPlan.ENTERPRISE: {
        "name": "Enterprise",
        "price": 399.99,
        "max_listings": UNLIMITED,
        "max_photos_per_listing": 50,
        "featured_listings": 50,
        "xml_import_enabled": True,
        "analytics_enabled": True,
        "priority_support": True,
        "description": "For large dealerships and dealer groups",
    },
}

LIMIT_FIELDS = (
    "max_listings",
    "max_photos_per_listing",
    "featured_listings",
    "xml_import_enabled",
    "analytics_enabled",
    "priority_support",
)

OVERRIDABLE_FIELDS = frozenset(("name", "price", "description", *LIMIT_FIELDS))


@dataclass(frozen=True)
class PlanLimits:
    plan: str
    max_listings: int
    max_photos_per_listing: int
    featured_listings: int
    xml_import_enabled: bool
    analytics_enabled: bool
    priority_support: bool
    has_subscription: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


FREE_LIMITS = PlanLimits(
    plan=SubscriptionPlan.FREE,
    **{field: PLAN_DETAILS[SubscriptionPlan.FREE][field] for field in LIMIT_FIELDS},
)


def is_within_limit(limit: int, current: int) -> bool:
    """True when one more item fits under ``limit`` given ``current`` items."""
    return limit == UNLIMITED or current < limit


def plan_setting_key(plan: SubscriptionPlan | str) -> str:
    return f"plan_{plan}_details"


class SubscriptionService:
    """Plan catalogue, subscription lifecycle and limit resolution."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repository = SubscriptionRepository(db)
        self.settings_repository = SystemSettingRepository(db)
        self.audit = ActivityLogService(db)

    # -------------------------------------------------------------------------
    # Plan catalogue
    # -------------------------------------------------------------------------

    async def get_plan_details(self, plan: SubscriptionPlan) -> dict[str, Any]:
        """Static plan table entry with any admin override merged on top."""
        details = dict(PLAN_DETAILS[plan])
        override = await self.settings_repository.get(plan_setting_key(plan))
        if override is not None:
            details.update(override.value)
        return details

    async def get_plans(self) -> list[dict[str, Any]]:
        return [
            {"plan": plan.value, **await self.get_plan_details(plan)}
            for plan in SubscriptionPlan
        ]

    async def update_plan_details(
        self,
        plan: SubscriptionPlan,
        overrides: dict[str, Any],
        actor_id: UUID | None = None,
    ) -> dict[str, Any]:
        """
        Store an admin override for a plan.

        Only future subscriptions see the new values.
        """
        unknown = set(overrides) - OVERRIDABLE_FIELDS
        if unknown:
            raise ValidationException(
                f"Unknown plan fields: {', '.join(sorted(unknown))}",
                field="overrides",
            )

        key = plan_setting_key(plan)
        existing = await self.settings_repository.get(key)
        old_value = dict(existing.value) if existing is not None else {}
        merged = {**old_value, **overrides}
        await self.settings_repository.upsert(key, merged)
        await self.audit.record(
            action="UPDATE_PLAN",
            entity="SystemSetting",
            entity_id=key,
            user_id=actor_id,
            old_values=old_value,
            new_values=merged,
        )
        logger.info(f"Plan {plan} details updated", extra={"plan": str(plan), "fields": sorted(overrides)})
        return await self.get_plan_details(plan)

    # -------------------------------------------------------------------------
    # Limits
    # -------------------------------------------------------------------------

    async def resolve_limits(self, dealer_id: UUID, now: datetime | None = None) -> PlanLimits:
        """Limits of the dealer's active subscription, or the FREE defaults."""
        subscription = await self.repository.get_active(now or utcnow(), dealer_id=dealer_id)
        if subscription is None:
            return FREE_LIMITS
        return PlanLimits(
            plan=subscription.plan,
            has_subscription=True,
            **{field: getattr(subscription, field) for field in LIMIT_FIELDS},
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def get_active(self, dealer_id: UUID) -> Subscription | None:
        return await self.repository.get_active(utcnow(), dealer_id=dealer_id)

    async def get_history(self, dealer_id: UUID) -> list[Subscription]:
        return await self.repository.history(dealer_id)

    async def _open(
        self,
        plan: SubscriptionPlan,
        billing_cycle: BillingCycle,
        now: datetime,
        dealer_id: UUID | None,
        user_id: UUID | None,
    ) -> Subscription:
        details = await self.get_plan_details(plan)

        price = Decimal(str(details["price"]))
        if billing_cycle == BillingCycle.YEARLY:
            price = price * YEARLY_PRICE_MULTIPLIER
            end_date = now + relativedelta(years=1)
        else:
            end_date = now + relativedelta(months=1)

        subscription = await self.repository.create(
            {
                "dealer_id": dealer_id,
                "user_id": user_id,
                "plan": plan,
                "status": SubscriptionStatus.ACTIVE,
                "price": price,
                "billing_cycle": billing_cycle,
                "start_date": now,
                "end_date": end_date,
                **{field: details[field] for field in LIMIT_FIELDS},
            }
        )
        track_subscription_change("open", plan)
        return subscription

    async def create(
        self,
        dealer_id: UUID,
        plan: SubscriptionPlan,
        billing_cycle: BillingCycle = BillingCycle.MONTHLY,
    ) -> Subscription:
        """Self-service start. Rejected while another subscription is active."""
        now = utcnow()
        if await self.repository.get_active(now, dealer_id=dealer_id) is not None:
            raise ConflictException(
                "Already has an active subscription",
                code=ErrorCode.SUBSCRIPTION_ACTIVE,
                details={"dealer_id": str(dealer_id)},
            )
        subscription = await self._open(plan, billing_cycle, now, dealer_id, None)
        logger.info("Subscription created", extra={"dealer_id": str(dealer_id), "plan": str(plan)})
        return subscription

    async def upgrade(
        self,
        plan: SubscriptionPlan,
        billing_cycle: BillingCycle = BillingCycle.MONTHLY,
        dealer_id: UUID | None = None,
        user_id: UUID | None = None,
        actor_id: UUID | None = None,
    ) -> Subscription:
        """
        Replace the owner's subscription with a fresh one on ``plan``.

        The most recent subscription is cancelled unless it already is;
        the new one snapshots the plan's current limits. Used by payment
        completion and by the admin override.
        """
        if dealer_id is None and user_id is None:
            raise ValidationException("A dealer or user is required", field="dealer_id")

        now = utcnow()
        previous = await self.repository.get_latest(dealer_id=dealer_id, user_id=user_id)
        if previous is not None and previous.status != SubscriptionStatus.CANCELLED:
            previous.status = SubscriptionStatus.CANCELLED
            previous.cancelled_at = now
            await self.db.flush()
            track_subscription_change("cancel", previous.plan)

        subscription = await self._open(plan, billing_cycle, now, dealer_id, user_id)
        await self.audit.record(
            action="UPGRADE_SUBSCRIPTION",
            entity="Subscription",
            entity_id=subscription.id,
            user_id=actor_id,
            old_values={"plan": previous.plan, "subscription_id": previous.id} if previous else None,
            new_values={"plan": subscription.plan, "billing_cycle": subscription.billing_cycle},
        )
        logger.info(
            "Subscription upgraded",
            extra={
                "dealer_id": str(dealer_id) if dealer_id else None,
                "user_id": str(user_id) if user_id else None,
                "plan": str(plan),
            },
        )
        return subscription

    async def cancel(self, subscription_id: UUID, dealer_id: UUID) -> Subscription:
        subscription = await self.repository.get(subscription_id)
        if subscription is None:
            raise NotFoundException(
                "Subscription not found",
                resource_type="subscription",
                resource_id=str(subscription_id),
            )
        if subscription.dealer_id != dealer_id:
            raise ForbiddenException("Not authorized to cancel this subscription")
        if subscription.status == SubscriptionStatus.CANCELLED:
            raise ValidationException("Subscription is already cancelled", field="status")

        subscription.status = SubscriptionStatus.CANCELLED
        subscription.cancelled_at = utcnow()
        await self.db.flush()
        track_subscription_change("cancel", subscription.plan)
        logger.info("Subscription cancelled", extra={"subscription_id": str(subscription_id)})
        return subscription


def get_subscription_service(db: AsyncSession = Depends(get_db)) -> SubscriptionService:
    """FastAPI dependency returning a request-scoped SubscriptionService."""
    return SubscriptionService(db)
