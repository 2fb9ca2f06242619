"""
Subscription schemas.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from carhaus.db.postgres.models import BillingCycle, SubscriptionPlan, SubscriptionStatus


class PlanResponse(BaseModel):
    plan: SubscriptionPlan
    name: str
    price: float
    max_listings: int = Field(..., description="-1 means unlimited")
    max_photos_per_listing: int
    featured_listings: int
    xml_import_enabled: bool
    analytics_enabled: bool
    priority_support: bool
    description: Optional[str] = None


class SubscriptionCreate(BaseModel):
    plan: SubscriptionPlan
    billing_cycle: BillingCycle = BillingCycle.MONTHLY


class SubscriptionAssign(BaseModel):
    """Admin plan override for a dealer or a user."""

    plan: SubscriptionPlan
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    dealer_id: Optional[UUID] = None
    user_id: Optional[UUID] = None

    @model_validator(mode="after")
    def check_owner(self) -> "SubscriptionAssign":
        if (self.dealer_id is None) == (self.user_id is None):
            raise ValueError("Exactly one of dealer_id or user_id is required")
        return self


class PlanDetailsUpdate(BaseModel):
    overrides: Dict[str, Any] = Field(..., description="Plan fields to override for future subscriptions")


class SubscriptionResponse(BaseModel):
    id: UUID
    dealer_id: Optional[UUID] = None
    user_id: Optional[UUID] = None
    plan: SubscriptionPlan
    status: SubscriptionStatus
    price: Decimal
    billing_cycle: BillingCycle
    max_listings: int
    max_photos_per_listing: int
    featured_listings: int
    xml_import_enabled: bool
    analytics_enabled: bool
    priority_support: bool
    start_date: datetime
    end_date: datetime
    cancelled_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class LimitsResponse(BaseModel):
    plan: SubscriptionPlan
    has_subscription: bool
    max_listings: int = Field(..., description="-1 means unlimited")
    max_photos_per_listing: int
    featured_listings: int
    xml_import_enabled: bool
    analytics_enabled: bool
    priority_support: bool


class CurrentSubscriptionResponse(BaseModel):
    subscription: Optional[SubscriptionResponse] = None
    limits: LimitsResponse
