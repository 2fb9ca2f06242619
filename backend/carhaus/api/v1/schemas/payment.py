"""
Payment schemas.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from carhaus.db.postgres.models import BillingCycle, PaymentStatus, SubscriptionPlan


class PaymentWebhookData(BaseModel):
    dealer_id: Optional[UUID] = None
    plan: SubscriptionPlan = SubscriptionPlan.STARTER
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    amount: Decimal = Field(Decimal("0"), ge=0)
    transaction_id: str = Field(..., min_length=1, max_length=255)
    payment_method: Optional[str] = Field(None, max_length=50)


class PaymentWebhookEvent(BaseModel):
    """Provider event envelope."""

    type: str = Field(..., description="Event type, e.g. checkout.completed")
    data: PaymentWebhookData

    class Config:
        json_schema_extra = {
            "example": {
                "type": "checkout.completed",
                "data": {
                    "dealer_id": "0d3f6a4e-2a71-4f0e-9d55-1f6f0b7d9c11",
                    "plan": "PROFESSIONAL",
                    "billing_cycle": "monthly",
                    "amount": "149.99",
                    "transaction_id": "txn_123",
                    "payment_method": "card",
                },
            }
        }


class WebhookAck(BaseModel):
    received: bool
    handled: bool
    payment_id: Optional[UUID] = None
    subscription_id: Optional[UUID] = None


class PaymentResponse(BaseModel):
    id: UUID
    subscription_id: Optional[UUID] = None
    amount: Decimal
    currency: str
    status: PaymentStatus
    invoice_number: str
    description: Optional[str] = None
    payment_method: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
