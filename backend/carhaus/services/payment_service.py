"""
Payment records and provider webhook handling.

A completed checkout records the payment and moves the dealer onto the
purchased plan through ``SubscriptionService.upgrade``. Webhooks are
idempotent per provider transaction id.
"""

import secrets
import time
from decimal import Decimal
from typing import Any
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from carhaus.api.v1.schemas.payment import PaymentWebhookEvent
from carhaus.core.config import settings
from carhaus.core.exceptions import NotFoundException
from carhaus.core.logging import get_logger
from carhaus.db.postgres.models import NotificationType, Payment, PaymentStatus, utcnow
from carhaus.db.postgres.repositories import DealerRepository, PaymentRepository
from carhaus.db.postgres.session import get_db
from carhaus.services.notification_service import NotificationService
from carhaus.services.subscription_service import SubscriptionService

logger = get_logger(__name__)


def generate_invoice_number() -> str:
    return f"INV-{int(time.time() * 1000)}-{secrets.token_hex(4).upper()}"


class PaymentService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.payments = PaymentRepository(db)
        self.dealers = DealerRepository(db)
        self.subscriptions = SubscriptionService(db)
        self.notifications = NotificationService(db)

    async def create_payment(
        self,
        dealer_id: UUID,
        amount: Decimal,
        description: str | None = None,
        subscription_id: UUID | None = None,
        payment_method: str | None = None,
        transaction_id: str | None = None,
        status: PaymentStatus = PaymentStatus.PENDING,
    ) -> Payment:
        return await self.payments.create(
            {
                "dealer_id": dealer_id,
                "subscription_id": subscription_id,
                "amount": amount,
                "currency": settings.DEFAULT_CURRENCY,
                "status": status,
                "invoice_number": generate_invoice_number(),
                "description": description,
                "payment_method": payment_method,
                "transaction_id": transaction_id,
                "paid_at": utcnow() if status == PaymentStatus.COMPLETED else None,
            }
        )

    async def update_payment_status(self, payment_id: UUID, status: PaymentStatus) -> Payment:
        payment = await self.payments.get(payment_id)
        if payment is None:
            raise NotFoundException("Payment not found", resource_type="payment", resource_id=str(payment_id))
        changes: dict[str, Any] = {"status": status}
        if status == PaymentStatus.COMPLETED and payment.paid_at is None:
            changes["paid_at"] = utcnow()
        return await self.payments.update(payment, changes)

    async def get_history(self, dealer_id: UUID) -> list[Payment]:
        return await self.payments.history(dealer_id)

    async def handle_webhook(self, event: PaymentWebhookEvent) -> dict[str, Any]:
        """
        Apply a provider event.

        ``checkout.completed`` upgrades the dealer and records a completed
        payment, ``checkout.failed`` records a failed one and
        ``payment.refunded`` flags an existing payment. Other event types
        are acknowledged and ignored.
        """
        data = event.data

        if event.type == "payment.refunded":
            payment = await self.payments.get_by_transaction(data.transaction_id)
            if payment is None:
                raise NotFoundException("Payment not found", resource_type="payment", resource_id=data.transaction_id)
            await self.update_payment_status(payment.id, PaymentStatus.REFUNDED)
            return {"received": True, "handled": True, "payment_id": payment.id}

        if event.type not in ("checkout.completed", "checkout.failed"):
            logger.info(f"Ignoring webhook event {event.type}")
            return {"received": True, "handled": False}

        existing = await self.payments.get_by_transaction(data.transaction_id)
        if existing is not None:
            logger.info("Duplicate webhook delivery", extra={"transaction_id": data.transaction_id})
            return {"received": True, "handled": False, "payment_id": existing.id}

        dealer = await self.dealers.get(data.dealer_id) if data.dealer_id else None
        if dealer is None:
            raise NotFoundException("Dealer not found", resource_type="dealer", resource_id=str(data.dealer_id))

        description = f"{data.plan} plan ({data.billing_cycle})"
        if event.type == "checkout.failed":
            payment = await self.create_payment(
                dealer.id,
                data.amount,
                description=description,
                payment_method=data.payment_method,
                transaction_id=data.transaction_id,
                status=PaymentStatus.FAILED,
            )
            logger.warning("Checkout failed", extra={"dealer_id": str(dealer.id), "payment_id": str(payment.id)})
            return {"received": True, "handled": True, "payment_id": payment.id}

        subscription = await self.subscriptions.upgrade(
            data.plan,
            data.billing_cycle,
            dealer_id=dealer.id,
            actor_id=dealer.user_id,
        )
        payment = await self.create_payment(
            dealer.id,
            data.amount,
            description=description,
            subscription_id=subscription.id,
            payment_method=data.payment_method,
            transaction_id=data.transaction_id,
            status=PaymentStatus.COMPLETED,
        )
        await self.notifications.notify(
            dealer.user_id,
            NotificationType.PAYMENT,
            "Payment Received",
            f"Your payment of {payment.amount} {payment.currency} for the {data.plan} plan was received",
            {"payment_id": str(payment.id), "subscription_id": str(subscription.id)},
        )
        logger.info(
            "Checkout completed",
            extra={"dealer_id": str(dealer.id), "plan": str(data.plan), "payment_id": str(payment.id)},
        )
        return {
            "received": True,
            "handled": True,
            "payment_id": payment.id,
            "subscription_id": subscription.id,
        }


def get_payment_service(db: AsyncSession = Depends(get_db)) -> PaymentService:
    """FastAPI dependency returning a request-scoped PaymentService."""
    return PaymentService(db)
