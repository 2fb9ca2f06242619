"""
Payment endpoints - provider webhook and dealer payment history.
"""

import hmac
from typing import List, Optional

from fastapi import APIRouter, Depends, Header

from carhaus.api.v1.endpoints.auth import get_current_dealer
from carhaus.api.v1.schemas.payment import PaymentResponse, PaymentWebhookEvent, WebhookAck
from carhaus.core.config import settings
from carhaus.core.exceptions import WebhookRejectedException
from carhaus.core.logging import get_logger
from carhaus.db.postgres.models import Dealer
from carhaus.services.payment_service import PaymentService, get_payment_service

router = APIRouter()
logger = get_logger(__name__)


def verify_webhook_secret(
    x_webhook_secret: Optional[str] = Header(None, alias="X-Webhook-Secret"),
) -> None:
    """Reject webhook calls without the shared secret."""
    expected = settings.PAYMENT_WEBHOOK_SECRET
    if not expected or not x_webhook_secret or not hmac.compare_digest(x_webhook_secret, expected):
        logger.warning("Payment webhook rejected: bad or missing secret")
        raise WebhookRejectedException()


@router.post("/webhook", response_model=WebhookAck, dependencies=[Depends(verify_webhook_secret)])
async def payment_webhook(
    event: PaymentWebhookEvent,
    service: PaymentService = Depends(get_payment_service),
):
    """
    Receive a payment provider event.

    ``checkout.completed`` records the payment and moves the dealer onto the
    purchased plan. Redelivered events are acknowledged without effect.
    """
    return WebhookAck(**await service.handle_webhook(event))


@router.get("/history", response_model=List[PaymentResponse])
async def get_payment_history(
    dealer: Dealer = Depends(get_current_dealer),
    service: PaymentService = Depends(get_payment_service),
):
    return await service.get_history(dealer.id)
