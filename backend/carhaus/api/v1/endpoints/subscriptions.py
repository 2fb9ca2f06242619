"""
Subscription endpoints.

The plan catalogue is public; everything else acts on the dealer profile
of the authenticated user.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status

from carhaus.api.v1.endpoints.auth import get_current_dealer
from carhaus.api.v1.schemas.subscription import (
    CurrentSubscriptionResponse,
    LimitsResponse,
    PlanResponse,
    SubscriptionCreate,
    SubscriptionResponse,
)
from carhaus.core.logging import get_logger
from carhaus.db.postgres.models import Dealer
from carhaus.services.subscription_service import SubscriptionService, get_subscription_service

router = APIRouter()
logger = get_logger(__name__)


@router.get("/plans", response_model=List[PlanResponse])
async def list_plans(service: SubscriptionService = Depends(get_subscription_service)):
    """Plan catalogue with admin overrides applied."""
    return [PlanResponse(**plan) for plan in await service.get_plans()]


@router.get("/current", response_model=CurrentSubscriptionResponse)
async def get_current_subscription(
    dealer: Dealer = Depends(get_current_dealer),
    service: SubscriptionService = Depends(get_subscription_service),
):
    subscription = await service.get_active(dealer.id)
    limits = await service.resolve_limits(dealer.id)
    return CurrentSubscriptionResponse(
        subscription=SubscriptionResponse.model_validate(subscription) if subscription else None,
        limits=LimitsResponse(**limits.to_dict()),
    )


@router.get("/limits", response_model=LimitsResponse)
async def get_limits(
    dealer: Dealer = Depends(get_current_dealer),
    service: SubscriptionService = Depends(get_subscription_service),
):
    limits = await service.resolve_limits(dealer.id)
    return LimitsResponse(**limits.to_dict())


@router.get("/history", response_model=List[SubscriptionResponse])
async def get_subscription_history(
    dealer: Dealer = Depends(get_current_dealer),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.get_history(dealer.id)


@router.post("", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def create_subscription(
    data: SubscriptionCreate,
    dealer: Dealer = Depends(get_current_dealer),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Start a subscription; rejected with 409 while one is active."""
    return await service.create(dealer.id, data.plan, data.billing_cycle)


@router.post("/upgrade", response_model=SubscriptionResponse)
async def upgrade_subscription(
    data: SubscriptionCreate,
    dealer: Dealer = Depends(get_current_dealer),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Switch to another plan; the current subscription is cancelled."""
    return await service.upgrade(
        data.plan,
        data.billing_cycle,
        dealer_id=dealer.id,
        actor_id=dealer.user_id,
    )


@router.delete("/{subscription_id}", response_model=SubscriptionResponse)
async def cancel_subscription(
    subscription_id: UUID,
    dealer: Dealer = Depends(get_current_dealer),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.cancel(subscription_id, dealer.id)
