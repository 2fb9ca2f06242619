"""
Buyer inbox endpoints.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from carhaus.api.v1.endpoints.auth import get_current_user_from_token
from carhaus.api.v1.schemas.inquiry import (
    InquiryMessage,
    InquiryResponse,
    InquiryStatusFilter,
    InquirySubmitResponse,
    Page,
    PageMeta,
)
from carhaus.db.postgres.models import User
from carhaus.services.inquiry_service import InquiryService, InquirySide, get_inquiry_service

router = APIRouter()


@router.get("/me/inquiries", response_model=Page[InquiryResponse])
async def list_my_inquiries(
    status: Optional[InquiryStatusFilter] = Query(None),
    skip: int = Query(0, ge=0),
    take: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user_from_token),
    service: InquiryService = Depends(get_inquiry_service),
):
    """Buyer inbox; threads the buyer archived only show with ``status=ARCHIVED``."""
    inquiries, total = await service.list_for_buyer(current_user.id, status, skip, take)
    return Page[InquiryResponse](
        data=[InquiryResponse.from_inquiry(inquiry) for inquiry in inquiries],
        meta=PageMeta(total=total, skip=skip, take=take),
    )


@router.get("/me/inquiries/{inquiry_id}", response_model=InquiryResponse)
async def get_my_inquiry(
    inquiry_id: UUID,
    current_user: User = Depends(get_current_user_from_token),
    service: InquiryService = Depends(get_inquiry_service),
):
    inquiry = await service.get_for_buyer(inquiry_id, current_user.id)
    return InquiryResponse.from_inquiry(inquiry)


@router.put("/me/inquiries/{inquiry_id}/archive", response_model=InquiryResponse)
async def archive_my_inquiry(
    inquiry_id: UUID,
    current_user: User = Depends(get_current_user_from_token),
    service: InquiryService = Depends(get_inquiry_service),
):
    inquiry = await service.archive(inquiry_id, InquirySide.BUYER, current_user.id)
    return InquiryResponse.from_inquiry(inquiry)


@router.put("/me/inquiries/{inquiry_id}/read", response_model=InquiryResponse)
async def mark_my_inquiry_read(
    inquiry_id: UUID,
    current_user: User = Depends(get_current_user_from_token),
    service: InquiryService = Depends(get_inquiry_service),
):
    inquiry = await service.mark_read(inquiry_id, InquirySide.BUYER, current_user.id)
    return InquiryResponse.from_inquiry(inquiry)


@router.post("/me/inquiries/{inquiry_id}/message", response_model=InquirySubmitResponse)
async def send_inquiry_message(
    inquiry_id: UUID,
    data: InquiryMessage,
    current_user: User = Depends(get_current_user_from_token),
    service: InquiryService = Depends(get_inquiry_service),
):
    """Append a follow-up message to one of the buyer's threads."""
    result = await service.send_buyer_message(inquiry_id, current_user.id, data.message)
    return InquirySubmitResponse(
        success=result["success"],
        message=result["message"],
        inquiry_id=result["inquiry_id"],
        listing_id=result["listing_id"],
        inquiry=InquiryResponse.from_inquiry(result["inquiry"]),
    )
