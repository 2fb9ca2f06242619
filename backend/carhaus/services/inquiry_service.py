"""
Inquiry thread management.

A buyer has at most one open thread per (listing, dealer) pair: repeat
messages are appended to the existing thread instead of opening a new
one. Guest threads (no signed-in buyer) are keyed separately from
signed-in ones even when the e-mail matches. Each side archives and
reads a thread independently.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from carhaus.api.v1.schemas.inquiry import InquiryCreate, InquiryResponse
from carhaus.core.config import settings
from carhaus.core.exceptions import ForbiddenException, InquiryArchivedException, NotFoundException
from carhaus.core.logging import get_logger
from carhaus.core.metrics import track_inquiry
from carhaus.db.postgres.models import (
    Dealer,
    Inquiry,
    InquiryStatus,
    Listing,
    NotificationType,
    utcnow,
)
from carhaus.db.postgres.repositories import DealerRepository, InquiryRepository, ListingRepository
from carhaus.db.postgres.session import get_db
from carhaus.services.notification_service import NotificationService

logger = get_logger(__name__)


class InquirySide(StrEnum):
    BUYER = "buyer"
    DEALER = "dealer"


def format_entry_timestamp(moment: datetime) -> str:
    """Render e.g. ``Oct 18, 2026, 3:04:05 PM`` in the display timezone."""
    local = moment.astimezone(ZoneInfo(settings.DISPLAY_TIMEZONE))
    hour = local.hour % 12 or 12
    return f"{local:%b} {local.day}, {local.year}, {hour}:{local:%M:%S} {local:%p}"


def append_entry(log: str | None, text: str, moment: datetime) -> str:
    """Append ``text`` to a conversation log under a timestamp separator."""
    if not log:
        return text
    return f"{log}\n\n--- {format_entry_timestamp(moment)} ---\n{text}"


def vehicle_label(listing: Listing) -> str:
    return f"{listing.year} {listing.make} {listing.model}"


class InquiryService:
    """
    Buyer/dealer conversation threads.

    Usage:
        service = InquiryService(db)
        result = await service.submit(data, user_id=current_user.id)
    """

    def __init__(self, db: AsyncSession, notifications: NotificationService | None = None):
        self.db = db
        self.inquiries = InquiryRepository(db)
        self.listings = ListingRepository(db)
        self.dealers = DealerRepository(db)
        self.notifications = notifications or NotificationService(db)

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    async def _load(self, inquiry_id: UUID) -> Inquiry:
        inquiry = await self.inquiries.get_with_previews(inquiry_id)
        if inquiry is None:
            raise NotFoundException("Inquiry not found", resource_type="inquiry", resource_id=str(inquiry_id))
        return inquiry

    async def _load_for_buyer(self, inquiry_id: UUID, user_id: UUID) -> Inquiry:
        inquiry = await self._load(inquiry_id)
        if inquiry.user_id != user_id:
            raise ForbiddenException("Not authorized to access this inquiry")
        return inquiry

    async def _load_for_dealer(self, inquiry_id: UUID, dealer: Dealer) -> Inquiry:
        inquiry = await self._load(inquiry_id)
        if inquiry.dealer_id != dealer.id:
            raise ForbiddenException("Not authorized to access this inquiry")
        return inquiry

    async def get_for_buyer(self, inquiry_id: UUID, user_id: UUID) -> Inquiry:
        return await self._load_for_buyer(inquiry_id, user_id)

    async def get_for_dealer(self, inquiry_id: UUID, dealer: Dealer) -> Inquiry:
        return await self._load_for_dealer(inquiry_id, dealer)

    async def get_for_admin(self, inquiry_id: UUID) -> Inquiry:
        return await self._load(inquiry_id)

    async def list_for_buyer(
        self, user_id: UUID, status: str | None = None, skip: int = 0, take: int = 20
    ) -> tuple[list[Inquiry], int]:
        return await self.inquiries.list_for_owner(
            Inquiry.user_id == user_id, Inquiry.user_archived, status, skip, take
        )

    async def list_for_dealer(
        self, dealer_id: UUID, status: str | None = None, skip: int = 0, take: int = 20
    ) -> tuple[list[Inquiry], int]:
        return await self.inquiries.list_for_owner(
            Inquiry.dealer_id == dealer_id, Inquiry.dealer_archived, status, skip, take
        )

    async def list_for_admin(
        self, dealer_id: UUID, status: str | None = None, skip: int = 0, take: int = 20
    ) -> tuple[list[Inquiry], int]:
        return await self.inquiries.list_for_owner(Inquiry.dealer_id == dealer_id, None, status, skip, take)

    # -------------------------------------------------------------------------
    # Buyer messages
    # -------------------------------------------------------------------------

    async def submit(self, data: InquiryCreate, user_id: UUID | None = None) -> dict[str, Any]:
        """
        Record a buyer message, merging it into the open thread if one exists.

        Only a new thread increments the listing's inquiry counter.
        """
        listing = await self.listings.get(data.listing_id)
        if listing is None:
            raise NotFoundException("Listing not found", resource_type="listing", resource_id=str(data.listing_id))

        dealer_id = data.dealer_id or listing.dealer_id
        dealer = await self.dealers.get(dealer_id) if dealer_id else None
        if dealer is None:
            raise NotFoundException(
                "Dealer not found",
                resource_type="dealer",
                resource_id=str(dealer_id) if dealer_id else None,
            )

        now = utcnow()
        thread = await self.inquiries.find_open_thread(listing.id, dealer.id, user_id)
        follow_up = thread is not None

        if follow_up:
            self._append_buyer_message(thread, data.message, now)
            await self.db.flush()
        else:
            thread = await self.inquiries.create(
                {
                    "listing_id": listing.id,
                    "dealer_id": dealer.id,
                    "user_id": user_id,
                    "name": data.name,
                    "email": data.email,
                    "phone": data.phone,
                    "message": data.message,
                    "status": InquiryStatus.NEW,
                }
            )
            await self.listings.increment_inquiries(listing.id)

        inquiry = await self.inquiries.get_with_previews(thread.id)
        await self._announce_to_dealer(inquiry, dealer, data.name, follow_up)
        track_inquiry(follow_up)
        logger.info(
            "Inquiry follow-up appended" if follow_up else "Inquiry created",
            extra={
                "inquiry_id": str(inquiry.id),
                "listing_id": str(listing.id),
                "dealer_id": str(dealer.id),
                "guest": user_id is None,
            },
        )
        return {
            "success": True,
            "message": "Message sent successfully" if follow_up else "Inquiry sent successfully",
            "inquiry_id": inquiry.id,
            "listing_id": listing.id,
            "inquiry": inquiry,
        }

    async def send_buyer_message(self, inquiry_id: UUID, user_id: UUID, message: str) -> dict[str, Any]:
        """Follow-up from the inbox of a signed-in buyer."""
        inquiry = await self._load_for_buyer(inquiry_id, user_id)
        if inquiry.user_archived:
            raise InquiryArchivedException(str(inquiry_id))

        self._append_buyer_message(inquiry, message, utcnow())
        await self.db.flush()
        inquiry = await self.inquiries.get_with_previews(inquiry.id)

        await self._announce_to_dealer(inquiry, inquiry.dealer, inquiry.name, follow_up=True)
        track_inquiry(True)
        logger.info("Inquiry follow-up appended", extra={"inquiry_id": str(inquiry.id)})
        return {
            "success": True,
            "message": "Message sent successfully",
            "inquiry_id": inquiry.id,
            "listing_id": inquiry.listing_id,
            "inquiry": inquiry,
        }

    @staticmethod
    def _append_buyer_message(inquiry: Inquiry, text: str, now: datetime) -> None:
        inquiry.message = append_entry(inquiry.message, text, now)
        inquiry.status = InquiryStatus.NEW
        inquiry.dealer_read_at = None
        inquiry.updated_at = now

    async def _announce_to_dealer(self, inquiry: Inquiry, dealer: Dealer, sender: str, follow_up: bool) -> None:
        label = vehicle_label(inquiry.listing)
        if follow_up:
            title = "New Message Received"
            body = f"{sender} sent a new message about {label}"
        else:
            title = "New Inquiry Received"
            body = f"{sender} sent an inquiry about {label}"

        await self.notifications.notify(
            dealer.user_id,
            NotificationType.INQUIRY,
            title,
            body,
            {"inquiry_id": str(inquiry.id), "listing_id": str(inquiry.listing_id)},
        )
        await self.notifications.emit(
            dealer.user_id,
            "new_inquiry",
            InquiryResponse.from_inquiry(inquiry).model_dump(mode="json"),
        )

    # -------------------------------------------------------------------------
    # Dealer actions
    # -------------------------------------------------------------------------

    async def update_status(
        self,
        inquiry_id: UUID,
        dealer: Dealer,
        status: InquiryStatus,
        reply: str | None = None,
        actor_id: UUID | None = None,
    ) -> Inquiry:
        """
        Dealer status change.

        ``ARCHIVED`` only hides the thread from the dealer's inbox and keeps
        the current status. Any other status marks the thread read. A reply
        is appended to the reply log and pushed to a registered buyer.
        """
        inquiry = await self._load_for_dealer(inquiry_id, dealer)
        now = utcnow()

        if status == InquiryStatus.ARCHIVED:
            inquiry.dealer_archived = True
        else:
            inquiry.status = status
            inquiry.is_read = True
            inquiry.read_at = now

        if reply:
            inquiry.reply = append_entry(inquiry.reply, reply, now)
            inquiry.replied_at = now
            inquiry.replied_by = actor_id or dealer.user_id

        await self.db.flush()
        inquiry = await self.inquiries.get_with_previews(inquiry.id)

        if reply and inquiry.user_id is not None:
            await self.notifications.notify(
                inquiry.user_id,
                NotificationType.INQUIRY_REPLY,
                "New Reply Received",
                f"{dealer.business_name} replied to your inquiry about {vehicle_label(inquiry.listing)}",
                {"inquiry_id": str(inquiry.id), "listing_id": str(inquiry.listing_id)},
            )
            await self.notifications.emit(
                inquiry.user_id,
                "inquiry_reply",
                InquiryResponse.from_inquiry(inquiry).model_dump(mode="json"),
            )

        logger.info(
            "Inquiry status updated",
            extra={"inquiry_id": str(inquiry.id), "status": str(status), "replied": bool(reply)},
        )
        return inquiry

    # -------------------------------------------------------------------------
    # Per-side state
    # -------------------------------------------------------------------------

    async def _load_side(self, inquiry_id: UUID, side: InquirySide, actor: UUID | Dealer) -> Inquiry:
        if side == InquirySide.DEALER:
            return await self._load_for_dealer(inquiry_id, actor)
        return await self._load_for_buyer(inquiry_id, actor)

    async def archive(self, inquiry_id: UUID, side: InquirySide, actor: UUID | Dealer) -> Inquiry:
        """Hide the thread for one side only."""
        inquiry = await self._load_side(inquiry_id, side, actor)
        if side == InquirySide.DEALER:
            inquiry.dealer_archived = True
        else:
            inquiry.user_archived = True
        await self.db.flush()
        logger.info("Inquiry archived", extra={"inquiry_id": str(inquiry.id), "side": str(side)})
        return inquiry

    async def mark_read(self, inquiry_id: UUID, side: InquirySide, actor: UUID | Dealer) -> Inquiry:
        """
        Record that one side has read the thread.

        Idempotent: a second call changes nothing and emits nothing. The
        first call notifies the other side with ``message_read``.
        """
        inquiry = await self._load_side(inquiry_id, side, actor)
        now = utcnow()

        if side == InquirySide.DEALER:
            if inquiry.dealer_read_at is not None:
                return inquiry
            inquiry.dealer_read_at = now
            if not inquiry.is_read:
                inquiry.is_read = True
                inquiry.read_at = now
            reader_id = inquiry.dealer.user_id
            recipient_id = inquiry.user_id
        else:
            if inquiry.user_read_at is not None:
                return inquiry
            inquiry.user_read_at = now
            reader_id = inquiry.user_id
            recipient_id = inquiry.dealer.user_id

        await self.db.flush()
        if recipient_id is not None:
            await self.notifications.emit(
                recipient_id,
                "message_read",
                {"inquiry_id": str(inquiry.id), "read_by": str(reader_id)},
            )
        return inquiry


def get_inquiry_service(db: AsyncSession = Depends(get_db)) -> InquiryService:
    """FastAPI dependency returning a request-scoped InquiryService."""
    return InquiryService(db)
