"""
Notification dispatcher.

Every notification is persisted first and then pushed to the recipient's
live sockets. The push never decides the outcome of the business write
that triggered it.

Events go out inside the request's unit of work, before ``get_db``
commits. A client that refetches on an event can briefly read the
pre-commit state, and if the commit fails the event has already been sent.
"""

from typing import Any
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from carhaus.core.exceptions import NotFoundException
from carhaus.core.logging import get_logger
from carhaus.db.postgres.models import Notification, NotificationType, utcnow
from carhaus.db.postgres.repositories import NotificationRepository
from carhaus.db.postgres.session import get_db
from carhaus.services.realtime import ConnectionManager, get_connection_manager

logger = get_logger(__name__)


def serialize_notification(notification: Notification) -> dict[str, Any]:
    return {
        "id": notification.id,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "data": notification.data or {},
        "is_read": notification.is_read,
        "created_at": notification.created_at,
    }


class NotificationService:
    """
    Persist notifications and push realtime events.

    Usage:
        service = NotificationService(db)
        await service.notify(user_id, NotificationType.INQUIRY, "Title", "Body", {...})
    """

    def __init__(self, db: AsyncSession, connections: ConnectionManager | None = None):
        self.db = db
        self.repository = NotificationRepository(db)
        self.connections = connections or get_connection_manager()

    async def notify(
        self,
        user_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        """Insert a notification row and push it as a ``notification`` event."""
        notification = await self.repository.create(
            {
                "user_id": user_id,
                "type": type,
                "title": title,
                "message": message,
                "data": data or {},
            }
        )
        logger.info(
            "Notification created",
            extra={"recipient_id": str(user_id), "notification_type": str(type)},
        )
        await self.emit(user_id, "notification", serialize_notification(notification))
        return notification

    async def emit(self, user_id: UUID, event: str, data: Any) -> int:
        """Push a realtime event without persisting anything."""
        return await self.connections.send_to_user(user_id, event, data)

    async def list_for_user(self, user_id: UUID, page: int = 1, limit: int = 20) -> dict[str, Any]:
        notifications, total = await self.repository.page_for_user(user_id, (page - 1) * limit, limit)
        return {
            "data": notifications,
            "meta": {
                "total": total,
                "page": page,
                "limit": limit,
                "total_pages": (total + limit - 1) // limit,
            },
        }

    async def unread_count(self, user_id: UUID) -> int:
        return await self.repository.unread_count(user_id)

    async def _get_owned(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = await self.repository.get(notification_id)
        if notification is None or notification.user_id != user_id:
            raise NotFoundException(
                "Notification not found",
                resource_type="notification",
                resource_id=str(notification_id),
            )
        return notification

    async def mark_as_read(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = await self._get_owned(notification_id, user_id)
        if not notification.is_read:
            await self.repository.update(notification, {"is_read": True, "read_at": utcnow()})
        return notification

    async def mark_all_as_read(self, user_id: UUID) -> int:
        return await self.repository.mark_all_read(user_id, utcnow())

    async def delete(self, notification_id: UUID, user_id: UUID) -> None:
        notification = await self._get_owned(notification_id, user_id)
        await self.repository.delete(notification)

    async def delete_all(self, user_id: UUID) -> int:
        return await self.repository.delete_all(user_id)


def get_notification_service(db: AsyncSession = Depends(get_db)) -> NotificationService:
    """FastAPI dependency returning a request-scoped NotificationService."""
    return NotificationService(db)
