"""Audit trail writes and reads."""

from typing import Any
from uuid import UUID

from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from carhaus.core.logging import get_logger
from carhaus.db.postgres.models import ActivityLog
from carhaus.db.postgres.repositories import ActivityLogRepository

logger = get_logger(__name__)


class ActivityLogService:
    """
    Append-only audit log.

    Entries are written in the caller's session, so an audit failure
    fails the surrounding unit of work.
    """

    def __init__(self, db: AsyncSession):
        self.repository = ActivityLogRepository(db)

    async def record(
        self,
        action: str,
        entity: str,
        entity_id: UUID | str | None,
        user_id: UUID | None = None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> ActivityLog:
        entry = await self.repository.create(
            {
                "user_id": user_id,
                "action": action,
                "entity": entity,
                "entity_id": str(entity_id) if entity_id is not None else None,
                "old_values": jsonable_encoder(old_values) if old_values is not None else None,
                "new_values": jsonable_encoder(new_values) if new_values is not None else None,
                "extra": jsonable_encoder(metadata) if metadata is not None else None,
                "ip_address": ip_address,
                "user_agent": user_agent,
            }
        )
        logger.debug(
            f"Audit {action} on {entity}",
            extra={"entity": entity, "entity_id": entry.entity_id, "action": action},
        )
        return entry

    async def recent(
        self,
        entity: str | None = None,
        entity_id: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[ActivityLog], int]:
        return await self.repository.recent(entity, entity_id, skip, limit)
