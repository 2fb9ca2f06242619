"""
Admin console schemas.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel

from carhaus.api.v1.schemas.inquiry import PageMeta
from carhaus.db.postgres.models import ActivityLog


class ActivityLogResponse(BaseModel):
    id: UUID
    user_id: Optional[UUID] = None
    action: str
    entity: str
    entity_id: Optional[str] = None
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_entry(cls, entry: ActivityLog) -> "ActivityLogResponse":
        return cls(
            id=entry.id,
            user_id=entry.user_id,
            action=entry.action,
            entity=entry.entity,
            entity_id=entry.entity_id,
            old_values=entry.old_values,
            new_values=entry.new_values,
            metadata=entry.extra,
            ip_address=entry.ip_address,
            created_at=entry.created_at,
        )


class ActivityLogPage(BaseModel):
    data: List[ActivityLogResponse]
    meta: PageMeta
