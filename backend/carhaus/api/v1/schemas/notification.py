"""
Notification schemas.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from carhaus.db.postgres.models import NotificationType


class NotificationResponse(BaseModel):
    id: UUID
    type: NotificationType
    title: str
    message: str
    data: Optional[Dict[str, Any]] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationPageMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class NotificationPage(BaseModel):
    data: List[NotificationResponse]
    meta: NotificationPageMeta


class UnreadCountResponse(BaseModel):
    count: int = Field(..., ge=0)


class BulkUpdateResponse(BaseModel):
    success: bool = True
    count: int
