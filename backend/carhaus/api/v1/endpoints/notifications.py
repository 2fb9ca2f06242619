"""
Notification endpoints and the realtime socket.

REST routes manage the persisted notification rows. The socket at
``/notifications/ws`` delivers ``new_inquiry``, ``inquiry_reply``,
``notification`` and ``message_read`` events as JSON frames shaped
``{"event": ..., "data": ...}``.
"""

import json
import time
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from carhaus.api.v1.endpoints.auth import get_current_user_from_token, user_id_from_token
from carhaus.api.v1.schemas.notification import (
    BulkUpdateResponse,
    NotificationPage,
    NotificationPageMeta,
    NotificationResponse,
    UnreadCountResponse,
)
from carhaus.core.exceptions import AuthenticationException
from carhaus.core.logging import get_logger
from carhaus.db.postgres.models import User
from carhaus.services.notification_service import NotificationService, get_notification_service
from carhaus.services.realtime import get_connection_manager

router = APIRouter()
logger = get_logger(__name__)


# =============================================================================
# Realtime socket
# =============================================================================


def _socket_token(websocket: WebSocket, token: Optional[str]) -> Optional[str]:
    if token:
        return token
    authorization = websocket.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials
    return None


@router.websocket("/ws")
async def notifications_socket(websocket: WebSocket, token: Optional[str] = Query(None)):
    """
    Authenticated event stream for the current user.

    The token comes from ``?token=`` or an ``Authorization: Bearer`` header.
    Connections without a valid token are closed with 1008.
    """
    raw_token = _socket_token(websocket, token)
    try:
        user_id = user_id_from_token(raw_token) if raw_token else None
    except AuthenticationException:
        user_id = None

    if user_id is None:
        logger.info("Rejected realtime connection without a valid token")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    manager = get_connection_manager()
    socket_id = manager.connect(user_id, websocket)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                message = {"event": raw.strip()}

            event = message.get("event") if isinstance(message, dict) else None
            if event == "ping":
                await websocket.send_json({"event": "pong", "data": {"timestamp": int(time.time() * 1000)}})
            else:
                logger.debug("Ignoring client frame", extra={"user_id": str(user_id), "client_event": event})
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(user_id, socket_id)


# =============================================================================
# REST
# =============================================================================


@router.get("", response_model=NotificationPage)
async def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user_from_token),
    service: NotificationService = Depends(get_notification_service),
):
    """Newest first."""
    result = await service.list_for_user(current_user.id, page, limit)
    return NotificationPage(
        data=[NotificationResponse.model_validate(item) for item in result["data"]],
        meta=NotificationPageMeta(**result["meta"]),
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    current_user: User = Depends(get_current_user_from_token),
    service: NotificationService = Depends(get_notification_service),
):
    return UnreadCountResponse(count=await service.unread_count(current_user.id))


@router.post("/read-all", response_model=BulkUpdateResponse)
async def mark_all_notifications_read(
    current_user: User = Depends(get_current_user_from_token),
    service: NotificationService = Depends(get_notification_service),
):
    return BulkUpdateResponse(count=await service.mark_all_as_read(current_user.id))


@router.post("/delete-all", response_model=BulkUpdateResponse)
async def delete_all_notifications(
    current_user: User = Depends(get_current_user_from_token),
    service: NotificationService = Depends(get_notification_service),
):
    return BulkUpdateResponse(count=await service.delete_all(current_user.id))


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: UUID,
    current_user: User = Depends(get_current_user_from_token),
    service: NotificationService = Depends(get_notification_service),
):
    return await service.mark_as_read(notification_id, current_user.id)


@router.delete("/{notification_id}", response_model=BulkUpdateResponse)
async def delete_notification(
    notification_id: UUID,
    current_user: User = Depends(get_current_user_from_token),
    service: NotificationService = Depends(get_notification_service),
):
    await service.delete(notification_id, current_user.id)
    return BulkUpdateResponse(count=1)
