"""
API tests for notifications and the realtime socket.

Tests:
- GET /api/v1/notifications - Paged inbox
- GET /api/v1/notifications/unread-count
- POST /api/v1/notifications/{id}/read, /read-all, /delete-all
- DELETE /api/v1/notifications/{id}
- WS /api/v1/notifications/ws - Authenticated event stream
"""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from httpx import AsyncClient
from starlette.websockets import WebSocketDisconnect

from carhaus.core.security import create_access_token
from carhaus.db.postgres.models import NotificationType, User
from carhaus.services.notification_service import NotificationService
from carhaus.services.realtime import get_connection_manager


@pytest.fixture
def seed(db_session, connections):
    async def _seed(user, count=1):
        service = NotificationService(db_session, connections)
        return [
            await service.notify(user.id, NotificationType.SYSTEM, f"Notice {i}", "Scheduled maintenance tonight")
            for i in range(count)
        ]

    return _seed


class TestNotificationInbox:
    @pytest.mark.asyncio
    async def test_list_and_count(self, async_client: AsyncClient, buyer, auth_headers, seed):
        await seed(buyer, 3)
        headers = auth_headers(buyer)

        page = await async_client.get("/api/v1/notifications", params={"limit": 2}, headers=headers)
        count = await async_client.get("/api/v1/notifications/unread-count", headers=headers)

        assert page.status_code == 200
        assert len(page.json()["data"]) == 2
        assert page.json()["meta"]["total_pages"] == 2
        assert count.json() == {"count": 3}

    @pytest.mark.asyncio
    async def test_mark_read(self, async_client: AsyncClient, buyer, auth_headers, seed):
        (notification,) = await seed(buyer)

        response = await async_client.post(
            f"/api/v1/notifications/{notification.id}/read", headers=auth_headers(buyer)
        )

        assert response.status_code == 200
        assert response.json()["is_read"] is True

    @pytest.mark.asyncio
    async def test_bulk_actions(self, async_client: AsyncClient, buyer, auth_headers, seed):
        await seed(buyer, 2)
        headers = auth_headers(buyer)

        read_all = await async_client.post("/api/v1/notifications/read-all", headers=headers)
        delete_all = await async_client.post("/api/v1/notifications/delete-all", headers=headers)

        assert read_all.json() == {"success": True, "count": 2}
        assert delete_all.json() == {"success": True, "count": 2}

    @pytest.mark.asyncio
    async def test_cannot_touch_others(self, async_client: AsyncClient, buyer, make_user, auth_headers, seed):
        (notification,) = await seed(buyer)
        stranger = await make_user()

        response = await async_client.delete(
            f"/api/v1/notifications/{notification.id}", headers=auth_headers(stranger)
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_inquiry_notifies_dealer(self, async_client: AsyncClient, listing, dealer, db_session, auth_headers):
        await async_client.post(
            "/api/v1/listings/inquiry",
            json={
                "listing_id": str(listing.id),
                "name": "Jamie Buyer",
                "email": "jamie@example.com",
                "message": "Still available?",
            },
        )

        owner = await db_session.get(User, dealer.user_id)
        response = await async_client.get("/api/v1/notifications", headers=auth_headers(owner))

        (notification,) = response.json()["data"]
        assert notification["type"] == "INQUIRY"
        assert notification["title"] == "New Inquiry Received"
        assert notification["data"]["listing_id"] == str(listing.id)


class TestRealtimeSocket:
    def test_rejects_missing_token(self, socket_client: TestClient):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with socket_client.websocket_connect("/api/v1/notifications/ws"):
                pass

        assert exc_info.value.code == 1008

    def test_rejects_invalid_token(self, socket_client: TestClient):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with socket_client.websocket_connect("/api/v1/notifications/ws?token=not-a-jwt"):
                pass

        assert exc_info.value.code == 1008

    def test_ping_pong_with_query_token(self, socket_client: TestClient):
        user_id = uuid4()
        token = create_access_token(subject=str(user_id))
        manager = get_connection_manager()

        with socket_client.websocket_connect(f"/api/v1/notifications/ws?token={token}") as websocket:
            websocket.send_json({"event": "ping"})
            frame = websocket.receive_json()

            assert frame["event"] == "pong"
            assert isinstance(frame["data"]["timestamp"], int)
            assert manager.is_online(user_id)

        assert not manager.is_online(user_id)

    def test_bearer_header_and_plain_ping(self, socket_client: TestClient):
        token = create_access_token(subject=str(uuid4()))

        with socket_client.websocket_connect(
            "/api/v1/notifications/ws", headers={"Authorization": f"Bearer {token}"}
        ) as websocket:
            websocket.send_text("ping")
            assert websocket.receive_json()["event"] == "pong"
