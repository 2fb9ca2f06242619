"""
Tests for the notification dispatcher.
"""

from uuid import uuid4

import pytest

from carhaus.core.exceptions import NotFoundException
from carhaus.db.postgres.models import NotificationType
from carhaus.services.notification_service import NotificationService


@pytest.fixture
def service(db_session, connections) -> NotificationService:
    return NotificationService(db_session, connections)


async def _notify(service, user, title="New Inquiry"):
    return await service.notify(
        user.id,
        NotificationType.INQUIRY,
        title,
        "Jamie asked about your 2021 Honda Civic EX",
        {"inquiry_id": str(uuid4())},
    )


class TestNotify:
    @pytest.mark.asyncio
    async def test_persists_and_pushes(self, service, connections, buyer, make_socket):
        socket = make_socket()
        connections.connect(buyer.id, socket)

        notification = await _notify(service, buyer)

        assert notification.is_read is False
        pushed = socket.events("notification")
        assert len(pushed) == 1
        assert pushed[0]["id"] == str(notification.id)
        assert pushed[0]["type"] == "INQUIRY"
        assert pushed[0]["title"] == "New Inquiry"

    @pytest.mark.asyncio
    async def test_offline_recipient_still_gets_row(self, service, buyer):
        await _notify(service, buyer)

        assert await service.unread_count(buyer.id) == 1

    @pytest.mark.asyncio
    async def test_failing_socket_does_not_break_notify(self, service, connections, buyer, make_socket):
        connections.connect(buyer.id, make_socket(fail=True))

        notification = await _notify(service, buyer)

        assert notification.id is not None
        assert connections.is_online(buyer.id) is False

    @pytest.mark.asyncio
    async def test_emit_does_not_persist(self, service, connections, buyer, make_socket):
        socket = make_socket()
        connections.connect(buyer.id, socket)

        reached = await service.emit(buyer.id, "message_read", {"inquiry_id": "abc"})

        assert reached == 1
        assert socket.events("message_read") == [{"inquiry_id": "abc"}]
        assert await service.unread_count(buyer.id) == 0


class TestInbox:
    @pytest.mark.asyncio
    async def test_paging(self, service, buyer, make_user):
        for i in range(5):
            await _notify(service, buyer, title=f"Notice {i}")
        await _notify(service, await make_user())

        first = await service.list_for_user(buyer.id, page=1, limit=2)
        last = await service.list_for_user(buyer.id, page=3, limit=2)

        assert first["meta"] == {"total": 5, "page": 1, "limit": 2, "total_pages": 3}
        assert len(first["data"]) == 2
        assert len(last["data"]) == 1

    @pytest.mark.asyncio
    async def test_mark_as_read(self, service, buyer):
        notification = await _notify(service, buyer)

        updated = await service.mark_as_read(notification.id, buyer.id)

        assert updated.is_read is True
        assert updated.read_at is not None
        assert await service.unread_count(buyer.id) == 0

    @pytest.mark.asyncio
    async def test_mark_all_as_read(self, service, buyer):
        for _ in range(3):
            await _notify(service, buyer)

        assert await service.mark_all_as_read(buyer.id) == 3
        assert await service.mark_all_as_read(buyer.id) == 0

    @pytest.mark.asyncio
    async def test_other_users_notification_is_not_found(self, service, buyer, make_user):
        notification = await _notify(service, buyer)
        stranger = await make_user()

        with pytest.raises(NotFoundException):
            await service.mark_as_read(notification.id, stranger.id)
        with pytest.raises(NotFoundException):
            await service.delete(notification.id, stranger.id)

    @pytest.mark.asyncio
    async def test_delete_and_delete_all(self, service, buyer):
        keep = await _notify(service, buyer)
        drop = await _notify(service, buyer)

        await service.delete(drop.id, buyer.id)
        page = await service.list_for_user(buyer.id)
        assert [item.id for item in page["data"]] == [keep.id]

        assert await service.delete_all(buyer.id) == 1
        assert await service.unread_count(buyer.id) == 0
