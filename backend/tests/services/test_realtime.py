"""
Tests for the in-process connection registry.
"""

from uuid import uuid4

import pytest

from carhaus.services.realtime import ConnectionManager, get_connection_manager


class TestConnectionManager:
    def test_connect_and_disconnect(self, connections, make_socket):
        user_id = uuid4()
        first = connections.connect(user_id, make_socket())
        second = connections.connect(str(user_id), make_socket())

        assert first != second
        assert connections.connection_count == 2

        connections.disconnect(user_id, first)
        assert connections.is_online(user_id) is True

        connections.disconnect(user_id, second)
        assert connections.is_online(user_id) is False
        assert connections.connection_count == 0

    def test_disconnect_unknown_is_noop(self, connections):
        connections.disconnect(uuid4(), "missing")
        assert connections.connection_count == 0

    @pytest.mark.asyncio
    async def test_fans_out_to_every_socket(self, connections, make_socket):
        user_id = uuid4()
        laptop, phone = make_socket(), make_socket()
        connections.connect(user_id, laptop)
        connections.connect(user_id, phone)

        reached = await connections.send_to_user(user_id, "new_inquiry", {"listing_id": uuid4()})

        assert reached == 2
        assert len(laptop.events("new_inquiry")) == 1
        assert laptop.sent == phone.sent
        assert isinstance(laptop.sent[0]["data"]["listing_id"], str)

    @pytest.mark.asyncio
    async def test_only_addressed_user_receives(self, connections, make_socket):
        alice, bob = uuid4(), uuid4()
        alice_socket, bob_socket = make_socket(), make_socket()
        connections.connect(alice, alice_socket)
        connections.connect(bob, bob_socket)

        await connections.send_to_user(alice, "notification", {"title": "Hi"})

        assert len(alice_socket.sent) == 1
        assert bob_socket.sent == []

    @pytest.mark.asyncio
    async def test_failed_socket_is_dropped(self, connections, make_socket):
        user_id = uuid4()
        healthy = make_socket()
        connections.connect(user_id, healthy)
        connections.connect(user_id, make_socket(fail=True))

        reached = await connections.send_to_user(user_id, "notification", {})

        assert reached == 1
        assert connections.connection_count == 1
        assert len(healthy.sent) == 1

    @pytest.mark.asyncio
    async def test_offline_user(self, connections):
        assert await connections.send_to_user(uuid4(), "notification", {}) == 0


def test_singleton():
    assert get_connection_manager() is get_connection_manager()
    assert isinstance(get_connection_manager(), ConnectionManager)
