"""
In-process realtime connection registry.

Each authenticated user may hold several sockets (tabs, devices). Events
are addressed to a user id and fanned out to all of that user's sockets.
Delivery is best effort: offline users simply miss the event (the
persisted notification row is the durable copy), and a socket that fails
to send is dropped.
"""

import uuid
from typing import Any, Protocol
from uuid import UUID

from fastapi.encoders import jsonable_encoder

from carhaus.core.logging import get_logger
from carhaus.core.metrics import set_realtime_connections, track_push_failure

logger = get_logger(__name__)


class EventSocket(Protocol):
    async def send_json(self, data: Any, mode: str = "text") -> None: ...


class ConnectionManager:
    """Map of user id to that user's live sockets, keyed by socket id."""

    def __init__(self) -> None:
        self._connections: dict[str, dict[str, EventSocket]] = {}

    def connect(self, user_id: UUID | str, websocket: EventSocket) -> str:
        """Register an accepted socket and return its socket id."""
        socket_id = uuid.uuid4().hex
        self._connections.setdefault(str(user_id), {})[socket_id] = websocket
        set_realtime_connections(self.connection_count)
        logger.info(
            "Realtime client connected",
            extra={"user_id": str(user_id), "socket_id": socket_id},
        )
        return socket_id

    def disconnect(self, user_id: UUID | str, socket_id: str) -> None:
        key = str(user_id)
        sockets = self._connections.get(key)
        if sockets is None:
            return
        sockets.pop(socket_id, None)
        if not sockets:
            del self._connections[key]
        set_realtime_connections(self.connection_count)
        logger.info("Realtime client disconnected", extra={"user_id": key, "socket_id": socket_id})

    def is_online(self, user_id: UUID | str) -> bool:
        return bool(self._connections.get(str(user_id)))

    @property
    def connection_count(self) -> int:
        return sum(len(sockets) for sockets in self._connections.values())

    async def send_to_user(self, user_id: UUID | str, event: str, data: Any) -> int:
        """
        Push ``{"event", "data"}`` to every socket of ``user_id``.

        Returns the number of sockets reached. Never raises.
        """
        key = str(user_id)
        sockets = list(self._connections.get(key, {}).items())
        if not sockets:
            return 0

        payload = {"event": event, "data": jsonable_encoder(data)}
        delivered = 0
        for socket_id, websocket in sockets:
            try:
                await websocket.send_json(payload)
                delivered += 1
            except Exception as e:
                track_push_failure(event)
                logger.warning(
                    f"Realtime push failed: {event}",
                    extra={
                        "user_id": key,
                        "socket_id": socket_id,
                        "error_type": type(e).__name__,
                        "error_message": str(e),
                    },
                )
                self.disconnect(key, socket_id)
        return delivered


# Singleton instance
_connection_manager: ConnectionManager | None = None


def get_connection_manager() -> ConnectionManager:
    """Get or create the process-wide connection manager."""
    global _connection_manager
    if _connection_manager is None:
        _connection_manager = ConnectionManager()
    return _connection_manager
