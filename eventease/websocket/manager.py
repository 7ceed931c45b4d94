"""
Room-based WebSocket connection registry.

Connections join named rooms (``event-{id}`` while viewing an event,
``user-{id}`` for an authenticated account's personal notifications) and
``publish`` fans a message out to every member of a room. Delivery is
best-effort: no persistence, no replay, no acknowledgement.

One ``ConnectionManager`` is created per application and kept on
``app.state.rooms``; request handlers get it through ``get_rooms``.
"""
import asyncio
import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set

from fastapi import Request, WebSocket

from eventease.core.logging import logger


def event_room(event_id) -> str:
    return f"event-{event_id}"


def user_room(user_id) -> str:
    return f"user-{user_id}"


@dataclass(eq=False)
class Connection:
    """A live client connection and the rooms it currently belongs to."""
    websocket: Any
    user_id: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    rooms: Set[str] = field(default_factory=set)

    async def send(self, event: str, data: Any) -> None:
        await self.websocket.send_text(json.dumps({"event": event, "data": data}, default=str))


class ConnectionManager:
    def __init__(self):
        # room name -> member connections
        self._rooms: Dict[str, Set[Connection]] = {}
        self._connections: Dict[str, Connection] = {}
        self.lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, user_id: Optional[str] = None) -> Connection:
        """Accept the socket and register it; authenticated sockets join their personal room."""
        await websocket.accept()
        conn = Connection(websocket=websocket, user_id=user_id)
        async with self.lock:
            self._connections[conn.id] = conn
        if user_id:
            await self.join(conn, user_room(user_id))
        logger.info(f"WebSocket {conn.id} connected (user={user_id})")
        return conn

    async def disconnect(self, conn: Connection) -> None:
        """Drop the connection from every room. Safe to call more than once."""
        async with self.lock:
            self._connections.pop(conn.id, None)
            for room in list(conn.rooms):
                self._discard(conn, room)
        logger.info(f"WebSocket {conn.id} disconnected")

    async def join(self, conn: Connection, room: str) -> None:
        async with self.lock:
            self._rooms.setdefault(room, set()).add(conn)
            conn.rooms.add(room)
        logger.debug(f"WebSocket {conn.id} joined {room}")

    async def leave(self, conn: Connection, room: str) -> None:
        async with self.lock:
            self._discard(conn, room)
        logger.debug(f"WebSocket {conn.id} left {room}")

    def _discard(self, conn: Connection, room: str) -> None:
        members = self._rooms.get(room)
        if members is not None:
            members.discard(conn)
            if not members:
                del self._rooms[room]
        conn.rooms.discard(room)

    def members(self, room: str) -> Set[Connection]:
        """Snapshot of the room's current members."""
        return set(self._rooms.get(room, ()))

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def publish(self, room: str, event: str, data: Any, exclude: Optional[Connection] = None) -> int:
        """
        Send ``{"event": event, "data": data}`` to every member of ``room``.

        Members whose socket fails are disconnected; the error is logged and
        not raised. Returns the number of successful deliveries.
        """
        delivered = 0
        for conn in self.members(room):
            if conn is exclude:
                continue
            try:
                await conn.send(event, data)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping WebSocket {conn.id} after failed send to {room}: {e}")
                await self.disconnect(conn)
        return delivered


def get_rooms(request: Request) -> ConnectionManager:
    """Dependency returning the application's room registry."""
    return request.app.state.rooms
