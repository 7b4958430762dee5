"""Connection and membership bookkeeping.

Each logical client (a stable id the browser keeps across reloads) owns at
most one live connection. Room sizes are always counted from the current
membership sets, never from a running counter.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from tierhub.ws.protocol import ws_send_event

logger = logging.getLogger(__name__)


@dataclass(eq=False, slots=True)
class Connection:
    """One accepted websocket and the room/hub it belongs to."""

    connection_id: str
    client_id: str
    websocket: Any
    room_id: str | None = None
    in_hub: bool = False
    alive: bool = True

    async def send(self, event_type: str, payload: dict[str, Any], *, request_id: str | None = None) -> None:
        await ws_send_event(self.websocket, event_type, payload, request_id=request_id)

    async def close(self, *, code: int, reason: str) -> None:
        self.alive = False
        try:
            await self.websocket.close(code=code, reason=reason)
        except Exception:
            # Already closed by the peer.
            logger.debug("close(%s) on %s failed", code, self.connection_id, exc_info=True)


class SessionTracker:
    def __init__(self) -> None:
        self._by_client: dict[str, Connection] = {}
        self._rooms: dict[str, set[Connection]] = {}
        self._hub: set[Connection] = set()

    def current(self, client_id: str) -> Connection | None:
        return self._by_client.get(client_id)

    def register(self, connection: Connection) -> Connection | None:
        """Make ``connection`` the live one for its client id.

        A previous connection of the same client is detached from its room and
        the hub and returned so the caller can close it.
        """
        prior = self._by_client.get(connection.client_id)
        self._by_client[connection.client_id] = connection
        if prior is None or prior is connection:
            return None
        self._detach(prior)
        return prior

    def unregister(self, connection: Connection) -> str | None:
        """Forget ``connection``; returns the room it was still in, if any.

        Safe to call more than once and for connections already superseded.
        """
        if self._by_client.get(connection.client_id) is connection:
            del self._by_client[connection.client_id]
        return self._detach(connection)

    def _detach(self, connection: Connection) -> str | None:
        connection.alive = False
        self.leave_hub(connection)
        return self.leave_room(connection)

    def join_room(self, connection: Connection, room_id: str) -> str | None:
        """Move ``connection`` into ``room_id``; returns the room it left."""
        previous = connection.room_id
        if previous == room_id:
            return None
        if previous is not None:
            self.leave_room(connection)
        self._rooms.setdefault(room_id, set()).add(connection)
        connection.room_id = room_id
        return previous

    def leave_room(self, connection: Connection) -> str | None:
        room_id = connection.room_id
        if room_id is None:
            return None
        members = self._rooms.get(room_id)
        if members is not None:
            members.discard(connection)
            if not members:
                self._rooms.pop(room_id, None)
        connection.room_id = None
        return room_id

    def room_members(self, room_id: str) -> list[Connection]:
        return list(self._rooms.get(room_id, ()))

    def room_size(self, room_id: str) -> int:
        return len(self._rooms.get(room_id, ()))

    def join_hub(self, connection: Connection) -> None:
        self._hub.add(connection)
        connection.in_hub = True

    def leave_hub(self, connection: Connection) -> None:
        self._hub.discard(connection)
        connection.in_hub = False

    def hub_members(self) -> list[Connection]:
        return list(self._hub)

    def connection_count(self) -> int:
        return len(self._by_client)
