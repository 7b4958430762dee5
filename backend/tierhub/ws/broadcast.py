"""Fan-out helpers for room and hub broadcasts."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from tierhub.collab.sessions import Connection

logger = logging.getLogger(__name__)


async def broadcast_event(
    connections: Iterable[Connection],
    event_type: str,
    payload: dict[str, Any],
    *,
    origin: Connection | None = None,
    request_id: str | None = None,
) -> list[Connection]:
    """Send one event to every connection; returns the ones that failed.

    ``request_id`` is echoed only to ``origin``, the connection that caused
    the event.
    """
    stale: list[Connection] = []
    for connection in connections:
        if not connection.alive:
            continue
        try:
            await connection.send(
                event_type,
                payload,
                request_id=request_id if connection is origin else None,
            )
        except Exception:
            stale.append(connection)
    for connection in stale:
        logger.info("dropping %s after failed %s send", connection.connection_id, event_type)
        connection.alive = False
    return stale
