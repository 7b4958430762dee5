"""Server-driven heartbeat and the per-socket receive loop."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any

from fastapi import WebSocketDisconnect

from tierhub.collab.engine import CollabEngine
from tierhub.collab.sessions import Connection
from tierhub.core.config import Settings

from .protocol import CLOSE_HEARTBEAT_TIMEOUT
from .protocol import InvalidFrameError
from .protocol import parse_client_frame
from .protocol import ws_send_event

logger = logging.getLogger(__name__)


class HeartbeatState:
    """Outstanding-ping bookkeeping for one socket.

    ``missed_pongs`` counts consecutive probes that timed out; any pong that
    answers an outstanding probe resets it.
    """

    def __init__(self) -> None:
        self.pinged_at: float | None = None
        self.ponged_at: float | None = None
        self.missed_pongs = 0
        self._answered = asyncio.Event()
        self._answered.set()

    @property
    def outstanding(self) -> bool:
        return not self._answered.is_set()

    def ping_sent(self) -> None:
        self.pinged_at = time.monotonic()
        self._answered.clear()

    def pong_received(self) -> None:
        self.ponged_at = time.monotonic()
        if self.outstanding:
            self.missed_pongs = 0
            self._answered.set()

    async def await_pong(self, timeout_seconds: float) -> bool:
        """Wait for the outstanding probe; a timeout counts as one miss."""
        try:
            await asyncio.wait_for(self._answered.wait(), timeout=timeout_seconds)
        except asyncio.TimeoutError:
            self._answered.set()
            self.missed_pongs += 1
            return False
        return True


def is_pong_message(message: str) -> bool:
    if message == "PONG":
        return True
    try:
        frame = json.loads(message)
    except json.JSONDecodeError:
        return False
    return isinstance(frame, dict) and frame.get("type") == "PONG"


async def heartbeat_loop(
    websocket: Any,
    *,
    heartbeat_state: HeartbeatState,
    interval_seconds: float,
    pong_timeout_seconds: float,
    max_missed_pongs: int,
) -> None:
    """Probe every ``interval_seconds``; close with 4408 after too many misses."""
    idle_seconds = max(interval_seconds - pong_timeout_seconds, 0.0)
    while True:
        await ws_send_event(websocket, "PING", {})
        heartbeat_state.ping_sent()
        if not await heartbeat_state.await_pong(pong_timeout_seconds):
            if heartbeat_state.missed_pongs >= max_missed_pongs:
                logger.info("heartbeat timeout after %s unanswered pings", heartbeat_state.missed_pongs)
                await websocket.close(code=CLOSE_HEARTBEAT_TIMEOUT, reason="HEARTBEAT_TIMEOUT")
                return
        if idle_seconds:
            await asyncio.sleep(idle_seconds)


async def handle_ws_message(
    *,
    engine: CollabEngine,
    connection: Connection,
    heartbeat_state: HeartbeatState,
    message: str,
) -> None:
    """Route one text frame: heartbeat frames first, then protocol events."""
    if message == "PING":
        await connection.send("PONG", {})
        return
    if is_pong_message(message):
        heartbeat_state.pong_received()
        return

    try:
        event_type, payload, request_id = parse_client_frame(message)
    except InvalidFrameError as exc:
        await connection.send("error", {"code": "INVALID_FRAME", "message": str(exc), "event": None})
        return
    if event_type == "PING":
        await connection.send("PONG", {}, request_id=request_id)
        return
    await engine.handle_message(connection, event_type, payload, request_id=request_id)


async def ws_message_loop(
    websocket: Any,
    *,
    engine: CollabEngine,
    connection: Connection,
    settings: Settings,
) -> None:
    heartbeat_state = HeartbeatState()
    heartbeat_task = asyncio.create_task(
        heartbeat_loop(
            websocket,
            heartbeat_state=heartbeat_state,
            interval_seconds=settings.tierhub_ws_heartbeat_interval_seconds,
            pong_timeout_seconds=settings.tierhub_ws_pong_timeout_seconds,
            max_missed_pongs=settings.tierhub_ws_max_missed_pongs,
        )
    )
    try:
        while connection.alive:
            message = await websocket.receive_text()
            await handle_ws_message(
                engine=engine,
                connection=connection,
                heartbeat_state=heartbeat_state,
                message=message,
            )
    except WebSocketDisconnect:
        return
    finally:
        heartbeat_task.cancel()
        try:
            await heartbeat_task
        except asyncio.CancelledError:
            pass
