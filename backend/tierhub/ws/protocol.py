"""WebSocket wire protocol helpers."""

from __future__ import annotations

import json
from typing import Any

WS_PROTOCOL_VERSION = 1

CLOSE_CLIENT_ID_REQUIRED = 4400
CLOSE_HEARTBEAT_TIMEOUT = 4408
CLOSE_SUPERSEDED = 4409


class InvalidFrameError(ValueError):
    """Raised when a client text frame is not a protocol envelope."""


def ws_event(event_type: str, payload: dict[str, Any], *, request_id: str | None = None) -> dict[str, Any]:
    message: dict[str, Any] = {"v": WS_PROTOCOL_VERSION, "type": event_type, "payload": payload}
    if request_id is not None:
        message["request_id"] = request_id
    return message


async def ws_send_event(
    websocket: Any,
    event_type: str,
    payload: dict[str, Any],
    *,
    request_id: str | None = None,
) -> None:
    message = ws_event(event_type, payload, request_id=request_id)
    if hasattr(websocket, "send_json"):
        await websocket.send_json(message)
        return
    if hasattr(websocket, "send_text"):
        await websocket.send_text(json.dumps(message))


def parse_client_frame(message: str) -> tuple[str, Any, str | None]:
    """Split a client frame into ``(type, payload, request_id)``.

    ``payload`` is returned as sent; the event handlers normalize it.
    """
    try:
        frame = json.loads(message)
    except json.JSONDecodeError as exc:
        raise InvalidFrameError("frame is not valid JSON") from exc
    if not isinstance(frame, dict):
        raise InvalidFrameError("frame must be a JSON object")

    event_type = frame.get("type")
    if not isinstance(event_type, str) or not event_type:
        raise InvalidFrameError("frame type is required")

    request_id = frame.get("request_id", frame.get("requestId"))
    if request_id is not None and not isinstance(request_id, str):
        request_id = str(request_id)
    return event_type, frame.get("payload"), request_id
