"""WebSocket route for collaborative rooms and the tierlist hub."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi import WebSocket

from tierhub.runtime import Runtime

from .heartbeat import ws_message_loop
from .protocol import CLOSE_CLIENT_ID_REQUIRED

router = APIRouter()


def client_id_from(websocket: WebSocket) -> str:
    raw = websocket.query_params.get("client_id") or websocket.query_params.get("clientId") or ""
    return raw.strip()


@router.websocket("/ws")
async def ws_collab(websocket: WebSocket) -> None:
    """One socket per browser tab; ``client_id`` identifies the browser across reloads."""
    runtime: Runtime = websocket.app.state.runtime
    client_id = client_id_from(websocket)
    await websocket.accept()
    if not client_id:
        await websocket.close(code=CLOSE_CLIENT_ID_REQUIRED, reason="CLIENT_ID_REQUIRED")
        return

    connection = await runtime.engine.connect(client_id, websocket)
    try:
        await ws_message_loop(
            websocket,
            engine=runtime.engine,
            connection=connection,
            settings=runtime.settings,
        )
    finally:
        await runtime.engine.disconnect(connection)
