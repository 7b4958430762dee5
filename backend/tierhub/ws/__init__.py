"""WebSocket transport: protocol envelope, heartbeat, fan-out and routes."""
