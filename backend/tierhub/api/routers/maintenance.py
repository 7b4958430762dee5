"""Health and maintenance routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi import Depends

from tierhub.api.deps import get_runtime
from tierhub.runtime import Runtime

router = APIRouter()


@router.get("/api/health")
async def health(runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    return {
        "ok": True,
        "rooms": len(runtime.registry.list_rooms()),
        "connections": runtime.sessions.connection_count(),
    }


@router.post("/api/images/cleanup")
async def cleanup_images(runtime: Runtime = Depends(get_runtime)) -> dict[str, int]:
    """Delete image files that no item references any more."""
    used = await runtime.store.list_image_paths()
    return runtime.images.cleanup_orphans(used)
