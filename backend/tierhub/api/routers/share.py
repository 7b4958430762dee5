"""Share-code resolution route."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi import Depends

from tierhub.api.deps import get_runtime
from tierhub.api.errors import raise_api_error
from tierhub.rooms.views import tierlist_view
from tierhub.runtime import Runtime
from tierhub.tierlists import service
from tierhub.tierlists.errors import TierlistNotFoundError

router = APIRouter()


@router.get("/api/share/{share_code}")
async def resolve_share_code(share_code: str, runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    """Resolve a public share code to its tierlist."""
    try:
        tierlist = await service.resolve_share_code(runtime.store, share_code)
    except TierlistNotFoundError:
        raise_api_error(
            status_code=404,
            code="SHARE_CODE_NOT_FOUND",
            message="share code not found",
            detail={"share_code": share_code},
        )
    return tierlist_view(tierlist)
