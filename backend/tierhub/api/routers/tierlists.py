"""Tierlist directory REST routes."""

from __future__ import annotations

from typing import Any
from typing import NoReturn

from fastapi import APIRouter
from fastapi import Depends

from tierhub.api.deps import get_runtime
from tierhub.api.errors import raise_api_error
from tierhub.api.errors import raise_tierlist_not_found
from tierhub.rooms.registry import RoomLoadError
from tierhub.rooms.views import item_view
from tierhub.rooms.views import room_state_view
from tierhub.rooms.views import tier_view
from tierhub.rooms.views import tierlist_view
from tierhub.runtime import Runtime
from tierhub.tierlists import service
from tierhub.tierlists.errors import TierlistDeleteDisabledError
from tierhub.tierlists.errors import TierlistNotFoundError
from tierhub.tierlists.models import CreateTierlistRequest
from tierhub.tierlists.models import DuplicateTierlistRequest
from tierhub.tierlists.models import UpdateTierlistRequest
from tierhub.tierlists.records import Tierlist

router = APIRouter()


def _refresh_cached_tierlist(runtime: Runtime, tierlist: Tierlist) -> None:
    room = runtime.registry.find_room(tierlist.id)
    if room is not None and room.tierlist is not None:
        room.tierlist = tierlist


def _raise_room_unavailable(tierlist_id: str) -> NoReturn:
    raise_api_error(
        status_code=503,
        code="ROOM_LOAD_FAILED",
        message="room state could not be loaded",
        detail={"tierlist_id": tierlist_id},
    )


@router.post("/api/tierlists")
async def create_tierlist(
    payload: CreateTierlistRequest,
    runtime: Runtime = Depends(get_runtime),
) -> dict[str, Any]:
    """Create a tierlist with the default tiers and announce it to the hub."""
    tierlist = await service.create_tierlist(
        runtime.store,
        name=payload.name,
        description=payload.description,
    )
    await runtime.engine.notify_new_tierlist(tierlist)
    return tierlist_view(tierlist)


@router.get("/api/tierlists")
async def list_tierlists(runtime: Runtime = Depends(get_runtime)) -> list[dict[str, Any]]:
    return [tierlist_view(tierlist) for tierlist in await runtime.store.list_tierlists()]


@router.get("/api/tierlists/{tierlist_id}")
async def get_tierlist(tierlist_id: str, runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    try:
        tierlist = await service.get_tierlist(runtime.store, tierlist_id)
    except TierlistNotFoundError:
        raise_tierlist_not_found(tierlist_id)
    return tierlist_view(tierlist)


@router.put("/api/tierlists/{tierlist_id}")
async def update_tierlist(
    tierlist_id: str,
    payload: UpdateTierlistRequest,
    runtime: Runtime = Depends(get_runtime),
) -> dict[str, Any]:
    """Rename or re-describe a tierlist; only the fields sent are changed."""
    try:
        tierlist = await service.update_tierlist(
            runtime.store,
            tierlist_id,
            name=payload.name,
            description=payload.description,
            fields_set=payload.model_fields_set,
        )
    except TierlistNotFoundError:
        raise_tierlist_not_found(tierlist_id)
    _refresh_cached_tierlist(runtime, tierlist)
    return tierlist_view(tierlist)


@router.delete("/api/tierlists/{tierlist_id}")
async def delete_tierlist(tierlist_id: str, runtime: Runtime = Depends(get_runtime)) -> dict[str, bool]:
    try:
        await service.delete_tierlist(
            runtime.store,
            tierlist_id,
            allowed=runtime.settings.tierhub_allow_tierlist_delete,
        )
    except TierlistDeleteDisabledError:
        raise_api_error(
            status_code=403,
            code="TIERLIST_DELETE_DISABLED",
            message="deleting tierlists is disabled",
            detail={"tierlist_id": tierlist_id},
        )
    except TierlistNotFoundError:
        raise_tierlist_not_found(tierlist_id)
    await runtime.engine.notify_tierlist_deleted(tierlist_id)
    return {"ok": True}


@router.get("/api/tierlists/{tierlist_id}/full")
async def get_full_tierlist(tierlist_id: str, runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    """Return the same snapshot a client receives when joining the room."""
    try:
        room = await runtime.registry.ensure_loaded(tierlist_id)
    except TierlistNotFoundError:
        raise_tierlist_not_found(tierlist_id)
    except RoomLoadError:
        _raise_room_unavailable(tierlist_id)
    return room_state_view(room)


@router.post("/api/tierlists/{tierlist_id}/share")
async def regenerate_share_code(tierlist_id: str, runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    try:
        tierlist = await service.regenerate_share_code(runtime.store, tierlist_id)
    except TierlistNotFoundError:
        raise_tierlist_not_found(tierlist_id)
    _refresh_cached_tierlist(runtime, tierlist)
    return {"share_code": tierlist.share_code, "tierlist": tierlist_view(tierlist)}


@router.post("/api/tierlists/{tierlist_id}/duplicate")
async def duplicate_tierlist(
    tierlist_id: str,
    payload: DuplicateTierlistRequest,
    runtime: Runtime = Depends(get_runtime),
) -> dict[str, Any]:
    try:
        state = await service.duplicate_tierlist(runtime.store, tierlist_id, name=payload.name)
    except TierlistNotFoundError:
        raise_tierlist_not_found(tierlist_id)
    await runtime.engine.notify_new_tierlist(state.tierlist)
    return {
        "tierlist": tierlist_view(state.tierlist),
        "items": [item_view(item) for item in state.items],
        "tiers": [tier_view(tier) for tier in state.tiers],
    }


@router.post("/api/tierlists/{tierlist_id}/reload")
async def reload_tierlist(tierlist_id: str, runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    """Drop the cached room state and re-read it from the store."""
    if await runtime.store.get_tierlist(tierlist_id) is None:
        raise_tierlist_not_found(tierlist_id)
    try:
        room = await runtime.engine.reload_room(tierlist_id)
    except TierlistNotFoundError:
        runtime.registry.discard(tierlist_id)
        raise_tierlist_not_found(tierlist_id)
    except RoomLoadError:
        _raise_room_unavailable(tierlist_id)
    return room_state_view(room)
