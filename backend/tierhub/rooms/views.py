"""Wire payload builders for tierlists, items, tiers and room snapshots."""

from __future__ import annotations

from typing import Any

from tierhub.rooms.registry import RoomState
from tierhub.tierlists.records import Item
from tierhub.tierlists.records import Tier
from tierhub.tierlists.records import Tierlist


def tierlist_view(tierlist: Tierlist) -> dict[str, Any]:
    return {
        "id": tierlist.id,
        "name": tierlist.name,
        "description": tierlist.description,
        "share_code": tierlist.share_code,
        "created_at": tierlist.created_at,
        "updated_at": tierlist.updated_at,
    }


def item_view(item: Item) -> dict[str, Any]:
    return {
        "id": item.id,
        "tierlist_id": item.tierlist_id,
        "name": item.name,
        "image": item.image,
        "description": item.description,
        "created_at": item.created_at,
        "updated_at": item.updated_at,
    }


def tier_view(tier: Tier) -> dict[str, Any]:
    return {
        "id": tier.id,
        "tierlist_id": tier.tierlist_id,
        "name": tier.name,
        "color": tier.color,
        "position": tier.position,
        "item_order": list(tier.item_order),
    }


def room_state_view(room: RoomState) -> dict[str, Any]:
    """Full snapshot sent on join and on sync requests."""
    return {
        "tierlist_id": room.tierlist_id,
        "tierlist": tierlist_view(room.tierlist) if room.tierlist is not None else None,
        "items": [item_view(item) for item in room.items],
        "tiers": [tier_view(tier) for tier in sorted(room.tiers, key=lambda tier: tier.position)],
        "assignments": room.assignments(),
        "unranked": [item.id for item in room.unranked_items()],
        "connected_users": room.connected_users,
        "last_modified": room.last_modified,
        "version": room.version,
        "load_state": room.load_state.value,
    }
