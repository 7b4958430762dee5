"""Tierlist directory workflows: create, rename, share, duplicate, delete."""

from __future__ import annotations

import logging
from typing import Any

from tierhub.core.ids import new_id
from tierhub.core.ids import new_share_code
from tierhub.core.ids import utc_now_iso
from tierhub.tierlists.errors import ShareCodeConflictError
from tierhub.tierlists.errors import StoreError
from tierhub.tierlists.errors import TierlistDeleteDisabledError
from tierhub.tierlists.errors import TierlistNotFoundError
from tierhub.tierlists.records import FullState
from tierhub.tierlists.records import Tier
from tierhub.tierlists.records import Tierlist
from tierhub.tierlists.store import TierlistStore

logger = logging.getLogger(__name__)

DEFAULT_TIERS: tuple[tuple[str, str], ...] = (
    ("S", "#ff7f7f"),
    ("A", "#ffbf7f"),
    ("B", "#ffff7f"),
    ("C", "#bfff7f"),
    ("D", "#7fff7f"),
)
SHARE_CODE_ATTEMPTS = 5


class TierlistValidationError(ValueError):
    """Raised when a directory request carries unusable fields."""


def _clean_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise TierlistValidationError("name is required")
    return cleaned


def _clean_description(description: str | None) -> str | None:
    if description is None:
        return None
    return description.strip() or None


def default_tiers(tierlist_id: str) -> list[Tier]:
    return [
        Tier(id=new_id("tier"), tierlist_id=tierlist_id, name=name, color=color, position=position)
        for position, (name, color) in enumerate(DEFAULT_TIERS)
    ]


async def create_tierlist(store: TierlistStore, *, name: str, description: str | None = None) -> Tierlist:
    """Create a tierlist seeded with the default S..D tiers."""
    cleaned_name = _clean_name(name)
    for _ in range(SHARE_CODE_ATTEMPTS):
        now = utc_now_iso()
        tierlist = Tierlist(
            id=new_id("tierlist"),
            name=cleaned_name,
            description=_clean_description(description),
            share_code=new_share_code(),
            created_at=now,
            updated_at=now,
        )
        try:
            await store.create_tierlist(tierlist, default_tiers(tierlist.id))
        except ShareCodeConflictError:
            logger.info("share code collision on create, retrying")
            continue
        logger.info("tierlist created: %s (%s)", tierlist.id, tierlist.name)
        return tierlist
    raise StoreError("could not allocate a unique share code")


async def get_tierlist(store: TierlistStore, tierlist_id: str) -> Tierlist:
    tierlist = await store.get_tierlist(tierlist_id)
    if tierlist is None:
        raise TierlistNotFoundError(tierlist_id)
    return tierlist


async def resolve_share_code(store: TierlistStore, share_code: str) -> Tierlist:
    tierlist = await store.get_tierlist_by_share_code(share_code.strip().upper())
    if tierlist is None:
        raise TierlistNotFoundError(share_code)
    return tierlist


async def update_tierlist(
    store: TierlistStore,
    tierlist_id: str,
    *,
    name: str | None = None,
    description: str | None = None,
    fields_set: set[str] | frozenset[str] = frozenset(),
) -> Tierlist:
    """Apply name/description changes; ``fields_set`` says which keys were sent."""
    updates: dict[str, Any] = {}
    if "name" in fields_set:
        updates["name"] = _clean_name(name)
    if "description" in fields_set:
        updates["description"] = _clean_description(description)
    if not updates:
        raise TierlistValidationError("no changes provided")
    if not await store.update_tierlist(tierlist_id, updates):
        raise TierlistNotFoundError(tierlist_id)
    return await get_tierlist(store, tierlist_id)


async def regenerate_share_code(store: TierlistStore, tierlist_id: str) -> Tierlist:
    for _ in range(SHARE_CODE_ATTEMPTS):
        try:
            updated = await store.update_share_code(tierlist_id, new_share_code())
        except ShareCodeConflictError:
            continue
        if not updated:
            raise TierlistNotFoundError(tierlist_id)
        return await get_tierlist(store, tierlist_id)
    raise StoreError("could not allocate a unique share code")


async def duplicate_tierlist(store: TierlistStore, source_id: str, *, name: str) -> FullState:
    """Copy a tierlist including its placements, under fresh ids."""
    cleaned_name = _clean_name(name)
    source = await get_tierlist(store, source_id)
    for _ in range(SHARE_CODE_ATTEMPTS):
        now = utc_now_iso()
        tierlist = Tierlist(
            id=new_id("tierlist"),
            name=cleaned_name,
            description=f"Copy of {source.name}",
            share_code=new_share_code(),
            created_at=now,
            updated_at=now,
        )
        try:
            state = await store.duplicate_tierlist(source_id, tierlist)
        except ShareCodeConflictError:
            continue
        if state is None:
            raise TierlistNotFoundError(source_id)
        logger.info("tierlist %s duplicated into %s", source_id, tierlist.id)
        return state
    raise StoreError("could not allocate a unique share code")


async def delete_tierlist(store: TierlistStore, tierlist_id: str, *, allowed: bool) -> None:
    if not allowed:
        raise TierlistDeleteDisabledError(tierlist_id)
    if not await store.delete_tierlist(tierlist_id):
        raise TierlistNotFoundError(tierlist_id)
    logger.info("tierlist deleted: %s", tierlist_id)
