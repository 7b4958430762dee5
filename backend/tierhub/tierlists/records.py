"""Domain records shared by the store, the rooms and the views."""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field


@dataclass(slots=True)
class Tierlist:
    """A named collaborative workspace."""

    id: str
    name: str
    description: str | None
    share_code: str
    created_at: str
    updated_at: str


@dataclass(slots=True)
class Item:
    """A rankable entity owned by exactly one tierlist."""

    id: str
    tierlist_id: str
    name: str
    image: str | None = None
    description: str | None = None
    created_at: str = ""
    updated_at: str = ""


@dataclass(slots=True)
class Tier:
    """An ordered bucket; ``item_order`` is the authoritative placement data."""

    id: str
    tierlist_id: str
    name: str
    color: str
    position: int
    item_order: list[str] = field(default_factory=list)


@dataclass(slots=True)
class FullState:
    """One reconciliation read of a tierlist."""

    tierlist: Tierlist
    items: list[Item]
    tiers: list[Tier]


@dataclass(frozen=True, slots=True)
class DeletedItem:
    """Result of an item deletion.

    ``orphaned_image`` is set only when no remaining item references the
    deleted item's image, so the asset itself can be removed.
    """

    item_id: str
    deleted: bool
    orphaned_image: str | None = None
