"""In-memory room state and the registry of rooms keyed by tierlist id."""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import AsyncIterator
from collections.abc import Mapping
from collections.abc import Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from dataclasses import field
from typing import TYPE_CHECKING

from tierengine.ordering import derive_assignments
from tierengine.ordering import drop_item
from tierengine.ordering import unranked_items

from tierhub.tierlists.errors import TierlistNotFoundError
from tierhub.tierlists.records import Item
from tierhub.tierlists.records import Tier
from tierhub.tierlists.records import Tierlist

if TYPE_CHECKING:
    from tierhub.rooms.loader import RoomLoader

logger = logging.getLogger(__name__)


class RoomError(Exception):
    """Base class for room-domain errors."""


class RoomNotFoundError(RoomError):
    """Raised when no room exists for a tierlist id."""


class RoomLoadError(RoomError):
    """Raised when a room could not be reconciled from the store."""

    def __init__(self, tierlist_id: str) -> None:
        super().__init__(f"room {tierlist_id} could not be loaded")
        self.tierlist_id = tierlist_id


class LoadState(str, enum.Enum):
    NOT_LOADED = "not_loaded"
    LOADING = "loading"
    LOADED = "loaded"


@dataclass(slots=True)
class RoomState:
    """Cached collaborative state of one tierlist.

    Tier ``item_order`` lists are the only placement data; the item -> tier
    map and the unranked list are derived from them on demand.
    """

    tierlist_id: str
    tierlist: Tierlist | None = None
    items: list[Item] = field(default_factory=list)
    tiers: list[Tier] = field(default_factory=list)
    connected_users: int = 0
    last_modified: str | None = None
    version: int = 0
    load_state: LoadState = LoadState.NOT_LOADED
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def loaded(self) -> bool:
        return self.load_state is LoadState.LOADED

    def tier_orders(self) -> dict[str, list[str]]:
        """``tier_id -> item_order`` in tier position order."""
        return {tier.id: list(tier.item_order) for tier in sorted(self.tiers, key=lambda tier: tier.position)}

    def assignments(self) -> dict[str, str]:
        return derive_assignments(self.tier_orders())

    def unranked_items(self) -> list[Item]:
        return unranked_items(self.items, self.tier_orders())

    def find_item(self, item_id: str) -> Item | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def find_tier(self, tier_id: str) -> Tier | None:
        for tier in self.tiers:
            if tier.id == tier_id:
                return tier
        return None

    def apply_orders(self, orders: Mapping[str, Sequence[str]]) -> None:
        for tier in self.tiers:
            if tier.id in orders:
                tier.item_order = list(orders[tier.id])

    def remove_item(self, item_id: str) -> dict[str, list[str]]:
        """Drop an item from the item list and every tier order.

        Returns the orders of the tiers that listed it.
        """
        self.items = [item for item in self.items if item.id != item_id]
        changed = drop_item(self.tier_orders(), item_id)
        self.apply_orders(changed)
        return changed

    def replace_contents(
        self,
        *,
        tierlist: Tierlist,
        items: list[Item],
        tiers: list[Tier],
        loaded_at: str,
    ) -> None:
        """Swap in a fresh reconciliation result. Live session count is kept."""
        self.tierlist = tierlist
        self.items = items
        self.tiers = tiers
        self.last_modified = loaded_at
        self.version += 1

    def touch(self, now: str) -> None:
        self.last_modified = now
        self.version += 1


class RoomRegistry:
    """Process-wide map of tierlist id -> :class:`RoomState`.

    Rooms are created lazily and live for the rest of the process, except
    shells for ids that turned out not to exist.
    """

    def __init__(self, loader: RoomLoader) -> None:
        self._loader = loader
        self._rooms: dict[str, RoomState] = {}

    def get_or_create_room(self, tierlist_id: str) -> RoomState:
        """Return the room, creating an unloaded shell if needed. Never blocks."""
        room = self._rooms.get(tierlist_id)
        if room is None:
            room = RoomState(tierlist_id=tierlist_id)
            self._rooms[tierlist_id] = room
        return room

    def get_room(self, tierlist_id: str) -> RoomState:
        room = self._rooms.get(tierlist_id)
        if room is None:
            raise RoomNotFoundError(f"tierlist_id={tierlist_id} has no room")
        return room

    def find_room(self, tierlist_id: str) -> RoomState | None:
        return self._rooms.get(tierlist_id)

    def list_rooms(self) -> list[RoomState]:
        return [self._rooms[tierlist_id] for tierlist_id in sorted(self._rooms)]

    def discard(self, tierlist_id: str) -> None:
        self._rooms.pop(tierlist_id, None)

    @asynccontextmanager
    async def lock_room(self, tierlist_id: str) -> AsyncIterator[RoomState]:
        """Hold the room's write lock; every mutation runs inside it."""
        room = self.get_or_create_room(tierlist_id)
        async with room.lock:
            yield room

    async def ensure_loaded(self, tierlist_id: str) -> RoomState:
        """Load the room from the store unless it is already loaded.

        Concurrent callers queue on the room lock, so only the first one
        reads the store. A failed load leaves the room ``NOT_LOADED`` and the
        next caller tries again.
        """
        room = self.get_or_create_room(tierlist_id)
        if room.loaded:
            return room
        async with room.lock:
            if room.loaded:
                return room
            try:
                await self.refresh(room)
            except TierlistNotFoundError:
                if room.connected_users == 0:
                    self.discard(tierlist_id)
                raise
        return room

    async def refresh(self, room: RoomState) -> RoomState:
        """Reconcile ``room`` from the store. Caller holds ``room.lock``."""
        previous = room.load_state
        room.load_state = LoadState.LOADING
        try:
            await self._loader.load(room)
        except BaseException:
            room.load_state = LoadState.NOT_LOADED if previous is not LoadState.LOADED else previous
            raise
        room.load_state = LoadState.LOADED
        return room

    async def reload(self, tierlist_id: str) -> RoomState:
        async with self.lock_room(tierlist_id) as room:
            return await self.refresh(room)


__all__ = [
    "LoadState",
    "RoomError",
    "RoomLoadError",
    "RoomNotFoundError",
    "RoomRegistry",
    "RoomState",
]
