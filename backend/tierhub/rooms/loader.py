"""Reconciles a room from the store.

Loading is a pure read: whatever the store holds replaces the room's
cached items and tiers. Nothing is ever written back, even when the stored
orders need cleaning.
"""

from __future__ import annotations

import logging
import time

from tierengine.ordering import sanitize_orders

from tierhub.core.ids import utc_now_iso
from tierhub.rooms.registry import RoomLoadError
from tierhub.rooms.registry import RoomState
from tierhub.tierlists.errors import StoreError
from tierhub.tierlists.records import Tier
from tierhub.tierlists.store import TierlistStore

logger = logging.getLogger(__name__)


class RoomLoader:
    def __init__(self, store: TierlistStore) -> None:
        self.store = store

    async def load(self, room: RoomState) -> RoomState:
        """Fill ``room`` from one full-state read.

        Raises :class:`TierlistNotFoundError` for unknown ids and
        :class:`RoomLoadError` when the store read fails.
        """
        started = time.perf_counter()
        try:
            state = await self.store.get_full_state(room.tierlist_id)
        except StoreError as exc:
            logger.exception("room %s: store read failed", room.tierlist_id)
            raise RoomLoadError(room.tierlist_id) from exc

        tiers = sorted(state.tiers, key=lambda tier: tier.position)
        orders, dropped = sanitize_orders(
            {tier.id: tier.item_order for tier in tiers},
            (item.id for item in state.items),
        )
        if dropped:
            # Stale or duplicated ids in stored orders; hidden from clients, left in the store.
            logger.warning("room %s: ignored %s stale order entries: %s", room.tierlist_id, len(dropped), dropped)

        room.replace_contents(
            tierlist=state.tierlist,
            items=list(state.items),
            tiers=[
                Tier(
                    id=tier.id,
                    tierlist_id=tier.tierlist_id,
                    name=tier.name,
                    color=tier.color,
                    position=tier.position,
                    item_order=orders[tier.id],
                )
                for tier in tiers
            ],
            loaded_at=utc_now_iso(),
        )
        logger.info(
            "room %s loaded: %s items, %s tiers in %.1f ms",
            room.tierlist_id,
            len(room.items),
            len(room.tiers),
            (time.perf_counter() - started) * 1000,
        )
        return room


__all__ = ["RoomLoader"]
