"""Async store interface consumed by the room engine and the REST routes."""

from __future__ import annotations

import asyncio
import sqlite3
from collections.abc import Mapping
from collections.abc import Sequence
from functools import partial
from typing import Any
from typing import Callable
from typing import Protocol
from typing import TypeVar

from tierhub.core.ids import utc_now_iso
from tierhub.tierlists import repository
from tierhub.tierlists.errors import StoreError
from tierhub.tierlists.errors import TierlistNotFoundError
from tierhub.tierlists.records import DeletedItem
from tierhub.tierlists.records import FullState
from tierhub.tierlists.records import Item
from tierhub.tierlists.records import Tier
from tierhub.tierlists.records import Tierlist
from tierhub.tierlists.schema import init_tierlist_schema

T = TypeVar("T")


class TierlistStore(Protocol):
    """Durable CRUD for tierlists. Every call may fail with :class:`StoreError`."""

    async def get_full_state(self, tierlist_id: str) -> FullState: ...

    async def add_item(self, item: Item) -> None: ...

    async def add_items(self, items: Sequence[Item]) -> None: ...

    async def update_item(self, tierlist_id: str, item_id: str, fields: Mapping[str, Any]) -> None: ...

    async def delete_item(self, tierlist_id: str, item_id: str) -> DeletedItem: ...

    async def update_tier_order(self, tierlist_id: str, tier_id: str, item_ids: Sequence[str]) -> None: ...

    async def update_tier_orders(self, tierlist_id: str, orders: Mapping[str, Sequence[str]]) -> None: ...

    async def update_tiers_metadata(self, tierlist_id: str, tiers: Sequence[Tier]) -> None: ...

    async def create_tierlist(self, tierlist: Tierlist, tiers: Sequence[Tier]) -> None: ...

    async def list_tierlists(self) -> list[Tierlist]: ...

    async def get_tierlist(self, tierlist_id: str) -> Tierlist | None: ...

    async def get_tierlist_by_share_code(self, share_code: str) -> Tierlist | None: ...

    async def update_tierlist(self, tierlist_id: str, fields: Mapping[str, Any]) -> bool: ...

    async def update_share_code(self, tierlist_id: str, share_code: str) -> bool: ...

    async def delete_tierlist(self, tierlist_id: str) -> bool: ...

    async def duplicate_tierlist(self, source_id: str, tierlist: Tierlist) -> FullState | None: ...

    async def list_image_paths(self) -> set[str]: ...


class SqliteTierlistStore:
    """:class:`TierlistStore` over the sqlite repository, run off the event loop."""

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path

    def init_schema(self) -> None:
        init_tierlist_schema(self.db_path)

    async def _run(self, func: Callable[..., T], **kwargs: Any) -> T:
        try:
            return await asyncio.to_thread(partial(func, db_path=self.db_path, **kwargs))
        except sqlite3.Error as exc:
            raise StoreError(f"{func.__name__} failed: {exc}") from exc

    async def get_full_state(self, tierlist_id: str) -> FullState:
        state = await self._run(repository.get_full_state, tierlist_id=tierlist_id)
        if state is None:
            raise TierlistNotFoundError(tierlist_id)
        return state

    async def add_item(self, item: Item) -> None:
        await self._run(repository.upsert_items, items=[item])

    async def add_items(self, items: Sequence[Item]) -> None:
        await self._run(repository.upsert_items, items=list(items))

    async def update_item(self, tierlist_id: str, item_id: str, fields: Mapping[str, Any]) -> None:
        await self._run(
            repository.update_item_fields,
            tierlist_id=tierlist_id,
            item_id=item_id,
            fields=dict(fields),
            updated_at=str(fields.get("updated_at") or utc_now_iso()),
        )

    async def delete_item(self, tierlist_id: str, item_id: str) -> DeletedItem:
        return await self._run(
            repository.delete_item,
            tierlist_id=tierlist_id,
            item_id=item_id,
            updated_at=utc_now_iso(),
        )

    async def update_tier_order(self, tierlist_id: str, tier_id: str, item_ids: Sequence[str]) -> None:
        await self.update_tier_orders(tierlist_id, {tier_id: item_ids})

    async def update_tier_orders(self, tierlist_id: str, orders: Mapping[str, Sequence[str]]) -> None:
        await self._run(
            repository.update_tier_orders,
            tierlist_id=tierlist_id,
            orders={tier_id: list(order) for tier_id, order in orders.items()},
            updated_at=utc_now_iso(),
        )

    async def update_tiers_metadata(self, tierlist_id: str, tiers: Sequence[Tier]) -> None:
        await self._run(
            repository.replace_tiers_metadata,
            tierlist_id=tierlist_id,
            tiers=list(tiers),
            updated_at=utc_now_iso(),
        )

    async def create_tierlist(self, tierlist: Tierlist, tiers: Sequence[Tier]) -> None:
        await self._run(repository.insert_tierlist, tierlist=tierlist, tiers=list(tiers))

    async def list_tierlists(self) -> list[Tierlist]:
        return await self._run(repository.list_tierlists)

    async def get_tierlist(self, tierlist_id: str) -> Tierlist | None:
        return await self._run(repository.get_tierlist, tierlist_id=tierlist_id)

    async def get_tierlist_by_share_code(self, share_code: str) -> Tierlist | None:
        return await self._run(repository.get_tierlist_by_share_code, share_code=share_code)

    async def update_tierlist(self, tierlist_id: str, fields: Mapping[str, Any]) -> bool:
        return await self._run(
            repository.update_tierlist,
            tierlist_id=tierlist_id,
            fields=dict(fields),
            updated_at=utc_now_iso(),
        )

    async def update_share_code(self, tierlist_id: str, share_code: str) -> bool:
        return await self._run(
            repository.update_share_code,
            tierlist_id=tierlist_id,
            share_code=share_code,
            updated_at=utc_now_iso(),
        )

    async def delete_tierlist(self, tierlist_id: str) -> bool:
        return await self._run(repository.delete_tierlist, tierlist_id=tierlist_id)

    async def duplicate_tierlist(self, source_id: str, tierlist: Tierlist) -> FullState | None:
        return await self._run(repository.duplicate_tierlist, source_id=source_id, tierlist=tierlist)

    async def list_image_paths(self) -> set[str]:
        return await self._run(repository.list_image_paths)


__all__ = [
    "SqliteTierlistStore",
    "TierlistStore",
]
