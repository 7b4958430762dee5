"""Item ordering inside tiers.

A tierlist's placement data is the mapping ``tier_id -> item_order``. An item
that appears in no order is unranked; unranked is never stored, it is the
absence of the item id from every order.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Callable

UNRANKED = "unranked"


@dataclass(frozen=True, slots=True)
class MoveResult:
    """Outcome of one item move, limited to the tiers whose order changed."""

    item_id: str
    source_tier_id: str | None
    target_tier_id: str
    position: int | None
    orders: dict[str, list[str]] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return bool(self.orders)


def remove_from_order(order: Sequence[str], item_id: str) -> list[str]:
    return [candidate for candidate in order if candidate != item_id]


def clamp_position(position: int | None, length: int) -> int:
    if position is None:
        return length
    return min(max(int(position), 0), length)


def insert_into_order(order: Sequence[str], item_id: str, position: int | None) -> tuple[list[str], int]:
    """Remove ``item_id`` if present, then insert it at the clamped position.

    Returns the new order and the index actually used. The result does not
    depend on whether the item was already in this order.
    """
    base = remove_from_order(order, item_id)
    index = clamp_position(position, len(base))
    base.insert(index, item_id)
    return base, index


def find_tier_of(orders: Mapping[str, Sequence[str]], item_id: str) -> str | None:
    for tier_id, order in orders.items():
        if item_id in order:
            return tier_id
    return None


def plan_move(
    orders: Mapping[str, Sequence[str]],
    item_id: str,
    target_tier_id: str,
    position: int | None = None,
) -> MoveResult:
    """Compute the orders produced by moving ``item_id`` to ``target_tier_id``.

    ``orders`` must hold every tier of the tierlist. The item is removed from
    every tier other than the target (so a corrupted double placement heals),
    then inserted into the target unless the target is :data:`UNRANKED`.
    """
    if target_tier_id != UNRANKED and target_tier_id not in orders:
        raise KeyError(target_tier_id)

    source_tier_id = find_tier_of(orders, item_id)
    changed: dict[str, list[str]] = {}
    for tier_id, order in orders.items():
        if tier_id == target_tier_id or item_id not in order:
            continue
        changed[tier_id] = remove_from_order(order, item_id)

    used_position: int | None = None
    if target_tier_id != UNRANKED:
        current = list(orders[target_tier_id])
        new_order, used_position = insert_into_order(current, item_id, position)
        if new_order != current:
            changed[target_tier_id] = new_order

    return MoveResult(
        item_id=item_id,
        source_tier_id=source_tier_id,
        target_tier_id=target_tier_id,
        position=used_position,
        orders=changed,
    )


def drop_item(orders: Mapping[str, Sequence[str]], item_id: str) -> dict[str, list[str]]:
    """Return the new orders of the tiers that listed ``item_id``."""
    return {
        tier_id: remove_from_order(order, item_id)
        for tier_id, order in orders.items()
        if item_id in order
    }


def derive_assignments(orders: Mapping[str, Sequence[str]]) -> dict[str, str]:
    """Rebuild the item -> tier map by scanning every order."""
    assignments: dict[str, str] = {}
    for tier_id, order in orders.items():
        for item_id in order:
            assignments.setdefault(item_id, tier_id)
    return assignments


def sanitize_orders(
    orders: Mapping[str, Sequence[str]],
    known_item_ids: Iterable[str],
) -> tuple[dict[str, list[str]], list[str]]:
    """Drop unknown ids and repeated placements, keeping the first occurrence.

    Tiers are visited in mapping order, so callers pass orders sorted by tier
    position. Returns the cleaned orders and the ids that were dropped.
    """
    known = set(known_item_ids)
    seen: set[str] = set()
    cleaned: dict[str, list[str]] = {}
    dropped: list[str] = []
    for tier_id, order in orders.items():
        kept: list[str] = []
        for item_id in order:
            if item_id not in known or item_id in seen:
                dropped.append(item_id)
                continue
            seen.add(item_id)
            kept.append(item_id)
        cleaned[tier_id] = kept
    return cleaned, dropped


def unranked_items(
    items: Iterable[Any],
    orders: Mapping[str, Sequence[str]],
    *,
    key: Callable[[Any], str] = lambda item: item.id,
    name: Callable[[Any], str] = lambda item: item.name,
) -> list[Any]:
    """Items absent from every order, sorted alphabetically by name."""
    placed = set(derive_assignments(orders))
    pending = [item for item in items if key(item) not in placed]
    pending.sort(key=lambda item: (str(name(item) or "").casefold(), key(item)))
    return pending


__all__ = [
    "MoveResult",
    "UNRANKED",
    "clamp_position",
    "derive_assignments",
    "drop_item",
    "find_tier_of",
    "insert_into_order",
    "plan_move",
    "remove_from_order",
    "sanitize_orders",
    "unranked_items",
]
