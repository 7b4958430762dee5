"""Tier ordering tests: moves, clamping, unranked derivation."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from tierengine.ordering import (
    UNRANKED,
    derive_assignments,
    drop_item,
    insert_into_order,
    plan_move,
    sanitize_orders,
    unranked_items,
)


@dataclass
class _Item:
    id: str
    name: str


def _apply(orders: dict[str, list[str]], changed: dict[str, list[str]]) -> dict[str, list[str]]:
    merged = {tier_id: list(order) for tier_id, order in orders.items()}
    merged.update(changed)
    return merged


def test_move_within_tier_to_front() -> None:
    """Input: S=[a,b,c], move b to S@0 -> Output: S=[b,a,c]."""
    orders = {"S": ["a", "b", "c"], "A": []}

    result = plan_move(orders, "b", "S", 0)

    assert result.orders == {"S": ["b", "a", "c"]}
    assert result.source_tier_id == "S"
    assert result.position == 0


def test_move_from_unranked_into_middle() -> None:
    """Input: S=[b,a,c], unranked d to S@1 -> Output: S=[b,d,a,c]."""
    orders = {"S": ["b", "a", "c"]}

    result = plan_move(orders, "d", "S", 1)

    assert result.orders == {"S": ["b", "d", "a", "c"]}
    assert result.source_tier_id is None


def test_move_across_tiers_touches_only_source_and_target() -> None:
    orders = {"S": ["a", "b"], "A": ["c"], "B": ["d"]}

    result = plan_move(orders, "a", "A", 0)

    assert result.orders == {"S": ["b"], "A": ["a", "c"]}
    assert "B" not in result.orders


@pytest.mark.parametrize(
    ("position", "expected_index"),
    [(None, 2), (0, 0), (1, 1), (2, 2), (99, 2), (-5, 0)],
)
def test_position_is_clamped_to_order_length(position: int | None, expected_index: int) -> None:
    """Input: S=[x,y] + new item at p -> Output: index min(max(p,0), 2)."""
    new_order, index = insert_into_order(["x", "y"], "z", position)

    assert index == expected_index
    assert new_order.index("z") == expected_index


def test_clamp_is_measured_after_removing_the_item() -> None:
    """Input: S=[a,b,c], move a to S@3 -> Output: a last, index 2."""
    result = plan_move({"S": ["a", "b", "c"]}, "a", "S", 3)

    assert result.orders == {"S": ["b", "c", "a"]}
    assert result.position == 2


def test_move_to_unranked_removes_from_every_tier() -> None:
    orders = {"S": ["a"], "A": ["b"]}

    result = plan_move(orders, "a", UNRANKED)

    assert result.orders == {"S": []}
    assert result.position is None
    assert "a" not in derive_assignments(_apply(orders, result.orders))


def test_move_heals_double_placement() -> None:
    """Input: a listed in S and A, move to B -> Output: a only in B."""
    orders = {"S": ["a"], "A": ["a", "x"], "B": []}

    merged = _apply(orders, plan_move(orders, "a", "B").orders)

    assert merged == {"S": [], "A": ["x"], "B": ["a"]}


def test_noop_move_reports_no_change() -> None:
    result = plan_move({"S": ["a", "b"]}, "a", "S", 0)

    assert not result.changed
    assert result.position == 0


def test_move_to_unknown_tier_raises() -> None:
    with pytest.raises(KeyError):
        plan_move({"S": []}, "a", "missing")


def test_exclusive_membership_after_random_moves() -> None:
    """Input: sequence of moves -> Output: each item in at most one order."""
    orders: dict[str, list[str]] = {"S": [], "A": [], "B": []}
    moves = [
        ("a", "S", 0), ("b", "S", 0), ("c", "A", None), ("a", "A", 1),
        ("b", UNRANKED, None), ("c", "B", 5), ("a", "S", 2), ("b", "B", 0),
    ]
    for item_id, target, position in moves:
        orders = _apply(orders, plan_move(orders, item_id, target, position).orders)
        flat = [item for order in orders.values() for item in order]
        assert len(flat) == len(set(flat))

    assert orders == {"S": ["a"], "A": [], "B": ["b", "c"]}


def test_drop_item_returns_only_listing_tiers() -> None:
    assert drop_item({"S": ["a", "b"], "A": ["c"]}, "b") == {"S": ["a"]}


def test_sanitize_orders_drops_unknown_and_duplicate_ids() -> None:
    cleaned, dropped = sanitize_orders({"S": ["a", "ghost"], "A": ["a", "b"]}, ["a", "b"])

    assert cleaned == {"S": ["a"], "A": ["b"]}
    assert dropped == ["ghost", "a"]


def test_unranked_items_sorted_by_name() -> None:
    items = [_Item("1", "zelda"), _Item("2", "Arle"), _Item("3", "mario"), _Item("4", "banjo")]

    pending = unranked_items(items, {"S": ["3"]})

    assert [item.name for item in pending] == ["Arle", "banjo", "zelda"]
