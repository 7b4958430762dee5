"""Sqlite store and tierlist directory workflow tests."""

from __future__ import annotations

import asyncio
import sqlite3
from pathlib import Path

import pytest

from tierhub.tierlists import service
from tierhub.tierlists.errors import IdConflictError
from tierhub.tierlists.errors import ItemNotFoundError
from tierhub.tierlists.errors import StoreError
from tierhub.tierlists.errors import TierNotFoundError
from tierhub.tierlists.errors import TierlistDeleteDisabledError
from tierhub.tierlists.errors import TierlistNotFoundError
from tierhub.tierlists.records import Item
from tierhub.tierlists.store import SqliteTierlistStore


def _item(item_id: str, tierlist_id: str, name: str, image: str | None = None) -> Item:
    return Item(
        id=item_id,
        tierlist_id=tierlist_id,
        name=name,
        image=image,
        created_at="2026-01-01T00:00:00Z",
        updated_at="2026-01-01T00:00:00Z",
    )


def test_create_tierlist_seeds_default_tiers(store: SqliteTierlistStore) -> None:
    """Input: create "Games" -> Output: S..D tiers with their colors, 8-char share code."""

    async def scenario():
        tierlist = await service.create_tierlist(store, name="  Games  ", description="")
        return tierlist, await store.get_full_state(tierlist.id)

    tierlist, state = asyncio.run(scenario())

    assert tierlist.name == "Games"
    assert tierlist.description is None
    assert len(tierlist.share_code) == 8
    assert [(tier.name, tier.color, tier.position) for tier in state.tiers] == [
        ("S", "#ff7f7f", 0),
        ("A", "#ffbf7f", 1),
        ("B", "#ffff7f", 2),
        ("C", "#bfff7f", 3),
        ("D", "#7fff7f", 4),
    ]
    assert all(tier.item_order == [] for tier in state.tiers)
    assert state.items == []


def test_create_tierlist_requires_name(store: SqliteTierlistStore) -> None:
    """Input: blank name -> Output: TierlistValidationError, nothing stored."""
    with pytest.raises(service.TierlistValidationError):
        asyncio.run(service.create_tierlist(store, name="   "))

    assert asyncio.run(store.list_tierlists()) == []


def test_full_state_round_trip_keeps_orders(store: SqliteTierlistStore) -> None:
    """Input: items + tier orders written -> Output: same orders read back."""

    async def scenario():
        tierlist = await service.create_tierlist(store, name="Fruits")
        state = await store.get_full_state(tierlist.id)
        await store.add_items([_item("a", tierlist.id, "Apple"), _item("b", tierlist.id, "Banana")])
        await store.update_tier_orders(tierlist.id, {state.tiers[0].id: ["b", "a"]})
        await store.update_tier_order(tierlist.id, state.tiers[4].id, ["a"])
        return await store.get_full_state(tierlist.id)

    state = asyncio.run(scenario())

    assert [item.id for item in state.items] == ["a", "b"]
    assert state.tiers[0].item_order == ["b", "a"]
    assert state.tiers[4].item_order == ["a"]


def test_add_item_twice_keeps_one_row(store: SqliteTierlistStore) -> None:
    """Input: same item id upserted twice -> Output: one row with the latest fields."""

    async def scenario():
        tierlist = await service.create_tierlist(store, name="Dupes")
        await store.add_item(_item("x", tierlist.id, "First"))
        await store.add_item(_item("x", tierlist.id, "Second"))
        return await store.get_full_state(tierlist.id)

    state = asyncio.run(scenario())

    assert [(item.id, item.name) for item in state.items] == [("x", "Second")]


def test_update_tier_orders_is_atomic(store: SqliteTierlistStore) -> None:
    """Input: one good tier + one missing tier -> Output: TierNotFoundError, nothing written."""

    async def scenario():
        tierlist = await service.create_tierlist(store, name="Atomic")
        state = await store.get_full_state(tierlist.id)
        await store.add_item(_item("a", tierlist.id, "A"))
        with pytest.raises(TierNotFoundError):
            await store.update_tier_orders(tierlist.id, {state.tiers[0].id: ["a"], "tier-missing": ["a"]})
        return await store.get_full_state(tierlist.id)

    state = asyncio.run(scenario())

    assert state.tiers[0].item_order == []


def test_update_item_fields_missing_row(store: SqliteTierlistStore) -> None:
    """Input: update unknown item id -> Output: ItemNotFoundError."""
    with pytest.raises(ItemNotFoundError):
        asyncio.run(store.update_item("tl-any", "nope", {"name": "x"}))


def test_delete_item_reports_orphaned_image_only_when_unshared(store: SqliteTierlistStore) -> None:
    """Input: two items share one image -> Output: image orphaned only after the second delete."""

    async def scenario():
        tierlist = await service.create_tierlist(store, name="Images")
        state = await store.get_full_state(tierlist.id)
        await store.add_items(
            [
                _item("a", tierlist.id, "A", image="images/shared.png"),
                _item("b", tierlist.id, "B", image="images/shared.png"),
            ]
        )
        await store.update_tier_orders(tierlist.id, {state.tiers[0].id: ["a", "b"]})
        first = await store.delete_item(tierlist.id, "a")
        after_first = await store.get_full_state(tierlist.id)
        second = await store.delete_item(tierlist.id, "b")
        missing = await store.delete_item(tierlist.id, "b")
        return first, after_first, second, missing

    first, after_first, second, missing = asyncio.run(scenario())

    assert first.deleted is True and first.orphaned_image is None
    assert after_first.tiers[0].item_order == ["b"]
    assert second.deleted is True and second.orphaned_image == "images/shared.png"
    assert missing.deleted is False


def test_replace_tiers_metadata_keeps_orders_and_drops_missing(store: SqliteTierlistStore) -> None:
    """Input: rename S, drop A..D -> Output: S keeps its order, others deleted."""

    async def scenario():
        tierlist = await service.create_tierlist(store, name="Meta")
        state = await store.get_full_state(tierlist.id)
        await store.add_item(_item("a", tierlist.id, "A"))
        top = state.tiers[0]
        await store.update_tier_orders(tierlist.id, {top.id: ["a"]})
        top.name = "Top"
        top.color = "#000000"
        top.item_order = []
        await store.update_tiers_metadata(tierlist.id, [top])
        return await store.get_full_state(tierlist.id)

    state = asyncio.run(scenario())

    assert [(tier.name, tier.color, tier.item_order) for tier in state.tiers] == [("Top", "#000000", ["a"])]


def test_duplicate_remaps_ids_and_orders(store: SqliteTierlistStore) -> None:
    """Input: duplicate a ranked tierlist -> Output: fresh ids, same placements."""

    async def scenario():
        tierlist = await service.create_tierlist(store, name="Original")
        state = await store.get_full_state(tierlist.id)
        await store.add_items([_item("a", tierlist.id, "A"), _item("b", tierlist.id, "B")])
        await store.update_tier_orders(tierlist.id, {state.tiers[1].id: ["b", "a"]})
        copy = await service.duplicate_tierlist(store, tierlist.id, name="Copy")
        return await store.get_full_state(copy.tierlist.id)

    copy = asyncio.run(scenario())

    names = {item.id: item.name for item in copy.items}
    assert copy.tierlist.name == "Copy"
    assert copy.tierlist.description == "Copy of Original"
    assert not {"a", "b"} & set(names)
    assert [names[item_id] for item_id in copy.tiers[1].item_order] == ["B", "A"]


def test_share_code_regenerate_and_resolve(store: SqliteTierlistStore) -> None:
    """Input: regenerate share code -> Output: new code resolves, case-insensitively."""

    async def scenario():
        tierlist = await service.create_tierlist(store, name="Shared")
        updated = await service.regenerate_share_code(store, tierlist.id)
        resolved = await service.resolve_share_code(store, updated.share_code.lower())
        return tierlist, updated, resolved

    tierlist, updated, resolved = asyncio.run(scenario())

    assert updated.id == tierlist.id
    assert resolved.id == tierlist.id
    with pytest.raises(TierlistNotFoundError):
        asyncio.run(service.resolve_share_code(store, "ZZZZZZZZZ"))


def test_update_tierlist_only_sent_fields(store: SqliteTierlistStore) -> None:
    """Input: PUT with description only -> Output: name untouched; empty PUT rejected."""

    async def scenario():
        tierlist = await service.create_tierlist(store, name="Keep", description="old")
        updated = await service.update_tierlist(
            store, tierlist.id, description="new", fields_set={"description"}
        )
        with pytest.raises(service.TierlistValidationError):
            await service.update_tierlist(store, tierlist.id, fields_set=set())
        return updated

    updated = asyncio.run(scenario())

    assert updated.name == "Keep"
    assert updated.description == "new"


def test_delete_tierlist_policy(store: SqliteTierlistStore) -> None:
    """Input: delete with policy off, then on -> Output: refused, then cascade delete."""

    async def scenario():
        tierlist = await service.create_tierlist(store, name="Gone")
        await store.add_item(_item("a", tierlist.id, "A"))
        with pytest.raises(TierlistDeleteDisabledError):
            await service.delete_tierlist(store, tierlist.id, allowed=False)
        await service.delete_tierlist(store, tierlist.id, allowed=True)
        with pytest.raises(TierlistNotFoundError):
            await service.delete_tierlist(store, tierlist.id, allowed=True)
        return tierlist

    tierlist = asyncio.run(scenario())

    with pytest.raises(TierlistNotFoundError):
        asyncio.run(store.get_full_state(tierlist.id))
    assert asyncio.run(store.list_image_paths()) == set()


def test_sqlite_failure_surfaces_as_store_error(tmp_path: Path) -> None:
    """Input: database path is a directory -> Output: StoreError wrapping sqlite3.Error."""
    broken = SqliteTierlistStore(str(tmp_path))

    with pytest.raises(StoreError) as exc_info:
        asyncio.run(broken.list_tierlists())

    assert isinstance(exc_info.value.__cause__, sqlite3.Error)


def test_item_writes_are_scoped_to_their_tierlist(store: SqliteTierlistStore) -> None:
    """Input: add/update/delete of an id owned by another tierlist -> Output: rejected, owner row untouched."""

    async def scenario():
        first = await service.create_tierlist(store, name="First")
        second = await service.create_tierlist(store, name="Second")
        first_state = await store.get_full_state(first.id)
        await store.add_item(_item("shared-id", first.id, "Mine"))
        await store.update_tier_orders(first.id, {first_state.tiers[0].id: ["shared-id"]})

        with pytest.raises(IdConflictError):
            await store.add_item(_item("shared-id", second.id, "Theirs"))
        with pytest.raises(IdConflictError):
            await store.add_items([_item("fresh", second.id, "Fresh"), _item("shared-id", second.id, "Theirs")])
        with pytest.raises(ItemNotFoundError):
            await store.update_item(second.id, "shared-id", {"name": "Renamed"})
        deleted = await store.delete_item(second.id, "shared-id")
        return deleted, await store.get_full_state(first.id), await store.get_full_state(second.id)

    deleted, first_state, second_state = asyncio.run(scenario())

    assert deleted.deleted is False
    assert [(item.id, item.name) for item in first_state.items] == [("shared-id", "Mine")]
    assert first_state.tiers[0].item_order == ["shared-id"]
    assert second_state.items == []


def test_tier_writes_are_scoped_to_their_tierlist(store: SqliteTierlistStore) -> None:
    """Input: order/metadata writes naming another tierlist's tier -> Output: rejected, owner tier untouched."""

    async def scenario():
        first = await service.create_tierlist(store, name="First")
        second = await service.create_tierlist(store, name="Second")
        first_state = await store.get_full_state(first.id)
        second_state = await store.get_full_state(second.id)
        foreign = first_state.tiers[0]
        await store.add_item(_item("v", first.id, "Victim"))
        await store.update_tier_orders(first.id, {foreign.id: ["v"]})

        with pytest.raises(TierNotFoundError):
            await store.update_tier_orders(second.id, {foreign.id: ["m"]})
        with pytest.raises(IdConflictError):
            await store.update_tiers_metadata(second.id, [*second_state.tiers, foreign])
        return await store.get_full_state(first.id), await store.get_full_state(second.id)

    first_state, second_state = asyncio.run(scenario())

    assert first_state.tiers[0].item_order == ["v"]
    assert first_state.tiers[0].tierlist_id == first_state.tierlist.id
    assert len(second_state.tiers) == 5
