"""Persistence helpers for tierlists, items and tiers."""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Mapping
from collections.abc import Sequence
from typing import Any

from tierhub.core.db import create_sqlite_connection
from tierhub.core.ids import new_id
from tierhub.tierlists.errors import IdConflictError
from tierhub.tierlists.errors import ItemNotFoundError
from tierhub.tierlists.errors import ShareCodeConflictError
from tierhub.tierlists.errors import TierNotFoundError
from tierhub.tierlists.records import DeletedItem
from tierhub.tierlists.records import FullState
from tierhub.tierlists.records import Item
from tierhub.tierlists.records import Tier
from tierhub.tierlists.records import Tierlist

TIERLIST_UPDATABLE_FIELDS = ("name", "description")
ITEM_UPDATABLE_FIELDS = ("name", "image", "description")


def _tierlist_from_row(row: sqlite3.Row) -> Tierlist:
    return Tierlist(
        id=str(row["id"]),
        name=str(row["name"]),
        description=row["description"],
        share_code=str(row["share_code"]),
        created_at=str(row["created_at"]),
        updated_at=str(row["updated_at"]),
    )


def _item_from_row(row: sqlite3.Row) -> Item:
    return Item(
        id=str(row["id"]),
        tierlist_id=str(row["tierlist_id"]),
        name=str(row["name"]),
        image=row["image"],
        description=row["description"],
        created_at=str(row["created_at"]),
        updated_at=str(row["updated_at"]),
    )


def _decode_order(raw: Any) -> list[str]:
    if not raw:
        return []
    decoded = json.loads(raw)
    if not isinstance(decoded, list):
        return []
    return [str(item_id) for item_id in decoded]


def _tier_from_row(row: sqlite3.Row) -> Tier:
    return Tier(
        id=str(row["id"]),
        tierlist_id=str(row["tierlist_id"]),
        name=str(row["name"]),
        color=str(row["color"]),
        position=int(row["position"]),
        item_order=_decode_order(row["item_order"]),
    )


def _encode_order(order: Sequence[str]) -> str:
    return json.dumps(list(order), separators=(",", ":"))


def _is_share_code_conflict(exc: sqlite3.IntegrityError) -> bool:
    return "share_code" in str(exc)


def _reject_foreign_ids(conn: sqlite3.Connection, table: str, owned: Sequence[tuple[str, str]]) -> None:
    """Raise when any ``(id, tierlist_id)`` pair names a row of another tierlist."""
    for record_id, tierlist_id in owned:
        row = conn.execute(f"SELECT tierlist_id FROM {table} WHERE id = ?", (record_id,)).fetchone()
        if row is not None and str(row["tierlist_id"]) != tierlist_id:
            raise IdConflictError(table.rstrip("s"), record_id)


def _insert_items(conn: sqlite3.Connection, items: Sequence[Item]) -> None:
    _reject_foreign_ids(conn, "items", [(item.id, item.tierlist_id) for item in items])
    conn.executemany(
        """
        INSERT INTO items (id, tierlist_id, name, image, description, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            name = excluded.name,
            image = excluded.image,
            description = excluded.description,
            updated_at = excluded.updated_at
        WHERE items.tierlist_id = excluded.tierlist_id
        """,
        [
            (item.id, item.tierlist_id, item.name, item.image, item.description, item.created_at, item.updated_at)
            for item in items
        ],
    )


def _insert_tiers(conn: sqlite3.Connection, tiers: Sequence[Tier], now: str) -> None:
    conn.executemany(
        """
        INSERT INTO tiers (id, tierlist_id, name, color, position, item_order, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        [
            (tier.id, tier.tierlist_id, tier.name, tier.color, tier.position, _encode_order(tier.item_order), now, now)
            for tier in tiers
        ],
    )


def _read_full_state(conn: sqlite3.Connection, tierlist_id: str) -> FullState | None:
    tierlist_row = conn.execute("SELECT * FROM tierlists WHERE id = ?", (tierlist_id,)).fetchone()
    if tierlist_row is None:
        return None
    item_rows = conn.execute(
        "SELECT * FROM items WHERE tierlist_id = ? ORDER BY created_at, rowid",
        (tierlist_id,),
    ).fetchall()
    tier_rows = conn.execute(
        "SELECT * FROM tiers WHERE tierlist_id = ? ORDER BY position, rowid",
        (tierlist_id,),
    ).fetchall()
    return FullState(
        tierlist=_tierlist_from_row(tierlist_row),
        items=[_item_from_row(row) for row in item_rows],
        tiers=[_tier_from_row(row) for row in tier_rows],
    )


def insert_tierlist(*, db_path: str, tierlist: Tierlist, tiers: Sequence[Tier]) -> None:
    """Insert a tierlist together with its initial tiers."""
    conn = create_sqlite_connection(db_path)
    try:
        conn.execute("BEGIN")
        conn.execute(
            """
            INSERT INTO tierlists (id, name, description, share_code, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                tierlist.id,
                tierlist.name,
                tierlist.description,
                tierlist.share_code,
                tierlist.created_at,
                tierlist.updated_at,
            ),
        )
        _insert_tiers(conn, tiers, tierlist.created_at)
        conn.commit()
    except sqlite3.IntegrityError as exc:
        conn.rollback()
        if _is_share_code_conflict(exc):
            raise ShareCodeConflictError(tierlist.share_code) from exc
        raise
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def list_tierlists(*, db_path: str) -> list[Tierlist]:
    conn = create_sqlite_connection(db_path)
    try:
        rows = conn.execute("SELECT * FROM tierlists ORDER BY updated_at DESC, rowid DESC").fetchall()
        return [_tierlist_from_row(row) for row in rows]
    finally:
        conn.close()


def get_tierlist(*, db_path: str, tierlist_id: str) -> Tierlist | None:
    conn = create_sqlite_connection(db_path)
    try:
        row = conn.execute("SELECT * FROM tierlists WHERE id = ?", (tierlist_id,)).fetchone()
        return None if row is None else _tierlist_from_row(row)
    finally:
        conn.close()


def get_tierlist_by_share_code(*, db_path: str, share_code: str) -> Tierlist | None:
    conn = create_sqlite_connection(db_path)
    try:
        row = conn.execute("SELECT * FROM tierlists WHERE share_code = ?", (share_code,)).fetchone()
        return None if row is None else _tierlist_from_row(row)
    finally:
        conn.close()


def update_tierlist(*, db_path: str, tierlist_id: str, fields: Mapping[str, Any], updated_at: str) -> bool:
    """Update whitelisted tierlist columns; returns False when the row is missing."""
    columns = [name for name in TIERLIST_UPDATABLE_FIELDS if name in fields]
    assignments = ", ".join(f"{name} = ?" for name in [*columns, "updated_at"])
    values = [fields[name] for name in columns]
    conn = create_sqlite_connection(db_path)
    try:
        cursor = conn.execute(
            f"UPDATE tierlists SET {assignments} WHERE id = ?",
            (*values, updated_at, tierlist_id),
        )
        conn.commit()
        return cursor.rowcount > 0
    finally:
        conn.close()


def update_share_code(*, db_path: str, tierlist_id: str, share_code: str, updated_at: str) -> bool:
    conn = create_sqlite_connection(db_path)
    try:
        cursor = conn.execute(
            "UPDATE tierlists SET share_code = ?, updated_at = ? WHERE id = ?",
            (share_code, updated_at, tierlist_id),
        )
        conn.commit()
        return cursor.rowcount > 0
    except sqlite3.IntegrityError as exc:
        conn.rollback()
        if _is_share_code_conflict(exc):
            raise ShareCodeConflictError(share_code) from exc
        raise
    finally:
        conn.close()


def delete_tierlist(*, db_path: str, tierlist_id: str) -> bool:
    """Delete a tierlist; items and tiers go with it through FK cascade."""
    conn = create_sqlite_connection(db_path)
    try:
        cursor = conn.execute("DELETE FROM tierlists WHERE id = ?", (tierlist_id,))
        conn.commit()
        return cursor.rowcount > 0
    finally:
        conn.close()


def get_full_state(*, db_path: str, tierlist_id: str) -> FullState | None:
    """Read tierlist, items and tiers (with their orders) in one snapshot."""
    conn = create_sqlite_connection(db_path)
    try:
        conn.execute("BEGIN")
        state = _read_full_state(conn, tierlist_id)
        conn.rollback()
        return state
    finally:
        conn.close()


def upsert_items(*, db_path: str, items: Sequence[Item]) -> None:
    """Insert items, replacing mutable fields of rows that already exist."""
    if not items:
        return
    conn = create_sqlite_connection(db_path)
    try:
        conn.execute("BEGIN")
        _insert_items(conn, items)
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def update_item_fields(
    *,
    db_path: str,
    tierlist_id: str,
    item_id: str,
    fields: Mapping[str, Any],
    updated_at: str,
) -> None:
    columns = [name for name in ITEM_UPDATABLE_FIELDS if name in fields]
    assignments = ", ".join(f"{name} = ?" for name in [*columns, "updated_at"])
    values = [fields[name] for name in columns]
    conn = create_sqlite_connection(db_path)
    try:
        cursor = conn.execute(
            f"UPDATE items SET {assignments} WHERE id = ? AND tierlist_id = ?",
            (*values, updated_at, item_id, tierlist_id),
        )
        if cursor.rowcount == 0:
            conn.rollback()
            raise ItemNotFoundError(item_id)
        conn.commit()
    finally:
        conn.close()


def delete_item(*, db_path: str, tierlist_id: str, item_id: str, updated_at: str) -> DeletedItem:
    """Delete one item and strip it from every tier order of its tierlist."""
    conn = create_sqlite_connection(db_path)
    try:
        conn.execute("BEGIN")
        row = conn.execute(
            "SELECT image FROM items WHERE id = ? AND tierlist_id = ?",
            (item_id, tierlist_id),
        ).fetchone()
        if row is None:
            conn.rollback()
            return DeletedItem(item_id=item_id, deleted=False)

        image = row["image"]
        orphaned_image: str | None = None
        if image:
            (other_refs,) = conn.execute(
                "SELECT COUNT(*) FROM items WHERE image = ? AND id != ?",
                (image, item_id),
            ).fetchone()
            if int(other_refs) == 0:
                orphaned_image = str(image)

        tier_rows = conn.execute(
            "SELECT id, item_order FROM tiers WHERE tierlist_id = ?",
            (tierlist_id,),
        ).fetchall()
        for tier_row in tier_rows:
            order = _decode_order(tier_row["item_order"])
            if item_id not in order:
                continue
            conn.execute(
                "UPDATE tiers SET item_order = ?, updated_at = ? WHERE id = ?",
                (_encode_order([entry for entry in order if entry != item_id]), updated_at, tier_row["id"]),
            )

        conn.execute("DELETE FROM items WHERE id = ? AND tierlist_id = ?", (item_id, tierlist_id))
        conn.commit()
        return DeletedItem(item_id=item_id, deleted=True, orphaned_image=orphaned_image)
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def update_tier_orders(
    *,
    db_path: str,
    tierlist_id: str,
    orders: Mapping[str, Sequence[str]],
    updated_at: str,
) -> None:
    """Write several tier orders of one tierlist atomically."""
    if not orders:
        return
    conn = create_sqlite_connection(db_path)
    try:
        conn.execute("BEGIN")
        for tier_id, order in orders.items():
            cursor = conn.execute(
                "UPDATE tiers SET item_order = ?, updated_at = ? WHERE id = ? AND tierlist_id = ?",
                (_encode_order(order), updated_at, tier_id, tierlist_id),
            )
            if cursor.rowcount == 0:
                raise TierNotFoundError(tier_id)
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def replace_tiers_metadata(*, db_path: str, tierlist_id: str, tiers: Sequence[Tier], updated_at: str) -> None:
    """Make the tierlist's tier rows match ``tiers``.

    Name, color and position are overwritten; ``item_order`` of surviving tiers
    is left alone. Tiers absent from ``tiers`` are deleted, which unranks their
    items.
    """
    keep_ids = [tier.id for tier in tiers]
    conn = create_sqlite_connection(db_path)
    try:
        conn.execute("BEGIN")
        _reject_foreign_ids(conn, "tiers", [(tier.id, tierlist_id) for tier in tiers])
        placeholders = ", ".join("?" for _ in keep_ids)
        if keep_ids:
            conn.execute(
                f"DELETE FROM tiers WHERE tierlist_id = ? AND id NOT IN ({placeholders})",
                (tierlist_id, *keep_ids),
            )
        else:
            conn.execute("DELETE FROM tiers WHERE tierlist_id = ?", (tierlist_id,))
        conn.executemany(
            """
            INSERT INTO tiers (id, tierlist_id, name, color, position, item_order, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                color = excluded.color,
                position = excluded.position,
                updated_at = excluded.updated_at
            WHERE tiers.tierlist_id = excluded.tierlist_id
            """,
            [
                (
                    tier.id,
                    tierlist_id,
                    tier.name,
                    tier.color,
                    tier.position,
                    _encode_order(tier.item_order),
                    updated_at,
                    updated_at,
                )
                for tier in tiers
            ],
        )
        conn.execute("UPDATE tierlists SET updated_at = ? WHERE id = ?", (updated_at, tierlist_id))
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def duplicate_tierlist(*, db_path: str, source_id: str, tierlist: Tierlist) -> FullState | None:
    """Copy tiers, items and placements of ``source_id`` under a new tierlist."""
    conn = create_sqlite_connection(db_path)
    try:
        conn.execute("BEGIN")
        source = _read_full_state(conn, source_id)
        if source is None:
            conn.rollback()
            return None

        now = tierlist.created_at
        item_ids = {item.id: new_id("item") for item in source.items}
        items = [
            Item(
                id=item_ids[item.id],
                tierlist_id=tierlist.id,
                name=item.name,
                image=item.image,
                description=item.description,
                created_at=now,
                updated_at=now,
            )
            for item in source.items
        ]
        tiers = [
            Tier(
                id=new_id("tier"),
                tierlist_id=tierlist.id,
                name=tier.name,
                color=tier.color,
                position=tier.position,
                item_order=[item_ids[item_id] for item_id in tier.item_order if item_id in item_ids],
            )
            for tier in source.tiers
        ]

        conn.execute(
            """
            INSERT INTO tierlists (id, name, description, share_code, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (tierlist.id, tierlist.name, tierlist.description, tierlist.share_code, now, now),
        )
        _insert_items(conn, items)
        _insert_tiers(conn, tiers, now)
        conn.commit()
        return FullState(tierlist=tierlist, items=items, tiers=tiers)
    except sqlite3.IntegrityError as exc:
        conn.rollback()
        if _is_share_code_conflict(exc):
            raise ShareCodeConflictError(tierlist.share_code) from exc
        raise
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def list_image_paths(*, db_path: str) -> set[str]:
    """Every image path still referenced by an item."""
    conn = create_sqlite_connection(db_path)
    try:
        rows = conn.execute("SELECT DISTINCT image FROM items WHERE image IS NOT NULL").fetchall()
        return {str(row["image"]) for row in rows}
    finally:
        conn.close()
