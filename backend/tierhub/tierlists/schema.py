"""Schema bootstrap for tierlist tables."""

from __future__ import annotations

from tierhub.core.db import create_sqlite_connection
from tierhub.core.db import enable_wal

# Placement lives on the tier row (item_order, a JSON array of item ids);
# there is no separate assignment table.
CREATE_TIERLIST_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS tierlists (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT NULL,
    share_code TEXT NOT NULL UNIQUE,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS items (
    id TEXT PRIMARY KEY,
    tierlist_id TEXT NOT NULL,
    name TEXT NOT NULL,
    image TEXT NULL,
    description TEXT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (tierlist_id) REFERENCES tierlists(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS tiers (
    id TEXT PRIMARY KEY,
    tierlist_id TEXT NOT NULL,
    name TEXT NOT NULL,
    color TEXT NOT NULL,
    position INTEGER NOT NULL,
    item_order TEXT NOT NULL DEFAULT '[]',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (tierlist_id) REFERENCES tierlists(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_items_tierlist_id ON items(tierlist_id);
CREATE INDEX IF NOT EXISTS idx_items_image ON items(image);
CREATE INDEX IF NOT EXISTS idx_tiers_tierlist_id ON tiers(tierlist_id, position);
"""


def init_tierlist_schema(db_path: str) -> None:
    """Ensure tierlist tables/indexes exist."""
    enable_wal(db_path)
    conn = create_sqlite_connection(db_path)
    try:
        conn.executescript(CREATE_TIERLIST_SCHEMA_SQL)
        conn.commit()
    finally:
        conn.close()
