"""SQLite connection helpers for backend persistence."""

from __future__ import annotations

import sqlite3
from pathlib import Path


def create_sqlite_connection(path: str) -> sqlite3.Connection:
    """Create a SQLite connection with foreign key enforcement enabled."""
    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path, timeout=10.0)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON")
    conn.execute("PRAGMA busy_timeout=10000")
    return conn


def enable_wal(path: str) -> None:
    """Switch the database file to WAL journaling (persistent per file)."""
    if path == ":memory:":
        return
    conn = create_sqlite_connection(path)
    try:
        conn.execute("PRAGMA journal_mode=WAL")
    finally:
        conn.close()
