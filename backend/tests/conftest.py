"""Shared fixtures for backend tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from tierhub.core.config import Settings
from tierhub.tierlists.store import SqliteTierlistStore


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "tierhub.sqlite3")


@pytest.fixture
def store(db_path: str) -> SqliteTierlistStore:
    """A store over a fresh sqlite file with the schema created."""
    sqlite_store = SqliteTierlistStore(db_path)
    sqlite_store.init_schema()
    return sqlite_store


@pytest.fixture
def settings(tmp_path: Path, db_path: str) -> Settings:
    return Settings(
        tierhub_sqlite_path=db_path,
        tierhub_public_dir=str(tmp_path / "public"),
    )
