"""Process runtime shared by REST and WebSocket handlers.

One :class:`Runtime` is built per application instance and stored on
``app.state.runtime``; handlers reach the registry, store and engine through
it instead of module globals.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from tierhub.collab.engine import CollabEngine
from tierhub.collab.sessions import SessionTracker
from tierhub.core.config import Settings
from tierhub.rooms.loader import RoomLoader
from tierhub.rooms.registry import RoomRegistry
from tierhub.tierlists.images import ImageAssets
from tierhub.tierlists.store import SqliteTierlistStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Runtime:
    settings: Settings
    store: SqliteTierlistStore
    registry: RoomRegistry
    sessions: SessionTracker
    images: ImageAssets
    engine: CollabEngine

    def startup(self) -> None:
        """Ensure the sqlite schema exists before handling traffic."""
        self.store.init_schema()
        logger.info(
            "tierhub ready: db=%s public=%s env=%s",
            self.settings.tierhub_sqlite_path,
            self.settings.tierhub_public_dir,
            self.settings.tierhub_app_env,
        )


def build_runtime(settings: Settings) -> Runtime:
    store = SqliteTierlistStore(settings.tierhub_sqlite_path)
    registry = RoomRegistry(RoomLoader(store))
    sessions = SessionTracker()
    images = ImageAssets(settings.tierhub_public_dir)
    engine = CollabEngine(registry=registry, store=store, sessions=sessions, images=images)
    return Runtime(
        settings=settings,
        store=store,
        registry=registry,
        sessions=sessions,
        images=images,
        engine=engine,
    )


__all__ = ["Runtime", "build_runtime"]
