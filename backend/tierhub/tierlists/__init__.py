"""Tierlist persistence and directory workflows."""

from tierhub.tierlists.errors import StoreError
from tierhub.tierlists.errors import TierlistNotFoundError
from tierhub.tierlists.images import ImageAssets
from tierhub.tierlists.records import DeletedItem
from tierhub.tierlists.records import FullState
from tierhub.tierlists.records import Item
from tierhub.tierlists.records import Tier
from tierhub.tierlists.records import Tierlist
from tierhub.tierlists.store import SqliteTierlistStore
from tierhub.tierlists.store import TierlistStore

__all__ = [
    "DeletedItem",
    "FullState",
    "ImageAssets",
    "Item",
    "SqliteTierlistStore",
    "StoreError",
    "Tier",
    "Tierlist",
    "TierlistNotFoundError",
    "TierlistStore",
]
