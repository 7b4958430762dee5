"""Room domain package."""

from tierhub.rooms.loader import RoomLoader
from tierhub.rooms.registry import LoadState
from tierhub.rooms.registry import RoomError
from tierhub.rooms.registry import RoomLoadError
from tierhub.rooms.registry import RoomNotFoundError
from tierhub.rooms.registry import RoomRegistry
from tierhub.rooms.registry import RoomState

__all__ = [
    "LoadState",
    "RoomError",
    "RoomLoadError",
    "RoomLoader",
    "RoomNotFoundError",
    "RoomRegistry",
    "RoomState",
]
