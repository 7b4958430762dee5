"""Store and directory errors for tierlist persistence."""

from __future__ import annotations


class StoreError(Exception):
    """Base class for every persistence failure surfaced to callers."""


class ShareCodeConflictError(StoreError):
    """Raised when a generated share code collides with an existing one."""


class TierNotFoundError(StoreError):
    """Raised when an order update targets a tier row that does not exist."""


class ItemNotFoundError(StoreError):
    """Raised when a field update targets an item row that does not exist."""


class TierlistNotFoundError(Exception):
    """Raised when a tierlist id or share code resolves to nothing."""


class TierlistDeleteDisabledError(Exception):
    """Raised when tierlist deletion is requested while the policy forbids it."""


class IdConflictError(StoreError):
    """Raised when a client-supplied id already belongs to another tierlist."""

    def __init__(self, kind: str, record_id: str) -> None:
        super().__init__(f"{kind} id {record_id} belongs to another tierlist")
        self.kind = kind
        self.record_id = record_id
