"""Identifier, share-code and timestamp helpers."""

from __future__ import annotations

import secrets
import string
import time
from datetime import datetime
from datetime import timezone

SHARE_CODE_ALPHABET = string.ascii_uppercase + string.digits
SHARE_CODE_LENGTH = 8


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc_iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def utc_now_iso() -> str:
    return to_utc_iso(utc_now())


def new_id(prefix: str) -> str:
    """``<prefix>-<epoch ms>-<random>``, sortable by creation time."""
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(5)}"


def new_share_code(length: int = SHARE_CODE_LENGTH) -> str:
    return "".join(secrets.choice(SHARE_CODE_ALPHABET) for _ in range(length))


def new_connection_id() -> str:
    return f"C-{secrets.token_hex(4)}"
