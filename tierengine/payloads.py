"""Normalization of client event payloads.

Clients have sent several shapes over time (camelCase keys, ``title`` instead
of ``name``, bare ids instead of objects). Everything is reduced here to one
canonical snake_case dict before the room engine looks at it.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from tierengine.ordering import UNRANKED

DEFAULT_TIER_COLOR = "#cccccc"


class PayloadError(ValueError):
    """Raised when a client payload cannot be normalized."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


def _pick(payload: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in payload:
            return payload[key]
    return None


def _require_mapping(payload: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise PayloadError("INVALID_PAYLOAD", f"{what} payload must be an object")
    return payload


def _optional_text(value: Any, field_name: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise PayloadError("INVALID_PAYLOAD", f"{field_name} must be a string")
    value = value.strip()
    return value or None


def _required_text(value: Any, field_name: str) -> str:
    text = _optional_text(value, field_name)
    if text is None:
        raise PayloadError("MISSING_FIELD", f"{field_name} is required")
    return text


def _identifier(value: Any, field_name: str) -> str:
    # Numeric ids from older clients are accepted and stringified.
    if isinstance(value, bool):
        raise PayloadError("INVALID_PAYLOAD", f"{field_name} must be a string")
    if isinstance(value, int):
        value = str(value)
    return _required_text(value, field_name)


def normalize_tierlist_ref(payload: Any) -> str:
    """``"id"`` or ``{"tierlist_id": "id"}`` -> ``"id"``."""
    if isinstance(payload, Mapping):
        payload = _pick(payload, "tierlist_id", "tierlistId", "id")
    return _identifier(payload, "tierlist_id")


def normalize_item_ref(payload: Any) -> str:
    """``"id"`` or ``{"item_id": "id"}`` -> ``"id"``."""
    if isinstance(payload, Mapping):
        payload = _pick(payload, "item_id", "itemId", "id")
    return _identifier(payload, "item_id")


def normalize_item(payload: Any, *, tierlist_id: str, now: str) -> dict[str, Any]:
    """Clean one ``item-add`` payload. ``id`` stays ``None`` when not supplied."""
    data = _require_mapping(payload, "item")
    name = _pick(data, "name")
    if name is None or (isinstance(name, str) and not name.strip()):
        name = _pick(data, "title")
    raw_id = _pick(data, "id")
    return {
        "id": None if raw_id in (None, "") else _identifier(raw_id, "id"),
        "tierlist_id": tierlist_id,
        "name": _required_text(name, "name"),
        "image": _optional_text(_pick(data, "image"), "image"),
        "description": _optional_text(_pick(data, "description"), "description"),
        "created_at": _optional_text(_pick(data, "created_at", "createdAt"), "created_at") or now,
        "updated_at": _optional_text(_pick(data, "updated_at", "updatedAt"), "updated_at") or now,
    }


def normalize_bulk_items(payload: Any, *, tierlist_id: str, now: str) -> list[dict[str, Any]]:
    if isinstance(payload, Mapping):
        payload = payload.get("items")
    if not isinstance(payload, Sequence) or isinstance(payload, (str, bytes)):
        raise PayloadError("INVALID_PAYLOAD", "bulk import expects a list of items")
    return [normalize_item(entry, tierlist_id=tierlist_id, now=now) for entry in payload]


def normalize_item_update(payload: Any) -> tuple[str, dict[str, Any]]:
    """Return the item id and only the fields the client actually sent."""
    data = _require_mapping(payload, "item")
    item_id = _identifier(_pick(data, "id", "item_id", "itemId"), "id")
    fields: dict[str, Any] = {}
    if "name" in data or "title" in data:
        fields["name"] = _required_text(_pick(data, "name") or _pick(data, "title"), "name")
    for field_name in ("image", "description"):
        if field_name in data:
            fields[field_name] = _optional_text(data[field_name], field_name)
    return item_id, fields


def normalize_move(payload: Any) -> tuple[str, str, int | None]:
    """Return ``(item_id, target_tier_id, position)``; position ``None`` means append."""
    data = _require_mapping(payload, "item-move")
    item_id = _identifier(_pick(data, "item_id", "itemId"), "item_id")
    target = _pick(data, "target_tier_id", "targetTierId", "tier_id", "tierId")
    target_tier_id = UNRANKED if target is None else _identifier(target, "target_tier_id")

    position = _pick(data, "position")
    if position is not None:
        if isinstance(position, bool) or not isinstance(position, int):
            raise PayloadError("INVALID_PAYLOAD", "position must be an integer")
        position = max(position, 0)
    return item_id, target_tier_id, position


def normalize_tiers(payload: Any) -> list[dict[str, Any]]:
    """Clean a ``tiers-update`` list; list index becomes the tier position."""
    if isinstance(payload, Mapping):
        payload = payload.get("tiers")
    if not isinstance(payload, Sequence) or isinstance(payload, (str, bytes)):
        raise PayloadError("INVALID_PAYLOAD", "tiers must be a list")

    tiers: list[dict[str, Any]] = []
    seen: set[str] = set()
    for position, entry in enumerate(payload):
        data = _require_mapping(entry, "tier")
        tier_id = _identifier(_pick(data, "id"), "tier.id")
        if tier_id == UNRANKED:
            raise PayloadError("INVALID_PAYLOAD", f"'{UNRANKED}' is reserved")
        if tier_id in seen:
            raise PayloadError("DUPLICATE_TIER", f"tier id {tier_id} appears twice")
        seen.add(tier_id)
        tiers.append(
            {
                "id": tier_id,
                "name": _required_text(_pick(data, "name"), "tier.name"),
                "color": _optional_text(_pick(data, "color"), "tier.color") or DEFAULT_TIER_COLOR,
                "position": position,
            }
        )
    return tiers


def is_same_item(existing: Mapping[str, Any], candidate: Mapping[str, Any]) -> bool:
    """Idempotent-add rule: same id, or same (name, image) pair."""
    if existing.get("id") and candidate.get("id") and existing["id"] == candidate["id"]:
        return True
    return existing.get("name") == candidate.get("name") and existing.get("image") == candidate.get("image")


__all__ = [
    "DEFAULT_TIER_COLOR",
    "PayloadError",
    "is_same_item",
    "normalize_bulk_items",
    "normalize_item",
    "normalize_item_ref",
    "normalize_item_update",
    "normalize_move",
    "normalize_tierlist_ref",
    "normalize_tiers",
]
