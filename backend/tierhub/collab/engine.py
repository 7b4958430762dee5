"""Collaboration protocol engine.

Every mutating event runs the same sequence under the room lock:
normalize -> compute -> persist -> apply to memory -> broadcast. A store
failure aborts before memory is touched, so other members never see a
change that was not saved.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from collections.abc import Awaitable
from collections.abc import Callable
from contextlib import asynccontextmanager
from typing import Any

from tierengine.ordering import plan_move
from tierengine.payloads import PayloadError
from tierengine.payloads import is_same_item
from tierengine.payloads import normalize_bulk_items
from tierengine.payloads import normalize_item
from tierengine.payloads import normalize_item_ref
from tierengine.payloads import normalize_item_update
from tierengine.payloads import normalize_move
from tierengine.payloads import normalize_tierlist_ref
from tierengine.payloads import normalize_tiers

from tierhub.collab.errors import EventValidationError
from tierhub.collab.errors import NotJoinedError
from tierhub.collab.errors import ProtocolError
from tierhub.collab.errors import UnknownEventError
from tierhub.collab.sessions import Connection
from tierhub.collab.sessions import SessionTracker
from tierhub.core.ids import new_connection_id
from tierhub.core.ids import new_id
from tierhub.core.ids import utc_now_iso
from tierhub.rooms.registry import RoomLoadError
from tierhub.rooms.registry import RoomRegistry
from tierhub.rooms.registry import RoomState
from tierhub.rooms.views import item_view
from tierhub.rooms.views import room_state_view
from tierhub.rooms.views import tier_view
from tierhub.rooms.views import tierlist_view
from tierhub.tierlists.errors import IdConflictError
from tierhub.tierlists.errors import StoreError
from tierhub.tierlists.errors import TierlistNotFoundError
from tierhub.tierlists.images import ImageAssets
from tierhub.tierlists.records import Item
from tierhub.tierlists.records import Tier
from tierhub.tierlists.records import Tierlist
from tierhub.tierlists.store import TierlistStore
from tierhub.ws.broadcast import broadcast_event
from tierhub.ws.protocol import CLOSE_SUPERSEDED

logger = logging.getLogger(__name__)

Handler = Callable[[Connection, Any, str | None], Awaitable[None]]


def _item_from(data: dict[str, Any]) -> Item:
    return Item(
        id=data["id"] or new_id("item"),
        tierlist_id=data["tierlist_id"],
        name=data["name"],
        image=data["image"],
        description=data["description"],
        created_at=data["created_at"],
        updated_at=data["updated_at"],
    )


def _find_duplicate(items: list[Item], data: dict[str, Any]) -> Item | None:
    for existing in items:
        if is_same_item(item_view(existing), data):
            return existing
    return None


class CollabEngine:
    """Authoritative state transitions for every client event."""

    def __init__(
        self,
        *,
        registry: RoomRegistry,
        store: TierlistStore,
        sessions: SessionTracker,
        images: ImageAssets,
        clock: Callable[[], str] = utc_now_iso,
    ) -> None:
        self.registry = registry
        self.store = store
        self.sessions = sessions
        self.images = images
        self._clock = clock
        self._handlers: dict[str, Handler] = {
            "join-room": self._on_join_room,
            "leave-room": self._on_leave_room,
            "join-hub": self._on_join_hub,
            "leave-hub": self._on_leave_hub,
            "item-add": self._on_item_add,
            "bulk-import": self._on_bulk_import,
            "item-move": self._on_item_move,
            "item-delete": self._on_item_delete,
            "item-update": self._on_item_update,
            "tiers-update": self._on_tiers_update,
            "request-sync": self._on_request_sync,
        }

    # Connection lifecycle

    async def connect(self, client_id: str, websocket: Any) -> Connection:
        """Register a new connection, closing any older one of the same client."""
        connection = Connection(
            connection_id=new_connection_id(),
            client_id=client_id,
            websocket=websocket,
        )
        prior = self.sessions.current(client_id)
        prior_room = prior.room_id if prior is not None else None
        evicted = self.sessions.register(connection)
        if evicted is not None:
            logger.info(
                "client %s reconnected as %s; closing %s",
                client_id,
                connection.connection_id,
                evicted.connection_id,
            )
            await evicted.close(code=CLOSE_SUPERSEDED, reason="SUPERSEDED")
            if prior_room is not None:
                await self._publish_users_count(prior_room)
        return connection

    async def disconnect(self, connection: Connection) -> None:
        room_id = self.sessions.unregister(connection)
        if room_id is not None:
            await self._publish_users_count(room_id)
            logger.info("%s left %s on disconnect", connection.connection_id, room_id)

    async def handle_message(
        self,
        connection: Connection,
        event_type: str,
        payload: Any,
        *,
        request_id: str | None = None,
    ) -> None:
        """Run one client event. Failures are reported to the sender only."""
        try:
            handler = self._handlers.get(event_type)
            if handler is None:
                raise UnknownEventError(event_type)
            await handler(connection, payload, request_id)
        except (PayloadError, ProtocolError) as exc:
            await self._send_error(connection, exc.code, str(exc), event_type, request_id)
        except TierlistNotFoundError:
            await self._send_error(connection, "TIERLIST_NOT_FOUND", "tierlist not found", event_type, request_id)
        except RoomLoadError:
            await self._send_error(
                connection, "ROOM_LOAD_FAILED", "room state could not be loaded", event_type, request_id
            )
        except IdConflictError as exc:
            await self._send_error(connection, "ID_CONFLICT", str(exc), event_type, request_id)
        except StoreError:
            logger.exception("persisting %s from %s failed", event_type, connection.connection_id)
            await self._send_error(connection, "PERSISTENCE_FAILED", "change was not saved", event_type, request_id)

    # Hooks for the REST side

    async def notify_new_tierlist(self, tierlist: Tierlist) -> None:
        await broadcast_event(self.sessions.hub_members(), "new-tierlist", {"tierlist": tierlist_view(tierlist)})

    async def notify_tierlist_deleted(self, tierlist_id: str) -> None:
        payload = {"tierlist_id": tierlist_id}
        members = self.sessions.room_members(tierlist_id)
        await broadcast_event(members, "tierlist-deleted", payload)
        await broadcast_event(self.sessions.hub_members(), "tierlist-deleted", payload)
        for connection in members:
            self.sessions.leave_room(connection)
        self.registry.discard(tierlist_id)

    async def reload_room(self, tierlist_id: str) -> RoomState:
        """Re-read a room from the store and push the result to its members."""
        async with self.registry.lock_room(tierlist_id) as room:
            await self.registry.refresh(room)
            room.connected_users = self.sessions.room_size(tierlist_id)
            await self._broadcast(room, "full-sync", room_state_view(room))
        return room

    # Membership events

    async def _on_join_room(self, connection: Connection, payload: Any, request_id: str | None) -> None:
        tierlist_id = normalize_tierlist_ref(payload)
        load_error: RoomLoadError | None = None
        try:
            await self.registry.ensure_loaded(tierlist_id)
        except RoomLoadError as exc:
            # Join anyway with the empty shell; request-sync retries the load.
            load_error = exc

        async with self.registry.lock_room(tierlist_id) as room:
            if not connection.alive:
                # Superseded while the room was loading.
                logger.info("%s was superseded before joining %s", connection.connection_id, tierlist_id)
                return
            previous = self.sessions.join_room(connection, tierlist_id)
            room.connected_users = self.sessions.room_size(tierlist_id)
            snapshot = room_state_view(room)
            if load_error is not None:
                await self._send_error(
                    connection, "ROOM_LOAD_FAILED", "room state could not be loaded", "join-room", request_id
                )
            await connection.send("initial-state", snapshot, request_id=request_id)

        logger.info("%s joined %s (%s connected)", connection.connection_id, tierlist_id, room.connected_users)
        if previous is not None:
            await self._publish_users_count(previous)
        await self._publish_users_count(tierlist_id)

    async def _on_leave_room(self, connection: Connection, payload: Any, request_id: str | None) -> None:
        room_id = self.sessions.leave_room(connection)
        if room_id is None:
            raise NotJoinedError()
        logger.info("%s left %s", connection.connection_id, room_id)
        await self._publish_users_count(room_id)

    async def _on_join_hub(self, connection: Connection, payload: Any, request_id: str | None) -> None:
        self.sessions.join_hub(connection)

    async def _on_leave_hub(self, connection: Connection, payload: Any, request_id: str | None) -> None:
        self.sessions.leave_hub(connection)

    async def _on_request_sync(self, connection: Connection, payload: Any, request_id: str | None) -> None:
        if payload is None or payload == {}:
            tierlist_id = self._joined_room_id(connection)
        else:
            tierlist_id = normalize_tierlist_ref(payload)
        await self.registry.ensure_loaded(tierlist_id)
        async with self.registry.lock_room(tierlist_id) as room:
            room.connected_users = self.sessions.room_size(tierlist_id)
            await connection.send("full-sync", room_state_view(room), request_id=request_id)

    # Item and tier mutations

    async def _on_item_add(self, connection: Connection, payload: Any, request_id: str | None) -> None:
        async with self._loaded_room(connection) as room:
            now = self._clock()
            data = normalize_item(payload, tierlist_id=room.tierlist_id, now=now)
            duplicate = _find_duplicate(room.items, data)
            if duplicate is not None:
                logger.debug("item-add on %s matches existing %s; ignored", room.tierlist_id, duplicate.id)
                return
            item = _item_from(data)
            await self.store.add_item(item)
            room.items.append(item)
            room.touch(now)
            await self._broadcast(
                room,
                "item-added",
                {"item": item_view(item), "version": room.version},
                origin=connection,
                request_id=request_id,
            )

    async def _on_bulk_import(self, connection: Connection, payload: Any, request_id: str | None) -> None:
        async with self._loaded_room(connection) as room:
            now = self._clock()
            entries = normalize_bulk_items(payload, tierlist_id=room.tierlist_id, now=now)
            added: list[Item] = []
            for data in entries:
                if _find_duplicate(room.items, data) or _find_duplicate(added, data):
                    continue
                added.append(_item_from(data))
            skipped = len(entries) - len(added)

            if not added:
                await connection.send(
                    "bulk-imported",
                    {"items": [], "skipped": skipped, "version": room.version},
                    request_id=request_id,
                )
                return

            await self.store.add_items(added)
            room.items.extend(added)
            room.touch(now)
            logger.info("bulk import into %s: %s added, %s skipped", room.tierlist_id, len(added), skipped)
            await self._broadcast(
                room,
                "bulk-imported",
                {"items": [item_view(item) for item in added], "skipped": skipped, "version": room.version},
                origin=connection,
                request_id=request_id,
            )

    async def _on_item_move(self, connection: Connection, payload: Any, request_id: str | None) -> None:
        item_id, target_tier_id, position = normalize_move(payload)
        async with self._loaded_room(connection) as room:
            if room.find_item(item_id) is None:
                raise EventValidationError(f"item {item_id} not found", code="ITEM_NOT_FOUND")
            try:
                result = plan_move(room.tier_orders(), item_id, target_tier_id, position)
            except KeyError:
                raise EventValidationError(f"tier {target_tier_id} not found", code="TIER_NOT_FOUND") from None

            if result.changed:
                now = self._clock()
                await self.store.update_tier_orders(room.tierlist_id, result.orders)
                room.apply_orders(result.orders)
                room.touch(now)

            moved = {
                "item_id": result.item_id,
                "source_tier_id": result.source_tier_id,
                "target_tier_id": result.target_tier_id,
                "position": result.position,
                "orders": result.orders,
                "version": room.version,
            }
            if result.changed:
                await self._broadcast(room, "item-moved", moved, origin=connection, request_id=request_id)
            else:
                # Nothing moved; only the sender needs the canonical placement back.
                await connection.send("item-moved", moved, request_id=request_id)

    async def _on_item_delete(self, connection: Connection, payload: Any, request_id: str | None) -> None:
        item_id = normalize_item_ref(payload)
        async with self._loaded_room(connection) as room:
            if room.find_item(item_id) is None:
                raise EventValidationError(f"item {item_id} not found", code="ITEM_NOT_FOUND")
            result = await self.store.delete_item(room.tierlist_id, item_id)
            orders = room.remove_item(item_id)
            room.touch(self._clock())
            if result.orphaned_image:
                self.images.delete(result.orphaned_image)
            await self._broadcast(
                room,
                "item-deleted",
                {"item_id": item_id, "orders": orders, "version": room.version},
                origin=connection,
                request_id=request_id,
            )

    async def _on_item_update(self, connection: Connection, payload: Any, request_id: str | None) -> None:
        item_id, fields = normalize_item_update(payload)
        async with self._loaded_room(connection) as room:
            now = self._clock()
            item = room.find_item(item_id)
            if item is None:
                # Upsert: an unknown id creates the item, which then needs a name.
                data = normalize_item(payload, tierlist_id=room.tierlist_id, now=now)
                data["id"] = item_id
                item = _item_from(data)
                await self.store.add_item(item)
                room.items.append(item)
            else:
                if not fields:
                    raise EventValidationError("no item fields to update", code="MISSING_FIELD")
                await self.store.update_item(room.tierlist_id, item_id, {**fields, "updated_at": now})
                for name, value in fields.items():
                    setattr(item, name, value)
                item.updated_at = now
            room.touch(now)
            await self._broadcast(
                room,
                "item-updated",
                {"item": item_view(item), "version": room.version},
                origin=connection,
                request_id=request_id,
            )

    async def _on_tiers_update(self, connection: Connection, payload: Any, request_id: str | None) -> None:
        specs = normalize_tiers(payload)
        async with self._loaded_room(connection) as room:
            current = {tier.id: tier for tier in room.tiers}
            tiers = [
                Tier(
                    id=spec["id"],
                    tierlist_id=room.tierlist_id,
                    name=spec["name"],
                    color=spec["color"],
                    position=spec["position"],
                    item_order=list(current[spec["id"]].item_order) if spec["id"] in current else [],
                )
                for spec in specs
            ]
            await self.store.update_tiers_metadata(room.tierlist_id, tiers)
            room.tiers = tiers
            room.touch(self._clock())
            await self._broadcast(
                room,
                "tiers-updated",
                {
                    "tiers": [tier_view(tier) for tier in tiers],
                    "unranked": [item.id for item in room.unranked_items()],
                    "version": room.version,
                },
                origin=connection,
                request_id=request_id,
            )

    # Helpers

    def _joined_room_id(self, connection: Connection) -> str:
        if connection.room_id is None:
            raise NotJoinedError()
        return connection.room_id

    @asynccontextmanager
    async def _loaded_room(self, connection: Connection) -> AsyncIterator[RoomState]:
        room_id = self._joined_room_id(connection)
        async with self.registry.lock_room(room_id) as room:
            if not room.loaded:
                raise EventValidationError("room state is not loaded; request a sync", code="ROOM_NOT_LOADED")
            yield room

    async def _broadcast(
        self,
        room: RoomState,
        event_type: str,
        payload: dict[str, Any],
        *,
        origin: Connection | None = None,
        request_id: str | None = None,
    ) -> None:
        await broadcast_event(
            self.sessions.room_members(room.tierlist_id),
            event_type,
            payload,
            origin=origin,
            request_id=request_id,
        )

    async def _publish_users_count(self, room_id: str) -> None:
        count = self.sessions.room_size(room_id)
        room = self.registry.find_room(room_id)
        if room is not None:
            room.connected_users = count
        await broadcast_event(
            self.sessions.room_members(room_id),
            "users-count",
            {"tierlist_id": room_id, "count": count},
        )

    async def _send_error(
        self,
        connection: Connection,
        code: str,
        message: str,
        event_type: str,
        request_id: str | None,
    ) -> None:
        payload = {"code": code, "message": message, "event": event_type}
        if request_id is not None:
            payload["request_id"] = request_id
        await connection.send("error", payload, request_id=request_id)


__all__ = ["CollabEngine"]
