"""REST and websocket route tests through the FastAPI TestClient."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from tierhub.core.config import Settings
from tierhub.main import create_app


def _new_client(tmp_path: Path, **overrides: Any) -> TestClient:
    settings = Settings(
        tierhub_sqlite_path=str(tmp_path / "api.sqlite3"),
        tierhub_public_dir=str(tmp_path / "public"),
        **overrides,
    )
    return TestClient(create_app(settings))


def _create(client: TestClient, name: str = "Movies", description: str | None = None) -> dict[str, Any]:
    response = client.post("/api/tierlists", json={"name": name, "description": description})
    assert response.status_code == 200
    return response.json()


def _receive_until(websocket: Any, event_type: str, limit: int = 10) -> dict[str, Any]:
    for _ in range(limit):
        message = websocket.receive_json()
        if message["type"] == event_type:
            return message
    raise AssertionError(f"no {event_type} frame within {limit} messages")


def test_create_list_and_get_tierlist(tmp_path: Path) -> None:
    """Contract: POST creates, GET list/detail return tierlist view."""
    with _new_client(tmp_path) as client:
        created = _create(client, name="  Movies ", description="2026")

        assert created["name"] == "Movies"
        assert created["description"] == "2026"
        assert len(created["share_code"]) == 8

        listed = client.get("/api/tierlists").json()
        assert [entry["id"] for entry in listed] == [created["id"]]

        detail = client.get(f"/api/tierlists/{created['id']}")
        assert detail.status_code == 200
        assert detail.json() == created


def test_missing_tierlist_returns_unified_404(tmp_path: Path) -> None:
    """Contract: unknown id -> 404 {code,message,detail}."""
    with _new_client(tmp_path) as client:
        response = client.get("/api/tierlists/nope")

        assert response.status_code == 404
        assert response.json() == {
            "code": "TIERLIST_NOT_FOUND",
            "message": "tierlist not found",
            "detail": {"tierlist_id": "nope"},
        }


def test_create_with_blank_name_is_400(tmp_path: Path) -> None:
    """Contract: blank name -> 400 VALIDATION_ERROR."""
    with _new_client(tmp_path) as client:
        response = client.post("/api/tierlists", json={"name": "   "})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"


def test_update_tierlist(tmp_path: Path) -> None:
    """Contract: PUT changes only sent fields; empty body is 400."""
    with _new_client(tmp_path) as client:
        created = _create(client, name="Old", description="keep")

        response = client.put(f"/api/tierlists/{created['id']}", json={"name": "New"})
        assert response.status_code == 200
        assert response.json()["name"] == "New"
        assert response.json()["description"] == "keep"

        empty = client.put(f"/api/tierlists/{created['id']}", json={})
        assert empty.status_code == 400

        missing = client.put("/api/tierlists/nope", json={"name": "x"})
        assert missing.status_code == 404


def test_delete_is_forbidden_by_default(tmp_path: Path) -> None:
    """Contract: DELETE with policy off -> 403 TIERLIST_DELETE_DISABLED, tierlist kept."""
    with _new_client(tmp_path) as client:
        created = _create(client)

        response = client.delete(f"/api/tierlists/{created['id']}")

        assert response.status_code == 403
        assert response.json()["code"] == "TIERLIST_DELETE_DISABLED"
        assert client.get(f"/api/tierlists/{created['id']}").status_code == 200


def test_delete_when_enabled(tmp_path: Path) -> None:
    """Contract: DELETE with policy on -> ok, then 404."""
    with _new_client(tmp_path, tierhub_allow_tierlist_delete=True) as client:
        created = _create(client)

        response = client.delete(f"/api/tierlists/{created['id']}")

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert client.get(f"/api/tierlists/{created['id']}").status_code == 404
        assert client.delete(f"/api/tierlists/{created['id']}").status_code == 404


def test_full_state_share_and_duplicate(tmp_path: Path) -> None:
    """Contract: /full returns room snapshot; share code regenerates and resolves; duplicate copies."""
    with _new_client(tmp_path) as client:
        created = _create(client, name="Source")

        full = client.get(f"/api/tierlists/{created['id']}/full").json()
        assert [tier["name"] for tier in full["tiers"]] == ["S", "A", "B", "C", "D"]
        assert full["items"] == []
        assert full["load_state"] == "loaded"

        shared = client.post(f"/api/tierlists/{created['id']}/share").json()
        resolved = client.get(f"/api/share/{shared['share_code'].lower()}")
        assert resolved.status_code == 200
        assert resolved.json()["id"] == created["id"]
        assert client.get("/api/share/NOPE0000").json()["code"] == "SHARE_CODE_NOT_FOUND"

        duplicate = client.post(f"/api/tierlists/{created['id']}/duplicate", json={"name": "Copy"})
        assert duplicate.status_code == 200
        body = duplicate.json()
        assert body["tierlist"]["name"] == "Copy"
        assert body["tierlist"]["id"] != created["id"]
        assert len(body["tiers"]) == 5


def test_reload_and_missing_reload(tmp_path: Path) -> None:
    """Contract: POST /reload returns a fresh snapshot; unknown id is 404."""
    with _new_client(tmp_path) as client:
        created = _create(client)

        response = client.post(f"/api/tierlists/{created['id']}/reload")
        assert response.status_code == 200
        assert response.json()["tierlist_id"] == created["id"]

        assert client.post("/api/tierlists/nope/reload").status_code == 404


def test_images_cleanup_deletes_unreferenced_files(tmp_path: Path) -> None:
    """Contract: POST /api/images/cleanup removes files no item references."""
    images_dir = tmp_path / "public" / "images"
    images_dir.mkdir(parents=True)
    (images_dir / "orphan.png").write_bytes(b"x")

    with _new_client(tmp_path) as client:
        response = client.post("/api/images/cleanup")

        assert response.status_code == 200
        assert response.json() == {"deleted_count": 1, "used_images_count": 0}
        assert not (images_dir / "orphan.png").exists()


def test_health(tmp_path: Path) -> None:
    with _new_client(tmp_path) as client:
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["ok"] is True


def test_ws_requires_client_id(tmp_path: Path) -> None:
    """Contract: /ws without client_id closes with 4400."""
    with _new_client(tmp_path) as client:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws") as websocket:
                websocket.receive_json()

        assert exc_info.value.code == 4400


def test_ws_join_add_and_move(tmp_path: Path) -> None:
    """Contract: join-room -> initial-state; item-add -> item-added; item-move -> item-moved."""
    with _new_client(tmp_path) as client:
        created = _create(client)
        with client.websocket_connect("/ws?client_id=browser-1") as websocket:
            websocket.send_json({"v": 1, "type": "join-room", "payload": {"tierlistId": created["id"]}})
            initial = _receive_until(websocket, "initial-state")
            assert initial["payload"]["tierlist_id"] == created["id"]
            s_tier = initial["payload"]["tiers"][0]["id"]

            websocket.send_json({"v": 1, "type": "item-add", "payload": {"name": "Dune"}, "request_id": "add-1"})
            added = _receive_until(websocket, "item-added")
            assert added["request_id"] == "add-1"
            item_id = added["payload"]["item"]["id"]

            websocket.send_json(
                {"v": 1, "type": "item-move", "payload": {"itemId": item_id, "targetTierId": s_tier, "position": 0}}
            )
            moved = _receive_until(websocket, "item-moved")
            assert moved["payload"]["orders"] == {s_tier: [item_id]}

            websocket.send_text("not json")
            assert _receive_until(websocket, "error")["payload"]["code"] == "INVALID_FRAME"

            websocket.send_text("PING")
            assert _receive_until(websocket, "PONG")["type"] == "PONG"

        full = client.get(f"/api/tierlists/{created['id']}/full").json()
        assert full["tiers"][0]["item_order"] == [item_id]
