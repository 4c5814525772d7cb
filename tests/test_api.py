"""HTTP and WebSocket tests for tab_shells.api using FastAPI's TestClient."""

from __future__ import annotations

import json
import os

import pytest
from fastapi.testclient import TestClient

from tab_shells.api.app import create_app
from tab_shells.store import StateStore

pytestmark = pytest.mark.skipif(not os.path.exists("/bin/sh"), reason="/bin/sh not available")


@pytest.fixture
def state_path(tmp_path):
    return tmp_path / "state" / "state.json"


@pytest.fixture
def client(settings, state_path):
    app = create_app(settings=settings, store=StateStore(state_path))
    with TestClient(app) as c:
        yield c


def _receive_until(ws, predicate, limit: int = 200):
    for _ in range(limit):
        frame = ws.receive_json()
        if predicate(frame):
            return frame
    raise AssertionError("expected frame never arrived")


# ---------------------------------------------------------------------------
# Tabs
# ---------------------------------------------------------------------------


class TestTabRoutes:
    def test_create_list_describe_close(self, client) -> None:
        r = client.post("/api/tabs")
        assert r.status_code == 200
        created = r.json()["data"]
        assert created == {"tab_id": "tab-1", "label": 1}

        listing = client.get("/api/tabs").json()
        assert [t["tab_id"] for t in listing["data"]] == ["tab-1"]
        assert listing["active"] == "tab-1"
        assert listing["data"][0]["active"] is True

        info = client.get("/api/tabs/tab-1").json()["data"]
        assert info["stats"]["alive"] is True
        assert info["rows"] == 24

        assert client.delete("/api/tabs/tab-1").json() == {"ok": True}
        assert client.get("/api/tabs").json()["data"] == []

    def test_unknown_tab_is_404(self, client) -> None:
        r = client.post("/api/tabs/tab-404/input", json={"data": "ls\n"})
        assert r.status_code == 404
        assert r.json()["error"]["code"] == "tab_not_found"
        assert client.get("/api/tabs/tab-404").status_code == 404
        assert client.post("/api/tabs/tab-404/resize", json={"rows": 10, "cols": 10}).status_code == 404

    def test_close_unknown_tab_succeeds(self, client) -> None:
        assert client.delete("/api/tabs/tab-404").status_code == 200

    def test_input_and_resize(self, client) -> None:
        client.post("/api/tabs")
        assert client.post("/api/tabs/tab-1/input", json={"data": "echo hi\n"}).status_code == 200
        assert client.post("/api/tabs/tab-1/resize", json={"rows": 40, "cols": 100}).status_code == 200
        info = client.get("/api/tabs/tab-1").json()["data"]
        assert (info["rows"], info["cols"]) == (40, 100)

    def test_bad_payloads(self, client) -> None:
        client.post("/api/tabs")
        assert client.post("/api/tabs/tab-1/input", json={"data": 5}).status_code == 400
        assert client.post("/api/tabs/tab-1/resize", json={"rows": 0, "cols": 10}).status_code == 400
        assert client.post("/api/tabs/tab-1/resize", json={"rows": True, "cols": 10}).status_code == 400
        assert client.post("/api/tabs/tab-1/resize", json={"rows": 70000, "cols": 10}).status_code == 400

    def test_activate(self, client) -> None:
        client.post("/api/tabs")
        client.post("/api/tabs")
        r = client.post("/api/tabs/tab-2/activate")
        assert r.json()["active"] == "tab-2"
        assert client.post("/api/tabs/tab-9/activate").status_code == 404


# ---------------------------------------------------------------------------
# Buttons and state
# ---------------------------------------------------------------------------


class TestButtonRoutes:
    def test_crud_is_persisted(self, client, state_path) -> None:
        r = client.post("/api/buttons", json={"name": "List", "command": "ls"})
        button = r.json()["data"]
        assert button["name"] == "List"
        assert json.loads(state_path.read_text())["buttons"][0]["id"] == button["id"]

        r = client.put(f"/api/buttons/{button['id']}", json={"name": "Long", "command": "ls -la"})
        assert r.json()["data"]["command"] == "ls -la"
        assert client.get("/api/buttons").json()["data"][0]["name"] == "Long"

        assert client.delete(f"/api/buttons/{button['id']}").status_code == 200
        assert json.loads(state_path.read_text())["buttons"] == []

    def test_unknown_button_is_404(self, client) -> None:
        r = client.delete("/api/buttons/missing")
        assert r.status_code == 404
        assert r.json()["error"]["code"] == "button_not_found"
        assert client.put("/api/buttons/missing", json={"name": "a", "command": "b"}).status_code == 404

    def test_run_without_tab_conflicts(self, client) -> None:
        button = client.post("/api/buttons", json={"name": "n", "command": "true"}).json()["data"]
        assert client.post(f"/api/buttons/{button['id']}/run", json={}).status_code == 409

    def test_run_types_into_active_tab(self, client) -> None:
        client.post("/api/tabs")
        button = client.post("/api/buttons", json={"name": "n", "command": "echo $((6*7))"}).json()["data"]
        with client.websocket_connect("/ws/events") as ws:
            r = client.post(f"/api/buttons/{button['id']}/run", json={})
            assert r.json()["tab_id"] == "tab-1"
            _receive_until(ws, lambda f: f["type"] == "terminal-data" and "42" in f["data"])

    def test_run_fills_template_params(self, client, state_path) -> None:
        client.post("/api/tabs")
        button = client.post(
            "/api/buttons", json={"name": "mul", "command": "echo $(({{ x }}*{{y}}))"}
        ).json()["data"]
        assert button["variables"] == ["x", "y"]
        assert client.get("/api/buttons").json()["data"][0]["variables"] == ["x", "y"]
        assert "variables" not in json.loads(state_path.read_text())["buttons"][0]

        with client.websocket_connect("/ws/events") as ws:
            r = client.post(f"/api/buttons/{button['id']}/run", json={"params": {"x": "6", "y": "7"}})
            assert r.status_code == 200
            _receive_until(ws, lambda f: f["type"] == "terminal-data" and "42" in f["data"])

    def test_run_rejects_non_object_params(self, client) -> None:
        client.post("/api/tabs")
        button = client.post("/api/buttons", json={"name": "n", "command": "true"}).json()["data"]
        r = client.post(f"/api/buttons/{button['id']}/run", json={"params": ["x"]})
        assert r.status_code == 400


class TestStateRoutes:
    def test_put_then_get(self, client, state_path) -> None:
        doc = {
            "buttons": [{"id": "b1", "name": "Up", "command": "uptime"}],
            "terminal_config": {"cursor_blink": False},
            "sidebar_config": {"width": 310},
        }
        assert client.put("/api/state", json=doc).status_code == 200
        data = client.get("/api/state").json()["data"]
        assert data["sidebar_config"]["width"] == 310
        assert data["terminal_config"]["cursor_blink"] is False
        assert data["terminal_config"]["background_color"] == "#1e1e1e"
        assert json.loads(state_path.read_text())["buttons"][0]["id"] == "b1"

    def test_invalid_state_is_400(self, client) -> None:
        r = client.put("/api/state", json={"sidebar_config": {"width": "wide"}})
        assert r.status_code == 400
        assert r.json()["error"]["code"] == "invalid_state"

    def test_state_survives_restart(self, settings, state_path) -> None:
        store = StateStore(state_path)
        with TestClient(create_app(settings=settings, store=store)) as c:
            c.post("/api/buttons", json={"name": "Keep", "command": "pwd"})
        with TestClient(create_app(settings=settings, store=store)) as c:
            assert c.get("/api/buttons").json()["data"][0]["name"] == "Keep"


# ---------------------------------------------------------------------------
# WebSocket
# ---------------------------------------------------------------------------


class TestEventSocket:
    def test_unknown_tab_error_frame(self, client) -> None:
        with client.websocket_connect("/ws/events") as ws:
            ws.send_json({"type": "input", "tab_id": "tab-404", "data": "x"})
            frame = ws.receive_json()
        assert frame["type"] == "error"
        assert frame["code"] == "tab_not_found"
        assert frame["tab_id"] == "tab-404"

    def test_out_of_range_resize_keeps_socket_open(self, client) -> None:
        with client.websocket_connect("/ws/events") as ws:
            ws.send_json({"type": "resize", "tab_id": "tab-1", "rows": 70000, "cols": 80})
            first = ws.receive_json()
            ws.send_json({"type": "input", "tab_id": "tab-404", "data": "x"})
            second = ws.receive_json()
        assert (first["type"], first["code"]) == ("error", "bad_request")
        assert second["code"] == "tab_not_found"

    def test_bad_message_error_frame(self, client) -> None:
        with client.websocket_connect("/ws/events") as ws:
            ws.send_json({"type": "dance"})
            frame = ws.receive_json()
        assert frame["code"] == "bad_request"

    def test_input_produces_output(self, client) -> None:
        tab_id = client.post("/api/tabs").json()["data"]["tab_id"]
        with client.websocket_connect("/ws/events") as ws:
            ws.send_json({"type": "input", "tab_id": tab_id, "data": "echo $((6*7))\n"})
            frame = _receive_until(ws, lambda f: f["type"] == "terminal-data" and "42" in f["data"])
        assert frame["tab_id"] == tab_id

    def test_shell_exit_emits_tab_closed(self, client) -> None:
        tab_id = client.post("/api/tabs").json()["data"]["tab_id"]
        with client.websocket_connect("/ws/events") as ws:
            ws.send_json({"type": "input", "tab_id": tab_id, "data": "exit\n"})
            _receive_until(ws, lambda f: f["type"] == "tab-closed" and f["tab_id"] == tab_id)
        assert client.get("/api/tabs").json()["data"] == []
