"""End-to-end tests over the FastAPI app with real WebSocket sessions."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from gymrelay.config import Config
from gymrelay.persistence.client import PersistenceClient
from gymrelay.server import LIVENESS_TEXT, create_app
from tests.mocks import SECRET


def _url(gym: str = "42", role: str = "BRIDGE", secret: str = SECRET, path: str = "/ws") -> str:
    return f"{path}?gymId={gym}&secret={secret}&type={role}"


@pytest.fixture
def store():
    client = AsyncMock(spec=PersistenceClient)
    client.log_event.return_value = True
    return client


@pytest.fixture
def app(store):
    return create_app(Config({"admin_secret": SECRET}), persistence_client=store)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


class TestHttpRoutes:
    def test_liveness(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.text == LIVENESS_TEXT

    def test_health_reports_counts(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["connections"] == 0
        assert body["bridges_online"] == 0
        assert body["persistence_in_flight"] == 0
        assert body["events"] == {"published": 0, "unclaimed": 0, "target_failures": 0}


class TestHandshake:
    def test_bad_secret_gets_error_then_close(self, client):
        with client.websocket_connect(_url(secret="nope")) as ws:
            assert ws.receive_json() == {
                "event": "error",
                "data": {"message": "Authentication Failed: Invalid Secret"},
            }
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()
            assert exc_info.value.code == 4001

    def test_missing_gym_id_gets_error(self, client):
        with client.websocket_connect(f"/ws?secret={SECRET}&type=ADMIN") as ws:
            assert ws.receive_json()["data"] == {"message": "Authentication Failed: Missing Gym ID"}
            with pytest.raises(WebSocketDisconnect):
                ws.receive_json()

    def test_rejected_client_leaves_no_state(self, client, app):
        with client.websocket_connect(_url(secret="nope")) as ws:
            ws.receive_json()
            with pytest.raises(WebSocketDisconnect):
                ws.receive_json()
        assert app.state.hub.stats()["connections"] == 0

    def test_headers_handshake(self, client):
        headers = {"x-gym-id": "42", "x-relay-secret": SECRET, "x-client-type": "ADMIN"}
        with client.websocket_connect("/ws", headers=headers) as ws:
            assert ws.receive_json() == {"event": "bridge-status", "data": {"status": "OFFLINE"}}

    def test_socket_alias_path(self, client):
        with client.websocket_connect(_url(role="ADMIN", path="/socket")) as ws:
            assert ws.receive_json()["event"] == "bridge-status"


class TestRelayFlow:
    def test_full_bridge_admin_round_trip(self, client, store):
        with client.websocket_connect(_url(role="BRIDGE")) as bridge:
            assert bridge.receive_json() == {"event": "bridge-status", "data": {"status": "ONLINE"}}

            with client.websocket_connect(_url(role="ADMIN")) as admin:
                assert admin.receive_json() == {"event": "bridge-status", "data": {"status": "ONLINE"}}

                bridge.send_json({"event": "hardware-event", "data": {"type": "ATTENDANCE", "userId": 101}})
                assert admin.receive_json() == {
                    "event": "hardware-event",
                    "data": {"type": "ATTENDANCE", "userId": 101},
                }

                admin.send_json({"event": "cloud-command", "data": {"action": "UNLOCK", "userId": "101"}})
                assert bridge.receive_json() == {
                    "event": "cloud-command",
                    "data": {"action": "UNLOCK", "userId": "101"},
                }

                bridge.close()
                assert admin.receive_json() == {"event": "bridge-status", "data": {"status": "OFFLINE"}}

        # Persistence ran in the background and was drained at shutdown
        store.log_event.assert_awaited()
        record = store.log_event.await_args.args[0]
        assert record["type"] == "ATTENDANCE"
        assert record["gymId"] == "42"
        assert record["timestamp"]

    def test_gyms_are_isolated(self, client):
        with (
            client.websocket_connect(_url(gym="1", role="ADMIN")) as admin1,
            client.websocket_connect(_url(gym="2", role="ADMIN")) as admin2,
            client.websocket_connect(_url(gym="2", role="ADMIN")) as admin2b,
        ):
            admin1.receive_json()
            admin2.receive_json()
            admin2b.receive_json()

            admin1.send_json({"event": "cloud-command", "data": {"action": "UNLOCK"}})
            admin2.send_json({"event": "cloud-command", "data": {"action": "LOCK"}})

            # admin2b only ever sees gym 2 traffic
            assert admin2b.receive_json() == {"event": "cloud-command", "data": {"action": "LOCK"}}

    def test_malformed_frame_gets_error(self, client):
        with client.websocket_connect(_url(role="ADMIN")) as admin:
            admin.receive_json()
            admin.send_text("definitely not json")
            frame = admin.receive_json()
            assert frame["event"] == "error"
            assert "Malformed frame" in frame["data"]["message"]
