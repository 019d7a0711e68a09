"""
tests/test_realtime.py -- Integration tests for the /ws fanout channel.

WebSocket sessions and HTTP calls share the module's TestClient, so they run
on one event loop and one ConnectionHub, as they would under uvicorn.

Coverage:
  - Client X creates a metric over HTTP; client Y receives the identical body
  - Update and delete publish the updated record and a tombstone
  - Broadcast policy: events reach clients of other users and anonymous clients
  - updateData frames are re-broadcast verbatim to every client
  - Non-JSON and binary frames are ignored without closing the socket
  - Invalid tokens and disallowed origins are refused with 1008
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect


def _metric_body(title: str = "t", value: str = "5", category: str = "c") -> dict:
    return {"title": title, "value": value, "category": category}


class TestMetricEvents:
    def test_create_is_broadcast_with_identical_body(self, api_client: TestClient, alice, bob) -> None:
        with api_client.websocket_connect(f"/ws?token={bob.token}") as ws_bob:
            resp = api_client.post("/metrics", json=_metric_body(), headers=alice.headers)
            assert resp.status_code == 201
            message = ws_bob.receive_json()
        assert message == {"event": "dataUpdated", "data": resp.json()}

    def test_anonymous_client_receives_events(self, api_client: TestClient, alice) -> None:
        with api_client.websocket_connect("/ws") as ws:
            resp = api_client.post("/metrics", json=_metric_body(title="anon"), headers=alice.headers)
            assert ws.receive_json()["data"] == resp.json()

    def test_update_publishes_updated_record(self, api_client: TestClient, alice) -> None:
        created = api_client.post("/metrics", json=_metric_body(), headers=alice.headers).json()
        with api_client.websocket_connect("/ws") as ws:
            resp = api_client.put(f"/metrics/{created['id']}", json={"value": "6"}, headers=alice.headers)
            message = ws.receive_json()
        assert message["event"] == "dataUpdated"
        assert message["data"] == resp.json()
        assert message["data"]["value"] == "6"

    def test_delete_publishes_tombstone(self, api_client: TestClient, alice) -> None:
        created = api_client.post("/metrics", json=_metric_body(), headers=alice.headers).json()
        with api_client.websocket_connect("/ws") as ws:
            api_client.delete(f"/metrics/{created['id']}", headers=alice.headers)
            message = ws.receive_json()
        assert message == {"event": "dataUpdated", "data": {"id": created["id"], "deleted": True}}

    def test_rejected_update_publishes_nothing(self, api_client: TestClient, alice, bob) -> None:
        created = api_client.post("/metrics", json=_metric_body(), headers=alice.headers).json()
        with api_client.websocket_connect("/ws") as ws:
            resp = api_client.put(f"/metrics/{created['id']}", json={"value": "x"}, headers=bob.headers)
            assert resp.status_code == 404
            # The next event seen must be the one published afterwards, not the rejected update.
            marker = api_client.post("/metrics", json=_metric_body(title="marker"), headers=alice.headers).json()
            assert ws.receive_json()["data"] == marker


class TestClientRelay:
    def test_update_data_is_rebroadcast_verbatim(self, api_client: TestClient) -> None:
        payload = {"id": "whatever", "value": "client-made", "extra": [1, 2]}
        with api_client.websocket_connect("/ws") as sender, api_client.websocket_connect("/ws") as peer:
            sender.send_json({"event": "updateData", "data": payload})
            assert peer.receive_json() == {"event": "dataUpdated", "data": payload}
            assert sender.receive_json() == {"event": "dataUpdated", "data": payload}

    def test_non_json_frame_is_ignored(self, api_client: TestClient) -> None:
        with api_client.websocket_connect("/ws") as ws:
            ws.send_text("this is not json")
            ws.send_json({"event": "updateData", "data": {"still": "alive"}})
            assert ws.receive_json() == {"event": "dataUpdated", "data": {"still": "alive"}}

    def test_binary_frame_is_ignored(self, api_client: TestClient) -> None:
        with api_client.websocket_connect("/ws") as ws:
            ws.send_bytes(b"\x00\x01")
            ws.send_json({"event": "updateData", "data": {"after": "bytes"}})
            assert ws.receive_json() == {"event": "dataUpdated", "data": {"after": "bytes"}}


class TestHandshake:
    def test_invalid_token_refused(self, api_client: TestClient) -> None:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with api_client.websocket_connect("/ws?token=not-a-jwt"):
                pass
        assert exc_info.value.code == 1008

    def test_disallowed_origin_refused(self, api_client: TestClient) -> None:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with api_client.websocket_connect("/ws", headers={"Origin": "https://evil.example"}):
                pass
        assert exc_info.value.code == 1008

    def test_allowed_origin_accepted(self, api_client: TestClient) -> None:
        with api_client.websocket_connect("/ws", headers={"Origin": "http://localhost:3000"}) as ws:
            ws.send_json({"event": "updateData", "data": 1})
            assert ws.receive_json() == {"event": "dataUpdated", "data": 1}
