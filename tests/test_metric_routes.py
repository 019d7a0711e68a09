"""
tests/test_metric_routes.py -- Integration tests for owner-scoped metric CRUD.

Coverage:
  - POST then GET round trip with a generated id and string value
  - GET /metrics never returns another user's metrics
  - PUT / DELETE on someone else's metric -> 404, record untouched, never echoed
  - PUT changes only value; DELETE returns a confirmation message
  - A JSON number for value is accepted and stored as its text
  - Missing body fields -> 422
"""

from __future__ import annotations

from fastapi.testclient import TestClient

_NOT_FOUND = {"message": "Metric not found or unauthorized"}


def _create(client: TestClient, user, title: str = "t", value: str = "5", category: str = "c") -> dict:
    resp = client.post("/metrics", json={"title": title, "value": value, "category": category}, headers=user.headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestCreateAndList:
    def test_round_trip(self, api_client: TestClient, alice) -> None:
        created = _create(api_client, alice)
        assert created["id"]
        assert created == {
            "id": created["id"],
            "userId": alice.user_id,
            "title": "t",
            "value": "5",
            "category": "c",
        }
        listed = api_client.get("/metrics", headers=alice.headers).json()
        assert created in listed

    def test_new_user_has_no_metrics(self, api_client: TestClient, alice) -> None:
        resp = api_client.get("/metrics", headers=alice.headers)
        assert resp.status_code == 200
        assert resp.json() == []

    def test_value_stays_a_string(self, api_client: TestClient, alice) -> None:
        created = _create(api_client, alice, value="1.20e3")
        assert created["value"] == "1.20e3"

    def test_numeric_value_is_stored_as_text(self, api_client: TestClient, alice) -> None:
        resp = api_client.post("/metrics", json={"title": "t", "value": 5, "category": "c"}, headers=alice.headers)
        assert resp.status_code == 201, resp.text
        assert resp.json()["value"] == "5"
        assert api_client.get("/metrics", headers=alice.headers).json()[0]["value"] == "5"

    def test_list_is_scoped_to_requester(self, api_client: TestClient, alice, bob) -> None:
        a1 = _create(api_client, alice, title="followers")
        a2 = _create(api_client, alice, title="likes")
        b1 = _create(api_client, bob, title="shares")

        alice_ids = {m["id"] for m in api_client.get("/metrics", headers=alice.headers).json()}
        bob_ids = {m["id"] for m in api_client.get("/metrics", headers=bob.headers).json()}

        assert alice_ids == {a1["id"], a2["id"]}
        assert bob_ids == {b1["id"]}

    def test_missing_field_is_422(self, api_client: TestClient, alice) -> None:
        resp = api_client.post("/metrics", json={"title": "t", "value": "5"}, headers=alice.headers)
        assert resp.status_code == 422


class TestUpdate:
    def test_owner_updates_value_only(self, api_client: TestClient, alice) -> None:
        created = _create(api_client, alice)
        resp = api_client.put(f"/metrics/{created['id']}", json={"value": "42"}, headers=alice.headers)
        assert resp.status_code == 200
        assert resp.json() == {**created, "value": "42"}

    def test_numeric_value_is_stored_as_text(self, api_client: TestClient, alice) -> None:
        created = _create(api_client, alice)
        resp = api_client.put(f"/metrics/{created['id']}", json={"value": 7.5}, headers=alice.headers)
        assert resp.status_code == 200, resp.text
        assert resp.json()["value"] == "7.5"

    def test_other_user_gets_not_found(self, api_client: TestClient, alice, bob) -> None:
        created = _create(api_client, alice)
        resp = api_client.put(f"/metrics/{created['id']}", json={"value": "999"}, headers=bob.headers)
        assert resp.status_code == 404
        assert resp.json() == _NOT_FOUND
        assert api_client.get("/metrics", headers=alice.headers).json() == [created]

    def test_missing_metric_is_not_found(self, api_client: TestClient, alice) -> None:
        resp = api_client.put("/metrics/does-not-exist", json={"value": "1"}, headers=alice.headers)
        assert resp.status_code == 404
        assert resp.json() == _NOT_FOUND

    def test_missing_value_is_422(self, api_client: TestClient, alice) -> None:
        created = _create(api_client, alice)
        resp = api_client.put(f"/metrics/{created['id']}", json={}, headers=alice.headers)
        assert resp.status_code == 422


class TestDelete:
    def test_owner_deletes(self, api_client: TestClient, alice) -> None:
        created = _create(api_client, alice)
        resp = api_client.delete(f"/metrics/{created['id']}", headers=alice.headers)
        assert resp.status_code == 200
        assert resp.json() == {"message": "Metrics deleted"}
        assert api_client.get("/metrics", headers=alice.headers).json() == []

    def test_other_user_gets_not_found(self, api_client: TestClient, alice, bob) -> None:
        created = _create(api_client, alice)
        resp = api_client.delete(f"/metrics/{created['id']}", headers=bob.headers)
        assert resp.status_code == 404
        assert resp.json() == _NOT_FOUND
        assert api_client.get("/metrics", headers=alice.headers).json() == [created]

    def test_second_delete_is_not_found(self, api_client: TestClient, alice) -> None:
        created = _create(api_client, alice)
        api_client.delete(f"/metrics/{created['id']}", headers=alice.headers)
        resp = api_client.delete(f"/metrics/{created['id']}", headers=alice.headers)
        assert resp.status_code == 404
