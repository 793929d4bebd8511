"""API tests for the admin endpoints.

The request-scoped console is replaced through ``dependency_overrides`` by
one backed by a seeded in-memory store, so the tests exercise routing,
validation and error-code mapping end to end.
"""

import pytest
from fastapi.testclient import TestClient

from orderdesk.adapters import InMemoryOrderStore, RecordingNotifier
from orderdesk.api import app, get_console
from orderdesk.console import OrderConsole


@pytest.fixture
def seeded_store(make_doc):
    store = InMemoryOrderStore()
    store.put("o1", make_doc("o1", status="Placed", total=800))
    store.put("o2", make_doc("o2", status="Packed", total=300))
    store.put("o3", make_doc("o3", status="Placed", total=100))
    return store


@pytest.fixture
def client(seeded_store):
    app.dependency_overrides[get_console] = lambda: OrderConsole(seeded_store, RecordingNotifier(), admin_name="admin")
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200 and r.json() == {"ok": True}


def test_list_orders_with_filters(client):
    r = client.get("/orders", params={"status": "Placed", "min_amount": "500"})
    assert r.status_code == 200
    body = r.json()
    assert body["count"] == 1
    assert body["results"][0]["id"] == "o1"
    assert body["results"][0]["total"] == 800


def test_list_orders_ignores_non_numeric_amount(client):
    r = client.get("/orders", params={"min_amount": "abc"})
    assert r.json()["count"] == 3


def test_request_id_header_roundtrip(client):
    r = client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert r.headers["X-Request-ID"] == "abc-123"


def test_stats(client):
    counts = client.get("/orders/stats").json()["counts"]
    assert counts["all"] == 3 and counts["Placed"] == 2 and counts["Packed"] == 1


def test_transition_ok(client, seeded_store):
    r = client.post("/orders/o1/transition", json={"status": "Approved"})
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "Approved"
    assert body["allowed_actions"] == ["Packed", "Cancelled"]
    assert seeded_store.documents["o1"]["status"] == "Approved"


def test_transition_invalid_is_409(client):
    r = client.post("/orders/o1/transition", json={"status": "Delivered"})
    assert r.status_code == 409
    assert r.json()["detail"] == "INVALID_TRANSITION"


def test_decline_requires_confirmed_flag(client, seeded_store):
    r = client.post("/orders/o1/transition", json={"status": "Declined"})
    assert r.status_code == 412
    assert seeded_store.documents["o1"]["status"] == "Placed"
    r = client.post("/orders/o1/transition", json={"status": "Declined", "confirmed": True})
    assert r.status_code == 200 and r.json()["status"] == "Declined"


def test_transition_unknown_order_is_404(client):
    r = client.post("/orders/zzz/transition", json={"status": "Approved"})
    assert r.status_code == 404


def test_transition_bad_status_is_422(client):
    r = client.post("/orders/o1/transition", json={"status": "Teleported"})
    assert r.status_code == 422


def test_tracking_uses_default_carrier(client, seeded_store):
    r = client.post("/orders/o2/tracking", json={"code": "IP123"})
    assert r.status_code == 200
    assert r.json()["tracking"] == {"code": "IP123", "carrier": "IndiaPost"}
    assert seeded_store.documents["o2"]["status"] == "Shipped"


def test_tracking_on_unpacked_order_is_409(client):
    r = client.post("/orders/o1/tracking", json={"code": "IP1", "carrier": "IndiaPost"})
    assert r.status_code == 409


def test_store_outage_is_503(client, seeded_store):
    seeded_store.unavailable = True
    assert client.post("/orders/o1/transition", json={"status": "Approved"}).status_code == 503
    assert client.get("/orders").status_code == 503


def test_bulk_partial_failure(client, seeded_store):
    seeded_store.failing_ids.add("o3")
    r = client.post(
        "/orders/bulk",
        json={"operation": "update_status", "orderIds": ["o1", "o3"], "operationData": {"status": "Approved"}, "confirmed": True},
    )
    assert r.status_code == 200
    body = r.json()
    assert (body["success_count"], body["failure_count"]) == (1, 1)
    assert body["results"][1]["id"] == "o3" and body["results"][1]["success"] is False


def test_bulk_without_confirmation_is_412(client, seeded_store):
    r = client.post(
        "/orders/bulk",
        json={"operation": "update_priority", "order_ids": ["o1"], "data": {"priority": "High"}},
    )
    assert r.status_code == 412
    assert seeded_store.writes == []
