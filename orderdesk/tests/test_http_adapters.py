"""Unit tests for the HTTP document-store client.

Requests are answered by ``httpx.MockTransport`` handlers so the tests
cover success mapping, 404 handling, retries on 5xx and transport
errors, and the circuit breaker without a network.
"""

import asyncio
import json

import httpx
import pytest

from orderdesk.adapters import RecordingNotifier
from orderdesk.config import Settings
from orderdesk.console import OrderConsole
from orderdesk.domain import OrderStatus
from orderdesk.errors import PersistenceError
from orderdesk.http_adapters import CircuitBreaker, HttpOrderStore
from orderdesk.logging_config import REQUEST_ID_CTX

SETTINGS = Settings(
    store_base_url="http://store",
    http_retry_max=2,
    http_retry_backoff_base=0.0,
    http_circuit_fail_threshold=2,
    http_circuit_reset_timeout=60.0,
)


def _store(handler):
    return HttpOrderStore(settings=SETTINGS, transport=httpx.MockTransport(handler))


def test_read_order_ok(make_doc):
    def handler(request):
        assert request.url.path == "/orders/o1"
        return httpx.Response(200, json=make_doc("o1", status="Packed"))

    order = asyncio.run(_store(handler).read_order("o1"))
    assert order.id == "o1"
    assert order.status is OrderStatus.PACKED


def test_read_order_missing_returns_none():
    order = asyncio.run(_store(lambda request: httpx.Response(404, json={"detail": "NOT_FOUND"})).read_order("x"))
    assert order is None


def test_write_order_sends_partial_patch():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["body"] = request.read()
        return httpx.Response(204)

    asyncio.run(_store(handler).write_order("o1", {"status": "Approved"}))
    assert seen["method"] == "PATCH"
    assert json.loads(seen["body"]) == {"status": "Approved"}


def test_write_rejected_raises_with_detail():
    store = _store(lambda request: httpx.Response(403, json={"detail": "permission denied"}))
    with pytest.raises(PersistenceError) as e:
        asyncio.run(store.write_order("o1", {"status": "Approved"}))
    assert "permission denied" in str(e.value)


def test_retries_on_5xx_then_succeeds(make_doc):
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        if calls["n"] == 1:
            return httpx.Response(503)
        assert request.headers["X-Retry-Count"] == "1"
        return httpx.Response(200, json={"orders": [make_doc("o1"), make_doc("o2")]})

    orders = asyncio.run(_store(handler).list_orders({"status": "Placed", "carrier": "all"}))
    assert [o.id for o in orders] == ["o1", "o2"]
    assert calls["n"] == 2


def test_list_orders_sends_only_meaningful_hints():
    seen = {}

    def handler(request):
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=[])

    asyncio.run(_store(handler).list_orders({"status": "Placed", "carrier": "all", "q": ""}))
    assert seen["params"] == {"status": "Placed"}


def test_transport_error_becomes_persistence_error_and_opens_circuit():
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        raise httpx.ConnectError("boom", request=request)

    store = _store(handler)
    with pytest.raises(PersistenceError):
        asyncio.run(store.read_order("o1"))
    assert calls["n"] == 2  # http_retry_max attempts
    with pytest.raises(PersistenceError):
        asyncio.run(store.read_order("o1"))
    assert store.breaker.state == "OPEN"
    with pytest.raises(PersistenceError) as e:
        asyncio.run(store.read_order("o1"))
    assert "circuit open" in str(e.value)
    assert calls["n"] == 4


def test_request_id_is_propagated(make_doc):
    seen = {}

    def handler(request):
        seen["rid"] = request.headers.get("X-Request-ID")
        return httpx.Response(200, json=make_doc("o1"))

    async def call():
        REQUEST_ID_CTX.set("req-42")
        return await _store(handler).read_order("o1")

    asyncio.run(call())
    assert seen["rid"] == "req-42"


def test_circuit_breaker_half_open_probe(monkeypatch):
    now = {"t": 100.0}
    monkeypatch.setattr("orderdesk.http_adapters.time.monotonic", lambda: now["t"])
    cb = CircuitBreaker("test", fail_threshold=1, reset_timeout=5.0)
    cb.on_failure()
    assert cb.state == "OPEN"
    now["t"] += 5.0
    assert cb.before_call() == "HALF_OPEN"
    with pytest.raises(PersistenceError):
        cb.before_call()  # only one probe at a time
    cb.on_success()
    assert cb.state == "CLOSED"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"orders": ["oops"]}),
        httpx.Response(200, json={"orders": None}),
        httpx.Response(200, content=b"<html>gateway</html>"),
    ],
)
def test_malformed_listing_becomes_persistence_error(response):
    store = _store(lambda request: response)
    with pytest.raises(PersistenceError):
        asyncio.run(store.list_orders())


def test_malformed_document_becomes_persistence_error():
    store = _store(lambda request: httpx.Response(200, json=["not", "a", "document"]))
    with pytest.raises(PersistenceError):
        asyncio.run(store.read_order("o1"))


def test_console_refresh_survives_malformed_listing():
    notifier = RecordingNotifier()
    console = OrderConsole(_store(lambda request: httpx.Response(200, json={"orders": ["oops"]})), notifier)
    assert asyncio.run(console.refresh()) is False
    assert console.orders == []
    assert notifier.levels() == ["error"]
