"""Tests for attaching tracking information to packed orders."""

import asyncio

import pytest

from orderdesk.adapters import InMemoryOrderStore
from orderdesk.domain import OrderStatus
from orderdesk.errors import InvalidTransition, PersistenceError, ValidationError
from orderdesk.shipping import ShippingService, TrackingInfo
from orderdesk.workflow import WorkflowEngine


def _service(store):
    return ShippingService(WorkflowEngine(store, admin_name="admin"))


def _packed(make_doc, store, order_id="o1"):
    store.put(order_id, make_doc(order_id, status="Packed"))
    return asyncio.run(store.read_order(order_id))


def test_attach_tracking_ships_order(make_doc):
    store = InMemoryOrderStore()
    order = _packed(make_doc, store)

    asyncio.run(_service(store).attach_tracking(order, {"code": "IP123", "carrier": "IndiaPost"}))

    assert order.status is OrderStatus.SHIPPED
    assert (order.tracking.code, order.tracking.carrier) == ("IP123", "IndiaPost")
    assert order.status_history[-1].note == "Shipped with tracking code: IP123"
    assert order.status_history[-1].metadata == {"tracking_code": "IP123", "carrier": "IndiaPost"}
    stored = store.documents["o1"]
    assert stored["status"] == "Shipped"
    assert stored["tracking"] == {"code": "IP123", "carrier": "IndiaPost"}
    assert len(store.writes) == 1


def test_optional_details_go_to_the_note(make_doc):
    store = InMemoryOrderStore()
    order = _packed(make_doc, store)
    info = TrackingInfo(code="IP9", carrier="IndiaPost", service="Speed Post", weight=0.5, notes="fragile")

    asyncio.run(_service(store).attach_tracking(order, info))

    assert order.status_history[-1].note == (
        "Shipped with tracking code: IP9 (service: Speed Post, weight: 0.5, notes: fragile)"
    )
    assert "service" not in store.documents["o1"]["tracking"]


@pytest.mark.parametrize("info", [{"code": "", "carrier": "IndiaPost"}, {"code": "  ", "carrier": "IndiaPost"}, {"code": "IP1", "carrier": ""}])
def test_blank_code_or_carrier_is_rejected_before_any_io(make_doc, info):
    store = InMemoryOrderStore()
    order = _packed(make_doc, store)
    store.unavailable = True  # any store access would raise PersistenceError
    with pytest.raises(ValidationError):
        asyncio.run(_service(store).attach_tracking(order, info))
    assert order.status is OrderStatus.PACKED


@pytest.mark.parametrize("status", ["Placed", "Approved", "Delivered", "Cancelled"])
def test_only_packed_orders_can_be_shipped(make_doc, status):
    store = InMemoryOrderStore()
    store.put("o1", make_doc("o1", status=status))
    order = asyncio.run(store.read_order("o1"))
    with pytest.raises(InvalidTransition):
        asyncio.run(_service(store).attach_tracking(order, {"code": "IP1", "carrier": "IndiaPost"}))
    assert order.tracking is None
    assert store.writes == []


def test_second_attachment_is_rejected(make_doc):
    """Calling twice with the same code fails once the order is shipped."""
    store = InMemoryOrderStore()
    order = _packed(make_doc, store)
    service = _service(store)
    asyncio.run(service.attach_tracking(order, {"code": "IP123", "carrier": "IndiaPost"}))
    with pytest.raises(InvalidTransition):
        asyncio.run(service.attach_tracking(order, {"code": "IP123", "carrier": "IndiaPost"}))
    assert len(order.status_history) == 2
    assert len(store.writes) == 1


def test_write_failure_keeps_order_packed(make_doc):
    store = InMemoryOrderStore()
    order = _packed(make_doc, store)
    store.failing_ids.add("o1")
    with pytest.raises(PersistenceError):
        asyncio.run(_service(store).attach_tracking(order, {"code": "IP1", "carrier": "IndiaPost"}))
    assert order.status is OrderStatus.PACKED
    assert order.tracking is None
    assert len(order.status_history) == 1


def test_attach_tracking_keeps_stored_history_verbatim(make_doc):
    history = [
        {"status": "Placed", "timestamp": "2024-03-01T10:00:00.123456+05:30", "note": "Order placed", "source": "checkout"},
        "legacy-string-entry",
        {"status": "Packed", "note": "packed without timestamp"},
    ]
    store = InMemoryOrderStore()
    store.put("o1", make_doc("o1", status="Packed", statusHistory=history))
    order = asyncio.run(store.read_order("o1"))

    asyncio.run(_service(store).attach_tracking(order, {"code": "IP123", "carrier": "IndiaPost"}))

    stored = store.documents["o1"]["statusHistory"]
    assert stored[:3] == history
    assert stored[3]["status"] == "Shipped"
    assert stored[3]["metadata"] == {"tracking_code": "IP123", "carrier": "IndiaPost"}
