"""Shared fixtures: order documents, an in-memory store and recording collaborators."""

import pytest

from orderdesk.adapters import InMemoryOrderStore, RecordingNotifier


def _doc(doc_id, status="Placed", total=None, **extra):
    doc = {
        "id": doc_id,
        "orderId": f"ORD-{doc_id}",
        "status": status,
        "items": [{"name": "Brass Diya", "price": 100, "quantity": 2}],
        "customer": {"name": "Asha Rao", "email": "asha@example.com", "phone": "9876543210"},
        "statusHistory": [
            {"status": "Placed", "timestamp": "2024-03-01T10:00:00.000Z", "note": "Order placed"}
        ],
        "orderDate": "2024-03-01T10:00:00.000Z",
    }
    if total is not None:
        doc["total"] = total
    doc.update(extra)
    return doc


@pytest.fixture
def make_doc():
    """Factory for order documents in the stored camelCase shape."""
    return _doc


@pytest.fixture
def store():
    return InMemoryOrderStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()
