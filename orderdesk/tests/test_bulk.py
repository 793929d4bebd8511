"""Tests for the bulk operation orchestrator and the bulk selection."""

import asyncio

import pytest

from orderdesk.adapters import InMemoryOrderStore, always_confirm, never_confirm
from orderdesk.bulk import BulkOrchestrator, BulkSelection
from orderdesk.domain import Order
from orderdesk.errors import ConfirmationDeclined, ValidationError
from orderdesk.workflow import WorkflowEngine


@pytest.fixture
def seeded(make_doc):
    store = InMemoryOrderStore()
    for order_id in ("id1", "id2", "id3"):
        store.put(order_id, make_doc(order_id))
    return store


def _orchestrator(store, confirm=None):
    return BulkOrchestrator(WorkflowEngine(store), confirm=confirm or always_confirm(), concurrency=2)


def test_partial_failure_is_reported_per_id(seeded):
    """One failing write does not block the others."""
    seeded.failing_ids.add("id2")
    result = asyncio.run(_orchestrator(seeded).bulk_apply("update_status", ["id1", "id2", "id3"], {"status": "Approved"}))

    assert (result.success_count, result.failure_count) == (2, 1)
    assert [r.id for r in result.results] == ["id1", "id2", "id3"]
    failed = result.results[1]
    assert failed.success is False and failed.error_code == "PERSISTENCE_ERROR"
    assert result.failed_ids == ["id2"]
    assert seeded.documents["id1"]["status"] == "Approved"
    assert seeded.documents["id2"]["status"] == "Placed"
    assert len(seeded.documents["id3"]["statusHistory"]) == 2


def test_invalid_targets_fail_per_id(seeded, make_doc):
    seeded.put("id4", make_doc("id4", status="Delivered"))
    result = asyncio.run(_orchestrator(seeded).bulk_apply("update_status", ["id1", "id4"], {"status": "Approved"}))
    assert result.success_count == 1
    assert result.results[1].error_code == "INVALID_TRANSITION"


def test_missing_ids_fail_per_id(seeded):
    result = asyncio.run(_orchestrator(seeded).bulk_apply("update_status", ["id1", "ghost"], {"status": "Approved"}))
    assert result.results[1].error_code == "NOT_FOUND"


def test_bulk_cancel_asks_once(seeded):
    gate = always_confirm()
    result = asyncio.run(
        _orchestrator(seeded, confirm=gate).bulk_apply("update_status", ["id1", "id2", "id3"], {"status": "Cancelled"})
    )
    assert result.success_count == 3
    assert len(gate.prompts) == 1


def test_declined_confirmation_dispatches_nothing(seeded):
    with pytest.raises(ConfirmationDeclined):
        asyncio.run(_orchestrator(seeded, confirm=never_confirm()).bulk_apply("update_status", ["id1"], {"status": "Approved"}))
    assert seeded.writes == []


@pytest.mark.parametrize(
    "operation,ids,data",
    [
        ("update_status", [], {"status": "Approved"}),
        ("update_status", ["id1"], {"status": "Lost"}),
        ("update_priority", ["id1"], {"priority": "Whenever"}),
        ("delete", ["id1"], {}),
    ],
)
def test_invalid_requests_raise_before_dispatch(seeded, operation, ids, data):
    gate = always_confirm()
    with pytest.raises(ValidationError):
        asyncio.run(_orchestrator(seeded, confirm=gate).bulk_apply(operation, ids, data))
    assert gate.prompts == []
    assert seeded.writes == []


def test_update_priority_writes_only_priority(seeded):
    result = asyncio.run(_orchestrator(seeded).bulk_apply("update_priority", ["id1", "id3"], {"priority": "urgent"}))
    assert result.success_count == 2
    assert seeded.writes == [("id1", {"priority": "Urgent"}), ("id3", {"priority": "Urgent"})]
    assert len(seeded.documents["id1"]["statusHistory"]) == 1


def test_duplicate_ids_are_collapsed(seeded):
    result = asyncio.run(_orchestrator(seeded).bulk_apply("update_priority", ["id1", "id1", "id2"], {"priority": "High"}))
    assert [r.id for r in result.results] == ["id1", "id2"]


def test_selection_behaviour():
    selection = BulkSelection(["a", "b"])
    assert selection.toggle("c") is True
    assert selection.toggle("a") is False
    assert selection.ids == ["b", "c"]
    selection.select_all([Order(id="d"), Order(id="b")])
    assert selection.ids == ["b", "c", "d"]
    assert "d" in selection and len(selection) == 3
    selection.clear()
    assert selection.ids == []
