"""In-process adapters for the order console ports.

These implement ``OrderStorePort``, ``NotifierPort`` and ``ConfirmPort``
without any network calls. The in-memory store is used for local
development and tests; the notifier writes operator messages to the
log; the confirm policies answer confirmation prompts for non-interactive
callers (API requests, scripts, tests).
"""

import copy
import logging
from typing import Any, Dict, Iterable, List, Optional

from .documents import order_from_document
from .domain import Order
from .errors import PersistenceError

_EPOCH_KEY = 0.0


class InMemoryOrderStore:
    """Dictionary-backed implementation of ``OrderStorePort``.

    Documents are stored in their raw camelCase shape and deep-copied on
    the way in and out so callers never share state with the store.
    ``failing_ids`` and ``unavailable`` make failures deterministic in
    tests.
    """

    def __init__(self, documents: Optional[Dict[str, Dict[str, Any]]] = None):
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.failing_ids: set[str] = set()
        self.unavailable = False
        self.writes: List[tuple[str, Dict[str, Any]]] = []
        for doc_id, doc in (documents or {}).items():
            self.put(doc_id, doc)

    def put(self, doc_id: str, doc: Dict[str, Any]) -> None:
        """Insert or replace a whole document (seeding helper)."""
        self.documents[str(doc_id)] = copy.deepcopy(doc)

    def _check_available(self) -> None:
        if self.unavailable:
            raise PersistenceError("Order store unavailable")

    async def read_order(self, order_id: str) -> Optional[Order]:
        """Return the decoded order, or None when it does not exist.

        Raises:
            PersistenceError: When the store is marked unavailable.
        """
        self._check_available()
        doc = self.documents.get(str(order_id))
        if doc is None:
            return None
        return order_from_document(copy.deepcopy(doc), str(order_id))

    async def write_order(self, order_id: str, fields: Dict[str, Any]) -> None:
        """Merge ``fields`` into the stored document.

        Raises:
            PersistenceError: When the store is unavailable, the id is in
                ``failing_ids`` or the document does not exist.
        """
        self._check_available()
        order_id = str(order_id)
        if order_id in self.failing_ids:
            raise PersistenceError(f"Write rejected for order {order_id}")
        doc = self.documents.get(order_id)
        if doc is None:
            raise PersistenceError(f"No document to update for order {order_id}")
        doc.update(copy.deepcopy(fields))
        self.writes.append((order_id, copy.deepcopy(fields)))

    async def list_orders(self, filter_hints: Optional[Dict[str, Any]] = None) -> List[Order]:
        """Return all orders, newest ``orderDate``/``createdAt`` first.

        ``filter_hints`` may carry ``status`` to narrow the listing.
        """
        self._check_available()
        orders = [order_from_document(copy.deepcopy(doc), doc_id) for doc_id, doc in self.documents.items()]
        status = (filter_hints or {}).get("status")
        if status and status != "all":
            orders = [o for o in orders if getattr(o.status, "value", o.status) == status]
        orders.sort(key=_placed_key, reverse=True)
        return orders


def _placed_key(order: Order) -> float:
    placed = order.placed_at
    return placed.timestamp() if placed else _EPOCH_KEY


class LoggingNotifier:
    """Notifier that records operator messages in the application log."""

    LEVELS = {
        "success": logging.INFO,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
    }

    def __init__(self, name: str = "orderdesk.notifications"):
        self._logger = logging.getLogger(name)

    def notify(self, level: str, message: str) -> None:
        self._logger.log(self.LEVELS.get(level, logging.INFO), message, extra={"notify_level": level})


class RecordingNotifier:
    """Notifier that keeps ``(level, message)`` pairs, newest last."""

    def __init__(self):
        self.messages: List[tuple[str, str]] = []

    def notify(self, level: str, message: str) -> None:
        self.messages.append((level, message))

    def levels(self) -> List[str]:
        return [level for level, _ in self.messages]


class StaticConfirm:
    """Confirm policy that always gives the same answer.

    Prompts are kept in ``prompts`` so callers can check what was asked.
    """

    def __init__(self, answer: bool):
        self.answer = answer
        self.prompts: List[str] = []

    def confirm(self, message: str) -> bool:
        self.prompts.append(message)
        return self.answer


def always_confirm() -> StaticConfirm:
    return StaticConfirm(True)


def never_confirm() -> StaticConfirm:
    return StaticConfirm(False)


def seed_store(documents: Iterable[Dict[str, Any]]) -> InMemoryOrderStore:
    """Build an in-memory store from documents carrying their own ``id``."""
    store = InMemoryOrderStore()
    for doc in documents:
        store.put(str(doc["id"]), doc)
    return store
