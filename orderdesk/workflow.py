"""Status workflow engine.

The engine is the single place where an order's status changes. Every
change re-reads the order from the store, validates the move against
``TRANSITIONS``, asks for confirmation when the target is destructive,
writes the new status together with the extended history in one partial
update and only then mirrors those two fields into the caller's working
copy.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from .documents import status_fields
from .domain import (
    ConfirmPort,
    Order,
    OrderStatus,
    OrderStorePort,
    StatusHistoryEntry,
    TRACKING_ONLY_TARGETS,
    allowed_targets,
    requires_confirmation,
)
from .errors import (
    ConfirmationDeclined,
    InvalidTransition,
    NotFoundError,
    OrderDeskError,
    PersistenceError,
    ValidationError,
)

logger = logging.getLogger("orderdesk.workflow")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def default_note(status: OrderStatus) -> str:
    return f"Order {status.value.lower()} by admin"


class WorkflowEngine:
    """Validates and applies order status transitions.

    The engine holds no order state of its own; the store is the source
    of truth and is re-read before each mutation. It does not lock orders:
    callers serialize their own mutations.
    """

    def __init__(
        self,
        store: OrderStorePort,
        confirm: ConfirmPort | None = None,
        admin_name: str | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize the engine with its collaborators.

        Args:
            store: Order document store.
            confirm: Default confirmation gate for destructive targets.
                Without one, destructive transitions are always aborted.
            admin_name: Recorded as ``updated_by`` on history entries.
            clock: Source of history timestamps.
        """
        self.store = store
        self.confirm = confirm
        self.admin_name = admin_name
        self.clock = clock

    # ---- store access ----
    async def fetch(self, order_id: str) -> Order:
        """Re-read an order from the store.

        Raises:
            NotFoundError: If the store has no such order.
            PersistenceError: If the read fails.
        """
        try:
            current = await self.store.read_order(order_id)
        except OrderDeskError:
            raise
        except Exception as exc:
            raise PersistenceError(f"Failed to read order {order_id}: {exc}") from exc
        if current is None:
            raise NotFoundError(order_id)
        return current

    async def commit(self, order_id: str, fields: Dict[str, Any]) -> None:
        """Write one partial update to the store.

        Raises:
            PersistenceError: If the store rejects or fails the write.
        """
        try:
            await self.store.write_order(order_id, fields)
        except PersistenceError:
            logger.error("order write failed", extra={"order_id": order_id})
            raise
        except Exception as exc:
            logger.error("order write failed", extra={"order_id": order_id})
            raise PersistenceError(f"Failed to update order {order_id}: {exc}") from exc

    def history_entry(
        self,
        status: OrderStatus,
        note: str | None = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> StatusHistoryEntry:
        return StatusHistoryEntry(
            status=status.value,
            timestamp=self.clock(),
            note=note if note is not None else default_note(status),
            updated_by=self.admin_name,
            metadata=metadata,
        )

    # ---- transitions ----
    def check_transition(self, current: Any, target: OrderStatus) -> None:
        """Raise ``InvalidTransition`` unless ``target`` is reachable from ``current``.

        Tracking-only targets are rejected here: they are entered through
        ``ShippingService.attach_tracking``.
        """
        if target not in allowed_targets(current):
            raise InvalidTransition(current, target)
        if target in TRACKING_ONLY_TARGETS:
            raise InvalidTransition(
                current,
                target,
                f"Orders move to {target.value} only when tracking is attached",
            )

    async def transition(
        self,
        order: Order,
        new_status: Any,
        note: str | None = None,
        confirm: ConfirmPort | None = None,
    ) -> Order:
        """Move ``order`` to ``new_status``.

        Steps: re-fetch the order, validate the move against the fetched
        status, ask for confirmation when the target is ``Declined`` or
        ``Cancelled``, write status plus extended history in one update,
        then mirror both fields into ``order``.

        Args:
            order: Working copy to update on success.
            new_status: Target status (``OrderStatus`` or its label).
            note: History note; defaults to ``"Order <status> by admin"``.
            confirm: Confirmation gate overriding the engine default.

        Returns:
            The same ``order`` instance with ``status`` and
            ``status_history`` updated.

        Raises:
            ValidationError: If ``new_status`` is not a known status.
            NotFoundError: If the order vanished from the store.
            InvalidTransition: If the target is not reachable.
            ConfirmationDeclined: If confirmation is required and not given.
            PersistenceError: If the read or write fails.
        """
        target = OrderStatus.parse(new_status)
        if target is None:
            raise ValidationError(f"Unknown order status: {new_status!r}")

        current = await self.fetch(order.id)
        try:
            self.check_transition(current.status, target)
        except InvalidTransition:
            logger.warning(
                "transition rejected",
                extra={"order_id": order.id, "from": str(getattr(current.status, "value", current.status)), "to": target.value},
            )
            raise

        if requires_confirmation(target):
            self._require_confirmation(confirm, f"{target.value} order {order.order_id or order.id}?")

        entry = self.history_entry(target, note)
        fields = status_fields(target, current.raw_history, entry)
        await self.commit(order.id, fields)

        order.status = target
        order.status_history = [*current.status_history, entry]
        order.raw_history = fields["statusHistory"]
        logger.info("order status updated", extra={"order_id": order.id, "status": target.value})
        return order

    def _require_confirmation(self, confirm: ConfirmPort | None, message: str) -> None:
        gate = confirm or self.confirm
        if gate is None or not gate.confirm(message):
            logger.info("operation not confirmed", extra={"prompt": message})
            raise ConfirmationDeclined(f"Not confirmed: {message}")
