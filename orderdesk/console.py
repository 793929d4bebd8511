"""Admin session facade over the order engine.

``OrderConsole`` is what the admin UI talks to. It keeps the session's
working copy of the orders, the current filter state and the bulk
selection, and it is the call site for every engine operation: errors
raised by the engine are caught here, turned into operator
notifications and returned as ``ActionResult`` values so nothing
propagates into rendering code.
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .bulk import BulkOrchestrator, BulkResult, BulkSelection
from .domain import ConfirmPort, NotifierPort, Order, OrderStatus, OrderStorePort, allowed_targets
from .errors import ConfirmationDeclined, OrderDeskError
from .filters import apply_filters, coerce_filter_state, status_counts
from .schemas import FilterState
from .shipping import ShippingService, TrackingInfo
from .workflow import WorkflowEngine

logger = logging.getLogger("orderdesk.console")


@dataclass
class ActionResult:
    """Outcome of a console action.

    Attributes:
        ok: True when the action was committed.
        order: Updated working copy for single-order actions.
        bulk: Summary for bulk actions that were dispatched.
        error_code: ``OrderDeskError.code`` when the action failed.
        message: Text shown to the operator.
    """

    ok: bool
    order: Optional[Order] = None
    bulk: Optional[BulkResult] = None
    error_code: Optional[str] = None
    message: Optional[str] = None


class OrderConsole:
    """Working copy, filters and actions for one admin session.

    Mutations are not serialized here; the UI disables its controls
    while an action is in flight. A background refresh may race with a
    manual action, in which case whichever finishes last wins for the
    in-memory snapshot.
    """

    def __init__(
        self,
        store: OrderStorePort,
        notifier: NotifierPort,
        confirm: ConfirmPort | None = None,
        admin_name: str | None = None,
        bulk_concurrency: int = 5,
        refresh_interval: float = 300.0,
    ):
        self.store = store
        self.refresh_interval = refresh_interval
        self.notifier = notifier
        self.engine = WorkflowEngine(store, confirm=confirm, admin_name=admin_name)
        self.shipping = ShippingService(self.engine)
        self.bulk = BulkOrchestrator(self.engine, confirm=confirm, concurrency=bulk_concurrency)
        self.orders: List[Order] = []
        self.filter_state = FilterState()
        self.selection = BulkSelection()
        self.bulk_mode = False
        self._refresh_task: Optional[asyncio.Task] = None

    # ---- snapshot ----
    async def refresh(self, filter_hints: Optional[Dict[str, Any]] = None) -> bool:
        """Replace the working copy with a fresh listing from the store.

        Returns:
            bool: False when the listing failed; the previous snapshot is
            kept and the operator is notified.
        """
        try:
            orders = await self.store.list_orders(filter_hints)
        except OrderDeskError as exc:
            self.notifier.notify("error", f"Error loading orders: {exc.message}")
            return False
        except Exception as exc:
            logger.error("order listing failed", extra={"error": str(exc)})
            self.notifier.notify("error", f"Error loading orders: {exc}")
            return False
        self.orders = list(orders)
        logger.info("orders refreshed", extra={"count": len(self.orders)})
        return True

    def find(self, order_id: str) -> Optional[Order]:
        for order in self.orders:
            if order.id == order_id:
                return order
        return None

    def _replace(self, updated: Order) -> None:
        for index, order in enumerate(self.orders):
            if order.id == updated.id:
                self.orders[index] = updated
                return

    # ---- filters ----
    def set_filters(self, filter_state: "FilterState | Mapping[str, Any] | None" = None, **changes: Any) -> FilterState:
        """Replace the filter state, or update individual fields of it."""
        if filter_state is not None:
            self.filter_state = coerce_filter_state(filter_state)
        if changes:
            merged = self.filter_state.model_dump(by_alias=True)
            for key, value in changes.items():
                field = FilterState.model_fields.get(key)
                merged[(field.alias or key) if field else key] = value
            self.filter_state = FilterState.model_validate(merged)
        return self.filter_state

    def reset_filters(self) -> None:
        self.filter_state = FilterState()

    def visible_orders(self) -> List[Order]:
        return apply_filters(self.orders, self.filter_state)

    def counts(self) -> Dict[str, int]:
        return status_counts(self.orders)

    # ---- single-order actions ----
    async def _working_copy(self, order_id: str) -> Order:
        return self.find(order_id) or await self.engine.fetch(order_id)

    async def transition(
        self,
        order_id: str,
        new_status: Any,
        note: str | None = None,
        confirm: ConfirmPort | None = None,
    ) -> ActionResult:
        try:
            order = await self._working_copy(order_id)
            await self.engine.transition(order, new_status, note=note, confirm=confirm)
        except ConfirmationDeclined as exc:
            return ActionResult(ok=False, error_code=exc.code, message=exc.message)
        except OrderDeskError as exc:
            message = f"Failed to update order: {exc.message}"
            self.notifier.notify("error", message)
            return ActionResult(ok=False, error_code=exc.code, message=message)
        self._replace(order)
        label = getattr(order.status, "value", order.status)
        message = f"Order {order.order_id or order.id} {label.lower()} successfully"
        self.notifier.notify("success", message)
        return ActionResult(ok=True, order=order, message=message)

    async def attach_tracking(self, order_id: str, tracking_info: "TrackingInfo | Mapping[str, Any]") -> ActionResult:
        try:
            order = await self._working_copy(order_id)
            await self.shipping.attach_tracking(order, tracking_info)
        except OrderDeskError as exc:
            message = f"Failed to add tracking: {exc.message}"
            self.notifier.notify("error", message)
            return ActionResult(ok=False, error_code=exc.code, message=message)
        self._replace(order)
        message = f"Tracking information added to order {order.order_id or order.id}"
        self.notifier.notify("success", message)
        return ActionResult(ok=True, order=order, message=message)

    # ---- bulk ----
    def enter_bulk_mode(self) -> None:
        self.bulk_mode = True

    def exit_bulk_mode(self) -> None:
        self.bulk_mode = False
        self.selection.clear()

    async def bulk_apply(
        self,
        operation: str,
        order_ids: Optional[Iterable[str]] = None,
        operation_data: Optional[Mapping[str, Any]] = None,
        confirm: ConfirmPort | None = None,
    ) -> ActionResult:
        """Run a bulk operation over ``order_ids`` (default: the selection).

        After a dispatched run the selection is cleared and the snapshot is
        reloaded from the store.
        """
        ids = list(order_ids) if order_ids is not None else self.selection.ids
        try:
            outcome = await self.bulk.bulk_apply(operation, ids, operation_data, confirm=confirm)
        except ConfirmationDeclined as exc:
            return ActionResult(ok=False, error_code=exc.code, message=exc.message)
        except OrderDeskError as exc:
            self.notifier.notify("error", exc.message)
            return ActionResult(ok=False, error_code=exc.code, message=exc.message)

        if outcome.failure_count:
            message = (
                f"Updated {outcome.success_count} orders, "
                f"{outcome.failure_count} failed: {', '.join(outcome.failed_ids)}"
            )
            self.notifier.notify("warning", message)
        else:
            message = f"Updated {outcome.success_count} orders"
            self.notifier.notify("success", message)

        self.selection.clear()
        await self.refresh()
        return ActionResult(ok=True, bulk=outcome, message=message)

    # ---- background refresh ----
    def start_auto_refresh(self, interval: float | None = None) -> asyncio.Task:
        """Refresh the snapshot every ``interval`` seconds until ``close``.

        Defaults to the console's ``refresh_interval``.
        """
        if self._refresh_task is not None and not self._refresh_task.done():
            return self._refresh_task
        interval = interval or self.refresh_interval

        async def loop():
            while True:
                await asyncio.sleep(interval)
                await self.refresh()

        self._refresh_task = asyncio.create_task(loop())
        return self._refresh_task

    async def close(self) -> None:
        """Stop the background refresh. In-flight store calls are not aborted."""
        task, self._refresh_task = self._refresh_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


def allowed_actions(order: Order) -> List[str]:
    """Status labels the UI may offer for ``order``, tracking-only targets included."""
    return [status.value for status in OrderStatus if status in allowed_targets(order.status)]
