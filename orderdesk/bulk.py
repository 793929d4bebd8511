"""Bulk operations over a selection of orders.

A bulk run is best-effort: each id is processed independently and a
failure on one id never stops the others. The outcome is summarized in a
``BulkResult``; callers must reload their snapshot from the store
afterwards instead of patching it from partial results.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .domain import ConfirmPort, Order, OrderStatus, Priority
from .errors import ConfirmationDeclined, OrderDeskError, ValidationError
from .workflow import WorkflowEngine

logger = logging.getLogger("orderdesk.bulk")

UPDATE_STATUS = "update_status"
UPDATE_PRIORITY = "update_priority"
OPERATIONS = (UPDATE_STATUS, UPDATE_PRIORITY)


@dataclass
class BulkItemResult:
    id: str
    success: bool
    error: Optional[str] = None
    error_code: Optional[str] = None


@dataclass
class BulkResult:
    """Aggregate outcome of a bulk run; ``results`` follows the selection order."""

    success_count: int = 0
    failure_count: int = 0
    results: List[BulkItemResult] = field(default_factory=list)

    @property
    def failed_ids(self) -> List[str]:
        return [r.id for r in self.results if not r.success]


class BulkSelection:
    """Ordered set of order ids picked for a bulk operation."""

    def __init__(self, ids: Iterable[str] = ()):
        self._ids: Dict[str, None] = {}
        for order_id in ids:
            self.add(order_id)

    def add(self, order_id: str) -> None:
        self._ids[str(order_id)] = None

    def discard(self, order_id: str) -> None:
        self._ids.pop(str(order_id), None)

    def toggle(self, order_id: str) -> bool:
        """Flip membership of ``order_id``; returns True when now selected."""
        if str(order_id) in self._ids:
            self.discard(order_id)
            return False
        self.add(order_id)
        return True

    def select_all(self, orders: Iterable[Order]) -> None:
        for order in orders:
            self.add(order.id)

    def clear(self) -> None:
        self._ids.clear()

    @property
    def ids(self) -> List[str]:
        return list(self._ids)

    def __contains__(self, order_id: object) -> bool:
        return str(order_id) in self._ids

    def __len__(self) -> int:
        return len(self._ids)


class _Confirmed:
    """Gate used for the per-id transitions once the batch is confirmed."""

    def confirm(self, message: str) -> bool:
        return True


class BulkOrchestrator:
    """Applies one operation to many orders through the workflow engine."""

    def __init__(self, engine: WorkflowEngine, confirm: ConfirmPort | None = None, concurrency: int = 5):
        """Initialize the orchestrator.

        Args:
            engine: Engine used for per-id reads, validation and writes.
            confirm: Default gate asked once per batch.
            concurrency: Maximum ids processed at the same time.
        """
        self.engine = engine
        self.confirm = confirm
        self.concurrency = max(1, concurrency)

    def _validate(self, operation: str, data: Mapping[str, Any]) -> Any:
        if operation == UPDATE_STATUS:
            status = OrderStatus.parse(data.get("status"))
            if status is None:
                raise ValidationError(f"Unknown order status: {data.get('status')!r}")
            return status
        if operation == UPDATE_PRIORITY:
            priority = Priority.parse(data.get("priority"))
            if priority is None:
                raise ValidationError(f"Unknown priority: {data.get('priority')!r}")
            return priority
        raise ValidationError(f"Unsupported bulk operation: {operation!r}")

    async def bulk_apply(
        self,
        operation: str,
        order_ids: Iterable[str],
        operation_data: Mapping[str, Any] | None = None,
        confirm: ConfirmPort | None = None,
    ) -> BulkResult:
        """Run ``operation`` for every id in ``order_ids``.

        Args:
            operation: ``"update_status"`` or ``"update_priority"``.
            order_ids: Selected ids; duplicates are collapsed.
            operation_data: ``{"status": ...}`` or ``{"priority": ...}``.
            confirm: Gate overriding the orchestrator default.

        Returns:
            BulkResult: Per-id outcomes and aggregate counts.

        Raises:
            ValidationError: If the selection is empty or the operation
                or its value is unknown. Nothing is dispatched.
            ConfirmationDeclined: If the operator does not confirm the
                batch. Nothing is dispatched.
        """
        ids = list(dict.fromkeys(str(i) for i in order_ids))
        if not ids:
            raise ValidationError("Select at least one order")
        data = operation_data or {}
        value = self._validate(operation, data)

        gate = confirm or self.confirm
        prompt = f"Apply {operation.replace('_', ' ')} ({value.value}) to {len(ids)} orders?"
        if gate is None or not gate.confirm(prompt):
            raise ConfirmationDeclined(f"Not confirmed: {prompt}")

        semaphore = asyncio.Semaphore(self.concurrency)

        async def run_one(order_id: str) -> BulkItemResult:
            async with semaphore:
                try:
                    if operation == UPDATE_STATUS:
                        await self._update_status(order_id, value, data.get("note"))
                    else:
                        await self._update_priority(order_id, value)
                except OrderDeskError as exc:
                    logger.warning(
                        "bulk item failed",
                        extra={"order_id": order_id, "operation": operation, "code": exc.code},
                    )
                    return BulkItemResult(id=order_id, success=False, error=exc.message, error_code=exc.code)
                return BulkItemResult(id=order_id, success=True)

        results = await asyncio.gather(*(run_one(order_id) for order_id in ids))
        outcome = BulkResult(results=list(results))
        outcome.success_count = sum(1 for r in results if r.success)
        outcome.failure_count = len(results) - outcome.success_count
        logger.info(
            "bulk operation finished",
            extra={"operation": operation, "success_count": outcome.success_count, "failure_count": outcome.failure_count},
        )
        return outcome

    async def _update_status(self, order_id: str, status: OrderStatus, note: str | None) -> None:
        await self.engine.transition(Order(id=order_id), status, note=note, confirm=_Confirmed())

    async def _update_priority(self, order_id: str, priority: Priority) -> None:
        await self.engine.fetch(order_id)
        await self.engine.commit(order_id, {"priority": priority.value})
