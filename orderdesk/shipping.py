"""Tracking attachment: bind a carrier code and ship in one write."""

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from .documents import status_fields, tracking_to_document
from .domain import Order, OrderStatus, Tracking
from .errors import InvalidTransition, ValidationError
from .workflow import WorkflowEngine

logger = logging.getLogger("orderdesk.shipping")


@dataclass
class TrackingInfo:
    """Operator input for shipping an order.

    Only ``code`` and ``carrier`` are stored on the order; ``service``,
    ``weight`` and ``notes`` end up in the history note.
    """

    code: str
    carrier: str
    service: str | None = None
    weight: Any = None
    notes: str | None = None

    @classmethod
    def coerce(cls, value: "TrackingInfo | Mapping[str, Any]") -> "TrackingInfo":
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            return cls(
                code=value.get("code") or "",
                carrier=value.get("carrier") or "",
                service=value.get("service"),
                weight=value.get("weight"),
                notes=value.get("notes"),
            )
        raise ValidationError("Tracking information must be a mapping")

    def note(self) -> str:
        text = f"Shipped with tracking code: {self.code}"
        extras = [
            f"{label}: {value}"
            for label, value in (("service", self.service), ("weight", self.weight), ("notes", self.notes))
            if value not in (None, "")
        ]
        if extras:
            text += f" ({', '.join(extras)})"
        return text


class ShippingService:
    """Attaches tracking to packed orders and advances them to ``Shipped``.

    This is the only way into ``Shipped``: ``WorkflowEngine.transition``
    rejects that target.
    """

    def __init__(self, engine: WorkflowEngine):
        self.engine = engine

    async def attach_tracking(self, order: Order, tracking_info: "TrackingInfo | Mapping[str, Any]") -> Order:
        """Bind ``{code, carrier}`` to ``order`` and mark it shipped.

        Args:
            order: Working copy to update on success.
            tracking_info: ``TrackingInfo`` or a mapping with the same keys.

        Returns:
            The same ``order`` with ``status``, ``tracking`` and
            ``status_history`` updated.

        Raises:
            ValidationError: If the code or carrier is empty. Nothing is
                read or written.
            NotFoundError: If the order vanished from the store.
            InvalidTransition: If the stored order is not ``Packed``
                (including a repeated call on an order already shipped).
            PersistenceError: If the read or write fails.
        """
        info = TrackingInfo.coerce(tracking_info)
        code = str(info.code or "").strip()
        carrier = str(info.carrier or "").strip()
        if not code:
            raise ValidationError("Please enter a valid tracking code")
        if not carrier:
            raise ValidationError("Please select a carrier")
        info.code, info.carrier = code, carrier

        current = await self.engine.fetch(order.id)
        if OrderStatus.parse(current.status) is not OrderStatus.PACKED:
            logger.warning("tracking rejected", extra={"order_id": order.id, "code": code})
            raise InvalidTransition(current.status, OrderStatus.SHIPPED)

        tracking = Tracking(code=code, carrier=carrier)
        entry = self.engine.history_entry(
            OrderStatus.SHIPPED,
            info.note(),
            metadata={"tracking_code": code, "carrier": carrier},
        )
        fields = status_fields(OrderStatus.SHIPPED, current.raw_history, entry)
        fields["tracking"] = tracking_to_document(tracking)
        await self.engine.commit(order.id, fields)

        order.status = OrderStatus.SHIPPED
        order.tracking = tracking
        order.status_history = [*current.status_history, entry]
        order.raw_history = fields["statusHistory"]
        logger.info("tracking attached", extra={"order_id": order.id, "code": code, "carrier": carrier})
        return order
