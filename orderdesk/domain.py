"""Domain models, transition table and ports for admin order processing.

This module contains the dataclasses describing an order as the admin
console sees it, the status/priority enumerations, the status transition
table, the ``effective_total`` derivation and the protocol definitions
(ports) for the collaborators the engine depends on: the order document
store, the operator notifier and the confirmation gate.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Protocol


# ---- Enums ----
class OrderStatus(str, Enum):
    """Fulfillment lifecycle of an order.

    ``DECLINED``, ``CANCELLED`` and ``REFUNDED`` are terminal; orders are
    never deleted by the console, these statuses take the place of
    deletion.
    """

    PLACED = "Placed"
    APPROVED = "Approved"
    PACKED = "Packed"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    DECLINED = "Declined"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"

    @classmethod
    def parse(cls, value: Any) -> Optional["OrderStatus"]:
        """Return the status matching ``value`` case-insensitively, or None."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        wanted = value.strip().lower()
        for member in cls:
            if member.value.lower() == wanted:
                return member
        return None


class Priority(str, Enum):
    """Handling priority; orders without one are treated as ``NORMAL``."""

    URGENT = "Urgent"
    HIGH = "High"
    NORMAL = "Normal"
    LOW = "Low"

    @classmethod
    def parse(cls, value: Any) -> Optional["Priority"]:
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        wanted = value.strip().lower()
        for member in cls:
            if member.value.lower() == wanted:
                return member
        return None


# ---- Transition table ----
TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PLACED: frozenset({OrderStatus.APPROVED, OrderStatus.DECLINED, OrderStatus.CANCELLED}),
    OrderStatus.APPROVED: frozenset({OrderStatus.PACKED, OrderStatus.CANCELLED}),
    OrderStatus.PACKED: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.DECLINED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

# Targets that can only be reached through a dedicated operation.
TRACKING_ONLY_TARGETS: FrozenSet[OrderStatus] = frozenset({OrderStatus.SHIPPED})

# Targets that need operator confirmation before the write.
CONFIRMATION_REQUIRED: FrozenSet[OrderStatus] = frozenset({OrderStatus.DECLINED, OrderStatus.CANCELLED})


def allowed_targets(status: Any) -> FrozenSet[OrderStatus]:
    """Return the statuses reachable from ``status``.

    Unknown raw statuses (legacy records) have no reachable targets.

    Args:
        status: An ``OrderStatus`` or a raw status string.

    Returns:
        frozenset[OrderStatus]: Reachable targets, including those that
        can only be reached through tracking attachment.
    """
    parsed = OrderStatus.parse(status)
    if parsed is None:
        return frozenset()
    return TRANSITIONS[parsed]


def is_terminal(status: Any) -> bool:
    """True when no transition leaves ``status``."""
    return not allowed_targets(status)


def requires_tracking(status: Any) -> bool:
    """True when ``status`` can only be entered by attaching tracking."""
    return OrderStatus.parse(status) in TRACKING_ONLY_TARGETS


def requires_confirmation(status: Any) -> bool:
    return OrderStatus.parse(status) in CONFIRMATION_REQUIRED


# ---- Entities / DTOs ----
@dataclass(frozen=True)
class OrderItem:
    """A purchased line item.

    Items are frozen: the console never edits what was bought.
    """

    name: str
    price: float = 0.0
    quantity: int = 1
    image: Optional[str] = None


@dataclass
class Financials:
    """Monetary breakdown of an order. ``total`` may be missing on old records."""

    subtotal: Optional[float] = None
    tax: Optional[float] = None
    shipping: Optional[float] = None
    discount: Optional[float] = None
    total: Optional[float] = None


@dataclass
class LegacyTotals:
    """Total fields written by older checkout paths.

    Attributes:
        total: Top-level ``total``.
        amount: Top-level ``amount``.
        grand_total: Top-level ``grandTotal``.
        final_amount: Top-level ``finalAmount``.
        order_total: Top-level ``orderTotal``.
        payment_amount: ``payment.amount``.
        summary_total: ``summary.total``.
        pricing_total: ``pricing.total``.
    """

    total: Optional[float] = None
    amount: Optional[float] = None
    grand_total: Optional[float] = None
    final_amount: Optional[float] = None
    order_total: Optional[float] = None
    payment_amount: Optional[float] = None
    summary_total: Optional[float] = None
    pricing_total: Optional[float] = None


@dataclass
class Customer:
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


@dataclass
class Address:
    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


@dataclass
class Tracking:
    """Carrier binding for a shipped order. ``code`` is an opaque carrier string."""

    code: str
    carrier: str
    url: Optional[str] = None
    estimated_delivery: Optional[datetime] = None


@dataclass(frozen=True)
class StatusHistoryEntry:
    """One audit-trail record. History entries are appended, never edited."""

    status: str
    timestamp: datetime
    note: str
    updated_by: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


@dataclass
class Order:
    """Working copy of one customer order.

    Attributes:
        id: Store-assigned document identifier.
        order_id: Human-facing order number, may differ from ``id``.
        status: Current ``OrderStatus``; unknown legacy values are kept as
            the raw string.
        priority: Handling priority, ``Priority.NORMAL`` when absent.
        items: Purchased line items.
        financials: Monetary breakdown, if the record carries one.
        legacy_totals: Alternative total fields from older write paths.
        customer: Buyer contact details.
        shipping_address: Destination postal address.
        tracking: Carrier binding, present once shipped.
        status_history: Append-only audit trail.
        raw_history: Stored ``statusHistory`` list exactly as read; new
            entries are appended to it so stored entries are never rewritten.
        created_at: Creation timestamp (newer records).
        order_date: Creation timestamp (older records).
        admin_notes: Free-text notes left by operators.
    """

    id: str
    order_id: Optional[str] = None
    status: Any = OrderStatus.PLACED
    priority: Priority = Priority.NORMAL
    items: List[OrderItem] = field(default_factory=list)
    financials: Optional[Financials] = None
    legacy_totals: LegacyTotals = field(default_factory=LegacyTotals)
    customer: Optional[Customer] = None
    shipping_address: Optional[Address] = None
    tracking: Optional[Tracking] = None
    status_history: List[StatusHistoryEntry] = field(default_factory=list)
    raw_history: List[Any] = field(default_factory=list, repr=False)
    created_at: Optional[datetime] = None
    order_date: Optional[datetime] = None
    admin_notes: Optional[str] = None

    @property
    def placed_at(self) -> Optional[datetime]:
        """Creation timestamp, preferring ``created_at`` over ``order_date``."""
        return self.created_at or self.order_date


# ---- Effective total ----
TOTAL_RESOLUTION_ORDER: List[tuple[str, Callable[[Order], Optional[float]]]] = [
    ("total", lambda o: o.legacy_totals.total),
    ("amount", lambda o: o.legacy_totals.amount),
    ("grandTotal", lambda o: o.legacy_totals.grand_total),
    ("finalAmount", lambda o: o.legacy_totals.final_amount),
    ("orderTotal", lambda o: o.legacy_totals.order_total),
    ("financials.total", lambda o: o.financials.total if o.financials else None),
    ("payment.amount", lambda o: o.legacy_totals.payment_amount),
    ("summary.total", lambda o: o.legacy_totals.summary_total),
    ("pricing.total", lambda o: o.legacy_totals.pricing_total),
]


def effective_total(order: Order) -> float:
    """Resolve the monetary total of an order.

    Walks ``TOTAL_RESOLUTION_ORDER`` and returns the first candidate that
    is present and non-zero. When none qualifies the total is computed as
    the sum of ``price * quantity`` over the items, and 0 when that is
    empty too.

    Args:
        order: Order to evaluate.

    Returns:
        float: The resolved total.
    """
    for _name, getter in TOTAL_RESOLUTION_ORDER:
        value = getter(order)
        if value:
            return value
    computed = sum((item.price or 0) * (item.quantity or 0) for item in order.items)
    return computed or 0


# ---- Ports (DIP) ----
class OrderStorePort(Protocol):
    """Port describing the order document store.

    Writes use partial-field merge semantics: only the keys present in
    ``fields`` are replaced on the stored document.
    """

    async def read_order(self, order_id: str) -> Optional[Order]:
        """Return the stored order or None when it does not exist.

        Raises:
            PersistenceError: When the store cannot be reached.
        """
        raise NotImplementedError()

    async def write_order(self, order_id: str, fields: Dict[str, Any]) -> None:
        """Merge ``fields`` (document field names) into the stored order.

        Raises:
            PersistenceError: When the write is rejected or fails.
        """
        raise NotImplementedError()

    async def list_orders(self, filter_hints: Optional[Dict[str, Any]] = None) -> List[Order]:
        """Return the order snapshot, newest first.

        ``filter_hints`` may be used by the store to narrow the result; the
        console always applies its own filters afterwards.
        """
        raise NotImplementedError()


class NotifierPort(Protocol):
    """Fire-and-forget channel to the operator."""

    def notify(self, level: str, message: str) -> None:
        raise NotImplementedError()


class ConfirmPort(Protocol):
    """Blocking yes/no gate in front of destructive operations."""

    def confirm(self, message: str) -> bool:
        raise NotImplementedError()
