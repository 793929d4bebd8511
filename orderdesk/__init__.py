"""Order processing workflow for the e-commerce admin console."""

from .domain import Order, OrderStatus, Priority, effective_total
from .errors import (
    ConfirmationDeclined,
    InvalidTransition,
    NotFoundError,
    OrderDeskError,
    PersistenceError,
    ValidationError,
)
from .filters import apply_filters

__all__ = [
    "ConfirmationDeclined",
    "InvalidTransition",
    "NotFoundError",
    "Order",
    "OrderDeskError",
    "OrderStatus",
    "PersistenceError",
    "Priority",
    "ValidationError",
    "apply_filters",
    "effective_total",
]
