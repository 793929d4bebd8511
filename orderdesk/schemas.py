"""Pydantic schemas for the order console.

This module exposes the filter state used by the search engine and the
request/read schemas used by the admin API. Field names accept both the
snake_case Python names and the camelCase names the admin UI sends.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .documents import format_timestamp, parse_timestamp, to_number
from .domain import Order, OrderStatus, Priority, effective_total

ALL = "all"


def _label(value: Any) -> str:
    return getattr(value, "value", value)


def _is_all(value: Any) -> bool:
    """True for unset, blank or any casing of ``"all"``."""
    return value is None or str(value).strip().lower() in ("", ALL)


class DateRange(BaseModel):
    """Inclusive creation-date window; either bound may be omitted."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @field_validator("start", "end", mode="before")
    @classmethod
    def parse_bound(cls, v: Any) -> Optional[datetime]:
        """Parse a bound leniently; unparseable values disable that bound.

        Args:
            v: Raw bound (ISO string, date, datetime, epoch number or empty).

        Returns:
            Aware UTC datetime or None.
        """
        return parse_timestamp(v)


class FilterState(BaseModel):
    """Session-local filter selection for the orders list.

    Attributes:
        status: Exact status label, or ``"all"``.
        priority: Exact priority label, or ``"all"``.
        search_term: Case-insensitive substring; blank disables it.
        date_range: Creation-date window.
        min_amount: Floor on the effective total; non-numeric input
            disables the predicate instead of failing.
        carrier: Exact tracking carrier, or ``"all"``.
    """

    model_config = ConfigDict(populate_by_name=True)

    status: str = ALL
    priority: str = ALL
    search_term: str = Field(default="", alias="searchTerm")
    date_range: DateRange = Field(default_factory=DateRange, alias="dateRange")
    min_amount: Optional[float] = Field(default=None, alias="minAmount")
    carrier: str = ALL

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> str:
        if _is_all(v):
            return ALL
        parsed = OrderStatus.parse(v)
        return parsed.value if parsed else str(v).strip()

    @field_validator("priority", mode="before")
    @classmethod
    def normalize_priority(cls, v: Any) -> str:
        if _is_all(v):
            return ALL
        parsed = Priority.parse(v)
        return parsed.value if parsed else str(v).strip()

    @field_validator("carrier", mode="before")
    @classmethod
    def normalize_carrier(cls, v: Any) -> str:
        if _is_all(v):
            return ALL
        return str(v).strip()

    @field_validator("search_term", mode="before")
    @classmethod
    def normalize_search(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("min_amount", mode="before")
    @classmethod
    def lenient_amount(cls, v: Any) -> Optional[float]:
        """Convert the amount floor, dropping non-numeric input.

        Args:
            v: Raw floor as typed by the operator (number or string).

        Returns:
            The numeric floor, or None when ``v`` is not numeric.
        """
        return to_number(v)

    @field_validator("date_range", mode="before")
    @classmethod
    def default_range(cls, v: Any) -> Any:
        return {} if v is None else v


class TrackingRequest(BaseModel):
    """Tracking attachment request; ``carrier`` falls back to the configured default."""

    code: str = Field(min_length=1, max_length=64)
    carrier: Optional[str] = Field(default=None, max_length=64)
    service: Optional[str] = None
    weight: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("code")
    @classmethod
    def strip_code(cls, v: str) -> str:
        """Strip whitespace and reject blank codes.

        Raises:
            ValueError: When the code is blank.
        """
        v2 = v.strip()
        if not v2:
            raise ValueError("Tracking code must not be blank")
        return v2


class TransitionRequest(BaseModel):
    status: str
    note: Optional[str] = Field(default=None, max_length=500)
    confirmed: bool = False

    @field_validator("status")
    @classmethod
    def known_status(cls, v: str) -> str:
        parsed = OrderStatus.parse(v)
        if parsed is None:
            raise ValueError("Unknown order status")
        return parsed.value


class BulkRequest(BaseModel):
    operation: Literal["update_status", "update_priority"]
    order_ids: List[str] = Field(alias="orderIds")
    data: Dict[str, Any] = Field(default_factory=dict, alias="operationData")
    confirmed: bool = False

    model_config = ConfigDict(populate_by_name=True)


class TrackingReadDTO(BaseModel):
    code: str
    carrier: str


class HistoryReadDTO(BaseModel):
    status: str
    timestamp: str
    note: str
    updated_by: Optional[str] = None


class OrderReadDTO(BaseModel):
    """Read-only order representation returned by the API."""

    id: str
    order_id: Optional[str] = None
    status: str
    priority: str
    total: float
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    item_count: int = 0
    tracking: Optional[TrackingReadDTO] = None
    placed_at: Optional[str] = None
    status_history: List[HistoryReadDTO] = Field(default_factory=list)

    @classmethod
    def from_order(cls, order: Order) -> "OrderReadDTO":
        return cls(
            id=order.id,
            order_id=order.order_id,
            status=_label(order.status),
            priority=_label(order.priority),
            total=effective_total(order),
            customer_name=order.customer.name if order.customer else None,
            customer_email=order.customer.email if order.customer else None,
            item_count=sum(item.quantity for item in order.items),
            tracking=(
                TrackingReadDTO(code=order.tracking.code, carrier=order.tracking.carrier)
                if order.tracking
                else None
            ),
            placed_at=format_timestamp(order.placed_at) if order.placed_at else None,
            status_history=[
                HistoryReadDTO(
                    status=e.status,
                    timestamp=format_timestamp(e.timestamp),
                    note=e.note,
                    updated_by=e.updated_by,
                )
                for e in order.status_history
            ],
        )
