"""Mapping between stored order documents and domain ``Order`` objects.

Order documents come from several historical write paths, so decoding is
tolerant: field names are camelCase, totals may live under different
keys, timestamps may be ISO strings, epoch numbers, ``datetime`` objects
or ``{"seconds": ...}`` mappings, and numbers may be stored as strings.
Encoding only produces the partial field sets the engine writes back.
"""

import math
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional

from .domain import (
    Address,
    Customer,
    Financials,
    LegacyTotals,
    Order,
    OrderItem,
    OrderStatus,
    Priority,
    StatusHistoryEntry,
    Tracking,
)

# Epoch values above this are treated as milliseconds.
_EPOCH_MS_THRESHOLD = 1e11


def to_number(value: Any) -> Optional[float]:
    """Convert ``value`` to a finite number, or None when it is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return int(number) if number.is_integer() else number


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a stored timestamp into an aware UTC ``datetime``.

    Naive values are assumed to be UTC. Unparseable values yield None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time.min)
    elif isinstance(value, (int, float)):
        seconds = value / 1000 if value > _EPOCH_MS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, dict) and "seconds" in value:
        seconds = to_number(value.get("seconds"))
        if seconds is None:
            return None
        nanos = to_number(value.get("nanoseconds")) or 0
        try:
            return datetime.fromtimestamp(seconds + nanos / 1e9, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """ISO-8601 string with millisecond precision and a ``Z`` suffix."""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _nested(doc: Dict[str, Any], key: str, sub: str) -> Any:
    inner = doc.get(key)
    if isinstance(inner, dict):
        return inner.get(sub)
    return None


def _items(raw: Any) -> List[OrderItem]:
    if not isinstance(raw, list):
        return []
    items = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        quantity = to_number(entry.get("quantity"))
        items.append(
            OrderItem(
                name=str(entry.get("name") or ""),
                price=to_number(entry.get("price")) or 0,
                quantity=int(quantity) if quantity is not None else 1,
                image=entry.get("image"),
            )
        )
    return items


def _financials(raw: Any) -> Optional[Financials]:
    if not isinstance(raw, dict):
        return None
    return Financials(
        subtotal=to_number(raw.get("subtotal")),
        tax=to_number(raw.get("tax")),
        shipping=to_number(raw.get("shipping")),
        discount=to_number(raw.get("discount")),
        total=to_number(raw.get("total")),
    )


def _customer(doc: Dict[str, Any]) -> Optional[Customer]:
    raw = doc.get("customer")
    if isinstance(raw, dict):
        return Customer(name=_text(raw.get("name")), email=_text(raw.get("email")), phone=_text(raw.get("phone")))
    # flat legacy layout
    if any(k in doc for k in ("customerName", "customerEmail", "customerPhone")):
        return Customer(
            name=_text(doc.get("customerName")),
            email=_text(doc.get("customerEmail")),
            phone=_text(doc.get("customerPhone")),
        )
    return None


def _address(raw: Any) -> Optional[Address]:
    if not isinstance(raw, dict):
        return None
    return Address(
        line1=_text(raw.get("line1") or raw.get("address")),
        line2=_text(raw.get("line2")),
        city=_text(raw.get("city")),
        state=_text(raw.get("state")),
        postal_code=_text(raw.get("postalCode") or raw.get("pincode") or raw.get("zip")),
        country=_text(raw.get("country")),
    )


def _tracking(raw: Any) -> Optional[Tracking]:
    if not isinstance(raw, dict) or not raw.get("code"):
        return None
    return Tracking(
        code=str(raw["code"]),
        carrier=str(raw.get("carrier") or ""),
        url=_text(raw.get("url")),
        estimated_delivery=parse_timestamp(raw.get("estimatedDelivery")),
    )


def _history(raw: Any) -> List[StatusHistoryEntry]:
    if not isinstance(raw, list):
        return []
    entries = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        status = OrderStatus.parse(entry.get("status"))
        entries.append(
            StatusHistoryEntry(
                status=status.value if status else str(entry.get("status") or ""),
                timestamp=parse_timestamp(entry.get("timestamp")) or datetime.fromtimestamp(0, tz=timezone.utc),
                note=str(entry.get("note") or ""),
                updated_by=_text(entry.get("updatedBy")),
                metadata=entry.get("metadata") if isinstance(entry.get("metadata"), dict) else None,
            )
        )
    return entries


def order_from_document(doc: Dict[str, Any], doc_id: str | None = None) -> Order:
    """Build an ``Order`` from a stored document.

    Args:
        doc: Raw document fields.
        doc_id: Store identifier; falls back to ``doc["id"]``.

    Returns:
        Order: Decoded working copy.
    """
    raw_status = doc.get("status")
    status = OrderStatus.parse(raw_status)
    return Order(
        id=str(doc_id if doc_id is not None else doc.get("id")),
        order_id=_text(doc.get("orderId")),
        status=status if status is not None else (raw_status or OrderStatus.PLACED),
        priority=Priority.parse(doc.get("priority")) or Priority.NORMAL,
        items=_items(doc.get("items")),
        financials=_financials(doc.get("financials")),
        legacy_totals=LegacyTotals(
            total=to_number(doc.get("total")),
            amount=to_number(doc.get("amount")),
            grand_total=to_number(doc.get("grandTotal")),
            final_amount=to_number(doc.get("finalAmount")),
            order_total=to_number(doc.get("orderTotal")),
            payment_amount=to_number(_nested(doc, "payment", "amount")),
            summary_total=to_number(_nested(doc, "summary", "total")),
            pricing_total=to_number(_nested(doc, "pricing", "total")),
        ),
        customer=_customer(doc),
        shipping_address=_address(doc.get("shippingAddress")),
        tracking=_tracking(doc.get("tracking")),
        status_history=_history(doc.get("statusHistory")),
        raw_history=list(doc["statusHistory"]) if isinstance(doc.get("statusHistory"), list) else [],
        created_at=parse_timestamp(doc.get("createdAt")),
        order_date=parse_timestamp(doc.get("orderDate")),
        admin_notes=_text(doc.get("adminNotes") or doc.get("notes")),
    )


def history_entry_to_document(entry: StatusHistoryEntry) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "status": entry.status,
        "timestamp": format_timestamp(entry.timestamp),
        "note": entry.note,
    }
    if entry.updated_by:
        out["updatedBy"] = entry.updated_by
    if entry.metadata:
        out["metadata"] = dict(entry.metadata)
    return out


def tracking_to_document(tracking: Tracking) -> Dict[str, Any]:
    out: Dict[str, Any] = {"code": tracking.code, "carrier": tracking.carrier}
    if tracking.url:
        out["url"] = tracking.url
    if tracking.estimated_delivery:
        out["estimatedDelivery"] = format_timestamp(tracking.estimated_delivery)
    return out


def status_fields(status: Any, stored_history: List[Any], entry: StatusHistoryEntry) -> Dict[str, Any]:
    """Partial document for a status change.

    The stored history list is carried over untouched and ``entry`` is
    appended to it; earlier entries keep their exact stored form.
    """
    return {
        "status": getattr(status, "value", status),
        "statusHistory": [*stored_history, history_entry_to_document(entry)],
    }
