"""Filter and search over the in-memory order snapshot.

``apply_filters`` composes independent predicates with AND semantics and
never reorders or mutates its input. Each predicate is built from the
filter state and is skipped entirely when its field is unset, ``"all"``,
blank or (for the amount floor) not numeric.
"""

import logging
from datetime import datetime, time, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from .domain import Order, OrderStatus, Priority, effective_total
from .schemas import ALL, FilterState

logger = logging.getLogger("orderdesk.filters")

Predicate = Callable[[Order], bool]

END_OF_DAY = time(23, 59, 59, 999000)


def _label(value: Any) -> str:
    return getattr(value, "value", value)


def _status_predicate(state: FilterState) -> Optional[Predicate]:
    if state.status == ALL:
        return None
    return lambda order: _label(order.status) == state.status


def _priority_predicate(state: FilterState) -> Optional[Predicate]:
    if state.priority == ALL:
        return None
    return lambda order: _label(order.priority or Priority.NORMAL) == state.priority


def searchable_text(order: Order) -> List[str]:
    """Every string the free-text search looks at for ``order``."""
    values: List[Optional[str]] = [order.order_id, order.id]
    if order.customer:
        values += [order.customer.name, order.customer.email, order.customer.phone]
    values += [item.name for item in order.items]
    if order.tracking:
        values.append(order.tracking.code)
    values.append(order.admin_notes)
    return [v for v in values if v]


def _search_predicate(state: FilterState) -> Optional[Predicate]:
    term = state.search_term.strip().lower()
    if not term:
        return None
    return lambda order: any(term in value.lower() for value in searchable_text(order))


def _amount_predicate(state: FilterState) -> Optional[Predicate]:
    if state.min_amount is None:
        return None
    floor = state.min_amount
    return lambda order: effective_total(order) >= floor


def _carrier_predicate(state: FilterState) -> Optional[Predicate]:
    if state.carrier == ALL:
        return None
    return lambda order: order.tracking is not None and order.tracking.carrier == state.carrier


def _date_predicate(state: FilterState) -> Optional[Predicate]:
    start = state.date_range.start
    end = state.date_range.end
    if start is None and end is None:
        return None
    if end is not None:
        end = datetime.combine(end.date(), END_OF_DAY, tzinfo=timezone.utc)

    def predicate(order: Order) -> bool:
        placed = order.placed_at
        if placed is None:
            return False
        if placed.tzinfo is None:
            placed = placed.replace(tzinfo=timezone.utc)
        if start is not None and placed < start:
            return False
        if end is not None and placed > end:
            return False
        return True

    return predicate


PREDICATE_BUILDERS: List[tuple[str, Callable[[FilterState], Optional[Predicate]]]] = [
    ("status", _status_predicate),
    ("priority", _priority_predicate),
    ("search", _search_predicate),
    ("min_amount", _amount_predicate),
    ("carrier", _carrier_predicate),
    ("date_range", _date_predicate),
]


def coerce_filter_state(state: "FilterState | Mapping[str, Any] | None") -> FilterState:
    if state is None:
        return FilterState()
    if isinstance(state, FilterState):
        return state
    return FilterState.model_validate(dict(state))


def apply_filters(orders: Iterable[Order], filter_state: "FilterState | Mapping[str, Any] | None") -> List[Order]:
    """Return the orders matching every active predicate, in input order.

    Args:
        orders: Order snapshot; left untouched.
        filter_state: ``FilterState`` or a mapping accepted by it.

    Returns:
        list[Order]: Matching orders, same relative order as the input.
    """
    state = coerce_filter_state(filter_state)
    result = list(orders)
    for name, build in PREDICATE_BUILDERS:
        predicate = build(state)
        if predicate is None:
            continue
        before = len(result)
        result = [order for order in result if predicate(order)]
        logger.debug("filter applied", extra={"predicate": name, "before": before, "after": len(result)})
    return result


def status_counts(orders: Iterable[Order]) -> Dict[str, int]:
    """Count orders per status label, plus ``"all"``.

    Every known status is present (possibly 0); unknown raw statuses are
    counted under their own value.
    """
    counts: Dict[str, int] = {ALL: 0}
    counts.update({status.value: 0 for status in OrderStatus})
    for order in orders:
        counts[ALL] += 1
        label = str(_label(order.status))
        counts[label] = counts.get(label, 0) + 1
    return counts
