"""Order console exceptions.

Raised by the workflow engine, the tracking attachment and the bulk
orchestrator when an operation cannot proceed. Each exception carries a
short, stable ``code`` that the console facade and the API translate into
operator notifications and HTTP responses.
"""


class OrderDeskError(Exception):
    """Base class for errors raised by order operations."""

    code = "ORDER_DESK_ERROR"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code


class ValidationError(OrderDeskError):
    """Malformed or missing input; nothing was written."""

    code = "VALIDATION_ERROR"


class InvalidTransition(OrderDeskError):
    """The requested status is not reachable from the current status."""

    code = "INVALID_TRANSITION"

    def __init__(self, current, requested, message: str | None = None):
        self.current = current
        self.requested = requested
        super().__init__(
            message or f"Cannot move order from {_label(current)} to {_label(requested)}"
        )


class NotFoundError(OrderDeskError):
    """The order is missing from the store at re-fetch time."""

    code = "NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class PersistenceError(OrderDeskError):
    """The store rejected the read/write or could not be reached."""

    code = "PERSISTENCE_ERROR"


class ConfirmationDeclined(OrderDeskError):
    """The operator did not confirm a destructive operation."""

    code = "ABORTED"


def _label(status) -> str:
    return getattr(status, "value", status)
