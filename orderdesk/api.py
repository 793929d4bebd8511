"""Admin API for the order console, built with FastAPI.

The endpoints are thin: they validate input with Pydantic models, build
a per-request ``OrderConsole`` through ``get_console`` and translate the
returned ``ActionResult`` into an HTTP response. Destructive requests
carry a ``confirmed`` flag which becomes the confirmation policy for that
request.
"""

import logging
import uuid
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from .adapters import LoggingNotifier, StaticConfirm
from .config import get_settings
from .console import ActionResult, OrderConsole, allowed_actions
from .logging_config import REQUEST_ID_CTX, configure_logging
from .providers import get_order_console
from .schemas import BulkRequest, FilterState, OrderReadDTO, TrackingRequest, TransitionRequest

logger = logging.getLogger("orderdesk.api")
configure_logging(get_settings().log_level)

app = FastAPI(title="Order Desk")

ERROR_STATUS = {
    "VALIDATION_ERROR": 400,
    "NOT_FOUND": 404,
    "INVALID_TRANSITION": 409,
    "ABORTED": 412,
    "PERSISTENCE_ERROR": 503,
}


def get_console() -> OrderConsole:
    """Request-scoped console; overridden in tests."""
    return get_order_console(notifier=LoggingNotifier())


def _order_body(result: ActionResult) -> dict:
    body = OrderReadDTO.from_order(result.order).model_dump(exclude_none=True)
    body["allowed_actions"] = allowed_actions(result.order)
    return body


def _error(result: ActionResult) -> JSONResponse:
    return JSONResponse(
        {"detail": result.error_code, "message": result.message},
        status_code=ERROR_STATUS.get(result.error_code or "", 500),
    )


@app.get("/health")
def health():
    """Liveness/health probe endpoint.

    Returns:
        dict: A small JSON payload indicating service health.
    """
    return {"ok": True}


@app.get("/orders")
async def list_orders(
    status: str = "all",
    priority: str = "all",
    search: str = "",
    min_amount: Optional[str] = None,
    carrier: str = "all",
    start: Optional[str] = None,
    end: Optional[str] = None,
    console: OrderConsole = Depends(get_console),
):
    """List orders matching the filter query parameters.

    ``min_amount`` is taken as typed; non-numeric values are ignored.

    Returns:
        dict: ``{"count", "results"}`` with results in store order.
    """
    if not await console.refresh():
        return JSONResponse({"detail": "PERSISTENCE_ERROR"}, status_code=503)
    console.set_filters(
        FilterState(
            status=status,
            priority=priority,
            search_term=search,
            min_amount=min_amount,
            carrier=carrier,
            date_range={"start": start, "end": end},
        )
    )
    results = [OrderReadDTO.from_order(o).model_dump(exclude_none=True) for o in console.visible_orders()]
    return {"count": len(results), "results": results}


@app.get("/orders/stats")
async def order_stats(console: OrderConsole = Depends(get_console)):
    """Per-status counts backing the status filter tabs."""
    if not await console.refresh():
        return JSONResponse({"detail": "PERSISTENCE_ERROR"}, status_code=503)
    return {"counts": console.counts()}


@app.post("/orders/bulk")
async def bulk_orders(req: BulkRequest, console: OrderConsole = Depends(get_console)):
    """Apply one operation to many orders.

    Partial failures still return 200; check ``failure_count``.
    """
    result = await console.bulk_apply(
        req.operation,
        req.order_ids,
        req.data,
        confirm=StaticConfirm(req.confirmed),
    )
    if result.bulk is None:
        return _error(result)
    return {
        "success_count": result.bulk.success_count,
        "failure_count": result.bulk.failure_count,
        "results": [
            {k: v for k, v in vars(item).items() if v is not None}
            for item in result.bulk.results
        ],
    }


@app.post("/orders/{order_id}/transition")
async def transition_order(order_id: str, req: TransitionRequest, console: OrderConsole = Depends(get_console)):
    """Move an order to another status.

    Returns:
        The updated order, or ``{"detail": <code>}`` with 404/409/412/503.
    """
    result = await console.transition(order_id, req.status, note=req.note, confirm=StaticConfirm(req.confirmed))
    if not result.ok:
        return _error(result)
    return _order_body(result)


@app.post("/orders/{order_id}/tracking")
async def attach_tracking(order_id: str, req: TrackingRequest, console: OrderConsole = Depends(get_console)):
    """Attach tracking to a packed order and mark it shipped."""
    payload = req.model_dump()
    payload["carrier"] = req.carrier or get_settings().default_carrier
    result = await console.attach_tracking(order_id, payload)
    if not result.ok:
        return _error(result)
    return _order_body(result)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = rid
    token = REQUEST_ID_CTX.set(rid)
    try:
        response = await call_next(request)
    finally:
        logger.info("request handled", extra={"path": request.url.path, "method": request.method})
        REQUEST_ID_CTX.reset(token)
    response.headers["X-Request-ID"] = rid
    return response


def run():
    """Serve the API with uvicorn (``orderdesk-api`` entry point)."""
    import uvicorn

    from . import uvicorn_conf

    uvicorn.run(
        "orderdesk.api:app",
        host=uvicorn_conf.host,
        port=uvicorn_conf.port,
        workers=uvicorn_conf.workers,
        log_level=uvicorn_conf.log_level,
    )
