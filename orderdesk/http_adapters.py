"""HTTP client for the order document store.

This module implements ``OrderStorePort`` on top of ``httpx.AsyncClient``.
It adds:

- Request correlation: propagates ``X-Request-ID`` from the ContextVar set
  by the API middleware.
- A circuit breaker so an unhealthy store is not hammered, with HALF_OPEN
  probing after a timeout.
- A simple retry policy with exponential backoff for transport errors and
  5xx responses.

Every failure that reaches the caller is a ``PersistenceError``; a 404 on
read is reported as a missing order (``None``).
"""

import asyncio
import logging
import threading
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from .config import Settings, get_settings
from .documents import order_from_document
from .domain import Order
from .errors import PersistenceError
from .logging_config import REQUEST_ID_CTX

logger = logging.getLogger("orderdesk.http")


# ---------------- Circuit Breaker ---------------- #

class CircuitBreaker:
    """Minimal circuit breaker with CLOSED/OPEN/HALF_OPEN states.

    Transitions:
    - CLOSED -> OPEN when failures reach ``fail_threshold``.
    - OPEN -> HALF_OPEN after ``reset_timeout`` seconds.
    - HALF_OPEN -> CLOSED on a successful probe; only one probe may be in
      flight; a failed probe opens the circuit again.
    """

    def __init__(self, name: str, fail_threshold: int, reset_timeout: float):
        self.name = name
        self.fail_threshold = fail_threshold
        self.reset_timeout = reset_timeout
        self._lock = threading.RLock()
        self._failures = 0
        self._state = "CLOSED"  # CLOSED | OPEN | HALF_OPEN
        self._opened_at = 0.0
        self._half_open_probe_in_flight = False

    @property
    def state(self) -> str:
        """Current breaker state with time-based transition handling."""
        with self._lock:
            if self._state == "OPEN" and (time.monotonic() - self._opened_at) >= self.reset_timeout:
                self._state = "HALF_OPEN"
                self._half_open_probe_in_flight = False
            return self._state

    def before_call(self) -> str:
        """Check and update state before a protected call.

        Returns:
            str: The state at call time.

        Raises:
            PersistenceError: If the circuit is OPEN or a HALF_OPEN probe is
                already in flight.
        """
        with self._lock:
            st = self.state
            if st == "OPEN":
                raise PersistenceError(f"Order store unavailable ({self.name} circuit open)")
            if st == "HALF_OPEN":
                if self._half_open_probe_in_flight:
                    raise PersistenceError(f"Order store unavailable ({self.name} circuit probing)")
                self._half_open_probe_in_flight = True
            return st

    def on_success(self):
        with self._lock:
            self._failures = 0
            self._state = "CLOSED"
            self._half_open_probe_in_flight = False

    def on_failure(self):
        with self._lock:
            self._failures += 1
            if self._state == "HALF_OPEN" or (self._failures >= self.fail_threshold and self._state != "OPEN"):
                self._state = "OPEN"
                self._opened_at = time.monotonic()
                self._half_open_probe_in_flight = False

    def on_finish(self):
        with self._lock:
            if self._state == "HALF_OPEN":
                self._half_open_probe_in_flight = False


# ---------------- Helpers ---------------- #

def _request_headers(extra: Optional[dict] = None) -> dict:
    """Build base headers including X-Request-ID and any extras."""
    headers: dict[str, str] = {}
    rid = REQUEST_ID_CTX.get()
    if rid and rid != "-":
        headers["X-Request-ID"] = rid
    if extra:
        headers.update(extra)
    return headers


def _should_retry(resp: Optional[httpx.Response], exc: Optional[Exception]) -> bool:
    """Retry only on transport errors or HTTP 5xx."""
    if exc is not None:
        return True
    if resp is not None and 500 <= resp.status_code < 600:
        return True
    return False


# ---------------- Store Adapter ---------------- #

class HttpOrderStore:
    """HTTP implementation of ``OrderStorePort``.

    Endpoints used on the store:
    - ``GET  /orders/{id}``  -> 200 with the document, 404 when missing
    - ``PATCH /orders/{id}`` -> partial merge of the JSON body
    - ``GET  /orders``       -> ``{"orders": [...]}`` or a bare list
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        self.base_url = (base_url or self.settings.store_base_url).rstrip("/")
        self.timeout = timeout or self.settings.http_timeout_secs
        self._transport = transport
        self._sleep = sleep
        self.breaker = CircuitBreaker(
            "orders-store",
            self.settings.http_circuit_fail_threshold,
            self.settings.http_circuit_reset_timeout,
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    async def _request(self, method: str, path: str, ok_statuses=(200, 201, 204), **kwargs) -> httpx.Response:
        """Send one request with circuit-breaker precheck and retries.

        Responses with a status in ``ok_statuses`` or any 4xx are returned
        to the caller; transport errors and 5xx are retried and end in
        ``PersistenceError`` once attempts are exhausted.
        """
        max_retries = self.settings.http_retry_max
        backoff = self.settings.http_retry_backoff_base
        tries = 0

        state = self.breaker.before_call()
        headers = _request_headers({"X-Circuit-State": state, "X-Retry-Count": "0"})

        try:
            async with self._client() as client:
                while True:
                    resp = None
                    exc = None
                    try:
                        resp = await client.request(method, path, headers=headers, **kwargs)
                        if resp.status_code in ok_statuses or 400 <= resp.status_code < 500:
                            self.breaker.on_success()
                            return resp
                    except httpx.RequestError as e:
                        exc = e

                    tries += 1
                    headers["X-Retry-Count"] = str(tries)

                    if tries >= max_retries or not _should_retry(resp, exc):
                        self.breaker.on_failure()
                        if exc is not None:
                            logger.error("store request failed", extra={"method": method, "path": path})
                            raise PersistenceError(f"Order store unreachable: {exc}") from exc
                        logger.error(
                            "store request failed",
                            extra={"method": method, "path": path, "status_code": resp.status_code},
                        )
                        raise PersistenceError(f"Order store error: HTTP {resp.status_code}")

                    sleep_s = backoff * (2 ** (tries - 1))
                    if sleep_s > 0:
                        await self._sleep(min(sleep_s, self.settings.http_retry_max_sleep))
        finally:
            self.breaker.on_finish()

    @staticmethod
    def _detail(resp: httpx.Response) -> str:
        try:
            body = resp.json()
        except ValueError:
            return resp.text or f"HTTP {resp.status_code}"
        if isinstance(body, dict) and body.get("detail"):
            return str(body["detail"])
        return f"HTTP {resp.status_code}"

    async def read_order(self, order_id: str) -> Optional[Order]:
        resp = await self._request("GET", f"/orders/{order_id}")
        if resp.status_code == 404:
            return None
        if resp.status_code >= 400:
            raise PersistenceError(f"Failed to read order {order_id}: {self._detail(resp)}")
        try:
            return order_from_document(resp.json(), str(order_id))
        except (ValueError, TypeError, AttributeError) as exc:
            logger.error("malformed order document", extra={"order_id": order_id})
            raise PersistenceError(f"Malformed document for order {order_id}: {exc}") from exc

    async def write_order(self, order_id: str, fields: Dict[str, Any]) -> None:
        resp = await self._request("PATCH", f"/orders/{order_id}", json=fields)
        if resp.status_code >= 400:
            raise PersistenceError(f"Failed to update order {order_id}: {self._detail(resp)}")

    async def list_orders(self, filter_hints: Optional[Dict[str, Any]] = None) -> List[Order]:
        params = {k: v for k, v in (filter_hints or {}).items() if v not in (None, "", "all")}
        resp = await self._request("GET", "/orders", params=params)
        if resp.status_code >= 400:
            raise PersistenceError(f"Failed to list orders: {self._detail(resp)}")
        try:
            body = resp.json()
            docs = body.get("orders", []) if isinstance(body, dict) else body
            return [order_from_document(doc) for doc in docs]
        except (ValueError, TypeError, AttributeError) as exc:
            logger.error("malformed order listing", extra={"path": "/orders"})
            raise PersistenceError(f"Malformed order listing: {exc}") from exc
