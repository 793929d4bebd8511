"""Environment-driven settings for the order console.

All values are read from ``ORDERDESK_*`` environment variables (plus
``LOG_LEVEL``) with defaults suitable for local development. Invalid
numeric values fail fast when the settings are loaded.
"""

import os
from dataclasses import dataclass
from functools import lru_cache


def _bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    """Order console configuration.

    Attributes:
        use_http_store: Wire the HTTP document-store client instead of the
            in-memory store.
        store_base_url: Base URL of the order document store.
        http_timeout_secs: Per-request timeout for the store client.
        http_retry_max: Attempts for transport errors and 5xx responses.
        http_retry_backoff_base: Base delay of the exponential backoff.
        http_retry_max_sleep: Upper bound for a single backoff sleep.
        http_circuit_fail_threshold: Consecutive failures that open the
            circuit.
        http_circuit_reset_timeout: Seconds before an open circuit allows a
            probe.
        bulk_concurrency: Maximum in-flight writes during a bulk run.
        refresh_interval_secs: Period of the background snapshot refresh.
        default_carrier: Carrier used when a tracking request omits one.
        admin_name: Recorded as ``updatedBy`` on history entries.
        log_level: Root level for ``configure_logging``.
    """

    use_http_store: bool = False
    store_base_url: str = "http://orders-store:9003"
    http_timeout_secs: float = 5.0
    http_retry_max: int = 3
    http_retry_backoff_base: float = 0.15
    http_retry_max_sleep: float = 0.5
    http_circuit_fail_threshold: int = 5
    http_circuit_reset_timeout: float = 30.0
    bulk_concurrency: int = 5
    refresh_interval_secs: float = 300.0
    default_carrier: str = "IndiaPost"
    admin_name: str = "admin"
    log_level: str = "INFO"

    def __post_init__(self):
        if self.bulk_concurrency < 1:
            raise ValueError("ORDERDESK_BULK_CONCURRENCY must be >= 1")
        if self.http_retry_max < 1:
            raise ValueError("ORDERDESK_HTTP_RETRY_MAX must be >= 1")
        if not self.store_base_url:
            raise ValueError("ORDERDESK_STORE_BASE_URL is required")

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from the process environment."""
        return cls(
            use_http_store=_bool("ORDERDESK_USE_HTTP_STORE", False),
            store_base_url=os.getenv("ORDERDESK_STORE_BASE_URL", cls.store_base_url),
            http_timeout_secs=_float("ORDERDESK_HTTP_TIMEOUT_SECS", cls.http_timeout_secs),
            http_retry_max=_int("ORDERDESK_HTTP_RETRY_MAX", cls.http_retry_max),
            http_retry_backoff_base=_float("ORDERDESK_HTTP_RETRY_BACKOFF_BASE", cls.http_retry_backoff_base),
            http_retry_max_sleep=_float("ORDERDESK_HTTP_RETRY_MAX_SLEEP", cls.http_retry_max_sleep),
            http_circuit_fail_threshold=_int("ORDERDESK_HTTP_CIRCUIT_FAIL_THRESHOLD", cls.http_circuit_fail_threshold),
            http_circuit_reset_timeout=_float("ORDERDESK_HTTP_CIRCUIT_RESET_TIMEOUT", cls.http_circuit_reset_timeout),
            bulk_concurrency=_int("ORDERDESK_BULK_CONCURRENCY", cls.bulk_concurrency),
            refresh_interval_secs=_float("ORDERDESK_REFRESH_INTERVAL_SECS", cls.refresh_interval_secs),
            default_carrier=os.getenv("ORDERDESK_DEFAULT_CARRIER", cls.default_carrier),
            admin_name=os.getenv("ORDERDESK_ADMIN_NAME", cls.admin_name),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return process-wide settings, loaded once."""
    return Settings.from_env()
