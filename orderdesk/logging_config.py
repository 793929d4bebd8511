"""JSON logging with request correlation.

This module holds the ``REQUEST_ID_CTX`` ContextVar populated by the API
middleware, a logging filter that copies it onto every record, and
``configure_logging`` which installs a ``python-json-logger`` handler on
the ``orderdesk`` logger.
"""

import contextvars
import logging
from logging import Filter, LogRecord

from pythonjsonlogger import jsonlogger

REQUEST_ID_CTX = contextvars.ContextVar("request_id", default="-")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s"


class RequestIdFilter(Filter):
    """Attach a ``request_id`` attribute to log records.

    The value comes from ``REQUEST_ID_CTX``; a hyphen ("-") is used when no
    request is in flight so formatters can always reference
    ``%(request_id)s``.
    """

    def filter(self, record: LogRecord) -> bool:
        """Populate ``record.request_id`` and allow the record to be logged.

        Args:
            record: The log record to enrich.

        Returns:
            bool: Always True.
        """
        if not getattr(record, "request_id", None):
            record.request_id = REQUEST_ID_CTX.get()
        return True


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Install the JSON handler on the ``orderdesk`` logger once.

    Args:
        level: Level name applied to the ``orderdesk`` logger.

    Returns:
        logging.Logger: The configured package logger.
    """
    logger = logging.getLogger("orderdesk")
    if not any(getattr(h, "_orderdesk", False) for h in logger.handlers):
        h = logging.StreamHandler()
        h.setFormatter(jsonlogger.JsonFormatter(LOG_FORMAT))
        h.addFilter(RequestIdFilter())
        h._orderdesk = True  # type: ignore[attr-defined]
        logger.addHandler(h)
    logger.setLevel(level)
    return logger
