"""Factory helpers for wiring an ``OrderConsole`` with its collaborators.

``get_order_console`` returns a console backed by the HTTP document-store
client when ``settings.use_http_store`` is set, and by the in-memory store
otherwise (tests and local development).
"""

from .adapters import InMemoryOrderStore, LoggingNotifier
from .config import Settings, get_settings
from .console import OrderConsole
from .domain import ConfirmPort, NotifierPort, OrderStorePort
from .http_adapters import HttpOrderStore

_default_store: InMemoryOrderStore | None = None


def get_order_store(settings: Settings | None = None) -> OrderStorePort:
    """Return the configured order store.

    The in-memory store is a process-wide singleton so every console in
    the process sees the same documents.
    """
    global _default_store
    settings = settings or get_settings()
    if settings.use_http_store:
        return HttpOrderStore(settings=settings)
    if _default_store is None:
        _default_store = InMemoryOrderStore()
    return _default_store


def get_order_console(
    confirm: ConfirmPort | None = None,
    notifier: NotifierPort | None = None,
    settings: Settings | None = None,
) -> OrderConsole:
    """Return an ``OrderConsole`` wired from settings.

    Args:
        confirm: Confirmation policy; destructive actions abort without one.
        notifier: Operator channel; defaults to ``LoggingNotifier``.
        settings: Explicit settings, defaults to ``get_settings()``.

    Returns:
        OrderConsole: A console with an empty snapshot.
    """
    settings = settings or get_settings()
    return OrderConsole(
        store=get_order_store(settings),
        notifier=notifier or LoggingNotifier(),
        confirm=confirm,
        admin_name=settings.admin_name,
        bulk_concurrency=settings.bulk_concurrency,
        refresh_interval=settings.refresh_interval_secs,
    )
