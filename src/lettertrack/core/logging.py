"""Logging setup.

Modules log through ``logging.getLogger(__name__)``; this module only wires
the root handler once and tags every record with the current request ID.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar

# Set by RequestIDMiddleware for the duration of a request
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"


def get_request_id() -> str | None:
    """Get the current request ID from context.

    Returns:
        The request ID for the current request, or None outside a request.
    """
    return request_id_ctx.get()


class RequestIDLogFilter(logging.Filter):
    """Attach ``request_id`` to every record passing through a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        return True


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once.

    Calling it again only adjusts the level.

    Args:
        level: Logging level name (DEBUG, INFO, ...).
    """
    root = logging.getLogger()
    if any(isinstance(f, RequestIDLogFilter) for h in root.handlers for f in h.filters):
        root.setLevel(level)
        return

    logging.basicConfig(level=level, format=LOG_FORMAT)
    for handler in root.handlers:
        handler.addFilter(RequestIDLogFilter())
