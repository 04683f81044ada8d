"""
Application logger.

Every record carries the correlation id of the HTTP call that produced it
(``-`` outside a request), set by ``CorrelationMiddleware``.
"""
from __future__ import annotations

import logging
import sys
from contextvars import ContextVar

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [cid=%(correlation_id)s] %(message)s"


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = correlation_id_var.get()
        return True


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger("aderm")
    root.setLevel(level.upper())
    if any(getattr(h, "_aderm", False) for h in root.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(CorrelationIdFilter())
    handler._aderm = True  # type: ignore[attr-defined]
    root.addHandler(handler)


logger = logging.getLogger("aderm")
