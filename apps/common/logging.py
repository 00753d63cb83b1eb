"""
Logging infrastructure for Tessera Platform.

- RequestIDFilter: injects the current request/job correlation id into records
- JSONFormatter: one JSON object per line for production log shipping
- request context helpers backed by thread-local storage
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import UTC, datetime
from typing import Any

# Thread-local storage for request context
_request_context = threading.local()

_CONTEXT_ATTRS = ("request_id", "organization_id", "ip_address")

# =============================================================================
# REQUEST CONTEXT FUNCTIONS
# =============================================================================


def set_request_id(request_id: str) -> None:
    """Set the current request ID in thread-local storage."""
    _request_context.request_id = request_id


def get_request_id() -> str | None:
    """Get the current request ID from thread-local storage."""
    return getattr(_request_context, "request_id", None)


def set_request_context(**kwargs: Any) -> None:
    """Set request context for the current thread"""
    for key, value in kwargs.items():
        setattr(_request_context, key, value)


def get_request_context() -> dict[str, Any]:
    return {
        "request_id": getattr(_request_context, "request_id", "-"),
        "organization_id": getattr(_request_context, "organization_id", None),
        "ip_address": getattr(_request_context, "ip_address", None),
    }


def clear_request_context() -> None:
    """Clear request context for the current thread"""
    for attr in _CONTEXT_ATTRS:
        if hasattr(_request_context, attr):
            delattr(_request_context, attr)


# =============================================================================
# FILTERS & FORMATTERS
# =============================================================================


class RequestIDFilter(logging.Filter):
    """
    Add request ID and tenant context to log records.

    Background jobs set their own correlation id (e.g. ``job:<uuid>``) so a
    settlement run can be followed across the revenue and bonus services.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = getattr(_request_context, "request_id", "-")  # type: ignore[attr-defined]
        if not hasattr(record, "organization_id"):
            record.organization_id = getattr(_request_context, "organization_id", None)  # type: ignore[attr-defined]
        if not hasattr(record, "ip_address"):
            record.ip_address = getattr(_request_context, "ip_address", None)  # type: ignore[attr-defined]
        return True


class JSONFormatter(logging.Formatter):
    """Render a record as a single JSON line"""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
            "organization_id": getattr(record, "organization_id", None),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)
