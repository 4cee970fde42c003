"""Scrape correlation ids for structured logging.

Each collection cycle gets an identifier stored in a ContextVar so that every
upstream call made during that cycle (token refresh, listings, batches) logs
the same ``req_id``. The HTTP layer reuses an incoming ``X-Correlation-Id``
header when the scraper sends one.
"""

from __future__ import annotations

import uuid
from contextvars import ContextVar
from typing import Optional

_request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def set_request_id(request_id: str) -> None:
    """Set the correlation id for the current context."""
    _request_id_var.set(request_id)


def get_request_id() -> str:
    """Return the current correlation id, or empty string."""
    return _request_id_var.get()


def ensure_request_id(candidate: Optional[str] = None) -> str:
    """Bind ``candidate`` (or a fresh id when none is bound) and return it."""
    request_id = candidate or _request_id_var.get() or uuid.uuid4().hex[:12]
    _request_id_var.set(request_id)
    return request_id
