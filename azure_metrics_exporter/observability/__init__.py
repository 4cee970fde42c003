"""Observability utilities: logging setup.

This module configures standard logging for the exporter. Log records use
dotted event names (``azure.http.status_error``) with structured fields in
``extra``; a filter attaches the current scrape correlation id to every
record so that all upstream calls made for one scrape can be grouped.
"""

from __future__ import annotations

import logging

from ..utils.correlation import get_request_id


class RequestIdFilter(logging.Filter):  # pylint: disable=too-few-public-methods
    """Attach the current correlation id as ``record.req_id``."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "req_id"):
            record.req_id = get_request_id() or "-"
        return True


def setup_logging(level: str = "INFO") -> None:
    """Configure application logging.

    Parameters
    ----------
    level: str
        Logging level name (e.g., "DEBUG", "INFO"). Defaults to "INFO".

    Behavior
    --------
    - Initializes Python's logging with the requested level.
    - Adds the correlation id to every record emitted through root handlers.
    - Keeps the HTTP client libraries at WARNING unless DEBUG is requested,
      so that bearer-token requests are not logged line by line.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s %(levelname)s %(name)s [%(req_id)s] - %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())

    client_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for logger_name in ("httpx", "httpcore"):
        logging.getLogger(logger_name).setLevel(client_level)
