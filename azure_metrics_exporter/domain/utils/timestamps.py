"""
Timestamp parsing and formatting utilities.

Provides parsing of the ISO date token that prefixes Azure API version
strings (``2019-05-10``, ``2018-01-01-preview``) and RFC 3339 formatting of
the metric query time span.
"""

import logging
import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

_VERSION_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")


def parse_version_date(version: str) -> Optional[date]:
    """
    Parse the leading ``YYYY-MM-DD`` token of an API version string.

    Parameters
    ----------
    version : str
        API version such as ``"2021-04-01"`` or ``"2018-01-01-preview"``

    Returns
    -------
    date or None
        The parsed date, or None when the string has no valid leading date

    Examples
    --------
    >>> parse_version_date("2018-01-01-preview")
    datetime.date(2018, 1, 1)
    >>> parse_version_date("latest") is None
    True
    """
    match = _VERSION_DATE_RE.match(version or "")
    if match is None:
        logger.warning(
            "timestamps.version_date_missing",
            extra={"version": version},
        )
        return None
    try:
        return datetime.strptime(match.group(0), "%Y-%m-%d").date()
    except ValueError:
        logger.warning(
            "timestamps.version_date_invalid",
            extra={"version": version},
        )
        return None


def to_rfc3339(dt: datetime) -> str:
    """
    Format a datetime as RFC 3339 in UTC with second precision and 'Z'.

    Examples
    --------
    >>> to_rfc3339(datetime(2025, 10, 15, 12, 0, 0, 123, tzinfo=timezone.utc))
    '2025-10-15T12:00:00Z'
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


def query_window(now: datetime, lookback: timedelta) -> Tuple[str, str]:
    """
    Return ``(start, end)`` RFC 3339 strings for a window ending at ``now``.

    Examples
    --------
    >>> now = datetime(2025, 10, 15, 12, 0, 0, tzinfo=timezone.utc)
    >>> query_window(now, timedelta(minutes=1))
    ('2025-10-15T11:59:00Z', '2025-10-15T12:00:00Z')
    """
    return to_rfc3339(now - lookback), to_rfc3339(now)
