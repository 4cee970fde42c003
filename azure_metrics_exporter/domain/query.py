"""Metric query construction.

Builds, for one resource, the relative Azure Monitor metrics URL submitted
inside a batch call. Construction is pure: no network access. Aggregation
kinds outside the four supported ones are silently dropped.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List
from urllib.parse import quote, urlencode

from .models import ResolvedQuery, ResourceDescriptor
from .utils.timestamps import query_window

SUPPORTED_AGGREGATIONS = ("Total", "Average", "Minimum", "Maximum")
METRICS_API_VERSION = "2018-01-01"
DEFAULT_QUERY_WINDOW = timedelta(minutes=1)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def filter_aggregations(aggregations: Iterable[str]) -> List[str]:
    """Keep only supported aggregation kinds, preserving their order.

    Examples
    --------
    >>> filter_aggregations(["Average", "Count", "Maximum"])
    ['Average', 'Maximum']
    """
    return [a for a in aggregations if a in SUPPORTED_AGGREGATIONS]


def resource_url_from(
    subscription_id: str,
    resource_id: str,
    metric_names: str,
    aggregations: Iterable[str],
    *,
    now: datetime,
    window: timedelta = DEFAULT_QUERY_WINDOW,
) -> str:
    """Return the relative metrics query URL for ``resource_id``.

    Query parameters are emitted in sorted key order: ``aggregation``,
    ``api-version``, ``metricnames`` (only when non-empty) and ``timespan``
    (``<start>/<end>`` ending at ``now``).
    """
    path = f"/subscriptions/{subscription_id}{resource_id}/providers/microsoft.insights/metrics"
    start, end = query_window(now, window)
    params = {
        "aggregation": ",".join(filter_aggregations(aggregations)),
        "timespan": f"{start}/{end}",
        "api-version": METRICS_API_VERSION,
    }
    if metric_names:
        params["metricnames"] = metric_names
    return f"{quote(path)}?{urlencode(sorted(params.items()))}"


class QueryBuilder:
    """Turns resolved resources into ``ResolvedQuery`` units of work.

    Parameters
    ----------
    subscription_id: str
        Subscription prefixed to every query path.
    window: timedelta
        Lookback window ending at the current time.
    clock: Callable[[], datetime]
        Source of the current UTC time.
    """

    def __init__(
        self,
        subscription_id: str,
        window: timedelta = DEFAULT_QUERY_WINDOW,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._subscription_id = subscription_id
        self._window = window
        self._clock = clock

    def build(
        self,
        resource: ResourceDescriptor,
        metric_names: str,
        aggregations: Iterable[str],
    ) -> ResolvedQuery:
        kept = filter_aggregations(aggregations)
        return ResolvedQuery(
            resource_id=resource.id,
            query_url=resource_url_from(
                self._subscription_id,
                resource.id,
                metric_names,
                kept,
                now=self._clock(),
                window=self._window,
            ),
            metric_names=metric_names,
            aggregations=kept,
            resource=resource,
        )
