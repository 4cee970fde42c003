"""Metric translation.

Converts one batch sub-response into exposition samples. For every metric in
the payload the **last** data point of its first time series is current; one
gauge sample is emitted per requested aggregation kind, followed by a single
``azure_resource_info`` sample exposing the resource metadata as labels.

Nothing is emitted (and a diagnostic is logged) when the sub-status is not
200, the payload has no series, or the first series has no data points. A
sub-response affects only its own resource.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from pydantic import ValidationError

from ..schemas.azure_contract import MetricDataPoint, MetricQueryResponse
from ..utils.correlation import get_request_id
from .models import MetricSample, ResolvedQuery
from .utils.naming import (
    AGGREGATION_SUFFIXES,
    resource_info_labels,
    resource_labels,
    sanitize_metric_name,
)

logger = logging.getLogger(__name__)

RESOURCE_INFO_METRIC = "azure_resource_info"
RESOURCE_INFO_HELP = "Azure information available for resource"


def _aggregate_value(point: MetricDataPoint, aggregation: str) -> float:
    # Aggregates absent from the payload are exposed as 0
    value = getattr(point, aggregation.lower(), None)
    return float(value) if value is not None else 0.0


def _error_message(content: Any) -> str:
    try:
        payload = MetricQueryResponse.model_validate(content)
    except ValidationError:
        return ""
    return payload.error.message if payload.error else ""


class MetricTranslator:
    """Turns batch sub-responses into ``MetricSample`` values."""

    def translate(
        self, query: ResolvedQuery, status: int, content: Any
    ) -> List[MetricSample]:
        """Translate one sub-response.

        Parameters
        ----------
        query: ResolvedQuery
            The query this sub-response answers.
        status: int
            HTTP-equivalent status of the sub-response.
        content: Any
            Decoded sub-response body.

        Returns
        -------
        List[MetricSample]
            Metric samples plus one resource info sample, or an empty list.
        """
        extra = {"req_id": get_request_id(), "resource_id": query.resource_id}
        if status != 200:
            logger.warning(
                "translate.sub_status",
                extra={
                    **extra,
                    "status_code": status,
                    "api_error": _error_message(content),
                },
            )
            return []

        payload = self._decode(query, content)
        if payload is None:
            return []
        if not payload.value or not payload.value[0].timeseries:
            logger.info(
                "translate.metric_not_found",
                extra={**extra, "metrics": query.metric_names},
            )
            return []
        if not payload.value[0].timeseries[0].data:
            logger.info(
                "translate.no_data",
                extra={**extra, "metrics": query.metric_names},
            )
            return []

        labels = resource_labels(query.resource_id)
        samples: List[MetricSample] = []
        for series in payload.value:
            if not series.timeseries or not series.timeseries[0].data:
                logger.debug(
                    "translate.series_empty",
                    extra={**extra, "metric": series.name.value},
                )
                continue
            point = series.timeseries[0].data[-1]
            base = sanitize_metric_name(series.name.value, series.unit)
            for aggregation, suffix in AGGREGATION_SUFFIXES.items():
                if aggregation not in query.aggregations:
                    continue
                samples.append(
                    MetricSample(
                        name=base + suffix,
                        value=_aggregate_value(point, aggregation),
                        labels=dict(labels),
                        documentation=base + suffix,
                    )
                )

        resource = query.resource
        samples.append(
            MetricSample(
                name=RESOURCE_INFO_METRIC,
                value=0.0,
                labels=resource_info_labels(
                    resource.id,
                    resource.name,
                    resource.type,
                    resource.location,
                    resource.managed_by,
                    resource.subscription,
                    resource.tags,
                ),
                kind="untyped",
                documentation=RESOURCE_INFO_HELP,
            )
        )
        return samples

    def _decode(
        self, query: ResolvedQuery, content: Any
    ) -> Optional[MetricQueryResponse]:
        try:
            return MetricQueryResponse.model_validate(content)
        except ValidationError as exc:
            logger.warning(
                "translate.decode_error",
                extra={
                    "req_id": get_request_id(),
                    "resource_id": query.resource_id,
                    "validation_errors": exc.error_count(),
                },
            )
            return None
