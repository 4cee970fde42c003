"""Tests for metric query construction."""

from __future__ import annotations

from datetime import timedelta
from urllib.parse import parse_qs, unquote, urlsplit

import pytest
from conftest import FIXED_NOW, SUBSCRIPTION

from azure_metrics_exporter.domain.models import ResourceDescriptor
from azure_metrics_exporter.domain.query import (
    SUPPORTED_AGGREGATIONS,
    QueryBuilder,
    filter_aggregations,
    resource_url_from,
)

RID = "/resourceGroups/rg/providers/Microsoft.Web/sites/blog"


@pytest.mark.parametrize(
    "requested,expected",
    [
        (["Total", "Average", "Minimum", "Maximum"], ["Total", "Average", "Minimum", "Maximum"]),
        (["Count", "Maximum", "average"], ["Maximum"]),
        ([], []),
        (["Minimum", "Total"], ["Minimum", "Total"]),
    ],
)
def test_filter_aggregations(requested, expected) -> None:
    kept = filter_aggregations(requested)
    assert kept == expected
    assert set(kept) <= set(SUPPORTED_AGGREGATIONS)


def test_resource_url_encodes_all_parameters() -> None:
    url = resource_url_from(
        SUBSCRIPTION,
        RID,
        "Requests,Http5xx",
        ["Total", "Count", "Average"],
        now=FIXED_NOW,
        window=timedelta(minutes=1),
    )
    parts = urlsplit(url)
    assert unquote(parts.path) == (
        f"/subscriptions/{SUBSCRIPTION}{RID}/providers/microsoft.insights/metrics"
    )
    assert parse_qs(parts.query) == {
        "aggregation": ["Total,Average"],
        "api-version": ["2018-01-01"],
        "metricnames": ["Requests,Http5xx"],
        "timespan": ["2025-10-15T11:59:00Z/2025-10-15T12:00:00Z"],
    }


def test_resource_url_omits_empty_metric_names() -> None:
    url = resource_url_from(SUBSCRIPTION, RID, "", ["Total"], now=FIXED_NOW)
    assert "metricnames" not in parse_qs(urlsplit(url).query)


def test_resource_url_encodes_spaces_in_metric_names() -> None:
    url = resource_url_from(
        SUBSCRIPTION, RID, "Percentage CPU", ["Average"], now=FIXED_NOW
    )
    assert " " not in url
    assert parse_qs(urlsplit(url).query)["metricnames"] == ["Percentage CPU"]


def test_builder_produces_resolved_query() -> None:
    resource = ResourceDescriptor(id=RID, name="blog", subscription=SUBSCRIPTION)
    builder = QueryBuilder(
        SUBSCRIPTION, window=timedelta(minutes=5), clock=lambda: FIXED_NOW
    )

    query = builder.build(resource, "Requests", ["Maximum", "Bogus"])

    assert query.resource_id == RID
    assert query.metric_names == "Requests"
    assert query.aggregations == ["Maximum"]
    assert query.resource == resource
    assert "2025-10-15T11%3A55%3A00Z" in query.query_url
