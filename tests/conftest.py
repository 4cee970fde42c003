"""Pytest configuration and shared fakes for the test suite.

Ensures the project root is on ``sys.path`` so that
``import azure_metrics_exporter`` resolves to the local sources regardless of
the working directory pytest chooses, and provides in-memory stand-ins for
the identity endpoint and the Resource Manager adapter.
"""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union


def _ensure_project_root_on_syspath() -> None:
    project_root = Path(__file__).resolve().parents[1]
    project_root_str = str(project_root)
    if project_root_str not in sys.path:
        # Prepend to prefer local sources over site-packages
        sys.path.insert(0, project_root_str)


_ensure_project_root_on_syspath()

import pytest  # noqa: E402

from azure_metrics_exporter.errors import TransportError  # noqa: E402
from azure_metrics_exporter.schemas.azure_contract import (  # noqa: E402
    AzureResource,
    BatchRequest,
    BatchResponse,
    MetricDefinitionResponse,
    ProviderListResponse,
    ResourceListResponse,
    TokenResponse,
)

SUBSCRIPTION = "sub-123"
FIXED_NOW = datetime(2025, 10, 15, 12, 0, 0, tzinfo=timezone.utc)


def full_id(relative_id: str) -> str:
    """Resource id as returned by Azure, including the subscription."""
    return f"/subscriptions/{SUBSCRIPTION}{relative_id}"


def azure_resource(
    relative_id: str,
    *,
    name: Optional[str] = None,
    type_: str = "Microsoft.Web/sites",
    location: str = "westeurope",
    tags: Optional[Dict[str, str]] = None,
) -> AzureResource:
    return AzureResource.model_validate(
        {
            "id": full_id(relative_id),
            "name": name or relative_id.rsplit("/", 1)[-1],
            "type": type_,
            "location": location,
            "tags": tags or {},
        }
    )


def providers_listing(versions: Dict[str, List[str]]) -> ProviderListResponse:
    """Build a provider listing from ``{"Namespace/type": [versions]}``."""
    by_namespace: Dict[str, List[Dict[str, Any]]] = {}
    for key, api_versions in versions.items():
        namespace, resource_type = key.split("/", 1)
        by_namespace.setdefault(namespace, []).append(
            {"resourceType": resource_type, "apiVersions": api_versions}
        )
    return ProviderListResponse.model_validate(
        {
            "value": [
                {"namespace": ns, "resourceTypes": types}
                for ns, types in by_namespace.items()
            ]
        }
    )


def metric_payload(
    name: str = "Percentage CPU",
    unit: str = "Percent",
    points: Optional[List[Dict[str, float]]] = None,
) -> Dict[str, Any]:
    """Metric query response body with one series."""
    data = points if points is not None else [{"total": 1.0, "average": 0.5}]
    return {
        "value": [
            {
                "id": "metric-id",
                "name": {"value": name, "localizedValue": name},
                "type": "Microsoft.Insights/metrics",
                "unit": unit,
                "timeseries": [{"data": data}],
            }
        ]
    }


Outcome = Union[Any, Exception]


class FakeMonitorAdapter:
    """In-memory ``MonitorAdapter`` recording every call."""

    def __init__(self) -> None:
        self.subscription_id = SUBSCRIPTION
        self.providers: Outcome = ProviderListResponse(value=[])
        # Keyed by resource group name; ``None`` is the subscription-wide listing
        self.listings: Dict[Optional[str], Outcome] = {}
        self.resources: Dict[str, Outcome] = {}
        self.definitions: Dict[str, Outcome] = {}
        self.batch_handler: Callable[[BatchRequest], Outcome] = self._ok_batch
        self.calls: List[Tuple[str, Any]] = []
        self.batches: List[BatchRequest] = []

    @staticmethod
    def _ok_batch(batch: BatchRequest) -> BatchResponse:
        return BatchResponse.model_validate(
            {
                "responses": [
                    {"httpStatusCode": 200, "content": metric_payload()}
                    for _ in batch.requests
                ]
            }
        )

    @staticmethod
    def _settle(outcome: Outcome) -> Any:
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def list_providers(self) -> ProviderListResponse:
        self.calls.append(("list_providers", None))
        return self._settle(self.providers)

    async def list_resources(
        self, filter_expr: str, resource_group: Optional[str] = None
    ) -> ResourceListResponse:
        self.calls.append(("list_resources", (filter_expr, resource_group)))
        outcome = self.listings.get(resource_group, ResourceListResponse(value=[]))
        return self._settle(outcome)

    async def get_resource(self, resource_id: str, api_version: str) -> AzureResource:
        self.calls.append(("get_resource", (resource_id, api_version)))
        outcome = self.resources.get(
            resource_id,
            TransportError(
                "unable to query API with status code 404",
                status_code=404,
                endpoint=resource_id,
            ),
        )
        return self._settle(outcome)

    async def get_metric_definitions(
        self, resource_id: str
    ) -> MetricDefinitionResponse:
        self.calls.append(("get_metric_definitions", resource_id))
        return self._settle(
            self.definitions.get(resource_id, MetricDefinitionResponse(value=[]))
        )

    async def post_batch(self, batch: BatchRequest) -> BatchResponse:
        self.calls.append(("post_batch", len(batch.requests)))
        self.batches.append(batch)
        return self._settle(self.batch_handler(batch))

    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]


class FakeTokenFetcher:
    """Identity endpoint stand-in returning queued outcomes."""

    def __init__(self, *outcomes: Outcome) -> None:
        self._outcomes = list(outcomes) or [self.token("tok-1")]
        self.calls = 0

    @staticmethod
    def token(value: str, expires_on: datetime = datetime(2099, 1, 1, tzinfo=timezone.utc)):
        return TokenResponse(access_token=value, expires_on=int(expires_on.timestamp()))

    async def fetch_token(self) -> TokenResponse:
        self.calls += 1
        outcome = self._outcomes[min(self.calls, len(self._outcomes)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def fake_adapter() -> FakeMonitorAdapter:
    return FakeMonitorAdapter()


@pytest.fixture
def fake_fetcher() -> FakeTokenFetcher:
    return FakeTokenFetcher()
