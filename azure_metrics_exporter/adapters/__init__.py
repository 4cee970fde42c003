"""Upstream adapter interfaces.

The pipeline stages depend on these protocols rather than on the concrete
httpx-backed adapters, which lets tests substitute in-memory fakes.
"""

from __future__ import annotations

from typing import Optional, Protocol

from ..schemas.azure_contract import (
    AzureResource,
    BatchRequest,
    BatchResponse,
    MetricDefinitionResponse,
    ProviderListResponse,
    ResourceListResponse,
    TokenResponse,
)


class TokenSource(Protocol):
    """Anything that can hand out the current bearer token."""

    def get(self) -> str:
        """Return the current access token."""
        raise NotImplementedError


class TokenFetcher(Protocol):
    """Protocol for the identity endpoint client."""

    async def fetch_token(self) -> TokenResponse:
        """Exchange client credentials for a token."""
        raise NotImplementedError


class MonitorAdapter(Protocol):
    """Protocol for the Resource Manager / Azure Monitor client.

    Implementations raise ``TransportError`` or ``DecodeError`` on failure.
    """

    @property
    def subscription_id(self) -> str:
        """Subscription all calls are scoped to."""
        raise NotImplementedError

    async def list_providers(self) -> ProviderListResponse:
        """List provider namespaces and their API versions."""
        raise NotImplementedError

    async def list_resources(
        self, filter_expr: str, resource_group: Optional[str] = None
    ) -> ResourceListResponse:
        """List resources matching an OData filter."""
        raise NotImplementedError

    async def get_resource(self, resource_id: str, api_version: str) -> AzureResource:
        """Fetch one resource's metadata."""
        raise NotImplementedError

    async def get_metric_definitions(
        self, resource_id: str
    ) -> MetricDefinitionResponse:
        """List the metric definitions of one resource."""
        raise NotImplementedError

    async def post_batch(self, batch: BatchRequest) -> BatchResponse:
        """Submit a batch of metric queries."""
        raise NotImplementedError
