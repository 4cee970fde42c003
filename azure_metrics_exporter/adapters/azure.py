"""Azure Resource Manager adapter.

This adapter translates exporter operations into HTTP requests against Azure
Resource Manager and Azure Monitor. It encapsulates transport concerns (base
URL, bearer header, timeouts, status and JSON handling) and exposes a typed
interface whose methods return validated Pydantic models.

Notes
-----
- No call is retried. Any failure is raised as ``TransportError`` or
  ``DecodeError`` with the endpoint, status code and a body excerpt; callers
  decide whether it ends the cycle or skips one resource.
- The bearer token is read from the token source on every request, so a
  refresh performed between calls is picked up immediately.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..errors import DecodeError, TransportError
from ..schemas.azure_contract import (
    AzureResource,
    BatchRequest,
    BatchResponse,
    MetricDefinitionResponse,
    ProviderListResponse,
    ResourceListResponse,
)
from ..utils.correlation import get_request_id
from . import TokenSource

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

PROVIDERS_API_VERSION = "2019-05-10"
RESOURCE_GROUP_API_VERSION = "2018-02-01"
RESOURCE_TAG_API_VERSION = "2018-05-01"
METRIC_DEFINITIONS_API_VERSION = "2018-01-01"
BATCH_API_VERSION = "2017-03-01"


class AzureAdapter:
    """Adapter for Azure Resource Manager and the Azure Monitor batch API.

    Parameters
    ----------
    resource_manager_url: str
        Base URL of Resource Manager (e.g., "https://management.azure.com/").
    subscription_id: str
        Subscription all requests are scoped to.
    token_source: TokenSource
        Provides the current bearer token via ``get()``.
    timeout: float
        Request timeout in seconds for all HTTP operations.

    Attributes
    ----------
    _client: httpx.AsyncClient
        Shared async client configured with base URL and timeout.
    """

    def __init__(
        self,
        resource_manager_url: str,
        subscription_id: str,
        token_source: TokenSource,
        timeout: float = 30.0,
    ) -> None:
        self._base_url = resource_manager_url
        self._subscription_id = subscription_id
        self._token_source = token_source
        self._client: Any = httpx.AsyncClient(
            base_url=resource_manager_url, timeout=timeout
        )
        logger.info(
            "azure.adapter.init",
            extra={
                "endpoint": resource_manager_url,
                "subscription_id": subscription_id,
                "timeout_seconds": timeout,
            },
        )

    @property
    def subscription_id(self) -> str:
        return self._subscription_id

    @property
    def subscription_path(self) -> str:
        """Subscription scope without leading slash: ``subscriptions/{id}``."""
        return f"subscriptions/{self._subscription_id}"

    def inject_http_client_for_testing(self, client: Any) -> None:
        """Replace underlying HTTP client (testing only).

        The replacement must expose ``async request(method, url, **kwargs)``
        returning an ``httpx.Response``.
        """
        self._client = client

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request_json(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send an authenticated request and return the decoded JSON body.

        Raises
        ------
        TransportError
            On transport errors or non-200 responses.
        DecodeError
            If the response body is not valid JSON.
        """
        endpoint = f"{self._base_url}{path.lstrip('/')}"
        headers = {"Authorization": f"Bearer {self._token_source.get()}"}
        logger.debug(
            "azure.http.request",
            extra={"req_id": get_request_id(), "method": method, "path": path},
        )
        try:
            resp = await self._client.request(
                method, path, params=params, json=body, headers=headers
            )
        except httpx.HTTPError as exc:
            raise TransportError(
                f"{method} request failed: {exc!r}", endpoint=endpoint
            ) from exc

        if resp.status_code != 200:
            text: Optional[str]
            try:
                text = resp.text
            except UnicodeDecodeError:
                text = "(unavailable)"
            error = TransportError(
                f"unable to query API with status code {resp.status_code}",
                endpoint=endpoint,
                status_code=resp.status_code,
                body=text,
            )
            logger.error(
                "azure.http.status_error",
                extra={"req_id": get_request_id(), **error.context()},
            )
            raise error

        try:
            data = resp.json()
        except ValueError as exc:
            raise DecodeError(
                "response body is not valid JSON",
                endpoint=endpoint,
                status_code=resp.status_code,
                body=resp.text,
            ) from exc
        logger.debug(
            "azure.http.response",
            extra={
                "req_id": get_request_id(),
                "path": path,
                "status_code": resp.status_code,
            },
        )
        return data

    async def _get_model(
        self, path: str, params: Dict[str, str], model: Type[M]
    ) -> M:
        data = await self._request_json("GET", path, params=params)
        return _validate(model, data, f"{self._base_url}{path.lstrip('/')}")

    async def list_providers(self) -> ProviderListResponse:
        """List provider namespaces with their resource types and API versions."""
        return await self._get_model(
            f"{self.subscription_path}/providers",
            {"api-version": PROVIDERS_API_VERSION},
            ProviderListResponse,
        )

    async def list_resources(
        self, filter_expr: str, resource_group: Optional[str] = None
    ) -> ResourceListResponse:
        """List resources matching an OData ``$filter``.

        Parameters
        ----------
        filter_expr: str
            Unencoded filter expression; query encoding is done here.
        resource_group: Optional[str]
            Restrict the listing to a resource group; otherwise the whole
            subscription is listed.
        """
        if resource_group is not None:
            path = f"{self.subscription_path}/resourceGroups/{resource_group}/resources"
            api_version = RESOURCE_GROUP_API_VERSION
        else:
            path = f"{self.subscription_path}/resources"
            api_version = RESOURCE_TAG_API_VERSION
        return await self._get_model(
            path,
            {"api-version": api_version, "$filter": filter_expr},
            ResourceListResponse,
        )

    async def get_resource(self, resource_id: str, api_version: str) -> AzureResource:
        """Fetch metadata of one resource by subscription-relative id."""
        return await self._get_model(
            f"{self.subscription_path}{resource_id}",
            {"api-version": api_version},
            AzureResource,
        )

    async def get_metric_definitions(
        self, resource_id: str
    ) -> MetricDefinitionResponse:
        """List the metrics a resource exposes."""
        return await self._get_model(
            f"{self.subscription_path}{resource_id}"
            "/providers/microsoft.insights/metricDefinitions",
            {"api-version": METRIC_DEFINITIONS_API_VERSION},
            MetricDefinitionResponse,
        )

    async def post_batch(self, batch: BatchRequest) -> BatchResponse:
        """Submit sub-requests in one call; responses keep request order."""
        data = await self._request_json(
            "POST",
            "batch",
            params={"api-version": BATCH_API_VERSION},
            body=batch.model_dump(by_alias=True),
        )
        return _validate(BatchResponse, data, f"{self._base_url}batch")


def _validate(model: Type[M], data: Any, endpoint: str) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise DecodeError(
            f"unexpected {model.__name__} shape: {exc.error_count()} validation error(s)",
            endpoint=endpoint,
            body=str(exc),
        ) from exc
