"""Adapter tests with mocked HTTP.

These tests validate that the identity and Resource Manager adapters build
requests as Azure expects and turn responses into typed models or tagged
errors, without any network access.
"""

from __future__ import annotations

import json
from typing import List
from urllib.parse import parse_qs

import httpx
import pytest

from azure_metrics_exporter.adapters.azure import AzureAdapter
from azure_metrics_exporter.adapters.identity import IdentityAdapter
from azure_metrics_exporter.errors import DecodeError, TransportError
from azure_metrics_exporter.schemas.azure_contract import BatchRequest, BatchRequestItem

BASE = "https://management.example.com/"


class _StaticToken:
    def get(self) -> str:
        return "tok-1"


def _azure(handler, seen: List[httpx.Request]) -> AzureAdapter:
    def record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    adapter = AzureAdapter(BASE, "sub-123", _StaticToken())
    adapter.inject_http_client_for_testing(
        httpx.AsyncClient(base_url=BASE, transport=httpx.MockTransport(record))
    )
    return adapter


def _identity(handler) -> IdentityAdapter:
    adapter = IdentityAdapter(
        "https://login.example.com/", "tenant", "client", "secret", BASE
    )
    adapter.inject_http_client_for_testing(
        httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )
    return adapter


@pytest.mark.asyncio
async def test_identity_posts_client_credentials_form() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200, json={"access_token": "abc", "expires_on": "1760529600"}
        )

    token = await _identity(handler).fetch_token()

    assert token.access_token == "abc"
    assert token.expires_on == 1760529600
    request = seen[0]
    assert str(request.url) == "https://login.example.com/tenant/oauth2/token"
    form = parse_qs(request.content.decode())
    assert form == {
        "grant_type": ["client_credentials"],
        "resource": [BASE],
        "client_id": ["client"],
        "client_secret": ["secret"],
    }


@pytest.mark.asyncio
async def test_identity_non_200_is_transport_error() -> None:
    adapter = _identity(lambda r: httpx.Response(401, text="invalid_client"))
    with pytest.raises(TransportError) as excinfo:
        await adapter.fetch_token()
    assert excinfo.value.status_code == 401
    assert excinfo.value.body_preview == "invalid_client"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [b"not json", b'{"token_type": "Bearer"}', b'{"access_token": "a", "expires_on": "soon"}'],
)
async def test_identity_bad_body_is_decode_error(body: bytes) -> None:
    adapter = _identity(lambda r: httpx.Response(200, content=body))
    with pytest.raises(DecodeError):
        await adapter.fetch_token()


@pytest.mark.asyncio
async def test_identity_connection_error_is_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(TransportError):
        await _identity(handler).fetch_token()


@pytest.mark.asyncio
async def test_list_providers_sends_bearer_and_version() -> None:
    seen: List[httpx.Request] = []
    payload = {
        "value": [
            {
                "namespace": "Microsoft.Web",
                "resourceTypes": [
                    {"resourceType": "sites", "apiVersions": ["2019-08-01"]}
                ],
            }
        ]
    }
    adapter = _azure(lambda r: httpx.Response(200, json=payload), seen)

    listing = await adapter.list_providers()

    assert listing.value[0].resource_types[0].api_versions == ["2019-08-01"]
    request = seen[0]
    assert request.url.path == "/subscriptions/sub-123/providers"
    assert request.url.params["api-version"] == "2019-05-10"
    assert request.headers["Authorization"] == "Bearer tok-1"


@pytest.mark.asyncio
async def test_group_and_tag_listing_use_their_endpoints() -> None:
    seen: List[httpx.Request] = []
    resource = {
        "id": "/subscriptions/sub-123/resourceGroups/rg/providers/Microsoft.Web/sites/a",
        "name": "a",
        "type": "Microsoft.Web/sites",
        "location": "westeurope",
        "tags": None,
    }
    adapter = _azure(lambda r: httpx.Response(200, json={"value": [resource]}), seen)

    by_group = await adapter.list_resources("resourcetype eq 'x'", resource_group="rg")
    by_tag = await adapter.list_resources("tagName eq 't' and tagValue eq 'v'")

    assert by_group.value[0].tags == {}
    assert by_tag.value[0].managed_by == ""
    assert seen[0].url.path == "/subscriptions/sub-123/resourceGroups/rg/resources"
    assert seen[0].url.params["api-version"] == "2018-02-01"
    assert seen[0].url.params["$filter"] == "resourcetype eq 'x'"
    assert seen[1].url.path == "/subscriptions/sub-123/resources"
    assert seen[1].url.params["api-version"] == "2018-05-01"


@pytest.mark.asyncio
async def test_get_resource_uses_given_version() -> None:
    seen: List[httpx.Request] = []
    rid = "/resourceGroups/rg/providers/Microsoft.Web/sites/a"
    adapter = _azure(
        lambda r: httpx.Response(200, json={"id": f"/subscriptions/sub-123{rid}"}), seen
    )

    resource = await adapter.get_resource(rid, "2019-08-01")

    assert resource.id == f"/subscriptions/sub-123{rid}"
    assert seen[0].url.path == f"/subscriptions/sub-123{rid}"
    assert seen[0].url.params["api-version"] == "2019-08-01"


@pytest.mark.asyncio
async def test_metric_definitions_endpoint() -> None:
    seen: List[httpx.Request] = []
    rid = "/resourceGroups/rg/providers/Microsoft.Web/sites/a"
    adapter = _azure(
        lambda r: httpx.Response(
            200, json={"value": [{"name": {"value": "Requests"}, "unit": "Count"}]}
        ),
        seen,
    )

    listing = await adapter.get_metric_definitions(rid)

    assert [d.name.value for d in listing.value] == ["Requests"]
    assert seen[0].url.path.endswith(
        "/providers/microsoft.insights/metricDefinitions"
    )
    assert seen[0].url.params["api-version"] == "2018-01-01"


@pytest.mark.asyncio
async def test_post_batch_body_and_response() -> None:
    seen: List[httpx.Request] = []
    adapter = _azure(
        lambda r: httpx.Response(
            200,
            json={
                "responses": [
                    {"httpStatusCode": 200, "content": {"value": []}},
                    {"httpStatusCode": 404, "content": {"error": {"code": "x"}}},
                ]
            },
        ),
        seen,
    )
    batch = BatchRequest(
        requests=[BatchRequestItem(relative_url="/a"), BatchRequestItem(relative_url="/b")]
    )

    response = await adapter.post_batch(batch)

    assert [r.http_status_code for r in response.responses] == [200, 404]
    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/batch"
    assert request.url.params["api-version"] == "2017-03-01"
    assert json.loads(request.content) == {
        "requests": [
            {"relativeUrl": "/a", "httpMethod": "GET"},
            {"relativeUrl": "/b", "httpMethod": "GET"},
        ]
    }


@pytest.mark.asyncio
async def test_status_error_carries_context() -> None:
    adapter = _azure(lambda r: httpx.Response(403, text="AuthorizationFailed"), [])
    with pytest.raises(TransportError) as excinfo:
        await adapter.list_providers()
    err = excinfo.value
    assert err.status_code == 403
    assert err.body_preview == "AuthorizationFailed"
    assert err.endpoint == f"{BASE}subscriptions/sub-123/providers"


@pytest.mark.asyncio
async def test_invalid_json_is_decode_error() -> None:
    adapter = _azure(lambda r: httpx.Response(200, text="<html>"), [])
    with pytest.raises(DecodeError):
        await adapter.list_providers()


@pytest.mark.asyncio
async def test_unexpected_shape_is_decode_error() -> None:
    adapter = _azure(lambda r: httpx.Response(200, json={"value": "nope"}), [])
    with pytest.raises(DecodeError):
        await adapter.list_providers()


@pytest.mark.asyncio
async def test_connection_error_is_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(TransportError):
        await _azure(handler, []).list_providers()
