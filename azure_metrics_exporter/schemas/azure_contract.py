"""
Azure Resource Manager / Azure Monitor wire schemas

Typed Pydantic definitions for every upstream payload the exporter reads or
writes. They serve as:
1. Runtime validation of upstream JSON (shape mismatches become DecodeError)
2. Serialization of outgoing batch requests (``by_alias=True``)
3. Test fixtures

Field names follow Python conventions; the upstream camelCase names are
declared as aliases.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _WireModel(BaseModel):
    """Base for upstream payloads: accept aliases and field names alike."""

    model_config = ConfigDict(populate_by_name=True)


# Identity endpoint


class TokenResponse(_WireModel):
    """OAuth2 client-credentials token response.

    ``expires_on`` is transmitted as epoch seconds in a numeric string; lax
    integer coercion accepts both the string and a bare number.
    """

    access_token: str
    expires_on: int
    token_type: Optional[str] = None


# Provider listing (API versions)


class ProviderResourceType(_WireModel):
    """A resource type declared by a provider namespace."""

    resource_type: str = Field(alias="resourceType")
    locations: List[str] = Field(default_factory=list)
    api_versions: List[str] = Field(default_factory=list, alias="apiVersions")


class Provider(_WireModel):
    """A registered provider namespace (e.g. ``Microsoft.Compute``)."""

    id: Optional[str] = None
    namespace: str
    resource_types: List[ProviderResourceType] = Field(
        default_factory=list, alias="resourceTypes"
    )
    registration_state: Optional[str] = Field(None, alias="registrationState")


class ProviderListResponse(_WireModel):
    """Response of ``GET /subscriptions/{id}/providers``."""

    value: List[Provider] = Field(default_factory=list)


# Resources


class AzureResource(_WireModel):
    """Resource metadata as returned by listing or direct lookup."""

    id: str
    name: str = ""
    location: str = ""
    type: str = ""
    tags: Dict[str, str] = Field(default_factory=dict)
    managed_by: str = Field("", alias="managedBy")

    @field_validator("tags", mode="before")
    @classmethod
    def _null_tags(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("location", "managed_by", mode="before")
    @classmethod
    def _null_strings(cls, value: Any) -> Any:
        return "" if value is None else value


class ResourceListResponse(_WireModel):
    """Response of a resource listing call with a ``$filter``."""

    value: List[AzureResource] = Field(default_factory=list)


# Metric query payload


class LocalizableString(_WireModel):
    """Name object carrying a raw value and a display value."""

    value: str = ""
    localized_value: Optional[str] = Field(None, alias="localizedValue")


class MetricDataPoint(_WireModel):
    """One time bucket of a series with up to four aggregate values."""

    time_stamp: Optional[str] = Field(None, alias="timeStamp")
    total: Optional[float] = None
    average: Optional[float] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None


class TimeSeries(_WireModel):
    """A single series of data points."""

    data: List[MetricDataPoint] = Field(default_factory=list)


class MetricSeries(_WireModel):
    """A named metric with its unit and series."""

    id: str = ""
    name: LocalizableString = Field(default_factory=LocalizableString)
    type: str = ""
    unit: str = ""
    timeseries: List[TimeSeries] = Field(default_factory=list)


class ApiErrorBody(_WireModel):
    """Error object returned by Azure in place of a payload."""

    code: str = ""
    message: str = ""


class MetricQueryResponse(_WireModel):
    """Response of ``.../providers/microsoft.insights/metrics``."""

    value: List[MetricSeries] = Field(default_factory=list)
    error: Optional[ApiErrorBody] = None


# Batch endpoint


class BatchRequestItem(_WireModel):
    """One sub-request of a batch call."""

    relative_url: str = Field(alias="relativeUrl")
    http_method: str = Field("GET", alias="httpMethod")


class BatchRequest(_WireModel):
    """Body of ``POST /batch``; order is significant."""

    requests: List[BatchRequestItem]


class BatchResponseItem(_WireModel):
    """One sub-response of a batch call.

    ``content`` is kept untyped here so that a malformed payload only
    affects its own resource; it is validated as a ``MetricQueryResponse``
    by the metric translator.
    """

    http_status_code: int = Field(alias="httpStatusCode")
    content: Any = None


class BatchResponse(_WireModel):
    """Response of ``POST /batch``; positionally aligned with the request."""

    responses: List[BatchResponseItem] = Field(default_factory=list)


# Metric definitions (listing mode)


class MetricDefinition(_WireModel):
    """A metric available for a resource."""

    id: str = ""
    name: LocalizableString = Field(default_factory=LocalizableString)
    unit: str = ""
    primary_aggregation_type: Optional[str] = Field(
        None, alias="primaryAggregationType"
    )
    resource_id: Optional[str] = Field(None, alias="resourceId")


class MetricDefinitionResponse(_WireModel):
    """Response of ``.../providers/microsoft.insights/metricDefinitions``."""

    value: List[MetricDefinition] = Field(default_factory=list)
