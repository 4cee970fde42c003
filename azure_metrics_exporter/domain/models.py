"""Canonical domain data model used by the collection pipeline.

These Pydantic models are the values passed between pipeline stages: the
resource resolver produces ``ResourceDescriptor`` values, the query builder
wraps them into ``ResolvedQuery`` units of work, and the metric translator
emits ``MetricSample`` values that the exposition layer renders. All of them
live for one collection cycle only.
"""

from __future__ import annotations

from typing import Dict, List, Literal

from pydantic import BaseModel, Field

from ..schemas.azure_contract import AzureResource


def strip_subscription(resource_id: str, subscription_id: str) -> str:
    """Remove a leading ``/subscriptions/{id}`` segment from ``resource_id``.

    Identifiers without that prefix are returned unchanged. The comparison
    ignores case since Azure does not guarantee the casing of returned ids.

    Examples
    --------
    >>> strip_subscription("/subscriptions/abc/resourceGroups/rg", "abc")
    '/resourceGroups/rg'
    """
    prefix = f"/subscriptions/{subscription_id}"
    if resource_id.lower().startswith(prefix.lower()):
        remainder = resource_id[len(prefix) :]
        if not remainder or remainder.startswith("/"):
            return remainder
    return resource_id


class ResourceDescriptor(BaseModel):
    """A resolved Azure resource.

    Attributes
    ----------
    id: str
        Subscription-relative identifier, e.g.
        ``/resourceGroups/rg/providers/Microsoft.Web/sites/blog``. Never
        includes the ``/subscriptions/{id}`` prefix.
    name: str
        Display name.
    location: str
        Azure region.
    type: str
        Resource type, e.g. ``Microsoft.Web/sites``.
    tags: Dict[str, str]
        Tags attached to the resource.
    managed_by: str
        Managing entity reference, empty when unmanaged.
    subscription: str
        Owning subscription id.
    """

    id: str
    name: str = ""
    location: str = ""
    type: str = ""
    tags: Dict[str, str] = Field(default_factory=dict)
    managed_by: str = ""
    subscription: str

    @classmethod
    def from_azure(
        cls, resource: AzureResource, subscription_id: str
    ) -> "ResourceDescriptor":
        """Build a descriptor from wire metadata, stripping the subscription."""
        return cls(
            id=strip_subscription(resource.id, subscription_id),
            name=resource.name,
            location=resource.location,
            type=resource.type,
            tags=dict(resource.tags),
            managed_by=resource.managed_by,
            subscription=subscription_id,
        )


class ResolvedQuery(BaseModel):
    """One unit of work: a metric query for one resource.

    Attributes
    ----------
    resource_id: str
        Subscription-relative identifier of the queried resource.
    query_url: str
        Relative URL submitted inside a batch.
    metric_names: str
        Comma-joined metric names.
    aggregations: List[str]
        Requested aggregation kinds, already filtered to supported ones.
    resource: ResourceDescriptor
        Metadata used for the resource info sample.
    """

    resource_id: str
    query_url: str
    metric_names: str
    aggregations: List[str]
    resource: ResourceDescriptor


class MetricSample(BaseModel):
    """One exposition sample.

    Attributes
    ----------
    name: str
        Sanitized metric name including its aggregation suffix.
    value: float
        Sample value.
    labels: Dict[str, str]
        Label set.
    kind: Literal["gauge", "untyped"]
        Exposition type.
    documentation: str
        HELP text.
    """

    name: str
    value: float
    labels: Dict[str, str] = Field(default_factory=dict)
    kind: Literal["gauge", "untyped"] = "gauge"
    documentation: str = ""
