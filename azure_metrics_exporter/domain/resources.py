"""Resource resolution.

Expands the three kinds of target selection into concrete
``ResourceDescriptor`` values:

- explicit targets: one direct metadata lookup per configured resource id;
- resource groups: one listing restricted server-side to the configured
  types, then client-side include/exclude name filtering;
- tags: one subscription-wide listing for a tag name/value pair, an optional
  exact type restriction, then one metadata lookup per listed resource.

Listing failures raise ``DiscoveryError`` and end the cycle. Metadata lookup
failures raise ``PerResourceLookupError``; tag expansion records them in its
``PartialResult`` and carries on with the remaining resources.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, List, Optional, Pattern, Sequence

from ..adapters import MonitorAdapter
from ..errors import DiscoveryError, ExporterError, PerResourceLookupError
from ..utils.correlation import get_request_id
from ..utils.partial_results import PartialResult
from .api_versions import APIVersionMap
from .models import ResourceDescriptor

if TYPE_CHECKING:
    from ..config.models import ResourceGroup, ResourceTag, Target

logger = logging.getLogger(__name__)


def escape_filter_value(value: str) -> str:
    """Backslash-escape single quotes for an OData string literal."""
    return value.replace("'", "\\'")


def resource_group_filter(resource_types: Iterable[str]) -> str:
    """OR together one ``resourcetype eq '<type>'`` clause per type.

    Examples
    --------
    >>> resource_group_filter(["Microsoft.Web/sites", "Microsoft.Sql/servers"])
    "resourcetype eq 'Microsoft.Web/sites' or resourcetype eq 'Microsoft.Sql/servers'"
    """
    return " or ".join(
        f"resourcetype eq '{escape_filter_value(t)}'" for t in resource_types
    )


def tag_filter(tag_name: str, tag_value: str) -> str:
    """Filter matching resources that carry ``tag_name`` = ``tag_value``."""
    return (
        f"tagName eq '{escape_filter_value(tag_name)}' "
        f"and tagValue eq '{escape_filter_value(tag_value)}'"
    )


def name_selected(
    name: str,
    include: Sequence[Pattern[str]],
    exclude: Sequence[Pattern[str]],
) -> bool:
    """Keep a name matching any include pattern (if given) and no exclude one."""
    if include and not any(rx.search(name) for rx in include):
        return False
    return not any(rx.search(name) for rx in exclude)


def resource_type_from_id(resource_id: str) -> Optional[str]:
    """Derive ``<namespace>/<type>[/<subtype>...]`` from a resource id.

    Examples
    --------
    >>> resource_type_from_id(
    ...     "/resourceGroups/rg/providers/Microsoft.Sql/servers/s1/databases/d1"
    ... )
    'Microsoft.Sql/servers/databases'
    """
    segments = [s for s in resource_id.split("/") if s]
    lowered = [s.lower() for s in segments]
    if "providers" not in lowered:
        return None
    idx = lowered.index("providers")
    if len(segments) < idx + 3:
        return None
    namespace = segments[idx + 1]
    types = segments[idx + 2 :: 2]
    return "/".join([namespace, *types])


class ResourceResolver:
    """Expands target specifications into resource descriptors."""

    def __init__(self, adapter: MonitorAdapter) -> None:
        self._adapter = adapter

    @property
    def subscription_id(self) -> str:
        return self._adapter.subscription_id

    async def lookup(
        self, resource_id: str, resource_type: str, versions: APIVersionMap
    ) -> ResourceDescriptor:
        """Fetch metadata of one resource with its type's newest API version.

        Raises
        ------
        PerResourceLookupError
            If the type has no known API version or the lookup call fails.
        """
        api_version = versions.lookup(resource_type)
        if api_version is None:
            raise PerResourceLookupError(
                f"no api version found for type {resource_type}",
                resource_id=resource_id,
            )
        try:
            resource = await self._adapter.get_resource(resource_id, api_version)
        except ExporterError as exc:
            raise PerResourceLookupError.wrap(
                f"failed to get resource information for {resource_id}",
                exc,
                resource_id=resource_id,
            ) from exc
        return ResourceDescriptor.from_azure(resource, self.subscription_id)

    async def resolve_target(
        self, target: "Target", versions: APIVersionMap
    ) -> ResourceDescriptor:
        """Resolve an explicitly configured resource id."""
        resource_type = resource_type_from_id(target.resource)
        if resource_type is None:
            raise PerResourceLookupError(
                f"no type found for resource {target.resource}",
                resource_id=target.resource,
            )
        return await self.lookup(target.resource, resource_type, versions)

    def target_descriptor(self, target: "Target") -> ResourceDescriptor:
        """Descriptor of an explicit target built from its id alone."""
        return ResourceDescriptor(
            id=target.resource,
            name=target.resource.rstrip("/").rsplit("/", 1)[-1],
            type=resource_type_from_id(target.resource) or "",
            subscription=self.subscription_id,
        )

    async def _list(
        self, filter_expr: str, resource_group: Optional[str], what: str
    ) -> List[ResourceDescriptor]:
        try:
            listing = await self._adapter.list_resources(
                filter_expr, resource_group=resource_group
            )
        except ExporterError as exc:
            raise DiscoveryError.wrap(f"failed to get resources for {what}", exc) from exc
        return [
            ResourceDescriptor.from_azure(r, self.subscription_id)
            for r in listing.value
        ]

    async def expand_resource_group(
        self, group: "ResourceGroup"
    ) -> List[ResourceDescriptor]:
        """List a resource group's resources of the configured types.

        Raises
        ------
        DiscoveryError
            If the listing call fails.
        """
        listed = await self._list(
            resource_group_filter(group.resource_types),
            group.resource_group,
            f"resource group {group.resource_group} "
            f"and resource types {group.resource_types}",
        )
        kept = [r for r in listed if group.name_selected(r.name)]
        logger.debug(
            "resources.group.expanded",
            extra={
                "req_id": get_request_id(),
                "resource_group": group.resource_group,
                "listed": len(listed),
                "kept": len(kept),
            },
        )
        return kept

    async def list_by_tag(self, tag: "ResourceTag") -> List[ResourceDescriptor]:
        """List subscription resources with the tag, restricted to the types.

        Raises
        ------
        DiscoveryError
            If the listing call fails.
        """
        listed = await self._list(
            tag_filter(tag.resource_tag_name, tag.resource_tag_value),
            None,
            f"tag name {tag.resource_tag_name}, tag value {tag.resource_tag_value}",
        )
        if tag.resource_types:
            wanted = set(tag.resource_types)
            listed = [r for r in listed if r.type in wanted]
        return listed

    async def expand_tag(
        self, tag: "ResourceTag", versions: APIVersionMap
    ) -> PartialResult[ResourceDescriptor]:
        """List tagged resources and look each one up.

        A failed lookup skips that resource only.

        Raises
        ------
        DiscoveryError
            If the listing call fails.
        """
        result: PartialResult[ResourceDescriptor] = PartialResult()
        for listed in await self.list_by_tag(tag):
            try:
                result.successes.append(
                    await self.lookup(listed.id, listed.type, versions)
                )
            except PerResourceLookupError as exc:
                result.add_failure(listed.id, exc)
        return result
