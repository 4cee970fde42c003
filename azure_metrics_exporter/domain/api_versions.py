"""API version discovery.

Every Resource Manager call needs an ``api-version`` that the resource type
supports. The provider listing of the subscription declares the supported
versions per ``<namespace>/<type>``; the newest one (by its leading ISO date)
is selected for each type. The resulting ``APIVersionMap`` is built fresh for
every collection cycle and handed to the resource resolver explicitly.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Iterable, Iterator, Mapping, Optional

from ..adapters import MonitorAdapter
from ..errors import DiscoveryError, ExporterError
from ..schemas.azure_contract import ProviderListResponse
from ..utils.correlation import get_request_id
from .utils.timestamps import parse_version_date

logger = logging.getLogger(__name__)


def latest_version_from(candidates: Iterable[str]) -> Optional[str]:
    """Return the candidate with the most recent leading date.

    Candidates without a parseable date are skipped (a warning is logged by
    the date parser). Under equal dates the last candidate wins. Returns
    ``None`` when no candidate parses.

    Examples
    --------
    >>> latest_version_from(["2017-01-01", "2019-05-10", "2018-02-01"])
    '2019-05-10'
    """
    latest: Optional[str] = None
    latest_date: Optional[date] = None
    for candidate in candidates:
        parsed = parse_version_date(candidate)
        if parsed is None:
            continue
        if latest_date is None or parsed >= latest_date:
            latest, latest_date = candidate, parsed
    return latest


class APIVersionMap(Mapping[str, str]):
    """Mapping of ``"<namespace>/<type>"`` to its newest API version."""

    def __init__(self, versions: Optional[Mapping[str, str]] = None) -> None:
        self._versions: Dict[str, str] = dict(versions or {})

    def __getitem__(self, key: str) -> str:
        return self._versions[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._versions)

    def __len__(self) -> int:
        return len(self._versions)

    def lookup(self, resource_type: str) -> Optional[str]:
        """Exact-match lookup; ``None`` when the type is unknown."""
        return self._versions.get(resource_type)

    @classmethod
    def from_providers(cls, listing: ProviderListResponse) -> "APIVersionMap":
        """Select the newest version for every declared resource type."""
        versions: Dict[str, str] = {}
        for provider in listing.value:
            for resource_type in provider.resource_types:
                if not resource_type.api_versions:
                    continue
                latest = latest_version_from(resource_type.api_versions)
                if latest is None:
                    continue
                versions[f"{provider.namespace}/{resource_type.resource_type}"] = latest
        return cls(versions)


class APIVersionResolver:
    """Builds the ``APIVersionMap`` from the subscription's provider listing."""

    def __init__(self, adapter: MonitorAdapter) -> None:
        self._adapter = adapter

    async def resolve_api_versions(self) -> APIVersionMap:
        """List providers and return the newest version per resource type.

        Raises
        ------
        DiscoveryError
            If the listing call fails or its body cannot be decoded.
        """
        try:
            listing = await self._adapter.list_providers()
        except ExporterError as exc:
            raise DiscoveryError.wrap("failed to list API versions", exc) from exc
        versions = APIVersionMap.from_providers(listing)
        logger.debug(
            "api_versions.resolved",
            extra={"req_id": get_request_id(), "resource_types": len(versions)},
        )
        return versions
