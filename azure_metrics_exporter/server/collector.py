"""Collection cycle orchestration.

One ``Collector.collect`` call runs one full cycle, stages strictly in order:

1. refresh the bearer token if it is near expiry;
2. build the ``APIVersionMap`` from the provider listing;
3. resolve explicit targets, resource groups and tags into queries;
4. submit the queries in batches and translate every sub-response.

Cycles are serialized with an asyncio lock and bounded by a deadline. The
version map lives for one cycle only. Failures never raise out of
``collect``: they are recorded on the returned ``CycleResult`` and exposed as
``azure_error`` samples next to whatever was collected before the failure.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, List, Optional

from ..adapters import MonitorAdapter
from ..config.models import AppConfig
from ..domain.api_versions import APIVersionMap, APIVersionResolver
from ..domain.batch import BatchExecutor
from ..domain.models import MetricSample, ResolvedQuery, ResourceDescriptor
from ..domain.query import QueryBuilder
from ..domain.resources import ResourceResolver
from ..domain.token import TokenProvider
from ..domain.translate import MetricTranslator
from ..errors import (
    AuthError,
    CycleTimeoutError,
    DiscoveryError,
    ExporterError,
    PerResourceLookupError,
)
from ..utils.correlation import get_request_id
from ..utils.partial_results import format_failure_summary

logger = logging.getLogger(__name__)


@dataclass
class CycleResult:
    """Samples and errors produced by one collection cycle."""

    samples: List[MetricSample] = field(default_factory=list)
    errors: List[ExporterError] = field(default_factory=list)

    def fail(self, error: ExporterError) -> None:
        """Record a failure; logged with its structured context."""
        self.errors.append(error)
        logger.error(
            "collector.error",
            extra={"req_id": get_request_id(), "error": str(error), **error.context()},
        )


class _CycleAborted(Exception):
    """Internal signal: the remainder of the cycle is abandoned."""


class Collector:
    """Runs collection cycles against one subscription.

    Parameters
    ----------
    cfg: AppConfig
        Targets, groups, tags and tuning.
    tokens: TokenProvider
        Shared credential holder; refreshed at the start of each cycle.
    adapter: MonitorAdapter
        Upstream client used by every stage.
    query_builder: Optional[QueryBuilder]
        Override for tests (fixed clock); built from ``cfg`` when omitted.
    """

    def __init__(
        self,
        cfg: AppConfig,
        tokens: TokenProvider,
        adapter: MonitorAdapter,
        *,
        query_builder: Optional[QueryBuilder] = None,
    ) -> None:
        self._cfg = cfg
        self._tokens = tokens
        self._adapter = adapter
        self._versions = APIVersionResolver(adapter)
        self._resolver = ResourceResolver(adapter)
        self._queries = query_builder or QueryBuilder(
            adapter.subscription_id,
            window=timedelta(seconds=cfg.query_window_seconds),
        )
        self._executor = BatchExecutor(adapter, batch_size=cfg.batch_size)
        self._translator = MetricTranslator()
        self._lock = asyncio.Lock()

    async def collect(self, timeout: Optional[float] = None) -> CycleResult:
        """Run one cycle and return what it produced.

        The deadline also covers waiting for a cycle already in progress.

        Parameters
        ----------
        timeout: Optional[float]
            Deadline in seconds; the smaller of this and the configured
            ``scrape_timeout_seconds`` applies.
        """
        deadline = self._cfg.scrape_timeout_seconds
        if timeout is not None and timeout > 0:
            deadline = min(deadline, timeout)

        result = CycleResult()
        started = time.monotonic()
        try:
            await asyncio.wait_for(self._locked_cycle(result), timeout=deadline)
        except asyncio.TimeoutError:
            result.fail(
                CycleTimeoutError(f"collection cycle exceeded deadline of {deadline:g}s")
            )
        logger.info(
            "collector.cycle.completed",
            extra={
                "req_id": get_request_id(),
                "samples": len(result.samples),
                "errors": len(result.errors),
                "duration_ms": int((time.monotonic() - started) * 1000),
            },
        )
        return result

    async def _locked_cycle(self, result: CycleResult) -> None:
        async with self._lock:
            await self._run_cycle(result)

    async def _run_cycle(self, result: CycleResult) -> None:
        try:
            await self._tokens.ensure_fresh_token()
        except AuthError as exc:
            result.fail(exc)
            return
        try:
            versions = await self._resolve_versions(result)
            queries = await self._resolve_queries(result, versions)
        except _CycleAborted:
            return
        await self._execute(result, queries)

    async def _resolve_versions(self, result: CycleResult) -> APIVersionMap:
        try:
            return await self._versions.resolve_api_versions()
        except DiscoveryError as exc:
            result.fail(exc)
            raise _CycleAborted() from exc

    async def _resolve_queries(
        self, result: CycleResult, versions: APIVersionMap
    ) -> List[ResolvedQuery]:
        queries: List[ResolvedQuery] = []

        for target in self._cfg.targets:
            try:
                resource = await self._resolver.resolve_target(target, versions)
            except PerResourceLookupError as exc:
                result.fail(exc)
                continue
            queries.append(
                self._queries.build(
                    resource, target.metric_names(), target.aggregations
                )
            )

        # A failed group or tag listing abandons the whole cycle
        for group in self._cfg.resource_groups:
            try:
                resources = await self._resolver.expand_resource_group(group)
            except DiscoveryError as exc:
                result.fail(exc)
                raise _CycleAborted() from exc
            queries.extend(
                self._queries.build(r, group.metric_names(), group.aggregations)
                for r in resources
            )

        for tag in self._cfg.resource_tags:
            try:
                expanded = await self._resolver.expand_tag(tag, versions)
            except DiscoveryError as exc:
                result.fail(exc)
                raise _CycleAborted() from exc
            for failure in expanded.failures:
                result.fail(failure.error)
            if expanded.has_failures:
                logger.info(
                    "collector.tag.partial",
                    extra={
                        "req_id": get_request_id(),
                        "tag": tag.resource_tag_name,
                        "summary": format_failure_summary(expanded),
                    },
                )
            queries.extend(
                self._queries.build(r, tag.metric_names(), tag.aggregations)
                for r in expanded.successes
            )

        logger.debug(
            "collector.queries.resolved",
            extra={"req_id": get_request_id(), "queries": len(queries)},
        )
        return queries

    async def _execute(self, result: CycleResult, queries: List[ResolvedQuery]) -> None:
        try:
            async for query, status, content in self._executor.run(queries):
                result.samples.extend(
                    self._translator.translate(query, status, content)
                )
        except ExporterError as exc:
            result.fail(exc)

    async def list_metric_definitions(self) -> Dict[str, List[str]]:
        """Return the available metric names of every configured resource.

        Explicit targets are used as configured; resource groups and tags are
        listed as in a collection cycle, without metadata lookups.

        Raises
        ------
        ExporterError
            On any failure; this mode has no partial results.
        """
        await self._tokens.ensure_fresh_token()

        resources: List[ResourceDescriptor] = [
            self._resolver.target_descriptor(target) for target in self._cfg.targets
        ]
        for group in self._cfg.resource_groups:
            resources.extend(await self._resolver.expand_resource_group(group))
        for tag in self._cfg.resource_tags:
            resources.extend(await self._resolver.list_by_tag(tag))

        definitions: Dict[str, List[str]] = {}
        for resource in resources:
            try:
                listing = await self._adapter.get_metric_definitions(resource.id)
            except ExporterError as exc:
                raise DiscoveryError.wrap(
                    f"failed to get metric definitions for {resource.id}",
                    exc,
                    resource_id=resource.id,
                ) from exc
            definitions[resource.id] = [d.name.value for d in listing.value]
        return definitions
