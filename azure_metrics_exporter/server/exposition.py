"""Prometheus text exposition of a collection cycle.

Samples are grouped by name into ``prometheus_client`` metric families and
served through a throwaway ``CollectorRegistry`` per scrape, so nothing is
retained between cycles. Cycle errors become ``azure_error`` samples and
every exposition carries ``azure_exporter_build_info``.
"""

from __future__ import annotations

import logging
import platform
from typing import Dict, Iterable, Iterator, List, Tuple

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest
from prometheus_client.core import Metric

from .. import __version__
from ..domain.models import MetricSample
from ..errors import ExporterError
from ..utils.correlation import get_request_id
from .collector import CycleResult

logger = logging.getLogger(__name__)

ERROR_METRIC = "azure_error"
ERROR_HELP = "Error collecting metrics"
BUILD_INFO_METRIC = "azure_exporter_build_info"

_EXPOSITION_TYPES = {"gauge": "gauge", "untyped": "unknown"}


def error_sample(error: ExporterError) -> MetricSample:
    """One ``azure_error`` sample describing a cycle failure."""
    return MetricSample(
        name=ERROR_METRIC,
        value=1.0,
        labels={"kind": error.kind.value, "message": error.message},
        documentation=ERROR_HELP,
    )


def build_info_sample() -> MetricSample:
    return MetricSample(
        name=BUILD_INFO_METRIC,
        value=1.0,
        labels={
            "version": __version__,
            "python_version": platform.python_version(),
        },
        documentation="Build information of the Azure metrics exporter",
    )


def families_from(samples: Iterable[MetricSample]) -> List[Metric]:
    """Group samples by name, keeping first-seen order.

    The first sample of a name decides the family's type and HELP text. A
    name that prometheus_client rejects is dropped with a warning.
    """
    families: Dict[str, Metric] = {}
    rejected = set()
    for sample in samples:
        if sample.name in rejected:
            continue
        family = families.get(sample.name)
        if family is None:
            try:
                family = Metric(
                    sample.name,
                    sample.documentation or sample.name,
                    _EXPOSITION_TYPES[sample.kind],
                )
            except ValueError as exc:
                rejected.add(sample.name)
                logger.warning(
                    "exposition.metric_rejected",
                    extra={
                        "req_id": get_request_id(),
                        "metric": sample.name,
                        "error": str(exc),
                    },
                )
                continue
            families[sample.name] = family
        family.add_sample(sample.name, sample.labels, sample.value)
    return list(families.values())


class _StaticCollector:
    """Hands a fixed list of families to the registry."""

    def __init__(self, families: List[Metric]) -> None:
        self._families = families

    def collect(self) -> Iterator[Metric]:
        return iter(self._families)


def render(result: CycleResult) -> Tuple[bytes, str]:
    """Render a cycle result; returns ``(body, content_type)``."""
    samples: List[MetricSample] = list(result.samples)
    samples.extend(error_sample(e) for e in result.errors)
    samples.append(build_info_sample())

    registry = CollectorRegistry(auto_describe=False)
    registry.register(_StaticCollector(families_from(samples)))
    return generate_latest(registry), CONTENT_TYPE_LATEST
