"""
Metric and label naming utilities.

Azure metric names are free text ("Percentage CPU", "Bytes Sent/sec") and tag
keys may contain any character, while Prometheus restricts metric names to
``[a-zA-Z0-9_:]`` and label names to ``[a-zA-Z0-9_]``. These helpers derive
stable exposition names and the label sets attached to every sample.
"""

import re
from typing import Dict, List, Optional

_INVALID_METRIC_CHARS = re.compile(r"[^a-zA-Z0-9_:]")
_INVALID_LABEL_CHARS = re.compile(r"[^a-zA-Z0-9_]")

# Aggregation kind -> exposition name suffix
AGGREGATION_SUFFIXES = {
    "Total": "_total",
    "Average": "_average",
    "Minimum": "_min",
    "Maximum": "_max",
}


def sanitize_metric_name(name: str, unit: str) -> str:
    """
    Build the base exposition name of an Azure metric.

    Spaces become underscores, the unit is appended, the result is lowercased,
    ``/`` becomes ``_per_`` and any remaining invalid character becomes ``_``.
    A name starting with a digit gets a leading ``_``.

    Parameters
    ----------
    name : str
        Azure metric name, e.g. ``"Bytes Sent/sec"``
    unit : str
        Azure unit, e.g. ``"BytesPerSecond"``

    Returns
    -------
    str
        Name matching ``^[a-z0-9_:]+$``

    Examples
    --------
    >>> sanitize_metric_name("Percentage CPU", "Percent")
    'percentage_cpu_percent'
    >>> sanitize_metric_name("Requests/sec", "CountPerSecond")
    'requests_per_sec_countpersecond'
    >>> sanitize_metric_name("5xx Errors", "Count")
    '_5xx_errors_count'
    """
    metric_name = name.replace(" ", "_")
    metric_name = f"{metric_name}_{unit}".lower()
    metric_name = metric_name.replace("/", "_per_")
    metric_name = _INVALID_METRIC_CHARS.sub("_", metric_name)
    if metric_name[:1].isdigit():
        metric_name = "_" + metric_name
    return metric_name


def sanitize_label_name(name: str) -> str:
    """
    Lowercase a free-form key and replace characters invalid in label names.

    Examples
    --------
    >>> sanitize_label_name("Cost-Center")
    'cost_center'
    """
    return _INVALID_LABEL_CHARS.sub("_", name.lower())


def _segment_after(segments: List[str], marker: str, offset: int = 1) -> Optional[str]:
    lowered = [s.lower() for s in segments]
    if marker not in lowered:
        return None
    idx = lowered.index(marker) + offset
    return segments[idx] if idx < len(segments) else None


def resource_labels(resource_id: str) -> Dict[str, str]:
    """
    Derive the per-sample labels from a subscription-relative resource id.

    ``sub_resource_name`` is only present for nested resources such as
    ``.../servers/s1/databases/d1``.

    Examples
    --------
    >>> resource_labels("/resourceGroups/rg/providers/Microsoft.Web/sites/blog")
    {'resource_group': 'rg', 'resource_name': 'blog'}
    """
    segments = [s for s in resource_id.split("/") if s]
    labels = {
        "resource_group": _segment_after(segments, "resourcegroups") or "",
        "resource_name": _segment_after(segments, "providers", 3) or "",
    }
    sub_resource_name = _segment_after(segments, "providers", 5)
    if sub_resource_name:
        labels["sub_resource_name"] = sub_resource_name
    return labels


def resource_info_labels(
    resource_id: str,
    name: str,
    resource_type: str,
    location: str,
    managed_by: str,
    subscription: str,
    tags: Dict[str, str],
) -> Dict[str, str]:
    """
    Build the label set of the ``azure_resource_info`` metadata sample.

    Tags become ``tag_<key>`` labels with sanitized keys.
    """
    labels = {
        f"tag_{sanitize_label_name(key)}": value for key, value in tags.items()
    }
    labels.update(
        {
            "id": resource_id,
            "resource_name": name,
            "resource_type": resource_type,
            "azure_location": location,
            "managed_by": managed_by,
            "azure_subscription": subscription,
            "resource_group": _segment_after(
                [s for s in resource_id.split("/") if s], "resourcegroups"
            )
            or "",
        }
    )
    return labels
