"""Error taxonomy for the collection pipeline.

Every failure raised inside the exporter core is one of a small, closed set
of tagged exception kinds. Callers branch on the class (or on ``kind``) to
decide whether a failure ends the whole collection cycle or only skips one
resource:

- ``TransportError`` / ``DecodeError`` are raised by the adapter layer.
- ``AuthError`` wraps token fetch/refresh failures.
- ``DiscoveryError`` wraps API-version listing and resource listing
  failures; it ends the cycle.
- ``PerResourceLookupError`` wraps a single resource metadata lookup
  failure; the resource is skipped and the cycle continues.
- ``ConfigError`` is only raised at startup.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

BODY_PREVIEW_LIMIT = 500


class ErrorKind(str, Enum):
    """Machine-readable error classification."""

    AUTH = "auth"
    DISCOVERY = "discovery"
    TRANSPORT = "transport"
    DECODE = "decode"
    RESOURCE_LOOKUP = "resource_lookup"
    TIMEOUT = "timeout"
    CONFIG = "config"


def body_preview(body: Optional[str]) -> Optional[str]:
    """Truncate an upstream response body for logs and error messages."""
    if body is None:
        return None
    if len(body) <= BODY_PREVIEW_LIMIT:
        return body
    return body[:BODY_PREVIEW_LIMIT] + "..."


class ExporterError(RuntimeError):
    """Base class for all exporter errors.

    Parameters
    ----------
    message: str
        Human-readable description of the failure.
    endpoint: Optional[str]
        Upstream URL involved in the failure, when there is one.
    status_code: Optional[int]
        Upstream HTTP status code, when one was received.
    body: Optional[str]
        Upstream response body; stored truncated as ``body_preview``.
    resource_id: Optional[str]
        Subscription-relative resource identifier the failure relates to.
    """

    kind: ErrorKind = ErrorKind.TRANSPORT

    def __init__(
        self,
        message: str,
        *,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        resource_id: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.endpoint = endpoint
        self.status_code = status_code
        self.body_preview = body_preview(body)
        self.resource_id = resource_id

    @classmethod
    def wrap(cls, message: str, cause: ExporterError, **context: Any):
        """Build an error of this kind carrying the context of ``cause``."""
        fields: Dict[str, Any] = {
            "endpoint": cause.endpoint,
            "status_code": cause.status_code,
            "body": cause.body_preview,
            "resource_id": cause.resource_id,
        }
        fields.update(context)
        return cls(f"{message}: {cause.message}", **fields)

    def context(self) -> Dict[str, Any]:
        """Return structured context suitable for ``logging`` ``extra``."""
        return {
            "error_kind": self.kind.value,
            "endpoint": self.endpoint,
            "status_code": self.status_code,
            "body_preview": self.body_preview,
            "resource_id": self.resource_id,
        }

    def __str__(self) -> str:
        parts = [self.message]
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        if self.endpoint:
            parts.append(f"endpoint={self.endpoint}")
        if self.body_preview:
            parts.append(f"body={self.body_preview}")
        return " ".join(parts)


class TransportError(ExporterError):
    """HTTP call failed: connection error, non-success status, unreadable body."""

    kind = ErrorKind.TRANSPORT


class DecodeError(ExporterError):
    """Upstream body is not JSON or does not have the expected shape."""

    kind = ErrorKind.DECODE


class AuthError(ExporterError):
    """Credential fetch or refresh failed."""

    kind = ErrorKind.AUTH


class DiscoveryError(ExporterError):
    """API-version listing or resource listing failed."""

    kind = ErrorKind.DISCOVERY


class PerResourceLookupError(ExporterError):
    """Metadata lookup for one resource failed; the resource is skipped."""

    kind = ErrorKind.RESOURCE_LOOKUP


class CycleTimeoutError(ExporterError):
    """The collection cycle exceeded its deadline."""

    kind = ErrorKind.TIMEOUT


class ConfigError(ExporterError):
    """Configuration could not be loaded or validated."""

    kind = ErrorKind.CONFIG
