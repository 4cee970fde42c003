"""
Partial results handling for expansions where single items may fail.

A resource whose metadata lookup fails is skipped rather than aborting the
collection cycle. ``PartialResult`` collects the resources that resolved
together with a ``FailureInfo`` for each one that did not, so the caller can
both continue and report every skipped resource.
"""

from dataclasses import dataclass, field
from typing import Generic, List, TypeVar

from ..errors import ExporterError

T = TypeVar("T")


@dataclass
class FailureInfo:
    """
    Information about a skipped item.

    Attributes
    ----------
    identifier : str
        Identifier of the failed item (a resource id)
    error : ExporterError
        The tagged error that caused the skip
    """

    identifier: str
    error: ExporterError

    @property
    def error_type(self) -> str:
        """Machine-readable error kind."""
        return self.error.kind.value


@dataclass
class PartialResult(Generic[T]):
    """
    Result container for operations that may partially fail.

    Attributes
    ----------
    successes : List[T]
        Successfully resolved items, in input order
    failures : List[FailureInfo]
        Items that were skipped
    """

    successes: List[T] = field(default_factory=list)
    failures: List[FailureInfo] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        """Check if any item was skipped."""
        return len(self.failures) > 0

    def add_failure(self, identifier: str, error: ExporterError) -> None:
        """Record a skipped item; the caller reports it."""
        self.failures.append(FailureInfo(identifier=identifier, error=error))


def format_failure_summary(result: PartialResult) -> str:
    """
    Format a human-readable summary of skipped items.

    Examples
    --------
    >>> result = PartialResult(successes=["a"], failures=[])
    >>> format_failure_summary(result)
    '1 resolved, 0 skipped'
    """
    summary = f"{len(result.successes)} resolved, {len(result.failures)} skipped"
    if not result.failures:
        return summary
    by_type: dict = {}
    for failure in result.failures:
        by_type[failure.error_type] = by_type.get(failure.error_type, 0) + 1
    details = ", ".join(f"{k}={v}" for k, v in sorted(by_type.items()))
    return f"{summary} ({details})"
