"""Batched metric query execution.

Resolved queries are partitioned into consecutive chunks of at most
``batch_size`` and each chunk is submitted in one call to the batch endpoint.
Sub-responses carry no correlation id: the i-th sub-response belongs to the
i-th sub-request of the same chunk. Chunks are processed strictly in order.

A failing batch call (transport, status or decoding) propagates out of
``BatchExecutor.run`` as ``TransportError`` / ``DecodeError``; pairs yielded
for earlier chunks have already been handed to the caller by then.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, List, Sequence, Tuple, TypeVar

from ..adapters import MonitorAdapter
from ..errors import DecodeError
from ..schemas.azure_contract import BatchRequest, BatchRequestItem
from ..utils.correlation import get_request_id
from .models import ResolvedQuery

logger = logging.getLogger(__name__)

T = TypeVar("T")

BATCH_SIZE = 20


def chunks(items: Sequence[T], length: int = BATCH_SIZE) -> List[Sequence[T]]:
    """Split ``items`` into consecutive slices of at most ``length``.

    Examples
    --------
    >>> chunks([1, 2, 3, 4, 5], 2)
    [[1, 2], [3, 4], [5]]
    """
    return [items[i : i + length] for i in range(0, len(items), length)]


def batch_request_for(queries: Sequence[ResolvedQuery]) -> BatchRequest:
    """One read-only sub-request per query, in query order."""
    return BatchRequest(
        requests=[
            BatchRequestItem(relative_url=q.query_url, http_method="GET")
            for q in queries
        ]
    )


class BatchExecutor:
    """Submits resolved queries through the batch endpoint.

    Parameters
    ----------
    adapter: MonitorAdapter
        Upstream client providing ``post_batch``.
    batch_size: int
        Maximum number of sub-requests per batch call.
    """

    def __init__(self, adapter: MonitorAdapter, batch_size: int = BATCH_SIZE) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._adapter = adapter
        self._batch_size = batch_size

    @property
    def batch_size(self) -> int:
        return self._batch_size

    async def run(
        self, queries: Sequence[ResolvedQuery]
    ) -> AsyncIterator[Tuple[ResolvedQuery, int, Any]]:
        """Yield ``(query, sub_status, sub_content)`` for every query, in order.

        Raises
        ------
        TransportError
            If a batch call fails or returns a non-success status.
        DecodeError
            If a batch response cannot be decoded or its sub-response count
            differs from the number of submitted sub-requests.
        """
        for number, chunk in enumerate(chunks(queries, self._batch_size), start=1):
            logger.debug(
                "batch.submit",
                extra={
                    "req_id": get_request_id(),
                    "batch": number,
                    "size": len(chunk),
                },
            )
            response = await self._adapter.post_batch(batch_request_for(chunk))
            if len(response.responses) != len(chunk):
                raise DecodeError(
                    f"batch returned {len(response.responses)} responses "
                    f"for {len(chunk)} requests"
                )
            for query, item in zip(chunk, response.responses):
                yield query, item.http_status_code, item.content
