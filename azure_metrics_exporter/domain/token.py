"""Bearer token lifecycle.

``TokenProvider`` owns the process-wide ``Credential`` and refreshes it
proactively: a refresh happens whenever ``now > expires_on - skew``. Refresh
and read go through the provider only; refreshes are serialized with an
asyncio lock so that overlapping scrapes never race on the credential.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from ..adapters import TokenFetcher
from ..errors import AuthError, ExporterError
from ..utils.correlation import get_request_id

logger = logging.getLogger(__name__)

REFRESH_SKEW = timedelta(minutes=10)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Credential:
    """Opaque bearer token and its absolute expiry (UTC)."""

    token: str = ""
    expires_on: datetime = _EPOCH

    def needs_refresh(self, now: datetime, skew: timedelta = REFRESH_SKEW) -> bool:
        return now > self.expires_on - skew

    def is_expired(self, now: datetime) -> bool:
        return not self.token or now >= self.expires_on


class TokenProvider:
    """Synchronized holder of the bearer credential.

    Parameters
    ----------
    fetcher: TokenFetcher
        Identity endpoint client.
    skew: timedelta
        Safety margin before expiry at which a refresh is triggered.
    clock: Callable[[], datetime]
        Source of the current UTC time (tests pass a fixed clock).
    """

    def __init__(
        self,
        fetcher: TokenFetcher,
        skew: timedelta = REFRESH_SKEW,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._fetcher = fetcher
        self._skew = skew
        self._clock = clock
        self._credential = Credential()
        self._lock = asyncio.Lock()

    @property
    def credential(self) -> Credential:
        return self._credential

    def get(self) -> str:
        """Return the current token.

        Raises
        ------
        AuthError
            If no token has been fetched yet or the token has expired.
        """
        if self._credential.is_expired(self._clock()):
            raise AuthError("no valid access token; refresh required")
        return self._credential.token

    async def fetch_token(self) -> Credential:
        """Unconditionally fetch a new token (used at startup)."""
        async with self._lock:
            await self._fetch_locked()
        return self._credential

    async def ensure_fresh_token(self) -> None:
        """Refresh the credential if it is expired or near expiry."""
        async with self._lock:
            if self._credential.needs_refresh(self._clock(), self._skew):
                logger.info(
                    "token.refresh",
                    extra={
                        "req_id": get_request_id(),
                        "expires_on": self._credential.expires_on.isoformat(),
                    },
                )
                await self._fetch_locked()

    refresh_if_needed = ensure_fresh_token

    async def _fetch_locked(self) -> None:
        try:
            resp = await self._fetcher.fetch_token()
        except ExporterError as exc:
            raise AuthError.wrap("error refreshing access token", exc) from exc
        try:
            expires_on = datetime.fromtimestamp(resp.expires_on, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise AuthError(f"invalid token expiry {resp.expires_on!r}") from exc
        # Mutated in place: the adapters hold a reference to this provider
        self._credential.token = resp.access_token
        self._credential.expires_on = expires_on
