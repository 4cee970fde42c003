"""Exporter runtime.

``ExporterServer`` owns the long-lived pieces shared by every scrape: the
identity and Resource Manager adapters, the token provider and the collector.
Its asynchronous lifecycle fetches the initial token on ``start`` and closes
the HTTP clients on ``stop``; both the HTTP host and the definitions listing
mode run inside it.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..adapters import TokenFetcher
from ..adapters.azure import AzureAdapter
from ..adapters.identity import IdentityAdapter
from ..config.models import AppConfig
from ..domain.token import TokenProvider
from ..utils.correlation import get_request_id
from .collector import Collector

logger = logging.getLogger(__name__)


class ExporterServer:
    """Async runtime holding adapters, credential and collector.

    Parameters
    ----------
    cfg: AppConfig
        Loaded configuration with complete credentials.
    fetcher: Optional[TokenFetcher]
        Identity client; built from ``cfg`` when omitted.
    adapter: Optional[Any]
        Resource Manager client implementing ``MonitorAdapter``; built from
        ``cfg`` when omitted. Tests pass in-memory fakes for both.
    """

    def __init__(
        self,
        cfg: AppConfig,
        *,
        fetcher: Optional[TokenFetcher] = None,
        adapter: Optional[Any] = None,
    ) -> None:
        self._cfg = cfg
        self._started: bool = False
        creds = cfg.credentials
        self._fetcher = fetcher or IdentityAdapter(
            cfg.active_directory_authority_url,
            creds.tenant_id,
            creds.client_id,
            creds.client_secret,
            resource=cfg.resource_manager_url,
            timeout=cfg.timeout_seconds,
        )
        self.tokens = TokenProvider(self._fetcher)
        self._adapter = adapter or AzureAdapter(
            cfg.resource_manager_url,
            creds.subscription_id,
            self.tokens,
            timeout=cfg.timeout_seconds,
        )
        self.collector = Collector(cfg, self.tokens, self._adapter)

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        """Fetch the initial token.

        Idempotent. Raises ``AuthError`` when the token cannot be obtained;
        callers treat that as fatal.
        """
        if self._started:
            logger.debug("server.start no-op: already started")
            return
        credential = await self.tokens.fetch_token()
        self._started = True
        logger.info(
            "server.started",
            extra={
                "req_id": get_request_id(),
                "token_expires_on": credential.expires_on.isoformat(),
            },
        )

    async def stop(self) -> None:
        """Close upstream HTTP clients. Idempotent."""
        for client in (self._adapter, self._fetcher):
            aclose = getattr(client, "aclose", None)
            if callable(aclose):
                await aclose()
        if not self._started:
            logger.debug("server.stop: was not started")
            return
        self._started = False
        logger.info("server.stopped")
