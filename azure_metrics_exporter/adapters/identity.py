"""Azure AD identity adapter.

Exchanges service principal credentials for a bearer token using the OAuth2
client-credentials grant against ``{authority}/{tenant}/oauth2/token``. The
response is validated into a typed ``TokenResponse``; anything else raises.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from ..errors import DecodeError, TransportError
from ..schemas.azure_contract import TokenResponse
from ..utils.correlation import get_request_id

logger = logging.getLogger(__name__)


class IdentityAdapter:
    """Client for the Azure AD token endpoint.

    Parameters
    ----------
    authority_url: str
        Azure AD authority, e.g. ``https://login.microsoftonline.com/``.
    tenant_id: str
        Directory (tenant) id.
    client_id: str
        Application (client) id.
    client_secret: str
        Client secret.
    resource: str
        Token audience; the Resource Manager URL.
    timeout: float
        Request timeout in seconds.
    """

    def __init__(
        self,
        authority_url: str,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        resource: str,
        timeout: float = 30.0,
    ) -> None:
        self._token_url = f"{authority_url.rstrip('/')}/{tenant_id}/oauth2/token"
        self._form = {
            "grant_type": "client_credentials",
            "resource": resource,
            "client_id": client_id,
            "client_secret": client_secret,
        }
        self._client: Any = httpx.AsyncClient(timeout=timeout)

    @property
    def token_url(self) -> str:
        return self._token_url

    def inject_http_client_for_testing(self, client: Any) -> None:
        """Replace underlying HTTP client (testing only)."""
        self._client = client

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_token(self) -> TokenResponse:
        """Authenticate and return the parsed token response.

        Raises
        ------
        TransportError
            On connection failure or a non-200 status.
        DecodeError
            If the body is not JSON or lacks ``access_token``/``expires_on``.
        """
        logger.debug(
            "identity.token.request",
            extra={"req_id": get_request_id(), "endpoint": self._token_url},
        )
        try:
            resp = await self._client.post(self._token_url, data=self._form)
        except httpx.HTTPError as exc:
            raise TransportError(
                f"error authenticating against Azure AD: {exc}",
                endpoint=self._token_url,
            ) from exc
        if resp.status_code != 200:
            raise TransportError(
                f"token endpoint returned status {resp.status_code}",
                endpoint=self._token_url,
                status_code=resp.status_code,
                body=_safe_text(resp),
            )
        try:
            token = TokenResponse.model_validate_json(resp.content)
        except ValidationError as exc:
            raise DecodeError(
                f"unexpected token response: {exc.error_count()} validation error(s)",
                endpoint=self._token_url,
                status_code=resp.status_code,
            ) from exc
        logger.info(
            "identity.token.acquired",
            extra={"req_id": get_request_id(), "expires_on": token.expires_on},
        )
        return token


def _safe_text(resp: httpx.Response) -> Optional[str]:
    try:
        return resp.text
    except (UnicodeDecodeError, httpx.HTTPError):
        return None
