"""Bond credential broker client.

Bond holds the identity links between Terra users and external Gen3 style
providers. DrsHub asks it for the linked Google service-account key, for a
short-lived fence access token, and (for account linking flows) to exchange an
OAuth authorization code.
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import urlencode

from DrsHub.errors import ProviderHTTPError
from DrsHub.net.client import ResilientHttpClient
from DrsHub.resolvers.profiles import BondProvider

LOGGER = logging.getLogger(__name__)


class BondClient:
    def __init__(self, http: ResilientHttpClient, base_url: str) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")

    def _link_url(self, provider: BondProvider, action: str) -> str:
        return f"{self._base_url}/api/link/v1/{provider.value}/{action}"

    async def get_service_account_key(self, provider: BondProvider, authorization: str) -> Any:
        """Return Bond's ``{"data": <key json>}`` service-account key response."""
        url = self._link_url(provider, "serviceaccount/key")
        LOGGER.info(f"Requesting Bond SA key from '{url}'")
        return await self._http.get_json(url, headers={"Authorization": authorization})

    async def get_access_token(self, provider: BondProvider, authorization: str) -> Optional[str]:
        """Return a fence access token, or ``None`` when the user has no linked account.

        Raises:
            ProviderHTTPError: Any Bond failure other than 404
        """
        url = self._link_url(provider, "accesstoken")
        LOGGER.info(f"Requesting Bond access token from '{url}'")
        try:
            response = await self._http.get_json(url, headers={"Authorization": authorization})
        except ProviderHTTPError as exc:
            if exc.status == 404:
                LOGGER.info("User does not have a Bond account linked.")
                return None
            raise
        if not isinstance(response, dict):
            return None
        return response.get("token")

    async def exchange_oauth_code(
        self,
        provider: BondProvider,
        authorization: str,
        oauth_code: str,
        redirect_uri: str,
    ) -> Any:
        """Complete an account link by trading an OAuth code for a Bond link."""
        query = urlencode({"oauthcode": oauth_code, "redirect_uri": redirect_uri})
        url = f"{self._link_url(provider, 'oauthcode')}?{query}"
        LOGGER.info(f"Exchanging OAuth code with Bond for provider '{provider.value}'")
        return await self._http.post_json(url, headers={"Authorization": authorization})


__all__ = ["BondClient"]
