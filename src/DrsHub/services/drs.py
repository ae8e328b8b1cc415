"""DRS provider endpoints: object metadata and access URLs."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence

from DrsHub.net.client import ClientCertificate, ResilientHttpClient
from DrsHub.resolvers.uri import HttpsUrlParts

LOGGER = logging.getLogger(__name__)


def _auth_headers(authorization: Optional[str]) -> Mapping[str, str]:
    return {"Authorization": authorization} if authorization else {}


class DrsProviderClient:
    """Calls ``/ga4gh/drs/v1/objects`` on the provider host in ``parts``."""

    def __init__(self, http: ResilientHttpClient) -> None:
        self._http = http

    async def get_metadata(
        self, parts: HttpsUrlParts, authorization: Optional[str] = None
    ) -> Any:
        url = parts.metadata_url()
        LOGGER.info(f"Requesting DRS metadata from '{url}' with auth {authorization is not None}")
        return await self._http.get_json(url, headers=_auth_headers(authorization))

    async def get_access_url(
        self, parts: HttpsUrlParts, access_id: str, authorization: Optional[str]
    ) -> Any:
        url = parts.access_url(access_id)
        LOGGER.info(f"Requesting DRS access URL from '{url}'")
        return await self._http.get_json(url, headers=_auth_headers(authorization))

    async def post_access_url_with_passports(
        self,
        parts: HttpsUrlParts,
        access_id: str,
        passports: Sequence[Any],
        client_cert: Optional[ClientCertificate] = None,
    ) -> Any:
        url = parts.access_url(access_id)
        LOGGER.info(f"Requesting DRS access URL from '{url}' with passports")
        return await self._http.post_json(
            url, {"passports": list(passports)}, client_cert=client_cert
        )


__all__ = ["DrsProviderClient"]
