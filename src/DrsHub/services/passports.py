"""Externalcreds passport issuer."""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from DrsHub.errors import ProviderHTTPError
from DrsHub.net.client import ResilientHttpClient

LOGGER = logging.getLogger(__name__)


class PassportClient:
    def __init__(self, http: ResilientHttpClient, base_url: str) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")

    async def get_passports(self, authorization: str) -> Optional[List[Any]]:
        """Fetch the caller's RAS passport.

        Returns ``None`` when externalcreds answers 404 (no passport on file).
        """
        url = f"{self._base_url}/api/oidc/v1/ras/passport"
        LOGGER.info(f"Requesting RAS passport from externalcreds '{url}'")
        try:
            passport = await self._http.get_json(url, headers={"Authorization": authorization})
        except ProviderHTTPError as exc:
            if exc.status == 404:
                LOGGER.info("User does not have a passport.")
                return None
            raise
        if passport is None:
            return None
        return [passport]


__all__ = ["PassportClient"]
