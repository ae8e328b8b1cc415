"""Sam pet service-account keys."""

from __future__ import annotations

import logging
from typing import Any

from DrsHub.net.client import ResilientHttpClient

LOGGER = logging.getLogger(__name__)


class SamClient:
    def __init__(self, http: ResilientHttpClient, base_url: str) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")

    async def get_pet_service_account_key(self, authorization: str) -> Any:
        url = f"{self._base_url}/api/google/v1/user/petServiceAccount/key"
        LOGGER.info(f"Requesting pet service account key from Sam '{url}'")
        return await self._http.get_json(url, headers={"Authorization": authorization})


__all__ = ["SamClient"]
