"""Secret store access for passport mTLS credentials."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Protocol

from google.cloud import secretmanager

LOGGER = logging.getLogger(__name__)


class SecretStore(Protocol):
    async def get_secret(self, name: str) -> str:
        """Return the secret payload for the fully-qualified version ``name``."""
        ...


class GoogleSecretManagerStore:
    """Reads secret versions from Google Secret Manager.

    ``name`` is a full version resource, e.g.
    ``projects/p/secrets/passport-client-cert/versions/latest``. The
    underlying client is synchronous, so calls run in a worker thread.
    """

    def __init__(self, client: Optional[Any] = None) -> None:
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = secretmanager.SecretManagerServiceClient()
        return self._client

    def _access(self, name: str) -> str:
        response = self._get_client().access_secret_version(request={"name": name})
        return response.payload.data.decode("utf-8")

    async def get_secret(self, name: str) -> str:
        LOGGER.debug(f"Reading secret version '{name}'")
        return await asyncio.to_thread(self._access, name)


__all__ = ["GoogleSecretManagerStore", "SecretStore"]
