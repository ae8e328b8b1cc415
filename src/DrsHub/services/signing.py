"""GCS V4 signed URLs from a user's service-account key."""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Any, Mapping, Protocol

from google.cloud import storage
from google.oauth2 import service_account

LOGGER = logging.getLogger(__name__)


class UrlSigner(Protocol):
    async def sign(
        self,
        bucket: str,
        object_name: str,
        service_account_key: Mapping[str, Any],
        ttl_seconds: int,
    ) -> str: ...


class GcsUrlSigner:
    """Signs read URLs with ``google-cloud-storage``; no network call is made."""

    def _sign(
        self,
        bucket: str,
        object_name: str,
        service_account_key: Mapping[str, Any],
        ttl_seconds: int,
    ) -> str:
        credentials = service_account.Credentials.from_service_account_info(
            dict(service_account_key)
        )
        client = storage.Client(
            project=service_account_key.get("project_id"), credentials=credentials
        )
        blob = client.bucket(bucket).blob(object_name)
        return blob.generate_signed_url(
            version="v4",
            expiration=timedelta(seconds=ttl_seconds),
            method="GET",
        )

    async def sign(
        self,
        bucket: str,
        object_name: str,
        service_account_key: Mapping[str, Any],
        ttl_seconds: int,
    ) -> str:
        LOGGER.info(f"Signing gs://{bucket}/{object_name} for {ttl_seconds}s")
        return await asyncio.to_thread(
            self._sign, bucket, object_name, service_account_key, ttl_seconds
        )


__all__ = ["GcsUrlSigner", "UrlSigner"]
