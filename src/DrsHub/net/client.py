"""
Resilient Async HTTP Client

JSON-over-HTTP client shared by every backend adapter:
- One pooled ``httpx.AsyncClient`` per process (explicit timeouts and limits)
- Tenacity retries on transient statuses (see :mod:`DrsHub.net.retry`)
- Non-2xx responses raised as :class:`DrsHub.errors.ProviderHTTPError`
- Optional mutual-TLS client certificate per call (passport endpoints)

Architecture:
1. build_async_client(config) → pooled httpx.AsyncClient
2. ResilientHttpClient.get_json / post_json → retried request → parsed JSON
3. mTLS calls go through a short-lived client built from the PEM pair
"""

from __future__ import annotations

import logging
import os
import ssl
import tempfile
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

import httpx

from DrsHub.config.models import HttpClientConfig, RetryPolicy
from DrsHub.errors import BAD_GATEWAY_STATUS, ProviderHTTPError

from .retry import SleepFn, build_async_retrying

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientCertificate:
    """PEM encoded client certificate and private key for mutual TLS."""

    cert_pem: str
    key_pem: str


MtlsClientFactory = Callable[[ClientCertificate], httpx.AsyncClient]


def _build_timeout(cfg: HttpClientConfig) -> httpx.Timeout:
    return httpx.Timeout(cfg.timeout_read_s, connect=cfg.timeout_connect_s)


def build_async_client(
    config: Optional[HttpClientConfig] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Build the pooled ``httpx.AsyncClient`` used for all backend calls."""
    cfg = config or HttpClientConfig()
    limits = httpx.Limits(
        max_connections=cfg.max_connections,
        max_keepalive_connections=cfg.max_keepalive_connections,
    )
    client = httpx.AsyncClient(
        transport=transport,
        timeout=_build_timeout(cfg),
        limits=limits,
        verify=cfg.verify_tls,
        headers={"User-Agent": cfg.user_agent, "Accept": "application/json"},
        follow_redirects=False,
    )
    logger.debug(f"HTTPX async client created: verify={cfg.verify_tls}")
    return client


def build_ssl_context(certificate: ClientCertificate) -> ssl.SSLContext:
    """Create an SSL context presenting ``certificate`` to the server.

    ``ssl`` only loads certificate chains from files, so the PEM pair is
    written to private temporary files that are removed once loaded.
    """
    context = ssl.create_default_context()
    cert_fd, cert_path = tempfile.mkstemp(suffix=".crt")
    key_fd, key_path = tempfile.mkstemp(suffix=".key")
    try:
        with os.fdopen(cert_fd, "w", encoding="utf-8") as handle:
            handle.write(certificate.cert_pem)
        with os.fdopen(key_fd, "w", encoding="utf-8") as handle:
            handle.write(certificate.key_pem)
        context.load_cert_chain(certfile=cert_path, keyfile=key_path)
    finally:
        os.unlink(cert_path)
        os.unlink(key_path)
    return context


def default_mtls_client_factory(config: HttpClientConfig) -> MtlsClientFactory:
    def _factory(certificate: ClientCertificate) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=_build_timeout(config),
            verify=build_ssl_context(certificate),
            headers={"User-Agent": config.user_agent, "Accept": "application/json"},
            follow_redirects=False,
        )

    return _factory


def _parse_json(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError as exc:
        raise ProviderHTTPError(
            BAD_GATEWAY_STATUS,
            f"Response was not valid JSON: {response.text[:200]}",
            str(response.request.url),
        ) from exc


class ResilientHttpClient:
    """JSON client that retries transient failures and raises on non-2xx."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        retry_policy: Optional[RetryPolicy] = None,
        *,
        sleep: Optional[SleepFn] = None,
        mtls_client_factory: Optional[MtlsClientFactory] = None,
        config: Optional[HttpClientConfig] = None,
    ) -> None:
        self._client = client
        self._policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._mtls_client_factory = mtls_client_factory or default_mtls_client_factory(
            config or HttpClientConfig()
        )

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._policy

    async def get_json(self, url: str, *, headers: Optional[Mapping[str, str]] = None) -> Any:
        """GET ``url`` and return the decoded JSON body (``None`` when empty)."""
        return await self._request_json(self._client, "GET", url, headers=headers)

    async def post_json(
        self,
        url: str,
        body: Any = None,
        *,
        headers: Optional[Mapping[str, str]] = None,
        client_cert: Optional[ClientCertificate] = None,
    ) -> Any:
        """POST ``body`` as JSON to ``url``, optionally over mutual TLS."""
        if client_cert is None:
            return await self._request_json(self._client, "POST", url, headers=headers, body=body)

        mtls_client = self._mtls_client_factory(client_cert)
        try:
            return await self._request_json(mtls_client, "POST", url, headers=headers, body=body)
        finally:
            await mtls_client.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request_json(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        body: Any = None,
    ) -> Any:
        retrying = build_async_retrying(self._policy, sleep=self._sleep)
        response: Optional[httpx.Response] = None
        async for attempt in retrying:
            with attempt:
                response = await self._send_once(client, method, url, headers=headers, body=body)
        # A 2xx body that is not JSON is not retried.
        return _parse_json(response)

    async def _send_once(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        *,
        headers: Optional[Mapping[str, str]],
        body: Any,
    ) -> httpx.Response:
        t0 = time.perf_counter()
        kwargs: dict[str, Any] = {"headers": dict(headers or {})}
        if body is not None:
            kwargs["json"] = body
        response = await client.request(method, url, **kwargs)
        elapsed_ms = (time.perf_counter() - t0) * 1000.0
        logger.debug(f"{method} {url} -> {response.status_code} ({elapsed_ms:.1f}ms)")
        if not response.is_success:
            raise ProviderHTTPError(response.status_code, response.text, url)
        return response


__all__ = [
    "ClientCertificate",
    "MtlsClientFactory",
    "ResilientHttpClient",
    "build_async_client",
    "build_ssl_context",
    "default_mtls_client_factory",
]
