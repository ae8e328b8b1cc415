"""
Request Handlers

Framework-independent entry points. Each handler takes the decoded JSON body
and the request headers and returns ``(status, payload)``; the FastAPI app in
:mod:`DrsHub.api.app` only adapts HTTP to these calls. Every
:class:`DrsHub.errors.DrsHubError` becomes the failure body
``{status, response: {status, text}}``; anything unexpected is logged and
reported as a 500 in the same shape.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Tuple

import httpx
from google.auth.exceptions import GoogleAuthError

from DrsHub.config.settings import DrsHubSettings
from DrsHub.errors import (
    SERVER_ERROR_STATUS,
    DrsHubError,
    InternalError,
    ProviderHTTPError,
    RequestError,
    UpstreamError,
    failure_response,
)
from DrsHub.fields import DEFAULT_FIELDS
from DrsHub.net.client import ResilientHttpClient
from DrsHub.orchestrator.resolver import DrsResolver
from DrsHub.resolvers.profiles import BondProvider
from DrsHub.resolvers.registry import resolve_provider
from DrsHub.services.bond import BondClient
from DrsHub.services.sam import SamClient
from DrsHub.services.secrets import SecretStore
from DrsHub.services.signing import GcsUrlSigner, UrlSigner

LOGGER = logging.getLogger(__name__)

FORCE_ACCESS_URL_HEADER = "drshub-force-access-url"

HandlerResult = Tuple[int, Dict[str, Any]]


def parse_force_access_url(value: Any) -> bool:
    """``"false"`` must turn forcing off, so strings are compared, not tested for truth."""
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def _lower_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    return {key.lower(): value for key, value in headers.items()}


def _error_result(exc: BaseException) -> HandlerResult:
    if isinstance(exc, DrsHubError):
        LOGGER.error(f"Request failed with {exc.status}: {exc.text}")
        return exc.status, exc.to_failure_response()
    LOGGER.exception(f"Uncaught error: {exc}")
    return SERVER_ERROR_STATUS, failure_response(SERVER_ERROR_STATUS, str(exc))


class RequestHandlers:
    """All DrsHub request handlers, sharing one HTTP client."""

    def __init__(
        self,
        settings: DrsHubSettings,
        http: ResilientHttpClient,
        *,
        secrets: Optional[SecretStore] = None,
        signer: Optional[UrlSigner] = None,
        resolver: Optional[DrsResolver] = None,
    ) -> None:
        self.settings = settings
        self.http = http
        self.resolver = resolver or DrsResolver(settings, http, secrets=secrets)
        self.bond = BondClient(http, settings.bond_url)
        self.sam = SamClient(http, settings.sam_url)
        self.signer: UrlSigner = signer or GcsUrlSigner()

    # ------------------------------------------------------------------
    # DRS resolution
    # ------------------------------------------------------------------

    async def resolve(self, body: Any, headers: Mapping[str, str]) -> HandlerResult:
        body = body if isinstance(body, Mapping) else {}
        lowered = _lower_headers(headers)
        url = body.get("url")
        fields = body["fields"] if "fields" in body else list(DEFAULT_FIELDS)
        force_access_url = parse_force_access_url(lowered.get(FORCE_ACCESS_URL_HEADER))
        LOGGER.info(f"Received URL '{url}' from agent '{lowered.get('user-agent')}'")
        try:
            response = await self.resolver.resolve(
                url,
                fields,
                lowered.get("authorization"),
                force_access_url=force_access_url,
            )
        except Exception as exc:
            return _error_result(exc)
        return 200, response

    # ------------------------------------------------------------------
    # Signed URLs
    # ------------------------------------------------------------------

    async def signed_url(self, body: Any, headers: Mapping[str, str]) -> HandlerResult:
        try:
            url = await self._signed_url(body, _lower_headers(headers).get("authorization"))
        except Exception as exc:
            return _error_result(exc)
        return 200, {"url": url}

    async def _signed_url(self, body: Any, authorization: Optional[str]) -> str:
        body = body if isinstance(body, Mapping) else {}
        bucket, object_name = body.get("bucket"), body.get("object")
        data_object_uri = body.get("dataObjectUri")
        if not isinstance(bucket, str) or not bucket:
            raise RequestError("'bucket' is missing.")
        if not isinstance(object_name, str) or not object_name:
            raise RequestError("'object' is missing.")
        if not authorization:
            raise RequestError("Authorization header is missing.")

        provider: Optional[BondProvider] = None
        if data_object_uri:
            _, profile = resolve_provider(data_object_uri, self.settings)
            provider = profile.bond_provider

        if provider is not None:
            try:
                response = await self.bond.get_service_account_key(provider, authorization)
            except (ProviderHTTPError, httpx.HTTPError) as exc:
                raise UpstreamError(exc, "Received error contacting Bond.") from exc
            key = response.get("data") if isinstance(response, Mapping) else None
        else:
            try:
                key = await self.sam.get_pet_service_account_key(authorization)
            except (ProviderHTTPError, httpx.HTTPError) as exc:
                raise UpstreamError(exc, "Received error contacting Sam.") from exc

        if not isinstance(key, Mapping) or not key:
            raise InternalError("No service account key available to sign the URL.")
        try:
            return await self.signer.sign(
                bucket, object_name, key, self.settings.signed_url_ttl_seconds
            )
        except (GoogleAuthError, ValueError, KeyError) as exc:
            raise InternalError(f"Could not sign URL for gs://{bucket}/{object_name}. {exc}") from exc

    # ------------------------------------------------------------------
    # Bond account linking
    # ------------------------------------------------------------------

    async def oauth_code(
        self,
        provider: str,
        params: Mapping[str, Any],
        headers: Mapping[str, str],
    ) -> HandlerResult:
        try:
            result = await self._oauth_code(provider, params, _lower_headers(headers))
        except Exception as exc:
            return _error_result(exc)
        return 200, result if isinstance(result, dict) else {"result": result}

    async def _oauth_code(
        self, provider: str, params: Mapping[str, Any], headers: Mapping[str, str]
    ) -> Any:
        try:
            bond_provider = BondProvider(provider)
        except ValueError as exc:
            raise RequestError(f"Unknown Bond provider '{provider}'.") from exc
        oauth_code, redirect_uri = params.get("oauthcode"), params.get("redirect_uri")
        if not oauth_code or not redirect_uri:
            raise RequestError("'oauthcode' and 'redirect_uri' are required.")
        authorization = headers.get("authorization")
        if not authorization:
            raise RequestError("Authorization header is missing.")
        try:
            return await self.bond.exchange_oauth_code(
                bond_provider, authorization, oauth_code, redirect_uri
            )
        except (ProviderHTTPError, httpx.HTTPError) as exc:
            raise UpstreamError(exc, "Received error contacting Bond.") from exc


__all__ = [
    "FORCE_ACCESS_URL_HEADER",
    "HandlerResult",
    "RequestHandlers",
    "parse_force_access_url",
]
