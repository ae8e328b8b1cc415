"""
DRS Resolution Orchestrator

Executes the fetch plan for one request:

1. Validate the request (before any backend call)
2. Resolve the provider profile from the URI
3. Fetch and normalize metadata when a metadata field was requested
4. Select the access method named by the metadata and the profile
5. Concurrently: Bond service-account key, and the access-URL chain
   (passports -> fence token -> access URL, with one fallback-auth retry)
6. Assemble exactly the requested fields

Steps 3-5 share one pencils-down deadline. Missing it during the metadata
fetch is an error; anything still pending afterwards is dropped from the
response instead.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence

import httpx
from google.api_core.exceptions import GoogleAPIError

from DrsHub.config.settings import DrsHubSettings
from DrsHub.errors import (
    DrsHubError,
    InternalError,
    ProviderHTTPError,
    RequestError,
    ResolutionTimeoutError,
    UpstreamError,
)
from DrsHub.fields import ALL_FIELDS, unsupported_fields
from DrsHub.net.client import ClientCertificate, ResilientHttpClient
from DrsHub.normalize import build_response, parse_metadata, select_access_method
from DrsHub.planning import (
    access_url_auth,
    requires_auth,
    should_fail_on_access_url_fail,
    should_fetch_access_url,
    should_fetch_fence_access_token,
    should_fetch_passports,
    should_fetch_user_service_account,
    should_request_metadata,
)
from DrsHub.resolvers.profiles import AccessUrlAuth, ProviderProfile
from DrsHub.resolvers.registry import resolve_provider
from DrsHub.services.bond import BondClient
from DrsHub.services.drs import DrsProviderClient
from DrsHub.services.passports import PassportClient
from DrsHub.services.secrets import GoogleSecretManagerStore, SecretStore

from .context import ResolutionContext, ResolutionState
from .deadline import Deadline, DeadlineExceeded

LOGGER = logging.getLogger(__name__)

# Failures of a single backend call; anything else is a programming error.
BACKEND_ERRORS = (ProviderHTTPError, httpx.HTTPError)
# Passport POSTs also read mTLS secrets and build an SSL context.
PASSPORT_ATTEMPT_ERRORS = BACKEND_ERRORS + (GoogleAPIError, OSError)

SERVICE_ACCOUNT_FIELD = "googleServiceAccount"
ACCESS_URL_FIELD = "accessUrl"


def validate_request(url: Any, fields: Any, authorization: Optional[str]) -> None:
    """Reject malformed requests before any backend call.

    Raises:
        RequestError: Missing url, non-list fields, unknown field, or missing auth
    """
    if not url:
        raise RequestError("'url' is missing.")
    if not isinstance(url, str):
        raise RequestError("'url' was not a string.")
    if not isinstance(fields, list):
        raise RequestError("'fields' was not an array.")
    invalid = unsupported_fields(fields)
    if invalid:
        raise RequestError(
            "Fields '{}' are not supported. Supported fields are '{}'.".format(
                "','".join(str(name) for name in invalid), "', '".join(ALL_FIELDS)
            )
        )
    if not authorization and requires_auth(fields):
        raise RequestError("Authorization header is missing.")


class DrsResolver:
    """Resolves DRS URIs into the requested response fields.

    Attributes:
        settings: Service settings (hosts, broker URLs, deadline)
        pencils_down_seconds: Deadline for steps 3-5 of one resolution
        cancel_on_deadline: Cancel calls abandoned at the deadline
    """

    def __init__(
        self,
        settings: DrsHubSettings,
        http: ResilientHttpClient,
        *,
        secrets: Optional[SecretStore] = None,
        pencils_down_seconds: Optional[float] = None,
        cancel_on_deadline: Optional[bool] = None,
    ) -> None:
        self.settings = settings
        self.pencils_down_seconds = (
            pencils_down_seconds
            if pencils_down_seconds is not None
            else settings.pencils_down_seconds
        )
        self.cancel_on_deadline = (
            cancel_on_deadline if cancel_on_deadline is not None else settings.cancel_on_deadline
        )
        self.drs = DrsProviderClient(http)
        self.bond = BondClient(http, settings.bond_url)
        self.passport_issuer = PassportClient(http, settings.externalcreds_url)
        self.secrets: SecretStore = secrets or GoogleSecretManagerStore()

    async def resolve(
        self,
        url: Any,
        fields: Any,
        authorization: Optional[str] = None,
        *,
        force_access_url: bool = False,
    ) -> Dict[str, Any]:
        """Resolve ``url`` into ``fields``.

        Raises:
            DrsHubError: Any failure, already mapped to the error taxonomy
        """
        validate_request(url, fields, authorization)
        ctx = ResolutionContext(
            url=url,
            requested=tuple(fields),
            authorization=authorization,
            force_access_url=force_access_url,
        )
        try:
            return await self._resolve(ctx)
        except DrsHubError:
            ctx.transition(ResolutionState.FAILED)
            raise

    async def _resolve(self, ctx: ResolutionContext) -> Dict[str, Any]:
        ctx.parts, ctx.profile = resolve_provider(ctx.url, self.settings, ctx.force_access_url)
        profile = ctx.profile
        LOGGER.info(f"DRS URI '{ctx.url}' will use DRS provider '{profile.name}'")
        LOGGER.info(f"Requested fields: {', '.join(ctx.requested)}")

        deadline = Deadline(self.pencils_down_seconds, cancel_on_deadline=self.cancel_on_deadline)
        deadline.start()

        if should_request_metadata(profile, ctx.requested):
            ctx.transition(ResolutionState.METADATA_PENDING)
            await self._fetch_metadata(ctx, deadline)

        ctx.access_method = select_access_method(profile, ctx.metadata)
        method = ctx.method_type

        calls = {}
        if should_fetch_user_service_account(profile, method, ctx.requested):
            calls[SERVICE_ACCOUNT_FIELD] = self._fetch_service_account(ctx)
        if self._wants_access_url(ctx):
            calls[ACCESS_URL_FIELD] = self._access_url_chain(ctx)

        if calls:
            ctx.transition(ResolutionState.AUTH_PENDING)
            finished, abandoned = await deadline.settle(calls)
            for name in abandoned:
                ctx.omit(name)
            for task in finished.values():
                task.exception()  # mark retrieved; re-raised below where fatal
            if SERVICE_ACCOUNT_FIELD in finished:
                ctx.service_account = finished[SERVICE_ACCOUNT_FIELD].result()
            if ACCESS_URL_FIELD in finished:
                self._collect_access_url(ctx, finished[ACCESS_URL_FIELD])

        ctx.transition(ResolutionState.ASSEMBLED)
        response = build_response(
            ctx.requested,
            profile=profile,
            metadata=ctx.metadata,
            service_account=ctx.service_account,
            access_url=ctx.access_url,
            omitted=ctx.omitted,
        )
        ctx.transition(ResolutionState.DONE)
        return response

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    async def _fetch_metadata(self, ctx: ResolutionContext, deadline: Deadline) -> None:
        auth = ctx.authorization if ctx.profile.metadata_auth else None
        try:
            payload = await deadline.run(self.drs.get_metadata(ctx.parts, auth))
        except DeadlineExceeded as exc:
            raise ResolutionTimeoutError("Timed out resolving DRS URI.") from exc
        except BACKEND_ERRORS as exc:
            raise UpstreamError(exc, "Received error while resolving DRS URL.") from exc

        try:
            ctx.metadata = parse_metadata(payload)
        except (InternalError, TypeError, ValueError, AttributeError) as exc:
            raise InternalError(
                f"Received error while parsing response from DRS URL. {exc}"
            ) from exc

    # ------------------------------------------------------------------
    # Bond service account
    # ------------------------------------------------------------------

    async def _fetch_service_account(self, ctx: ResolutionContext) -> Any:
        try:
            return await self.bond.get_service_account_key(
                ctx.profile.bond_provider, ctx.authorization
            )
        except ProviderHTTPError as exc:
            if exc.status == 404:
                LOGGER.info("No service account key linked in Bond.")
                return None
            raise UpstreamError(exc, "Received error contacting Bond.") from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(exc, "Received error contacting Bond.") from exc

    # ------------------------------------------------------------------
    # Access URL chain
    # ------------------------------------------------------------------

    def _wants_access_url(self, ctx: ResolutionContext) -> bool:
        if not should_fetch_access_url(ctx.profile, ctx.method_type, ctx.requested):
            return False
        if ctx.access_method is None or not ctx.access_method.access_id:
            LOGGER.info(f"No access id available for '{ctx.url}'; skipping access URL")
            return False
        return True

    def _collect_access_url(self, ctx: ResolutionContext, task: Any) -> None:
        exc = task.exception()
        if exc is None:
            ctx.access_url = task.result()
            return
        if not isinstance(exc, DrsHubError) or should_fail_on_access_url_fail(ctx.method_type):
            raise exc
        LOGGER.warning(f"Ignoring error from fetching access URL for '{ctx.url}': {exc}")
        ctx.omit(ACCESS_URL_FIELD)

    async def _access_url_chain(self, ctx: ResolutionContext) -> Any:
        profile = ctx.profile
        method = ctx.method_type
        policy = profile.policy_for(method)

        if should_fetch_passports(profile, method, ctx.requested):
            ctx.passports = await self._fetch_passports(ctx)
        token = await self._maybe_fetch_fence_token(ctx, use_fallback_auth=False)

        ctx.transition(ResolutionState.ACCESS_URL_PENDING)
        try:
            result = await self._attempt_access_url(ctx, policy.auth, token)
        except (DrsHubError,) + BACKEND_ERRORS as exc:
            if policy.fallback_auth is None:
                raise UpstreamError(exc, "Received error contacting DRS provider.") from exc
            LOGGER.warning(f"Access URL with {policy.auth.value} auth failed: {exc}")
            result = None

        if result is None and policy.fallback_auth is not None:
            LOGGER.info(f"Requesting access URL for '{ctx.url}' with fallback auth")
            ctx.transition(ResolutionState.AUTH_PENDING)
            fallback_token = await self._maybe_fetch_fence_token(ctx, use_fallback_auth=True)
            ctx.transition(ResolutionState.ACCESS_URL_PENDING)
            try:
                result = await self._attempt_access_url(ctx, policy.fallback_auth, fallback_token)
            except (DrsHubError,) + BACKEND_ERRORS as exc:
                raise UpstreamError(exc, "Received error contacting DRS provider.") from exc
        return result

    async def _fetch_passports(self, ctx: ResolutionContext) -> Optional[Sequence[Any]]:
        try:
            return await self.passport_issuer.get_passports(ctx.authorization)
        except BACKEND_ERRORS as exc:
            # Leaves the fallback auth to run.
            LOGGER.warning(f"Received error contacting externalcreds for '{ctx.url}': {exc}")
            return None

    async def _maybe_fetch_fence_token(
        self, ctx: ResolutionContext, *, use_fallback_auth: bool
    ) -> Optional[str]:
        if not should_fetch_fence_access_token(
            ctx.profile, ctx.method_type, ctx.requested, use_fallback_auth
        ):
            return None
        try:
            return await self.bond.get_access_token(ctx.profile.bond_provider, ctx.authorization)
        except BACKEND_ERRORS as exc:
            raise UpstreamError(exc, "Received error contacting Bond.") from exc

    async def _attempt_access_url(
        self, ctx: ResolutionContext, auth: AccessUrlAuth, token: Optional[str]
    ) -> Any:
        access_id = ctx.access_method.access_id
        if auth is AccessUrlAuth.PASSPORT:
            return await self._attempt_with_passports(ctx, access_id)
        if auth is AccessUrlAuth.FENCE_TOKEN and not token:
            raise RequestError(
                f"Fence access token required for {ctx.parts.access_url(access_id)} but is "
                "missing. Does user have an account linked in Bond?"
            )
        header = access_url_auth(auth, token, ctx.authorization)
        return await self.drs.get_access_url(ctx.parts, access_id, header)

    async def _attempt_with_passports(self, ctx: ResolutionContext, access_id: str) -> Any:
        if not ctx.passports:
            return None
        try:
            client_cert = await self._client_certificate(ctx.profile)
            return await self.drs.post_access_url_with_passports(
                ctx.parts, access_id, ctx.passports, client_cert
            )
        except PASSPORT_ATTEMPT_ERRORS as exc:
            # Passport failures fall through to the fallback auth, if any.
            LOGGER.warning(
                f"Passport authorized request failed for {ctx.parts.access_url(access_id)}: {exc}"
            )
            return None

    async def _client_certificate(self, profile: ProviderProfile) -> Optional[ClientCertificate]:
        if not (profile.client_cert_secret_name and profile.client_key_secret_name):
            return None
        key_pem = await self.secrets.get_secret(profile.client_key_secret_name)
        cert_pem = await self.secrets.get_secret(profile.client_cert_secret_name)
        return ClientCertificate(cert_pem=cert_pem, key_pem=key_pem)


__all__ = ["DrsResolver", "validate_request"]
