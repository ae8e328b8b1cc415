"""
Fetch Planner

Pure predicates deciding which backend calls a resolution needs. Each takes
the provider profile, the access-method type chosen from the metadata (or
``None`` when no metadata was fetched or no method matched) and the requested
fields. Nothing here performs I/O, so every rule is testable on plain values.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from DrsHub.fields import (
    ACCESS_ID_FIELDS,
    BOND_SA_FIELDS,
    METADATA_FIELDS,
    NO_AUTH_FIELDS,
    overlap_fields,
)
from DrsHub.resolvers.profiles import AccessMethodType, AccessUrlAuth, ProviderProfile


def requires_auth(requested: Iterable[str]) -> bool:
    """Whether answering ``requested`` needs the caller's Authorization header."""
    return any(field not in NO_AUTH_FIELDS for field in requested)


def should_request_metadata(profile: ProviderProfile, requested: Iterable[str]) -> bool:
    return overlap_fields(requested, METADATA_FIELDS)


def should_fetch_user_service_account(
    profile: ProviderProfile,
    method: Optional[AccessMethodType],
    requested: Iterable[str],
) -> bool:
    # The key lives in Bond, and it is only useful for objects that may be in GCS.
    return (
        profile.bond_provider is not None
        and (method is None or method is AccessMethodType.GCS)
        and profile.has_policy_for(AccessMethodType.GCS)
        and overlap_fields(requested, BOND_SA_FIELDS)
    )


def should_fetch_fence_access_token(
    profile: ProviderProfile,
    method: Optional[AccessMethodType],
    requested: Iterable[str],
    use_fallback_auth: bool = False,
) -> bool:
    """Whether to ask Bond for a fence token to present to the ``access`` endpoint.

    With ``use_fallback_auth`` the policy's fallback auth is checked instead of
    its primary auth.
    """
    if profile.bond_provider is None or not overlap_fields(requested, ACCESS_ID_FIELDS):
        return False
    if profile.force_access_url:
        return True
    policy = profile.policy_for(method)
    if policy is None or not policy.fetch_access_url:
        return False
    auth = policy.fallback_auth if use_fallback_auth else policy.auth
    return auth is AccessUrlAuth.FENCE_TOKEN


def should_fetch_access_url(
    profile: ProviderProfile,
    method: Optional[AccessMethodType],
    requested: Iterable[str],
) -> bool:
    if not overlap_fields(requested, ACCESS_ID_FIELDS):
        return False
    if profile.force_access_url:
        return True
    policy = profile.policy_for(method)
    return policy is not None and policy.fetch_access_url


def should_fetch_passports(
    profile: ProviderProfile,
    method: Optional[AccessMethodType],
    requested: Iterable[str],
) -> bool:
    policy = profile.policy_for(method)
    return (
        overlap_fields(requested, ACCESS_ID_FIELDS)
        and policy is not None
        and policy.auth is AccessUrlAuth.PASSPORT
    )


def should_fail_on_access_url_fail(method: Optional[AccessMethodType]) -> bool:
    # Callers only know how to fall back to native GCS paths.
    return method is not None and method is not AccessMethodType.GCS


def access_url_auth(
    auth: AccessUrlAuth,
    access_token: Optional[str],
    request_auth: Optional[str],
) -> Optional[str]:
    """Authorization header value for an ``access`` call made with ``auth``."""
    if auth is AccessUrlAuth.CURRENT_REQUEST:
        return request_auth
    if auth is AccessUrlAuth.FENCE_TOKEN:
        return f"Bearer {access_token}"
    raise ValueError(f"{auth.value} auth is not sent as an Authorization header")


@dataclass(frozen=True)
class FetchPlan:
    """Snapshot of every predicate for one (profile, method, fields) triple."""

    metadata: bool
    service_account: bool
    passports: bool
    fence_token: bool
    fallback_fence_token: bool
    access_url: bool
    fail_on_access_url_fail: bool


def plan_fetches(
    profile: ProviderProfile,
    method: Optional[AccessMethodType],
    requested: Iterable[str],
) -> FetchPlan:
    requested = tuple(requested)
    return FetchPlan(
        metadata=should_request_metadata(profile, requested),
        service_account=should_fetch_user_service_account(profile, method, requested),
        passports=should_fetch_passports(profile, method, requested),
        fence_token=should_fetch_fence_access_token(profile, method, requested),
        fallback_fence_token=should_fetch_fence_access_token(
            profile, method, requested, use_fallback_auth=True
        ),
        access_url=should_fetch_access_url(profile, method, requested),
        fail_on_access_url_fail=should_fail_on_access_url_fail(method),
    )


__all__ = [
    "FetchPlan",
    "access_url_auth",
    "plan_fetches",
    "requires_auth",
    "should_fail_on_access_url_fail",
    "should_fetch_access_url",
    "should_fetch_fence_access_token",
    "should_fetch_passports",
    "should_fetch_user_service_account",
    "should_request_metadata",
]
