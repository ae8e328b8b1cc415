"""
Provider Resolution

Pairs a parsed DRS URI with exactly one :class:`ProviderProfile`. Host rules
are evaluated in registration order against the lower-cased host; the first
match wins. Rules are registered with :func:`register_rule` so the priority
order reads top to bottom in this module.

Resolution is pure: the same URI, settings and force flag always produce an
equal profile.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from DrsHub.config.settings import DrsHubSettings, ProviderHosts
from DrsHub.errors import RequestError, RetiredNamespaceError

from . import profiles
from .profiles import ProviderProfile
from .uri import HttpsUrlParts, parse_drs_uri

_LOGGER = logging.getLogger(__name__)

TERRA_DATA_REPO_HOST_RE = re.compile(r".*data.*[-.](broadinstitute\.org|terra\.bio)$")

DATAGUIDS_MOVED_MESSAGE = (
    "dataguids.org data has moved. See: https://support.terra.bio/hc/en-us/articles/360060681132"
)

HostMatcher = Callable[[str, HttpsUrlParts, ProviderHosts], bool]
ProfileFactory = Callable[[DrsHubSettings], ProviderProfile]


@dataclass(frozen=True)
class ProviderRule:
    """One host-matching rule."""

    name: str
    matches: HostMatcher
    build: ProfileFactory


_RULES: List[ProviderRule] = []


def register_rule(name: str, build: ProfileFactory):
    """Decorator registering a host matcher; rules are tried in registration order."""

    def deco(matcher: HostMatcher) -> HostMatcher:
        if any(rule.name == name for rule in _RULES):
            raise ValueError(f"Provider rule already registered: {name}")
        _RULES.append(ProviderRule(name=name, matches=matcher, build=build))
        _LOGGER.debug(f"Registered provider rule: {name}")
        return matcher

    return deco


def get_rules() -> Tuple[ProviderRule, ...]:
    return tuple(_RULES)


# ============================================================================
# Host rules, highest priority first
# ============================================================================


@register_rule("bio_data_catalyst", lambda settings: profiles.bio_data_catalyst())
def _is_bio_data_catalyst(host: str, parts: HttpsUrlParts, hosts: ProviderHosts) -> bool:
    # A compact id with a non-BDC prefix may still expand to a BDC-looking host.
    if parts.maybe_not_bdc:
        return False
    return host.endswith(".biodatacatalyst.nhlbi.nih.gov") or host == hosts.mock_drs.lower()


@register_rule("the_anvil", lambda settings: profiles.anvil())
def _is_the_anvil(host: str, parts: HttpsUrlParts, hosts: ProviderHosts) -> bool:
    return host.endswith(".theanvil.io")


@register_rule("terra_data_repo", lambda settings: profiles.terra_data_repo())
def _is_terra_data_repo(host: str, parts: HttpsUrlParts, hosts: ProviderHosts) -> bool:
    return TERRA_DATA_REPO_HOST_RE.match(host) is not None


@register_rule("crdc", lambda settings: profiles.crdc())
def _is_crdc(host: str, parts: HttpsUrlParts, hosts: ProviderHosts) -> bool:
    return host.endswith(".datacommons.io")


@register_rule("kids_first", lambda settings: profiles.kids_first())
def _is_kids_first(host: str, parts: HttpsUrlParts, hosts: ProviderHosts) -> bool:
    return host.endswith(".kidsfirstdrc.org")


@register_rule(
    "passport_test",
    lambda settings: profiles.passport_test(
        settings.passport_client_cert_secret, settings.passport_client_key_secret
    ),
)
def _is_passport_test(host: str, parts: HttpsUrlParts, hosts: ProviderHosts) -> bool:
    return host == hosts.passport_test.lower()


# ============================================================================
# Public API
# ============================================================================


def determine_provider(
    url: str,
    parts: HttpsUrlParts,
    settings: DrsHubSettings,
    force_access_url: bool = False,
) -> ProviderProfile:
    """Select the provider profile for ``parts``.

    Raises:
        RetiredNamespaceError: The host belongs to the retired dataguids.org
        RequestError: No rule matches the host
    """
    host = parts.host.lower()
    hosts = settings.hosts
    for rule in _RULES:
        if rule.matches(host, parts, hosts):
            profile = rule.build(settings)
            if force_access_url:
                profile = dataclasses.replace(profile, force_access_url=True)
            return profile

    if host.endswith("dataguids.org"):
        raise RetiredNamespaceError(DATAGUIDS_MOVED_MESSAGE)
    raise RequestError(f"Could not determine DRS provider for id '{url}'")


def resolve_provider(
    url: str,
    settings: DrsHubSettings,
    force_access_url: bool = False,
) -> Tuple[HttpsUrlParts, ProviderProfile]:
    """Parse ``url`` and select its provider in one step."""
    parts = parse_drs_uri(url, settings.hosts)
    profile = determine_provider(url, parts, settings, force_access_url)
    return parts, profile


def find_rule(name: str) -> Optional[ProviderRule]:
    for rule in _RULES:
        if rule.name == name:
            return rule
    return None


__all__ = [
    "DATAGUIDS_MOVED_MESSAGE",
    "ProviderRule",
    "TERRA_DATA_REPO_HOST_RE",
    "determine_provider",
    "find_rule",
    "get_rules",
    "register_rule",
    "resolve_provider",
]
