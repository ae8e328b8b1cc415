"""DRS URI parsing, provider profiles and provider resolution."""

from .profiles import (
    AccessMethodPolicy,
    AccessMethodType,
    AccessUrlAuth,
    BondProvider,
    ProviderProfile,
)
from .registry import determine_provider, get_rules, resolve_provider
from .uri import NAMESPACES, HttpsUrlParts, parse_drs_uri

__all__ = [
    "AccessMethodPolicy",
    "AccessMethodType",
    "AccessUrlAuth",
    "BondProvider",
    "HttpsUrlParts",
    "NAMESPACES",
    "ProviderProfile",
    "determine_provider",
    "get_rules",
    "parse_drs_uri",
    "resolve_provider",
]
