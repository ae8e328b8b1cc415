"""
Provider Profiles (capability model)

A provider profile is a frozen record of what one DRS provider needs:
whether metadata requests carry the caller's token, which Bond credential
broker (if any) issues service-account keys and fence tokens, and an ordered
list of access-method policies. Profiles are data only; the planner in
:mod:`DrsHub.planning` answers every question about them with pure functions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class AccessMethodType(str, Enum):
    """Storage families a DRS access method can belong to."""

    GCS = "gcs"
    S3 = "s3"
    HTTPS = "https"

    @property
    def drs_type(self) -> str:
        """Value of ``access_methods[].type`` in DRS responses."""
        return _DRS_TYPES[self]

    @classmethod
    def from_drs_type(cls, value: str) -> Optional["AccessMethodType"]:
        for member, drs_type in _DRS_TYPES.items():
            if drs_type == value:
                return member
        return None


_DRS_TYPES = {
    AccessMethodType.GCS: "gs",
    AccessMethodType.S3: "s3",
    AccessMethodType.HTTPS: "https",
}


class AccessUrlAuth(str, Enum):
    """Credential presented to the ``access`` endpoint."""

    CURRENT_REQUEST = "current_request"
    FENCE_TOKEN = "fence_token"
    PASSPORT = "passport"


class BondProvider(str, Enum):
    """Bond providers that issue keys and tokens on behalf of linked users."""

    DCF_FENCE = "dcf-fence"
    FENCE = "fence"
    ANVIL = "anvil"
    KIDS_FIRST = "kids-first"


@dataclass(frozen=True)
class AccessMethodPolicy:
    """How to obtain an access URL for one access-method type."""

    type: AccessMethodType
    auth: AccessUrlAuth
    fetch_access_url: bool = False
    fallback_auth: Optional[AccessUrlAuth] = None

    def __post_init__(self) -> None:
        if self.fallback_auth is not None and self.fallback_auth == self.auth:
            raise ValueError("fallback_auth must differ from auth")


@dataclass(frozen=True)
class ProviderProfile:
    """Static capabilities of one DRS provider.

    Attributes:
        name: Human readable provider name, used in logs
        metadata_auth: Forward the caller's Authorization to the metadata endpoint
        bond_provider: Bond broker for keys and fence tokens (``None`` when absent)
        access_methods: Policies in preference order
        force_access_url: Fetch an access URL even when no policy asks for one
        uses_aliases_for_localization_path: ``localizationPath`` is ``aliases[0]``
        client_cert_secret_name: Secret holding the passport mTLS certificate
        client_key_secret_name: Secret holding the passport mTLS key
    """

    name: str
    metadata_auth: bool = False
    bond_provider: Optional[BondProvider] = None
    access_methods: Tuple[AccessMethodPolicy, ...] = field(default_factory=tuple)
    force_access_url: bool = False
    uses_aliases_for_localization_path: bool = False
    client_cert_secret_name: Optional[str] = None
    client_key_secret_name: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Provider profile requires a name")
        types = [policy.type for policy in self.access_methods]
        if len(types) != len(set(types)):
            raise ValueError(f"{self.name}: duplicate access method types {types}")
        if (self.client_cert_secret_name is None) != (self.client_key_secret_name is None):
            raise ValueError(f"{self.name}: client cert and key secrets must be set together")

    def policy_for(self, method_type: Optional[AccessMethodType]) -> Optional[AccessMethodPolicy]:
        """Return the policy for ``method_type``, if the profile lists one."""
        for policy in self.access_methods:
            if policy.type is method_type:
                return policy
        return None

    def has_policy_for(self, method_type: AccessMethodType) -> bool:
        return self.policy_for(method_type) is not None


# ============================================================================
# Built-in provider profiles
# ============================================================================


def bio_data_catalyst() -> ProviderProfile:
    return ProviderProfile(
        name="BioData Catalyst (BDC)",
        bond_provider=BondProvider.FENCE,
        access_methods=(AccessMethodPolicy(AccessMethodType.GCS, AccessUrlAuth.FENCE_TOKEN),),
    )


def terra_data_repo() -> ProviderProfile:
    return ProviderProfile(
        name="Terra Data Repo (TDR)",
        metadata_auth=True,
        access_methods=(
            AccessMethodPolicy(AccessMethodType.GCS, AccessUrlAuth.CURRENT_REQUEST),
            AccessMethodPolicy(AccessMethodType.HTTPS, AccessUrlAuth.CURRENT_REQUEST),
        ),
        uses_aliases_for_localization_path=True,
    )


def kids_first() -> ProviderProfile:
    return ProviderProfile(
        name="Gabriella Miller Kids First DRC",
        bond_provider=BondProvider.KIDS_FIRST,
        access_methods=(
            AccessMethodPolicy(AccessMethodType.S3, AccessUrlAuth.FENCE_TOKEN, True),
        ),
    )


def anvil() -> ProviderProfile:
    return ProviderProfile(
        name="NHGRI Analysis Visualization and Informatics Lab-space (The AnVIL)",
        bond_provider=BondProvider.ANVIL,
        access_methods=(AccessMethodPolicy(AccessMethodType.GCS, AccessUrlAuth.FENCE_TOKEN),),
    )


def crdc() -> ProviderProfile:
    return ProviderProfile(
        name="NCI Cancer Research / Proteomics Data Commons (CRDC / PDC)",
        bond_provider=BondProvider.DCF_FENCE,
        access_methods=(
            AccessMethodPolicy(AccessMethodType.GCS, AccessUrlAuth.FENCE_TOKEN),
            AccessMethodPolicy(AccessMethodType.S3, AccessUrlAuth.FENCE_TOKEN, True),
        ),
    )


def passport_test(
    client_cert_secret_name: Optional[str] = None,
    client_key_secret_name: Optional[str] = None,
) -> ProviderProfile:
    return ProviderProfile(
        name="Passport Test Provider",
        bond_provider=BondProvider.FENCE,
        access_methods=(
            AccessMethodPolicy(
                AccessMethodType.GCS,
                AccessUrlAuth.PASSPORT,
                True,
                fallback_auth=AccessUrlAuth.FENCE_TOKEN,
            ),
            AccessMethodPolicy(
                AccessMethodType.S3,
                AccessUrlAuth.PASSPORT,
                True,
                fallback_auth=AccessUrlAuth.FENCE_TOKEN,
            ),
        ),
        client_cert_secret_name=client_cert_secret_name,
        client_key_secret_name=client_key_secret_name,
    )


__all__ = [
    "AccessMethodPolicy",
    "AccessMethodType",
    "AccessUrlAuth",
    "BondProvider",
    "ProviderProfile",
    "anvil",
    "bio_data_catalyst",
    "crdc",
    "kids_first",
    "passport_test",
    "terra_data_repo",
]
