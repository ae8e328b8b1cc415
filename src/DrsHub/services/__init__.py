"""Adapters for the backend services DrsHub talks to."""

from .bond import BondClient
from .drs import DrsProviderClient
from .passports import PassportClient
from .sam import SamClient
from .secrets import GoogleSecretManagerStore, SecretStore
from .signing import GcsUrlSigner, UrlSigner

__all__ = [
    "BondClient",
    "DrsProviderClient",
    "GcsUrlSigner",
    "GoogleSecretManagerStore",
    "PassportClient",
    "SamClient",
    "SecretStore",
    "UrlSigner",
]
