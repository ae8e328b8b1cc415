"""Response field vocabulary.

Every field a caller may request, grouped by the backend service that produces
it. The planner only ever asks "does the request overlap this group?", so the
groups are plain tuples.
"""

from __future__ import annotations

from typing import Iterable, Tuple

CORE_FIELDS: Tuple[str, ...] = (
    "gsUri",
    "bucket",
    "name",
    "fileName",
    "localizationPath",
    "contentType",
    "size",
    "hashes",
    "timeCreated",
    "timeUpdated",
)

ALL_FIELDS: Tuple[str, ...] = CORE_FIELDS + (
    "googleServiceAccount",
    "bondProvider",
    "accessUrl",
)

# Used when the request body carries no `fields` key at all.
DEFAULT_FIELDS: Tuple[str, ...] = CORE_FIELDS + ("googleServiceAccount",)

# Fields that depend on the DRS provider's metadata endpoint.
METADATA_FIELDS: Tuple[str, ...] = CORE_FIELDS + ("accessUrl",)

# Fields that depend on the Bond service-account key.
BOND_SA_FIELDS: Tuple[str, ...] = ("googleServiceAccount",)

# Fields that depend on an access id / the `access` endpoint.
ACCESS_ID_FIELDS: Tuple[str, ...] = ("accessUrl",)

# Fields answerable from static provider configuration alone.
NO_AUTH_FIELDS: Tuple[str, ...] = ("bondProvider",)


def overlap_fields(requested: Iterable[str], service_fields: Iterable[str]) -> bool:
    """Return ``True`` when any requested field belongs to ``service_fields``."""
    service = set(service_fields)
    return any(field in service for field in requested)


def unsupported_fields(requested: Iterable[str]) -> list[str]:
    """Return requested names that are not part of the vocabulary, in order."""
    return [field for field in requested if field not in ALL_FIELDS]


__all__ = [
    "ACCESS_ID_FIELDS",
    "ALL_FIELDS",
    "BOND_SA_FIELDS",
    "CORE_FIELDS",
    "DEFAULT_FIELDS",
    "METADATA_FIELDS",
    "NO_AUTH_FIELDS",
    "overlap_fields",
    "unsupported_fields",
]
