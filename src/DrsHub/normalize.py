"""
Response Normalizer

Projects provider metadata onto one canonical model and renders the
caller-facing response. Two wire generations are accepted:

- DOS: ``{"data_object": {"urls": [...], "mimeType", "created", "updated", ...}}``
- DRS v1: ``{"access_methods": [...], "mime_type", "created_time", "updated_time", ...}``

Normalization is strict where the source contradicts itself (two checksums of
the same type, unparsable timestamps) and lenient where fields are merely
missing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Collection, Dict, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import urlsplit

from DrsHub.errors import InternalError
from DrsHub.fields import ALL_FIELDS
from DrsHub.resolvers.profiles import AccessMethodType, ProviderProfile

DEFAULT_CONTENT_TYPE = "application/octet-stream"

_GS_URI_RE = re.compile(r"gs://([^/]+)/(.+)")


@dataclass(frozen=True)
class DrsAccessUrl:
    url: str
    headers: Optional[Dict[str, str]] = None


@dataclass(frozen=True)
class DrsAccessMethod:
    """One entry of ``access_methods``."""

    type: str
    access_id: Optional[str] = None
    access_url: Optional[DrsAccessUrl] = None

    @property
    def method_type(self) -> Optional[AccessMethodType]:
        return AccessMethodType.from_drs_type(self.type)


@dataclass(frozen=True)
class BackendMetadata:
    """Provider object description, normalized across wire generations."""

    name: Optional[str] = None
    size: Optional[int] = None
    mime_type: Optional[str] = None
    created_time: Optional[str] = None
    updated_time: Optional[str] = None
    hashes: Optional[Dict[str, str]] = None
    access_methods: Tuple[DrsAccessMethod, ...] = ()
    aliases: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def gs_uri(self) -> Optional[str]:
        for method in self.access_methods:
            if method.type == "gs" and method.access_url is not None:
                return method.access_url.url
        return None


# ============================================================================
# Field converters
# ============================================================================


def hashes_map(checksums: Optional[Iterable[Mapping[str, Any]]]) -> Optional[Dict[str, str]]:
    """Convert ``[{type, checksum}, ...]`` into ``{type: checksum}``.

    Returns ``None`` for a missing or empty list.

    Raises:
        InternalError: The same hash type appears more than once
    """
    result: Dict[str, str] = {}
    for entry in checksums or ():
        hash_type = entry.get("type")
        if hash_type in result:
            raise InternalError(
                "Response from DRS Resolution server contained duplicate checksum values for"
                f" hash type '{hash_type}' in checksums array!"
            )
        result[hash_type] = entry.get("checksum")
    return result or None


def parse_gs_uri(uri: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Split ``gs://bucket/name`` into ``(bucket, name)``."""
    match = _GS_URI_RE.match(uri) if uri else None
    if match is None:
        return None, None
    return match.group(1), match.group(2)


def iso_utc(value: Any) -> Optional[str]:
    """Render a provider timestamp as ``YYYY-MM-DDTHH:MM:SS.mmmZ``.

    Timestamps without a zone are taken to be UTC.
    """
    if value in (None, ""):
        return None
    try:
        if isinstance(value, (int, float)):
            parsed = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        else:
            parsed = datetime.fromisoformat(str(value))
    except (TypeError, ValueError, OverflowError) as exc:
        raise InternalError(f"Invalid timestamp '{value}'") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    parsed = parsed.astimezone(timezone.utc)
    return parsed.strftime("%Y-%m-%dT%H:%M:%S.") + f"{parsed.microsecond // 1000:03d}Z"


def coerce_size(value: Any) -> Optional[int]:
    # Some servers send the size as a JSON string.
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise InternalError(f"Invalid size '{value}'")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise InternalError(f"Invalid size '{value}'") from exc
    if not number.is_integer():
        raise InternalError(f"Invalid size '{value}'")
    return int(number)


def _basename(path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    return re.sub(r"^.*[\\/]", "", path) or None


# ============================================================================
# Metadata parsing
# ============================================================================


def _access_url(raw: Any) -> Optional[DrsAccessUrl]:
    if not isinstance(raw, Mapping) or not raw.get("url"):
        return None
    headers = raw.get("headers")
    return DrsAccessUrl(url=raw["url"], headers=dict(headers) if headers else None)


def _access_methods(raw: Any) -> Tuple[DrsAccessMethod, ...]:
    methods: List[DrsAccessMethod] = []
    for entry in raw or ():
        if not isinstance(entry, Mapping) or not entry.get("type"):
            continue
        methods.append(
            DrsAccessMethod(
                type=entry["type"],
                access_id=entry.get("access_id"),
                access_url=_access_url(entry.get("access_url")),
            )
        )
    return tuple(methods)


def _dos_to_drs(data_object: Mapping[str, Any]) -> Dict[str, Any]:
    urls = data_object.get("urls") or ()
    return {
        "name": data_object.get("name"),
        "size": data_object.get("size"),
        "mime_type": data_object.get("mimeType"),
        "created_time": data_object.get("created"),
        "updated_time": data_object.get("updated"),
        "checksums": data_object.get("checksums"),
        "access_methods": [
            {"type": "gs", "access_url": {"url": entry["url"]}}
            for entry in urls
            if isinstance(entry, Mapping) and str(entry.get("url", "")).startswith("gs://")
        ],
    }


def parse_metadata(payload: Optional[Mapping[str, Any]]) -> BackendMetadata:
    """Normalize a DOS or DRS v1 metadata response.

    Raises:
        InternalError: The payload is self-contradictory or malformed
    """
    if payload is None:
        return BackendMetadata()
    if not isinstance(payload, Mapping):
        raise InternalError("DRS metadata response was not a JSON object")
    data = payload
    if isinstance(payload.get("data_object"), Mapping):
        data = _dos_to_drs(payload["data_object"])

    checksums = data.get("checksums") or ()
    aliases = data.get("aliases") or ()
    return BackendMetadata(
        name=data.get("name") or None,
        size=coerce_size(data.get("size")),
        mime_type=data.get("mime_type") or None,
        created_time=iso_utc(data.get("created_time")),
        updated_time=iso_utc(data.get("updated_time")),
        hashes=hashes_map(checksums),
        access_methods=_access_methods(data.get("access_methods")),
        aliases=tuple(str(alias) for alias in aliases),
    )


def select_access_method(
    profile: ProviderProfile, metadata: Optional[BackendMetadata]
) -> Optional[DrsAccessMethod]:
    """First metadata access method whose type the profile supports, in profile order."""
    if metadata is None:
        return None
    for policy in profile.access_methods:
        for method in metadata.access_methods:
            if method.type == policy.type.drs_type:
                return method
    return None


def file_name(metadata: Optional[BackendMetadata]) -> Optional[str]:
    if metadata is None:
        return None
    if metadata.name:
        return metadata.name
    if metadata.access_methods and metadata.access_methods[0].access_url is not None:
        return _basename(urlsplit(metadata.access_methods[0].access_url.url).path)
    _, gs_name = parse_gs_uri(metadata.gs_uri)
    return _basename(gs_name)


def localization_path(
    profile: ProviderProfile, metadata: Optional[BackendMetadata]
) -> Optional[str]:
    if profile.uses_aliases_for_localization_path and metadata is not None and metadata.aliases:
        return metadata.aliases[0]
    return None


# ============================================================================
# Response assembly
# ============================================================================


def build_response(
    requested: Iterable[str],
    *,
    profile: ProviderProfile,
    metadata: Optional[BackendMetadata] = None,
    service_account: Optional[Mapping[str, Any]] = None,
    access_url: Optional[Mapping[str, Any]] = None,
    omitted: Collection[str] = (),
) -> Dict[str, Any]:
    """Render exactly the requested fields.

    Fields in ``omitted`` (abandoned at the deadline, or a tolerated failure)
    are left out; every other requested field is present, ``None`` when its
    source resolved to nothing.
    """
    wanted = set(requested) - set(omitted)
    if not wanted:
        return {}

    meta = metadata or BackendMetadata()
    gs_uri = meta.gs_uri
    bucket, name = parse_gs_uri(gs_uri)
    values: Dict[str, Any] = {
        "gsUri": gs_uri,
        "bucket": bucket,
        "name": name,
        "fileName": file_name(metadata) if metadata is not None else None,
        "localizationPath": localization_path(profile, metadata),
        "contentType": meta.mime_type or DEFAULT_CONTENT_TYPE,
        "size": meta.size,
        "hashes": dict(meta.hashes) if meta.hashes else None,
        "timeCreated": meta.created_time,
        "timeUpdated": meta.updated_time,
        "googleServiceAccount": dict(service_account) if service_account else None,
        "bondProvider": profile.bond_provider.value if profile.bond_provider else None,
        "accessUrl": dict(access_url) if access_url else None,
    }
    return {key: values[key] for key in ALL_FIELDS if key in wanted}


__all__ = [
    "BackendMetadata",
    "DEFAULT_CONTENT_TYPE",
    "DrsAccessMethod",
    "DrsAccessUrl",
    "build_response",
    "coerce_size",
    "file_name",
    "hashes_map",
    "iso_utc",
    "localization_path",
    "parse_gs_uri",
    "parse_metadata",
    "select_access_method",
]
