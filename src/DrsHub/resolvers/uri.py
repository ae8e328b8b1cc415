"""
DRS URI Parsing

Turns a ``drs://`` (or legacy ``dos://``) URI into the HTTPS coordinates of the
provider's DRS endpoints. Two URI shapes exist:

- Conventional: ``drs://host[:port]/object-id[?query]``. Host case is kept
  verbatim because some providers have case-sensitive paths.
- Compact identifier based (CIB): ``drs://dg.4503:object-id``,
  ``drs://dg.4503:dg.4503/object-id`` or ``drs://dg.4503/object-id``. The
  prefix is looked up in :data:`NAMESPACES` and expanded to a real host.

CIB URIs are not valid RFC 3986 URIs, so they are matched with regular
expressions before any ``urllib`` parsing is attempted.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import quote, urlsplit

from DrsHub.config.settings import ProviderHosts
from DrsHub.errors import RequestError

DRS_OBJECTS_PATH = "ga4gh/drs/v1/objects"


@dataclass(frozen=True)
class CompactNamespace:
    """One registered CIB prefix.

    Attributes:
        prefix: Lower-case CIB prefix, e.g. ``dg.4503``
        host_key: Attribute of :class:`ProviderHosts` holding the real host
        prefixed_object_id: Object ids are ``prefix/suffix`` rather than ``suffix``
        bio_data_catalyst: Prefix belongs to BioData Catalyst
    """

    prefix: str
    host_key: str
    prefixed_object_id: bool = False
    bio_data_catalyst: bool = False

    def host(self, hosts: ProviderHosts) -> str:
        return getattr(hosts, self.host_key)


NAMESPACES: Tuple[CompactNamespace, ...] = (
    CompactNamespace("dg.4503", "bio_data_catalyst_prod", True, True),
    CompactNamespace("dg.712c", "bio_data_catalyst_staging", True, True),
    CompactNamespace("dg.anv0", "the_anvil", True),
    CompactNamespace("drs.anv0", "terra_data_repo"),
    CompactNamespace("dg.4dfc", "crdc"),
    CompactNamespace("dg.f82a1a", "kids_first"),
    CompactNamespace("dg.test0", "passport_test"),
)

# Tried in order: repeated prefix, single prefix, then W3C-style slash separator.
_CIB_PATTERNS = (
    re.compile(
        r"(?:dos|drs)://(?P<host>(?:dg|drs)\.[0-9a-z-]+)(?P<separator>:)(?P=host)/"
        r"(?P<suffix>[^?]*)(?:\?(?P<query>.*))?",
        re.IGNORECASE,
    ),
    re.compile(
        r"(?:dos|drs)://(?P<host>(?:dg|drs)\.[0-9a-z-]+)(?P<separator>:)"
        r"(?P<suffix>[^?]*)(?:\?(?P<query>.*))?",
        re.IGNORECASE,
    ),
    re.compile(
        r"(?:dos|drs)://(?P<host>(?:dg|drs)\.[0-9a-z-]+)(?P<separator>/)"
        r"(?P<suffix>[^?]*)(?:\?(?P<query>.*))?",
        re.IGNORECASE,
    ),
)

# Characters left alone by JavaScript's encodeURIComponent.
_URI_COMPONENT_SAFE = "-_.!~*'()"


@dataclass(frozen=True)
class HttpsUrlParts:
    """HTTPS coordinates of one DRS object."""

    host: str
    object_id: str
    port: Optional[int] = None
    query: Optional[str] = None
    maybe_not_bdc: bool = False
    compact_prefix: Optional[str] = None

    @property
    def authority(self) -> str:
        return f"{self.host}:{self.port}" if self.port is not None else self.host

    def _url(self, path: str) -> str:
        url = f"https://{self.authority}/{path}"
        return f"{url}?{self.query}" if self.query else url

    def metadata_url(self) -> str:
        return self._url(f"{DRS_OBJECTS_PATH}/{self.object_id}")

    def access_url(self, access_id: str) -> str:
        return self._url(f"{DRS_OBJECTS_PATH}/{self.object_id}/access/{access_id}")


def lookup_namespace(prefix: str) -> CompactNamespace:
    lowered = prefix.lower()
    for namespace in NAMESPACES:
        if namespace.prefix == lowered:
            return namespace
    raise RequestError(f"Unrecognized Compact Identifier Based host '{prefix}'.")


def _parse_compact(url: str, hosts: ProviderHosts) -> Optional[HttpsUrlParts]:
    for pattern in _CIB_PATTERNS:
        match = pattern.match(url)
        if match is None:
            continue
        prefix = match.group("host")
        namespace = lookup_namespace(prefix)
        suffix = match.group("suffix")
        object_id = f"{prefix}/{suffix}" if namespace.prefixed_object_id else suffix
        if match.group("separator") != "/":
            object_id = quote(object_id, safe=_URI_COMPONENT_SAFE)
        return HttpsUrlParts(
            host=namespace.host(hosts),
            object_id=object_id,
            query=match.group("query") or None,
            maybe_not_bdc=not namespace.bio_data_catalyst,
            compact_prefix=namespace.prefix,
        )
    return None


def _split_netloc(url: str, netloc: str) -> Tuple[str, Optional[int]]:
    host_port = netloc.rsplit("@", 1)[-1]
    host, _, port_text = host_port.partition(":")
    if not port_text:
        return host, None
    try:
        return host, int(port_text)
    except ValueError as exc:
        raise RequestError(f"Invalid port in '{url}'.") from exc


def parse_drs_uri(url: str, hosts: ProviderHosts) -> HttpsUrlParts:
    """Parse ``url`` into :class:`HttpsUrlParts`.

    Raises:
        RequestError: Unknown CIB prefix, or a URI without host or path
    """
    compact = _parse_compact(url, hosts)
    if compact is not None:
        return compact

    try:
        split = urlsplit(url)
    except ValueError as exc:
        raise RequestError(str(exc)) from exc
    host, port = _split_netloc(url, split.netloc)
    object_id = split.path[1:] if split.path.startswith("/") else split.path
    if not split.scheme or not host or not object_id:
        raise RequestError(f'"{url}" is missing a host and/or a path.')
    return HttpsUrlParts(
        host=host,
        object_id=object_id,
        port=port,
        query=split.query or None,
    )


__all__ = [
    "DRS_OBJECTS_PATH",
    "NAMESPACES",
    "CompactNamespace",
    "HttpsUrlParts",
    "lookup_namespace",
    "parse_drs_uri",
]
