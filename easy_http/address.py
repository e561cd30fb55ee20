"""
URL parsing and local-address checks for outbound requests.

Only ``http`` and ``https`` URLs are accepted. Parsing happens when a request
is built, so a malformed URL is rejected before any socket is opened.
"""

import ipaddress
import logging
import re
from dataclasses import dataclass, replace
from typing import Mapping, Optional, Union
from urllib.parse import quote, urlencode, urljoin, urlsplit

from easy_http.errors import UrlParseError

logger = logging.getLogger(__name__)

DEFAULT_PORTS = {"http": 80, "https": 443}

_PATH_SAFE = "/%:@!$&'()*+,;=-._~"
_QUERY_SAFE = _PATH_SAFE + "?"
_FORBIDDEN_CHARS = re.compile(r"[\x00-\x20\x7f]")

_IPV4_PRIVATE = (
    ipaddress.IPv4Network("10.0.0.0/8"),
    ipaddress.IPv4Network("172.16.0.0/12"),
    ipaddress.IPv4Network("192.168.0.0/16"),
)
_IPV4_BROADCAST = ipaddress.IPv4Address("255.255.255.255")
_IPV4_DOCUMENTATION = (
    ipaddress.IPv4Network("192.0.2.0/24"),
    ipaddress.IPv4Network("198.51.100.0/24"),
    ipaddress.IPv4Network("203.0.113.0/24"),
)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


@dataclass(frozen=True)
class HttpUrl:
    """A validated http/https URL split into the parts the wire needs."""

    scheme: str
    host: str
    port: int
    path: str = "/"
    query: str = ""
    explicit_port: bool = False

    @property
    def is_tls(self) -> bool:
        return self.scheme == "https"

    @property
    def netloc(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        if self.explicit_port and self.port != DEFAULT_PORTS[self.scheme]:
            return f"{host}:{self.port}"
        return host

    @property
    def request_target(self) -> str:
        """Return the origin-form target written on the request line."""
        if self.query:
            return f"{self.path}?{self.query}"
        return self.path

    def geturl(self) -> str:
        return f"{self.scheme}://{self.netloc}{self.request_target}"

    def __str__(self) -> str:
        return self.geturl()


def _ascii_host(host: str, raw: str) -> str:
    """Return ``host`` in its ASCII (punycode) form; IP literals pass through."""
    if host.isascii():
        return host
    try:
        return host.encode("idna").decode("ascii")
    except UnicodeError as exc:
        raise UrlParseError(f"Invalid host name in {raw!r}: {exc}") from exc


def parse_url(raw: str) -> HttpUrl:
    """Parse ``raw`` into an HttpUrl or raise UrlParseError."""
    if not isinstance(raw, str):
        raise UrlParseError(f"URL must be a string, got {type(raw).__name__}")

    raw = raw.strip()
    if not raw:
        raise UrlParseError("URL must not be empty.")
    if _FORBIDDEN_CHARS.search(raw):
        raise UrlParseError(f"URL contains whitespace or control characters: {raw!r}")

    try:
        parts = urlsplit(raw)
        port = parts.port
    except ValueError as exc:
        raise UrlParseError(f"Invalid URL {raw!r}: {exc}") from exc

    scheme = parts.scheme.lower()
    if scheme not in DEFAULT_PORTS:
        raise UrlParseError(
            f"Unsupported URL scheme {parts.scheme!r} in {raw!r}; expected http or https."
        )

    host = parts.hostname
    if not host:
        raise UrlParseError(f"A valid HTTP URL needs to contain a host: {raw!r}")
    if port == 0:
        raise UrlParseError(f"Port 0 is not a valid destination in {raw!r}")
    host = _ascii_host(host, raw)

    return HttpUrl(
        scheme=scheme,
        host=host,
        port=port if port is not None else DEFAULT_PORTS[scheme],
        path=quote(parts.path or "/", safe=_PATH_SAFE),
        query=quote(parts.query, safe=_QUERY_SAFE),
        explicit_port=port is not None,
    )


def append_query(url: HttpUrl, pairs: Optional[Mapping[str, str]]) -> HttpUrl:
    """Return ``url`` with ``pairs`` form-encoded after any existing query."""
    if not pairs:
        return url
    encoded = urlencode([(str(k), str(v)) for k, v in pairs.items()])
    query = f"{url.query}&{encoded}" if url.query else encoded
    return replace(url, query=query)


def resolve_location(base: HttpUrl, location: str) -> HttpUrl:
    """Resolve a ``Location`` header value against the URL that produced it."""
    try:
        target = urljoin(base.geturl(), location.strip())
    except ValueError as exc:
        raise UrlParseError(f"Invalid location {location!r}: {exc}") from exc
    logger.debug("Resolved location %r against %s to %s", location, base, target)
    return parse_url(target)


def is_local_ipv4(addr: ipaddress.IPv4Address) -> bool:
    return (
        any(addr in net for net in _IPV4_PRIVATE)
        or addr.is_loopback
        or addr.is_link_local
        or addr == _IPV4_BROADCAST
        or any(addr in net for net in _IPV4_DOCUMENTATION)
        or addr.is_unspecified
    )


def is_local_ipv6(addr: ipaddress.IPv6Address) -> bool:
    if addr.ipv4_mapped is not None:
        return is_local_ipv4(addr.ipv4_mapped)
    return addr.is_multicast or addr.is_loopback or addr.is_unspecified


def is_local_address(addr: IPAddress) -> bool:
    if isinstance(addr, ipaddress.IPv4Address):
        return is_local_ipv4(addr)
    return is_local_ipv6(addr)


def is_local_host(host: str) -> bool:
    """Return True when ``host`` is a local IP literal or ``localhost``."""
    try:
        addr = ipaddress.ip_address(host)
    except ValueError:
        return host.rstrip(".").lower() == "localhost"
    return is_local_address(addr)
