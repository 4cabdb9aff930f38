"""Bind address parsing: turn ``host[:port]`` strings into IP endpoints."""

from __future__ import annotations

import ipaddress
import re
import socket
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from .errors import FormatError, ResolutionError

__all__ = [
    "IPAddress",
    "Endpoint",
    "normalize_endpoint",
    "parse_port",
    "render_urls",
    "resolve_host",
]

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address
Resolver = Callable[[str], Sequence[IPAddress]]

MIN_PORT = 1
MAX_PORT = 65535

_PORT_PATTERN = re.compile(r"\s*[+-]?[0-9]+\s*")


@dataclass(frozen=True, slots=True)
class Endpoint:
    """A concrete IP address and port ready to be bound."""

    address: IPAddress
    port: int

    def __post_init__(self) -> None:
        if not MIN_PORT <= self.port <= MAX_PORT:
            raise FormatError(
                f"Port out of range: {self.port}",
                details={"port": self.port},
            )

    @property
    def host(self) -> str:
        """Address text usable in a URL authority (IPv6 is bracketed)."""

        if self.address.version == 6:
            return f"[{self.address}]"
        return str(self.address)

    @property
    def url(self) -> str:
        return f"http://{self}/"

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


def parse_port(text: str) -> int | None:
    """Return ``text`` as a port number, or ``None`` unless it is a decimal in 1..65535."""

    if not _PORT_PATTERN.fullmatch(text):
        return None
    value = int(text)
    if MIN_PORT <= value <= MAX_PORT:
        return value
    return None


def resolve_host(host: str) -> list[IPAddress]:
    """Resolve ``host`` to its addresses in resolver order, without duplicates.

    An empty host resolves the local machine's name.
    """

    infos = socket.getaddrinfo(host or socket.gethostname(), None)
    addresses: list[IPAddress] = []
    for info in infos:
        address = ipaddress.ip_address(info[4][0])
        if address not in addresses:
            addresses.append(address)
    return addresses


def normalize_endpoint(raw: str, default_port: int, *, resolve: Resolver = resolve_host) -> Endpoint:
    """Parse a bind string such as ``10.0.0.1:80``, ``[::1]:80``, ``::1`` or ``host``.

    A trailing ``:port`` is split off only when the colon follows a complete
    bracketed literal, is the sole colon in the string, or starts the string.
    Any other colon belongs to an IPv6 literal. A suffix that is not a valid
    port leaves the string whole and ``default_port`` applies.

    Host text that is not a literal IP is resolved through ``resolve`` and the
    first address wins.
    """

    host = raw
    port = default_port
    colon = raw.rfind(":")
    if colon != -1:
        bracketed = raw.startswith("[") and colon > 0 and raw[colon - 1] == "]"
        multi_colon = raw.rfind(":", 0, colon) != -1
        if colon == 0 or bracketed or not multi_colon:
            candidate = parse_port(raw[colon + 1 :])
            if candidate is not None:
                host = raw[:colon]
                port = candidate

    if len(host) > 1 and host.startswith("[") and host.endswith("]"):
        host = host[1:-1]

    return Endpoint(_parse_address(host, raw, resolve), port)


def render_urls(endpoints: Iterable[Endpoint]) -> str:
    """Join endpoints into the ``;``-separated ``urls`` setting."""

    return ";".join(endpoint.url for endpoint in endpoints)


def _parse_address(host: str, raw: str, resolve: Resolver) -> IPAddress:
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        pass

    try:
        addresses = resolve(host)
    except (OSError, UnicodeError, ValueError) as exc:
        raise ResolutionError(
            "Invalid IP Endpoint",
            details={"bind": raw, "host": host, "reason": str(exc)},
        ) from exc
    if not addresses:
        raise FormatError("Invalid IP Endpoint", details={"bind": raw, "host": host})
    return addresses[0]
