# /scanrules/domain/host_parser.py
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from ipaddress import IPv4Address, IPv6Address, ip_address, ip_network

from scanrules.domain.errors import ParseError, RangeInvalid

# Host lists are comma separated; pasted lists often use newlines too.
_SEPARATORS = re.compile(r"[,\r\n]+")
_LABEL = r"[A-Za-z0-9_](?:[A-Za-z0-9_-]{0,61}[A-Za-z0-9_])?"
_HOSTNAME = re.compile(rf"^(?=.{{1,253}}$){_LABEL}(?:\.{_LABEL})*\.?$")
_NUMERIC = re.compile(r"^[0-9.]+$")
_SHORT_V4 = re.compile(r"^[0-9]{1,3}$")
_SHORT_V6 = re.compile(r"^[0-9A-Fa-f]{1,4}$")


class AtomKind(str, Enum):
    ADDRESS = "address"
    HOSTNAME = "hostname"
    CIDR = "cidr"
    RANGE = "range"
    SHORT_RANGE = "short_range"


@dataclass(frozen=True, slots=True)
class HostAtom:
    """One parsed unit of a host list.

    Address kinds keep an inclusive integer interval ``first..last`` so that
    membership and counting never need the expanded address set.
    """

    kind: AtomKind
    text: str
    version: int = 0  # 0 for hostnames
    first: int = 0
    last: int = 0
    name: str | None = None

    @property
    def is_single(self) -> bool:
        return self.kind in (AtomKind.ADDRESS, AtomKind.HOSTNAME)

    @property
    def size(self) -> int:
        if self.kind is AtomKind.HOSTNAME:
            return 1
        return self.last - self.first + 1

    def covers(self, host: HostAtom) -> bool:
        """True if the single host ``host`` belongs to this atom."""
        if host.kind is AtomKind.HOSTNAME:
            return self.kind is AtomKind.HOSTNAME and self.name == host.name
        if self.kind is AtomKind.HOSTNAME or self.version != host.version:
            return False
        return self.first <= host.first <= self.last


def _maybe_address(text: str) -> IPv4Address | IPv6Address | None:
    try:
        return ip_address(text)
    except ValueError:
        return None


def _address(text: str, token: str) -> IPv4Address | IPv6Address:
    addr = _maybe_address(text.strip())
    if addr is None:
        raise ParseError("malformed address", token)
    return addr


def _parse_cidr(token: str) -> HostAtom:
    addr_text, _, prefix_text = token.partition("/")
    addr = _address(addr_text, token)
    prefix_text = prefix_text.strip()
    try:
        net = ip_network(f"{addr}/{prefix_text}", strict=False)
    except ValueError as e:
        if prefix_text.isascii() and prefix_text.isdigit():
            raise RangeInvalid("prefix length out of range", token) from e
        raise ParseError("malformed prefix length", token) from e

    first, last = int(net.network_address), int(net.broadcast_address)
    # Same usable-host convention as hosts(): drop the network address, and
    # for IPv4 the broadcast address, on blocks wider than /31.
    if net.num_addresses > 2:
        first += 1
        if net.version == 4:
            last -= 1
    return HostAtom(AtomKind.CIDR, token, net.version, first, last)


def _parse_range(token: str) -> HostAtom:
    left, _, right = token.partition("-")
    start = _address(left, token)
    right = right.strip()

    end = _maybe_address(right)
    if end is not None:
        if end.version != start.version:
            raise ParseError("range mixes address families", token)
        kind, last = AtomKind.RANGE, int(end)
    elif start.version == 4 and _SHORT_V4.match(right):
        value = int(right)
        if value > 0xFF:
            raise RangeInvalid("octet out of range", token)
        kind, last = AtomKind.SHORT_RANGE, (int(start) & ~0xFF) | value
    elif start.version == 6 and _SHORT_V6.match(right):
        kind, last = AtomKind.SHORT_RANGE, (int(start) & ~0xFFFF) | int(right, 16)
    else:
        raise ParseError("malformed range end", token)

    if last < int(start):
        raise RangeInvalid("range end precedes start", token)
    return HostAtom(kind, token, start.version, int(start), last)


def parse_host(token: str) -> HostAtom:
    """Classify and parse a single host-list token."""
    s = token.strip()
    if not s:
        raise ParseError("empty host", token)

    if "/" in s:
        return _parse_cidr(s)

    # Hostnames may contain '-', so only treat it as a range when the left
    # side is an address.
    if "-" in s and _maybe_address(s.partition("-")[0].strip()) is not None:
        return _parse_range(s)

    addr = _maybe_address(s)
    if addr is not None:
        return HostAtom(AtomKind.ADDRESS, s, addr.version, int(addr), int(addr))

    if _NUMERIC.match(s) or ":" in s:
        raise ParseError("malformed address", s)
    if _HOSTNAME.match(s) and not s.rstrip(".").rsplit(".", 1)[-1].isdigit():
        return HostAtom(AtomKind.HOSTNAME, s, name=s.rstrip(".").lower())
    raise ParseError("malformed host", s)


def parse_hosts(expression: str) -> list[HostAtom]:
    """Parse a host-list expression into atoms, in order.

    Raises ParseError (or RangeInvalid) on the first malformed token. An
    expression without tokens yields an empty list.
    """
    return [parse_host(tok) for tok in _SEPARATORS.split(expression) if tok.strip()]
