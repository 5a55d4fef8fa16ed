# tests/test_host_parser.py
from __future__ import annotations

from ipaddress import ip_address

import pytest

from scanrules.domain.errors import ParseError, RangeInvalid
from scanrules.domain.host_parser import AtomKind, parse_host, parse_hosts


def _ip(text: str) -> int:
    return int(ip_address(text))


def test_parse_mixed_expression_keeps_order() -> None:
    atoms = parse_hosts(" 10.0.0.1, 10.0.0.0/30 ,scanner-01.example.com\n192.168.1.10-20")
    assert [a.kind for a in atoms] == [
        AtomKind.ADDRESS,
        AtomKind.CIDR,
        AtomKind.HOSTNAME,
        AtomKind.SHORT_RANGE,
    ]


def test_empty_expression_has_no_atoms() -> None:
    assert parse_hosts("") == []
    assert parse_hosts(" , ,\n") == []


@pytest.mark.parametrize(
    "token, first, last",
    [
        ("10.0.0.0/30", "10.0.0.1", "10.0.0.2"),
        ("10.0.0.5/24", "10.0.0.1", "10.0.0.254"),  # host bits tolerated
        ("10.0.0.0/31", "10.0.0.0", "10.0.0.1"),
        ("10.0.0.7/32", "10.0.0.7", "10.0.0.7"),
        ("2001:db8::/126", "2001:db8::1", "2001:db8::3"),
        ("10.0.0.1/255.255.255.0", "10.0.0.1", "10.0.0.254"),
        ("10.0.0.1/0.0.0.3", "10.0.0.1", "10.0.0.2"),
    ],
)
def test_cidr_bounds(token: str, first: str, last: str) -> None:
    atom = parse_host(token)
    assert atom.kind is AtomKind.CIDR
    assert (atom.first, atom.last) == (_ip(first), _ip(last))


def test_whole_address_space_is_not_expanded() -> None:
    atom = parse_host("0.0.0.0/0")
    assert atom.size == 2**32 - 2


def test_full_and_short_ranges() -> None:
    full = parse_host("10.0.0.1-10.0.1.0")
    assert full.kind is AtomKind.RANGE and full.size == 256

    short = parse_host("192.168.1.10-20")
    assert short.kind is AtomKind.SHORT_RANGE
    assert (short.first, short.last) == (_ip("192.168.1.10"), _ip("192.168.1.20"))

    v6 = parse_host("2001:db8::10-1f")
    assert v6.version == 6 and v6.size == 16


def test_hostnames_are_opaque_and_case_folded() -> None:
    atom = parse_host("Scanner.Example.COM")
    assert atom.kind is AtomKind.HOSTNAME
    assert atom.name == "scanner.example.com"
    assert parse_host("db-primary").kind is AtomKind.HOSTNAME


@pytest.mark.parametrize(
    "token",
    ["10.0.0.1/33", "::1/129", "10.0.0.5-10.0.0.1", "10.0.0.5-3", "10.0.0.1-256"],
)
def test_invalid_ranges(token: str) -> None:
    with pytest.raises(RangeInvalid):
        parse_host(token)


@pytest.mark.parametrize(
    "token",
    ["10.0.0.0/abc", "10.0.0.0/", "10.0.0.0/255.0.255.0", "10.0.0.300", "10.0.0", "10.0.0.1-::1", "10.0.0.1-", "bad host!", "a.b.123"],
)
def test_malformed_tokens(token: str) -> None:
    with pytest.raises(ParseError):
        parse_host(token)


def test_one_bad_token_fails_the_expression() -> None:
    with pytest.raises(ParseError):
        parse_hosts("10.0.0.1,10.0.0.2/40")
