# /scanrules/domain/host_evaluator.py
from __future__ import annotations

import logging
from bisect import bisect_right
from collections.abc import Iterable

from scanrules.domain.errors import ParseError
from scanrules.domain.host_parser import AtomKind, HostAtom, parse_host, parse_hosts

LOG = logging.getLogger("domain.hosts")


def _check_cap(max_hosts: int) -> None:
    if max_hosts < 0:
        raise ValueError(f"max_hosts must be >= 0, got {max_hosts}")


class _Exclusions:
    """Excluded hosts as merged, sorted integer intervals per address family."""

    def __init__(self, atoms: Iterable[HostAtom]) -> None:
        self.names: set[str] = set()
        spans: dict[int, list[tuple[int, int]]] = {4: [], 6: []}
        for atom in atoms:
            if atom.kind is AtomKind.HOSTNAME:
                self.names.add(atom.name or "")
            else:
                spans[atom.version].append((atom.first, atom.last))

        self._starts: dict[int, list[int]] = {}
        self._ends: dict[int, list[int]] = {}
        for version, items in spans.items():
            starts: list[int] = []
            ends: list[int] = []
            for first, last in sorted(items):
                if ends and first <= ends[-1] + 1:
                    ends[-1] = max(ends[-1], last)
                else:
                    starts.append(first)
                    ends.append(last)
            self._starts[version] = starts
            self._ends[version] = ends

    def skip(self, version: int, value: int) -> int:
        """Return the first address >= value that is not excluded."""
        starts = self._starts[version]
        i = bisect_right(starts, value) - 1
        if i >= 0 and self._ends[version][i] >= value:
            return self._ends[version][i] + 1
        return value


def contains(expression: str, candidate: str, max_hosts: int) -> bool:
    """Return whether ``candidate`` is one of the hosts ``expression`` denotes.

    Membership is decided by interval arithmetic, so the answer does not
    depend on ``max_hosts``. Malformed input yields False.
    """
    _check_cap(max_hosts)
    try:
        target = parse_host(candidate)
        atoms = parse_hosts(expression)
    except ParseError as e:
        LOG.debug("hosts.contains.unparseable", extra={"extra": {"error": str(e)}})
        return False

    if not target.is_single:
        LOG.debug("hosts.contains.not_single", extra={"extra": {"candidate": candidate}})
        return False

    for atom in atoms:
        if atom.size > max_hosts:
            LOG.debug(
                "hosts.contains.large_atom",
                extra={"extra": {"atom": atom.text, "size": atom.size, "max": max_hosts}},
            )
        if atom.covers(target):
            return True
    return False


def count(expression: str, exclude: str | None, max_hosts: int) -> int:
    """Count distinct hosts in ``expression`` not in ``exclude``, capped.

    Hosts are visited in parse order and enumeration stops as soon as the
    running count reaches ``max_hosts``. Excluded intervals are jumped over
    rather than walked. Malformed input yields 0.
    """
    _check_cap(max_hosts)
    try:
        atoms = parse_hosts(expression)
        skipped = _Exclusions(parse_hosts(exclude or ""))
    except ParseError as e:
        LOG.debug("hosts.count.unparseable", extra={"extra": {"error": str(e)}})
        return 0

    total = 0
    seen: set[tuple[int, int]] = set()
    seen_names: set[str] = set()
    for atom in atoms:
        if total >= max_hosts:
            break

        if atom.kind is AtomKind.HOSTNAME:
            name = atom.name or ""
            if name not in skipped.names and name not in seen_names:
                seen_names.add(name)
                total += 1
            continue

        cursor = atom.first
        while cursor <= atom.last and total < max_hosts:
            allowed = skipped.skip(atom.version, cursor)
            if allowed != cursor:
                cursor = allowed
                continue
            key = (atom.version, cursor)
            if key not in seen:
                seen.add(key)
                total += 1
            cursor += 1

    LOG.debug("hosts.count", extra={"extra": {"atoms": len(atoms), "count": total, "max": max_hosts}})
    return total
