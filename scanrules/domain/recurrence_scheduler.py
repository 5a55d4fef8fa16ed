# /scanrules/domain/recurrence_scheduler.py
from __future__ import annotations

import logging
from bisect import bisect_left, bisect_right
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from dateutil.relativedelta import relativedelta
from dateutil.rrule import rrule, rruleset

from scanrules.domain.errors import ParseError
from scanrules.domain.recurrence_parser import (
    Frequency,
    RecurrenceComponent,
    RecurrenceDescriptor,
    parse_recurrence,
)

LOG = logging.getLogger("domain.recurrence")

# Sub-daily steps are absolute time; daily and weekly steps keep the wall
# clock of the schedule's zone across DST changes.
_ABSOLUTE = {Frequency.MINUTELY: timedelta(minutes=1), Frequency.HOURLY: timedelta(hours=1)}
_WALL = {Frequency.DAILY: timedelta(days=1), Frequency.WEEKLY: timedelta(weeks=1)}
_MONTHS = {Frequency.MONTHLY: 1, Frequency.YEARLY: 12}

_EPSILON = timedelta(microseconds=1)

# (instant, declaration order, source); source(now, k) gives the k-th
# occurrence of that source after now.
_Candidate = tuple[datetime, int, Callable[[datetime, int], "datetime | None"]]


def _occurrence(start: datetime, comp: RecurrenceComponent, index: int) -> datetime:
    steps = index * comp.interval
    if comp.freq is None:
        return start
    if comp.freq in _ABSOLUTE:
        return (start.astimezone(timezone.utc) + steps * _ABSOLUTE[comp.freq]).astimezone(start.tzinfo)
    if comp.freq in _WALL:
        return start + steps * _WALL[comp.freq]
    return start + relativedelta(months=steps * _MONTHS[comp.freq])


def _elapsed_periods(start: datetime, comp: RecurrenceComponent, now: datetime) -> int:
    """Whole periods between start and now, give or take one."""
    if comp.freq in _ABSOLUTE:
        return (now - start) // (comp.interval * _ABSOLUTE[comp.freq])
    local_now = now.astimezone(start.tzinfo)
    if comp.freq in _WALL:
        wall = local_now.replace(tzinfo=None) - start.replace(tzinfo=None)
        return wall // (comp.interval * _WALL[comp.freq])
    months = (local_now.year - start.year) * 12 + local_now.month - start.month
    return months // (comp.interval * _MONTHS[comp.freq])


def first_index_after(start: datetime, comp: RecurrenceComponent, now: datetime) -> int:
    """Smallest occurrence index whose instant is strictly after ``now``."""
    if comp.freq is None:
        return 0 if start > now else 1

    index = max(_elapsed_periods(start, comp, now), 0)
    while index > 0 and _occurrence(start, comp, index - 1) > now:
        index -= 1
    while _occurrence(start, comp, index) <= now:
        index += 1
    return index


def _excluded_indices(desc: RecurrenceDescriptor, comp: RecurrenceComponent) -> list[int]:
    out: set[int] = set()
    for exdate in desc.exdates:
        if exdate < desc.start:
            continue
        try:
            index = first_index_after(desc.start, comp, exdate - _EPSILON)
            if _occurrence(desc.start, comp, index) == exdate:
                out.add(index)
        except (OverflowError, ValueError):
            continue
    return sorted(out)


def _advance(index: int, steps: int, excluded: list[int]) -> int:
    """The index reached after ``steps`` non-excluded occurrences past ``index``.

    Iterates to a fixed point over the excluded indices, so the cost is
    bounded by the number of exclusions rather than by ``steps``.
    """
    low = bisect_left(excluded, index)
    target = index + steps
    while True:
        skipped = bisect_right(excluded, target) - low
        reached = index + steps + skipped
        if reached == target:
            return target
        target = reached


def _rule_source(desc: RecurrenceDescriptor, comp: RecurrenceComponent):
    excluded: list[int] | None = None

    def nth_after(now: datetime, k: int) -> datetime | None:
        nonlocal excluded
        if excluded is None:
            excluded = _excluded_indices(desc, comp)
        try:
            index = _advance(first_index_after(desc.start, comp, now), k, excluded)
            if comp.count is not None and index >= comp.count:
                return None
            occurrence = _occurrence(desc.start, comp, index)
        except (OverflowError, ValueError):
            # ran past datetime.max
            return None
        if comp.until is not None and occurrence > comp.until:
            return None
        return occurrence

    return nth_after


# dateutil fills these from DTSTART when none of them is given
_DATE_EXPANDERS = {"BYWEEKNO", "BYYEARDAY", "BYMONTHDAY", "BYDAY", "BYEASTER"}


def _pinned_defaults(start: datetime, comp: RecurrenceComponent) -> dict[str, int]:
    """Defaults dateutil derives from the original start, fixed so a re-anchored rule keeps them."""
    given = set(comp.expanders)
    pinned: dict[str, int] = {}
    if not given & _DATE_EXPANDERS:
        if comp.freq is Frequency.YEARLY:
            if "BYMONTH" not in given:
                pinned["bymonth"] = start.month
            pinned["bymonthday"] = start.day
        elif comp.freq is Frequency.MONTHLY:
            pinned["bymonthday"] = start.day
        elif comp.freq is Frequency.WEEKLY:
            pinned["byweekday"] = start.weekday()
    if "BYHOUR" not in given and comp.freq not in _ABSOLUTE:
        pinned["byhour"] = start.hour
    if "BYMINUTE" not in given and comp.freq is not Frequency.MINUTELY:
        pinned["byminute"] = start.minute
    if "BYSECOND" not in given:
        pinned["bysecond"] = start.second
    return pinned


def _fast_forward(start: datetime, comp: RecurrenceComponent, now: datetime) -> rrule:
    """The component's rule, re-anchored one period short of ``now``.

    COUNT is counted from the original start, so bounded rules are not moved.
    """
    if comp.count is not None:
        return comp.rule
    index = max(_elapsed_periods(start, comp, now) - 1, 0)
    if index == 0:
        return comp.rule
    anchor = _occurrence(start, comp, index)
    return comp.rule.replace(dtstart=anchor, **_pinned_defaults(start, comp))


def _expanded_source(desc: RecurrenceDescriptor, comp: RecurrenceComponent):
    def nth_after(now: datetime, k: int) -> datetime | None:
        try:
            rules = rruleset()
            rules.rrule(_fast_forward(desc.start, comp, now))
            for exdate in desc.exdates:
                rules.exdate(exdate)
            found = list(rules.xafter(now, count=k + 1))
        except (OverflowError, ValueError):
            return None
        return found[k] if len(found) > k else None

    return nth_after


def _rdate_source(desc: RecurrenceDescriptor):
    dates = [d for d in desc.rdates if d not in desc.exdates]

    def nth_after(now: datetime, k: int) -> datetime | None:
        index = bisect_right(dates, now) + k
        return dates[index] if index < len(dates) else None

    return nth_after


def next_occurrence(
    descriptor: RecurrenceDescriptor,
    now: datetime | None = None,
    periods_offset: int = 0,
) -> datetime | None:
    """Next occurrence strictly after ``now``, as an aware UTC datetime.

    The earliest candidate across all rules (and RDATEs) wins; on equal
    instants the first-declared source wins. ``periods_offset`` then moves
    that source forward by that many further occurrences. Returns None when
    nothing is left.
    """
    if periods_offset < 0:
        raise ValueError(f"periods_offset must be >= 0, got {periods_offset}")
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    sources = [
        _expanded_source(descriptor, comp) if comp.expanders else _rule_source(descriptor, comp)
        for comp in descriptor.components
    ]
    if descriptor.rdates:
        sources.append(_rdate_source(descriptor))

    candidates: list[_Candidate] = []
    for order, source in enumerate(sources):
        first = source(now, 0)
        if first is not None:
            candidates.append((first, order, source))
    if not candidates:
        return None

    first, _, source = min(candidates, key=lambda c: (c[0], c[1]))
    chosen = first if periods_offset == 0 else source(now, periods_offset)
    return chosen.astimezone(timezone.utc) if chosen is not None else None


def next_time_from_string(
    ical: str,
    timezone_name: str | None = None,
    periods_offset: int = 0,
    now: datetime | None = None,
) -> datetime | None:
    """Parse and schedule in one go; an invalid schedule has no next time."""
    if periods_offset < 0:
        raise ValueError(f"periods_offset must be >= 0, got {periods_offset}")
    try:
        descriptor = parse_recurrence(ical, timezone_name)
    except ParseError as e:
        LOG.debug("recurrence.invalid", extra={"extra": {"error": str(e)}})
        return None
    return next_occurrence(descriptor, now, periods_offset)
