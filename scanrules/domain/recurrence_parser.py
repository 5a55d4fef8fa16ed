# /scanrules/domain/recurrence_parser.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil.rrule import rrule, rrulestr

from scanrules.domain.errors import ParseError

LOG = logging.getLogger("domain.recurrence")

_INSTANT = re.compile(r"^(\d{8})(?:T(\d{6})(Z)?)?$")


class Frequency(str, Enum):
    MINUTELY = "MINUTELY"
    HOURLY = "HOURLY"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


@dataclass(frozen=True, slots=True)
class RecurrenceComponent:
    freq: Frequency | None  # None: one-shot event at the start instant
    interval: int = 1
    count: int | None = None
    until: datetime | None = None
    # BY* parts given in the rule; when present, occurrences come from `rule`
    expanders: tuple[str, ...] = ()
    rule: rrule | None = field(default=None, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class RecurrenceDescriptor:
    start: datetime
    tz: tzinfo | None
    components: tuple[RecurrenceComponent, ...]
    rdates: tuple[datetime, ...] = ()
    exdates: frozenset[datetime] = frozenset()


@dataclass(slots=True)
class _Property:
    name: str
    params: dict[str, str]
    value: str


def load_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ParseError("unknown timezone", name) from e


def _unfold(text: str) -> list[str]:
    lines: list[str] = []
    for raw in text.replace("\r\n", "\n").replace("\r", "\n").split("\n"):
        if raw[:1] in (" ", "\t") and lines:
            lines[-1] += raw[1:]
        elif raw.strip():
            lines.append(raw.strip())
    return lines


def _split_property(line: str) -> _Property:
    head, sep, value = line.partition(":")
    if not sep:
        raise ParseError("malformed content line", line)
    name, *raw_params = head.split(";")
    params: dict[str, str] = {}
    for raw in raw_params:
        key, _, val = raw.partition("=")
        params[key.strip().upper()] = val.strip().strip('"')
    return _Property(name.strip().upper(), params, value.strip())


def _event_properties(text: str) -> list[_Property]:
    """Content lines of the first VEVENT, or of the top level if there is none."""
    stack: list[str] = []
    props: list[_Property] = []
    for line in _unfold(text):
        prop = _split_property(line)
        if prop.name == "BEGIN":
            stack.append(prop.value.upper())
        elif prop.name == "END":
            closed = stack.pop() if stack else ""
            if closed == "VEVENT":
                break
        elif not stack or stack[-1] == "VEVENT":
            props.append(prop)
    return props


def parse_instant(value: str, zone: tzinfo | None) -> datetime:
    """Parse an iCalendar DATE or DATE-TIME into an aware datetime.

    UTC forms (trailing Z) are absolute; floating forms are read in ``zone``,
    or UTC when no zone applies.
    """
    m = _INSTANT.match(value.strip())
    if not m:
        raise ParseError("malformed date-time", value)
    try:
        dt = datetime.strptime(m[1] + (m[2] or "000000"), "%Y%m%d%H%M%S")
    except ValueError as e:
        raise ParseError("malformed date-time", value) from e
    if m[3]:
        return dt.replace(tzinfo=timezone.utc)
    return dt.replace(tzinfo=zone or timezone.utc)


def _positive_int(value: str, part: str) -> int:
    if not (value.isascii() and value.isdigit()) or int(value) < 1:
        raise ParseError(f"{part} must be a positive integer", value)
    return int(value)


def parse_rule(value: str, start: datetime, zone: tzinfo | None) -> RecurrenceComponent:
    """Parse one RRULE value (``FREQ=...;INTERVAL=...``) anchored at ``start``.

    FREQ, INTERVAL, COUNT and UNTIL are validated here. Any BY* parts are
    handed to dateutil together with the rest of the rule; an unknown or
    invalid part makes the whole rule invalid.
    """
    parts: dict[str, str] = {}
    for raw in value.split(";"):
        if not raw.strip():
            continue
        key, sep, val = raw.partition("=")
        if not sep:
            raise ParseError("malformed rule part", raw)
        parts[key.strip().upper()] = val.strip()

    freq_name = parts.get("FREQ", "").upper()
    try:
        freq = Frequency(freq_name)
    except ValueError as e:
        raise ParseError("unsupported frequency", freq_name) from e

    interval = _positive_int(parts.get("INTERVAL", "1"), "INTERVAL")
    count = _positive_int(parts["COUNT"], "COUNT") if "COUNT" in parts else None
    until = parse_instant(parts.pop("UNTIL"), zone) if "UNTIL" in parts else None
    if count is not None and until is not None:
        raise ParseError("COUNT and UNTIL are mutually exclusive", value)

    try:
        rule = rrulestr(";".join(f"{k}={v}" for k, v in parts.items()), dtstart=start)
        if until is not None:
            rule = rule.replace(until=until)
    except ValueError as e:
        raise ParseError(str(e), value) from e

    expanders = tuple(k for k in parts if k.startswith("BY"))
    return RecurrenceComponent(freq, interval, count, until, expanders, rule)


def _instants(prop: _Property, zone: tzinfo | None) -> list[datetime]:
    if prop.params.get("VALUE", "").upper() == "PERIOD":
        LOG.warning("recurrence.period_values.ignored", extra={"extra": {"property": prop.name}})
        return []
    if "TZID" in prop.params:
        zone = load_zone(prop.params["TZID"])
    return [parse_instant(v, zone) for v in prop.value.split(",") if v.strip()]


def parse_recurrence(text: str, timezone_name: str | None = None) -> RecurrenceDescriptor:
    """Parse an iCalendar schedule into a RecurrenceDescriptor.

    ``timezone_name`` overrides any TZID on DTSTART. Rules with an unknown
    frequency or a malformed part are dropped with a warning; if every RRULE
    is dropped the schedule is invalid. An event without RRULE occurs once,
    at DTSTART.
    """
    props = _event_properties(text)
    dtstart = next((p for p in props if p.name == "DTSTART"), None)
    if dtstart is None:
        raise ParseError("missing DTSTART")

    if timezone_name:
        zone: tzinfo | None = load_zone(timezone_name)
    elif "TZID" in dtstart.params:
        zone = load_zone(dtstart.params["TZID"])
    else:
        zone = None

    start = parse_instant(dtstart.value, zone)
    if zone is not None:
        start = start.astimezone(zone)

    components: list[RecurrenceComponent] = []
    rules = [p for p in props if p.name == "RRULE"]
    for prop in rules:
        try:
            components.append(parse_rule(prop.value, start, zone))
        except ParseError as e:
            LOG.warning("recurrence.rule.dropped", extra={"extra": {"rule": prop.value, "error": str(e)}})
    if rules and not components:
        raise ParseError("no valid recurrence rule", text)
    if not rules:
        components.append(RecurrenceComponent(None, count=1))

    rdates: set[datetime] = set()
    exdates: set[datetime] = set()
    for prop in props:
        if prop.name == "RDATE":
            rdates.update(_instants(prop, zone))
        elif prop.name == "EXDATE":
            exdates.update(_instants(prop, zone))

    LOG.debug(
        "recurrence.parsed",
        extra={"extra": {"start": start.isoformat(), "rules": len(components), "rdates": len(rdates)}},
    )
    return RecurrenceDescriptor(
        start=start,
        tz=zone,
        components=tuple(components),
        rdates=tuple(sorted(rdates)),
        exdates=frozenset(exdates),
    )
