# /scanrules/domain/rule_functions.py
from __future__ import annotations

import logging
from datetime import datetime

from scanrules.domain import host_evaluator
from scanrules.domain.recurrence_scheduler import next_time_from_string
from scanrules.domain.severity import matches_override
from scanrules.domain.text_match import regexp_matches
from scanrules.ports.settings_store import SettingsStorePort

LOG = logging.getLogger("rule_functions")

DEFAULT_MAX_HOSTS = 4095
MAX_HOSTS_SETTING = "max_hosts"


def resolve_max_hosts(store: SettingsStorePort, default: int = DEFAULT_MAX_HOSTS) -> int:
    """Read the max-hosts cap; absent, non-numeric or negative values fall back to ``default``."""
    raw = store.get(MAX_HOSTS_SETTING)
    if raw is None:
        return default
    try:
        value = int(str(raw).strip())
    except ValueError:
        LOG.warning("max_hosts.invalid", extra={"extra": {"value": raw, "default": default}})
        return default
    if value < 0:
        LOG.warning("max_hosts.negative", extra={"extra": {"value": value, "default": default}})
        return default
    return value


# ==== Service ====


class RuleFunctions:
    """Boundary for the rule functions: null handling and cap resolution.

    Each call resolves the cap afresh from the injected settings store;
    nothing is cached between calls.
    """

    def __init__(self, settings_store: SettingsStorePort, *, default_max_hosts: int = DEFAULT_MAX_HOSTS) -> None:
        self.settings_store = settings_store
        self.default_max_hosts = default_max_hosts

    def _max_hosts(self) -> int:
        return resolve_max_hosts(self.settings_store, self.default_max_hosts)

    def hosts_contains(self, hosts: str | None, find_host: str | None) -> bool:
        if hosts is None or find_host is None:
            return False
        return host_evaluator.contains(hosts, find_host, self._max_hosts())

    def max_hosts(self, hosts: str | None, exclude: str | None) -> int:
        if hosts is None:
            return 0
        return host_evaluator.count(hosts, exclude or "", self._max_hosts())

    def next_time_ical(
        self,
        ical: str | None,
        zone: str | None = None,
        periods_offset: int = 0,
        now: datetime | None = None,
    ) -> datetime | None:
        if ical is None:
            return None
        return next_time_from_string(ical, zone, periods_offset, now)

    @staticmethod
    def severity_matches_ov(value: float | None, threshold: float | None) -> bool:
        return matches_override(value, threshold)

    @staticmethod
    def regexp(string: str | None, pattern: str | None) -> bool:
        return regexp_matches(string, pattern)
