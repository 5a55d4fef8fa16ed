# /scanrules/adapters/system/redis_settings_store.py
from __future__ import annotations

import logging

import redis

LOG = logging.getLogger("adapter.settings.redis")


class RedisSettingsStore:
    """Settings kept as fields of one Redis hash (``meta`` by default)."""

    def __init__(self, redis_url: str, key: str = "meta") -> None:
        self._r = redis.Redis.from_url(redis_url, decode_responses=True)
        self._key = key

    def get(self, name: str) -> str | None:
        value = self._r.hget(self._key, name)
        LOG.debug("settings.get", extra={"extra": {"key": self._key, "name": name, "found": value is not None}})
        return value
