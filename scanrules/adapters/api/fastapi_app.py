# /scanrules/adapters/api/fastapi_app.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Header, HTTPException
from pydantic import BaseModel, Field

from scanrules.adapters.system.logging_cfg import configure_logger
from scanrules.adapters.system.redis_settings_store import RedisSettingsStore
from scanrules.adapters.system.static_settings_store import StaticSettingsStore
from scanrules.config import Settings, settings
from scanrules.domain.rule_functions import MAX_HOSTS_SETTING, RuleFunctions
from scanrules.ports.settings_store import SettingsStorePort

LOG = logging.getLogger("adapter.api")
app = FastAPI(title="scanrules")
configure_logger(settings.LOG_LEVEL)

_service: RuleFunctions | None = None


def build_settings_store(cfg: Settings) -> SettingsStorePort:
    if cfg.SETTINGS_BACKEND == "redis":
        return RedisSettingsStore(cfg.REDIS_URL, key=cfg.SETTINGS_KEY)
    return StaticSettingsStore({MAX_HOSTS_SETTING: cfg.MAX_HOSTS})


def _get_service() -> RuleFunctions:
    """Build RuleFunctions on first use, so importing the app needs no Redis."""
    global _service
    if _service is None:
        _service = RuleFunctions(build_settings_store(settings), default_max_hosts=settings.MAX_HOSTS)
    return _service


def _check_key(x_api_key: str | None) -> None:
    if settings.API_KEY and x_api_key != settings.API_KEY:
        raise HTTPException(status_code=401, detail="invalid api key")


class HostsContainsModel(BaseModel):
    hosts: Optional[str] = None
    host: Optional[str] = None


class HostsCountModel(BaseModel):
    hosts: Optional[str] = None
    exclude: Optional[str] = None


class ScheduleModel(BaseModel):
    ical: Optional[str] = None
    timezone: Optional[str] = None
    periods_offset: int = Field(default=0, ge=0)


class SeverityModel(BaseModel):
    value: Optional[float] = None
    threshold: Optional[float] = None


class RegexpModel(BaseModel):
    string: Optional[str] = None
    pattern: Optional[str] = None


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/hosts/contains")
def hosts_contains(payload: HostsContainsModel, x_api_key: str | None = Header(default=None)) -> dict:
    _check_key(x_api_key)
    return {"result": _get_service().hosts_contains(payload.hosts, payload.host)}


@app.post("/hosts/count")
def hosts_count(payload: HostsCountModel, x_api_key: str | None = Header(default=None)) -> dict:
    _check_key(x_api_key)
    svc = _get_service()
    result = svc.max_hosts(payload.hosts, payload.exclude)
    LOG.info("hosts.count", extra={"extra": {"result": result}})
    return {"result": result}


@app.post("/schedule/next")
def schedule_next(payload: ScheduleModel, x_api_key: str | None = Header(default=None)) -> dict:
    _check_key(x_api_key)
    nxt = _get_service().next_time_ical(payload.ical, payload.timezone, payload.periods_offset)
    # epoch 0 means "no next time", as in the integer-returning interface
    return {
        "next_time": nxt.isoformat() if nxt else None,
        "epoch": int(nxt.timestamp()) if nxt else 0,
    }


@app.post("/severity/matches")
def severity_matches(payload: SeverityModel, x_api_key: str | None = Header(default=None)) -> dict:
    _check_key(x_api_key)
    return {"result": RuleFunctions.severity_matches_ov(payload.value, payload.threshold)}


@app.post("/regexp")
def regexp(payload: RegexpModel, x_api_key: str | None = Header(default=None)) -> dict:
    _check_key(x_api_key)
    return {"result": RuleFunctions.regexp(payload.string, payload.pattern)}
