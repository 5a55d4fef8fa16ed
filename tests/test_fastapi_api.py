# tests/test_fastapi_api.py
from fastapi.testclient import TestClient

from scanrules.adapters.api.fastapi_app import app
from scanrules.config import settings
from tests.fakes import ical

client = TestClient(app)


def test_health():
    r = client.get("/health")
    assert r.status_code == 200 and r.json() == {"status": "ok"}


def test_hosts_contains():
    r = client.post("/hosts/contains", json={"hosts": "10.0.0.0/30", "host": "10.0.0.2"})
    assert r.status_code == 200 and r.json()["result"] is True
    r = client.post("/hosts/contains", json={"hosts": "10.0.0.0/30", "host": "10.0.0.5"})
    assert r.json()["result"] is False
    r = client.post("/hosts/contains", json={"hosts": None, "host": "10.0.0.5"})
    assert r.json()["result"] is False


def test_hosts_count_is_capped():
    r = client.post("/hosts/count", json={"hosts": "10.0.0.1-10.0.0.5,10.0.0.3"})
    assert r.json()["result"] == 5
    r = client.post("/hosts/count", json={"hosts": "0.0.0.0/0", "exclude": None})
    assert r.json()["result"] == settings.MAX_HOSTS


def test_schedule_next_one_shot():
    r = client.post("/schedule/next", json={"ical": ical("DTSTART:20990101T000000Z")})
    assert r.status_code == 200
    assert r.json() == {"next_time": "2099-01-01T00:00:00+00:00", "epoch": 4070908800}


def test_schedule_next_without_calendar():
    r = client.post("/schedule/next", json={"ical": None})
    assert r.json() == {"next_time": None, "epoch": 0}


def test_schedule_rejects_negative_offset():
    r = client.post("/schedule/next", json={"ical": "x", "periods_offset": -1})
    assert r.status_code == 422


def test_severity_and_regexp():
    r = client.post("/severity/matches", json={"value": 5, "threshold": -1})
    assert r.json()["result"] is False
    r = client.post("/severity/matches", json={"value": 7.5})
    assert r.json()["result"] is True
    r = client.post("/regexp", json={"string": "OpenSSH_8.9", "pattern": r"OpenSSH_\d"})
    assert r.json()["result"] is True


def test_api_key_enforced(monkeypatch):
    monkeypatch.setattr(settings, "API_KEY", "secret")
    r = client.post("/hosts/count", json={"hosts": "10.0.0.1"})
    assert r.status_code == 401
    r = client.post("/hosts/count", json={"hosts": "10.0.0.1"}, headers={"x-api-key": "secret"})
    assert r.status_code == 200 and r.json()["result"] == 1
