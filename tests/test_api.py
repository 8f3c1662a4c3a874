from datetime import datetime, timezone

from fastapi.testclient import TestClient

from transit_alerts.app import create_app
from transit_alerts.services.registry import EngineRegistry
from transit_alerts.settings import EngineSettings

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


class RecordingSink:
    def __init__(self):
        self.sent = []

    def send(self, alert):
        self.sent.append(alert)
        return True


SETTINGS = EngineSettings(poll_interval_seconds=3600, notify_log_enabled=False, default_ayanamsa=24.0)
SINK = RecordingSink()
client = TestClient(create_app(SETTINGS, EngineRegistry(SETTINGS, clock=lambda: NOW, sink=SINK)))


def _chart(chart_id="api-1", houses=None):
    return {
        "id": chart_id,
        "planets": {"Sun": 10.0, "Moon": 50.47, "Mars": 200.0},
        "houses": houses if houses is not None else [i * 30.0 for i in range(12)],
    }


def test_health():
    r = client.get("/__health")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_positions_at_epoch():
    r = client.get("/v1/transits/positions", params={"at": "2000-01-01T12:00:00+00:00", "ayanamsa": 0})
    assert r.status_code == 200, r.text
    data = r.json()
    assert abs(data["tropical"]["Sun"]["lon"] - 280.46) < 1e-6
    assert data["nakshatras"]["Sun"]["name"]


def test_positions_need_timezone():
    r = client.get("/v1/transits/positions", params={"at": "2000-01-01T12:00:00"})
    assert r.status_code == 422
    assert "timezone" in r.json()["detail"]


def test_current_transits():
    r = client.post("/v1/transits/current", json={"chart": _chart()})
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["chart_id"] == "api-1"
    assert len(data["active_transits"]) == 9
    assert 0 <= data["overall_influence"] <= 100


def test_malformed_chart_rejected():
    r = client.post("/v1/transits/current", json={"chart": _chart(houses=[0.0] * 11)})
    assert r.status_code == 422
    assert r.json()["field"] == "houses"


def test_predictions_window():
    r = client.post("/v1/transits/predictions", json={"chart": _chart(), "days_ahead": 0})
    assert r.status_code == 422
    r = client.post("/v1/transits/predictions", json={"chart": _chart(), "days_ahead": 14})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["summary"]["total_events"] == len(body["calendar"])


def test_realtime_alerts_deduplicated_across_requests():
    first = client.post("/v1/transits/alerts/realtime", json={"chart": _chart("api-rt")})
    assert first.status_code == 200, first.text
    second = client.post("/v1/transits/alerts/realtime", json={"chart": _chart("api-rt")})
    assert second.json()["alerts"] == []
    assert len([a for a in SINK.sent if a.id in {x["id"] for x in first.json()["alerts"]}]) == len(first.json()["alerts"])
