from datetime import datetime, timezone

import requests

from transit_alerts.services import notifications
from transit_alerts.services.cache_store import FileCacheStore, InMemoryCacheStore
from transit_alerts.services.models import Alert, TransitEvent
from transit_alerts.settings import EngineSettings

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _alert():
    event = TransitEvent(kind="critical_period", timestamp=NOW, body="Saturn", sign=10, intensity=82.0)
    return Alert(id="alert_1_abc", type="critical_period", priority="critical", message="m", timestamp=NOW, event=event)


class _Resp:
    def __init__(self, status):
        self.status_code = status
        self.ok = status < 400


def test_webhook_posts_alert_json(monkeypatch):
    seen = {}

    def fake_post(url, json=None, headers=None, timeout=None):
        seen.update(url=url, json=json, timeout=timeout)
        return _Resp(202)

    monkeypatch.setattr(notifications.requests, "post", fake_post)
    sink = notifications.WebhookNotificationSink("http://hooks.local/alerts", timeout=2.0)
    assert sink.send(_alert())
    assert seen["json"]["id"] == "alert_1_abc"
    assert seen["json"]["event"]["type"] == "critical_period"
    assert seen["timeout"] == 2.0


def test_webhook_failures_return_false(monkeypatch):
    sink = notifications.WebhookNotificationSink("http://hooks.local/alerts")
    monkeypatch.setattr(notifications.requests, "post", lambda *a, **k: _Resp(500))
    assert not sink.send(_alert())

    def boom(*a, **k):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(notifications.requests, "post", boom)
    assert not sink.send(_alert())


def test_manager_succeeds_if_any_sink_accepts():
    class Broken:
        def send(self, alert):
            raise RuntimeError("down")

    manager = notifications.NotificationManager([Broken(), notifications.LoggingNotificationSink()])
    assert manager.send(_alert())
    assert not notifications.NotificationManager([Broken()]).send(_alert())


def test_build_notifier_honours_channel_flags():
    both = EngineSettings(notify_webhook_enabled=True, webhook_url="http://hooks.local/a")
    assert len(notifications.build_notifier(both).sinks) == 2
    none = EngineSettings(notify_log_enabled=False)
    assert notifications.build_notifier(none).sinks == []


def test_cache_stores(tmp_path):
    mem = InMemoryCacheStore()
    assert mem.load("chart") is None
    mem.save("chart", b"{}")
    assert mem.load("chart") == b"{}"

    disk = FileCacheStore(tmp_path / "cache")
    assert disk.load("chart/1") is None
    disk.save("chart/1", b'{"version":1}')
    assert disk.load("chart/1") == b'{"version":1}'
    assert list((tmp_path / "cache").iterdir())[0].name == "chart_1.json"
