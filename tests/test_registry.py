from datetime import datetime, timezone

from fastapi.testclient import TestClient

from transit_alerts.app import create_app
from transit_alerts.services.cache_store import FileCacheStore
from transit_alerts.services.ephem import J2000
from transit_alerts.services.registry import EngineRegistry, provider_store_key
from transit_alerts.settings import EngineSettings

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _settings(**kw):
    kw.setdefault("notify_log_enabled", False)
    return EngineSettings(**kw)


def test_provider_map_is_bounded():
    reg = EngineRegistry(_settings(registry_max_providers=2))
    first = reg.provider(1.0)
    reg.provider(2.0)
    reg.provider(3.0)
    assert reg.stats()["providers"] == 2
    assert reg.provider(1.0) is not first


def test_alert_engine_map_is_bounded():
    reg = EngineRegistry(_settings(registry_max_charts=3))
    for i in range(10):
        reg.alert_engine(f"chart-{i}")
    assert reg.stats()["charts"] == 3
    assert reg.alert_engine("chart-9") is reg.alert_engine("chart-9")


def test_provider_cache_survives_restart(tmp_path):
    settings = _settings(cache_dir=str(tmp_path))
    reg = EngineRegistry(settings)
    reg.provider(24.0).positions(J2000)
    reg.close()

    restored = EngineRegistry(settings).provider(24.0)
    assert len(restored.cache) == 1


def test_evicted_provider_is_saved(tmp_path):
    reg = EngineRegistry(_settings(cache_dir=str(tmp_path), registry_max_providers=1))
    reg.provider(24.0).positions(J2000)
    reg.provider(23.0)
    assert FileCacheStore(tmp_path).load(provider_store_key(24.0)) is not None


def test_corrupt_persisted_cache_starts_empty(tmp_path):
    FileCacheStore(tmp_path).save(provider_store_key(24.0), b"[1, 2]")
    provider = EngineRegistry(_settings(cache_dir=str(tmp_path))).provider(24.0)
    assert len(provider.cache) == 0


def test_app_shutdown_persists_caches(tmp_path):
    settings = _settings(cache_dir=str(tmp_path), default_ayanamsa=24.0)
    app = create_app(settings, EngineRegistry(settings, clock=lambda: NOW))
    with TestClient(app) as client:
        r = client.get("/v1/transits/positions", params={"at": "2000-01-01T12:00:00+00:00"})
        assert r.status_code == 200, r.text
    assert FileCacheStore(tmp_path).load(provider_store_key(24.0)) is not None
