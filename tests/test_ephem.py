import json
import math
from datetime import datetime, timezone

import pytest

from transit_alerts.services.ephem import J2000, MeanMotionEphemeris, from_jd, to_jd
from transit_alerts.services.errors import ValidationError
from transit_alerts.services.position_cache import PositionCache


def test_julian_day_round_trip():
    noon = datetime(2000, 1, 1, 12, tzinfo=timezone.utc)
    assert to_jd(noon) == J2000
    assert from_jd(J2000) == noon


def test_naive_datetime_rejected():
    with pytest.raises(ValidationError):
        to_jd(datetime(2000, 1, 1, 12))


def test_mean_longitudes_at_epoch():
    eph = MeanMotionEphemeris(ayanamsa=24.0)
    snap = eph.positions(J2000)
    assert snap.tropical["Sun"].longitude == pytest.approx(280.460)
    assert snap.sidereal["Sun"].longitude == pytest.approx(256.460)
    rahu = snap.tropical["Rahu"].longitude
    assert snap.tropical["Ketu"].longitude == pytest.approx((rahu + 180.0) % 360.0)
    assert snap.tropical["Rahu"].retrograde
    assert set(snap.sidereal) == set(eph.bodies)
    for pos in snap.sidereal.values():
        assert 0.0 <= pos.longitude < 360.0


def test_positions_are_cached_by_rounded_key():
    eph = MeanMotionEphemeris(ayanamsa=24.0, cache=PositionCache(capacity=8))
    first = eph.positions(J2000)
    again = eph.positions(J2000 + 1e-8)
    assert again is first
    assert eph.cache.stats()["hits"] == 1


@pytest.mark.parametrize("bad", [math.nan, math.inf, "2451545", None])
def test_invalid_time_rejected(bad):
    with pytest.raises(ValidationError):
        MeanMotionEphemeris(ayanamsa=24.0).positions(bad)


def test_cache_export_and_restore():
    source = MeanMotionEphemeris(ayanamsa=24.0)
    for offset in range(3):
        source.positions(J2000 + offset)
    blob = source.export_cache()

    target = MeanMotionEphemeris(ayanamsa=24.0)
    assert target.import_cache(blob) == 3
    assert len(target.cache) == 3
    restored = target.positions(J2000 + 1)
    assert restored.tropical["Moon"].longitude == pytest.approx(source.positions(J2000 + 1).tropical["Moon"].longitude)
    assert target.cache.stats()["hits"] == 1


def test_cache_import_rejects_garbage_and_skips_other_versions():
    eph = MeanMotionEphemeris(ayanamsa=24.0)
    with pytest.raises(ValidationError):
        eph.import_cache(b"not json")
    assert eph.import_cache(json.dumps({"version": 99, "entries": []}).encode()) == 0


@pytest.mark.parametrize(
    "blob",
    [
        b"[1, 2]",
        json.dumps({"version": 1, "engine": "mean-motion-1", "entries": [[2451545.0, {"Sun": [1, 2]}]]}).encode(),
        json.dumps({"version": 1, "engine": "mean-motion-1", "entries": [[2451545.0, {"Sun": [400, 0, 1]}]]}).encode(),
        json.dumps({"version": 1, "engine": "mean-motion-1", "entries": 5}).encode(),
    ],
)
def test_cache_import_rejects_malformed_blobs(blob):
    eph = MeanMotionEphemeris(ayanamsa=24.0)
    with pytest.raises(ValidationError):
        eph.import_cache(blob)
    assert len(eph.cache) == 0
