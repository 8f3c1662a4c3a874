from datetime import datetime, timedelta, timezone

import pytest

from transit_alerts.services.ephem import MeanMotionEphemeris
from transit_alerts.services.errors import ValidationError
from transit_alerts.services.tracker import PositionTracker

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


class MovableClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


def _tracker(clock=None):
    return PositionTracker(MeanMotionEphemeris(ayanamsa=24.0), clock=clock or MovableClock(NOW))


def test_series_is_finite_and_restartable():
    series = _tracker().position_series(NOW, NOW + timedelta(days=10), 1)
    assert len(series) == 11
    first = [s.timestamp for s in series]
    second = [s.timestamp for s in series]
    assert first == second
    assert first[0] == NOW and first[-1] == NOW + timedelta(days=10)


def test_series_validation():
    tracker = _tracker()
    with pytest.raises(ValidationError):
        tracker.position_series(NOW, NOW - timedelta(days=1), 1)
    with pytest.raises(ValidationError):
        tracker.position_series(NOW, NOW + timedelta(days=1), 0)
    with pytest.raises(ValidationError):
        tracker.position_series(NOW, NOW + timedelta(days=1), -2)


def test_single_instant_series():
    assert len(_tracker().position_series(NOW, NOW, 1)) == 1


def test_current_positions_follow_refresh():
    clock = MovableClock(NOW)
    tracker = _tracker(clock)
    first = tracker.current_positions()
    assert tracker.current_positions() is first
    clock.now = NOW + timedelta(hours=6)
    assert tracker.current_positions() is first
    refreshed = tracker.refresh()
    assert refreshed.jd == pytest.approx(first.jd + 0.25)
    assert tracker.current_positions() is refreshed


def test_position_history_for_one_body():
    rows = _tracker().position_history(NOW, NOW + timedelta(days=3), "Moon")
    assert len(rows) == 4
    assert {"lon", "sign", "timestamp"} <= set(rows[0])
    with pytest.raises(ValidationError):
        _tracker().position_history(NOW, NOW + timedelta(days=3), "Pluto")


def test_cache_stats_exposed():
    tracker = _tracker()
    tracker.current_positions()
    assert tracker.cache_stats()["size"] == 1
