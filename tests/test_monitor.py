import threading
from datetime import datetime, timezone

from transit_alerts.services.ephem import MeanMotionEphemeris
from transit_alerts.services.monitor import PositionMonitor
from transit_alerts.services.tracker import PositionTracker

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _monitor(**kw):
    tracker = PositionTracker(MeanMotionEphemeris(ayanamsa=24.0), clock=lambda: NOW)
    return PositionMonitor(tracker, **kw)


def test_tick_publishes_to_every_subscriber_in_order():
    monitor = _monitor()
    a, b = monitor.subscribe(), monitor.subscribe()
    monitor.tick()
    monitor.tick()
    assert [a.get_nowait().sequence, a.get_nowait().sequence] == [1, 2]
    assert [b.get_nowait().sequence, b.get_nowait().sequence] == [1, 2]


def test_full_queue_drops_oldest_update():
    monitor = _monitor(queue_size=2)
    q = monitor.subscribe()
    for _ in range(3):
        monitor.tick()
    assert [q.get_nowait().sequence for _ in range(2)] == [2, 3]
    assert monitor.dropped == 1


def test_unsubscribe_stops_delivery():
    monitor = _monitor()
    q = monitor.subscribe()
    assert monitor.unsubscribe(q)
    assert not monitor.unsubscribe(q)
    monitor.tick()
    assert q.empty()
    assert monitor.subscriber_count == 0


def test_start_and_stop_background_thread():
    monitor = _monitor(interval_seconds=0.05)
    q = monitor.subscribe()
    monitor.start()
    try:
        assert monitor.monitoring
        update = q.get(timeout=5)
        assert update.snapshot.timestamp == NOW
    finally:
        monitor.stop(timeout=5)
    assert not monitor.monitoring


class BlockingTracker:
    def __init__(self, tracker):
        self.tracker = tracker
        self.entered = threading.Event()
        self.release = threading.Event()

    def refresh(self):
        self.entered.set()
        self.release.wait(5)
        return self.tracker.refresh()


def test_stop_lets_running_tick_finish():
    tracker = BlockingTracker(PositionTracker(MeanMotionEphemeris(ayanamsa=24.0), clock=lambda: NOW))
    monitor = PositionMonitor(tracker, interval_seconds=60)
    q = monitor.subscribe()
    monitor.start()
    assert tracker.entered.wait(5)

    stopper = threading.Thread(target=monitor.stop, kwargs={"timeout": 5})
    stopper.start()
    stopper.join(0.2)
    assert stopper.is_alive()
    assert q.empty()

    tracker.release.set()
    stopper.join(5)
    assert not stopper.is_alive()
    assert q.get_nowait().sequence == 1
    assert q.empty()
    assert not monitor.monitoring
