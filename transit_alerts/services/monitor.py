"""Background refresh of the tracker snapshot with queue-based fan-out.

Every subscriber owns a bounded ``queue.Queue``. When a subscriber falls
behind and its queue is full, the oldest pending update is dropped to make
room for the new one.
"""

from __future__ import annotations

import itertools
import logging
import queue
import threading
from typing import List, Optional

from .models import PositionUpdate
from .tracker import PositionTracker

logger = logging.getLogger(__name__)


class PositionMonitor:
    def __init__(
        self,
        tracker: PositionTracker,
        interval_seconds: float = 60.0,
        queue_size: int = 16,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if queue_size < 1:
            raise ValueError("queue_size must be at least 1")
        self.tracker = tracker
        self.interval_seconds = interval_seconds
        self.queue_size = queue_size
        self._subscribers: List["queue.Queue[PositionUpdate]"] = []
        self._lock = threading.Lock()
        # Serialises ticks so stop() can wait for one in flight.
        self._tick_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._sequence = itertools.count(1)
        self.dropped = 0

    # Subscribers ---------------------------------------------------------

    def subscribe(self) -> "queue.Queue[PositionUpdate]":
        q: "queue.Queue[PositionUpdate]" = queue.Queue(maxsize=self.queue_size)
        with self._lock:
            self._subscribers.append(q)
        return q

    def unsubscribe(self, q: "queue.Queue[PositionUpdate]") -> bool:
        with self._lock:
            try:
                self._subscribers.remove(q)
            except ValueError:
                return False
        return True

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def _publish(self, update: PositionUpdate) -> None:
        with self._lock:
            targets = list(self._subscribers)
        for q in targets:
            while True:
                try:
                    q.put_nowait(update)
                    break
                except queue.Full:
                    try:
                        q.get_nowait()
                    except queue.Empty:
                        continue
                    self.dropped += 1
                    logger.warning("monitor_update_dropped", extra={"sequence": update.sequence})

    # Timer ---------------------------------------------------------------

    @property
    def monitoring(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> PositionUpdate:
        """Refresh the tracker once and publish the new snapshot."""

        with self._tick_lock:
            snapshot = self.tracker.refresh()
            update = PositionUpdate(sequence=next(self._sequence), snapshot=snapshot)
            self._publish(update)
        return update

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("monitor_tick_failed")
            self._stop.wait(self.interval_seconds)

    def start(self) -> None:
        if self.monitoring:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="position-monitor", daemon=True)
        self._thread.start()
        logger.info("monitor_started", extra={"interval_seconds": self.interval_seconds})

    def stop(self, timeout: Optional[float] = None) -> None:
        """Cancel future ticks; a tick already running is allowed to finish."""

        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None
        logger.info("monitor_stopped")
