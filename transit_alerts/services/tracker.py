"""Current-position tracking and sampled position series."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional

from .errors import ValidationError, require_finite
from .ephem import CachedEphemeris, to_jd
from .models import EphemerisSnapshot

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PositionSeries:
    """Lazy, restartable run of snapshots from ``start`` to ``end``.

    Each call to ``iter()`` starts again at ``start``; snapshots are computed
    on demand (and cached by the provider).
    """

    def __init__(self, provider: CachedEphemeris, start: datetime, end: datetime, step_days: float) -> None:
        step_days = require_finite(step_days, "step")
        if step_days <= 0:
            raise ValidationError("step must be positive", field="step", value=step_days)
        start_jd, end_jd = to_jd(start), to_jd(end)
        if end_jd < start_jd:
            raise ValidationError("end must not be before start", field="end", value=end.isoformat())
        self.provider = provider
        self.start = start
        self.end = end
        self.step_days = step_days
        self._start_jd = start_jd
        self._end_jd = end_jd

    def __len__(self) -> int:
        return int((self._end_jd - self._start_jd) / self.step_days + 1e-9) + 1

    def __iter__(self) -> Iterator[EphemerisSnapshot]:
        for i in range(len(self)):
            yield self.provider.positions(self._start_jd + i * self.step_days)


class PositionTracker:
    """Owns the provider and the latest "current" snapshot.

    ``clock`` returns an aware UTC datetime; tests inject a fixed one.
    """

    def __init__(self, provider: CachedEphemeris, clock: Callable[[], datetime] = utc_now) -> None:
        self.provider = provider
        self.clock = clock
        self._latest: Optional[EphemerisSnapshot] = None
        self._lock = threading.Lock()

    def refresh(self) -> EphemerisSnapshot:
        snapshot = self.provider.positions_at(self.clock())
        with self._lock:
            self._latest = snapshot
        logger.debug("positions_refreshed", extra={"jd": snapshot.jd})
        return snapshot

    def current_positions(self) -> EphemerisSnapshot:
        with self._lock:
            latest = self._latest
        if latest is None:
            return self.refresh()
        return latest

    def position_series(self, start: datetime, end: datetime, step_days: float = 1.0) -> PositionSeries:
        return PositionSeries(self.provider, start, end, step_days)

    def position_history(
        self,
        start: datetime,
        end: datetime,
        body: str,
        step_days: float = 1.0,
        sidereal: bool = True,
    ) -> List[Dict[str, Any]]:
        """One body's positions over a window, one row per sample."""

        if body not in self.provider.bodies:
            raise ValidationError(f"unknown body {body!r}", field="body", value=body)
        rows = []
        for snap in self.position_series(start, end, step_days):
            pos = (snap.sidereal if sidereal else snap.tropical)[body]
            row = pos.to_dict()
            row["timestamp"] = snap.timestamp.isoformat()
            rows.append(row)
        return rows

    def cache_stats(self) -> Dict[str, Any]:
        return self.provider.cache.stats()
