"""Transit analysis orchestrator.

Ties the tracker, monitor, scoring and alert engine together for one natal
chart. Lifecycle: ``UNINITIALIZED -> INITIALIZED -> SHUTDOWN``; queries work
before ``initialize()`` but every call after ``shutdown()`` raises
:class:`LifecycleError`.
"""

from __future__ import annotations

import bisect
import logging
import math
import threading
from dataclasses import replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..settings import EngineSettings
from .alerts import AlertEngine, AlertThresholds
from .aspects import find_current_aspects
from .cache_store import CacheStore
from .constants import MAJOR_TRANSIT_BODIES
from .ephem import UNIX_EPOCH_JD, CachedEphemeris, MeanMotionEphemeris, from_jd, to_jd
from .errors import CalculationError, LifecycleError, ValidationError, require_finite
from .events import aspect_set, detect_aspect_events, diff_aspect_sets
from .impact import CRITICAL_INTENSITY, analyze_transit_impact, identify_critical, overall_influence
from .models import ActiveTransit, Alert, NatalChart, TransitEvent, TransitPeriod
from .monitor import PositionMonitor
from .notifications import NotificationSink, build_notifier
from .periods import find_transit_periods, segment_series, sign_change_events
from .position_cache import PositionCache
from .tracker import PositionTracker, utc_now

logger = logging.getLogger(__name__)

MIN_DAYS_AHEAD = 1
MAX_DAYS_AHEAD = 3650

# Active-transit lookup samples this many points either side of "now",
# over the time the body needs to cross one full sign, on a fixed time grid.
ACTIVE_SAMPLES_PER_SIDE = 120


def grid_floor(when: datetime, step_days: float) -> datetime:
    """Latest instant at or before ``when`` on the ``step_days`` grid from the Unix epoch."""

    jd = to_jd(when)
    return from_jd(UNIX_EPOCH_JD + math.floor((jd - UNIX_EPOCH_JD) / step_days) * step_days)


class EngineState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    SHUTDOWN = "shutdown"


class TransitAnalysisOrchestrator:
    def __init__(
        self,
        chart: NatalChart,
        settings: Optional[EngineSettings] = None,
        provider: Optional[CachedEphemeris] = None,
        clock: Callable[[], datetime] = utc_now,
        store: Optional[CacheStore] = None,
        sink: Optional[NotificationSink] = None,
        alert_engine: Optional[AlertEngine] = None,
    ) -> None:
        if not isinstance(chart, NatalChart):
            raise ValidationError("a NatalChart is required", field="chart", value=chart)
        self.chart = chart
        self.settings = settings or EngineSettings()
        s = self.settings
        if provider is None:
            cache = PositionCache(capacity=s.cache_capacity, ttl_seconds=s.cache_ttl_seconds)
            provider = MeanMotionEphemeris(chart.ayanamsa, cache=cache, key_decimals=s.cache_key_decimals)
        self.provider = provider
        self.clock = clock
        self.tracker = PositionTracker(provider, clock=clock)
        self.monitor = PositionMonitor(
            self.tracker,
            interval_seconds=s.poll_interval_seconds,
            queue_size=s.subscriber_queue_size,
        )
        self.store = store
        self.alert_engine = alert_engine or AlertEngine(
            sink=sink if sink is not None else build_notifier(s),
            thresholds=AlertThresholds(s.immediate_days, s.soon_days, s.upcoming_days, s.advance_days),
        )
        self.orb = s.default_orb
        self.state = EngineState.UNINITIALIZED
        self._lock = threading.Lock()

    # Lifecycle -----------------------------------------------------------

    def _require_open(self) -> None:
        if self.state is EngineState.SHUTDOWN:
            raise LifecycleError("transit engine has been shut down")

    def initialize(self) -> None:
        """Restore the persisted cache and start monitoring; repeat calls are no-ops."""

        with self._lock:
            self._require_open()
            if self.state is EngineState.INITIALIZED:
                logger.info("engine_already_initialized", extra={"chart_id": self.chart.id})
                return
            if self.store is not None:
                blob = self.store.load(self.chart.id)
                if blob is not None:
                    restored = self.provider.import_cache(blob)
                    logger.info("ephemeris_cache_restored", extra={"chart_id": self.chart.id, "entries": restored})
            self.monitor.start()
            self.state = EngineState.INITIALIZED
        logger.info("engine_initialized", extra={"chart_id": self.chart.id})

    def shutdown(self) -> None:
        with self._lock:
            if self.state is EngineState.SHUTDOWN:
                return
            self.monitor.stop()
            if self.store is not None:
                self.store.save(self.chart.id, self.provider.export_cache())
            self.state = EngineState.SHUTDOWN
        logger.info("engine_shutdown", extra={"chart_id": self.chart.id})

    def subscribe(self):
        self._require_open()
        return self.monitor.subscribe()

    # Current analysis ----------------------------------------------------

    def _body_periods(self, body: str, now: datetime) -> Tuple[List[TransitPeriod], int]:
        """Sign periods around ``now`` and the index of the one containing it."""

        speed = abs(self.provider.mean_speed(body))
        half = 30.0 / speed
        step = half / ACTIVE_SAMPLES_PER_SIDE
        start = grid_floor(now - timedelta(days=half), step)
        series = self.tracker.position_series(start, now + timedelta(days=half), step)
        samples = [(snap.timestamp, snap.sidereal[body].longitude) for snap in series]
        times = [t for t, _ in samples]
        i = bisect.bisect_left(times, now)
        if i == len(times) or times[i] != now:
            samples.insert(i, (now, self.provider.positions_at(now).sidereal[body].longitude))
        periods = find_transit_periods(samples, body)
        for i, p in enumerate(periods):
            if p.contains(now):
                return periods, i
        raise CalculationError(f"no sign period found for {body}", body=body)

    def _analyse(self, period: TransitPeriod) -> ActiveTransit:
        try:
            analysis = analyze_transit_impact(period, self.chart, self.orb)
        except CalculationError as exc:
            logger.warning("active_transit_analysis_failed", extra={"body": period.body, "error": str(exc)})
            analysis = None
        return ActiveTransit(period=period, analysis=analysis)

    def _active(self, now: datetime) -> List[Tuple[ActiveTransit, Optional[TransitPeriod]]]:
        out = []
        for body in self.provider.bodies:
            periods, i = self._body_periods(body, now)
            following = periods[i + 1] if i + 1 < len(periods) else None
            out.append((self._analyse(periods[i]), following))
        return out

    def get_active_transits(self) -> List[ActiveTransit]:
        """The sign period each body is in now, with impact analysis.

        A body whose analysis fails keeps its period with ``analysis=None``.
        """

        self._require_open()
        return [t for t, _ in self._active(self.clock())]

    def get_current_transit_analysis(self) -> Dict[str, Any]:
        self._require_open()
        snapshot = self.tracker.current_positions()
        aspects = find_current_aspects(snapshot.sidereal, self.chart, self.orb)
        transits = self.get_active_transits()
        return {
            "timestamp": self.clock().isoformat(),
            "chart_id": self.chart.id,
            "positions": snapshot.to_dict(),
            "active_aspects": [a.to_dict() for a in aspects],
            "active_transits": [t.to_dict() for t in transits],
            "overall_influence": round(overall_influence(transits), 2),
            "critical_periods": identify_critical(transits),
        }

    # Predictions ---------------------------------------------------------

    def generate_transit_predictions(self, days_ahead: float = 365) -> Dict[str, Any]:
        """Calendar of periods and events over the next ``days_ahead`` days.

        Alerts are previewed, not dispatched. Any analysis failure here fails
        the whole request.
        """

        self._require_open()
        days = require_finite(days_ahead, "days_ahead")
        if not MIN_DAYS_AHEAD <= days <= MAX_DAYS_AHEAD:
            raise ValidationError(
                f"days_ahead must be within [{MIN_DAYS_AHEAD}, {MAX_DAYS_AHEAD}]",
                field="days_ahead",
                value=days_ahead,
            )
        # Align to the cache key grid so the first sample falls exactly on start.
        start = from_jd(self.provider.cache_key(to_jd(self.clock())))
        end = start + timedelta(days=days)
        series = self.tracker.position_series(start, end, self.settings.series_step_days)
        bodies = list(self.provider.bodies)

        entries: List[Tuple[datetime, Dict[str, Any]]] = []
        events: List[TransitEvent] = []
        critical = 0
        major: List[Dict[str, Any]] = []
        for body, periods in segment_series(series, bodies, window_end=end).items():
            for p in periods:
                impact = analyze_transit_impact(p, self.chart, self.orb)
                row = p.to_dict()
                row.update({"type": "transit_period", "timestamp": p.start.isoformat(), "analysis": impact.to_dict()})
                entries.append((p.start, row))
                if body in MAJOR_TRANSIT_BODIES:
                    major.append(row)
                if impact.intensity > CRITICAL_INTENSITY:
                    critical += 1
                    events.append(
                        TransitEvent(
                            kind="critical_period",
                            timestamp=p.start,
                            body=body,
                            sign=p.sign,
                            intensity=round(impact.intensity, 2),
                            payload={"end": p.end.isoformat()},
                        )
                    )
            events.extend(sign_change_events(periods))
        events.extend(detect_aspect_events(series, self.chart, self.orb))
        entries.extend((e.timestamp, e.to_dict()) for e in events)
        entries.sort(key=lambda x: x[0])
        calendar = [row for _, row in entries]

        alerts = self.alert_engine.evaluate(events, start)
        kinds = [e.kind for e in events]
        summary = {
            "total_events": len(calendar),
            "transit_periods": len(calendar) - len(events),
            "aspect_formations": kinds.count("aspect_formation"),
            "aspect_separations": kinds.count("aspect_separation"),
            "sign_changes": kinds.count("sign_entry"),
            "critical_periods": critical,
            "major_transits": sorted(major, key=lambda r: r["start"]),
            "alert_count": len(alerts),
        }
        logger.info(
            "predictions_generated",
            extra={"chart_id": self.chart.id, "days_ahead": days, "events": len(calendar)},
        )
        return {
            "start": start.isoformat(),
            "end": end.isoformat(),
            "calendar": calendar,
            "alerts": [a.to_dict() for a in alerts],
            "summary": summary,
        }

    # Realtime ------------------------------------------------------------

    def realtime_events(self, now: datetime) -> List[TransitEvent]:
        """Events derived from the sky at ``now``.

        * ``critical_period`` for each active transit above the critical
          intensity, anchored at the period start.
        * ``sign_entry`` for each body's next sign, at the first sample in it.
        * ``aspect_formation`` / ``aspect_separation`` for aspects that changed
          between the last two ``series_step_days`` grid samples, anchored at
          the later one. An aspect that stays in orb produces no further events.
        """

        events: List[TransitEvent] = []
        for transit, following in self._active(now):
            p = transit.period
            if transit.intensity is not None and transit.intensity > CRITICAL_INTENSITY:
                events.append(
                    TransitEvent(
                        kind="critical_period",
                        timestamp=now,
                        body=p.body,
                        sign=p.sign,
                        intensity=round(transit.intensity, 2),
                        anchor=p.start,
                        payload={"start": p.start.isoformat(), "end": p.end.isoformat()},
                    )
                )
            if following is not None:
                events.append(
                    TransitEvent(
                        kind="sign_entry",
                        timestamp=following.start,
                        body=following.body,
                        sign=following.sign,
                        payload={"previous_sign": p.sign},
                    )
                )
        step = self.settings.series_step_days
        sample = grid_floor(now, step)
        before = aspect_set(self.provider.positions_at(sample - timedelta(days=step)), self.chart, self.orb)
        after = aspect_set(self.provider.positions_at(sample), self.chart, self.orb)
        events.extend(replace(e, anchor=sample) for e in diff_aspect_sets(before, after, now))
        return events

    def process_realtime_alerts(self) -> List[Alert]:
        """Dispatch alerts for the current sky; already-delivered events are skipped."""

        self._require_open()
        now = self.clock()
        alerts = self.alert_engine.process(self.realtime_events(now), now)
        logger.info("realtime_alerts_processed", extra={"chart_id": self.chart.id, "alerts": len(alerts)})
        return alerts

    def get_system_status(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "initialized": self.state is EngineState.INITIALIZED,
            "monitoring": self.monitor.monitoring,
            "subscribers": self.monitor.subscriber_count,
            "active_alerts": len(self.alert_engine.active_alerts()),
            "cache": self.tracker.cache_stats(),
            "alerts": self.alert_engine.stats(),
        }
