"""Process-wide registry of shared engine state for the HTTP layer.

Requests are stateless, but the ephemeris cache (per ayanamsa) and the alert
de-duplication state (per chart) must outlive a single request. Both maps are
bounded LRUs keyed by client input and protected by a lock for concurrent
access from worker threads. With ``cache_dir`` set, a provider's cache is
restored when it is created and saved when it is evicted or on ``close()``.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Optional

from cachetools import LRUCache

from ..settings import EngineSettings
from .alerts import AlertEngine, AlertThresholds
from .cache_store import CacheStore, FileCacheStore
from .ephem import CachedEphemeris, MeanMotionEphemeris
from .errors import ValidationError
from .models import NatalChart
from .notifications import NotificationSink, build_notifier
from .position_cache import PositionCache
from .tracker import utc_now
from .transits_engine import TransitAnalysisOrchestrator

logger = logging.getLogger(__name__)


class _EvictingLRU(LRUCache):
    def __init__(self, maxsize: int, on_evict: Callable[[object, object], None]) -> None:
        super().__init__(maxsize=maxsize)
        self._on_evict = on_evict

    def popitem(self):
        key, value = super().popitem()
        self._on_evict(key, value)
        return key, value


def provider_store_key(ayanamsa: float) -> str:
    return f"ephemeris-{float(ayanamsa)!r}"


class EngineRegistry:
    def __init__(
        self,
        settings: EngineSettings,
        clock: Callable[[], datetime] = utc_now,
        sink: Optional[NotificationSink] = None,
        store: Optional[CacheStore] = None,
    ) -> None:
        self.settings = settings
        self.clock = clock
        self.sink = sink if sink is not None else build_notifier(settings)
        if store is None and settings.cache_dir:
            store = FileCacheStore(settings.cache_dir)
        self.store = store
        self._providers = _EvictingLRU(settings.registry_max_providers, self._save_provider)
        self._alert_engines = LRUCache(maxsize=settings.registry_max_charts)
        self._lock = threading.Lock()

    def _save_provider(self, ayanamsa, provider: CachedEphemeris) -> None:
        if self.store is None:
            return
        self.store.save(provider_store_key(ayanamsa), provider.export_cache())
        logger.info("ephemeris_cache_saved", extra={"ayanamsa": ayanamsa, "entries": len(provider.cache)})

    def _restore_provider(self, ayanamsa: float, provider: CachedEphemeris) -> None:
        if self.store is None:
            return
        blob = self.store.load(provider_store_key(ayanamsa))
        if blob is None:
            return
        try:
            restored = provider.import_cache(blob)
        except ValidationError as exc:
            logger.warning("ephemeris_cache_restore_failed", extra={"ayanamsa": ayanamsa, "error": str(exc)})
            return
        logger.info("ephemeris_cache_restored", extra={"ayanamsa": ayanamsa, "entries": restored})

    def provider(self, ayanamsa: float) -> CachedEphemeris:
        s = self.settings
        with self._lock:
            p = self._providers.get(ayanamsa)
            if p is None:
                cache = PositionCache(capacity=s.cache_capacity, ttl_seconds=s.cache_ttl_seconds)
                p = MeanMotionEphemeris(ayanamsa, cache=cache, key_decimals=s.cache_key_decimals)
                self._restore_provider(ayanamsa, p)
                self._providers[ayanamsa] = p
            return p

    def alert_engine(self, chart_id: str) -> AlertEngine:
        s = self.settings
        with self._lock:
            engine = self._alert_engines.get(chart_id)
            if engine is None:
                engine = AlertEngine(
                    sink=self.sink,
                    thresholds=AlertThresholds(s.immediate_days, s.soon_days, s.upcoming_days, s.advance_days),
                )
                self._alert_engines[chart_id] = engine
            return engine

    def orchestrator(self, chart: NatalChart, orb: Optional[float] = None) -> TransitAnalysisOrchestrator:
        orch = TransitAnalysisOrchestrator(
            chart,
            settings=self.settings,
            provider=self.provider(chart.ayanamsa),
            clock=self.clock,
            alert_engine=self.alert_engine(chart.id),
        )
        if orb is not None:
            orch.orb = orb
        return orch

    def stats(self):
        with self._lock:
            return {"providers": len(self._providers), "charts": len(self._alert_engines)}

    def close(self) -> None:
        """Persist every live provider cache."""

        with self._lock:
            for ayanamsa, provider in list(self._providers.items()):
                self._save_provider(ayanamsa, provider)
