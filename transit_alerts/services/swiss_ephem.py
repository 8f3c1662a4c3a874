"""Swiss Ephemeris backed provider.

Drop-in replacement for :class:`~transit_alerts.services.ephem.MeanMotionEphemeris`
when real positions are needed. Requires the ``pyswisseph`` distribution.
"""

from __future__ import annotations

import logging
import os
from typing import Dict, Optional

import swisseph as swe

from .ephem import CachedEphemeris
from .errors import CalculationError
from .models import PlanetaryPosition
from .position_cache import PositionCache
from .transit_math import normalize

logger = logging.getLogger(__name__)

# Engine version for API responses
try:
    ENGINE_VERSION = f"swisseph-{swe.version}"
except AttributeError:
    ENGINE_VERSION = "swisseph-2.10"

SWE_BODIES: Dict[str, int] = {
    "Sun": swe.SUN,
    "Moon": swe.MOON,
    "Mercury": swe.MERCURY,
    "Venus": swe.VENUS,
    "Mars": swe.MARS,
    "Jupiter": swe.JUPITER,
    "Saturn": swe.SATURN,
    "Rahu": swe.MEAN_NODE,
}

# Typical daily motion, used to size sampling windows.
MEAN_SPEEDS: Dict[str, float] = {
    "Sun": 0.9856,
    "Moon": 13.1764,
    "Mercury": 1.3837,
    "Venus": 1.6021,
    "Mars": 0.5240,
    "Jupiter": 0.0831,
    "Saturn": 0.0336,
    "Rahu": -0.05295,
    "Ketu": -0.05295,
}


def _backend_flag() -> int:
    """Return the Swiss Ephemeris backend flag based on environment configuration."""

    raw_backend = os.getenv("EPHEMERIS_BACKEND")
    backend = raw_backend.strip().lower() if raw_backend else "moseph"
    return swe.FLG_SWIEPH if backend == "swieph" else swe.FLG_MOSEPH


def init_paths(ephe_dir: str | os.PathLike[str] | None) -> None:
    """Set the Swiss Ephemeris file search path when available."""

    if not ephe_dir:
        return

    path = os.fspath(ephe_dir)
    if os.path.isdir(path):
        swe.set_ephe_path(path)


class SwissEphemeris(CachedEphemeris):
    engine_version = ENGINE_VERSION

    def __init__(
        self,
        ayanamsa: float,
        cache: Optional[PositionCache] = None,
        key_decimals: int = 5,
        ephe_dir: str | None = None,
    ) -> None:
        super().__init__(ayanamsa, cache=cache, key_decimals=key_decimals)
        init_paths(ephe_dir)

    def mean_speed(self, body: str) -> float:
        return MEAN_SPEEDS[body]

    def _tropical(self, jd: float) -> Dict[str, PlanetaryPosition]:
        flag = _backend_flag() | swe.FLG_SPEED
        out: Dict[str, PlanetaryPosition] = {}
        for name, code in SWE_BODIES.items():
            try:
                values, _ = swe.calc_ut(jd, code, flag)
            except swe.Error as exc:
                logger.error("swiss_ephemeris_calc_failed", extra={"body": name, "jd": jd})
                raise CalculationError(f"swiss ephemeris failed for {name}: {exc}", body=name) from exc
            lon, lat, _dist, lon_speed, _lat_speed, _dist_speed = values
            out[name] = PlanetaryPosition(longitude=normalize(lon), latitude=lat, speed=lon_speed)
        rahu = out["Rahu"]
        out["Ketu"] = PlanetaryPosition(
            longitude=normalize(rahu.longitude + 180.0), latitude=-rahu.latitude, speed=rahu.speed
        )
        return out
