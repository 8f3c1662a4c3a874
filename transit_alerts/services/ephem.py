"""Time -> body position providers used by the transit tracker.

The default provider is a linear mean-longitude model: every body advances at
its mean daily motion from its J2000 reference longitude. It carries no
perturbation terms, so it is only an approximation of the real sky. Anything
that implements :class:`EphemerisProvider` (see ``swiss_ephem``) can replace
it without touching aspect or alert logic.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional, Protocol, Tuple

from .constants import BODIES
from .errors import ValidationError, require_finite
from .models import EphemerisSnapshot, PlanetaryPosition
from .position_cache import PositionCache
from .transit_math import normalize

logger = logging.getLogger(__name__)

ENGINE_VERSION = "mean-motion-1"

J2000 = 2451545.0
UNIX_EPOCH_JD = 2440587.5

# (longitude at J2000, mean motion in degrees/day)
MEAN_ELEMENTS: Dict[str, Tuple[float, float]] = {
    "Sun": (280.460, 0.9856474),
    "Moon": (218.316, 13.176396),
    "Mercury": (252.251, 4.0923344),
    "Venus": (181.979, 1.6021302),
    "Mars": (355.433, 0.5240207),
    "Jupiter": (34.351, 0.0831294),
    "Saturn": (50.078, 0.0335856),
    "Rahu": (125.044, -0.0529539),
}

CACHE_FORMAT_VERSION = 1


def to_jd(when: datetime) -> float:
    """Convert a timezone-aware datetime to a Julian Day (UT)."""

    if not isinstance(when, datetime):
        raise ValidationError("a datetime is required", field="date", value=when)
    if when.tzinfo is None or when.utcoffset() is None:
        raise ValidationError("datetime must be timezone-aware", field="date", value=when)
    return when.timestamp() / 86400.0 + UNIX_EPOCH_JD


def from_jd(jd: float) -> datetime:
    """Convert a Julian Day (UT) back to an aware UTC datetime."""

    seconds = (require_finite(jd, "jd") - UNIX_EPOCH_JD) * 86400.0
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise ValidationError("julian day is outside the supported range", field="jd", value=jd) from exc


class EphemerisProvider(Protocol):
    """Anything that maps a Julian Day to body positions."""

    bodies: Tuple[str, ...]

    def positions(self, jd: float) -> EphemerisSnapshot:
        ...

    def mean_speed(self, body: str) -> float:
        ...


class CachedEphemeris:
    """Validation, sidereal conversion and memoisation shared by providers.

    Subclasses implement :meth:`_tropical`. Results are keyed by the Julian Day
    rounded to ``key_decimals`` places and stored in a :class:`PositionCache`.
    """

    bodies: Tuple[str, ...] = tuple(BODIES)
    engine_version = ENGINE_VERSION

    def __init__(
        self,
        ayanamsa: float,
        cache: Optional[PositionCache] = None,
        key_decimals: int = 5,
    ) -> None:
        self.ayanamsa = require_finite(ayanamsa, "ayanamsa")
        self.cache: PositionCache = cache if cache is not None else PositionCache(capacity=1024)
        self.key_decimals = key_decimals

    def _tropical(self, jd: float) -> Dict[str, PlanetaryPosition]:
        raise NotImplementedError

    def mean_speed(self, body: str) -> float:
        raise NotImplementedError

    def cache_key(self, jd: float) -> float:
        return round(jd, self.key_decimals)

    def positions(self, jd: float) -> EphemerisSnapshot:
        jd = require_finite(jd, "jd")
        key = self.cache_key(jd)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        snapshot = self._snapshot(key, self._tropical(key))
        self.cache.set(key, snapshot)
        return snapshot

    def positions_at(self, when: datetime) -> EphemerisSnapshot:
        return self.positions(to_jd(when))

    def _snapshot(self, jd: float, tropical: Mapping[str, PlanetaryPosition]) -> EphemerisSnapshot:
        sidereal = {
            name: PlanetaryPosition(
                longitude=normalize(pos.longitude - self.ayanamsa),
                latitude=pos.latitude,
                speed=pos.speed,
            )
            for name, pos in tropical.items()
        }
        return EphemerisSnapshot(
            jd=jd,
            timestamp=from_jd(jd),
            ayanamsa=self.ayanamsa,
            tropical=dict(tropical),
            sidereal=sidereal,
        )

    # Persistence -------------------------------------------------------

    def export_cache(self) -> bytes:
        """Serialise cached tropical positions to an opaque JSON blob."""

        entries = [
            [key, {name: [p.longitude, p.latitude, p.speed] for name, p in snap.tropical.items()}]
            for key, snap in self.cache.items()
        ]
        doc = {"version": CACHE_FORMAT_VERSION, "engine": self.engine_version, "entries": entries}
        return json.dumps(doc, separators=(",", ":")).encode("utf-8")

    def import_cache(self, blob: bytes) -> int:
        """Load entries written by :meth:`export_cache`; returns the count restored.

        Blobs from another format version or engine are ignored; a malformed
        blob raises :class:`ValidationError` and leaves the cache untouched.
        """

        try:
            doc = json.loads(blob.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValidationError("persisted cache blob is not valid JSON", field="cache") from exc
        if not isinstance(doc, dict):
            raise ValidationError("persisted cache blob must be a JSON object", field="cache")
        if doc.get("version") != CACHE_FORMAT_VERSION:
            logger.warning("ephemeris_cache_version_mismatch", extra={"version": doc.get("version")})
            return 0
        if doc.get("engine") != self.engine_version:
            logger.warning("ephemeris_cache_engine_mismatch", extra={"engine": doc.get("engine")})
            return 0
        decoded = []
        try:
            for key, bodies in doc.get("entries", []):
                tropical = {
                    name: PlanetaryPosition(longitude=lon, latitude=lat, speed=speed)
                    for name, (lon, lat, speed) in bodies.items()
                }
                key = float(key)
                decoded.append((key, self._snapshot(key, tropical)))
        except (TypeError, ValueError, AttributeError) as exc:
            raise ValidationError("persisted cache blob has a malformed entry", field="cache") from exc
        for key, snapshot in decoded:
            self.cache.set(key, snapshot)
        return len(decoded)


class MeanMotionEphemeris(CachedEphemeris):
    """Linear mean-longitude ephemeris (no perturbation terms)."""

    def mean_speed(self, body: str) -> float:
        if body == "Ketu":
            body = "Rahu"
        return MEAN_ELEMENTS[body][1]

    def _tropical(self, jd: float) -> Dict[str, PlanetaryPosition]:
        days = jd - J2000
        out: Dict[str, PlanetaryPosition] = {}
        for name, (lon0, rate) in MEAN_ELEMENTS.items():
            out[name] = PlanetaryPosition(longitude=normalize(lon0 + rate * days), speed=rate)
        rahu = out["Rahu"]
        out["Ketu"] = PlanetaryPosition(longitude=normalize(rahu.longitude + 180.0), speed=rahu.speed)
        return out


__all__ = [
    "CachedEphemeris",
    "EphemerisProvider",
    "MeanMotionEphemeris",
    "from_jd",
    "to_jd",
]
