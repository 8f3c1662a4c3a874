"""Domain records passed between the transit services.

All records are frozen dataclasses: positions and periods are recomputed and
replaced, never mutated in place.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from .constants import sign_name
from .errors import ValidationError, require_finite

EVENT_TYPES = ("sign_entry", "sign_exit", "aspect_formation", "aspect_separation", "critical_period")
PRIORITIES = ("low", "medium", "high", "critical")


@dataclass(frozen=True)
class PlanetaryPosition:
    longitude: float
    latitude: float = 0.0
    speed: float = 0.0

    def __post_init__(self) -> None:
        lon = require_finite(self.longitude, "longitude")
        if not 0.0 <= lon < 360.0:
            raise ValidationError("longitude must be within [0, 360)", field="longitude", value=lon)
        require_finite(self.latitude, "latitude")
        require_finite(self.speed, "speed")

    @property
    def sign(self) -> int:
        return int(self.longitude // 30) % 12

    @property
    def retrograde(self) -> bool:
        return self.speed < 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lon": round(self.longitude, 6),
            "lat": round(self.latitude, 6),
            "speed_lon": round(self.speed, 6),
            "sign": sign_name(self.sign),
            "retro": self.retrograde,
        }


def _validate_cusps(houses: Any) -> Tuple[float, ...]:
    if not isinstance(houses, (list, tuple)) or len(houses) != 12:
        raise ValidationError("houses must be an array of 12 cusps", field="houses", value=houses)
    cusps = tuple(require_finite(c, "houses") for c in houses)
    for c in cusps:
        if not 0.0 <= c < 360.0:
            raise ValidationError("house cusps must be within [0, 360)", field="houses", value=houses)
    # Increasing around the circle: exactly one step may wrap past 0°.
    descents = sum(1 for i in range(12) if cusps[(i + 1) % 12] < cusps[i])
    repeats = any(cusps[(i + 1) % 12] == cusps[i] for i in range(12))
    if descents != 1 or repeats:
        raise ValidationError("house cusps must increase monotonically", field="houses", value=houses)
    return cusps


@dataclass(frozen=True)
class NatalChart:
    """Fixed reference configuration that transits are measured against."""

    id: str
    planets: Mapping[str, PlanetaryPosition]
    houses: Tuple[float, ...]
    ayanamsa: float

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id:
            raise ValidationError("chart id must be a non-empty string", field="id", value=self.id)
        require_finite(self.ayanamsa, "ayanamsa")
        object.__setattr__(self, "houses", _validate_cusps(self.houses))
        if not isinstance(self.planets, Mapping):
            raise ValidationError("planets must be a mapping", field="planets", value=self.planets)
        planets: Dict[str, PlanetaryPosition] = {}
        for name, pos in self.planets.items():
            if not isinstance(pos, PlanetaryPosition):
                raise ValidationError(f"natal position for {name} is malformed", field="planets", value=pos)
            planets[name] = pos
        object.__setattr__(self, "planets", MappingProxyType(planets))

    @classmethod
    def from_longitudes(
        cls,
        chart_id: str,
        longitudes: Mapping[str, float],
        houses: Any,
        ayanamsa: float,
    ) -> "NatalChart":
        planets = {name: PlanetaryPosition(longitude=lon) for name, lon in longitudes.items()}
        return cls(id=chart_id, planets=planets, houses=houses, ayanamsa=ayanamsa)


@dataclass(frozen=True)
class EphemerisSnapshot:
    jd: float
    timestamp: datetime
    ayanamsa: float
    tropical: Mapping[str, PlanetaryPosition]
    sidereal: Mapping[str, PlanetaryPosition]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jd": self.jd,
            "timestamp": self.timestamp.isoformat(),
            "ayanamsa": self.ayanamsa,
            "tropical": {k: v.to_dict() for k, v in self.tropical.items()},
            "sidereal": {k: v.to_dict() for k, v in self.sidereal.items()},
        }


@dataclass(frozen=True)
class AspectMatch:
    body_a: str
    body_b: str
    angle: int
    name: str
    separation: float
    exactness: float
    classification: str
    strength: float = 0.0
    applying: Optional[bool] = None

    @property
    def identity(self) -> Tuple[str, str, int]:
        return (self.body_a, self.body_b, self.angle)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transit_body": self.body_a,
            "natal_body": self.body_b,
            "angle": self.angle,
            "aspect": self.name,
            "separation": round(self.separation, 4),
            "exactness": round(self.exactness, 4),
            "type": self.classification,
            "strength": round(self.strength, 2),
            "applying": self.applying,
        }


@dataclass(frozen=True)
class TransitPeriod:
    body: str
    sign: int
    longitude: float
    start: datetime
    end: datetime

    @property
    def duration_days(self) -> float:
        return (self.end - self.start).total_seconds() / 86400.0

    def contains(self, when: datetime) -> bool:
        return self.start <= when <= self.end

    def to_dict(self) -> Dict[str, Any]:
        return {
            "body": self.body,
            "sign": self.sign,
            "sign_name": sign_name(self.sign),
            "longitude": round(self.longitude, 4),
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "duration_days": round(self.duration_days, 4),
        }


@dataclass(frozen=True)
class TransitImpact:
    house: int
    affected_houses: Tuple[int, ...]
    life_areas: Tuple[str, ...]
    dignity: str
    intensity: float
    aspect_strength: float = 0.0
    aspect: Optional[AspectMatch] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "house": self.house,
            "affected_houses": list(self.affected_houses),
            "life_areas": list(self.life_areas),
            "dignity": self.dignity,
            "intensity": round(self.intensity, 2),
            "aspect_strength": round(self.aspect_strength, 2),
            "aspect": self.aspect.to_dict() if self.aspect else None,
        }


@dataclass(frozen=True)
class ActiveTransit:
    period: TransitPeriod
    analysis: Optional[TransitImpact]

    @property
    def intensity(self) -> Optional[float]:
        return self.analysis.intensity if self.analysis else None

    def to_dict(self) -> Dict[str, Any]:
        out = self.period.to_dict()
        out["analysis"] = self.analysis.to_dict() if self.analysis else None
        return out


@dataclass(frozen=True)
class TransitEvent:
    """Tagged event record; ``kind`` is one of :data:`EVENT_TYPES`."""

    kind: str
    timestamp: datetime
    body: str
    natal_body: Optional[str] = None
    angle: Optional[int] = None
    sign: Optional[int] = None
    intensity: Optional[float] = None
    # Instant the event is anchored to for de-duplication; defaults to ``timestamp``.
    anchor: Optional[datetime] = None
    payload: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.kind not in EVENT_TYPES:
            raise ValidationError(f"unknown event type {self.kind!r}", field="kind", value=self.kind)
        if self.intensity is not None and not math.isfinite(self.intensity):
            raise ValidationError("intensity must be finite", field="intensity", value=self.intensity)

    @property
    def identity(self) -> Tuple[Any, ...]:
        anchor = self.anchor or self.timestamp
        return (self.kind, self.body, self.natal_body, self.angle, self.sign, anchor.isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind,
            "timestamp": self.timestamp.isoformat(),
            "body": self.body,
            "natal_body": self.natal_body,
            "angle": self.angle,
            "sign": self.sign,
            "sign_name": sign_name(self.sign) if self.sign is not None else None,
            "intensity": self.intensity,
            **dict(self.payload),
        }


@dataclass(frozen=True)
class Alert:
    id: str
    type: str
    priority: str
    message: str
    timestamp: datetime
    event: TransitEvent
    timing: str = "upcoming"
    actions: Tuple[Mapping[str, str], ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "priority": self.priority,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "timing": self.timing,
            "event": self.event.to_dict(),
            "actions": [dict(a) for a in self.actions],
        }


@dataclass(frozen=True)
class PositionUpdate:
    sequence: int
    snapshot: EphemerisSnapshot
