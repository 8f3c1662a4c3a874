"""Impact analysis for transit periods against a natal chart."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List

from .aspects import DEFAULT_ORB, find_current_aspects, match_aspect
from .dignities import dignity_for
from .errors import CalculationError
from .houses import house_of, house_weight, life_areas
from .models import ActiveTransit, NatalChart, PlanetaryPosition, TransitImpact, TransitPeriod

logger = logging.getLogger(__name__)

BODY_WEIGHTS = {
    "Saturn": 10, "Jupiter": 9, "Rahu": 8, "Ketu": 8, "Mars": 7,
    "Sun": 6, "Moon": 6, "Venus": 5, "Mercury": 4,
}
ASPECT_WEIGHTS = {0: 10, 60: 7, 90: 8, 120: 6, 180: 9}
MINOR_ASPECT_WEIGHT = 5
DEFAULT_BODY_WEIGHT = 5

CRITICAL_INTENSITY = 70.0
MEDIUM_INTENSITY = 40.0


def affected_houses(lon: float, chart: NatalChart, orb: float = DEFAULT_ORB) -> List[int]:
    """The occupied house plus every house whose cusp the longitude aspects."""

    houses = {house_of(lon, chart.houses)}
    for i, cusp in enumerate(chart.houses):
        if match_aspect(lon, cusp, orb) is not None:
            houses.add(i + 1)
    return sorted(houses)


def analyze_transit_impact(period: TransitPeriod, chart: NatalChart, orb: float = DEFAULT_ORB) -> TransitImpact:
    """Score how strongly a sign period touches the natal chart.

    The strongest aspect the body makes to a natal planet from the period's
    representative longitude feeds the intensity; intensity is
    50 + body weight + aspect weight + house weight, capped at 100.

    Raises :class:`CalculationError` when any step fails.
    """

    try:
        lon = period.longitude
        house = house_of(lon, chart.houses)
        hits = find_current_aspects({period.body: PlanetaryPosition(longitude=lon)}, chart, orb)
        strongest = hits[0] if hits else None

        intensity = 50.0 + BODY_WEIGHTS.get(period.body, DEFAULT_BODY_WEIGHT)
        aspect_strength = 0.0
        if strongest is not None:
            intensity += ASPECT_WEIGHTS.get(strongest.angle, MINOR_ASPECT_WEIGHT)
            aspect_strength = 100.0 if orb == 0 else (orb - strongest.exactness) / orb * 100.0
        intensity += house_weight(house)

        return TransitImpact(
            house=house,
            affected_houses=tuple(affected_houses(lon, chart, orb)),
            life_areas=life_areas(house),
            dignity=dignity_for(period.body, period.sign),
            intensity=min(100.0, intensity),
            aspect_strength=aspect_strength,
            aspect=strongest,
        )
    except (ArithmeticError, KeyError, TypeError, ValueError) as exc:
        logger.error("transit_impact_failed", extra={"body": period.body, "chart_id": chart.id})
        raise CalculationError(f"impact analysis failed for {period.body}: {exc}", body=period.body) from exc


def overall_influence(transits: Iterable[ActiveTransit]) -> float:
    """Mean intensity of the analysed transits; 0 when there are none."""

    values = [t.intensity for t in transits if t.intensity is not None]
    return sum(values) / len(values) if values else 0.0


def identify_critical(transits: Iterable[ActiveTransit]) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for t in transits:
        intensity = t.intensity
        if intensity is None:
            continue
        if intensity > CRITICAL_INTENSITY:
            level, reason = "high", "High intensity transit"
        elif intensity > MEDIUM_INTENSITY:
            level, reason = "medium", "Moderate intensity transit"
        else:
            continue
        entry = t.to_dict()
        entry.update({"criticality": level, "reason": reason})
        out.append(entry)
    return out
