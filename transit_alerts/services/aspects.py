from __future__ import annotations

from dataclasses import replace
from typing import List, Mapping, Optional

from .dignities import dignity_score, speed_weight
from .errors import ValidationError, require_finite
from .houses import house_of, house_significance
from .models import AspectMatch, NatalChart, PlanetaryPosition
from .transit_math import angular_separation, is_applying

# Scanned in this order; the first angle within orb wins.
MAJOR = {
    "conjunction": 0,
    "sextile": 60,
    "square": 90,
    "trine": 120,
    "opposition": 180,
}
MINOR = {
    "semisextile": 30,
    "semisquare": 45,
    "sesquiquadrate": 135,
    "quincunx": 150,
}
CATALOGUE = [(name, angle, "major") for name, angle in MAJOR.items()] + [
    (name, angle, "minor") for name, angle in MINOR.items()
]

DEFAULT_ORB = 5.0

# Multipliers applied to each term of the strength score.
EXACTNESS_FACTOR = 2.0
DIGNITY_FACTOR = 10.0
HOUSE_FACTOR = 5.0
SPEED_FACTOR = 5.0


def _check_orb(orb: float) -> float:
    orb = require_finite(orb, "orb")
    if orb < 0:
        raise ValidationError("orb must not be negative", field="orb", value=orb)
    return orb


def match_aspect(
    lon_a: float,
    lon_b: float,
    orb: float = DEFAULT_ORB,
    body_a: str = "",
    body_b: str = "",
) -> Optional[AspectMatch]:
    """Return the first catalogue aspect within ``orb`` of the separation.

    Majors are scanned before minors, so with wide orbs a major aspect can win
    over a minor one that is closer to exact.
    """

    orb = _check_orb(orb)
    sep = angular_separation(lon_a, lon_b)
    for name, angle, classification in CATALOGUE:
        exactness = abs(sep - angle)
        if exactness <= orb:
            return AspectMatch(
                body_a=body_a,
                body_b=body_b,
                angle=angle,
                name=name,
                separation=sep,
                exactness=exactness,
                classification=classification,
            )
    return None


def transit_strength(
    match: AspectMatch,
    body: str,
    sign: int,
    house: int,
    orb: float = DEFAULT_ORB,
) -> float:
    """Score a transit aspect on a 0-100 scale.

    50 + exactness bonus + dignity of the transiting body in its sign
    + significance of the house it occupies + weight for slow movers.
    """

    strength = 50.0
    strength += (orb - match.exactness) * EXACTNESS_FACTOR
    strength += dignity_score(body, sign) * DIGNITY_FACTOR
    strength += house_significance(house) * HOUSE_FACTOR
    strength += speed_weight(body) * SPEED_FACTOR
    return min(100.0, max(0.0, strength))


def find_current_aspects(
    transiting: Mapping[str, PlanetaryPosition],
    chart: NatalChart,
    orb: float = DEFAULT_ORB,
) -> List[AspectMatch]:
    """All transiting x natal aspects, strongest first."""

    orb = _check_orb(orb)
    res: List[AspectMatch] = []
    for t_name, t_pos in transiting.items():
        house = house_of(t_pos.longitude, chart.houses)
        for n_name, n_pos in chart.planets.items():
            m = match_aspect(t_pos.longitude, n_pos.longitude, orb, body_a=t_name, body_b=n_name)
            if m is None:
                continue
            res.append(
                replace(
                    m,
                    strength=transit_strength(m, t_name, t_pos.sign, house, orb),
                    applying=is_applying(t_pos.longitude, t_pos.speed, n_pos.longitude, n_pos.speed, m.angle),
                )
            )
    return sorted(res, key=lambda x: (-x.strength, x.exactness))
