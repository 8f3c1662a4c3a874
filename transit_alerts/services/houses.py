from typing import Sequence

from .errors import ValidationError, require_finite

# Angular houses (1, 4, 7, 10) weigh most, then succedent (2, 5, 8, 11), then cadent.
HOUSE_CLASS = {
    1: "angular", 4: "angular", 7: "angular", 10: "angular",
    2: "succedent", 5: "succedent", 8: "succedent", 11: "succedent",
    3: "cadent", 6: "cadent", 9: "cadent", 12: "cadent",
}
HOUSE_CLASS_SIGNIFICANCE = {"angular": 2.0, "succedent": 1.0, "cadent": 0.0}

# 0..10 weighting used by the impact intensity score.
HOUSE_WEIGHTS = {1: 10, 2: 7, 3: 6, 4: 9, 5: 8, 6: 5, 7: 8, 8: 6, 9: 10, 10: 10, 11: 7, 12: 5}

LIFE_AREAS = {
    1: ("Self", "Personality", "Physical health"),
    2: ("Wealth", "Family", "Speech"),
    3: ("Siblings", "Communication", "Short journeys"),
    4: ("Home", "Mother", "Emotions"),
    5: ("Children", "Education", "Creativity"),
    6: ("Health", "Service", "Enemies"),
    7: ("Marriage", "Partnerships", "Business"),
    8: ("Longevity", "Transformation", "Occult"),
    9: ("Fortune", "Higher learning", "Spirituality"),
    10: ("Career", "Father", "Authority"),
    11: ("Gains", "Friends", "Hopes"),
    12: ("Spirituality", "Foreign lands", "Expenses"),
}


def house_of(lon: float, cusps: Sequence[float]) -> int:
    """Return the house (1-12) containing ``lon``.

    Cusps are taken in order, each house running from its cusp up to the next
    one. Longitudes are shifted so cusp 1 sits at 0°, which handles the house
    that straddles 0° Aries.
    """
    if cusps is None or len(cusps) != 12:
        raise ValidationError("houses must be an array of 12 cusps", field="houses", value=cusps)
    lon = require_finite(lon, "longitude")
    shift = cusps[0]
    def norm(x):
        return (x - shift) % 360.0
    nlon = norm(lon)
    ncusps = [norm(c) for c in cusps] + [360.0]
    for i in range(12):
        if ncusps[i] <= nlon < ncusps[i+1]:
            return i+1
    return 12


def house_significance(house: int) -> float:
    return HOUSE_CLASS_SIGNIFICANCE[HOUSE_CLASS[house]]


def house_weight(house: int) -> int:
    return HOUSE_WEIGHTS.get(house, 5)


def life_areas(house: int) -> tuple:
    return LIFE_AREAS.get(house, ())

house_from_longitude = house_of
