"""Sign dignity tables and the scoring weights derived from them.

Sign indices run 0 (Aries) .. 11 (Pisces).
"""

EXALT = {"Sun": 0, "Moon": 1, "Mercury": 5, "Venus": 11, "Mars": 9, "Jupiter": 3, "Saturn": 6, "Rahu": 1, "Ketu": 7}
MOOLATRIKONA = {"Sun": 4, "Moon": 1, "Mercury": 5, "Venus": 6, "Mars": 0, "Jupiter": 8, "Saturn": 10}
OWN_SIGNS = {
    "Sun": {4},
    "Moon": {3},
    "Mercury": {2, 5},
    "Venus": {1, 6},
    "Mars": {0, 7},
    "Jupiter": {8, 11},
    "Saturn": {9, 10},
}
FALL = {planet: (sign + 6) % 12 for planet, sign in EXALT.items()}

# Signed contribution of each dignity to transit strength.
DIGNITY_SCORES = {
    "exaltation": 2.0,
    "moolatrikona": 1.5,
    "domicile": 1.0,
    "neutral": 0.0,
    "fall": -2.0,
}

# Slow bodies linger and weigh more; the Moon weighs least.
SPEED_WEIGHTS = {
    "Saturn": 3.0, "Rahu": 3.0, "Ketu": 3.0, "Jupiter": 2.5, "Mars": 1.5,
    "Sun": 1.0, "Venus": 1.0, "Mercury": 0.5, "Moon": 0.0,
}
DEFAULT_SPEED_WEIGHT = 1.0


def dignity_for(planet: str, sign: int) -> str:
    if sign == EXALT.get(planet):
        return "exaltation"
    if FALL.get(planet) == sign:
        return "fall"
    if MOOLATRIKONA.get(planet) == sign:
        return "moolatrikona"
    if sign in OWN_SIGNS.get(planet, ()):
        return "domicile"
    return "neutral"


def dignity_score(planet: str, sign: int) -> float:
    return DIGNITY_SCORES[dignity_for(planet, sign)]


def speed_weight(planet: str) -> float:
    return SPEED_WEIGHTS.get(planet, DEFAULT_SPEED_WEIGHT)
