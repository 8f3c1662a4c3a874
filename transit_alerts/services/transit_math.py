"""Longitude arithmetic shared by the aspect, period and event code.

Pure functions over degrees; no ephemeris access.
"""

from __future__ import annotations

from .errors import require_finite


def normalize(lon: float) -> float:
    """Fold a longitude into ``[0, 360)``.

    Raises :class:`~transit_alerts.services.errors.ValidationError` for
    non-numeric or non-finite input.
    """

    value = require_finite(lon, "longitude") % 360.0
    # -1e-14 % 360 rounds up to 360.0 in floating point.
    return 0.0 if value >= 360.0 else value


def angular_separation(a: float, b: float) -> float:
    """Return the shortest circular distance between two longitudes, in [0, 180]."""

    d = abs(normalize(a) - normalize(b))
    return 360.0 - d if d > 180.0 else d


def signed_delta(transit_lon: float, natal_lon: float, aspect_angle: float) -> float:
    """Offset from the exact aspect in [-180, 180]; positive once the transit has passed it."""

    return ((transit_lon - natal_lon) - aspect_angle + 540.0) % 360.0 - 180.0


def is_applying(
    transit_lon: float,
    transit_speed: float,
    natal_lon: float,
    natal_speed: float,
    aspect_angle: float,
) -> bool:
    """True while the relative motion closes on the nearer exact point of the aspect.

    An exact aspect counts as applying. Speeds are in degrees/day; natal
    speeds are normally zero.
    """

    delta = signed_delta(transit_lon, natal_lon, aspect_angle)
    mirrored = signed_delta(transit_lon, natal_lon, -aspect_angle)
    if abs(mirrored) < abs(delta):
        delta = mirrored
    if abs(delta) < 1e-6:
        return True

    rate = transit_speed - natal_speed
    if abs(rate) < 1e-6:
        return False

    return (delta > 0 and rate < 0) or (delta < 0 and rate > 0)


__all__ = ["angular_separation", "is_applying", "normalize", "signed_delta"]
