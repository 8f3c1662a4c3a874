import pytest

from transit_alerts.services.aspects import (
    find_current_aspects,
    match_aspect,
    transit_strength,
)
from transit_alerts.services.errors import ValidationError
from transit_alerts.services.houses import house_from_longitude
from transit_alerts.services.models import NatalChart, PlanetaryPosition

EQUAL_HOUSES = [i * 30.0 for i in range(12)]


def test_conjunction_within_orb_reports_exactness():
    m = match_aspect(0, 5, orb=10)
    assert m is not None
    assert m.angle == 0 and m.name == "conjunction"
    assert m.exactness == pytest.approx(5)
    assert m.exactness <= 10


def test_no_aspect_outside_orb():
    assert match_aspect(0, 15, orb=5) is None


def test_major_and_minor_classification():
    sextile = match_aspect(0, 60, orb=10)
    assert sextile.angle == 60 and sextile.classification == "major"
    semi = match_aspect(0, 30, orb=10)
    assert semi.angle == 30 and semi.classification == "minor"


def test_majors_take_precedence_over_closer_minors():
    # 40° is 5° from semisquare but the wide orb lets the sextile win first.
    m = match_aspect(0, 40, orb=20)
    assert m.name == "sextile"


def test_negative_orb_rejected():
    with pytest.raises(ValidationError):
        match_aspect(0, 0, orb=-1)


def test_transit_strength_components():
    m = match_aspect(95, 5, orb=5)
    # Saturn neutral in Cancer, angular 4th house, exact square.
    assert transit_strength(m, "Saturn", 3, 4, orb=5) == pytest.approx(85)
    # Exalted in Libra in the 1st house pushes past the cap.
    assert transit_strength(m, "Saturn", 6, 1, orb=5) == 100
    wide = match_aspect(100, 5, orb=5)
    # Fallen in Aries, cadent 12th house, at the edge of the orb.
    assert transit_strength(wide, "Saturn", 0, 12, orb=5) == pytest.approx(45)


def test_transit_in_fourth_house_squares_natal_body():
    chart = NatalChart.from_longitudes("c1", {"Sun": 5.0}, EQUAL_HOUSES, ayanamsa=24.0)
    assert house_from_longitude(95, chart.houses) == 4
    hits = find_current_aspects({"Mars": PlanetaryPosition(longitude=95.0, speed=0.5)}, chart)
    squares = [h for h in hits if h.name == "square"]
    assert len(squares) == 1
    assert squares[0].exactness == 0
    assert squares[0].body_a == "Mars" and squares[0].body_b == "Sun"


def test_find_current_aspects_sorted_by_strength():
    chart = NatalChart.from_longitudes("c1", {"Sun": 0.0, "Moon": 120.0, "Venus": 182.0}, EQUAL_HOUSES, 24.0)
    transiting = {
        "Saturn": PlanetaryPosition(longitude=1.0, speed=0.03),
        "Moon": PlanetaryPosition(longitude=122.0, speed=13.0),
    }
    hits = find_current_aspects(transiting, chart)
    strengths = [h.strength for h in hits]
    assert strengths == sorted(strengths, reverse=True)
    assert all(0 <= s <= 100 for s in strengths)
    assert all(h.applying is not None for h in hits)
