SIGN_NAMES = ["Aries","Taurus","Gemini","Cancer","Leo","Virgo","Libra","Scorpio","Sagittarius","Capricorn","Aquarius","Pisces"]

# Tracked bodies in calculation order. Rahu is the mean north node, Ketu sits opposite it.
BODIES = ["Sun", "Moon", "Mercury", "Venus", "Mars", "Jupiter", "Saturn", "Rahu", "Ketu"]

# Bodies whose sign periods are reported as major transits in prediction summaries.
MAJOR_TRANSIT_BODIES = {"Saturn", "Jupiter", "Rahu"}

NAKSHATRAS = [
    "Ashwini", "Bharani", "Krittika", "Rohini", "Mrigashira", "Ardra",
    "Punarvasu", "Pushya", "Ashlesha", "Magha", "Purva Phalguni", "Uttara Phalguni",
    "Hasta", "Chitra", "Swati", "Vishakha", "Anuradha", "Jyeshtha",
    "Mula", "Purva Ashadha", "Uttara Ashadha", "Shravana", "Dhanishta", "Shatabhisha",
    "Purva Bhadrapada", "Uttara Bhadrapada", "Revati",
]
NAKSHATRA_SPAN = 360.0 / 27


def sign_index_from_lon(lon: float) -> int:
    return int(lon // 30) % 12

def sign_name(index: int) -> str:
    if 0 <= index < 12:
        return SIGN_NAMES[index]
    return "Unknown"

def nakshatra_for(lon: float) -> dict:
    """Return the lunar mansion and pada for a sidereal longitude."""
    lon = lon % 360.0
    index = int(lon // NAKSHATRA_SPAN) % 27
    within = lon % NAKSHATRA_SPAN
    pada = int(within // (NAKSHATRA_SPAN / 4)) + 1
    return {
        "name": NAKSHATRAS[index],
        "number": index + 1,
        "pada": min(pada, 4),
        "degree_in_nakshatra": round(within, 4),
    }
