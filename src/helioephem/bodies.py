"""
Body registry for ephemeris computation.

Maps body names to NAIF integer IDs and physical constants (radii,
Sun/body mass ratio, rotation pole), and provides case-insensitive name
resolution with aliases.
"""

import math
from dataclasses import dataclass

import spiceypy as spice

from .constants import centuries_since_j2000


@dataclass(frozen=True)
class Body:
    """Physical constants of a solar-system body.

    Attributes:
        key: Canonical upper-case name.
        naif_id: NAIF integer ID.
        equatorial_radius_km: Equatorial radius.
        polar_radius_km: Polar radius.
        relative_mass: Sun mass divided by body mass (1 for the Sun).
    """

    key: str
    naif_id: int
    equatorial_radius_km: float
    polar_radius_km: float
    relative_mass: float

    @property
    def flattening(self) -> float:
        if self.equatorial_radius_km == 0:
            return 0.0
        return (self.equatorial_radius_km - self.polar_radius_km) / self.equatorial_radius_km


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

BODIES: dict[str, Body] = {
    "SUN": Body("SUN", 10, 696000.0, 696000.0, 1.0),
    "MERCURY": Body("MERCURY", 199, 2439.7, 2439.7, 6023600.0),
    "VENUS": Body("VENUS", 299, 6051.8, 6051.8, 408523.71),
    "EARTH": Body("EARTH", 399, 6378.1366, 6356.7519, 332946.050895),
    "MARS": Body("MARS", 499, 3396.19, 3376.2, 3098708.0),
    "JUPITER": Body("JUPITER", 599, 71492.0, 66854.0, 1047.3486),
    "SATURN": Body("SATURN", 699, 60268.0, 54364.0, 3497.898),
    "URANUS": Body("URANUS", 799, 25559.0, 24973.0, 22902.98),
    "NEPTUNE": Body("NEPTUNE", 899, 24764.0, 24341.0, 19412.24),
    "PLUTO": Body("PLUTO", 999, 1195.0, 1195.0, 1.352e8),
    "MOON": Body("MOON", 301, 1737.4, 1737.4, 2.7068700387534e7),
    # Earth-Moon barycenter: a point, no figure
    "EMB": Body("EMB", 3, 0.0, 0.0, 328900.5614),
}

_ALIASES: dict[str, str] = {
    "SOL": "SUN",
    "LUNA": "MOON",
    "EARTH_BARYCENTER": "EMB",
    "EARTH MOON BARYCENTER": "EMB",
    "EARTH-MOON BARYCENTER": "EMB",
    "EARTH_MOON_BARYCENTER": "EMB",
}

_BY_NAIF_ID: dict[int, str] = {b.naif_id: k for k, b in BODIES.items()}

PLANETS = ("MERCURY", "VENUS", "EARTH", "MARS", "JUPITER", "SATURN", "URANUS", "NEPTUNE")


# ---------------------------------------------------------------------------
# Rotation poles
# ---------------------------------------------------------------------------

def _neptune_pole(t: float) -> tuple[float, float]:
    n = math.radians(357.85 + 52.316 * t)
    return 299.36 + 0.70 * math.sin(n), 43.46 - 0.51 * math.cos(n)


# Low-order IAU rotation elements: body -> (ra0, ra_rate, dec0, dec_rate),
# degrees and degrees per Julian century, referred to ICRF/J2000.
_POLES: dict[str, tuple[float, float, float, float]] = {
    "SUN": (286.13, 0.0, 63.87, 0.0),
    "MERCURY": (281.01, -0.033, 61.45, -0.005),
    "VENUS": (272.76, 0.0, 67.16, 0.0),
    "EARTH": (0.0, -0.641, 90.0, -0.557),
    "MARS": (317.68143, -0.1061, 52.88650, -0.0609),
    "JUPITER": (268.056595, -0.006499, 64.495303, 0.002413),
    "SATURN": (40.589, -0.036, 83.537, -0.004),
    "URANUS": (257.311, 0.0, -15.175, 0.0),
    "PLUTO": (132.993, 0.0, -6.163, 0.0),
    "MOON": (269.9949, 0.0031, 66.5392, 0.0130),
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def resolve_body(name: "str | int | Body") -> Body:
    """Resolve a body name or NAIF ID to its registry entry.

    Performs case-insensitive lookup with alias support.

    Args:
        name: Body name (e.g., "Jupiter", "moon", "Earth-Moon barycenter")
            or NAIF integer ID.

    Returns:
        The matching Body.

    Raises:
        KeyError: If the body cannot be resolved.
    """
    if isinstance(name, Body):
        return name
    if isinstance(name, int):
        if name in _BY_NAIF_ID:
            return BODIES[_BY_NAIF_ID[name]]
        raise KeyError(f"Unknown body NAIF ID {name}. Supported: {', '.join(sorted(BODIES))}")

    raw = name.strip().upper()
    key = raw.replace("-", "_")

    if key in BODIES:
        return BODIES[key]

    alias_key = _ALIASES.get(key) or _ALIASES.get(raw)
    if alias_key:
        return BODIES[alias_key]

    compact = key.replace("_", "").replace(" ", "")
    for canon, body in BODIES.items():
        if canon.replace("_", "") == compact:
            return body

    raise KeyError(f"Unknown body '{name}'. Supported: {', '.join(sorted(BODIES))}")


def list_supported_bodies() -> list[dict]:
    """Return the supported bodies with NAIF IDs and radii.

    Returns:
        List of dicts with keys: body, naif_id, equatorial_radius_km,
        polar_radius_km, relative_mass.
    """
    return [
        {
            "body": key,
            "naif_id": body.naif_id,
            "equatorial_radius_km": body.equatorial_radius_km,
            "polar_radius_km": body.polar_radius_km,
            "relative_mass": body.relative_mass,
        }
        for key, body in sorted(BODIES.items())
    ]


def body_north_pole(body: str | Body, jd: float) -> tuple[float, float]:
    """Right ascension and declination of a body's north rotation pole.

    Args:
        body: Body name or Body.
        jd: Julian day (TDB).

    Returns:
        (ra, dec) in radians, ICRF/J2000.

    Raises:
        KeyError: If no rotation model is known for the body.
    """
    key = resolve_body(body).key
    t = centuries_since_j2000(jd)
    if key == "NEPTUNE":
        ra, dec = _neptune_pole(t)
    elif key in _POLES:
        ra0, ra1, dec0, dec1 = _POLES[key]
        ra, dec = ra0 + ra1 * t, dec0 + dec1 * t
    else:
        raise KeyError(f"No rotation pole defined for '{key}'")
    return (ra * spice.rpd()) % spice.twopi(), dec * spice.rpd()
