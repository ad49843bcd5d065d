"""
VSOP87 planetary theory (Bretagnon & Francou 1988).

Each body's table lives in a TermTableProvider under theory "VSOP87<variant>"
with the body key as quantity. Rows carry ``[axis, power]`` multipliers and
``(A, B, C)`` coefficients; a term contributes ``A cos(B + C tau) tau^power``
to its axis, with ``tau`` in Julian millennia from J2000. Velocities come
from differentiating the same series analytically.

Variants:
- A: heliocentric rectangular, ecliptic and equinox J2000
- B: heliocentric spherical (L, B, R), ecliptic and equinox J2000
- C: heliocentric rectangular, ecliptic and equinox of date
- D: heliocentric spherical, ecliptic and equinox of date
- E: barycentric rectangular, ecliptic and equinox J2000
"""

import logging
import math

import numpy as np

from .bodies import resolve_body
from .constants import DAYS_PER_MILLENNIUM, JD_J2000, TWO_PI
from .errors import InvalidTarget
from .frames import ecliptic_to_equatorial, equatorial_to_ecliptic
from .models import Frame, RectangularState
from .reduction import mean_obliquity, precession_matrix
from .series import poisson_series

logger = logging.getLogger("helioephem")

VARIANTS = ("A", "B", "C", "D", "E")
SPHERICAL_VARIANTS = ("B", "D")
OF_DATE_VARIANTS = ("C", "D")

SUPPORTED_BODIES = ("SUN", "MERCURY", "VENUS", "EARTH", "EMB", "MARS",
                    "JUPITER", "SATURN", "URANUS", "NEPTUNE")

# Recommended interval for the giant planets (1900-2100)
RECOMMENDED_START = 2415020.5
RECOMMENDED_END = 2488092.5
_GIANT_PLANETS = ("JUPITER", "SATURN", "URANUS", "NEPTUNE")


def theory_key(variant: str) -> str:
    variant = variant.strip().upper()
    if variant not in VARIANTS:
        raise ValueError(f"Unknown VSOP87 variant '{variant}'. Supported: {', '.join(VARIANTS)}")
    return f"VSOP87{variant}"


def _body_key(body) -> str:
    try:
        key = resolve_body(body).key
    except KeyError as e:
        raise InvalidTarget(str(e.args[0])) from e
    if key not in SUPPORTED_BODIES:
        raise InvalidTarget(
            f"VSOP87 has no series for '{key}'. Supported: {', '.join(SUPPORTED_BODIES)}"
        )
    return key


def warn_if_outside_recommended(jd: float, body) -> bool:
    """Log a warning when a giant planet is computed outside 1900-2100.

    Returns:
        True if a warning was issued.
    """
    key = resolve_body(body).key
    if key in _GIANT_PLANETS and not RECOMMENDED_START <= jd <= RECOMMENDED_END:
        logger.warning("VSOP87 is not recommended for %s outside years 1900-2100 (JD %.1f)", key, jd)
        return True
    return False


def evaluate_series(jd: float, body, provider, variant: str = "A") -> tuple[np.ndarray, np.ndarray]:
    """Raw VSOP87 values and their time derivatives.

    Args:
        jd: Julian day (TDB).
        body: Body name.
        provider: TermTableProvider with the VSOP87 tables.
        variant: VSOP87 variant letter.

    Returns:
        (values, rates): three coordinates in the variant's units (AU or
        radians) and their rates per day. Spherical longitudes are reduced
        to [0, 2pi).

    Raises:
        InvalidTarget: If the body has no VSOP87 series.
        KeyError: If the table is not registered.
    """
    key = _body_key(body)
    table = provider.get_table(theory_key(variant), key)
    tau = (jd - JD_J2000) / DAYS_PER_MILLENNIUM
    values = np.zeros(3)
    rates = np.zeros(3)
    if len(table):
        axes = table.multipliers[:, 0]
        powers = table.multipliers[:, 1]
        coef = table.coefficients
        for axis in range(3):
            rows = axes == axis
            values[axis], rates[axis] = poisson_series(
                coef[rows, 0], coef[rows, 1], coef[rows, 2], tau, powers[rows])
    rates /= DAYS_PER_MILLENNIUM
    if variant.upper() in SPHERICAL_VARIANTS:
        values[0] = values[0] % TWO_PI
    return values, rates


def _spherical_to_rectangular(values: np.ndarray, rates: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    lon, lat, r = values
    dlon, dlat, dr = rates
    cl, sl = math.cos(lon), math.sin(lon)
    cb, sb = math.cos(lat), math.sin(lat)
    pos = np.array([r * cb * cl, r * cb * sl, r * sb])
    vel = np.array([
        dr * cb * cl - r * sb * dlat * cl - r * cb * sl * dlon,
        dr * cb * sl - r * sb * dlat * sl + r * cb * cl * dlon,
        dr * sb + r * cb * dlat,
    ])
    return pos, vel


def _of_date_to_j2000(jd: float) -> np.ndarray:
    # ecliptic of date -> equator of date -> equator J2000 -> ecliptic J2000
    to_eq = ecliptic_to_equatorial(np.eye(3), mean_obliquity(jd))
    return equatorial_to_ecliptic(precession_matrix(jd).T @ to_eq, mean_obliquity(JD_J2000))


def vsop_state(jd: float, body, provider, variant: str = "A") -> RectangularState:
    """Heliocentric state of a body, ecliptic and equinox J2000.

    Whatever the variant, the result is rectangular, heliocentric and
    referred to the ecliptic J2000 of the theory. The Sun is at the
    origin except in variant E, where the Sun's own barycentric state is
    used to recentre the body.

    Raises:
        InvalidTarget: If the body has no VSOP87 series.
    """
    variant = variant.strip().upper()
    key = _body_key(body)
    if key == "SUN" and variant != "E":
        return RectangularState.zero(Frame.ECLIPTIC_J2000, jd)

    values, rates = evaluate_series(jd, key, provider, variant)
    if variant in SPHERICAL_VARIANTS:
        pos, vel = _spherical_to_rectangular(values, rates)
    else:
        pos, vel = values, rates
    if variant in OF_DATE_VARIANTS:
        m = _of_date_to_j2000(jd)
        pos, vel = m @ pos, m @ vel
    if variant == "E":
        if key == "SUN":
            return RectangularState.zero(Frame.ECLIPTIC_J2000, jd)
        sun_pos, sun_vel = evaluate_series(jd, "SUN", provider, "E")
        pos, vel = pos - sun_pos, vel - sun_vel
    return RectangularState(pos, vel, Frame.ECLIPTIC_J2000, jd)


def geocentric_position(jd: float, body, light_time: float, provider, variant: str = "A",
                        observer_state: RectangularState | None = None,
                        offset=None) -> RectangularState:
    """Position of a body relative to the observer's body, ecliptic J2000.

    The target is evaluated at ``jd - light_time`` and the observer at
    ``jd``. The returned velocity is the observer's heliocentric velocity,
    which is what aberration needs.

    Args:
        jd: Julian day (TDB).
        body: Target body.
        light_time: Light time in days.
        provider: TermTableProvider.
        variant: VSOP87 variant letter.
        observer_state: Heliocentric ecliptic J2000 state of the observer's
            body; defaults to the Earth from this theory.
        offset: Optional vector (AU, ecliptic J2000) added to the target,
            e.g. a satellite's planetocentric position.
    """
    target = vsop_state(jd - light_time, body, provider, variant)
    if observer_state is None:
        observer_state = vsop_state(jd, "EARTH", provider, variant)
    observer_state.require_frame(Frame.ECLIPTIC_J2000)
    pos = target.position
    if offset is not None:
        pos = pos + np.asarray(offset, dtype=float)
    return RectangularState(pos - observer_state.position, observer_state.velocity,
                            Frame.ECLIPTIC_J2000, jd, light_time > 0)
