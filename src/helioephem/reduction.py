"""
Astrometric reduction primitives.

Precession, mean obliquity and sidereal time from PyERFA (IAU SOFA
routines) for the IAU 1976, 2000 and 2006 models, a truncated nutation
series, polar motion, and the NOVAS/Murray formulations of
gravitational light deflection and relativistic aberration.

Rotation matrices come from ``spiceypy.rotate``, which returns the frame
(passive) rotation R_i(angle) used by the IERS Conventions.

References:
    IERS Conventions 2010, Chapter 5.
    Murray, C. A. (1981), MNRAS 195, 639-648.
    Meeus, J., Astronomical Algorithms, 2nd ed., Table 22.A.
"""

import logging
import math

import erfa
import numpy as np
import spiceypy as spice

from .arguments import delaunay_arguments
from .constants import (
    ARCSEC_TO_RAD,
    AU_M,
    GM_SUN,
    JD_J2000,
    LIGHT_TIME_DAYS_PER_AU,
    SECONDS_PER_DAY,
    SPEED_OF_LIGHT_M_S,
    TWO_PI,
    centuries_since_j2000,
)
from .models import ReductionMethod

logger = logging.getLogger("helioephem")

DEFAULT_METHOD = ReductionMethod.IAU2006


# ---------------------------------------------------------------------------
# Precession and obliquity
# ---------------------------------------------------------------------------

def _two_part(jd: float) -> tuple[float, float]:
    # ERFA takes dates as two parts; splitting at J2000 keeps the fraction exact
    return JD_J2000, jd - JD_J2000


def mean_obliquity(jd: float, method: ReductionMethod = DEFAULT_METHOD) -> float:
    """Mean obliquity of the ecliptic, radians.

    IAU 1976 uses Lieske (1977); IAU 2000 adds the precession-rate
    correction to it; IAU 2006 and IAU 2009 use the P03 polynomial.
    """
    method = ReductionMethod.parse(method)
    d1, d2 = _two_part(jd)
    if method is ReductionMethod.IAU1976:
        return float(erfa.obl80(d1, d2))
    if method is ReductionMethod.IAU2000:
        _, deps = erfa.pr00(d1, d2)
        return float(erfa.obl80(d1, d2) + deps)
    return float(erfa.obl06(d1, d2))


def precession_matrix(jd: float, method: ReductionMethod = DEFAULT_METHOD) -> np.ndarray:
    """Matrix from the mean equator and equinox of J2000 to that of ``jd``.

    Frame bias is not included, so the matrix is the identity at J2000.

    Args:
        jd: Julian day (TT/TDB).
        method: IAU1976 (Lieske), IAU2000 or IAU2006/IAU2009
            (Fukushima-Williams angles).
    """
    method = ReductionMethod.parse(method)
    d1, d2 = _two_part(jd)
    if method is ReductionMethod.IAU1976:
        return erfa.pmat76(d1, d2)
    if method is ReductionMethod.IAU2000:
        _, rp, _ = erfa.bp00(d1, d2)
        return rp
    _, rp, _ = erfa.bp06(d1, d2)
    return rp


def precess_from_j2000(jd: float, vector, method: ReductionMethod = DEFAULT_METHOD) -> np.ndarray:
    return precession_matrix(jd, method) @ np.asarray(vector, dtype=float)


def precess_to_j2000(jd: float, vector, method: ReductionMethod = DEFAULT_METHOD) -> np.ndarray:
    return precession_matrix(jd, method).T @ np.asarray(vector, dtype=float)


def precess(jd0: float, jd: float, vector, method: ReductionMethod = DEFAULT_METHOD) -> np.ndarray:
    """Precess an equatorial vector from the mean equator of ``jd0`` to ``jd``."""
    if jd0 == jd:
        return np.asarray(vector, dtype=float).copy()
    return precess_from_j2000(jd, precess_to_j2000(jd0, vector, method), method)


# ---------------------------------------------------------------------------
# Nutation
# ---------------------------------------------------------------------------

# Multipliers of (D, M, M', F, Omega); dpsi sin and T coefficients, deps cos
# and T coefficients, in units of 0.0001 arcsec.
_NUTATION_TERMS = np.array([
    (0, 0, 0, 0, 1, -171996, -174.2, 92025, 8.9),
    (-2, 0, 0, 2, 2, -13187, -1.6, 5736, -3.1),
    (0, 0, 0, 2, 2, -2274, -0.2, 977, -0.5),
    (0, 0, 0, 0, 2, 2062, 0.2, -895, 0.5),
    (0, 1, 0, 0, 0, 1426, -3.4, 54, -0.1),
    (0, 0, 1, 0, 0, 712, 0.1, -7, 0),
    (-2, 1, 0, 2, 2, -517, 1.2, 224, -0.6),
    (0, 0, 0, 2, 1, -386, -0.4, 200, 0),
    (0, 0, 1, 2, 2, -301, 0, 129, -0.1),
    (-2, -1, 0, 2, 2, 217, -0.5, -95, 0.3),
    (-2, 0, 1, 0, 0, -158, 0, 0, 0),
    (-2, 0, 0, 2, 1, 129, 0.1, -70, 0),
    (0, 0, -1, 2, 2, 123, 0, -53, 0),
    (2, 0, 0, 0, 0, 63, 0, 0, 0),
    (0, 0, 1, 0, 1, 63, 0.1, -33, 0),
    (2, 0, -1, 2, 2, -59, 0, 26, 0),
    (0, 0, -1, 0, 1, -58, -0.1, 32, 0),
    (0, 0, 1, 2, 1, -51, 0, 27, 0),
    (-2, 0, 2, 0, 0, 48, 0, 0, 0),
    (0, 0, -2, 2, 1, 46, 0, -24, 0),
    (2, 0, 0, 2, 2, -38, 0, 16, 0),
    (0, 0, 2, 2, 2, -31, 0, 13, 0),
    (0, 0, 2, 0, 0, 29, 0, 0, 0),
    (-2, 0, 1, 2, 2, 29, 0, -12, 0),
    (0, 0, 0, 2, 0, 26, 0, 0, 0),
    (-2, 0, 0, 2, 0, -22, 0, 0, 0),
    (0, 0, -1, 2, 1, 21, 0, -10, 0),
    (0, 2, 0, 0, 0, 17, -0.1, 0, 0),
    (2, 0, -1, 0, 1, 16, 0, -8, 0),
    (-2, 2, 0, 2, 2, -16, 0.1, 7, 0),
], dtype=float)
_NUTATION_TERMS.setflags(write=False)

_NUTATION_UNIT = 1.0e-4 * ARCSEC_TO_RAD


def nutation_angles(jd: float) -> tuple[float, float]:
    """Nutation in longitude and in obliquity, radians.

    Args:
        jd: Julian day (TT/TDB).

    Returns:
        (dpsi, deps).
    """
    t = centuries_since_j2000(jd)
    l, lp, f, d, om = delaunay_arguments(t)
    args = np.array([d, lp, l, f, om])
    terms = _NUTATION_TERMS
    phase = terms[:, :5] @ args
    dpsi = np.sum((terms[:, 5] + terms[:, 6] * t) * np.sin(phase))
    deps = np.sum((terms[:, 7] + terms[:, 8] * t) * np.cos(phase))
    return float(dpsi) * _NUTATION_UNIT, float(deps) * _NUTATION_UNIT


def nutation_matrix(jd: float, method: ReductionMethod = DEFAULT_METHOD) -> np.ndarray:
    """Matrix from the mean to the true equator and equinox of ``jd``.

    N = R1(-(eps0 + deps)) R3(-dpsi) R1(eps0)
    """
    dpsi, deps = nutation_angles(jd)
    eps0 = mean_obliquity(jd, method)
    return spice.rotate(-(eps0 + deps), 1) @ spice.rotate(-dpsi, 3) @ spice.rotate(eps0, 1)


def nutate(jd: float, vector, inverse: bool = False,
           method: ReductionMethod = DEFAULT_METHOD) -> np.ndarray:
    """Apply nutation (mean -> true) or, with ``inverse``, remove it."""
    n = nutation_matrix(jd, method)
    return (n.T if inverse else n) @ np.asarray(vector, dtype=float)


# ---------------------------------------------------------------------------
# Sidereal time
# ---------------------------------------------------------------------------

def greenwich_mean_sidereal_time(jd_ut1: float, jd_tt: float | None = None,
                                 method: ReductionMethod = DEFAULT_METHOD) -> float:
    """Greenwich mean sidereal time, radians in [0, 2pi).

    Args:
        jd_ut1: Julian day, UT1.
        jd_tt: Julian day, TT; defaults to ``jd_ut1``.
        method: IAU1976 uses the 1982 GMST polynomial, the later models
            the Earth rotation angle plus the matching precession terms.
    """
    method = ReductionMethod.parse(method)
    jd_tt = jd_ut1 if jd_tt is None else jd_tt
    u1, u2 = _two_part(jd_ut1)
    t1, t2 = _two_part(jd_tt)
    if method is ReductionMethod.IAU1976:
        return float(erfa.gmst82(u1, u2))
    if method is ReductionMethod.IAU2000:
        return float(erfa.gmst00(u1, u2, t1, t2))
    return float(erfa.gmst06(u1, u2, t1, t2))


def greenwich_apparent_sidereal_time(jd_ut1: float, jd_tt: float | None = None,
                                     method: ReductionMethod = DEFAULT_METHOD) -> float:
    """Greenwich apparent sidereal time: GMST plus the equation of the equinoxes."""
    jd_tt = jd_ut1 if jd_tt is None else jd_tt
    dpsi, _ = nutation_angles(jd_tt)
    ee = dpsi * math.cos(mean_obliquity(jd_tt, method))
    return (greenwich_mean_sidereal_time(jd_ut1, jd_tt, method) + ee) % TWO_PI


def local_apparent_sidereal_time(jd_tt: float, longitude: float, delta_t: float = 0.0,
                                 method: ReductionMethod = DEFAULT_METHOD) -> float:
    """Local apparent sidereal time, radians.

    Args:
        jd_tt: Julian day, TT/TDB.
        longitude: East longitude of the observer, radians.
        delta_t: TT-UT1 in seconds.
        method: Precession model, see :func:`greenwich_mean_sidereal_time`.
    """
    jd_ut1 = jd_tt - delta_t / SECONDS_PER_DAY
    return (greenwich_apparent_sidereal_time(jd_ut1, jd_tt, method) + longitude) % TWO_PI


# ---------------------------------------------------------------------------
# Polar motion
# ---------------------------------------------------------------------------

def polar_motion_matrix(xp: float, yp: float, jd: float) -> np.ndarray:
    """Polar motion matrix W = R3(-s') R2(xp) R1(yp).

    Args:
        xp: Pole x coordinate, arcsec.
        yp: Pole y coordinate, arcsec.
        jd: Julian day (TT), used for the TIO locator s'.
    """
    s_prime = -47.0e-6 * centuries_since_j2000(jd) * ARCSEC_TO_RAD
    return (spice.rotate(-s_prime, 3) @ spice.rotate(xp * ARCSEC_TO_RAD, 2)
            @ spice.rotate(yp * ARCSEC_TO_RAD, 1))


def correct_polar_motion(vector, gast: float, xp: float, yp: float, jd: float) -> np.ndarray:
    """Apply polar motion to a true-equator vector, pivoting about GAST.

    The vector is rotated into the Greenwich meridian, corrected by W,
    and rotated back.
    """
    w = polar_motion_matrix(xp, yp, jd)
    m = spice.rotate(-gast, 3) @ w @ spice.rotate(gast, 3)
    return m @ np.asarray(vector, dtype=float)


# ---------------------------------------------------------------------------
# Light deflection
# ---------------------------------------------------------------------------

# Deflector on a line to within this cosine is treated as the target itself
_COLLINEAR_COSINE = 0.99999999999


def deflection_correction(observer_to_target, sun_to_observer, sun_to_target,
                          sun_to_deflector=(0.0, 0.0, 0.0), relative_mass: float = 1.0) -> np.ndarray:
    """Gravitational light deflection by one body.

    Args:
        observer_to_target: Observer -> target vector (AU).
        sun_to_observer: Sun -> observer vector (AU).
        sun_to_target: Sun -> target vector (AU).
        sun_to_deflector: Sun -> deflecting body vector (AU).
        relative_mass: Sun mass divided by the deflector mass.

    Returns:
        The deflected observer -> target vector, same length as the input.
    """
    vep = np.asarray(observer_to_target, dtype=float)
    if relative_mass == 0.0:
        return vep.copy()
    deflector = np.asarray(sun_to_deflector, dtype=float)
    d_e = np.asarray(sun_to_observer, dtype=float) - deflector
    d_p = np.asarray(sun_to_target, dtype=float) - deflector

    r_e = float(np.linalg.norm(d_e))
    r_p = float(np.linalg.norm(d_p))
    r_g = float(np.linalg.norm(vep))
    if r_e == 0 or r_p == 0 or r_g == 0:
        return vep.copy()

    dot_planet = float(vep @ d_p) / (r_g * r_p)
    dot_earth = float(d_e @ vep) / (r_g * r_e)
    dot_deflector = float(d_p @ d_e) / (r_e * r_p)
    if abs(dot_deflector) > _COLLINEAR_COSINE:
        return vep.copy()

    fac1 = 2.0 * GM_SUN / (SPEED_OF_LIGHT_M_S ** 2 * AU_M * r_e * relative_mass)
    fac2 = 1.0 + dot_deflector
    u = vep / r_g + fac1 * (dot_planet * d_e / r_e - dot_earth * d_p / r_p) / fac2
    return u * r_g


def solar_deflection(observer_to_target, sun_to_observer, sun_to_target) -> np.ndarray:
    """Light deflection by the Sun alone."""
    return deflection_correction(observer_to_target, sun_to_observer, sun_to_target)


# ---------------------------------------------------------------------------
# Aberration
# ---------------------------------------------------------------------------

def _aberration_terms(position: np.ndarray, velocity: np.ndarray, light_time: float):
    p1mag = light_time / LIGHT_TIME_DAYS_PER_AU
    vmag = float(np.linalg.norm(velocity))
    beta = vmag * LIGHT_TIME_DAYS_PER_AU
    cosd = float(position @ velocity) / (p1mag * vmag)
    gammai = math.sqrt(1.0 - beta * beta)
    p = beta * cosd
    q = (1.0 + p / (1.0 + gammai)) * light_time
    r = 1.0 + p
    return gammai, q, r


def aberration(position, observer_velocity, light_time: float) -> np.ndarray:
    """Relativistic aberration of a light-time corrected position.

    Args:
        position: Observer -> target vector (AU).
        observer_velocity: Observer velocity (AU/day).
        light_time: Light time to the target, days.

    Returns:
        Aberrated vector. The input is returned unchanged when the light
        time is not positive or the observer is at rest.
    """
    pos = np.asarray(position, dtype=float)
    vel = np.asarray(observer_velocity, dtype=float)
    if light_time <= 0 or not np.any(vel):
        return pos.copy()
    gammai, q, r = _aberration_terms(pos, vel, light_time)
    return (gammai * pos + q * vel) / r
