"""
Fundamental arguments of the lunar and nutation theories.

Two independent constant sets live here:

- The ELP2000 constant set (Chapront-Touze & Chapront): mean longitude of
  the Moon, the four Delaunay differences, the precessional longitude
  ``zeta`` and the mean longitudes of the planets, as polynomials in
  Julian centuries from J2000.
- The IERS 2010 Delaunay arguments (l, l', F, D, Omega) used by the
  nutation series.

Everything is pure arithmetic on ``t`` and never fails.
"""

import math
from dataclasses import dataclass

import numpy as np

from .constants import ARCSEC_TO_RAD, TWO_PI

# Arcseconds per radian
RAD = 648000.0 / math.pi
DEG = math.pi / 180.0


def _dms(d: float, m: float, s: float) -> float:
    return (d + m / 60.0 + s / 3600.0) * DEG


# ---------------------------------------------------------------------------
# ELP2000 polynomial coefficients (radians, radians/century^k, k = 0..4)
# ---------------------------------------------------------------------------

MEAN_LONGITUDE = np.array([
    _dms(218, 18, 59.95571), 1732559343.73604 / RAD, -5.8883 / RAD,
    0.6604e-2 / RAD, -0.3169e-4 / RAD,
])
MEAN_PERIGEE = np.array([
    _dms(83, 21, 11.67475), 14643420.2632 / RAD, -38.2776 / RAD,
    -0.45047e-1 / RAD, 0.21301e-3 / RAD,
])
MEAN_NODE = np.array([
    _dms(125, 2, 40.39816), -6967919.3622 / RAD, 6.3622 / RAD,
    0.7625e-2 / RAD, -0.3586e-4 / RAD,
])
EARTH_MEAN_LONGITUDE = np.array([
    _dms(100, 27, 59.22059), 129597742.2758 / RAD, -0.0202 / RAD,
    0.9e-5 / RAD, 0.15e-6 / RAD,
])
PERIHELION = np.array([
    _dms(102, 56, 14.42753), 1161.2283 / RAD, 0.5327 / RAD,
    -0.138e-3 / RAD, 0.0,
])

PRECESSION_RATE = 5029.0966 / RAD

# D, l', l, F (D carries +pi so that it measures elongation from the Sun)
DELAUNAY = np.array([
    MEAN_LONGITUDE - EARTH_MEAN_LONGITUDE,
    EARTH_MEAN_LONGITUDE - PERIHELION,
    MEAN_LONGITUDE - MEAN_PERIGEE,
    MEAN_LONGITUDE - MEAN_NODE,
])
DELAUNAY[0, 0] += math.pi

ZETA = np.array([MEAN_LONGITUDE[0], MEAN_LONGITUDE[1] + PRECESSION_RATE])

# Mercury .. Neptune mean longitudes (constant, rate)
PLANETARY_LONGITUDES = np.array([
    [_dms(252, 15, 3.25986), 538101628.68898 / RAD],
    [_dms(181, 58, 47.28305), 210664136.43355 / RAD],
    [EARTH_MEAN_LONGITUDE[0], EARTH_MEAN_LONGITUDE[1]],
    [_dms(355, 25, 59.78866), 68905077.59284 / RAD],
    [_dms(34, 21, 5.34212), 10925660.42861 / RAD],
    [_dms(50, 4, 38.89694), 4399609.65932 / RAD],
    [_dms(314, 3, 18.01841), 1542481.19393 / RAD],
    [_dms(304, 20, 55.19575), 786550.32074 / RAD],
])

for _arr in (MEAN_LONGITUDE, MEAN_PERIGEE, MEAN_NODE, EARTH_MEAN_LONGITUDE, PERIHELION,
             DELAUNAY, ZETA, PLANETARY_LONGITUDES):
    _arr.setflags(write=False)
del _arr


@dataclass(frozen=True)
class LunarCorrections:
    """Fitted corrections to the ELP2000 constants (radians)."""

    delnu: float
    dele: float
    delg: float
    delnp: float
    delep: float
    am: float = 0.074801329518
    alfa: float = 0.002571881335

    @property
    def dtasm(self) -> float:
        return 2.0 * self.alfa / (3.0 * self.am)


CORRECTIONS = LunarCorrections(
    delnu=0.55604 / RAD / MEAN_LONGITUDE[1],
    dele=0.01789 / RAD,
    delg=-0.08066 / RAD,
    delnp=-0.06424 / RAD / MEAN_LONGITUDE[1],
    delep=-0.12879 / RAD,
)


def time_powers(t: float, n: int = 5) -> np.ndarray:
    """Return ``[1, t, t**2, ..., t**(n-1)]``."""
    powers = np.empty(n)
    powers[0] = 1.0
    for k in range(1, n):
        powers[k] = powers[k - 1] * t
    return powers


@dataclass(frozen=True)
class LunarArguments:
    """ELP2000 arguments evaluated at one instant.

    Attributes:
        t: Julian centuries from J2000 (TDB).
        powers: ``time_powers(t)``.
        mean_longitude: Full polynomial mean longitude of the Moon.
        delaunay: D, l', l, F from the full polynomials.
        delaunay_linear: D, l', l, F from the constant and linear terms only.
        zeta: Mean longitude plus precession, linear.
        planetary: Mercury..Neptune mean longitudes, linear.
    """

    t: float
    powers: np.ndarray
    mean_longitude: float
    delaunay: np.ndarray
    delaunay_linear: np.ndarray
    zeta: float
    planetary: np.ndarray


def lunar_arguments(t: float) -> LunarArguments:
    """Evaluate the ELP2000 fundamental arguments.

    Args:
        t: Julian centuries from J2000 (TDB).

    Returns:
        LunarArguments with unreduced angles in radians.
    """
    powers = time_powers(t)
    linear = powers[:2]
    return LunarArguments(
        t=t,
        powers=powers,
        mean_longitude=float(MEAN_LONGITUDE @ powers),
        delaunay=DELAUNAY @ powers,
        delaunay_linear=DELAUNAY[:, :2] @ linear,
        zeta=float(ZETA @ linear),
        planetary=PLANETARY_LONGITUDES @ linear,
    )


# ---------------------------------------------------------------------------
# IERS 2010 Delaunay arguments (Table 5.2), arcsec polynomials
# ---------------------------------------------------------------------------

_IERS_DELAUNAY = (
    (485868.249036, 1717915923.2178, 31.8792, 0.051635, -0.00024470),     # l
    (1287104.79305, 129596581.0481, -0.5532, 0.000136, -0.00001149),      # l'
    (335779.526232, 1739527262.8478, -12.7512, -0.001037, 0.00000417),    # F
    (1072260.70369, 1602961601.2090, -6.3706, 0.006593, -0.00003169),     # D
    (450160.398036, -6962890.5431, 7.4722, 0.007702, -0.00005939),        # Omega
)


def delaunay_arguments(t: float) -> tuple[float, float, float, float, float]:
    """Delaunay arguments (l, l', F, D, Omega) in radians, reduced to [0, 2pi).

    Args:
        t: Julian centuries of TT from J2000.
    """
    out = []
    for c0, c1, c2, c3, c4 in _IERS_DELAUNAY:
        arcsec = c0 + t * (c1 + t * (c2 + t * (c3 + t * c4)))
        out.append((arcsec * ARCSEC_TO_RAD) % TWO_PI)
    return tuple(out)
