"""
ELP2000-82B lunar theory.

The theory is split into 36 families of periodic terms. Each family feeds
one of the three spherical coordinates (longitude, latitude, distance) and
belongs to one of four term sets that differ in row layout and argument
construction. The families are described declaratively in ``FAMILIES``;
their term tables come from a TermTableProvider under theory "ELP2000"
and quantities "1".."36".

Position pipeline:
- Sum every family into its coordinate, block by block, in family order
- Add the mean longitude polynomial and scale the distance
- Rotate from the ecliptic of date to the mean inertial ecliptic of J2000
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum

import numpy as np

from .arguments import CORRECTIONS, RAD, LunarArguments, lunar_arguments
from .constants import ARCSEC_TO_RAD, AU_KM, DAYS_PER_CENTURY, SECONDS_PER_DAY, centuries_since_j2000
from .frames import LUNAR_FK5_MATRIX, ecliptic_to_equatorial, equatorial_to_ecliptic, from_spherical, to_spherical
from .models import Frame, RectangularState
from .series import block_sums, term_count

logger = logging.getLogger("helioephem")

THEORY = "ELP2000"

# Semi-major axis of the theory and of the fit to DE200, km
A_THEORY = 384747.9806743165
A_FIT = 384747.9806448954

# Lunar secular acceleration, arcsec/century^2
MOON_SECULAR_ACCELERATION = -25.858
MOON_SECULAR_ACCELERATION_DE200 = -23.8946

# Epoch of the secular acceleration correction (1955.0)
_SECULAR_EPOCH = 2435109.0

_HALF_PI = math.pi / 2.0
_DEG = math.pi / 180.0

# Precession of the ecliptic, coefficients of t^1..t^5
_P = (0.10180391e-4, 0.47020439e-6, -0.5417367e-9, -0.2507948e-11, 0.463486e-14)
_Q = (-0.113469002e-3, 0.12372674e-6, 0.1265417e-8, -0.1371808e-11, -0.320334e-14)


# ---------------------------------------------------------------------------
# Family table
# ---------------------------------------------------------------------------

class Coordinate(Enum):
    LONGITUDE = 0
    LATITUDE = 1
    DISTANCE = 2


class TermSet(Enum):
    """Row layouts of the lunar families.

    MAIN: 4 Delaunay multipliers; A, B1..B5 (main problem, families 1-3).
    FIGURE: zeta + 4 Delaunay multipliers; phase (deg), amplitude, period
        (figures, tides, relativity, solar eccentricity).
    PLANETARY: 8 planet + 3 Delaunay multipliers; phase, amplitude, period
        (families 10-15).
    PLANETARY_SHORT: 7 planet + 4 Delaunay multipliers (families 16-21).
    """

    MAIN = "main"
    FIGURE = "figure"
    PLANETARY = "planetary"
    PLANETARY_SHORT = "planetary_short"


MULTIPLIER_WIDTH = {TermSet.MAIN: 4, TermSet.FIGURE: 5, TermSet.PLANETARY: 11, TermSet.PLANETARY_SHORT: 11}
COEFFICIENT_WIDTH = {TermSet.MAIN: 6, TermSet.FIGURE: 3, TermSet.PLANETARY: 3, TermSet.PLANETARY_SHORT: 3}


@dataclass(frozen=True)
class LunarFamily:
    """One of the 36 ELP2000 families.

    Attributes:
        number: Family number, 1..36.
        coordinate: Coordinate the family contributes to.
        term_set: Row layout and argument construction.
        time_power: Power of t multiplying the amplitudes.
    """

    number: int
    coordinate: Coordinate
    term_set: TermSet
    time_power: int = 0

    @property
    def quantity(self) -> str:
        return str(self.number)


def _term_set(n: int) -> TermSet:
    if n <= 3:
        return TermSet.MAIN
    if 10 <= n <= 15:
        return TermSet.PLANETARY
    if 16 <= n <= 21:
        return TermSet.PLANETARY_SHORT
    return TermSet.FIGURE


def _time_power(n: int) -> int:
    if 7 <= n <= 9 or 13 <= n <= 15 or 19 <= n <= 21 or 25 <= n <= 27:
        return 1
    if 34 <= n <= 36:
        return 2
    return 0


FAMILIES: dict[int, LunarFamily] = {
    n: LunarFamily(n, Coordinate((n - 1) % 3), _term_set(n), _time_power(n))
    for n in range(1, 37)
}


# ---------------------------------------------------------------------------
# Family evaluation
# ---------------------------------------------------------------------------

def _main_problem(family: LunarFamily, table, args: LunarArguments):
    c = CORRECTIONS
    coef = table.coefficients
    a = coef[:, 0]
    tgv = coef[:, 1] + c.dtasm * coef[:, 5]
    amplitude = (a + tgv * (c.delnp - c.am * c.delnu) + coef[:, 2] * c.delg
                 + coef[:, 3] * c.dele + coef[:, 4] * c.delep)
    if family.coordinate is Coordinate.DISTANCE:
        amplitude = amplitude - 2.0 * a * c.delnu / 3.0
    phase = table.multipliers @ args.delaunay
    if family.coordinate is Coordinate.DISTANCE:
        phase = phase + _HALF_PI
    return amplitude, phase, a


def _figure(family: LunarFamily, table, args: LunarArguments):
    coef = table.coefficients
    mult = table.multipliers
    selector = coef[:, 1]
    amplitude = selector * args.t ** family.time_power
    phase = coef[:, 0] * _DEG + mult[:, 0] * args.zeta + mult[:, 1:5] @ args.delaunay_linear
    return amplitude, phase, selector


def _planetary(family: LunarFamily, table, args: LunarArguments):
    coef = table.coefficients
    mult = table.multipliers
    selector = coef[:, 1]
    amplitude = selector * args.t ** family.time_power
    d = args.delaunay_linear
    if family.term_set is TermSet.PLANETARY:
        # D, l, F only; the Earth's anomaly enters through the planets
        phase = mult[:, :8] @ args.planetary + mult[:, 8:11] @ d[[0, 2, 3]]
    else:
        phase = mult[:, :7] @ args.planetary[:7] + mult[:, 7:11] @ d
    return amplitude, coef[:, 0] * _DEG + phase, selector


_EVALUATORS = {
    TermSet.MAIN: _main_problem,
    TermSet.FIGURE: _figure,
    TermSet.PLANETARY: _planetary,
    TermSet.PLANETARY_SHORT: _planetary,
}


def thresholds(truncation: float) -> tuple[float, float, float]:
    """Per-coordinate amplitude thresholds for a truncation level in arcsec."""
    return truncation - 1.0e-12, truncation - 1.0e-12, truncation * A_THEORY / RAD


def family_sums(family: LunarFamily, provider, args: LunarArguments, threshold: float) -> list[float]:
    """Per-block subtotals of one family, in block order."""
    table = provider.get_table(THEORY, family.quantity)
    if len(table) == 0:
        return [0.0 for _ in table.segments()]
    amplitude, phase, selector = _EVALUATORS[family.term_set](family, table, args)
    return block_sums(table, amplitude, phase, threshold, selectors=selector)


def term_counts(provider, truncation: float = 0.0) -> dict[int, int]:
    """Number of terms kept in each family at a truncation level."""
    limits = thresholds(truncation)
    counts = {}
    for n, family in FAMILIES.items():
        table = provider.get_table(THEORY, family.quantity)
        column = 0 if family.term_set is TermSet.MAIN else 1
        amps = table.coefficients[:, column] if len(table) else np.zeros(0)
        counts[n] = term_count(amps, limits[family.coordinate.value])
    return counts


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def lunar_coordinates(jd: float, provider, truncation: float = 0.0) -> tuple[float, float, float]:
    """Geocentric ecliptic coordinates of the Moon, ecliptic of date.

    Args:
        jd: Julian day (TDB).
        provider: TermTableProvider holding the 36 ELP2000 families.
        truncation: Amplitude threshold in arcsec; 0 keeps every term.

    Returns:
        (longitude, latitude) in radians and distance in km.

    Raises:
        KeyError: If a family table is missing.
    """
    if truncation < 0:
        raise ValueError(f"truncation must be >= 0, got {truncation}")
    args = lunar_arguments(centuries_since_j2000(jd))
    limits = thresholds(truncation)
    totals = [0.0, 0.0, 0.0]
    for n in range(1, 37):
        family = FAMILIES[n]
        iv = family.coordinate.value
        for subtotal in family_sums(family, provider, args, limits[iv]):
            totals[iv] += subtotal

    lon = totals[0] / RAD + args.mean_longitude
    lat = totals[1] / RAD
    dist = totals[2] * A_FIT / A_THEORY
    return lon, lat, dist


def _precession_rotation(t: float) -> np.ndarray:
    pw = qw = 0.0
    for p, q in zip(reversed(_P), reversed(_Q)):
        pw = pw * t + p
        qw = qw * t + q
    pw *= t
    qw *= t
    rra = 2.0 * math.sqrt(1.0 - pw * pw - qw * qw)
    pwqw = 2.0 * pw * qw
    pw2 = 1.0 - 2.0 * pw * pw
    qw2 = 1.0 - 2.0 * qw * qw
    pw *= rra
    qw *= rra
    return np.array([
        [pw2, pwqw, pw],
        [pwqw, qw2, -qw],
        [-pw, qw, pw2 + qw2 - 1.0],
    ])


def lunar_position(jd: float, provider, truncation: float = 0.0) -> np.ndarray:
    """Geocentric position of the Moon in AU, mean inertial ecliptic of J2000."""
    lon, lat, dist = lunar_coordinates(jd, provider, truncation)
    x = dist * np.array([
        math.cos(lat) * math.cos(lon),
        math.cos(lat) * math.sin(lon),
        math.sin(lat),
    ])
    return _precession_rotation(centuries_since_j2000(jd)) @ x / AU_KM


def lunar_state(jd: float, provider, truncation: float = 0.0,
                velocity_step: float | None = None) -> RectangularState:
    """Geocentric state of the Moon, mean inertial ecliptic of J2000.

    Args:
        jd: Julian day (TDB).
        provider: TermTableProvider with the ELP2000 families.
        truncation: Amplitude threshold in arcsec.
        velocity_step: If given, velocity is estimated by a central
            difference with this step in days; otherwise it is zero.
    """
    pos = lunar_position(jd, provider, truncation)
    vel = np.zeros(3)
    if velocity_step:
        ahead = lunar_position(jd + velocity_step, provider, truncation)
        behind = lunar_position(jd - velocity_step, provider, truncation)
        vel = (ahead - behind) / (2.0 * velocity_step)
    return RectangularState(pos, vel, Frame.ECLIPTIC_J2000, jd)


def secular_acceleration_correction(jd: float, acceleration: float = MOON_SECULAR_ACCELERATION) -> float:
    """Shift a TDB Julian day for the adopted lunar secular acceleration.

    The theory was fitted with the DE200 value; the correction is zero at
    1955.0 and grows quadratically away from it.
    """
    cent = (jd - _SECULAR_EPOCH) / DAYS_PER_CENTURY
    delta = 0.91072 * (acceleration - MOON_SECULAR_ACCELERATION_DE200) * cent * cent
    return jd + delta / SECONDS_PER_DAY


def mean_inertial_to_fk5(vector) -> np.ndarray:
    """Rotate a mean inertial ecliptic J2000 vector of this theory to FK5."""
    return LUNAR_FK5_MATRIX @ np.asarray(vector, dtype=float)


def barycenter_to_geometric_center(vector, obliquity: float) -> np.ndarray:
    """Shift an equatorial geocentric Moon vector from its center of mass to its figure center.

    -0.5 arcsec in ecliptic longitude, +0.25 arcsec in latitude and 2 km
    farther away.

    Args:
        vector: Equatorial geocentric vector, AU.
        obliquity: Obliquity of the ecliptic of the vector's equator, radians.
    """
    lon, lat, r = to_spherical(equatorial_to_ecliptic(vector, obliquity))
    lon -= 0.5 * ARCSEC_TO_RAD
    lat += 0.25 * ARCSEC_TO_RAD
    r += 2.0 / AU_KM
    return ecliptic_to_equatorial(from_spherical(lon, lat, r), obliquity)
