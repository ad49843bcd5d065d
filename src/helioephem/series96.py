"""
Series96: frequency-analysis fits to DE403 for the outer planets.

Chapront & Francou (1995), A&AS 109, 191. Each body is split into time
blocks; within a block the position is a secular power series plus
Poisson terms in the reduced time ``x`` in [-1, 1]. Coefficients are in
1e-10 AU, heliocentric, equator and equinox J2000 (ICRF).

The geocentric Earth-Moon barycenter offset is a fixed 138-term series
usable at any date.
"""

import logging
import math
from dataclasses import dataclass

import numpy as np

from .bodies import body_north_pole, resolve_body
from .constants import JD_J2000
from .errors import InvalidDateRange, InvalidTarget
from .models import Frame, RectangularState
from .series import ordered_sum
from .tables import Series96Body

logger = logging.getLogger("helioephem")

THEORY = "SERIES96"
SCALE = 1.0e10

SUPPORTED_BODIES = ("SUN", "EARTH", "EMB", "MARS", "JUPITER", "SATURN",
                    "URANUS", "NEPTUNE", "PLUTO")

VALID_END = 2488092.5
VALIDITY: dict[str, tuple[float, float]] = {
    "PLUTO": (2341972.5, VALID_END),
    "NEPTUNE": (2396758.5, VALID_END),
}
DEFAULT_VALIDITY = (2415020.5, VALID_END)


def validity_interval(body) -> tuple[float, float]:
    """Return the (start, end) Julian days over which a body's fit is valid."""
    return VALIDITY.get(resolve_body(body).key, DEFAULT_VALIDITY)


def check_date(jd: float, body) -> None:
    """Raise InvalidDateRange if ``jd`` is outside the body's validity window."""
    start, end = validity_interval(body)
    if not start <= jd <= end:
        key = resolve_body(body).key
        raise InvalidDateRange(
            f"Invalid date {jd} for {key} with Series96, outside interval ({start} - {end})",
            jd=jd, valid_from=start, valid_to=end,
        )


def _body_key(body) -> str:
    try:
        key = resolve_body(body).key
    except KeyError as e:
        raise InvalidTarget(str(e.args[0])) from e
    if key not in SUPPORTED_BODIES:
        raise InvalidTarget(
            f"Series96 has no fit for '{key}'. Supported: {', '.join(SUPPORTED_BODIES)}"
        )
    return key


# ---------------------------------------------------------------------------
# Block evaluation
# ---------------------------------------------------------------------------

def _row_sums(matrix: np.ndarray, values: np.ndarray) -> np.ndarray:
    """Dot product of each row with ``values``, summed in column order."""
    return np.array([ordered_sum(row * values) for row in matrix])


def evaluate_fit(jd: float, fit: Series96Body) -> tuple[np.ndarray, np.ndarray]:
    """Evaluate a fitted body at ``jd``.

    Returns:
        (position, velocity) in AU and AU/day.

    Raises:
        InvalidDateRange: If ``jd`` falls outside the span of the blocks.
    """
    if not fit.blocks or not fit.start - 0.5 <= jd <= fit.end + 0.5:
        raise InvalidDateRange(
            f"Date {jd} outside Series96 blocks for {fit.body} ({fit.start} - {fit.end})",
            jd=jd, valid_from=fit.start, valid_to=fit.end,
        )
    nb = int((jd - fit.start) / fit.spacing) + 1
    if jd <= fit.start:
        nb = 1
    nb = min(nb, len(fit.blocks))
    block = fit.blocks[nb - 1]

    t_init = fit.start + (nb - 1) * fit.spacing
    x = 2.0 * (jd - t_init) / fit.spacing - 1.0
    fx = x * fit.spacing / 2.0
    wt = 2.0 / fit.spacing

    n_sec = block.secular.shape[1]
    powers = x ** np.arange(n_sec)
    pos = _row_sums(block.secular, powers)
    vel = _row_sums(block.secular[:, 1:], np.arange(1, n_sec) * powers[:-1]) * wt

    for m, freqs in enumerate(fit.frequencies):
        if freqs.size == 0:
            continue
        ct, st = block.cosine[m], block.sine[m]
        cf, sf = np.cos(freqs * fx), np.sin(freqs * fx)
        xm = x ** m
        periodic = _row_sums(ct, cf) + _row_sums(st, sf)
        pos = pos + periodic * xm
        vel = vel + (_row_sums(st * freqs, cf) - _row_sums(ct * freqs, sf)) * xm
        if m > 0:
            vel = vel + m * wt * periodic * x ** (m - 1)

    return pos / SCALE, vel / SCALE


# ---------------------------------------------------------------------------
# Earth-Moon barycenter
# ---------------------------------------------------------------------------

def _readonly(values) -> np.ndarray:
    arr = np.array(values, dtype=float)
    arr.setflags(write=False)
    return arr


# Terms per axis: x = 0..42, y = 43..91, z = 92..137
_AXIS_SLICES = (slice(0, 43), slice(43, 92), slice(92, 138))

_C = _readonly([
    -244075.0, -2965.0, 8528.0, 2345.0, -2486.0, 1426.0, 527.0, -43.0, -393.0, 394.0, -218.0, 73.0, 91.0, -173.0, 25.0, -20.0,
    75.0, 72.0, 6.0, 72.0, -40.0, -58.0, 56.0, -53.0, 46.0, -44.0, -5.0, 0.0, -1.0, -12.0, 21.0, -4.0, -4.0, -2.0, 9.0, 8.0,
    10.0, 2.0, -10.0, -12.0, -11.0, 10.0, -10.0, -176962.0, -23344.0, -11109.0, -922.0, -4118.0, 714.0, -1135.0, -601.0,
    299.0, 564.0, -311.0, 261.0, -251.0, 254.0, 229.0, 213.0, -179.0, 57.0, -19.0, -125.0, -113.0, -87.0, -52.0, 75.0, 16.0,
    -5.0, -42.0, -4.0, -10.0, 8.0, -19.0, 9.0, 40.0, 29.0, -25.0, 11.0, 19.0, -12.0, -5.0, 18.0, -15.0, -16.0, 13.0, 13.0, 9.0,
    -1.0, -3.0, -5.0, -1.0, -76714.0, 25611.0, -10120.0, -400.0, 1387.0, -1785.0, 310.0, 580.0, -492.0, -527.0, 44.0,
    130.0, 244.0, -135.0, 113.0, -38.0, 110.0, 92.0, -78.0, 25.0, -54.0, -26.0, -49.0, -38.0, 27.0, -23.0, 32.0, 2.0, -2.0,
    1.0, -18.0, -2.0, -23.0, -4.0, 3.0, -8.0, 4.0, -11.0, 17.0, 3.0, -11.0, 13.0, 8.0, -11.0, -7.0, 4.0])

_S = _readonly([
    192874.0, 25444.0, 1005.0, 4489.0, -778.0, 1238.0, -326.0, -614.0, 339.0, -285.0, -276.0, -232.0, 195.0, -63.0, 136.0, 124.0,
    95.0, 57.0, -82.0, 5.0, 45.0, 4.0, 11.0, -9.0, 20.0, -10.0, -44.0, -32.0, 27.0, -20.0, 6.0, -20.0, 17.0, 17.0, -14.0,
    -14.0, 4.0, -11.0, -10.0, 3.0, 6.0, -7.0, 4.0, -223938.0, -2720.0, 635.0, 7824.0, 2151.0, -2281.0, 1309.0, -675.0,
    483.0, -40.0, -360.0, 362.0, 327.0, -200.0, 204.0, 67.0, 84.0, -159.0, -145.0, 23.0, -18.0, 69.0, 66.0, 5.0, 65.0, 66.0,
    -36.0, -53.0, 51.0, -48.0, 42.0, -40.0, -5.0, 0.0, -1.0, -19.0, -11.0, 17.0, 20.0, -4.0, -4.0, -2.0, 9.0, 7.0, -9.0, -13.0,
    -11.0, -10.0, 11.0, -97079.0, -1464.0, -1179.0, 3392.0, 1557.0, 933.0, -989.0, -754.0, 567.0, -470.0, 334.0, 210.0,
    -17.0, -156.0, 157.0, -151.0, -87.0, 29.0, 36.0, -69.0, 10.0, 43.0, -8.0, 30.0, -39.0, 29.0, 2.0, 29.0, 29.0, -25.0,
    -16.0, -23.0, 3.0, 22.0, -21.0, 18.0, -17.0, 13.0, -2.0, 14.0, -8.0, 0.0, -9.0, 0.0, -8.0, 9.0])

_F = _readonly([
    0.2299708345453799, 0.0019436907548255, 0.4579979783362081, 0.0324605575663244, -0.1955665862245038,
    0.4274811115247091, -0.2318206046403833, 0.6555082553155372, 0.2127688645204655, 0.2471728045705681,
    0.6860251221267625, 0.2604877013568789, 0.0496625275912389, -0.1783646161993155, 0.0172021241604381,
    0.0191456607800137, -0.2260834530360027, 0.4102791414995209, -0.0152582792703628, 0.4407960083110198,
    0.8835353991060917, 0.1994539677341547, 0.2662248529612594, 0.4751999483613963, 0.4427395449305955,
    -0.0037934608495551, 0.6383062852903491, 0.4637351299405887, 0.1937168161297741, 0.0152585875411362,
    -0.2127685562496920, 0.0000001541352498, -0.4598477484309377, 0.9140522659175908, 0.2452292679512662,
    0.6249913885040383, 0.2300338378809035, -0.2299078312098563, 0.4446830815498973, 0.8530185322948665,
    0.4885148451477070, 0.0381977091707050, 0.2147124011397673, 0.2299708345453799, 0.0019436907548255,
    0.2308957195928816, 0.4579979783362081, 0.0324605575663244, -0.1955665862245038, 0.4274811115247091,
    -0.0028685758023272, -0.2318206046403833, 0.6555082553155372, 0.2127688645204655, 0.2471728045705681,
    0.1946417011770021, 0.6860251221267625, 0.4589228633837098, 0.2604877013568789, 0.0496625275912389,
    -0.1783646161993155, -0.0333854426135524, 0.0172021241604381, 0.0191456607800137, -0.2260834530360027,
    0.4102791414995209, -0.0152582792703628, 0.4284059965722108, 0.4407960083110198, 0.8835353991060917,
    0.1994539677341547, 0.2662248529612594, 0.4751999483613963, 0.4427395449305955, -0.0037934608495551,
    0.6383062852903491, 0.4637351299405887, 0.1937168161297741, 0.6564331403627652, 0.0152585875411362,
    0.1774397311520876, -0.2127685562496920, 0.0000001541352498, -0.4598477484309377, 0.9140522659175908,
    0.2452292679512662, 0.6249913885040383, 0.4446830815498973, 0.6869500071742641, 0.8530185322948665,
    0.4885148451477070, 0.2251585679885010, 0.2299708345453799, 0.2308957195928816, 0.0019436907548255,
    0.4579979783362081, -0.0028685758023272, 0.0324605575663244, -0.1955665862245038, 0.1946417011770021,
    0.4274811115247091, 0.4589228633837098, -0.0333854426135524, -0.2318206046403833, 0.6555082553155372,
    0.2127688645204655, 0.2471728045705681, 0.4284059965722108, 0.6860251221267625, 0.2604877013568789,
    0.0496625275912389, -0.1783646161993155, 0.0172021241604381, 0.6564331403627652, 0.0191456607800137,
    -0.2260834530360027, 0.1774397311520876, 0.4102791414995209, -0.0152582792703628, 0.6869500071742641,
    0.4407960083110198, 0.2251585679885010, 0.8835353991060917, 0.1994539677341547, 0.4226688449678302,
    0.2662248529612594, 0.4751999483613963, 0.4427395449305955, -0.0037934608495551, 0.2118436712021903,
    0.6383062852903491, -0.0505874126387406, -0.2614125864043805, 0.4637351299405887, 0.0200705458272416,
    0.1937168161297741, 0.0143333942228611, -0.0181270092079398])


def barycenter_offset(jd: float) -> np.ndarray:
    """Geocentric position of the Earth-Moon barycenter, AU, equator J2000.

    No date restriction; accuracy degrades slowly away from the present.
    """
    t = jd - JD_J2000
    terms = _C * np.cos(_F * t) + _S * np.sin(_F * t)
    return np.array([ordered_sum(terms[s]) for s in _AXIS_SLICES]) / SCALE


def barycenter_velocity(jd: float, step: float = 0.01) -> np.ndarray:
    """Rate of change of ``barycenter_offset``, AU/day, by central difference."""
    if step <= 0:
        raise ValueError(f"step must be positive, got {step}")
    return (barycenter_offset(jd + step) - barycenter_offset(jd - step)) / (2.0 * step)


# ---------------------------------------------------------------------------
# Pluto system barycenter
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SatelliteElements:
    """Mean orbital elements of a satellite, referred to its planet's equator.

    Angles in radians, rates in radians per day, semimajor axis in AU.
    """

    epoch: float
    semimajor_axis: float
    eccentricity: float
    periapsis_longitude: float
    mean_longitude: float
    inclination: float
    node_longitude: float
    mean_motion: float
    apsis_rate: float = 0.0
    node_rate: float = 0.0


# JPL mean elements of Charon
CHARON = SatelliteElements(
    epoch=2451545.0,
    semimajor_axis=-1.1722091978315161e-4,
    eccentricity=0.0022,
    periapsis_longitude=2.730427988404969,
    mean_longitude=5.310862380893545,
    inclination=1.7453292519943296e-5,
    node_longitude=1.4867936298964095,
    mean_motion=0.9837102327428984,
)

# Charon's share of the Pluto-Charon mass
CHARON_MASS_FRACTION = 1.0 / 8.0


def satellite_position(jd: float, elements: SatelliteElements, planet) -> np.ndarray:
    """Planetocentric position of a satellite, AU, equator J2000.

    The orbit is a precessing ellipse expanded to second order in the
    eccentricity, laid in the plane of the planet's equator.

    Args:
        jd: Julian day (TDB).
        elements: Mean elements of the satellite.
        planet: Central body, whose rotation pole orients the orbit.
    """
    dt = jd - elements.epoch
    mean_lon = elements.mean_longitude + dt * elements.mean_motion

    # Apsidal motion rotates (h, k)
    s, c = math.sin(dt * elements.apsis_rate), math.cos(dt * elements.apsis_rate)
    h0 = elements.eccentricity * math.sin(elements.periapsis_longitude)
    k0 = elements.eccentricity * math.cos(elements.periapsis_longitude)
    h, k = k0 * s + h0 * c, k0 * c - h0 * s
    e = math.hypot(h, k)
    omega = math.atan2(h, k) if e else 0.0
    anomaly = mean_lon - omega
    true_lon = mean_lon + 2.0 * e * math.sin(anomaly) + 1.25 * e * e * math.sin(2.0 * anomaly)
    r = elements.semimajor_axis * (1.0 - e * e) / (1.0 + e * math.cos(true_lon - omega))

    # Nodal motion rotates (p, q)
    s, c = math.sin(dt * elements.node_rate), math.cos(dt * elements.node_rate)
    tan_half = math.tan(0.5 * elements.inclination)
    p0 = tan_half * math.sin(elements.node_longitude)
    q0 = tan_half * math.cos(elements.node_longitude)
    p, q = q0 * s + p0 * c, q0 * c - p0 * s

    s, c = math.sin(true_lon), math.cos(true_lon)
    out_of_plane = 2.0 * (q * s - p * c) / (1.0 + p * p + q * q)
    in_orbit = r * np.array([c + p * out_of_plane, s - q * out_of_plane, out_of_plane])

    ra, dec = body_north_pole(planet, jd)
    sa, ca = -math.sin(ra), -math.cos(ra)
    sd, cd = -math.sin(dec), math.cos(dec)
    to_equator = np.array([
        [sa, ca * sd, ca * cd],
        [-ca, sa * sd, sa * cd],
        [0.0, -cd, sd],
    ])
    return to_equator @ in_orbit


def pluto_barycenter_to_center(position, jd: float) -> np.ndarray:
    """Move a Pluto system barycenter position to the center of Pluto.

    Args:
        position: Barycenter position, AU, equator J2000.
        jd: Julian day (TDB).
    """
    charon = satellite_position(jd, CHARON, "PLUTO")
    return np.asarray(position, dtype=float) - CHARON_MASS_FRACTION * charon


# ---------------------------------------------------------------------------
# States
# ---------------------------------------------------------------------------

def series96_state(jd: float, body, provider, velocity_step: float = 0.01,
                   pluto_center: bool = False) -> RectangularState:
    """Heliocentric state of a body, equator and equinox J2000 (ICRF).

    EARTH is derived from the EMB fit minus the barycenter offset. The
    PLUTO fit follows the Pluto-Charon barycenter unless ``pluto_center``
    is set.

    Args:
        jd: Julian day (TDB).
        body: Target body.
        provider: TermTableProvider holding "SERIES96" fits.
        velocity_step: Step in days for the barycenter velocity.
        pluto_center: Return the center of Pluto rather than the
            barycenter of the Pluto system.

    Raises:
        InvalidTarget: If the body has no fit.
        InvalidDateRange: If ``jd`` is outside the validity window.
        KeyError: If the fit is not registered.
    """
    key = _body_key(body)
    check_date(jd, key)
    if key == "SUN":
        return RectangularState.zero(Frame.ICRF, jd)

    fit = provider.get_table(THEORY, "EMB" if key == "EARTH" else key)
    pos, vel = evaluate_fit(jd, fit)
    if key == "EARTH":
        pos = pos - barycenter_offset(jd)
        vel = vel - barycenter_velocity(jd, velocity_step)
    elif key == "PLUTO" and pluto_center:
        pos = pluto_barycenter_to_center(pos, jd)
    return RectangularState(pos, vel, Frame.ICRF, jd)


def geocentric_position(jd: float, body, light_time: float, provider,
                        observer_state: RectangularState | None = None,
                        offset=None, velocity_step: float = 0.01,
                        pluto_center: bool = False) -> RectangularState:
    """Position of a body relative to the observer's body, equator J2000.

    The target is evaluated at ``jd - light_time``. Without
    ``observer_state`` the observer is the geocenter, reached through
    the EMB fit and the barycenter offset; the returned velocity is then
    the Earth's heliocentric velocity.

    Args:
        observer_state: Heliocentric ICRF state of another observing body.
        offset: Optional vector (AU, ICRF) added to the target. An offset
            from PLUTO is taken from the system barycenter, so
            ``pluto_center`` is ignored.
        pluto_center: See :func:`series96_state`.
    """
    target = series96_state(jd - light_time, body, provider, velocity_step,
                            pluto_center and offset is None)
    pos = target.position
    if offset is not None:
        pos = pos + np.asarray(offset, dtype=float)
    if observer_state is None:
        observer_state = series96_state(jd, "EARTH", provider, velocity_step)
    observer_state.require_frame(Frame.ICRF)
    return RectangularState(pos - observer_state.position, observer_state.velocity,
                            Frame.ICRF, jd, light_time > 0)
