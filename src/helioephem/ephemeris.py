"""
Apparent-place pipeline.

Turns an EphemerisRequest into an EphemerisResult by running one of the
series theories through the reduction chain:

    geometric position -> light time -> deflection and aberration
    -> output frame -> precession -> nutation -> polar motion
    -> body-relative -> spherical -> topocentric -> physical
    -> horizontal -> output equinox

The theories are wrapped as strategies that share one interface. For each
request an ordered list of strategies is planned; each is attempted in
turn and the first success wins.
"""

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass

import numpy as np
import pandas as pd

from . import elp2000, series96, vsop87
from .bodies import resolve_body
from .config import Settings
from .constants import (
    JD_B1950,
    JD_J2000,
    LIGHT_TIME_DAYS_PER_AU,
    LIGHT_TIME_TOLERANCE_DAYS,
    SECONDS_PER_DAY,
)
from .errors import ConvergenceFailure, InvalidDateRange, InvalidTarget
from .frames import (
    VSOP_FK5_MATRIX,
    convert_state,
    ecliptic_to_equatorial,
    equatorial_to_ecliptic,
    from_spherical,
    to_output_frame,
    to_spherical,
)
from .models import (
    Algorithm,
    CoordinateType,
    EphemerisRequest,
    EphemerisResult,
    Frame,
    RectangularState,
)
from .physical import physical_ephemeris
from .reduction import (
    aberration,
    correct_polar_motion,
    deflection_correction,
    greenwich_apparent_sidereal_time,
    local_apparent_sidereal_time,
    mean_obliquity,
    nutate,
    precess,
    precess_to_j2000,
    solar_deflection,
)
from .topocentric import (
    horizontal_coordinates,
    observer_equatorial_position,
    position_from_body,
    topocentric_correction,
)

logger = logging.getLogger("helioephem")

# Cap on rows produced by ephemeris_table
MAX_TABLE_ROWS = 100_000


# ---------------------------------------------------------------------------
# Theory strategies
# ---------------------------------------------------------------------------

def _shifted(state: RectangularState, offset) -> RectangularState:
    if offset is None:
        return state
    return RectangularState(state.position + np.asarray(offset, dtype=float), state.velocity,
                            state.frame, state.epoch, state.light_time_corrected)


class TheoryStrategy:
    """A series theory seen through the interface the pipeline needs.

    Positions are heliocentric or observer-centric rectangular vectors on
    the equator and equinox J2000, in the strategy's ``native_frame``.

    Args:
        provider: TermTableProvider with the theory's tables.
        settings: Engine settings.
    """

    algorithm: Algorithm = Algorithm.AUTO
    native_frame: Frame = Frame.FK5

    def __init__(self, provider, settings: Settings):
        self.provider = provider
        self.settings = settings

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

    def validate(self, jd: float, body) -> None:
        """Check a target before any work is done. Default: accept."""

    def heliocentric_equatorial(self, jd: float, body, offset=None) -> RectangularState:
        """Heliocentric state of ``body``, plus ``offset`` when given."""
        raise NotImplementedError

    def geocentric(self, jd: float, body, light_time: float,
                   observer_state: RectangularState | None = None,
                   offset=None) -> RectangularState:
        """Target at ``jd - light_time`` relative to the observer's body at ``jd``.

        The velocity of the returned state is the observer's heliocentric
        velocity.
        """
        raise NotImplementedError


class Vsop87Theory(TheoryStrategy):
    """VSOP87 planets, rotated from the dynamical ecliptic to FK5."""

    algorithm = Algorithm.VSOP87
    native_frame = Frame.FK5

    def __init__(self, provider, settings: Settings, variant: str = "A"):
        super().__init__(provider, settings)
        self.variant = variant

    def __repr__(self) -> str:
        return f"Vsop87Theory(variant={self.variant!r})"

    def validate(self, jd: float, body) -> None:
        vsop87.warn_if_outside_recommended(jd, body)

    def heliocentric_equatorial(self, jd: float, body, offset=None) -> RectangularState:
        state = vsop87.vsop_state(jd, body, self.provider, self.variant)
        return _shifted(state.transformed(VSOP_FK5_MATRIX, Frame.FK5), offset)

    def geocentric(self, jd, body, light_time, observer_state=None, offset=None):
        observer_ecl = None
        if observer_state is not None:
            observer_ecl = convert_state(observer_state, Frame.FK5).transformed(
                VSOP_FK5_MATRIX.T, Frame.ECLIPTIC_J2000)
        offset_ecl = None if offset is None else VSOP_FK5_MATRIX.T @ np.asarray(offset, dtype=float)
        state = vsop87.geocentric_position(jd, body, light_time, self.provider, self.variant,
                                           observer_ecl, offset_ecl)
        return state.transformed(VSOP_FK5_MATRIX, Frame.FK5)


class Series96Theory(TheoryStrategy):
    """Series96 fits, referred to the ICRF.

    Pluto is moved from the system barycenter to its center when
    ``settings.pluto_body_center`` is set and no offset is given.
    """

    algorithm = Algorithm.SERIES96
    native_frame = Frame.ICRF

    def validate(self, jd: float, body) -> None:
        series96.check_date(jd, body)

    def heliocentric_equatorial(self, jd: float, body, offset=None) -> RectangularState:
        state = series96.series96_state(jd, body, self.provider,
                                        self.settings.barycenter_velocity_step,
                                        self.settings.pluto_body_center and offset is None)
        return _shifted(state, offset)

    def geocentric(self, jd, body, light_time, observer_state=None, offset=None):
        if observer_state is not None:
            observer_state = convert_state(observer_state, Frame.ICRF)
        return series96.geocentric_position(jd, body, light_time, self.provider, observer_state,
                                            offset, self.settings.barycenter_velocity_step,
                                            self.settings.pluto_body_center)


class LunarTheory(TheoryStrategy):
    """ELP2000 Moon, with the planets taken from Series96 or VSOP87.

    Only the Moon can be a target. Heliocentric states of other bodies
    (the Earth, deflecting planets) come from the first planetary theory
    that covers the date, rotated to FK5.
    """

    algorithm = Algorithm.ELP2000
    native_frame = Frame.FK5

    def __init__(self, provider, settings: Settings, truncation: float | None = None,
                 vsop_variant: str = "A"):
        super().__init__(provider, settings)
        self.truncation = settings.elp_truncation if truncation is None else truncation
        self._planet_theories = (Series96Theory(provider, settings),
                                 Vsop87Theory(provider, settings, vsop_variant))

    def __repr__(self) -> str:
        return f"LunarTheory(truncation={self.truncation!r})"

    def validate(self, jd: float, body) -> None:
        key = resolve_body(body).key
        if key != "MOON":
            raise InvalidTarget(f"ELP2000 only computes the Moon, not '{key}'")

    def planet_state(self, jd: float, body) -> RectangularState:
        """Heliocentric state of a planet in FK5, first theory that succeeds."""
        last_error = None
        for theory in self._planet_theories:
            try:
                return convert_state(theory.heliocentric_equatorial(jd, body), Frame.FK5)
            except (InvalidDateRange, InvalidTarget, KeyError) as e:
                logger.debug("%s from %r unavailable at JD %.5f: %s", body, theory, jd, e)
                last_error = e
        raise last_error

    def earth_state(self, jd: float) -> RectangularState:
        return self.planet_state(jd, "EARTH")

    def moon_position(self, jd: float) -> np.ndarray:
        """Geocentric Moon, FK5, at a TDB Julian day."""
        jd_moon = elp2000.secular_acceleration_correction(jd, self.settings.moon_secular_acceleration)
        return elp2000.mean_inertial_to_fk5(elp2000.lunar_position(jd_moon, self.provider, self.truncation))

    def heliocentric_equatorial(self, jd: float, body, offset=None) -> RectangularState:
        if resolve_body(body).key != "MOON":
            return _shifted(self.planet_state(jd, body), offset)
        earth = self.earth_state(jd)
        moon = RectangularState(earth.position + self.moon_position(jd), earth.velocity, Frame.FK5, jd)
        return _shifted(moon, offset)

    def geocentric(self, jd, body, light_time, observer_state=None, offset=None):
        self.validate(jd, body)
        if observer_state is not None:
            raise InvalidTarget("ELP2000 positions of the Moon are only available from the Earth")
        pos = self.moon_position(jd - light_time)
        if offset is not None:
            pos = pos + np.asarray(offset, dtype=float)
        earth = self.earth_state(jd)
        return RectangularState(pos, earth.velocity, Frame.FK5, jd, light_time > 0)


# ---------------------------------------------------------------------------
# Planning and attempts
# ---------------------------------------------------------------------------

# Errors after which the next planned strategy is tried
FALLBACK_ERRORS = (InvalidDateRange, KeyError)


def _body_key(name) -> str:
    try:
        return resolve_body(name).key
    except KeyError as e:
        raise InvalidTarget(str(e.args[0])) from e


def plan_strategies(request: EphemerisRequest, provider, settings: Settings | None = None) -> list[TheoryStrategy]:
    """Ordered list of strategies to attempt for a request.

    The Moon uses ELP2000. Other bodies with AUTO try Series96 first when it
    covers the body, then VSOP87 when it covers the body. An explicit
    algorithm yields exactly that strategy.

    Raises:
        InvalidTarget: If the target is unknown or no theory computes it.
    """
    settings = settings or Settings()
    target = _body_key(request.target)
    truncation = request.elp_truncation
    variant = request.vsop_variant

    def build(algorithm: Algorithm) -> TheoryStrategy:
        if algorithm is Algorithm.ELP2000:
            return LunarTheory(provider, settings, truncation, variant)
        if algorithm is Algorithm.SERIES96:
            return Series96Theory(provider, settings)
        return Vsop87Theory(provider, settings, variant)

    if request.algorithm is not Algorithm.AUTO:
        return [build(request.algorithm)]
    if target == "MOON":
        return [build(Algorithm.ELP2000)]
    plan = []
    if target in series96.SUPPORTED_BODIES:
        plan.append(build(Algorithm.SERIES96))
    if target in vsop87.SUPPORTED_BODIES:
        plan.append(build(Algorithm.VSOP87))
    if not plan:
        raise InvalidTarget(f"No theory computes '{target}'")
    return plan


@dataclass(frozen=True)
class Outcome:
    """Result of attempting one strategy: either a result or the error."""

    result: EphemerisResult | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def attempt(strategy: TheoryStrategy, request: EphemerisRequest, settings: Settings,
            satellite_offset=None) -> Outcome:
    """Run the pipeline with one strategy.

    Only errors that allow falling back to another theory are captured;
    anything else propagates.
    """
    logger.debug("Attempting %r for %s at JD %.5f", strategy, request.target, request.jd)
    try:
        return Outcome(result=_run_pipeline(strategy, request, settings, satellite_offset))
    except FALLBACK_ERRORS as e:
        return Outcome(error=e)


def compute_ephemeris(request: EphemerisRequest, provider, settings: Settings | None = None,
                      satellite_offset=None) -> EphemerisResult:
    """Compute the ephemeris of one body at one instant.

    Args:
        request: What to compute.
        provider: TermTableProvider with the theories' tables.
        settings: Engine settings; defaults to ``Settings()``.
        satellite_offset: Optional 3-vector (AU, equator J2000) added to the
            target's heliocentric position, e.g. a moon relative to its planet.

    Returns:
        EphemerisResult with angles in radians and distances in AU.

    Raises:
        InvalidTarget: If the target cannot be computed for this observer.
        InvalidDateRange: If no planned theory covers the date.
        KeyError: If a required table is not registered.
        ConvergenceFailure: If the light-time iteration does not converge.
    """
    settings = settings or Settings()
    strategies = plan_strategies(request, provider, settings)
    last_error = None
    for i, strategy in enumerate(strategies):
        outcome = attempt(strategy, request, settings, satellite_offset)
        if outcome.ok:
            return outcome.result
        last_error = outcome.error
        if i + 1 < len(strategies):
            logger.warning("%s unavailable for %s at JD %.5f (%s); falling back",
                           strategy.algorithm.value, request.target, request.jd, outcome.error)
    raise last_error


# ---------------------------------------------------------------------------
# Pipeline steps
# ---------------------------------------------------------------------------

def light_time_iteration(geocentric: Callable[[float], RectangularState],
                         coordinate_type: CoordinateType, topo=None,
                         max_iterations: int = 50) -> tuple[RectangularState, float]:
    """Iterate the light time until successive values agree to 1 microsecond.

    Args:
        geocentric: ``geocentric(light_time)`` returning the retarded
            observer-centric state.
        coordinate_type: GEOMETRIC positions have no light time.
        topo: Observer offset from the body's center, same frame, AU.
        max_iterations: Cap on the number of corrections.

    Returns:
        (state, light_time in days).

    Raises:
        ConvergenceFailure: If the cap is reached.
    """
    topo = np.zeros(3) if topo is None else np.asarray(topo, dtype=float)
    state = geocentric(0.0)
    if coordinate_type is CoordinateType.GEOMETRIC:
        return state, 0.0

    light_time = float(np.linalg.norm(state.position - topo)) * LIGHT_TIME_DAYS_PER_AU
    for i in range(max_iterations):
        state = geocentric(light_time)
        corrected = float(np.linalg.norm(state.position - topo)) * LIGHT_TIME_DAYS_PER_AU
        delta = abs(corrected - light_time)
        light_time = corrected
        if delta <= LIGHT_TIME_TOLERANCE_DAYS:
            logger.debug("Light time %.9f d after %d iterations", light_time, i + 1)
            return state, light_time
    raise ConvergenceFailure(
        f"Light time did not converge after {max_iterations} iterations "
        f"(last change {delta * SECONDS_PER_DAY:.3e} s)"
    )


def _observer_topo_vector(request: EphemerisRequest, frame: Frame) -> np.ndarray:
    """Observer offset from the geocenter on the J2000 equator, for light time."""
    if not request.topocentric:
        return np.zeros(3)
    observer = request.observer
    method = request.reduction_method
    lst = local_apparent_sidereal_time(request.jd, observer.longitude, request.delta_t, method)
    true_of_date = observer_equatorial_position(observer, lst, Frame.DYNAMICAL_J2000)
    mean_of_date = nutate(request.jd, true_of_date, inverse=True, method=method)
    j2000 = precess_to_j2000(request.jd, mean_of_date, method)
    return to_output_frame(j2000, Frame.DYNAMICAL_J2000, frame)


def _check_target(request: EphemerisRequest, strategy: TheoryStrategy) -> str:
    target = _body_key(request.target)
    mother = _body_key(request.observer.mother_body)
    if target == mother:
        raise InvalidTarget(f"Target {target} is the body the observer is on")
    if mother == "EARTH" and target in ("EARTH", "EMB"):
        raise InvalidTarget(f"Target {target} cannot be computed from the Earth")
    if target == "MOON" and mother != "EARTH" and isinstance(strategy, LunarTheory):
        raise InvalidTarget("ELP2000 positions of the Moon are only available from the Earth")
    return target


def _deflect(strategy: TheoryStrategy, settings: Settings, jd: float, target: str, mother: str,
             geo: np.ndarray, observer_helio: RectangularState, helio: np.ndarray) -> np.ndarray:
    """Light deflection by the Sun and the configured planets."""
    sun_to_observer = observer_helio.position
    out = solar_deflection(geo, sun_to_observer, helio)
    total_lt = float(np.linalg.norm(geo)) * LIGHT_TIME_DAYS_PER_AU
    for name in settings.deflecting_bodies:
        body = resolve_body(name)
        if body.key in (mother, target):
            continue
        # Time of closest approach of the ray to the deflector
        direction = out / np.linalg.norm(out)
        deflector_geo = strategy.heliocentric_equatorial(jd, body.key).position - sun_to_observer
        dlt = float(deflector_geo @ direction) * LIGHT_TIME_DAYS_PER_AU
        t_close = jd
        if dlt > 0.0:
            t_close = jd - dlt
        if total_lt < dlt:
            t_close = jd - total_lt
        deflector = strategy.heliocentric_equatorial(t_close, body.key).position
        out = deflection_correction(out, sun_to_observer, helio, deflector, body.relative_mass)
    return out


def _run_pipeline(strategy: TheoryStrategy, request: EphemerisRequest, settings: Settings,
                  satellite_offset=None) -> EphemerisResult:
    jd = request.jd
    observer = request.observer
    kind = request.coordinate_type
    method = request.reduction_method
    target = _check_target(request, strategy)
    mother = _body_key(observer.mother_body)
    strategy.validate(jd, target)
    native = strategy.native_frame
    is_moon = isinstance(strategy, LunarTheory)

    # Observer's body
    observer_state = None
    if mother != "EARTH":
        observer_state = strategy.heliocentric_equatorial(jd, mother)
    if is_moon:
        observer_helio = strategy.earth_state(jd)
    elif observer_state is not None:
        observer_helio = observer_state
    else:
        observer_helio = strategy.heliocentric_equatorial(jd, "EARTH")

    # Light time
    topo = _observer_topo_vector(request, native)
    state, light_time = light_time_iteration(
        lambda lt: strategy.geocentric(jd, target, lt, observer_state, satellite_offset),
        kind, topo, settings.max_light_time_iterations,
    )
    geo = state.position

    if is_moon:
        helio = geo + strategy.earth_state(jd - light_time).position
    else:
        helio = strategy.heliocentric_equatorial(jd - light_time, target, satellite_offset).position

    # Deflection and aberration; no annual aberration in the Moon's apparent place
    if kind is CoordinateType.APPARENT and not (mother == "EARTH" and target == "SUN"):
        geo = _deflect(strategy, settings, jd, target, mother, geo, observer_helio, helio)
    if is_moon:
        if kind is CoordinateType.ASTROMETRIC:
            geo = -aberration(-geo, observer_helio.velocity, light_time)
    elif kind is CoordinateType.APPARENT:
        geo = aberration(geo, state.velocity, light_time)

    # Output frame, then precession to the date
    geo = to_output_frame(geo, native, request.frame)
    helio = to_output_frame(helio, native, request.frame)
    epoch = JD_B1950 if request.frame is Frame.FK4 else JD_J2000
    geo = precess(epoch, jd, geo, method)
    helio = precess(epoch, jd, helio, method)
    if is_moon and settings.moon_geometric_center:
        geo = elp2000.barycenter_to_geometric_center(geo, mean_obliquity(jd, method))

    helio_lon, helio_lat, helio_r = to_spherical(equatorial_to_ecliptic(helio, mean_obliquity(jd, method)))

    # Nutation and polar motion
    if mother == "EARTH" and kind is CoordinateType.APPARENT:
        geo = nutate(jd, geo, method=method)
        helio = nutate(jd, helio, method=method)
        if request.correct_for_polar_motion:
            gast = greenwich_apparent_sidereal_time(jd - request.delta_t / SECONDS_PER_DAY, jd, method)
            geo = correct_polar_motion(geo, gast, observer.xp_arcsec, observer.yp_arcsec, jd)

    # Spherical, possibly relative to another body's equator
    if mother != "EARTH":
        ra, dec, distance = position_from_body(geo, jd, mother, jd)
    else:
        ra, dec, distance = to_spherical(geo)

    lst = None
    if request.topocentric:
        lst = local_apparent_sidereal_time(jd, observer.longitude, request.delta_t, method)
        ra, dec, distance = topocentric_correction(ra, dec, distance, observer, lst, request.frame,
                                                   apparent=kind is CoordinateType.APPARENT)

    # Physical ephemeris from the final equatorial vectors
    final = from_spherical(ra, dec, distance) if mother == "EARTH" else geo
    phys = physical_ephemeris(target, final, final - helio)

    result = EphemerisResult(
        jd=jd,
        target=target,
        algorithm=strategy.algorithm.value,
        right_ascension=ra,
        declination=dec,
        distance=distance,
        light_time=light_time,
        heliocentric_longitude=helio_lon,
        heliocentric_latitude=helio_lat,
        distance_from_sun=helio_r,
        elongation=phys.elongation,
        phase_angle=phys.phase_angle,
        phase=phys.phase,
        angular_radius=phys.angular_radius,
    )

    if request.topocentric:
        horizontal = horizontal_coordinates(ra, dec, observer, lst,
                                            apparent=kind is CoordinateType.APPARENT,
                                            apply_refraction=settings.apply_refraction)
        result.azimuth = horizontal.azimuth
        result.elevation = horizontal.elevation
        result.parallactic_angle = horizontal.parallactic_angle

    _to_output_equinox(result, request)
    result.position = tuple(float(c) for c in from_spherical(
        result.right_ascension, result.declination, result.distance))
    return result


def _to_output_equinox(result: EphemerisResult, request: EphemerisRequest) -> None:
    """Precess the result from the equinox of date to the requested equinox."""
    equinox = request.output_equinox_jd
    if equinox is None:
        return
    jd = result.jd
    method = request.reduction_method
    v = precess(jd, equinox, from_spherical(result.right_ascension, result.declination, result.distance),
                method)
    result.right_ascension, result.declination, _ = to_spherical(v)

    if result.target != "SUN":
        helio = ecliptic_to_equatorial(
            from_spherical(result.heliocentric_longitude, result.heliocentric_latitude,
                           result.distance_from_sun),
            mean_obliquity(jd, method))
        helio = equatorial_to_ecliptic(precess(jd, equinox, helio, method), mean_obliquity(equinox, method))
        result.heliocentric_longitude, result.heliocentric_latitude, _ = to_spherical(helio)


# ---------------------------------------------------------------------------
# Tabulation
# ---------------------------------------------------------------------------

def ephemeris_table(provider, target: str, jd_start: float, jd_end: float, step_days: float = 1.0,
                    settings: Settings | None = None, satellite_offset=None,
                    **request_options) -> pd.DataFrame:
    """Compute an ephemeris over a range of dates.

    Args:
        provider: TermTableProvider.
        target: Body name.
        jd_start: First Julian day (TDB).
        jd_end: Last Julian day (TDB).
        step_days: Step in days.
        settings: Engine settings.
        satellite_offset: Passed to every computation.
        **request_options: Other EphemerisRequest fields (observer, frame, ...).

    Returns:
        DataFrame indexed by ``time`` (TDB as timestamps) with one column per
        EphemerisResult field; angles in radians, distances in AU.
    """
    if step_days <= 0:
        raise ValueError(f"step_days must be positive, got {step_days}")
    if jd_end < jd_start:
        raise ValueError(f"jd_end ({jd_end}) is before jd_start ({jd_start})")

    n_steps = int(math.floor((jd_end - jd_start) / step_days)) + 1
    # Cap at 100k rows to prevent memory issues
    if n_steps > MAX_TABLE_ROWS:
        step_days = (jd_end - jd_start) / (MAX_TABLE_ROWS - 1)
        n_steps = MAX_TABLE_ROWS
        logger.warning("Ephemeris table capped at %d rows; step adjusted to %.6f d",
                       MAX_TABLE_ROWS, step_days)

    jds = jd_start + step_days * np.arange(n_steps)
    rows = []
    for jd in jds:
        request = EphemerisRequest(jd=float(jd), target=target, **request_options)
        rows.append(compute_ephemeris(request, provider, settings, satellite_offset).as_dict())

    df = pd.DataFrame(rows, index=pd.to_datetime(jds, unit="D", origin="julian"))
    df.index.name = "time"

    logger.info("Computed ephemeris table: %s, %d rows, JD %.5f to %.5f",
                resolve_body(target).key, n_steps, jds[0], jds[-1])
    return df
