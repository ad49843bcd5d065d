"""
Topocentric, horizontal and body-relative coordinates.

Covers the last steps of the pipeline that depend on where the observer
stands: diurnal parallax and diurnal aberration for an observer on the
Earth's surface, azimuth/elevation with Bennett refraction, and the
rotation of a position into the equator of another body when the
observer is located there.
"""

import logging
import math
from dataclasses import dataclass

import numpy as np
import spiceypy as spice

from .bodies import body_north_pole, resolve_body
from .constants import (
    AU_KM,
    EARTH_ROTATION_RATE,
    SPEED_OF_LIGHT_KM_S,
    TWO_PI,
)
from .frames import angular_separation, from_spherical, to_output_frame, to_spherical
from .models import Frame, Observer
from .reduction import precess_to_j2000

logger = logging.getLogger("helioephem")

_HALF_PI = math.pi / 2.0
_DEG = math.pi / 180.0

# Refraction is not evaluated for geometric elevations below this (degrees)
_REFRACTION_FLOOR_DEG = -4.0
_REFRACTION_TOLERANCE = 5.0e-9


# ---------------------------------------------------------------------------
# Observer position
# ---------------------------------------------------------------------------

def observer_body_fixed_position(observer: Observer) -> np.ndarray:
    """Observer position in the body-fixed frame of its mother body, AU.

    Uses the body's reference ellipsoid (equatorial radius and flattening).
    """
    body = resolve_body(observer.mother_body)
    km = spice.georec(observer.longitude, observer.latitude, observer.height_m / 1000.0,
                      body.equatorial_radius_km, body.flattening)
    return np.asarray(km, dtype=float) / AU_KM


def geocentric_radius_and_latitude(observer: Observer) -> tuple[float, float]:
    """Distance from the body's center (AU) and geocentric latitude (rad)."""
    x, y, z = observer_body_fixed_position(observer)
    rho_xy = math.hypot(x, y)
    return math.hypot(rho_xy, z), math.atan2(z, rho_xy)


def observer_equatorial_position(observer: Observer, lst: float,
                                 frame: Frame = Frame.DYNAMICAL_J2000) -> np.ndarray:
    """Observer position relative to the geocenter on the true equator, AU.

    The body-fixed vector is turned about the pole so its longitude equals
    the local apparent sidereal time, then expressed in ``frame``.

    Args:
        observer: Observer on the Earth.
        lst: Local apparent sidereal time, radians.
        frame: Output frame for the small frame-bias rotation.
    """
    fixed = observer_body_fixed_position(observer)
    vector = spice.rotate(-(lst - observer.longitude), 3) @ fixed
    if frame is not Frame.DYNAMICAL_J2000:
        vector = to_output_frame(vector, Frame.DYNAMICAL_J2000, frame)
    return vector


# ---------------------------------------------------------------------------
# Parallax and diurnal aberration
# ---------------------------------------------------------------------------

def topocentric_correction(right_ascension: float, declination: float, distance: float,
                           observer: Observer, lst: float, frame: Frame = Frame.ICRF,
                           apparent: bool = False,
                           rotation_rate: float = EARTH_ROTATION_RATE) -> tuple[float, float, float]:
    """Shift geocentric equatorial coordinates to the observer's location.

    Args:
        right_ascension: Geocentric right ascension, radians.
        declination: Geocentric declination, radians.
        distance: Geocentric distance, AU.
        observer: Observer on the Earth.
        lst: Local apparent sidereal time, radians.
        frame: Frame of the input coordinates.
        apparent: Also apply diurnal aberration.
        rotation_rate: Rotation rate of the mother body, rad/s.

    Returns:
        Topocentric (right ascension, declination, distance).
    """
    geo = from_spherical(right_ascension, declination, distance)
    topo = geo - observer_equatorial_position(observer, lst, frame)
    ra, dec, dist = to_spherical(topo)

    if apparent:
        rho, geo_lat = geocentric_radius_and_latitude(observer)
        factor = rotation_rate * rho * AU_KM / SPEED_OF_LIGHT_KM_S
        hour = lst - right_ascension
        if math.cos(declination) != 0.0:
            ra += factor * math.cos(geo_lat) * math.cos(hour) / math.cos(declination)
        dec += factor * math.cos(geo_lat) * math.sin(declination) * math.sin(hour)
    return ra % TWO_PI, dec, dist


# ---------------------------------------------------------------------------
# Refraction
# ---------------------------------------------------------------------------

def refraction(apparent_elevation: float, observer: Observer) -> float:
    """Bennett refraction for an apparent elevation, radians.

    The cotangent is taken as |tan(90 - h')| so the formula extends to the
    zenith. Scaled for the observer's pressure and temperature.
    """
    alt_deg = apparent_elevation / _DEG
    if alt_deg < _REFRACTION_FLOOR_DEG or alt_deg >= 90.0:
        return 0.0
    r = 0.016667 * _DEG * abs(math.tan(_HALF_PI - (alt_deg + 7.31 / (alt_deg + 4.4)) * _DEG))
    return r * 0.28 * observer.pressure_mbar / (observer.temperature_c + 273.0)


def geometric_elevation(apparent_elevation: float, observer: Observer) -> float:
    """Remove refraction from an apparent elevation."""
    if not observer.on_earth:
        return apparent_elevation
    return min(apparent_elevation - refraction(apparent_elevation, observer), _HALF_PI)


def apparent_elevation(elevation: float, observer: Observer, max_iterations: int = 50) -> float:
    """Add refraction to a geometric elevation.

    Inverts :func:`geometric_elevation` by fixed-point iteration.
    """
    if not observer.on_earth:
        return elevation
    alt = max(elevation, _REFRACTION_FLOOR_DEG * _DEG)
    for _ in range(max(1, max_iterations)):
        alt = elevation - (geometric_elevation(alt, observer) - alt)
        if abs(geometric_elevation(alt, observer) - elevation) <= _REFRACTION_TOLERANCE:
            break
    return alt


# ---------------------------------------------------------------------------
# Horizontal coordinates
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HorizontalPosition:
    """Azimuth (from north through east), elevation and parallactic angle, radians."""

    azimuth: float
    elevation: float
    parallactic_angle: float


def horizontal_coordinates(right_ascension: float, declination: float, observer: Observer,
                           lst: float, apparent: bool = False,
                           apply_refraction: bool = True) -> HorizontalPosition:
    """Azimuth, elevation and parallactic angle of an equatorial position.

    Args:
        right_ascension: Right ascension of date, radians.
        declination: Declination of date, radians.
        observer: Observer.
        lst: Local apparent sidereal time, radians.
        apparent: Apparent coordinates; enables refraction for Earth observers.
        apply_refraction: Set False to keep the geometric elevation.
    """
    hour = lst - right_ascension
    sin_lat, cos_lat = math.sin(observer.latitude), math.cos(observer.latitude)
    sin_dec, cos_dec = math.sin(declination), math.cos(declination)
    cos_h = math.cos(hour)

    alt = math.asin(max(-1.0, min(1.0, sin_lat * sin_dec + cos_lat * cos_dec * cos_h)))
    y = math.sin(hour)
    if cos_dec != 0.0:
        x = cos_h * sin_lat - sin_dec * cos_lat / cos_dec
    else:
        x = -math.copysign(math.inf, sin_dec * cos_lat)
    azimuth = (math.pi + math.atan2(y, x)) % TWO_PI

    if cos_lat != 0.0:
        x = (sin_lat / cos_lat) * cos_dec - sin_dec * cos_h
    else:
        x = math.copysign(math.inf, sin_lat)
    if x != 0.0:
        p = math.atan2(y, x)
    else:
        p = math.copysign(_HALF_PI, y)

    if apparent and apply_refraction and observer.on_earth:
        alt = apparent_elevation(alt, observer)
    return HorizontalPosition(azimuth, alt, p % TWO_PI)


# ---------------------------------------------------------------------------
# Observers on other bodies
# ---------------------------------------------------------------------------

def position_angle(origin: tuple[float, float], target: tuple[float, float]) -> float:
    """Position angle of ``target`` seen from ``origin``, both (lon, lat) in radians."""
    al, ap = origin
    bl, bp = target
    dl = bl - al
    y = math.sin(dl) * math.cos(bp)
    x = math.sin(bp) * math.cos(ap) - math.cos(bp) * math.sin(ap) * math.cos(dl)
    if x == 0.0 and y == 0.0:
        return 0.0
    return -math.atan2(y, x)


def position_from_body(vector, jd: float, body, epoch: float) -> tuple[float, float, float]:
    """Express a position relative to the rotation pole of another body.

    The input equatorial vector, referred to the equinox of ``epoch``, is
    taken to J2000. The returned declination is measured from the body's
    equator, and the right ascension is the position angle from its pole.

    Args:
        vector: Equatorial vector of the target seen from the body, AU.
        jd: Julian day (TDB) for the pole orientation.
        body: Body the observer is located on.
        epoch: Julian day of the equinox of ``vector``.

    Returns:
        (right ascension, declination, distance).

    Raises:
        KeyError: If no rotation pole is known for the body.
    """
    v = precess_to_j2000(epoch, vector)
    pole_ra, pole_dec = body_north_pole(body, jd)
    lon, lat, r = to_spherical(v)
    dec = _HALF_PI - angular_separation(from_spherical(pole_ra, pole_dec), v)
    ra = position_angle((pole_ra, pole_dec), (lon, lat))
    return ra % TWO_PI, dec, r
