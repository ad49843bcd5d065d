"""
Physical ephemeris: illumination geometry and apparent size.
"""

import math
from dataclasses import dataclass

import numpy as np

from .bodies import resolve_body
from .constants import AU_KM
from .frames import angular_separation


@dataclass(frozen=True)
class PhysicalEphemeris:
    """Illumination and size of a body as seen by the observer.

    Attributes:
        elongation: Target-observer-Sun angle, radians.
        phase_angle: Sun-target-observer angle, radians.
        phase: Illuminated fraction of the disk, 0..1.
        angular_radius: Apparent equatorial radius, radians.
        defect_of_illumination: Unlit part of the apparent diameter, radians.
    """

    elongation: float
    phase_angle: float
    phase: float
    angular_radius: float
    defect_of_illumination: float


def angular_radius(body, distance_au: float) -> float:
    """Apparent equatorial radius of a body at the given distance, radians."""
    radius_km = resolve_body(body).equatorial_radius_km
    if distance_au <= 0:
        return 0.0
    return math.atan(radius_km / (distance_au * AU_KM))


def physical_ephemeris(body, observer_to_target, observer_to_sun) -> PhysicalEphemeris:
    """Compute elongation, phase and apparent size.

    Both vectors must share a frame and be corrected the same way (the
    pipeline passes its final equatorial vectors).

    Args:
        body: Target body.
        observer_to_target: Observer -> target vector, AU.
        observer_to_sun: Observer -> Sun vector, AU.
    """
    target = np.asarray(observer_to_target, dtype=float)
    sun = np.asarray(observer_to_sun, dtype=float)
    ang = angular_radius(body, float(np.linalg.norm(target)))

    if resolve_body(body).key == "SUN":
        return PhysicalEphemeris(0.0, 0.0, 1.0, ang, 0.0)

    elongation = angular_separation(target, sun)
    phase_angle = angular_separation(sun - target, -target)
    phase = 0.5 * (1.0 + math.cos(phase_angle))
    return PhysicalEphemeris(elongation, phase_angle, phase, ang, 2.0 * ang * (1.0 - phase))
