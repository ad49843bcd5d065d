"""
Reference frame matrices and conversions.

Provides the fixed rotations between the output frames (FK4, FK5, ICRF,
dynamical equinox J2000), the theory-specific rotations from each
theory's ecliptic to FK5, and spherical/rectangular helpers via SPICE.

All conversions are constant matrices except ecliptic <-> equatorial,
which takes the obliquity of the ecliptic.
"""

import logging

import numpy as np
import spiceypy as spice

from .constants import ARCSEC_TO_RAD
from .models import Frame, RectangularState

logger = logging.getLogger("helioephem")


# ---------------------------------------------------------------------------
# Frame aliases and descriptions
# ---------------------------------------------------------------------------

FRAME_ALIASES: dict[str, Frame] = {
    "ICRF": Frame.ICRF,
    "ICRS": Frame.ICRF,
    "FK5": Frame.FK5,
    "J2000": Frame.FK5,
    "FK4": Frame.FK4,
    "B1950": Frame.FK4,
    "DYNAMICAL_J2000": Frame.DYNAMICAL_J2000,
    "DYNAMICAL": Frame.DYNAMICAL_J2000,
    "DYNAMICAL_EQUINOX_J2000": Frame.DYNAMICAL_J2000,
}

FRAME_DESCRIPTIONS: dict[str, dict[str, str]] = {
    "ICRF": {
        "full_name": "International Celestial Reference Frame",
        "description": "Quasi-inertial frame realised by extragalactic radio sources. "
                       "Series96 fits are referred to it.",
        "use_when": "Default output. Comparing with modern catalogs and JPL ephemerides.",
    },
    "FK5": {
        "full_name": "Fifth Fundamental Catalogue, mean equator and equinox J2000",
        "description": "Optical realisation of the J2000 mean equator and equinox. "
                       "Differs from ICRF by a few tens of milliarcseconds.",
        "use_when": "Working with FK5-based star catalogs.",
    },
    "FK4": {
        "full_name": "Fourth Fundamental Catalogue, mean equator and equinox B1950",
        "description": "Legacy B1950 frame. Precession to the date starts from B1950.",
        "use_when": "Legacy catalogs that use B1950 coordinates.",
    },
    "DYNAMICAL_J2000": {
        "full_name": "Dynamical mean equator and equinox of J2000",
        "description": "Frame of the dynamical equinox; ICRF rotated by the IERS frame bias.",
        "use_when": "Comparing with theories referred to the dynamical equinox.",
    },
}


def resolve_frame(name: "str | Frame") -> Frame:
    """Resolve a frame name through aliases.

    Args:
        name: Frame name (case-insensitive) or Frame.

    Returns:
        Canonical output Frame.

    Raises:
        KeyError: If the frame name is not recognized.
    """
    if isinstance(name, Frame):
        return name
    key = name.strip().upper().replace("-", "_").replace(" ", "_")
    if key in FRAME_ALIASES:
        return FRAME_ALIASES[key]
    raise KeyError(
        f"Unknown frame '{name}'. Available frames: {', '.join(sorted(FRAME_ALIASES))}"
    )


def list_available_frames() -> list[str]:
    """Return list of supported frame names, aliases included."""
    return sorted(FRAME_ALIASES.keys())


def list_frames_with_descriptions() -> list[dict[str, str]]:
    """Return the output frames with descriptions and usage guidance."""
    return [
        {"frame": name, **info}
        for name, info in FRAME_DESCRIPTIONS.items()
    ]


# ---------------------------------------------------------------------------
# Fixed matrices
# ---------------------------------------------------------------------------

def _readonly(rows) -> np.ndarray:
    m = np.array(rows, dtype=float)
    m.setflags(write=False)
    return m


# Mean inertial ecliptic J2000 of ELP2000 -> FK5 (fitted to DE200)
LUNAR_FK5_MATRIX = _readonly([
    [1.000000000000, 0.000000437913, -0.000000189859],
    [-0.000000477299, 0.917482137607, -0.397776981701],
    [0.000000000000, 0.397776981701, 0.917482137607],
])

# Dynamical ecliptic J2000 of VSOP87 -> FK5
VSOP_FK5_MATRIX = _readonly([
    [1.000000000000, 0.000000440360, -0.000000190919],
    [-0.000000479966, 0.917482137087, -0.397776982902],
    [0.000000000000, 0.397776982902, 0.917482137087],
])


def bias_matrix(xi0: float, eta0: float, da0: float) -> np.ndarray:
    """Frame bias rotation to second order in the small angles.

    Args:
        xi0: Pole offset in x, arcsec.
        eta0: Pole offset in y, arcsec.
        da0: Equinox offset in right ascension, arcsec.

    Returns:
        Matrix taking vectors from the reference frame of the offsets
        (ICRS) to the biased frame.
    """
    xi, eta, da = xi0 * ARCSEC_TO_RAD, eta0 * ARCSEC_TO_RAD, da0 * ARCSEC_TO_RAD
    yx, zx, xy, zy, xz, yz = -da, xi, da, eta, -xi, -eta
    xx = 1.0 - 0.5 * (yx * yx + zx * zx)
    yy = 1.0 - 0.5 * (yx * yx + zy * zy)
    zz = 1.0 - 0.5 * (zy * zy + zx * zx)
    return _readonly([
        [xx, xy, xz],
        [yx, yy, yz],
        [zx, zy, zz],
    ])


# IERS Conventions 2003, chapter 5
ICRS_TO_DYNAMICAL = bias_matrix(-0.0166170, -0.0068192, -0.01460)
# Hilton & Hohenkerk (2004)
ICRS_TO_FK5 = bias_matrix(0.0091, -0.0199, -0.0229)

# FK4 B1950 -> FK5 J2000 for a distant source without proper motion
FK4_TO_FK5 = _readonly([
    [0.9999256782, -0.0111820611, -0.0048579477],
    [0.0111820610, 0.9999374784, -0.0000271765],
    [0.0048579479, -0.0000271474, 0.9999881997],
])
FK5_TO_FK4 = _readonly(np.linalg.inv(FK4_TO_FK5))

# Ordered chain of output frames; each step has a fixed matrix
_CHAIN = (Frame.FK4, Frame.FK5, Frame.ICRF, Frame.DYNAMICAL_J2000)
_STEPS: dict[tuple[Frame, Frame], np.ndarray] = {
    (Frame.FK4, Frame.FK5): FK4_TO_FK5,
    (Frame.FK5, Frame.FK4): FK5_TO_FK4,
    (Frame.FK5, Frame.ICRF): ICRS_TO_FK5.T,
    (Frame.ICRF, Frame.FK5): ICRS_TO_FK5,
    (Frame.ICRF, Frame.DYNAMICAL_J2000): ICRS_TO_DYNAMICAL,
    (Frame.DYNAMICAL_J2000, Frame.ICRF): ICRS_TO_DYNAMICAL.T,
}


def frame_matrix(src: "str | Frame", dst: "str | Frame") -> np.ndarray:
    """Matrix converting vectors from output frame ``src`` to ``dst``.

    Raises:
        KeyError: If either frame is not an output frame.
    """
    src, dst = resolve_frame(src), resolve_frame(dst)
    if src not in _CHAIN or dst not in _CHAIN:
        raise KeyError(f"Cannot convert from '{src.value}' to '{dst.value}'")
    i, j = _CHAIN.index(src), _CHAIN.index(dst)
    step = 1 if j > i else -1
    m = np.eye(3)
    for k in range(i, j, step):
        m = _STEPS[(_CHAIN[k], _CHAIN[k + step])] @ m
    return m


def to_output_frame(vector, src: "str | Frame", dst: "str | Frame") -> np.ndarray:
    """Convert a 3-vector between output frames."""
    v = np.asarray(vector, dtype=float)
    if v.shape != (3,):
        raise ValueError(f"Expected 3-element vector, got shape {v.shape}")
    if resolve_frame(src) is resolve_frame(dst):
        return v.copy()
    return frame_matrix(src, dst) @ v


def convert_state(state: RectangularState, dst: "str | Frame") -> RectangularState:
    """Convert a state between output frames, re-tagging its frame."""
    dst = resolve_frame(dst)
    if state.frame is dst:
        return state
    return state.transformed(frame_matrix(state.frame, dst), dst)


# ---------------------------------------------------------------------------
# Ecliptic <-> equatorial
# ---------------------------------------------------------------------------

def ecliptic_to_equatorial(vector, obliquity: float) -> np.ndarray:
    """Rotate an ecliptic vector to the equator by the given obliquity (rad)."""
    return spice.rotate(-obliquity, 1) @ np.asarray(vector, dtype=float)


def equatorial_to_ecliptic(vector, obliquity: float) -> np.ndarray:
    """Rotate an equatorial vector to the ecliptic by the given obliquity (rad)."""
    return spice.rotate(obliquity, 1) @ np.asarray(vector, dtype=float)


# ---------------------------------------------------------------------------
# Spherical helpers
# ---------------------------------------------------------------------------

def to_spherical(vector) -> tuple[float, float, float]:
    """Rectangular -> (longitude in [0, 2pi), latitude, radius)."""
    radius, lon, lat = spice.recrad(np.asarray(vector, dtype=float))
    return float(lon), float(lat), float(radius)


def from_spherical(longitude: float, latitude: float, radius: float = 1.0) -> np.ndarray:
    """(longitude, latitude, radius) -> rectangular."""
    return np.array(spice.radrec(radius, longitude, latitude), dtype=float)


def angular_separation(a, b) -> float:
    """Angle between two vectors in radians."""
    return float(spice.vsep(np.asarray(a, dtype=float), np.asarray(b, dtype=float)))
