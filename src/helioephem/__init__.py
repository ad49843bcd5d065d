"""
helioephem: apparent places of the Sun, Moon and planets from series theories.

Evaluates the ELP2000 lunar theory, the VSOP87 planetary theory and the
Series96 outer-planet fits, and reduces the result to apparent, astrometric
or geometric coordinates for an observer on the Earth or another body.

Quick start::

    from helioephem import EphemerisRequest, TermTableProvider, compute_ephemeris

    provider = TermTableProvider(loader=my_table_loader)
    result = compute_ephemeris(EphemerisRequest(jd=2451545.0, target="Mars"), provider)
    print(result.right_ascension, result.declination, result.distance)

Term tables are not shipped: register already-parsed TermTable and
Series96Body objects with the provider, or give it a loader callable.

Theories:
    ELP2000   Moon
    VSOP87    Mercury to Neptune, Earth, Earth-Moon barycenter (variants A-E)
    SERIES96  Mars to Pluto, Earth-Moon barycenter (1900-2100)

Use ``list_supported_bodies()`` and ``list_available_frames()`` for
programmatic access.
"""

__version__ = "0.1.0"

from .bodies import resolve_body, list_supported_bodies
from .config import Settings
from .ephemeris import compute_ephemeris, ephemeris_table, plan_strategies
from .errors import ConvergenceFailure, EphemerisError, InvalidDateRange, InvalidTarget
from .frames import list_available_frames, list_frames_with_descriptions, to_output_frame
from .models import (
    Algorithm,
    CoordinateType,
    EphemerisRequest,
    EphemerisResult,
    Equinox,
    Frame,
    Observer,
    ReductionMethod,
)
from .tables import Series96Block, Series96Body, TermTable, TermTableProvider

__all__ = [
    "compute_ephemeris",
    "ephemeris_table",
    "plan_strategies",
    "EphemerisRequest",
    "EphemerisResult",
    "Observer",
    "Algorithm",
    "CoordinateType",
    "Equinox",
    "Frame",
    "ReductionMethod",
    "Settings",
    "TermTable",
    "TermTableProvider",
    "Series96Block",
    "Series96Body",
    "EphemerisError",
    "InvalidDateRange",
    "InvalidTarget",
    "ConvergenceFailure",
    "to_output_frame",
    "list_available_frames",
    "list_frames_with_descriptions",
    "resolve_body",
    "list_supported_bodies",
]
