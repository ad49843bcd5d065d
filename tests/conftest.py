"""Shared fixtures: small synthetic term tables for every theory.

The planets move on circular orbits with roughly their real radii, rates
and mean longitudes, so pipeline results land where real ones would
without shipping the full theories.
"""

import math

import numpy as np
import pytest

from helioephem.constants import JD_J2000
from helioephem.elp2000 import COEFFICIENT_WIDTH, FAMILIES, MULTIPLIER_WIDTH
from helioephem.reduction import mean_obliquity
from helioephem.series96 import SCALE
from helioephem.tables import Series96Block, Series96Body, TermTable, TermTableProvider

# radius (AU), rate (rad/millennium), mean longitude at J2000 (rad), inclination (rad)
ORBITS = {
    "MERCURY": (0.3870983, 26087.9031416, 4.4026088, 0.1222600),
    "EARTH": (1.0000010, 6283.0758500, 1.7534704, 0.0),
    "MARS": (1.5236793, 3340.6124267, 6.2034809, 0.0322833),
    "JUPITER": (5.2026032, 529.6909651, 0.5995465, 0.0228418),
    "SATURN": (9.5549092, 213.2990954, 0.8740168, 0.0434362),
}

# Fitted by Series96 only
DWARF_ORBITS = {
    "PLUTO": (39.4816868, 25.3384720, 4.1700000, 0.2994800),
}

SERIES96_START = 2415020.5
SERIES96_SPACING = 18268.0
SERIES96_BLOCKS = 4

# Main-problem terms of the Moon: family -> [(D, l', l, F), (A, B1..B5)]
MOON_TERMS = {
    1: [((0, 0, 1, 0), (22639.55, 0.0, 0.0, 0.0, 0.0, 0.0))],
    2: [((0, 0, 0, 1), (18461.24, 0.0, 0.0, 0.0, 0.0, 0.0))],
    3: [((0, 0, 0, 0), (385000.52719, 0.0, 0.0, 0.0, 0.0, 0.0)),
        ((0, 0, 1, 0), (-20905.355, 0.0, 0.0, 0.0, 0.0, 0.0))],
}

# Leading VSOP87D terms of the Earth (Meeus, Astronomical Algorithms,
# Appendix III), units of 1e-8: (coordinate, power) -> [(A, B, C)]
EARTH_VSOP87D = {
    (0, 0): [(175347046, 0, 0), (3341656, 4.6692568, 6283.0758500), (34894, 4.62610, 12566.15170),
             (3497, 2.7441, 5753.3849), (3418, 2.8289, 3.5231), (3136, 3.6277, 77713.7715),
             (2676, 4.4181, 7860.4194), (2343, 6.1352, 3930.2097), (1324, 0.7425, 11506.7698),
             (1273, 2.0371, 529.6910)],
    (0, 1): [(628331966747, 0, 0), (206059, 2.678235, 6283.07585), (4303, 2.6351, 12566.1517)],
    (0, 2): [(52919, 0, 0), (8720, 1.0721, 6283.0758)],
    (0, 3): [(289, 5.844, 6283.076)],
    (1, 0): [(280, 3.199, 84334.662), (102, 5.422, 5507.553)],
    (1, 1): [(9, 3.90, 5507.55)],
    (2, 0): [(100013989, 0, 0), (1670700, 3.0984635, 6283.0758500), (13956, 3.05525, 12566.15170),
             (3084, 5.1985, 77713.7715), (1628, 1.1739, 5753.3849), (1576, 2.8469, 7860.4194)],
    (2, 1): [(103019, 1.107490, 6283.075850), (1721, 1.0644, 12566.1517)],
    (2, 2): [(4359, 5.7846, 6283.0758)],
}


def circular_vsop_table(theory: str, body: str, offset=(0.0, 0.0, 0.0)) -> TermTable:
    """Rectangular VSOP87 table of a circular orbit, plus a constant offset."""
    radius, rate, lon0, incl = ORBITS[body]
    quarter = lon0 - math.pi / 2.0
    rows = [
        ((0, 0), (radius, lon0, rate)),
        ((1, 0), (radius * math.cos(incl), quarter, rate)),
        ((2, 0), (radius * math.sin(incl), quarter, rate)),
    ]
    rows += [((axis, 0), (value, 0.0, 0.0)) for axis, value in enumerate(offset) if value]
    return TermTable.from_terms(theory, body, rows)


def circular_series96_fit(key: str, body: str) -> Series96Body:
    """Series96 fit of the same circular orbit, on the J2000 equator."""
    radius, rate, lon0, incl = {**ORBITS, **DWARF_ORBITS}[body]
    incl += mean_obliquity(JD_J2000)
    omega = rate / 365250.0
    blocks = []
    for n in range(SERIES96_BLOCKS):
        mid = SERIES96_START + (n + 0.5) * SERIES96_SPACING
        alpha = lon0 + omega * (mid - JD_J2000)
        r = radius * SCALE
        cosine = np.array([[r * math.cos(alpha)],
                           [r * math.cos(incl) * math.sin(alpha)],
                           [r * math.sin(incl) * math.sin(alpha)]])
        sine = np.array([[-r * math.sin(alpha)],
                         [r * math.cos(incl) * math.cos(alpha)],
                         [r * math.sin(incl) * math.cos(alpha)]])
        blocks.append(Series96Block(np.zeros((3, 2)), (cosine,), (sine,)))
    return Series96Body(key, SERIES96_START, SERIES96_SPACING, (np.array([omega]),), tuple(blocks))


def elp_family_tables(terms=None) -> list[TermTable]:
    """All 36 ELP2000 family tables, empty except for ``terms``."""
    terms = terms or {}
    return [
        TermTable.from_terms("ELP2000", family.quantity, terms.get(n, []),
                             MULTIPLIER_WIDTH[family.term_set], COEFFICIENT_WIDTH[family.term_set])
        for n, family in FAMILIES.items()
    ]


@pytest.fixture
def make_elp_provider():
    """Factory: provider holding only the 36 lunar families."""
    def build(terms=None):
        provider = TermTableProvider()
        provider.register_many(elp_family_tables(terms))
        return provider
    return build


@pytest.fixture
def vsop_provider():
    """VSOP87A tables for the synthetic planets."""
    provider = TermTableProvider()
    for body in ORBITS:
        provider.register(circular_vsop_table("VSOP87A", body))
    return provider


@pytest.fixture
def earth_vsop87d_provider():
    """Truncated VSOP87D series of the Earth."""
    rows = [
        ((coordinate, power), (a * 1.0e-8, b, c))
        for (coordinate, power), terms in EARTH_VSOP87D.items()
        for a, b, c in terms
    ]
    provider = TermTableProvider()
    provider.register(TermTable.from_terms("VSOP87D", "EARTH", rows))
    return provider


@pytest.fixture
def series96_provider():
    """Series96 fits for the Earth-Moon barycenter, the outer planets and Pluto."""
    provider = TermTableProvider()
    provider.register(circular_series96_fit("EMB", "EARTH"))
    for body in ("MARS", "JUPITER", "SATURN", "PLUTO"):
        provider.register(circular_series96_fit(body, body))
    return provider


@pytest.fixture
def provider(vsop_provider, series96_provider):
    """Every theory: VSOP87A, Series96 and the ELP2000 main terms of the Moon."""
    for theory, quantity in series96_provider.list_tables():
        vsop_provider.register(series96_provider.get_table(theory, quantity), theory, quantity)
    for table in elp_family_tables(MOON_TERMS):
        vsop_provider.register(table)
    return vsop_provider


@pytest.fixture
def orbits():
    return ORBITS


@pytest.fixture
def vsop_table_factory():
    return circular_vsop_table


@pytest.fixture
def moon_terms():
    return MOON_TERMS
