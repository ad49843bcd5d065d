"""
Physical and astronomical constants shared by the theories and reductions.

Values that SPICE also defines (speed of light, seconds per day, the J2000
and B1950 epochs) are taken from spiceypy so there is a single source.
"""

import math

import spiceypy as spice

# Astronomical unit (IAU 2012)
AU_KM = 149597870.7
AU_M = AU_KM * 1000.0

SPEED_OF_LIGHT_KM_S = spice.clight()
SPEED_OF_LIGHT_M_S = SPEED_OF_LIGHT_KM_S * 1000.0
SECONDS_PER_DAY = spice.spd()

# Light travel time for one AU, in days
LIGHT_TIME_DAYS_PER_AU = AU_KM / SPEED_OF_LIGHT_KM_S / SECONDS_PER_DAY

# Heliocentric gravitational constant, m^3/s^2
GM_SUN = 1.32712440017987e20

JD_J2000 = spice.j2000()
JD_B1950 = spice.b1950()
DAYS_PER_CENTURY = 36525.0
DAYS_PER_MILLENNIUM = 365250.0

TWO_PI = spice.twopi()
ARCSEC_TO_RAD = math.pi / 648000.0

# Nominal Earth rotation rate, rad/s
EARTH_ROTATION_RATE = 7.292115e-5

# Light-time iteration stops when successive estimates agree within 1 microsecond
LIGHT_TIME_TOLERANCE_DAYS = 1.0e-6 / SECONDS_PER_DAY


def centuries_since_j2000(jd: float) -> float:
    """Julian centuries of TDB elapsed since J2000.0."""
    return (jd - JD_J2000) / DAYS_PER_CENTURY
