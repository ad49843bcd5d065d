"""Tests for helioephem.physical — elongation, phase and apparent size."""

import math

import pytest


class TestAngularRadius:
    def test_jupiter_at_opposition_distance(self):
        from helioephem.physical import angular_radius
        assert angular_radius("Jupiter", 4.2) == pytest.approx(1.13784e-4, rel=1e-4)

    def test_non_positive_distance(self):
        from helioephem.physical import angular_radius
        assert angular_radius("Mars", 0.0) == 0.0
        assert angular_radius("Mars", -1.0) == 0.0

    def test_unknown_body(self):
        from helioephem.physical import angular_radius
        with pytest.raises(KeyError, match="Unknown body"):
            angular_radius("Vulcan", 1.0)


class TestPhysicalEphemeris:
    def test_sun_is_fully_lit(self):
        from helioephem.physical import physical_ephemeris
        eph = physical_ephemeris("Sun", [1.0, 0.0, 0.0], [1.0, 0.0, 0.0])
        assert eph.phase == 1.0
        assert eph.elongation == 0.0
        assert eph.phase_angle == 0.0
        assert eph.defect_of_illumination == 0.0
        assert math.degrees(eph.angular_radius) * 60.0 == pytest.approx(16.0, abs=0.1)

    def test_opposition(self):
        from helioephem.physical import physical_ephemeris
        eph = physical_ephemeris("Mars", [-0.5, 0.0, 0.0], [1.0, 0.0, 0.0])
        assert eph.elongation == pytest.approx(math.pi)
        assert eph.phase_angle == pytest.approx(0.0, abs=1e-12)
        assert eph.phase == pytest.approx(1.0)

    def test_gibbous(self):
        from helioephem.physical import physical_ephemeris
        eph = physical_ephemeris("Venus", [1.0, 1.0, 0.0], [1.0, 0.0, 0.0])
        assert math.degrees(eph.elongation) == pytest.approx(45.0)
        assert math.degrees(eph.phase_angle) == pytest.approx(45.0)
        assert eph.phase == pytest.approx(0.5 * (1.0 + math.sqrt(0.5)))

    def test_defect_of_illumination(self):
        from helioephem.physical import physical_ephemeris
        eph = physical_ephemeris("Moon", [0.0, 0.00257, 0.0], [1.0, 0.0, 0.0])
        # Quarter moon: half the disk is dark
        assert eph.phase == pytest.approx(0.5, abs=2e-3)
        assert eph.defect_of_illumination == pytest.approx(2.0 * eph.angular_radius * (1.0 - eph.phase))
