"""Tests for helioephem.elp2000 — the lunar theory."""

import math

import numpy as np
import pytest

J2000 = 2451545.0


class TestFamilies:
    def test_layout(self):
        from helioephem.elp2000 import FAMILIES, Coordinate, TermSet
        assert len(FAMILIES) == 36
        assert FAMILIES[1].coordinate is Coordinate.LONGITUDE
        assert FAMILIES[2].coordinate is Coordinate.LATITUDE
        assert FAMILIES[3].coordinate is Coordinate.DISTANCE
        assert FAMILIES[3].term_set is TermSet.MAIN
        assert FAMILIES[12].term_set is TermSet.PLANETARY
        assert FAMILIES[21].term_set is TermSet.PLANETARY_SHORT
        assert FAMILIES[30].term_set is TermSet.FIGURE
        assert FAMILIES[7].time_power == 1
        assert FAMILIES[36].time_power == 2
        assert FAMILIES[4].quantity == "4"

    def test_thresholds(self):
        from helioephem.arguments import RAD
        from helioephem.elp2000 import A_THEORY, thresholds
        lon, lat, dist = thresholds(1.0)
        assert lon == pytest.approx(1.0)
        assert lat == pytest.approx(1.0)
        assert dist == pytest.approx(A_THEORY / RAD)


class TestLunarCoordinates:
    def test_empty_theory_is_mean_longitude(self, make_elp_provider):
        from helioephem.arguments import lunar_arguments
        from helioephem.constants import centuries_since_j2000
        from helioephem.elp2000 import lunar_coordinates
        jd = 2460000.5
        lon, lat, dist = lunar_coordinates(jd, make_elp_provider())
        assert lon == lunar_arguments(centuries_since_j2000(jd)).mean_longitude
        assert lat == 0.0
        assert dist == 0.0

    def test_figure_term(self, make_elp_provider):
        """A FIGURE term with 90 degree phase adds its amplitude."""
        from helioephem.arguments import RAD, lunar_arguments
        from helioephem.elp2000 import lunar_coordinates
        provider = make_elp_provider({4: [((0, 0, 0, 0, 0), (90.0, 0.5, 0.0))]})
        lon, _, _ = lunar_coordinates(J2000, provider)
        assert lon - lunar_arguments(0.0).mean_longitude == pytest.approx(0.5 / RAD, abs=1e-15)

    def test_time_power(self, make_elp_provider):
        """Family 7 amplitudes are multiplied by t."""
        from helioephem.arguments import RAD, lunar_arguments
        from helioephem.constants import centuries_since_j2000
        from helioephem.elp2000 import lunar_coordinates
        jd = J2000 + 36525.0 * 0.5
        provider = make_elp_provider({7: [((0, 0, 0, 0, 0), (90.0, 2.0, 0.0))]})
        lon, _, _ = lunar_coordinates(jd, provider)
        t = centuries_since_j2000(jd)
        assert lon - lunar_arguments(t).mean_longitude == pytest.approx(2.0 * t / RAD, abs=1e-11)

    def test_planetary_terms(self, make_elp_provider):
        from helioephem.arguments import RAD
        from helioephem.elp2000 import lunar_coordinates
        zeros = (0,) * 11
        provider = make_elp_provider({
            11: [(zeros, (90.0, 0.25, 0.0))],
            17: [(zeros, (90.0, 0.75, 0.0))],
        })
        _, lat, _ = lunar_coordinates(J2000, provider)
        assert lat == pytest.approx(1.0 / RAD, abs=1e-15)

    def test_main_problem_distance(self, make_elp_provider):
        from helioephem.elp2000 import lunar_coordinates
        provider = make_elp_provider({3: [((0, 0, 0, 0), (385000.52719, 0.0, 0.0, 0.0, 0.0, 0.0))]})
        _, _, dist = lunar_coordinates(J2000, provider)
        assert dist == pytest.approx(385000.52719, abs=1e-3)

    def test_truncation_drops_small_terms(self, provider):
        from helioephem.arguments import lunar_arguments
        from helioephem.elp2000 import lunar_coordinates
        full = lunar_coordinates(J2000, provider)
        lon, lat, dist = lunar_coordinates(J2000, provider, truncation=30000.0)
        assert lon == lunar_arguments(0.0).mean_longitude
        assert lat == 0.0
        assert dist == pytest.approx(full[2] - (-20905.355 * math.cos(lunar_arguments(0.0).delaunay[2])),
                                     abs=1e-2)

    @pytest.mark.parametrize("family, amplitudes", [
        (1, (6.0, -2.5, 0.8, 0.05)),
        (2, (4.0, -1.2, 0.3, 0.01)),
        (3, (12.0, -5.0, 1.5, 0.1)),
    ])
    @pytest.mark.parametrize("truncation", [0.02, 0.5, 1.0, 3.0])
    def test_truncation_error_bounded_by_dropped_amplitudes(self, make_elp_provider, family,
                                                            amplitudes, truncation):
        from helioephem.arguments import RAD
        from helioephem.elp2000 import A_FIT, A_THEORY, lunar_coordinates, thresholds
        multipliers = ((0, 0, 1, 0), (2, 0, -1, 0), (0, 1, 0, 0), (0, 0, 0, 1))
        rows = [(m, (a, 0.0, 0.0, 0.0, 0.0, 0.0)) for m, a in zip(multipliers, amplitudes)]
        provider = make_elp_provider({family: rows})
        jd = 2455000.5
        index = family - 1
        limit = thresholds(truncation)[index]
        dropped = sum(abs(a) for a in amplitudes if abs(a) <= limit)
        scale = A_FIT / A_THEORY if index == 2 else 1.0 / RAD

        full = lunar_coordinates(jd, provider)[index]
        truncated = lunar_coordinates(jd, provider, truncation=truncation)[index]
        assert abs(full - truncated) <= dropped * scale * 1.001 + 1e-12

    def test_negative_truncation(self, make_elp_provider):
        from helioephem.elp2000 import lunar_coordinates
        with pytest.raises(ValueError, match="truncation"):
            lunar_coordinates(J2000, make_elp_provider(), truncation=-1.0)

    def test_missing_family(self):
        from helioephem.elp2000 import lunar_coordinates
        from helioephem.tables import TermTableProvider
        with pytest.raises(KeyError, match="ELP2000/1"):
            lunar_coordinates(J2000, TermTableProvider())

    def test_deterministic(self, provider):
        from helioephem.elp2000 import lunar_position
        a = lunar_position(2455000.25, provider)
        b = lunar_position(2455000.25, provider)
        np.testing.assert_array_equal(a, b)


class TestTermCounts:
    def test_monotone_in_truncation(self, make_elp_provider):
        from helioephem.elp2000 import term_counts
        provider = make_elp_provider({
            1: [((0, 0, 1, 0), (a, 0.0, 0.0, 0.0, 0.0, 0.0)) for a in (2.0, -0.6, 0.05, 0.001)],
            5: [((0, 0, 0, 0, 0), (0.0, a, 0.0)) for a in (0.4, 0.02)],
        })
        previous = None
        for truncation in (0.0, 0.01, 0.1, 0.5, 1.0, 5.0):
            counts = term_counts(provider, truncation)
            total = sum(counts.values())
            if previous is not None:
                assert total <= previous
            previous = total
        assert term_counts(provider, 0.0)[1] == 4
        assert term_counts(provider, 0.1)[1] == 2
        assert term_counts(provider, 0.1)[5] == 1
        assert term_counts(provider, 5.0)[1] == 0


class TestLunarPosition:
    def test_rotation_preserves_distance(self, provider):
        from helioephem.constants import AU_KM
        from helioephem.elp2000 import lunar_coordinates, lunar_position
        jd = 2458000.5
        _, _, dist = lunar_coordinates(jd, provider)
        assert np.linalg.norm(lunar_position(jd, provider)) == pytest.approx(dist / AU_KM, rel=1e-12)

    def test_state_velocity(self, provider):
        from helioephem.elp2000 import lunar_state
        from helioephem.models import Frame
        jd = 2458000.5
        still = lunar_state(jd, provider)
        moving = lunar_state(jd, provider, velocity_step=0.01)
        assert still.frame is Frame.ECLIPTIC_J2000
        np.testing.assert_array_equal(still.velocity, np.zeros(3))
        # About 1 km/s, i.e. 5.8e-4 AU/day
        assert 3e-4 < np.linalg.norm(moving.velocity) < 9e-4

    def test_fk5_rotation(self):
        from helioephem.elp2000 import mean_inertial_to_fk5
        v = mean_inertial_to_fk5([0.0, 1.0, 0.0])
        assert v[1] == pytest.approx(math.cos(math.radians(84381.41 / 3600.0)), abs=1e-7)
        assert v[2] == pytest.approx(math.sin(math.radians(84381.41 / 3600.0)), abs=1e-7)


class TestCorrections:
    def test_secular_acceleration_zero_at_1955(self):
        from helioephem.elp2000 import secular_acceleration_correction
        assert secular_acceleration_correction(2435109.0) == 2435109.0

    def test_secular_acceleration_grows(self):
        from helioephem.elp2000 import MOON_SECULAR_ACCELERATION_DE200, secular_acceleration_correction
        jd = 2435109.0 + 36525.0
        assert secular_acceleration_correction(jd, MOON_SECULAR_ACCELERATION_DE200) == jd
        shift = (secular_acceleration_correction(jd) - jd) * 86400.0
        assert shift == pytest.approx(0.91072 * (-25.858 + 23.8946), abs=1e-4)

    def test_geometric_center(self):
        from helioephem.constants import AU_KM
        from helioephem.elp2000 import barycenter_to_geometric_center
        v = np.array([0.002, 0.0015, 0.0003])
        shifted = barycenter_to_geometric_center(v, math.radians(23.44))
        assert (np.linalg.norm(shifted) - np.linalg.norm(v)) * AU_KM == pytest.approx(2.0, abs=1e-6)
