"""Tests for helioephem.series96 — the outer-planet fits."""

import numpy as np
import pytest

J2000 = 2451545.0


def _fit(spacing=100.0, n_blocks=2):
    from helioephem.tables import Series96Block, Series96Body
    secular = np.array([[1.0e10, 2.0e8, 3.0e6],
                        [-5.0e9, 1.0e8, 0.0],
                        [2.0e9, 0.0, -4.0e6]])
    cosine = (np.array([[1.0e8], [0.0], [5.0e7]]), np.array([[2.0e7], [3.0e7], [0.0]]))
    sine = (np.array([[0.0], [4.0e7], [1.0e7]]), np.array([[0.0], [1.0e7], [6.0e6]]))
    block = Series96Block(secular, cosine, sine)
    return Series96Body("MARS", J2000, spacing, (np.array([0.05]), np.array([0.02])),
                        (block,) * n_blocks)


class TestValidity:
    def test_intervals(self):
        from helioephem.series96 import DEFAULT_VALIDITY, validity_interval
        assert validity_interval("Pluto") == (2341972.5, 2488092.5)
        assert validity_interval("neptune") == (2396758.5, 2488092.5)
        assert validity_interval("Mars") == DEFAULT_VALIDITY

    def test_check_date(self):
        from helioephem.errors import InvalidDateRange
        from helioephem.series96 import check_date
        check_date(2415020.5, "Mars")
        check_date(2488092.5, "Mars")
        with pytest.raises(InvalidDateRange, match="outside interval") as exc:
            check_date(2400000.5, "Mars")
        assert exc.value.jd == 2400000.5
        assert exc.value.valid_from == 2415020.5
        assert exc.value.valid_to == 2488092.5

    def test_pluto_earlier_than_others(self):
        from helioephem.errors import InvalidDateRange
        from helioephem.series96 import check_date
        check_date(2400000.5, "Pluto")
        with pytest.raises(InvalidDateRange):
            check_date(2400000.5, "Neptune")

    def test_date_checked_before_tables(self):
        from helioephem.errors import InvalidDateRange
        from helioephem.series96 import series96_state
        from helioephem.tables import TermTableProvider
        with pytest.raises(InvalidDateRange):
            series96_state(2400000.5, "Mars", TermTableProvider())

    def test_unsupported_body(self, series96_provider):
        from helioephem.errors import InvalidTarget
        from helioephem.series96 import series96_state
        with pytest.raises(InvalidTarget, match="Series96 has no fit for 'MERCURY'"):
            series96_state(J2000, "Mercury", series96_provider)


class TestEvaluateFit:
    def test_outside_blocks(self):
        from helioephem.errors import InvalidDateRange
        from helioephem.series96 import evaluate_fit
        fit = _fit()
        evaluate_fit(J2000 - 0.5, fit)
        evaluate_fit(fit.end + 0.5, fit)
        with pytest.raises(InvalidDateRange, match="outside Series96 blocks"):
            evaluate_fit(J2000 - 1.0, fit)
        with pytest.raises(InvalidDateRange):
            evaluate_fit(fit.end + 1.0, fit)

    def test_block_center(self):
        """At a block center x = 0, so only the constant terms remain."""
        from helioephem.series96 import evaluate_fit
        pos, _ = evaluate_fit(J2000 + 50.0, _fit())
        np.testing.assert_array_almost_equal(pos, [1.0 + 0.01, -0.5, 0.2 + 0.005], decimal=12)

    def test_velocity_matches_finite_difference(self):
        from helioephem.series96 import evaluate_fit
        fit = _fit()
        jd, h = J2000 + 137.3, 1e-3
        _, vel = evaluate_fit(jd, fit)
        ahead, _ = evaluate_fit(jd + h, fit)
        behind, _ = evaluate_fit(jd - h, fit)
        np.testing.assert_array_almost_equal(vel, (ahead - behind) / (2 * h), decimal=10)

    def test_linear_secular_velocity(self):
        from helioephem.series96 import evaluate_fit
        from helioephem.tables import Series96Block, Series96Body
        spacing, rate = 200.0, np.array([0.01, -0.02, 0.003])
        secular = np.column_stack([np.zeros(3), 1.0e10 * rate * spacing / 2.0])
        fit = Series96Body("MARS", J2000, spacing, (), (Series96Block(secular, (), ()),))
        _, vel = evaluate_fit(J2000 + 12.0, fit)
        np.testing.assert_array_almost_equal(vel, rate, decimal=14)


class TestBarycenter:
    def test_offset_magnitude(self):
        """The Earth-Moon barycenter sits about 4700 km from the geocenter."""
        from helioephem.constants import AU_KM
        from helioephem.series96 import barycenter_offset
        for jd in (2415020.5, J2000, 2460000.5, 2488000.5):
            km = np.linalg.norm(barycenter_offset(jd)) * AU_KM
            assert 4000.0 < km < 5200.0

    def test_velocity(self):
        from helioephem.series96 import barycenter_offset, barycenter_velocity
        vel = barycenter_velocity(J2000, step=0.01)
        expected = (barycenter_offset(J2000 + 0.01) - barycenter_offset(J2000 - 0.01)) / 0.02
        np.testing.assert_array_equal(vel, expected)
        # One revolution per month
        assert 5e-6 < np.linalg.norm(vel) < 1e-5

    def test_step_must_be_positive(self):
        from helioephem.series96 import barycenter_velocity
        with pytest.raises(ValueError, match="step"):
            barycenter_velocity(J2000, step=0.0)


class TestStates:
    def test_circular_orbit(self, series96_provider, orbits):
        from helioephem.models import Frame
        from helioephem.series96 import series96_state
        for jd in (2415020.5, 2440000.5, 2470000.5):
            state = series96_state(jd, "Jupiter", series96_provider)
            assert state.frame is Frame.ICRF
            assert state.distance == pytest.approx(orbits["JUPITER"][0], rel=1e-10)

    def test_earth_from_barycenter(self, series96_provider):
        from helioephem.series96 import barycenter_offset, series96_state
        jd = 2459215.5
        emb = series96_state(jd, "EMB", series96_provider)
        earth = series96_state(jd, "Earth", series96_provider)
        np.testing.assert_array_almost_equal(emb.position - earth.position, barycenter_offset(jd),
                                             decimal=14)

    def test_sun(self, series96_provider):
        from helioephem.series96 import series96_state
        np.testing.assert_array_equal(series96_state(J2000, "Sun", series96_provider).position,
                                      np.zeros(3))

    def test_missing_fit(self, series96_provider):
        from helioephem.series96 import series96_state
        with pytest.raises(KeyError, match="SERIES96/URANUS"):
            series96_state(J2000, "Uranus", series96_provider)

    def test_geocentric(self, series96_provider):
        from helioephem.series96 import geocentric_position, series96_state
        jd, lt = 2459215.5, 0.02
        geo = geocentric_position(jd, "Saturn", lt, series96_provider)
        earth = series96_state(jd, "Earth", series96_provider)
        saturn = series96_state(jd - lt, "Saturn", series96_provider)
        np.testing.assert_allclose(geo.position, saturn.position - earth.position, atol=1e-15)
        np.testing.assert_array_equal(geo.velocity, earth.velocity)


class TestPlutoCenter:
    def test_charon_orbit_radius(self):
        from helioephem.series96 import CHARON, satellite_position
        r = np.linalg.norm(satellite_position(J2000, CHARON, "Pluto"))
        assert r == pytest.approx(abs(CHARON.semimajor_axis), rel=3e-3)

    def test_charon_in_pluto_equator(self):
        from helioephem.bodies import body_north_pole
        from helioephem.frames import from_spherical
        from helioephem.series96 import CHARON, satellite_position
        pole = from_spherical(*body_north_pole("Pluto", J2000), 1.0)
        for jd in (J2000, J2000 + 1.3, J2000 + 4.7):
            charon = satellite_position(jd, CHARON, "Pluto")
            assert abs(charon @ pole) / np.linalg.norm(charon) < 1.0e-3

    def test_charon_period(self):
        import math
        from helioephem.series96 import CHARON, satellite_position
        period = 2.0 * math.pi / CHARON.mean_motion
        assert period == pytest.approx(6.387, abs=1e-3)
        np.testing.assert_allclose(satellite_position(J2000 + period, CHARON, "Pluto"),
                                   satellite_position(J2000, CHARON, "Pluto"), atol=1e-13)

    def test_shift_is_an_eighth_of_charon(self):
        from helioephem.constants import AU_KM
        from helioephem.series96 import CHARON, CHARON_MASS_FRACTION, pluto_barycenter_to_center, satellite_position
        barycenter = np.array([30.0, -5.0, 2.0])
        center = pluto_barycenter_to_center(barycenter, J2000)
        charon = satellite_position(J2000, CHARON, "Pluto")
        np.testing.assert_allclose(center - barycenter, -CHARON_MASS_FRACTION * charon, atol=1e-18)
        assert np.linalg.norm(center - barycenter) * AU_KM == pytest.approx(2192.0, rel=5e-3)

    def test_state_moves_to_center_on_request(self, series96_provider):
        from helioephem.series96 import pluto_barycenter_to_center, series96_state
        barycenter = series96_state(J2000, "Pluto", series96_provider)
        center = series96_state(J2000, "Pluto", series96_provider, pluto_center=True)
        np.testing.assert_allclose(center.position, pluto_barycenter_to_center(barycenter.position, J2000),
                                   atol=1e-15)
        np.testing.assert_array_equal(center.velocity, barycenter.velocity)

    def test_other_bodies_unaffected(self, series96_provider):
        from helioephem.series96 import series96_state
        np.testing.assert_array_equal(series96_state(J2000, "Saturn", series96_provider, pluto_center=True).position,
                                      series96_state(J2000, "Saturn", series96_provider).position)

    def test_offset_keeps_barycenter(self, series96_provider):
        """An offset (e.g. Charon itself) is measured from the system barycenter."""
        from helioephem.series96 import geocentric_position
        offset = np.zeros(3)
        with_offset = geocentric_position(J2000, "Pluto", 0.0, series96_provider, offset=offset,
                                          pluto_center=True)
        barycenter = geocentric_position(J2000, "Pluto", 0.0, series96_provider)
        centered = geocentric_position(J2000, "Pluto", 0.0, series96_provider, pluto_center=True)
        np.testing.assert_array_equal(with_offset.position, barycenter.position)
        assert np.linalg.norm(centered.position - barycenter.position) > 1.0e-5


class TestOrderedSums:
    def test_fit_matches_table_order_sum(self):
        """Periodic parts are summed term by term in table order."""
        from unittest.mock import patch

        from helioephem import series96
        fit = _fit()
        with patch("helioephem.series96.ordered_sum", wraps=series96.ordered_sum) as summed:
            series96.evaluate_fit(J2000 + 30.0, fit)
        assert summed.call_count > 0

    def test_barycenter_offset_uses_ordered_sum(self):
        from unittest.mock import patch

        from helioephem import series96
        with patch("helioephem.series96.ordered_sum", wraps=series96.ordered_sum) as summed:
            series96.barycenter_offset(J2000)
        assert summed.call_count == 3
