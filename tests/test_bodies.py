"""Tests for helioephem.bodies — name resolution, constants and rotation poles."""

import math

import pytest


class TestResolveBody:
    def test_case_insensitive(self):
        from helioephem.bodies import resolve_body
        assert resolve_body("jupiter").key == "JUPITER"
        assert resolve_body("  Mars ").key == "MARS"

    def test_aliases(self):
        from helioephem.bodies import resolve_body
        assert resolve_body("Sol").key == "SUN"
        assert resolve_body("luna").key == "MOON"
        assert resolve_body("EARTH_BARYCENTER").key == "EMB"
        assert resolve_body("Earth-Moon barycenter").key == "EMB"

    def test_naif_id(self):
        from helioephem.bodies import resolve_body
        assert resolve_body(599).key == "JUPITER"
        assert resolve_body(301).key == "MOON"
        with pytest.raises(KeyError, match="NAIF ID 12345"):
            resolve_body(12345)

    def test_body_passthrough(self):
        from helioephem.bodies import BODIES, resolve_body
        assert resolve_body(BODIES["VENUS"]) is BODIES["VENUS"]

    def test_unknown(self):
        from helioephem.bodies import resolve_body
        with pytest.raises(KeyError, match="Unknown body 'Vulcan'"):
            resolve_body("Vulcan")


class TestConstants:
    def test_flattening(self):
        from helioephem.bodies import resolve_body
        assert 1.0 / resolve_body("Earth").flattening == pytest.approx(298.257, abs=0.01)
        assert resolve_body("Moon").flattening == 0.0
        assert resolve_body("EMB").flattening == 0.0

    def test_list_supported_bodies(self):
        from helioephem.bodies import PLANETS, list_supported_bodies
        bodies = list_supported_bodies()
        names = [b["body"] for b in bodies]
        assert names == sorted(names)
        assert set(PLANETS) <= set(names)
        jupiter = next(b for b in bodies if b["body"] == "JUPITER")
        assert jupiter["naif_id"] == 599
        assert jupiter["relative_mass"] == pytest.approx(1047.3486)


class TestPoles:
    def test_earth_pole_at_j2000(self):
        from helioephem.bodies import body_north_pole
        ra, dec = body_north_pole("Earth", 2451545.0)
        assert ra == 0.0
        assert dec == pytest.approx(math.pi / 2)

    def test_mars_pole(self):
        from helioephem.bodies import body_north_pole
        ra, dec = body_north_pole("Mars", 2451545.0)
        assert math.degrees(ra) == pytest.approx(317.68143)
        assert math.degrees(dec) == pytest.approx(52.88650)

    def test_neptune_pole_moves(self):
        from helioephem.bodies import body_north_pole
        a = body_north_pole("Neptune", 2451545.0)
        b = body_north_pole("Neptune", 2451545.0 + 36525.0)
        assert a != b
        assert 0.0 <= a[0] < 2 * math.pi

    def test_no_pole(self):
        from helioephem.bodies import body_north_pole
        with pytest.raises(KeyError, match="No rotation pole defined"):
            body_north_pole("EMB", 2451545.0)
