"""
Engine settings.

Settings are plain values passed to the engine explicitly. ``from_env``
reads overrides from HELIOEPHEM_* environment variables.
"""

import logging
import os
from dataclasses import dataclass, field, replace

logger = logging.getLogger("helioephem")

_ENV_PREFIX = "HELIOEPHEM_"


@dataclass(frozen=True)
class Settings:
    """Tunable parameters of the ephemeris pipeline.

    Attributes:
        max_light_time_iterations: Cap on the light-time loop before
            ConvergenceFailure is raised.
        moon_secular_acceleration: Lunar secular acceleration in
            arcsec/century^2 used to correct the ELP2000 epoch.
        elp_truncation: Default ELP2000 amplitude threshold in arcsec
            (0 evaluates the full theory).
        barycenter_velocity_step: Step in days for the finite-difference
            velocity of the Earth-Moon barycenter offset.
        deflecting_bodies: Bodies besides the Sun whose light deflection
            is applied to apparent positions.
        apply_refraction: Apply atmospheric refraction to apparent
            elevations seen from Earth.
        moon_geometric_center: Shift Moon positions from the center of
            mass to the center of figure (about 2 km).
        pluto_body_center: Return the center of Pluto instead of the
            Pluto-Charon barycenter given by the Series96 fit.
    """

    max_light_time_iterations: int = 50
    moon_secular_acceleration: float = -25.858
    elp_truncation: float = 0.0
    barycenter_velocity_step: float = 0.01
    deflecting_bodies: tuple[str, ...] = field(default=("JUPITER", "SATURN"))
    apply_refraction: bool = True
    moon_geometric_center: bool = False
    pluto_body_center: bool = True

    def __post_init__(self):
        if self.max_light_time_iterations < 1:
            raise ValueError(
                f"max_light_time_iterations must be >= 1, got {self.max_light_time_iterations}"
            )
        if self.elp_truncation < 0:
            raise ValueError(f"elp_truncation must be >= 0, got {self.elp_truncation}")
        if self.barycenter_velocity_step <= 0:
            raise ValueError(
                f"barycenter_velocity_step must be positive, got {self.barycenter_velocity_step}"
            )

    def with_overrides(self, **changes) -> "Settings":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "Settings":
        """Build settings from HELIOEPHEM_* environment variables.

        Recognised variables: HELIOEPHEM_MAX_LIGHT_TIME_ITERATIONS,
        HELIOEPHEM_ELP_TRUNCATION, HELIOEPHEM_MOON_SECULAR_ACCELERATION.

        Args:
            environ: Mapping to read instead of ``os.environ``.

        Raises:
            ValueError: If a variable is set to a value that cannot be parsed.
        """
        env = os.environ if environ is None else environ
        changes = {}
        parsers = {
            "max_light_time_iterations": int,
            "elp_truncation": float,
            "moon_secular_acceleration": float,
        }
        for name, parse in parsers.items():
            var = _ENV_PREFIX + name.upper()
            raw = env.get(var)
            if raw is None or raw.strip() == "":
                continue
            try:
                changes[name] = parse(raw)
            except ValueError as e:
                raise ValueError(f"Invalid value for {var}: {raw!r}") from e
            logger.debug("Setting %s=%s from %s", name, changes[name], var)
        return cls(**changes)
