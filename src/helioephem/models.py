"""
Request, observer, state and result types of the ephemeris engine.

Option enums are ``str`` subclasses so plain strings ("apparent",
"ICRF") are accepted wherever an enum is expected.
"""

import math
from dataclasses import asdict, dataclass, field
from enum import Enum

import numpy as np


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------

class _StrEnum(str, Enum):
    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        key = str(value).strip().upper().replace("-", "_").replace(" ", "_")
        try:
            return cls[key]
        except KeyError:
            raise ValueError(
                f"Unknown {cls.__name__} '{value}'. Supported: {', '.join(m.name for m in cls)}"
            ) from None


class CoordinateType(_StrEnum):
    GEOMETRIC = "GEOMETRIC"
    ASTROMETRIC = "ASTROMETRIC"
    APPARENT = "APPARENT"


class Frame(_StrEnum):
    """Reference frames. The first four are valid output frames."""

    ICRF = "ICRF"
    FK5 = "FK5"
    FK4 = "FK4"
    DYNAMICAL_J2000 = "DYNAMICAL_J2000"
    # Internal frames of the theories and the reduction chain
    ECLIPTIC_J2000 = "ECLIPTIC_J2000"
    ECLIPTIC_OF_DATE = "ECLIPTIC_OF_DATE"
    MEAN_EQUATORIAL_OF_DATE = "MEAN_EQUATORIAL_OF_DATE"
    TRUE_EQUATORIAL_OF_DATE = "TRUE_EQUATORIAL_OF_DATE"


OUTPUT_FRAMES = (Frame.ICRF, Frame.FK5, Frame.FK4, Frame.DYNAMICAL_J2000)


class Equinox(_StrEnum):
    OF_DATE = "OF_DATE"
    J2000 = "J2000"


class ReductionMethod(_StrEnum):
    IAU1976 = "IAU1976"
    IAU2000 = "IAU2000"
    IAU2006 = "IAU2006"
    IAU2009 = "IAU2009"


class Algorithm(_StrEnum):
    AUTO = "AUTO"
    ELP2000 = "ELP2000"
    VSOP87 = "VSOP87"
    SERIES96 = "SERIES96"


# ---------------------------------------------------------------------------
# Observer
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Observer:
    """Where the observation is made from.

    Attributes:
        longitude_deg: Geodetic longitude, east positive.
        latitude_deg: Geodetic latitude, north positive.
        height_m: Height above the reference ellipsoid.
        mother_body: Body the observer stands on.
        xp_arcsec: Polar motion x coordinate.
        yp_arcsec: Polar motion y coordinate.
        pressure_mbar: Atmospheric pressure for refraction.
        temperature_c: Air temperature for refraction.
    """

    longitude_deg: float = 0.0
    latitude_deg: float = 0.0
    height_m: float = 0.0
    mother_body: str = "EARTH"
    xp_arcsec: float = 0.0
    yp_arcsec: float = 0.0
    pressure_mbar: float = 1010.0
    temperature_c: float = 10.0

    def __post_init__(self):
        if not -90.0 <= self.latitude_deg <= 90.0:
            raise ValueError(f"latitude_deg must be within [-90, 90], got {self.latitude_deg}")
        object.__setattr__(self, "mother_body", str(self.mother_body).strip().upper())

    @property
    def longitude(self) -> float:
        return math.radians(self.longitude_deg)

    @property
    def latitude(self) -> float:
        return math.radians(self.latitude_deg)

    @property
    def on_earth(self) -> bool:
        return self.mother_body == "EARTH"


# ---------------------------------------------------------------------------
# States
# ---------------------------------------------------------------------------

def _vector(values) -> np.ndarray:
    arr = np.array(values, dtype=float).reshape(3)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class RectangularState:
    """Position (AU) and velocity (AU/day) tagged with frame and epoch.

    Attributes:
        position: Rectangular position.
        velocity: Rectangular velocity.
        frame: Frame the vectors are expressed in.
        epoch: Julian day (TDB) the state refers to.
        light_time_corrected: Whether the position is retarded by light time.
    """

    position: np.ndarray
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    frame: Frame = Frame.ICRF
    epoch: float = 0.0
    light_time_corrected: bool = False

    def __post_init__(self):
        object.__setattr__(self, "position", _vector(self.position))
        object.__setattr__(self, "velocity", _vector(self.velocity))
        object.__setattr__(self, "frame", Frame.parse(self.frame))

    @classmethod
    def zero(cls, frame: Frame, epoch: float) -> "RectangularState":
        return cls(np.zeros(3), np.zeros(3), frame, epoch)

    @property
    def distance(self) -> float:
        return float(np.linalg.norm(self.position))

    def require_frame(self, frame: Frame) -> "RectangularState":
        """Return self, or raise ValueError when expressed in another frame."""
        frame = Frame.parse(frame)
        if self.frame is not frame:
            raise ValueError(f"State is in frame {self.frame.value}, expected {frame.value}")
        return self

    def transformed(self, matrix: np.ndarray, frame: Frame) -> "RectangularState":
        """Rotate position and velocity by ``matrix`` into ``frame``."""
        m = np.asarray(matrix, dtype=float)
        return RectangularState(m @ self.position, m @ self.velocity, frame,
                                self.epoch, self.light_time_corrected)


# ---------------------------------------------------------------------------
# Request and result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EphemerisRequest:
    """One ephemeris computation.

    Attributes:
        jd: Julian day, TDB.
        target: Body name.
        observer: Observer location; defaults to the geocenter.
        coordinate_type: GEOMETRIC, ASTROMETRIC or APPARENT.
        frame: Output frame (ICRF, FK5, FK4, DYNAMICAL_J2000).
        equinox: Equinox.OF_DATE, Equinox.J2000, or a Julian day.
        topocentric: Correct for the observer's position on the Earth.
        correct_for_polar_motion: Apply polar motion (apparent, Earth observer).
        reduction_method: Precession, obliquity and sidereal-time model
            (IAU1976, IAU2000, IAU2006 or IAU2009).
        algorithm: Theory to use; AUTO picks one by target.
        vsop_variant: VSOP87 variant letter (A, B, C, D, E).
        elp_truncation: ELP2000 threshold in arcsec; None uses the settings default.
        delta_t: TT-UT1 in seconds.
    """

    jd: float
    target: str
    observer: Observer = field(default_factory=Observer)
    coordinate_type: CoordinateType = CoordinateType.APPARENT
    frame: Frame = Frame.ICRF
    equinox: "Equinox | float" = Equinox.OF_DATE
    topocentric: bool = False
    correct_for_polar_motion: bool = False
    reduction_method: ReductionMethod = ReductionMethod.IAU2006
    algorithm: Algorithm = Algorithm.AUTO
    vsop_variant: str = "A"
    elp_truncation: float | None = None
    delta_t: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "coordinate_type", CoordinateType.parse(self.coordinate_type))
        frame = Frame.parse(self.frame)
        if frame not in OUTPUT_FRAMES:
            raise ValueError(
                f"Unsupported output frame '{frame.value}'. "
                f"Supported: {', '.join(f.value for f in OUTPUT_FRAMES)}"
            )
        object.__setattr__(self, "frame", frame)
        if not isinstance(self.equinox, (int, float)) or isinstance(self.equinox, bool):
            object.__setattr__(self, "equinox", Equinox.parse(self.equinox))
        object.__setattr__(self, "reduction_method", ReductionMethod.parse(self.reduction_method))
        object.__setattr__(self, "algorithm", Algorithm.parse(self.algorithm))
        variant = str(self.vsop_variant).strip().upper()
        if variant not in ("A", "B", "C", "D", "E"):
            raise ValueError(f"Unknown VSOP87 variant '{self.vsop_variant}'")
        object.__setattr__(self, "vsop_variant", variant)
        if self.elp_truncation is not None and self.elp_truncation < 0:
            raise ValueError(f"elp_truncation must be >= 0, got {self.elp_truncation}")
        if self.topocentric and not self.observer.on_earth:
            raise ValueError(
                f"Topocentric corrections need an observer on the Earth, "
                f"not on {self.observer.mother_body}"
            )

    @property
    def output_equinox_jd(self) -> float | None:
        """Julian day of the requested equinox, or None for equinox of date."""
        if self.equinox is Equinox.OF_DATE:
            return None
        if self.equinox is Equinox.J2000:
            from .constants import JD_J2000
            return JD_J2000
        return float(self.equinox)


@dataclass
class EphemerisResult:
    """Ephemeris of one body at one instant.

    Angles are in radians, distances in AU and light time in days.
    Horizontal fields are only filled for topocentric requests.
    """

    jd: float
    target: str
    algorithm: str
    right_ascension: float
    declination: float
    distance: float
    light_time: float
    heliocentric_longitude: float = 0.0
    heliocentric_latitude: float = 0.0
    distance_from_sun: float = 0.0
    elongation: float = 0.0
    phase_angle: float = 0.0
    phase: float = 0.0
    angular_radius: float = 0.0
    azimuth: float | None = None
    elevation: float | None = None
    parallactic_angle: float | None = None
    position: tuple[float, float, float] = (0.0, 0.0, 0.0)

    def as_dict(self) -> dict:
        """Flat dict of all fields, angles in radians."""
        out = asdict(self)
        out["x_au"], out["y_au"], out["z_au"] = out.pop("position")
        return out
