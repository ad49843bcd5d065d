"""
Exception taxonomy for ephemeris computation.

All engine failures derive from EphemerisError so callers can catch one
type. Each subclass also inherits the builtin that best describes it,
so ``except ValueError`` keeps working for argument problems.
"""


class EphemerisError(Exception):
    """Base class for all errors raised by helioephem."""


class InvalidDateRange(EphemerisError, ValueError):
    """The requested epoch lies outside a theory's validity interval."""

    def __init__(self, message: str, jd: float | None = None,
                 valid_from: float | None = None, valid_to: float | None = None):
        super().__init__(message)
        self.jd = jd
        self.valid_from = valid_from
        self.valid_to = valid_to


class InvalidTarget(EphemerisError, ValueError):
    """The target cannot be computed by the selected theory or observer."""


class ConvergenceFailure(EphemerisError, RuntimeError):
    """An iterative correction did not converge within its iteration cap."""
