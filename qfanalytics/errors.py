"""
Exception taxonomy
==================
Validation problems raise ``ValueError`` (or a subclass of it) at the point
of detection. Mathematically non-existent quantities raise
``DomainLimitError``. A poor calibration fit is never an exception; it is
reported through the result objects.
"""


class ParameterIndexError(ValueError, IndexError):
    """Parameter index outside ``[0, number_of_parameters)``."""


class DomainLimitError(ArithmeticError):
    """
    Raised when a formula is asked for a limit that does not exist.

    The canonical case is the Hagan expansion with ``rho -> 1`` and
    ``z >= 1``, where ``x(z)`` has no finite value.
    """


class CalibrationError(RuntimeError):
    """Structural failure of a calibration set-up (not a poor fit)."""
