"""
Option descriptors consumed by the formula repositories.
"""

from dataclasses import dataclass
from enum import Enum


class PutCall(Enum):
    """Enumeration of option types."""
    CALL = "call"
    PUT = "put"

    @property
    def is_call(self) -> bool:
        return self is PutCall.CALL

    @classmethod
    def of_call(cls, is_call: bool) -> "PutCall":
        return cls.CALL if is_call else cls.PUT


@dataclass(frozen=True)
class EuropeanVanillaOption:
    """
    Immutable European option description.

    Attributes:
        strike: Strike (non-negative; zero only at asymptotic limits)
        time_to_expiry: Expiry as a year fraction (T >= 0)
        put_call: Option type

    Example:
        >>> option = EuropeanVanillaOption.of(0.05, 2.0, PutCall.CALL)
    """
    strike: float
    time_to_expiry: float
    put_call: PutCall = PutCall.CALL

    def __post_init__(self):
        """Validate input parameters after initialization."""
        if self.time_to_expiry < 0:
            raise ValueError(
                f"Time to expiry must be non-negative, got {self.time_to_expiry}")
        if not isinstance(self.put_call, PutCall):
            raise ValueError(f"put_call must be a PutCall, got {self.put_call!r}")

    @classmethod
    def of(cls, strike: float, time_to_expiry: float,
           put_call: PutCall = PutCall.CALL) -> "EuropeanVanillaOption":
        return cls(strike, time_to_expiry, put_call)

    @property
    def is_call(self) -> bool:
        return self.put_call.is_call
