"""
Value with first-order sensitivities.

The derivative ordering is fixed by whichever function produces the object;
for SABR volatility adjoints it is
``[forward, strike, alpha, beta, rho, nu]``.
"""

from dataclasses import dataclass, field

import numpy as np


@dataclass(frozen=True, eq=False)
class ValueDerivatives:
    """A scalar value and the ordered vector of its partial derivatives."""
    value: float
    derivatives: np.ndarray = field(default_factory=lambda: np.zeros(0))

    def __post_init__(self):
        derivs = np.array(self.derivatives, dtype=float)
        derivs.setflags(write=False)
        object.__setattr__(self, "derivatives", derivs)

    @classmethod
    def of(cls, value: float, derivatives) -> "ValueDerivatives":
        return cls(float(value), derivatives)

    def derivative(self, index: int) -> float:
        return float(self.derivatives[index])

    def __eq__(self, other):
        if not isinstance(other, ValueDerivatives):
            return NotImplemented
        return (self.value == other.value
                and np.array_equal(self.derivatives, other.derivatives))

    def __hash__(self):
        return hash((self.value, self.derivatives.tobytes()))


@dataclass(frozen=True, eq=False)
class ValueDerivatives2:
    """
    Value, first derivatives and a symmetric block of second derivatives.

    Used by the second-order SABR adjoint, where ``second`` is the 2x2 block
    in (forward, strike).
    """
    value: float
    derivatives: np.ndarray
    second: np.ndarray

    def __post_init__(self):
        for name in ("derivatives", "second"):
            arr = np.array(getattr(self, name), dtype=float)
            arr.setflags(write=False)
            object.__setattr__(self, name, arr)

    def derivative(self, index: int) -> float:
        return float(self.derivatives[index])
