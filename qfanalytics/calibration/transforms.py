"""
================================================================================
PARAMETER TRANSFORMS FOR UNCONSTRAINED OPTIMISATION
================================================================================
Maps a constrained model parameter x onto an unconstrained fitting parameter
y so that a least-squares solver can move freely in R^n:

    NullTransform              y = x
    SingleRangeLimitTransform  x > a :  y = ln(e^{x-a} - 1),   x = a + ln(1 + e^y)
                               x < a :  mirrored
    DoubleRangeLimitTransform  a < x < b :  y = atanh((x - m) / s),  x = m + s tanh(y)
                               m = (a + b) / 2,  s = (b - a) / 2

UncoupledParameterTransforms applies one transform per parameter and drops
the parameters marked as fixed from the fitting vector.
================================================================================
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional, Sequence

import numpy as np

# beyond this the softplus is linear to double precision
EXP_MAX = 50.0
# tanh(TANH_MAX) == 1.0 in double precision
TANH_MAX = 25.0


class LimitType(Enum):
    """Side of the single limit that is allowed."""
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"


class ParameterLimitsTransform(ABC):
    """One-dimensional bijection between model space and fitting space."""

    @abstractmethod
    def transform(self, x: float) -> float:
        """Model value -> fitting value."""

    @abstractmethod
    def inverse_transform(self, y: float) -> float:
        """Fitting value -> model value."""

    @abstractmethod
    def transform_gradient(self, x: float) -> float:
        """dy/dx at the model value x."""

    @abstractmethod
    def inverse_transform_gradient(self, y: float) -> float:
        """dx/dy at the fitting value y."""


class NullTransform(ParameterLimitsTransform):
    """Identity: the parameter is unconstrained."""

    def transform(self, x):
        return x

    def inverse_transform(self, y):
        return y

    def transform_gradient(self, x):
        return 1.0

    def inverse_transform_gradient(self, y):
        return 1.0

    def __repr__(self):
        return "NullTransform()"


class SingleRangeLimitTransform(ParameterLimitsTransform):
    """
    Softplus transform for a parameter bounded on one side.

    Parameters
    ----------
    limit : float
        The bound a.
    limit_type : LimitType
        GREATER_THAN for x > a, LESS_THAN for x < a.
    """

    def __init__(self, limit: float, limit_type: LimitType = LimitType.GREATER_THAN):
        self.limit = limit
        self.limit_type = limit_type
        self._sign = 1.0 if limit_type is LimitType.GREATER_THAN else -1.0

    def _check(self, x):
        if not self._sign * (x - self.limit) > 0.0:
            raise ValueError(f"x = {x} violates the limit {self.limit_type.value} {self.limit}")

    def transform(self, x):
        self._check(x)
        r = self._sign * (x - self.limit)
        if r > EXP_MAX:
            return r
        return float(np.log(np.expm1(r)))

    def inverse_transform(self, y):
        if y > EXP_MAX:
            return self.limit + self._sign * y
        return self.limit + self._sign * float(np.log1p(np.exp(y)))

    def transform_gradient(self, x):
        self._check(x)
        r = self._sign * (x - self.limit)
        if r > EXP_MAX:
            return self._sign
        return self._sign * float(np.exp(r) / np.expm1(r))

    def inverse_transform_gradient(self, y):
        if y > EXP_MAX:
            return self._sign
        e = np.exp(y)
        return self._sign * float(e / (1.0 + e))

    def __repr__(self):
        return f"SingleRangeLimitTransform({self.limit}, {self.limit_type.name})"


class DoubleRangeLimitTransform(ParameterLimitsTransform):
    """tanh transform for a parameter confined to the open interval (lower, upper)."""

    def __init__(self, lower: float, upper: float):
        if not upper > lower:
            raise ValueError(f"upper ({upper}) must exceed lower ({lower})")
        self.lower = lower
        self.upper = upper
        self._mid = 0.5 * (lower + upper)
        self._scale = 0.5 * (upper - lower)

    def _check(self, x):
        if not self.lower <= x <= self.upper:
            raise ValueError(f"x = {x} outside range [{self.lower}, {self.upper}]")

    def transform(self, x):
        self._check(x)
        if x == self.upper:
            return TANH_MAX
        if x == self.lower:
            return -TANH_MAX
        return float(np.arctanh((x - self._mid) / self._scale))

    def inverse_transform(self, y):
        if y > TANH_MAX:
            return self.upper
        if y < -TANH_MAX:
            return self.lower
        return self._mid + self._scale * float(np.tanh(y))

    def transform_gradient(self, x):
        self._check(x)
        if x in (self.lower, self.upper):
            return float("inf")
        t = (x - self._mid) / self._scale
        return 1.0 / (self._scale * (1.0 - t * t))

    def inverse_transform_gradient(self, y):
        if abs(y) > TANH_MAX:
            return 0.0
        t = np.tanh(y)
        return self._scale * float(1.0 - t * t)

    def __repr__(self):
        return f"DoubleRangeLimitTransform({self.lower}, {self.upper})"


class UncoupledParameterTransforms:
    """
    Per-parameter transforms with an optional fixed-parameter mask.

    Fixed parameters keep the value they have in ``start`` and are excluded
    from the fitting vector, so fitting_parameters has
    ``n - sum(fixed)`` entries.

    Parameters
    ----------
    start : array-like
        Full model parameter vector; supplies the values of fixed parameters.
    transforms : sequence of ParameterLimitsTransform
        One transform per model parameter.
    fixed : sequence of bool, optional
        True where the parameter is held at its start value.
    """

    def __init__(self, start, transforms: Sequence[ParameterLimitsTransform],
                 fixed: Optional[Sequence[bool]] = None):
        start = np.asarray(start, dtype=float)
        n = len(start)
        if len(transforms) != n:
            raise ValueError(f"need {n} transforms, got {len(transforms)}")
        fixed = np.zeros(n, dtype=bool) if fixed is None else np.asarray(fixed, dtype=bool)
        if len(fixed) != n:
            raise ValueError(f"fixed mask must have length {n}, got {len(fixed)}")
        self._start = start.copy()
        self._transforms = list(transforms)
        self._fixed = fixed
        self._free = np.flatnonzero(~fixed)

    @property
    def number_of_model_parameters(self) -> int:
        return len(self._start)

    @property
    def number_of_fitting_parameters(self) -> int:
        return len(self._free)

    @property
    def fixed(self) -> np.ndarray:
        return self._fixed.copy()

    def transform(self, model_parameters) -> np.ndarray:
        """Model vector (length n) -> fitting vector (length m)."""
        x = np.asarray(model_parameters, dtype=float)
        if len(x) != self.number_of_model_parameters:
            raise ValueError(
                f"expected {self.number_of_model_parameters} model parameters, got {len(x)}")
        return np.array([self._transforms[i].transform(x[i]) for i in self._free])

    def inverse_transform(self, fitting_parameters) -> np.ndarray:
        """Fitting vector (length m) -> model vector (length n)."""
        y = np.asarray(fitting_parameters, dtype=float)
        if len(y) != self.number_of_fitting_parameters:
            raise ValueError(
                f"expected {self.number_of_fitting_parameters} fitting parameters, got {len(y)}")
        x = self._start.copy()
        for j, i in enumerate(self._free):
            x[i] = self._transforms[i].inverse_transform(y[j])
        return x

    def jacobian(self, model_parameters) -> np.ndarray:
        """d(fitting)/d(model), shape (m, n)."""
        x = np.asarray(model_parameters, dtype=float)
        res = np.zeros((self.number_of_fitting_parameters, self.number_of_model_parameters))
        for j, i in enumerate(self._free):
            res[j, i] = self._transforms[i].transform_gradient(x[i])
        return res

    def inverse_jacobian(self, fitting_parameters) -> np.ndarray:
        """d(model)/d(fitting), shape (n, m); rows of fixed parameters are zero."""
        y = np.asarray(fitting_parameters, dtype=float)
        res = np.zeros((self.number_of_model_parameters, self.number_of_fitting_parameters))
        for j, i in enumerate(self._free):
            res[i, j] = self._transforms[i].inverse_transform_gradient(y[j])
        return res

    def __repr__(self):
        return (f"UncoupledParameterTransforms(transforms={self._transforms}, "
                f"fixed={self._fixed.tolist()})")
