"""
================================================================================
SMILE MODEL DATA: IMMUTABLE PARAMETER VECTORS
================================================================================
Parameter containers passed to volatility-function providers and iterated
over by the smile fitters.

Implements:
    - SmileModelData: fixed-length parameter vector with per-index domain
      checks and copy-on-write updates
    - SabrFormulaData: (alpha, beta, rho, nu) SABR parameter set
================================================================================
"""

from abc import ABC, abstractmethod
from typing import Sequence

import numpy as np

from qfanalytics.errors import ParameterIndexError


class SmileModelData(ABC):
    """
    Ordered, fixed-length vector of smile model parameters.

    Instances never change after construction; ``with_parameter`` returns a
    new validated instance.
    """

    __slots__ = ("_parameters",)

    def __init__(self, parameters: Sequence[float]):
        params = np.array(parameters, dtype=float)
        if params.ndim != 1 or params.size != self.number_of_parameters:
            raise ValueError(
                f"{type(self).__name__} expects {self.number_of_parameters} "
                f"parameters, got {params.size}")
        for i, value in enumerate(params):
            if not self.is_allowed(i, value):
                raise ValueError(
                    f"{self.parameter_names[i]} = {value} is outside the "
                    f"domain of {type(self).__name__}")
        params.setflags(write=False)
        self._parameters = params

    @property
    @abstractmethod
    def number_of_parameters(self) -> int:
        ...

    @property
    @abstractmethod
    def parameter_names(self) -> Sequence[str]:
        ...

    @abstractmethod
    def is_allowed(self, index: int, value: float) -> bool:
        """Whether ``value`` is admissible for parameter ``index``."""

    @property
    def parameters(self) -> np.ndarray:
        """Read-only view of the parameter vector."""
        return self._parameters

    def _check_index(self, index: int):
        if not 0 <= index < self.number_of_parameters:
            raise ParameterIndexError(
                f"index {index} outside [0, {self.number_of_parameters - 1}]")

    def parameter(self, index: int) -> float:
        self._check_index(index)
        return float(self._parameters[index])

    def with_parameter(self, index: int, value: float) -> "SmileModelData":
        """Return a copy with parameter ``index`` replaced by ``value``."""
        self._check_index(index)
        params = self._parameters.copy()
        params[index] = value
        return type(self)(params)

    def __len__(self):
        return self.number_of_parameters

    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return np.array_equal(self._parameters, other._parameters)

    def __hash__(self):
        return hash((type(self).__name__, tuple(self._parameters)))

    def __repr__(self):
        body = ", ".join(f"{n}={v!r}" for n, v in
                         zip(self.parameter_names, self._parameters.tolist()))
        return f"{type(self).__name__}({body})"


class SabrFormulaData(SmileModelData):
    """
    SABR model parameters.

    Parameters
    ----------
    alpha : float
        Initial volatility level, alpha >= 0.
    beta : float
        CEV exponent in [0, 1]. beta=1 lognormal, beta=0 normal.
    rho : float
        Forward/volatility correlation in [-1, 1].
    nu : float
        Volatility of volatility, nu >= 0.
    """

    __slots__ = ()

    ALPHA, BETA, RHO, NU = 0, 1, 2, 3

    @classmethod
    def of(cls, alpha: float, beta: float, rho: float, nu: float) -> "SabrFormulaData":
        return cls([alpha, beta, rho, nu])

    @property
    def number_of_parameters(self) -> int:
        return 4

    @property
    def parameter_names(self):
        return ("alpha", "beta", "rho", "nu")

    def is_allowed(self, index: int, value: float) -> bool:
        self._check_index(index)
        if np.isnan(value):
            return False
        if index == self.ALPHA or index == self.NU:
            return value >= 0.0
        if index == self.BETA:
            return 0.0 <= value <= 1.0
        return -1.0 <= value <= 1.0

    @property
    def alpha(self) -> float:
        return float(self._parameters[self.ALPHA])

    @property
    def beta(self) -> float:
        return float(self._parameters[self.BETA])

    @property
    def rho(self) -> float:
        return float(self._parameters[self.RHO])

    @property
    def nu(self) -> float:
        return float(self._parameters[self.NU])

    def with_alpha(self, alpha: float) -> "SabrFormulaData":
        return self.with_parameter(self.ALPHA, alpha)

    def with_beta(self, beta: float) -> "SabrFormulaData":
        return self.with_parameter(self.BETA, beta)

    def with_rho(self, rho: float) -> "SabrFormulaData":
        return self.with_parameter(self.RHO, rho)

    def with_nu(self, nu: float) -> "SabrFormulaData":
        return self.with_parameter(self.NU, nu)
