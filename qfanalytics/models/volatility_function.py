"""
Capability interface shared by every smile model.

A provider turns ``(forward, strike, time_to_expiry, model_data)`` into a
Black implied volatility and exposes analytic first- and second-order
sensitivities of that volatility.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

import numpy as np

from qfanalytics.models.smile_data import SmileModelData
from qfanalytics.models.value_derivatives import ValueDerivatives, ValueDerivatives2

T = TypeVar("T", bound=SmileModelData)


class VolatilityFunctionProvider(ABC, Generic[T]):
    """
    Volatility function of a smile model with data type ``T``.

    Derivative vectors returned by the adjoint methods are ordered as
    ``[forward, strike, p_0, ..., p_{n-1}]`` where ``p_i`` are the model
    parameters in the order of ``T.parameters``.
    """

    @abstractmethod
    def volatility(self, forward: float, strike: float,
                   time_to_expiry: float, data: T) -> float:
        """Black implied volatility."""

    @abstractmethod
    def volatility_adjoint(self, forward: float, strike: float,
                           time_to_expiry: float, data: T) -> ValueDerivatives:
        """Volatility and its derivatives w.r.t. forward, strike and model parameters."""

    @abstractmethod
    def volatility_adjoint2(self, forward: float, strike: float,
                            time_to_expiry: float, data: T) -> ValueDerivatives2:
        """As ``volatility_adjoint`` plus the (forward, strike) second-order block."""

    def volatility_vector(self, forward: float, strikes, time_to_expiry: float,
                          data: T) -> np.ndarray:
        """Volatilities for a strip of strikes."""
        return np.array([self.volatility(forward, k, time_to_expiry, data)
                         for k in np.atleast_1d(strikes)])

    def model_adjoint(self, forward: float, strikes, time_to_expiry: float,
                      data: T) -> np.ndarray:
        """
        Matrix of d(vol)/d(model parameter) for a strip of strikes.

        Row ``i`` holds the model-parameter derivatives at ``strikes[i]``.
        """
        rows = [self.volatility_adjoint(forward, k, time_to_expiry, data).derivatives[2:]
                for k in np.atleast_1d(strikes)]
        return np.array(rows)
