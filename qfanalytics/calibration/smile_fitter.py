"""
================================================================================
SMILE MODEL CALIBRATION
================================================================================
Fits the parameters of a smile model to market implied volatilities at a
single expiry:

    residual_i(p) = (sigma_model(F, K_i, T; p) - sigma_market_i) / error_i

The Jacobian d(sigma_model)/d(p) comes from the provider's analytic adjoint.
Constrained model parameters are mapped to an unconstrained fitting space by
``UncoupledParameterTransforms``; any parameter can be pinned at its start
value through the ``fixed`` mask.
================================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, Generic, Optional, Sequence, TypeVar

import numpy as np
import pandas as pd

from qfanalytics.calibration.least_squares import (
    LeastSquareResultsWithTransform,
    NonLinearLeastSquare,
)
from qfanalytics.calibration.transforms import (
    DoubleRangeLimitTransform,
    LimitType,
    ParameterLimitsTransform,
    SingleRangeLimitTransform,
    UncoupledParameterTransforms,
)
from qfanalytics.models.sabr_hagan import DEFAULT as HAGAN_DEFAULT
from qfanalytics.models.smile_data import SabrFormulaData, SmileModelData
from qfanalytics.models.volatility_function import VolatilityFunctionProvider
from qfanalytics.utils import get_logger, timeit

log = get_logger(__name__)

T = TypeVar("T", bound=SmileModelData)


class SmileModelFitter(ABC, Generic[T]):
    """
    Least-squares fitter of a smile model to one expiry slice.

    Parameters
    ----------
    forward : float
        Forward of the underlying (> 0).
    strikes : array-like
        Strictly increasing strikes.
    time_to_expiry : float
        Expiry as a year fraction (> 0).
    implied_vols : array-like
        Market Black volatilities, one per strike.
    errors : array-like
        Measurement error of each volatility (> 0); residuals are divided
        by it.
    model : VolatilityFunctionProvider
        Volatility function of the smile model.
    solver : NonLinearLeastSquare, optional
    """

    def __init__(self, forward: float, strikes, time_to_expiry: float,
                 implied_vols, errors, model: VolatilityFunctionProvider,
                 solver: Optional[NonLinearLeastSquare] = None):
        strikes = np.asarray(strikes, dtype=float)
        implied_vols = np.asarray(implied_vols, dtype=float)
        errors = np.asarray(errors, dtype=float)
        if model is None:
            raise ValueError("model must not be None")
        if not forward > 0.0:
            raise ValueError(f"forward must be positive, got {forward}")
        if not time_to_expiry > 0.0:
            raise ValueError(f"time_to_expiry must be positive, got {time_to_expiry}")
        n = len(strikes)
        if n == 0:
            raise ValueError("at least one strike is required")
        if len(implied_vols) != n or len(errors) != n:
            raise ValueError(
                f"strikes ({n}), implied vols ({len(implied_vols)}) and errors "
                f"({len(errors)}) must have the same length")
        if np.any(np.diff(strikes) <= 0.0):
            raise ValueError("strikes must be strictly increasing")
        if np.any(~(errors > 0.0)):
            raise ValueError("errors must be strictly positive")

        self.forward = forward
        self.strikes = strikes
        self.time_to_expiry = time_to_expiry
        self.implied_vols = implied_vols
        self.errors = errors
        self.model = model
        self.solver = solver or NonLinearLeastSquare()

    # ------------------------------------------------------------------
    # Model hooks
    # ------------------------------------------------------------------
    @abstractmethod
    def to_smile_model_data(self, model_parameters) -> T:
        """Wrap a raw parameter vector in the model's data type."""

    @abstractmethod
    def default_transforms(self) -> Sequence[ParameterLimitsTransform]:
        """One transform per model parameter."""

    def get_transform(self, start, fixed=None) -> UncoupledParameterTransforms:
        return UncoupledParameterTransforms(start, self.default_transforms(), fixed)

    # ------------------------------------------------------------------
    # Residual machinery
    # ------------------------------------------------------------------
    def model_value_function(self) -> Callable[[np.ndarray], np.ndarray]:
        """p -> model volatilities at the market strikes."""
        def func(model_parameters):
            data = self.to_smile_model_data(model_parameters)
            return self.model.volatility_vector(self.forward, self.strikes,
                                                self.time_to_expiry, data)
        return func

    def model_jacobian_function(self) -> Callable[[np.ndarray], np.ndarray]:
        """p -> d(model volatilities)/dp, one row per strike."""
        def jac(model_parameters):
            data = self.to_smile_model_data(model_parameters)
            return self.model.model_adjoint(self.forward, self.strikes,
                                            self.time_to_expiry, data)
        return jac

    @timeit
    def solve(self, start, fixed=None) -> LeastSquareResultsWithTransform:
        """
        Calibrate from ``start``.

        Args:
            start: Initial model parameter vector (must be an allowed value)
            fixed: Optional boolean mask; True pins the parameter at its
                start value

        Returns:
            LeastSquareResultsWithTransform with model parameters, chi^2
            and d(model parameters)/d(market vols).
        """
        start = np.asarray(start, dtype=float)
        self.to_smile_model_data(start)
        transform = self.get_transform(start, fixed)
        func = self.model_value_function()
        jac = self.model_jacobian_function()

        def fit_func(y):
            return func(transform.inverse_transform(y))

        def fit_jac(y):
            return jac(transform.inverse_transform(y)) @ transform.inverse_jacobian(y)

        log.info("Calibrating %s on %d strikes (T=%.4g, F=%.6g), start=%s, fixed=%s",
                 type(self).__name__, len(self.strikes), self.time_to_expiry,
                 self.forward, np.round(start, 6).tolist(),
                 transform.fixed.tolist())
        res = self.solver.solve(self.implied_vols, self.errors, fit_func, fit_jac,
                                transform.transform(start))
        result = LeastSquareResultsWithTransform(res, transform)
        log.info("Calibration finished: chi2=%.3e, parameters=%s",
                 result.chi_sq, np.round(result.model_parameters, 8).tolist())
        return result

    def smile_frame(self, result: LeastSquareResultsWithTransform) -> pd.DataFrame:
        """Market against fitted volatilities, one row per strike."""
        model_vols = self.model_value_function()(result.model_parameters)
        residual = model_vols - self.implied_vols
        return pd.DataFrame({
            "strike": self.strikes,
            "market_vol": self.implied_vols,
            "model_vol": model_vols,
            "residual": residual,
            "weighted_residual": residual / self.errors,
        })


class SabrModelFitter(SmileModelFitter[SabrFormulaData]):
    """
    SABR smile fitter using the Hagan volatility function.

    Parameters are ordered (alpha, beta, rho, nu). alpha and nu are kept
    positive, beta in [0, 1] and rho in [-1, 1].
    """

    def __init__(self, forward: float, strikes, time_to_expiry: float,
                 implied_vols, errors,
                 model: VolatilityFunctionProvider = HAGAN_DEFAULT,
                 solver: Optional[NonLinearLeastSquare] = None):
        super().__init__(forward, strikes, time_to_expiry, implied_vols, errors,
                         model, solver)

    def to_smile_model_data(self, model_parameters) -> SabrFormulaData:
        return SabrFormulaData(model_parameters)

    def default_transforms(self):
        return [
            SingleRangeLimitTransform(0.0, LimitType.GREATER_THAN),
            DoubleRangeLimitTransform(0.0, 1.0),
            DoubleRangeLimitTransform(-1.0, 1.0),
            SingleRangeLimitTransform(0.0, LimitType.GREATER_THAN),
        ]
