"""
================================================================================
WEIGHTED NON-LINEAR LEAST SQUARES
================================================================================
Minimises

    chi^2(theta) = sum_i ((y_i - f_i(theta)) / sigma_i)^2

with scipy's Levenberg-Marquardt (MINPACK) driver and an analytic Jacobian.
At the solution the normal-equations matrix A = J^T J (J weighted by 1/sigma)
gives

    covariance        = A^{-1}
    inverse Jacobian  = A^{-1} J^T diag(1/sigma)      d(theta)/d(y)

Poor fits are data, not errors: ``converged`` is False and chi^2 is large.
================================================================================
"""

from dataclasses import dataclass, field
from typing import Callable, Optional

import numpy as np
from scipy.optimize import least_squares

from qfanalytics.calibration.transforms import UncoupledParameterTransforms
from qfanalytics.config import DEFAULT_SOLVER_CONFIG, SolverConfig
from qfanalytics.errors import CalibrationError
from qfanalytics.utils import get_logger

log = get_logger(__name__)

VectorFunction = Callable[[np.ndarray], np.ndarray]
MatrixFunction = Callable[[np.ndarray], np.ndarray]


@dataclass
class LeastSquareResults:
    """Outcome of a weighted least-squares fit in fitting space."""
    chi_sq: float
    fit_parameters: np.ndarray
    covariance: np.ndarray
    fitting_parameter_sensitivity_to_data: np.ndarray
    converged: bool = True
    n_evaluations: int = 0
    message: str = ""

    def __post_init__(self):
        if self.chi_sq < 0.0:
            raise ValueError(f"chi_sq must be non-negative, got {self.chi_sq}")


@dataclass
class LeastSquareResultsWithTransform:
    """
    A fitting-space result mapped back to model parameters.

    ``model_parameters`` and ``model_parameter_sensitivity_to_data`` are
    derived on construction from the transform; they are not stored
    independently of the fit.
    """
    results: LeastSquareResults
    transform: Optional[UncoupledParameterTransforms] = None
    model_parameters: np.ndarray = field(init=False)
    model_parameter_sensitivity_to_data: np.ndarray = field(init=False)

    def __post_init__(self):
        fit = self.results.fit_parameters
        if self.transform is None:
            self.model_parameters = np.array(fit, dtype=float)
            self.model_parameter_sensitivity_to_data = \
                self.results.fitting_parameter_sensitivity_to_data
        else:
            self.model_parameters = self.transform.inverse_transform(fit)
            self.model_parameter_sensitivity_to_data = (
                self.transform.inverse_jacobian(fit)
                @ self.results.fitting_parameter_sensitivity_to_data)

    @property
    def chi_sq(self) -> float:
        return self.results.chi_sq

    @property
    def converged(self) -> bool:
        return self.results.converged


class NonLinearLeastSquare:
    """
    Levenberg-Marquardt solver over ``scipy.optimize.least_squares``.

    Args:
        config: Stopping criteria; defaults to ``QFA_SOLVER_*`` settings
    """

    def __init__(self, config: SolverConfig = DEFAULT_SOLVER_CONFIG):
        self.config = config

    @staticmethod
    def _check(observed, sigma, start):
        if observed.ndim != 1 or sigma.shape != observed.shape:
            raise ValueError(
                f"observed values and sigma must be 1-d of equal length, "
                f"got {observed.shape} and {sigma.shape}")
        if np.any(~(sigma > 0.0)):
            raise ValueError("sigma must be strictly positive")
        if len(start) == 0:
            raise CalibrationError("no free parameters to fit")
        if len(observed) < len(start):
            raise ValueError(
                f"need at least as many data points ({len(observed)}) "
                f"as parameters ({len(start)})")

    def solve(self, observed_values, sigma, func: VectorFunction,
              jac: MatrixFunction, start) -> LeastSquareResults:
        """
        Fit ``func`` to ``observed_values`` with weights ``1 / sigma``.

        Args:
            observed_values: Data y (length n)
            sigma: Measurement errors (length n, > 0)
            func: theta -> model values (length n)
            jac: theta -> d(model values)/d(theta), shape (n, m)
            start: Initial theta (length m)

        Returns:
            LeastSquareResults
        """
        observed = np.asarray(observed_values, dtype=float)
        sigma = np.asarray(sigma, dtype=float)
        start = np.asarray(start, dtype=float)
        self._check(observed, sigma, start)

        def residuals(theta):
            model = np.asarray(func(theta), dtype=float)
            if model.shape != observed.shape:
                raise ValueError(
                    f"model returned {model.shape[0]} values for {observed.shape[0]} data points")
            return (model - observed) / sigma

        def weighted_jacobian(theta):
            return np.asarray(jac(theta), dtype=float) / sigma[:, None]

        cfg = self.config
        res = least_squares(residuals, start, jac=weighted_jacobian, method="lm",
                            xtol=cfg.xtol, ftol=cfg.ftol, gtol=cfg.gtol,
                            max_nfev=cfg.max_evaluations)
        chi_sq = float(res.fun @ res.fun)
        if not res.success:
            log.warning("Least squares did not converge after %d evaluations: %s "
                        "(chi2=%.3e)", res.nfev, res.message, chi_sq)
        return self._finish(chi_sq, res.x, weighted_jacobian(res.x), sigma,
                            bool(res.success), int(res.nfev), str(res.message))

    def inverse_jacobian(self, sigma, jac: MatrixFunction, solution) -> np.ndarray:
        """d(theta)/d(observed values) at ``solution``, shape (m, n)."""
        sigma = np.asarray(sigma, dtype=float)
        weighted = np.asarray(jac(np.asarray(solution, dtype=float)), dtype=float) / sigma[:, None]
        alpha = weighted.T @ weighted
        return np.linalg.pinv(alpha) @ (weighted.T / sigma)

    @staticmethod
    def _finish(chi_sq, theta, weighted_jac, sigma, converged, n_eval, message):
        alpha = weighted_jac.T @ weighted_jac
        covariance = np.linalg.pinv(alpha)
        inverse_jacobian = covariance @ (weighted_jac.T / sigma)
        return LeastSquareResults(chi_sq=chi_sq, fit_parameters=np.array(theta),
                                  covariance=covariance,
                                  fitting_parameter_sensitivity_to_data=inverse_jacobian,
                                  converged=converged, n_evaluations=n_eval,
                                  message=message)
