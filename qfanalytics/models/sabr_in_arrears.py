"""
================================================================================
EFFECTIVE SABR PARAMETERS FOR IN-ARREARS FIXINGS
================================================================================
Maps a spot SABR parameter set (alpha, beta, rho, nu) to an effective set
that reproduces, by moment matching, the time-dependent dynamics of a rate
fixed and paid at the end of its accrual period [tau0, tau1].

    tau0 <= 0 (accrual already started):
        zeta     = 3 / (4q + 3) * (1 / (2q + 1) + rho^2 2q / (3q + 2)^2)
        rho_hat  = 2 rho / (sqrt(zeta) (3q + 2))
        nu_hat^2 = nu^2 zeta (2q + 1)
        a_hat^2  = a^2 / (2q + 1) (tau1 / (tau1 - tau0))^2q
                   * exp(0.5 (nu^2 / (q + 1) - nu_hat^2) tau1)

    tau0 > 0 (accrual in the future):
        tau      = 2q tau0 + tau1
        gamma    = gamma1 + gamma2
        rho_hat  = rho (3 tau^2 + 2q tau0^2 + tau1^2) / (sqrt(gamma) (6q + 4))
        nu_hat^2 = nu^2 gamma (2q + 1) / (tau^3 tau1)
        a_hat^2  = a^2 / (2q + 1) tau / tau1 exp(0.5 h tau1)

beta is unchanged. q is the exponent of the convexity weighting (1 for the
standard in-arrears adjustment).

References:
    Willems, S. (2020). SABR smiles for RFR caplets.
================================================================================
"""

import math
from dataclasses import dataclass
from typing import List

import numpy as np

from qfanalytics.models.smile_data import SabrFormulaData
from qfanalytics.models.value_derivatives import ValueDerivatives

DEFAULT_Q = 1.0


@dataclass(frozen=True)
class SabrInArrearsVolatilityFunction:
    """
    Effective SABR parameter transform for in-arrears rates.

    Parameters
    ----------
    q : float
        Convexity exponent, q > 0.

    The adjoint methods return four ``ValueDerivatives`` (alpha, beta, rho,
    nu), each with derivatives ordered as
    (alpha, beta, rho, nu, tau0, tau1).
    """
    q: float = DEFAULT_Q

    def __post_init__(self):
        if not self.q > 0.0:
            raise ValueError(f"q must be positive, got {self.q}")

    @classmethod
    def of(cls, q: float) -> "SabrInArrearsVolatilityFunction":
        return cls(q)

    @staticmethod
    def _check(parameters, tau0: float, tau1: float):
        if not isinstance(parameters, SabrFormulaData):
            raise ValueError(
                f"parameters must be SabrFormulaData, got {type(parameters).__name__}")
        if not tau1 > 0.0:
            raise ValueError(f"tau1 must be positive, got {tau1}")
        if not tau1 > tau0:
            raise ValueError(f"tau1 ({tau1}) must be after tau0 ({tau0})")

    # ------------------------------------------------------------------
    # Transform
    # ------------------------------------------------------------------
    def effective_sabr(self, parameters: SabrFormulaData, tau0: float,
                       tau1: float) -> SabrFormulaData:
        """Effective SABR parameters for the accrual period [tau0, tau1]."""
        self._check(parameters, tau0, tau1)
        if tau0 <= 0.0:
            return self.effective_sabr_after_start(parameters, tau0, tau1)
        return self.effective_sabr_before_start(parameters, tau0, tau1)

    def effective_sabr_after_start(self, parameters: SabrFormulaData, tau0: float,
                                   tau1: float) -> SabrFormulaData:
        values = [vd.value for vd in self.effective_sabr_after_start_ad(parameters, tau0, tau1)]
        return SabrFormulaData(values)

    def effective_sabr_before_start(self, parameters: SabrFormulaData, tau0: float,
                                    tau1: float) -> SabrFormulaData:
        values = [vd.value for vd in self.effective_sabr_before_start_ad(parameters, tau0, tau1)]
        return SabrFormulaData(values)

    # ------------------------------------------------------------------
    # Adjoint
    # ------------------------------------------------------------------
    def effective_sabr_ad(self, parameters: SabrFormulaData, tau0: float,
                          tau1: float) -> List[ValueDerivatives]:
        """Effective parameters with their sensitivities to inputs and tau0/tau1."""
        self._check(parameters, tau0, tau1)
        if tau0 <= 0.0:
            return self.effective_sabr_after_start_ad(parameters, tau0, tau1)
        return self.effective_sabr_before_start_ad(parameters, tau0, tau1)

    def effective_sabr_after_start_ad(self, parameters: SabrFormulaData, tau0: float,
                                      tau1: float) -> List[ValueDerivatives]:
        q = self.q
        alpha, beta, rho, nu = parameters.alpha, parameters.beta, parameters.rho, parameters.nu
        c = 3.0 / (4 * q + 3)
        d = 2 * q / ((3 * q + 2) * (3 * q + 2))
        zeta = c * (1.0 / (2 * q + 1) + rho * rho * d)
        zeta_drho = 2 * c * d * rho
        sqrt_zeta = math.sqrt(zeta)

        rho_hat = 2 * rho / (sqrt_zeta * (3 * q + 2))
        rho_hat_drho = 2.0 / (sqrt_zeta * (3 * q + 2)) - rho_hat / (2 * zeta) * zeta_drho

        nu_scale = math.sqrt(zeta * (2 * q + 1))
        nu_hat = nu * nu_scale
        nu_hat2 = nu_hat * nu_hat
        nu_hat_dnu = nu_scale
        nu_hat_drho = nu_hat / (2 * zeta) * zeta_drho

        span = tau1 - tau0
        drift = 0.5 * (nu * nu / (q + 1) - nu_hat2) * tau1
        alpha_scale = math.sqrt((tau1 / span) ** (2 * q) / (2 * q + 1)) * math.exp(0.5 * drift)
        alpha_hat = alpha * alpha_scale
        # d(log alpha_hat)
        dlog_drho = -0.25 * tau1 * nu * nu * (2 * q + 1) * zeta_drho
        dlog_dnu = 0.5 * tau1 * nu * (1.0 / (q + 1) - zeta * (2 * q + 1))
        dlog_dtau0 = q / span
        dlog_dtau1 = q * (1.0 / tau1 - 1.0 / span) + 0.25 * (nu * nu / (q + 1) - nu_hat2)

        return [
            ValueDerivatives(alpha_hat, [alpha_scale, 0.0, alpha_hat * dlog_drho,
                                         alpha_hat * dlog_dnu, alpha_hat * dlog_dtau0,
                                         alpha_hat * dlog_dtau1]),
            ValueDerivatives(beta, [0.0, 1.0, 0.0, 0.0, 0.0, 0.0]),
            ValueDerivatives(rho_hat, [0.0, 0.0, rho_hat_drho, 0.0, 0.0, 0.0]),
            ValueDerivatives(nu_hat, [0.0, 0.0, nu_hat_drho, nu_hat_dnu, 0.0, 0.0]),
        ]

    def effective_sabr_before_start_ad(self, parameters: SabrFormulaData, tau0: float,
                                       tau1: float) -> List[ValueDerivatives]:
        q = self.q
        alpha, beta, rho, nu = parameters.alpha, parameters.beta, parameters.rho, parameters.nu
        tau = 2 * q * tau0 + tau1
        # d(tau)/d(tau0, tau1)
        dtau = np.array([2 * q, 1.0])
        span = tau1 - tau0

        d1 = (4 * q + 3) * (2 * q + 1)
        p = 2 * tau ** 3 + tau1 ** 3 + q * (4 * q - 2) * tau0 ** 3 + 6 * q * tau0 * tau0 * tau1
        dp = 6 * tau * tau * dtau + np.array([
            3 * q * (4 * q - 2) * tau0 * tau0 + 12 * q * tau0 * tau1,
            3 * tau1 * tau1 + 6 * q * tau0 * tau0,
        ])
        gamma1 = tau * p / d1
        dgamma1 = (dtau * p + tau * dp) / d1

        c2 = 3 * q / ((4 * q + 3) * (3 * q + 2) * (3 * q + 2))
        m = 3 * tau * tau - tau1 * tau1 + 5 * q * tau0 * tau0 + 4 * tau0 * tau1
        dm = 6 * tau * dtau + np.array([10 * q * tau0 + 4 * tau1, -2 * tau1 + 4 * tau0])
        k2 = c2 * span * span * m
        dk2 = c2 * (np.array([-2 * span, 2 * span]) * m + span * span * dm)
        gamma2 = rho * rho * k2
        gamma = gamma1 + gamma2
        dgamma_drho = 2 * rho * k2
        dgamma = dgamma1 + rho * rho * dk2

        n = 3 * tau * tau + 2 * q * tau0 * tau0 + tau1 * tau1
        dn = 6 * tau * dtau + np.array([4 * q * tau0, 2 * tau1])
        base = rho / (math.sqrt(gamma) * (6 * q + 4))
        rho_hat = base * n
        rho_hat_drho = (n / (math.sqrt(gamma) * (6 * q + 4))
                        - rho_hat / (2 * gamma) * dgamma_drho)
        rho_hat_dtau = base * dn - rho_hat / (2 * gamma) * dgamma

        w = gamma * (2 * q + 1) / (tau ** 3 * tau1)
        nu_scale = math.sqrt(w)
        nu_hat = nu * nu_scale
        dlogw_drho = dgamma_drho / gamma
        dlogw_dtau = dgamma / gamma - 3 * dtau / tau - np.array([0.0, 1.0 / tau1])
        nu_hat_drho = 0.5 * nu_hat * dlogw_drho
        nu_hat_dtau = 0.5 * nu_hat * dlogw_dtau

        # ht = h * tau1
        lsum = tau * tau + 2 * q * tau0 * tau0 + tau1 * tau1
        dlsum = 2 * tau * dtau + np.array([4 * q * tau0, 2 * tau1])
        g_lin = lsum / (2 * tau * (q + 1))
        g_cub = gamma * (2 * q + 1) / tau ** 3
        ht = nu * nu * (g_lin - g_cub)
        dht_dnu = 2 * nu * (g_lin - g_cub)
        dht_drho = -nu * nu * (2 * q + 1) / tau ** 3 * dgamma_drho
        dg_lin = (dlsum * tau - lsum * dtau) / (2 * (q + 1) * tau * tau)
        dg_cub = (2 * q + 1) * (dgamma / tau ** 3 - 3 * gamma * dtau / tau ** 4)
        dht_dtau = nu * nu * (dg_lin - dg_cub)

        alpha_scale = math.sqrt(tau / ((2 * q + 1) * tau1)) * math.exp(0.25 * ht)
        alpha_hat = alpha * alpha_scale
        dlog_dtau = 0.5 * dtau / tau - np.array([0.0, 0.5 / tau1]) + 0.25 * dht_dtau
        alpha_hat_dtau = alpha_hat * dlog_dtau

        return [
            ValueDerivatives(alpha_hat, [alpha_scale, 0.0, alpha_hat * 0.25 * dht_drho,
                                         alpha_hat * 0.25 * dht_dnu,
                                         alpha_hat_dtau[0], alpha_hat_dtau[1]]),
            ValueDerivatives(beta, [0.0, 1.0, 0.0, 0.0, 0.0, 0.0]),
            ValueDerivatives(rho_hat, [0.0, 0.0, rho_hat_drho, 0.0,
                                       rho_hat_dtau[0], rho_hat_dtau[1]]),
            ValueDerivatives(nu_hat, [0.0, 0.0, nu_hat_drho, nu_scale,
                                      nu_hat_dtau[0], nu_hat_dtau[1]]),
        ]


DEFAULT = SabrInArrearsVolatilityFunction(DEFAULT_Q)
