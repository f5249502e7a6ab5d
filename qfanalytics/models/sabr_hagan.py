"""
================================================================================
SABR MODEL: HAGAN EXPANSION WITH ANALYTIC ADJOINT DERIVATIVES
================================================================================
Black implied volatility of the SABR model under the Hagan et al. (2002)
asymptotic expansion, together with its exact first-order sensitivities to
(forward, strike, alpha, beta, rho, nu) and the second-order block in
(forward, strike).

    z    = (nu / alpha) * (F K)^((1 - beta) / 2) * ln(F / K)
    x(z) = ln[(sqrt(1 - 2 rho z + z^2) + z - rho) / (1 - rho)]

Degenerate regimes are handled by explicit branches:
    - alpha = 0        volatility is 0; alpha sensitivity is 1e7 off-ATM
    - beta in {0, 1}   closed forms without the (F K)^(1 - beta) factor
    - z -> 0           z / x(z) replaced by 1 - rho z / 2
    - rho -> 1         x(z) -> -ln(1 - z), undefined for z >= 1
    - rho -> -1        x(z) -> ln(1 + z) for z > -1
    - strike -> 0      strike floored at forward * moneyness cutoff

References:
    Hagan, P., Kumar, D., Lesniewski, A. & Woodward, D. (2002).
    Managing Smile Risk. Wilmott Magazine.
================================================================================
"""

import math
from typing import Optional

import numpy as np

from qfanalytics.config import DEFAULT_SABR_CONFIG, SabrConfig
from qfanalytics.errors import DomainLimitError
from qfanalytics.models.smile_data import SabrFormulaData
from qfanalytics.models.value_derivatives import ValueDerivatives, ValueDerivatives2
from qfanalytics.models.volatility_function import VolatilityFunctionProvider
from qfanalytics.utils import get_logger

log = get_logger(__name__)

# alpha sensitivity reported at alpha = 0 away from the money
ALPHA_ZERO_SENSITIVITY = 1e7


def _fuzzy_equals(a: float, b: float, tol: float) -> bool:
    return abs(a - b) <= tol


class SabrHaganVolatilityFunctionProvider(VolatilityFunctionProvider[SabrFormulaData]):
    """
    Hagan SABR volatility function.

    Parameters
    ----------
    config : SabrConfig, optional
        Numerical cut-offs. ``config.rho_cutoff`` selects the width of the
        rho -> 1 regularisation band; the default 1e-5 keeps the two branches
        within 1e-3 of each other at the band edge.
    """

    def __init__(self, config: Optional[SabrConfig] = None):
        self.config = config or DEFAULT_SABR_CONFIG

    @property
    def rho_cutoff(self) -> float:
        return self.config.rho_cutoff

    def __repr__(self):
        return f"SabrHaganVolatilityFunctionProvider(rho_cutoff={self.rho_cutoff!r})"

    # ------------------------------------------------------------------
    # Input handling
    # ------------------------------------------------------------------
    @staticmethod
    def _check_inputs(forward, strike, time_to_expiry, data):
        if not isinstance(data, SabrFormulaData):
            raise ValueError(f"data must be SabrFormulaData, got {type(data).__name__}")
        if not forward > 0.0:
            raise ValueError(f"forward must be greater than zero, got {forward}")
        if not strike >= 0.0:
            raise ValueError(f"strike must be non-negative, got {strike}")
        if not time_to_expiry >= 0.0:
            raise ValueError(f"time_to_expiry must be non-negative, got {time_to_expiry}")

    def _floor_strike(self, forward: float, strike: float) -> float:
        cutoff = forward * self.config.moneyness_cutoff
        if strike < cutoff:
            log.info("Given strike of %s is less than cutoff at %s, therefore the "
                     "strike is taken as %s", strike, cutoff, cutoff)
            return cutoff
        return strike

    # ------------------------------------------------------------------
    # Value
    # ------------------------------------------------------------------
    def volatility(self, forward: float, strike: float, time_to_expiry: float,
                   data: SabrFormulaData) -> float:
        """
        Hagan implied Black volatility.

        Raises
        ------
        ValueError
            Invalid inputs.
        DomainLimitError
            rho within the cut-off of 1 and z >= 1.
        """
        self._check_inputs(forward, strike, time_to_expiry, data)
        alpha, beta, rho, nu = data.alpha, data.beta, data.rho, data.nu
        if alpha == 0.0:
            return 0.0
        cfg = self.config
        k = self._floor_strike(forward, strike)
        beta1 = 1.0 - beta

        if _fuzzy_equals(forward, k, cfg.atm_eps):
            f1 = forward ** beta1
            vol = alpha * (1 + time_to_expiry * (
                beta1 * beta1 * alpha * alpha / 24 / f1 / f1
                + rho * alpha * beta * nu / 4 / f1
                + nu * nu * (2 - 3 * rho * rho) / 24)) / f1
        elif _fuzzy_equals(beta, 0.0, cfg.beta_eps):
            ln = math.log(forward / k)
            z = nu * math.sqrt(forward * k) * ln / alpha
            z_over_chi = self._z_over_chi(rho, z)
            vol = (alpha * ln * z_over_chi
                   * (1 + time_to_expiry * (alpha * alpha / forward / k
                                            + nu * nu * (2 - 3 * rho * rho)) / 24)
                   / (forward - k))
        elif _fuzzy_equals(beta, 1.0, cfg.beta_eps):
            ln = math.log(forward / k)
            z = nu * ln / alpha
            z_over_chi = self._z_over_chi(rho, z)
            vol = alpha * z_over_chi * (1 + time_to_expiry * (
                rho * alpha * nu / 4 + nu * nu * (2 - 3 * rho * rho) / 24))
        else:
            ln = math.log(forward / k)
            f1 = (forward * k) ** beta1
            f1_sqrt = math.sqrt(f1)
            ln_beta_sq = (beta1 * ln) ** 2
            z = nu * f1_sqrt * ln / alpha
            z_over_chi = self._z_over_chi(rho, z)
            first = alpha / (f1_sqrt * (1 + ln_beta_sq / 24 + ln_beta_sq * ln_beta_sq / 1920))
            third = 1 + time_to_expiry * (
                beta1 * beta1 * alpha * alpha / 24 / f1
                + rho * nu * beta * alpha / 4 / f1_sqrt
                + nu * nu * (2 - 3 * rho * rho) / 24)
            vol = first * z_over_chi * third
        return max(cfg.min_vol, vol)

    def _z_over_chi(self, rho: float, z: float) -> float:
        """z / x(z) with the small-z and |rho| -> 1 limits."""
        cfg = self.config
        if _fuzzy_equals(z, 0.0, cfg.small_z):
            return 1.0 - rho * z / 2.0

        rho_star = 1.0 - rho
        if _fuzzy_equals(rho_star, 0.0, cfg.rho_cutoff):
            if z < 1.0:
                return -z / math.log(1.0 - z)
            raise DomainLimitError(f"can't handle z>=1, rho=1 (z={z}, rho={rho})")

        rho_hat = 1.0 + rho
        if _fuzzy_equals(rho_hat, 0.0, cfg.rho_cutoff_negative):
            if z > -1.0:
                return z / math.log(1.0 + z)
            if z < -1.0:
                if rho_hat == 0.0:
                    return 0.0
                chi = math.log(rho_hat) - math.log(-(1.0 + z) / rho_star)
                return z / chi
            return 0.0

        if z < cfg.large_neg_z:
            # balanced cancellation in the direct form for very negative z
            arg = (rho * rho - 1) / 2 / z
        elif z > cfg.large_pos_z:
            arg = 2 * (z - rho)
        else:
            arg = math.sqrt(1 - 2 * rho * z + z * z) + z - rho
        if arg <= 0.0:
            return 0.0
        chi = math.log(arg) - math.log(rho_star)
        return z / chi

    # ------------------------------------------------------------------
    # First-order adjoint
    # ------------------------------------------------------------------
    def volatility_adjoint(self, forward: float, strike: float, time_to_expiry: float,
                           data: SabrFormulaData) -> ValueDerivatives:
        """
        Volatility and its derivatives by algorithmic differentiation.

        Returns
        -------
        ValueDerivatives
            ``derivatives`` ordered as
            [forward, strike, alpha, beta, rho, nu].
        """
        self._check_inputs(forward, strike, time_to_expiry, data)
        cfg = self.config
        k = self._floor_strike(forward, strike)
        alpha, beta, rho, nu = data.alpha, data.beta, data.rho, data.nu
        t = time_to_expiry
        beta_star = 1.0 - beta
        rho_star = 1.0 - rho

        if alpha == 0.0:
            if _fuzzy_equals(forward, k, cfg.atm_eps):
                alpha_bar = (1 + (2 - 3 * rho * rho) * nu * nu / 24 * t) / forward ** beta_star
            else:
                alpha_bar = ALPHA_ZERO_SENSITIVITY
            return ValueDerivatives(0.0, [0.0, 0.0, alpha_bar, 0.0, 0.0, 0.0])

        # Forward sweep
        sf_k = (forward * k) ** (beta_star / 2)
        ln_fk = math.log(forward / k)
        z = nu / alpha * sf_k * ln_fk
        small_z = _fuzzy_equals(z, 0.0, cfg.small_z)
        near_one = _fuzzy_equals(rho_star, 0.0, cfg.rho_cutoff)
        xz = 0.0
        if small_z:
            rzxz = 1.0 - 0.5 * z * rho  # expansion to z^2 terms
        elif near_one:
            if z >= 1.0:
                raise DomainLimitError(f"can't handle z>=1, rho=1 (z={z}, rho={rho})")
            xz = -math.log(1.0 - z)
            rzxz = z / xz
        else:
            if z < cfg.large_neg_z:
                arg = (rho * rho - 1) / 2 / z
            elif z > cfg.large_pos_z:
                arg = 2 * (z - rho)
            else:
                arg = math.sqrt(1 - 2 * rho * z + z * z) + z - rho
            if arg <= 0.0:
                rzxz = 0.0
            else:
                xz = math.log(arg / rho_star)
                rzxz = z / xz

        sf1 = sf_k * (1 + beta_star * beta_star / 24 * ln_fk * ln_fk
                      + beta_star ** 4 / 1920 * ln_fk ** 4)
        sf2 = 1 + ((beta_star * alpha / sf_k) ** 2 / 24
                   + rho * beta * nu * alpha / (4 * sf_k)
                   + (2 - 3 * rho * rho) * nu * nu / 24) * t
        volatility = max(cfg.min_vol, alpha / sf1 * rzxz * sf2)

        # Backward sweep
        v_bar = 1.0
        sf2_bar = alpha / sf1 * rzxz * v_bar
        sf1_bar = -alpha / (sf1 * sf1) * rzxz * sf2 * v_bar
        rzxz_bar = alpha / sf1 * sf2 * v_bar
        xz_bar = 0.0
        if small_z:
            z_bar = -rho / 2 * rzxz_bar
        elif xz == 0.0:
            z_bar = 0.0
        elif near_one:
            xz_bar = -z / (xz * xz) * rzxz_bar
            z_bar = 1.0 / xz * rzxz_bar + 1.0 / (1.0 - z) * xz_bar
        elif z < cfg.large_neg_z or z > cfg.large_pos_z:
            z_bar = 1.0 / xz * rzxz_bar
        else:
            xz_bar = -z / (xz * xz) * rzxz_bar
            root = math.sqrt(1 - 2 * rho * z + z * z)
            z_bar = (1.0 / xz * rzxz_bar
                     + 1.0 / (root + z - rho) * (0.5 / root * (-2 * rho + 2 * z) + 1) * xz_bar)

        ln_fk_bar = (sf_k * (beta_star * beta_star / 12 * ln_fk
                             + beta_star ** 4 / 1920 * 4 * ln_fk ** 3) * sf1_bar
                     + nu / alpha * sf_k * z_bar)
        sf_k_bar = (nu / alpha * ln_fk * z_bar + sf1 / sf_k * sf1_bar
                    - ((beta_star * alpha) ** 2 / sf_k ** 3 / 12
                       + rho * beta * nu * alpha / 4 / (sf_k * sf_k)) * t * sf2_bar)
        strike_bar = -1.0 / k * ln_fk_bar + beta_star * sf_k / (2 * k) * sf_k_bar
        forward_bar = 1.0 / forward * ln_fk_bar + beta_star * sf_k / (2 * forward) * sf_k_bar
        nu_bar = (1.0 / alpha * sf_k * ln_fk * z_bar
                  + (rho * beta * alpha / (4 * sf_k) + (2 - 3 * rho * rho) * nu / 12) * t * sf2_bar)

        if abs(forward - k) < cfg.atm_eps:
            rho_bar = -z / 2 * rzxz_bar
        elif near_one:
            ratio = z / (1.0 - z)
            rho_bar = (0.5 * ratio ** 2
                       + 0.25 * (z - 4.0) * ratio ** 3 / (1.0 - z) * rho_star) * xz_bar
        else:
            root = math.sqrt(1 - 2 * rho * z + z * z)
            rho_bar = (1.0 / (root + z - rho) * (-z / root - 1) + 1.0 / rho_star) * xz_bar
        rho_bar += (beta * nu * alpha / (4 * sf_k) - rho * nu * nu / 4) * t * sf2_bar

        alpha_bar = (-nu / (alpha * alpha) * sf_k * ln_fk * z_bar
                     + ((beta_star * alpha / sf_k) * (beta_star / sf_k) / 12
                        + rho * beta * nu / (4 * sf_k)) * t * sf2_bar
                     + 1.0 / sf1 * rzxz * sf2 * v_bar)
        beta_bar = (-0.5 * math.log(forward * k) * sf_k * sf_k_bar
                    - sf_k * (beta_star / 12 * ln_fk * ln_fk
                              + beta_star ** 3 / 480 * ln_fk ** 4) * sf1_bar
                    + (-beta_star * alpha * alpha / sf_k / sf_k / 12
                       + rho * nu * alpha / 4 / sf_k) * t * sf2_bar)

        return ValueDerivatives(volatility, [forward_bar, strike_bar, alpha_bar,
                                             beta_bar, rho_bar, nu_bar])

    # ------------------------------------------------------------------
    # Second-order adjoint
    # ------------------------------------------------------------------
    def volatility_adjoint2(self, forward: float, strike: float, time_to_expiry: float,
                            data: SabrFormulaData) -> ValueDerivatives2:
        """
        Volatility, first derivatives and the (forward, strike) Hessian.

        The strike is floored at ``config.adjoint2_min_strike``.
        ``second[0, 0]`` is d2/dF2, ``second[1, 1]`` is d2/dK2 and the
        off-diagonal is d2/dFdK.
        """
        self._check_inputs(forward, strike, time_to_expiry, data)
        cfg = self.config
        alpha, beta, rho, nu = data.alpha, data.beta, data.rho, data.nu
        t = time_to_expiry
        if alpha == 0.0:
            first = self.volatility_adjoint(forward, strike, t, data)
            return ValueDerivatives2(first.value, first.derivatives, np.zeros((2, 2)))

        k = max(strike, cfg.adjoint2_min_strike)
        h0 = (1 - beta) / 2
        h1 = forward * k
        h1h0 = h1 ** h0
        h12 = h1h0 * h1h0
        h2 = math.log(forward / k)
        h22 = h2 * h2
        h23 = h22 * h2
        h24 = h23 * h2
        ln_h1 = math.log(h1)
        f1 = h1h0 * (1 + h0 * h0 / 6.0 * (h22 + h0 * h0 / 20.0 * h24))
        f2 = nu / alpha * h1h0 * h2
        f3 = (h0 * h0 / 6.0 * alpha * alpha / h12 + rho * beta * nu * alpha / 4.0 / h1h0
              + (2 - 3 * rho * rho) / 24.0 * nu * nu)
        sqrtf2 = math.sqrt(1 - 2 * rho * f2 + f2 * f2)
        small_f2 = _fuzzy_equals(f2, 0.0, cfg.small_z)
        near_one = _fuzzy_equals(rho, 1.0, cfg.rho_cutoff)
        x = xp = xpp = 0.0
        if small_f2:
            f2x = 1.0 - 0.5 * f2 * rho  # expansion to f2^2 terms
        else:
            if near_one:
                if f2 < 1.0:
                    x = -math.log(1.0 - f2) - 0.5 * (f2 / (f2 - 1.0)) ** 2 * (1.0 - rho)
                else:
                    raise DomainLimitError(f"can't handle z>=1, rho=1 (z={f2}, rho={rho})")
            else:
                x = math.log((sqrtf2 + f2 - rho) / (1 - rho))
            xp = 1.0 / sqrtf2
            xpp = (rho - f2) / sqrtf2 ** 3
            f2x = f2 / x
        time_factor = 1 + f3 * t
        sigma = max(cfg.min_vol, alpha / f1 * f2x * time_factor)

        h0_dbeta = -0.5
        sigma_df1 = -sigma / f1
        if small_f2:
            sigma_df2 = alpha / f1 * time_factor * -0.5 * rho
        else:
            sigma_df2 = alpha / f1 * time_factor * (1.0 / x - f2 * xp / (x * x))
        sigma_df3 = alpha / f1 * f2x * t
        sigma_df4 = f2x / f1 * time_factor

        d2ff = np.zeros((3, 3))
        d2ff[0, 0] = -sigma_df1 / f1 + sigma / (f1 * f1)
        d2ff[0, 1] = -sigma_df2 / f1
        d2ff[0, 2] = -sigma_df3 / f1
        if small_f2:
            d2ff[1, 2] = alpha / f1 * -0.5 * rho * t
        else:
            d2ff[1, 1] = alpha / f1 * time_factor * (
                -2 * xp / (x * x) - f2 * xpp / (x * x) + 2 * f2 * xp * xp / (x * x * x))
            d2ff[1, 2] = alpha / f1 * t * (1.0 / x - f2 * xp / (x * x))

        f1_dh = np.array([
            h1h0 * (h0 * (h22 / 3.0 + h0 * h0 / 40.0 * h24)) + ln_h1 * f1,
            h0 * f1 / h1,
            h1h0 * (h0 * h0 / 6.0 * (2.0 * h2 + h0 * h0 / 5.0 * h23)),
        ])
        f2_dh = np.array([ln_h1 * f2, h0 * f2 / h1, nu / alpha * h1h0])
        f3_dh = np.array([
            h0 / 3.0 * alpha * alpha / h12
            - 2 * h0 * h0 / 6.0 * alpha * alpha / h12 * ln_h1
            - rho * beta * nu * alpha / 4.0 / h1h0 * ln_h1,
            -2 * h0 * h0 / 6.0 * alpha * alpha / h12 * h0 / h1
            - rho * beta * nu * alpha / 4.0 / h1h0 * h0 / h1,
            0.0,
        ])
        # derivatives w.r.t. (alpha, beta, rho, nu)
        f1_dp = np.array([0.0, f1_dh[0] * h0_dbeta, 0.0, 0.0])
        f2_dp = np.array([-f2 / alpha, f2_dh[0] * h0_dbeta, 0.0, h1h0 * h2 / alpha])
        f3_dp = np.array([
            h0 * h0 / 3.0 * alpha / h12 + rho * beta * nu / 4.0 / h1h0,
            rho * nu * alpha / 4.0 / h1h0 + f3_dh[0] * h0_dbeta,
            beta * nu * alpha / 4.0 / h1h0 - rho / 4.0 * nu * nu,
            rho * beta * alpha / 4.0 / h1h0 + (2 - 3 * rho * rho) / 12.0 * nu,
        ])
        f4_dp = np.array([1.0, 0.0, 0.0, 0.0])

        sigma_dh1 = sigma_df1 * f1_dh[1] + sigma_df2 * f2_dh[1] + sigma_df3 * f3_dh[1]
        sigma_dh2 = sigma_df1 * f1_dh[2] + sigma_df2 * f2_dh[2] + sigma_df3 * f3_dh[2]

        f1_d2hh = np.array([
            [h0 * (h0 - 1) * f1 / (h1 * h1),
             h0 * h1h0 / h1 * h0 * h0 / 6.0 * (2.0 * h2 + 4.0 * h0 * h0 / 20.0 * h23)],
            [0.0, h1h0 * (h0 * h0 / 6.0 * (2.0 + 12.0 * h0 * h0 / 20.0 * h2))],
        ])
        f2_d2hh = np.array([
            [h0 * (h0 - 1) * f2 / (h1 * h1), nu / alpha * h0 * h1h0 / h1],
            [0.0, 0.0],
        ])
        f3_d2hh = np.array([
            [2 * h0 * (2 * h0 + 1) * h0 * h0 / 6.0 * alpha * alpha / (h12 * h1 * h1)
             + h0 * (h0 + 1) * rho * beta * nu * alpha / 4.0 / (h1h0 * h1 * h1), 0.0],
            [0.0, 0.0],
        ])
        sigma_d2hh = np.zeros((2, 2))
        for lx in range(2):
            for ly in range(lx, 2):
                sigma_d2hh[lx, ly] = (
                    (d2ff[0, 0] * f1_dh[ly + 1] + d2ff[0, 1] * f2_dh[ly + 1]
                     + d2ff[0, 2] * f3_dh[ly + 1]) * f1_dh[lx + 1]
                    + sigma_df1 * f1_d2hh[lx, ly]
                    + (d2ff[0, 1] * f1_dh[ly + 1] + d2ff[1, 1] * f2_dh[ly + 1]
                       + d2ff[1, 2] * f3_dh[ly + 1]) * f2_dh[lx + 1]
                    + sigma_df2 * f2_d2hh[lx, ly]
                    + (d2ff[0, 2] * f1_dh[ly + 1] + d2ff[1, 2] * f2_dh[ly + 1]
                       + d2ff[2, 2] * f3_dh[ly + 1]) * f3_dh[lx + 1]
                    + sigma_df3 * f3_d2hh[lx, ly])

        h1_df, h1_dk = k, forward
        h1_d2kf = 1.0
        h2_df, h2_dk = 1.0 / forward, -1.0 / k
        h2_d2ff = -1.0 / (forward * forward)
        h2_d2kk = 1.0 / (k * k)

        first = np.zeros(6)
        first[0] = sigma_dh1 * h1_df + sigma_dh2 * h2_df
        first[1] = sigma_dh1 * h1_dk + sigma_dh2 * h2_dk
        for i, p in ((2, 0), (3, 1), (5, 3)):
            first[i] = (sigma_df1 * f1_dp[p] + sigma_df2 * f2_dp[p]
                        + sigma_df3 * f3_dp[p] + sigma_df4 * f4_dp[p])
        if small_f2:
            first[4] = -0.5 * f2 + sigma_df3 * f3_dp[2]
        else:
            sigma_dx = -alpha / f1 * f2 / (x * x) * time_factor
            if near_one:
                x_dr = (0.5 * (f2 / (1.0 - f2)) ** 2
                        + 0.25 * (f2 - 4.0) * (f2 / (f2 - 1.0)) ** 3 / (f2 - 1.0) * (1.0 - rho))
            else:
                x_dr = (-f2 / sqrtf2 - 1 + (sqrtf2 + f2 - rho) / (1 - rho)) / (sqrtf2 + f2 - rho)
            first[4] = (sigma_df1 * f1_dp[2] + sigma_dx * x_dr
                        + sigma_df3 * f3_dp[2] + sigma_df4 * f4_dp[2])

        second = np.zeros((2, 2))
        second[0, 0] = ((sigma_d2hh[0, 0] * h1_df + sigma_d2hh[0, 1] * h2_df) * h1_df
                        + (sigma_d2hh[0, 1] * h1_df + sigma_d2hh[1, 1] * h2_df) * h2_df
                        + sigma_dh2 * h2_d2ff)
        second[0, 1] = ((sigma_d2hh[0, 0] * h1_dk + sigma_d2hh[0, 1] * h2_dk) * h1_df
                        + sigma_dh1 * h1_d2kf
                        + (sigma_d2hh[0, 1] * h1_dk + sigma_d2hh[1, 1] * h2_dk) * h2_df)
        second[1, 0] = second[0, 1]
        second[1, 1] = ((sigma_d2hh[0, 0] * h1_dk + sigma_d2hh[0, 1] * h2_dk) * h1_dk
                        + (sigma_d2hh[0, 1] * h1_dk + sigma_d2hh[1, 1] * h2_dk) * h2_dk
                        + sigma_dh2 * h2_d2kk)
        return ValueDerivatives2(sigma, first, second)


DEFAULT = SabrHaganVolatilityFunctionProvider()
