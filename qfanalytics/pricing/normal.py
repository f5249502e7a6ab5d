"""
================================================================================
NORMAL (BACHELIER) PRICE FUNCTION
================================================================================
Arithmetic Brownian motion for the forward, dF = sigma_N dW:

    d     = (F - K) / (sigma_N sqrt(T))
    price = numeraire * [ s (F - K) N(s d) + sigma_N sqrt(T) n(d) ]     s = +/-1

Forwards and strikes may be negative. When sigma_N sqrt(T) vanishes the
price collapses to the discounted intrinsic value and the greeks to their
step-function limits.
================================================================================
"""

from dataclasses import dataclass

import numpy as np
from scipy.optimize import brentq
from scipy.stats import norm

from qfanalytics.models.option import EuropeanVanillaOption
from qfanalytics.models.value_derivatives import ValueDerivatives

NEAR_ZERO = 1e-16


@dataclass(frozen=True)
class NormalFunctionData:
    """
    Market data for the Bachelier model.

    Attributes:
        forward: Forward rate or price (any sign)
        numeraire: Discount factor or annuity multiplying the payoff
        normal_vol: Normal (absolute) volatility, >= 0
    """
    forward: float
    numeraire: float = 1.0
    normal_vol: float = 0.0

    def __post_init__(self):
        if not self.numeraire >= 0.0:
            raise ValueError(f"numeraire must be non-negative, got {self.numeraire}")
        if not self.normal_vol >= 0.0:
            raise ValueError(f"normal_vol must be non-negative, got {self.normal_vol}")

    @classmethod
    def of(cls, forward: float, numeraire: float, normal_vol: float) -> "NormalFunctionData":
        return cls(forward, numeraire, normal_vol)


class NormalPriceFunction:
    """Bachelier price, adjoint and greeks for a European vanilla option."""

    @staticmethod
    def _inputs(option: EuropeanVanillaOption, data: NormalFunctionData):
        sign = 1.0 if option.is_call else -1.0
        sigma_root_t = np.float64(data.normal_vol) * np.sqrt(np.float64(option.time_to_expiry))
        if np.isnan(sigma_root_t):
            sigma_root_t = np.float64(1.0)
        return sign, sigma_root_t

    def price(self, option: EuropeanVanillaOption, data: NormalFunctionData) -> float:
        """Numeraire-scaled option price."""
        return self.price_adjoint(option, data).value

    def price_adjoint(self, option: EuropeanVanillaOption,
                      data: NormalFunctionData) -> ValueDerivatives:
        """
        Price with derivatives ordered (forward, normal_vol, strike).
        """
        strike, forward, numeraire = option.strike, data.forward, data.numeraire
        sign, sigma_root_t = self._inputs(option, data)
        with np.errstate(all="ignore"):
            if sigma_root_t < NEAR_ZERO:
                x = sign * (forward - strike)
                if x > 0.0:
                    return ValueDerivatives.of(numeraire * x, [numeraire * sign, 0.0, -numeraire * sign])
                return ValueDerivatives.of(0.0, [0.0, 0.0, 0.0])
            root_t = np.sqrt(np.float64(option.time_to_expiry))
            arg = sign * (forward - strike) / sigma_root_t
            cdf = norm.cdf(arg)
            pdf = norm.pdf(arg)
            value = numeraire * (sign * (forward - strike) * cdf + sigma_root_t * pdf)
            # backward sweep
            forward_bar = numeraire * sign * cdf
            strike_bar = -forward_bar
            vol_bar = numeraire * root_t * pdf
            if np.isnan(value):
                value = np.inf
            if np.isnan(vol_bar):
                vol_bar = 0.0
        return ValueDerivatives.of(float(value), [float(forward_bar), float(vol_bar), float(strike_bar)])

    def delta(self, option: EuropeanVanillaOption, data: NormalFunctionData) -> float:
        """dPrice/dForward."""
        return self.price_adjoint(option, data).derivative(0)

    def gamma(self, option: EuropeanVanillaOption, data: NormalFunctionData) -> float:
        """d2Price/dForward2 = numeraire n(d) / (sigma_N sqrt(T))."""
        sign, sigma_root_t = self._inputs(option, data)
        with np.errstate(all="ignore"):
            if sigma_root_t < NEAR_ZERO:
                at_the_money = abs(data.forward - option.strike) < NEAR_ZERO
                return float(np.inf) if at_the_money else 0.0
            arg = (data.forward - option.strike) / sigma_root_t
            res = data.numeraire * norm.pdf(arg) / sigma_root_t
        return 0.0 if np.isnan(res) else float(res)

    def vega(self, option: EuropeanVanillaOption, data: NormalFunctionData) -> float:
        """dPrice/d(normal_vol)."""
        return self.price_adjoint(option, data).derivative(1)

    def implied_volatility(self, option: EuropeanVanillaOption, forward: float,
                           numeraire: float, option_price: float,
                           max_vol: float = 1.0, tol: float = 1e-14) -> float:
        """
        Normal volatility reproducing ``option_price`` (Brent's method).

        Raises:
            ValueError: for a price below the discounted intrinsic value or
                for a non-positive expiry.
        """
        if not option.time_to_expiry > 0.0:
            raise ValueError(f"time_to_expiry must be positive, got {option.time_to_expiry}")
        if not numeraire > 0.0:
            raise ValueError(f"numeraire must be positive, got {numeraire}")
        sign = 1.0 if option.is_call else -1.0
        intrinsic = numeraire * max(0.0, sign * (forward - option.strike))
        if option_price < intrinsic - tol:
            raise ValueError(f"price {option_price} below intrinsic value {intrinsic}")
        if option_price - intrinsic <= tol:
            return 0.0

        def objective(vol):
            return self.price(option, NormalFunctionData(forward, numeraire, vol)) - option_price

        hi = max_vol
        while objective(hi) < 0.0:
            hi *= 2.0
        return brentq(objective, 0.0, hi, xtol=tol)


DEFAULT = NormalPriceFunction()


def implied_normal_volatility(option: EuropeanVanillaOption, forward: float,
                              numeraire: float, option_price: float) -> float:
    """Module-level shortcut for ``DEFAULT.implied_volatility``."""
    return DEFAULT.implied_volatility(option, forward, numeraire, option_price)
