"""
================================================================================
BLACK (1976) FORMULA REPOSITORY
================================================================================
Undiscounted European option price and greeks on a log-normal forward:

    C = F N(d1) - K N(d2),   P = K N(-d2) - F N(-d1)
    d1 = ln(F/K) / (sigma sqrt(T)) + sigma sqrt(T) / 2,   d2 = d1 - sigma sqrt(T)

Asymptotic policy (never NaN for any finite, zero or infinite input):

    sigma sqrt(T) undefined (0 * inf)   -> treated as 1
    sigma sqrt(T) -> 0                  -> intrinsic value / step greeks
    sigma sqrt(T) -> inf                -> call worth F, put worth K
    F ~ K, or F and K both huge         -> d1 = -d2 = sigma sqrt(T) / 2
================================================================================
"""

import numpy as np
from scipy.optimize import brentq
from scipy.stats import norm

from qfanalytics.models.value_derivatives import ValueDerivatives
from qfanalytics.utils import get_logger, ieee_float

log = get_logger(__name__)

LARGE = 1e13
SMALL = 1e-13
_PDF_ZERO = norm.pdf(0.0)


def _check_inputs(forward, strike, time_to_expiry, lognormal_vol):
    for name, value in (("forward", forward), ("strike", strike),
                        ("time_to_expiry", time_to_expiry),
                        ("lognormal_vol", lognormal_vol)):
        if not value >= 0.0:
            raise ValueError(f"negative/NaN {name}; have {value}")


def _sigma_root_t(time_to_expiry, lognormal_vol):
    sigma_root_t = lognormal_vol * np.sqrt(time_to_expiry)
    if np.isnan(sigma_root_t):
        log.info("lognormal_vol * sqrt(time_to_expiry) ambiguous")
        return np.float64(1.0)
    return sigma_root_t


def _at_the_money(forward, strike):
    return abs(forward - strike) < SMALL or (forward > LARGE and strike > LARGE)


def _d1_d2(forward, strike, sigma_root_t):
    if _at_the_money(forward, strike):
        return 0.5 * sigma_root_t, -0.5 * sigma_root_t
    d1 = np.log(forward / strike) / sigma_root_t + 0.5 * sigma_root_t
    return d1, d1 - sigma_root_t


# ---------------------------------------------------------------------------
# Price
# ---------------------------------------------------------------------------
@ieee_float
def price(forward: float, strike: float, time_to_expiry: float,
          lognormal_vol: float, is_call: bool) -> float:
    """
    Forward (undiscounted) Black price.

    Args:
        forward: Forward value of the underlying (>= 0)
        strike: Strike (>= 0)
        time_to_expiry: Year fraction to expiry (>= 0)
        lognormal_vol: Black volatility (>= 0)
        is_call: True for a call, False for a put

    Returns:
        Price, never negative and never NaN.
    """
    _check_inputs(forward, strike, time_to_expiry, lognormal_vol)
    sigma_root_t = _sigma_root_t(time_to_expiry, lognormal_vol)
    sign = 1.0 if is_call else -1.0

    if forward > LARGE and strike > LARGE:
        log.info("(large value)/(large value) ambiguous")
        if is_call:
            return forward if forward >= strike else 0.0
        return strike if strike >= forward else 0.0
    if sigma_root_t < SMALL:
        return max(sign * (forward - strike), 0.0)
    if sigma_root_t > LARGE:
        d1, d2 = 0.5 * sigma_root_t, -0.5 * sigma_root_t
    else:
        d1, d2 = _d1_d2(forward, strike, sigma_root_t)

    n_f = norm.cdf(sign * d1)
    n_s = norm.cdf(sign * d2)
    first = 0.0 if n_f == 0.0 else forward * n_f
    second = 0.0 if n_s == 0.0 else strike * n_s
    return max(0.0, sign * (first - second))


def price_adjoint(forward: float, strike: float, time_to_expiry: float,
                  lognormal_vol: float, is_call: bool) -> ValueDerivatives:
    """
    Black price with its derivatives, ordered
    (forward, strike, time_to_expiry, lognormal_vol).
    """
    _check_inputs(forward, strike, time_to_expiry, lognormal_vol)
    forward, strike = np.float64(forward), np.float64(strike)
    time_to_expiry, lognormal_vol = np.float64(time_to_expiry), np.float64(lognormal_vol)
    with np.errstate(all="ignore"):
        sigma_root_t = _sigma_root_t(time_to_expiry, lognormal_vol)
        sign = 1.0 if is_call else -1.0

        if forward > LARGE and strike > LARGE:
            log.info("(large value)/(large value) ambiguous")
            if is_call:
                value = forward if forward >= strike else 0.0
            else:
                value = strike if strike >= forward else 0.0
            return ValueDerivatives.of(float(value), [0.0, 0.0, 0.0, 0.0])
        if sigma_root_t < SMALL:
            itm = sign * (forward - strike) > 0.0
            value = sign * (forward - strike) if itm else 0.0
            return ValueDerivatives.of(
                float(value), [sign if itm else 0.0, -sign if itm else 0.0, 0.0, 0.0])
        if sigma_root_t > LARGE:
            d1, d2 = 0.5 * sigma_root_t, -0.5 * sigma_root_t
        else:
            d1, d2 = _d1_d2(forward, strike, sigma_root_t)

        n_f = norm.cdf(sign * d1)
        n_s = norm.cdf(sign * d2)
        first = 0.0 if n_f == 0.0 else forward * n_f
        second = 0.0 if n_s == 0.0 else strike * n_s
        value = max(0.0, sign * (first - second))

        # backward sweep; the d2 dependence cancels through F n(d1) = K n(d2)
        forward_bar = n_f * sign
        strike_bar = -n_s * sign
        sigma_root_t_bar = norm.pdf(d1) * forward
        root_t = np.sqrt(time_to_expiry)
        vol_bar = root_t * sigma_root_t_bar
        time_bar = 0.5 / root_t * lognormal_vol * sigma_root_t_bar
        return ValueDerivatives.of(
            float(value), [float(forward_bar), float(strike_bar), float(time_bar), float(vol_bar)])


# ---------------------------------------------------------------------------
# First-order greeks
# ---------------------------------------------------------------------------
@ieee_float
def delta(forward: float, strike: float, time_to_expiry: float,
          lognormal_vol: float, is_call: bool) -> float:
    """Forward delta dP/dF."""
    _check_inputs(forward, strike, time_to_expiry, lognormal_vol)
    sigma_root_t = _sigma_root_t(time_to_expiry, lognormal_vol)
    sign = 1.0 if is_call else -1.0

    if sigma_root_t > LARGE:
        return 1.0 if is_call else 0.0
    if sigma_root_t < SMALL:
        if not _at_the_money(forward, strike):
            if is_call:
                return 1.0 if forward > strike else 0.0
            return 0.0 if forward > strike else -1.0
        log.info("(log 1)/0 ambiguous value")
        return 0.5 if is_call else -0.5
    d1, _ = _d1_d2(forward, strike, sigma_root_t)
    return sign * norm.cdf(sign * d1)


@ieee_float
def dual_delta(forward: float, strike: float, time_to_expiry: float,
               lognormal_vol: float, is_call: bool) -> float:
    """Strike delta dP/dK."""
    _check_inputs(forward, strike, time_to_expiry, lognormal_vol)
    sigma_root_t = _sigma_root_t(time_to_expiry, lognormal_vol)
    sign = 1.0 if is_call else -1.0

    if sigma_root_t > LARGE:
        return 0.0 if is_call else 1.0
    if sigma_root_t < SMALL:
        if not _at_the_money(forward, strike):
            if is_call:
                return -1.0 if forward > strike else 0.0
            return 0.0 if forward > strike else 1.0
        log.info("(log 1)/0 ambiguous value")
        return -0.5 if is_call else 0.5
    _, d2 = _d1_d2(forward, strike, sigma_root_t)
    return -sign * norm.cdf(sign * d2)


@ieee_float
def vega(forward: float, strike: float, time_to_expiry: float,
         lognormal_vol: float) -> float:
    """dP/d(sigma), identical for calls and puts."""
    _check_inputs(forward, strike, time_to_expiry, lognormal_vol)
    root_t = np.sqrt(time_to_expiry)
    sigma_root_t = _sigma_root_t(time_to_expiry, lognormal_vol)

    if sigma_root_t > LARGE:
        return 0.0
    if sigma_root_t < SMALL:
        if not _at_the_money(forward, strike):
            return 0.0
        log.info("log(1)/0 ambiguous")
        if root_t < SMALL and forward > LARGE:
            return _PDF_ZERO
        return forward * root_t * _PDF_ZERO
    d1, _ = _d1_d2(forward, strike, sigma_root_t)
    n_val = norm.pdf(d1)
    return 0.0 if n_val == 0.0 else forward * root_t * n_val


@ieee_float
def driftless_theta(forward: float, strike: float, time_to_expiry: float,
                    lognormal_vol: float) -> float:
    """Theta of the forward price, -F n(d1) sigma / (2 sqrt(T))."""
    _check_inputs(forward, strike, time_to_expiry, lognormal_vol)
    root_t = np.sqrt(time_to_expiry)
    sigma_root_t = _sigma_root_t(time_to_expiry, lognormal_vol)

    if sigma_root_t > LARGE:
        return 0.0
    if sigma_root_t < SMALL:
        if not _at_the_money(forward, strike):
            return 0.0
        log.info("log(1)/0 ambiguous")
        if root_t < SMALL:
            if forward < SMALL:
                return -_PDF_ZERO * lognormal_vol / 2.0
            if lognormal_vol < SMALL:
                return -forward * _PDF_ZERO / 2.0
            return -forward * _PDF_ZERO * lognormal_vol / 2.0 / root_t
        if lognormal_vol < SMALL:
            if forward > LARGE:
                return -_PDF_ZERO / 2.0 / root_t
            return -forward * _PDF_ZERO * lognormal_vol / 2.0 / root_t
    d1, _ = _d1_d2(forward, strike, sigma_root_t)
    n_val = norm.pdf(d1)
    return 0.0 if n_val == 0.0 else -forward * n_val * lognormal_vol / 2.0 / root_t


# ---------------------------------------------------------------------------
# Second-order greeks
# ---------------------------------------------------------------------------
@ieee_float
def gamma(forward: float, strike: float, time_to_expiry: float,
          lognormal_vol: float) -> float:
    """d2P/dF2."""
    _check_inputs(forward, strike, time_to_expiry, lognormal_vol)
    sigma_root_t = _sigma_root_t(time_to_expiry, lognormal_vol)

    if sigma_root_t > LARGE:
        return 0.0
    if sigma_root_t < SMALL:
        if not _at_the_money(forward, strike):
            return 0.0
        log.info("(log 1)/0 ambiguous")
        return _PDF_ZERO if forward > LARGE else _PDF_ZERO / forward / sigma_root_t
    d1, _ = _d1_d2(forward, strike, sigma_root_t)
    n_val = norm.pdf(d1)
    return 0.0 if n_val == 0.0 else n_val / forward / sigma_root_t


@ieee_float
def dual_gamma(forward: float, strike: float, time_to_expiry: float,
               lognormal_vol: float) -> float:
    """d2P/dK2."""
    _check_inputs(forward, strike, time_to_expiry, lognormal_vol)
    sigma_root_t = _sigma_root_t(time_to_expiry, lognormal_vol)

    if sigma_root_t > LARGE:
        return 0.0
    if sigma_root_t < SMALL:
        if not _at_the_money(forward, strike):
            return 0.0
        log.info("(log 1)/0 ambiguous")
        return _PDF_ZERO if strike > LARGE else _PDF_ZERO / strike / sigma_root_t
    _, d2 = _d1_d2(forward, strike, sigma_root_t)
    n_val = norm.pdf(d2)
    return 0.0 if n_val == 0.0 else n_val / strike / sigma_root_t


@ieee_float
def vanna(forward: float, strike: float, time_to_expiry: float,
          lognormal_vol: float) -> float:
    """d2P/dF d(sigma) = -n(d1) d2 / sigma."""
    _check_inputs(forward, strike, time_to_expiry, lognormal_vol)
    root_t = np.sqrt(time_to_expiry)
    sigma_root_t = _sigma_root_t(time_to_expiry, lognormal_vol)

    if sigma_root_t > LARGE:
        return 0.0
    if sigma_root_t < SMALL:
        if not _at_the_money(forward, strike):
            return 0.0
        log.info("log(1)/0 ambiguous")
        return -_PDF_ZERO / lognormal_vol if lognormal_vol < SMALL else _PDF_ZERO * root_t
    d1, d2 = _d1_d2(forward, strike, sigma_root_t)
    n_val = norm.pdf(d1)
    return 0.0 if n_val == 0.0 else -n_val * d2 / lognormal_vol


@ieee_float
def vomma(forward: float, strike: float, time_to_expiry: float,
          lognormal_vol: float) -> float:
    """d2P/d(sigma)2 = F sqrt(T) n(d1) d1 d2 / sigma."""
    _check_inputs(forward, strike, time_to_expiry, lognormal_vol)
    root_t = np.sqrt(time_to_expiry)
    sigma_root_t = _sigma_root_t(time_to_expiry, lognormal_vol)

    if sigma_root_t > LARGE:
        return 0.0
    if sigma_root_t < SMALL:
        if not _at_the_money(forward, strike):
            return 0.0
        log.info("log(1)/0 ambiguous")
        if forward > LARGE:
            if root_t < SMALL:
                return _PDF_ZERO / lognormal_vol
            return forward * _PDF_ZERO * root_t / lognormal_vol
        if lognormal_vol < SMALL:
            return forward * _PDF_ZERO * root_t / lognormal_vol
        return -forward * _PDF_ZERO * time_to_expiry * lognormal_vol / 4.0
    d1, d2 = _d1_d2(forward, strike, sigma_root_t)
    n_val = norm.pdf(d1)
    return 0.0 if n_val == 0.0 else forward * n_val * root_t * d1 * d2 / lognormal_vol


def volga(forward: float, strike: float, time_to_expiry: float,
          lognormal_vol: float) -> float:
    """Alias of ``vomma``."""
    return vomma(forward, strike, time_to_expiry, lognormal_vol)


# ---------------------------------------------------------------------------
# Implied volatility
# ---------------------------------------------------------------------------
def implied_volatility(option_price: float, forward: float, strike: float,
                       time_to_expiry: float, is_call: bool,
                       tol: float = 1e-12, max_vol: float = 10.0) -> float:
    """
    Black volatility reproducing a forward option price (Brent's method).

    Raises:
        ValueError: if the price lies outside the no-arbitrage bounds
            (intrinsic, forward for calls or strike for puts).
    """
    if not option_price >= 0.0:
        raise ValueError(f"negative/NaN price; have {option_price}")
    if not (0.0 < forward < np.inf):
        raise ValueError(f"forward must be positive and finite; have {forward}")
    if not (0.0 <= strike < np.inf):
        raise ValueError(f"strike must be non-negative and finite; have {strike}")
    if not (0.0 < time_to_expiry < np.inf):
        raise ValueError(f"time_to_expiry must be positive and finite; have {time_to_expiry}")

    sign = 1.0 if is_call else -1.0
    intrinsic = max(0.0, sign * (forward - strike))
    upper = forward if is_call else strike
    if option_price < intrinsic - tol:
        raise ValueError(f"price {option_price} below intrinsic value {intrinsic}")
    if option_price >= upper:
        raise ValueError(f"price {option_price} not below the upper bound {upper}")
    if option_price - intrinsic <= tol:
        return 0.0

    def objective(sigma):
        return price(forward, strike, time_to_expiry, sigma, is_call) - option_price

    hi = max_vol
    while objective(hi) < 0.0:
        hi *= 2.0
        if hi > LARGE:
            raise ValueError(f"no volatility reproduces price {option_price}")
    return brentq(objective, 0.0, hi, xtol=tol)
