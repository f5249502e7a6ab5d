"""
================================================================================
BLACK-SCHOLES FORMULA REPOSITORY (GENERALISED, WITH COST OF CARRY)
================================================================================
Spot-based European option price and greeks:

    C = S e^{(b-r)T} N(d1) - K e^{-rT} N(d2)
    P = K e^{-rT} N(-d2) - S e^{(b-r)T} N(-d1)

    d1 = [ln(S/K) + (b + sigma^2/2) T] / (sigma sqrt(T)),  d2 = d1 - sigma sqrt(T)

r is the interest rate and b the cost of carry (b = r for a stock without
dividends, b = r - q with a continuous yield q, b = 0 for a future).

Every function returns a limiting value, never NaN, for any combination of
zero, tiny, huge or infinite inputs. Quantities that are ambiguous at the
limit (0 * inf, inf / inf, log(1) / 0) are replaced by a reference value:

    sigma sqrt(T) = 0 * inf             -> 1
    e^{bT}, e^{(b-r)T} undefined        -> 1
    |S - K| tiny, or S and K both huge  -> d1, d2 from the drift terms only
    b sqrt(T) / sigma undefined         -> sign(b) / sigma or sign(b) sqrt(T)
    r or b beyond +/-1e13               -> limit of the formula in that rate

Inputs: spot, strike, time and vol must be >= 0; rate and cost of carry must
not be NaN. Anything else raises ValueError.
================================================================================
"""

import numpy as np
from scipy.stats import norm

from qfanalytics.utils import ieee_float

SMALL = 1e-13
LARGE = 1e13


# ---------------------------------------------------------------------------
# Shared limit handling
# ---------------------------------------------------------------------------
def _check_inputs(spot, strike, time_to_expiry, lognormal_vol, interest_rate, cost_of_carry):
    for name, value in (("spot", spot), ("strike", strike),
                        ("time_to_expiry", time_to_expiry),
                        ("lognormal_vol", lognormal_vol)):
        if not value >= 0.0:
            raise ValueError(f"negative/NaN {name}; have {value}")
    if np.isnan(interest_rate):
        raise ValueError("interest_rate is NaN")
    if np.isnan(cost_of_carry):
        raise ValueError("cost_of_carry is NaN")


def _sigma_root_t(root_t, lognormal_vol):
    sigma_root_t = lognormal_vol * root_t
    return np.float64(1.0) if np.isnan(sigma_root_t) else sigma_root_t


def _discount(interest_rate, time_to_expiry):
    if abs(interest_rate) < SMALL and time_to_expiry > LARGE:
        return np.float64(1.0)
    return np.exp(-interest_rate * time_to_expiry)


def _carry_coef(interest_rate, cost_of_carry, time_to_expiry):
    """
    e^{(b-r)T} with its reference value.

    Returns (coef, None), or (None, +1/-1) when b - r is beyond +/-LARGE
    and the caller must return its own limit.
    """
    if ((interest_rate > LARGE and cost_of_carry > LARGE)
            or (-interest_rate > LARGE and -cost_of_carry > LARGE)
            or abs(cost_of_carry - interest_rate) < SMALL):
        return np.float64(1.0), None
    rate = cost_of_carry - interest_rate
    if rate > LARGE:
        return None, 1
    if -rate > LARGE:
        return None, -1
    return np.exp(rate * time_to_expiry), None


def _near(spot, strike):
    return abs(spot - strike) < SMALL or (spot > LARGE and strike > LARGE)


def _d_drift(cost_of_carry, lognormal_vol, root_t, half, guard=None, signed=False):
    """
    d1 (half = +0.5) or d2 (half = -0.5) when ln(S/K) drops out.

    guard "small" replaces b / sigma by sign(b) when both are tiny, guard
    "nan" does so whenever b / sigma is undefined. ``signed`` snaps tiny
    coefficients to 0 and undefined products to the coefficient sign.
    """
    if ((guard == "small" and abs(cost_of_carry) < SMALL and lognormal_vol < SMALL)
            or (guard == "nan" and np.isnan(abs(cost_of_carry) / lognormal_vol))):
        coef = np.sign(cost_of_carry) + half * lognormal_vol
    else:
        coef = cost_of_carry / lognormal_vol + half * lognormal_vol
    if signed:
        tmp = 0.0 if abs(coef) < SMALL else coef * root_t
        return np.sign(coef) if np.isnan(tmp) else tmp
    tmp = coef * root_t
    return 0.0 if np.isnan(tmp) else tmp


def _carry_term(cost_of_carry, lognormal_vol, root_t):
    tmp = cost_of_carry * root_t / lognormal_vol
    if not np.isnan(tmp):
        return tmp
    sig = 1.0 if cost_of_carry >= 0.0 else -1.0
    return sig / lognormal_vol if SMALL < lognormal_vol < LARGE else sig * root_t


def _d_general(spot, strike, sigma_root_t, cost_of_carry, lognormal_vol, root_t, half):
    scnd = _carry_term(cost_of_carry, lognormal_vol, root_t)
    return np.log(spot / strike) / sigma_root_t + scnd + half * sigma_root_t


def _d_vanishing_vol(spot, strike, cost_of_carry, lognormal_vol, root_t):
    if abs(cost_of_carry) > LARGE and root_t < SMALL:
        scnd = np.sign(cost_of_carry)
    else:
        scnd = cost_of_carry * root_t
    tmp = (np.log(spot / strike) / root_t + scnd) / lognormal_vol
    return 0.0 if np.isnan(tmp) else tmp


def _d_density(spot, strike, root_t, sigma_root_t, lognormal_vol, cost_of_carry, half,
               guard="small"):
    """d1 or d2 as used by the density-based greeks (gamma, vega family)."""
    if _near(spot, strike):
        return _d_drift(cost_of_carry, lognormal_vol, root_t, half, guard=guard)
    if sigma_root_t < SMALL:
        return _d_vanishing_vol(spot, strike, cost_of_carry, lognormal_vol, root_t)
    return _d_general(spot, strike, sigma_root_t, cost_of_carry, lognormal_vol, root_t, half)


def _d_pair_snapped(spot, strike, root_t, sigma_root_t, lognormal_vol, cost_of_carry):
    """(d1, d2) with undefined values snapped, as used by vanna and dual vanna."""
    if _near(spot, strike) or sigma_root_t > LARGE:
        d1 = _d_drift(cost_of_carry, lognormal_vol, root_t, 0.5, guard="nan", signed=True)
        d2 = _d_drift(cost_of_carry, lognormal_vol, root_t, -0.5, guard="nan", signed=True)
        return d1, d2
    if sigma_root_t < SMALL:
        d1 = _d_vanishing_vol(spot, strike, cost_of_carry, lognormal_vol, root_t)
        return d1, d1
    d1 = _d_general(spot, strike, sigma_root_t, cost_of_carry, lognormal_vol, root_t, 0.5)
    d2 = _d_general(spot, strike, sigma_root_t, cost_of_carry, lognormal_vol, root_t, -0.5)
    return (0.0 if np.isnan(d1) else d1), (0.0 if np.isnan(d2) else d2)


# ---------------------------------------------------------------------------
# Price
# ---------------------------------------------------------------------------
@ieee_float
def price(spot: float, strike: float, time_to_expiry: float, lognormal_vol: float,
          interest_rate: float, cost_of_carry: float, is_call: bool) -> float:
    """
    Discounted option price.

    Args:
        spot: Spot value of the underlying
        strike: Strike
        time_to_expiry: Year fraction to expiry
        lognormal_vol: Log-normal volatility
        interest_rate: Continuously compounded interest rate r
        cost_of_carry: Cost of carry b
        is_call: True for a call, False for a put

    Returns:
        Price, >= 0 and never NaN.
    """
    _check_inputs(spot, strike, time_to_expiry, lognormal_vol, interest_rate, cost_of_carry)

    if interest_rate > LARGE:
        return 0.0
    if -interest_rate > LARGE:
        return np.inf
    discount = 1.0 if abs(interest_rate) < SMALL else np.exp(-interest_rate * time_to_expiry)

    if cost_of_carry > LARGE:
        return np.inf if is_call else 0.0
    if -cost_of_carry > LARGE:
        res = 0.0 if is_call else (strike * discount if discount > SMALL else 0.0)
        return discount if np.isnan(res) else res
    factor = np.exp(cost_of_carry * time_to_expiry)

    if spot > LARGE * strike:
        tmp = np.exp((cost_of_carry - interest_rate) * time_to_expiry)
        return (spot * tmp if tmp > SMALL else 0.0) if is_call else 0.0
    if LARGE * spot < strike:
        return 0.0 if (is_call or discount < SMALL) else strike * discount
    if spot > LARGE and strike > LARGE:
        tmp = np.exp((cost_of_carry - interest_rate) * time_to_expiry)
        if is_call:
            return spot * tmp if tmp > SMALL else 0.0
        return strike * discount if discount > SMALL else 0.0

    root_t = np.sqrt(time_to_expiry)
    sigma_root_t = _sigma_root_t(root_t, lognormal_vol)
    sign = 1.0 if is_call else -1.0
    rescaled_spot = factor * spot

    if sigma_root_t < SMALL:
        if is_call:
            res = discount * (rescaled_spot - strike) if rescaled_spot > strike else 0.0
        else:
            res = discount * (strike - rescaled_spot) if rescaled_spot < strike else 0.0
        return sign * (spot - discount * strike) if np.isnan(res) else res

    if abs(spot - strike) < SMALL or sigma_root_t > LARGE:
        d1 = _d_drift(cost_of_carry, lognormal_vol, root_t, 0.5)
        d2 = _d_drift(cost_of_carry, lognormal_vol, root_t, -0.5)
    else:
        d1 = _d_general(spot, strike, sigma_root_t, cost_of_carry, lognormal_vol, root_t, 0.5)
        d2 = d1 - sigma_root_t
    res = sign * discount * (rescaled_spot * norm.cdf(sign * d1) - strike * norm.cdf(sign * d2))
    return 0.0 if np.isnan(res) else max(res, 0.0)


# ---------------------------------------------------------------------------
# Delta family
# ---------------------------------------------------------------------------
@ieee_float
def delta(spot: float, strike: float, time_to_expiry: float, lognormal_vol: float,
          interest_rate: float, cost_of_carry: float, is_call: bool) -> float:
    """Spot delta dP/dS."""
    _check_inputs(spot, strike, time_to_expiry, lognormal_vol, interest_rate, cost_of_carry)

    coef, beyond = _carry_coef(interest_rate, cost_of_carry, time_to_expiry)
    if beyond == 1:
        if is_call:
            return np.inf
        return 0.0 if cost_of_carry > LARGE else -np.inf
    if beyond == -1:
        return 0.0

    if spot > LARGE * strike:
        return coef if is_call else 0.0
    if spot < SMALL * strike:
        return 0.0 if is_call else -coef

    sign = 1.0 if is_call else -1.0
    root_t = np.sqrt(time_to_expiry)
    sigma_root_t = _sigma_root_t(root_t, lognormal_vol)
    factor = np.exp(cost_of_carry * time_to_expiry)
    if np.isnan(factor):
        factor = 1.0
    rescaled_spot = spot * factor

    if _near(spot, strike) or sigma_root_t > LARGE:
        d1 = _d_drift(cost_of_carry, lognormal_vol, root_t, 0.5)
    else:
        if sigma_root_t < SMALL:
            if is_call:
                return coef if rescaled_spot > strike else 0.0
            return -coef if rescaled_spot < strike else 0.0
        d1 = _d_general(spot, strike, sigma_root_t, cost_of_carry, lognormal_vol, root_t, 0.5)
    n = norm.cdf(sign * d1)
    return 0.0 if n < SMALL else sign * coef * n


@ieee_float
def strike_for_delta(spot: float, spot_delta: float, time_to_expiry: float,
                     lognormal_vol: float, interest_rate: float, cost_of_carry: float,
                     is_call: bool) -> float:
    """
    Strike whose spot delta equals ``spot_delta`` (inverse of ``delta``).

    Raises:
        ValueError: if the delta rescaled by e^{(r-b)T} is outside (0, 1)
            for a call or (-1, 0) for a put.
    """
    for name, value in (("spot", spot), ("time_to_expiry", time_to_expiry),
                        ("lognormal_vol", lognormal_vol)):
        if not value >= 0.0:
            raise ValueError(f"negative/NaN {name}; have {value}")
    if np.isnan(interest_rate):
        raise ValueError("interest_rate is NaN")
    if np.isnan(cost_of_carry):
        raise ValueError("cost_of_carry is NaN")

    rescaled_delta = spot_delta * np.exp((interest_rate - cost_of_carry) * time_to_expiry)
    if is_call and not 0.0 < rescaled_delta < 1.0:
        raise ValueError(f"rescaled call delta out of range (0, 1); have {rescaled_delta}")
    if not is_call and not -1.0 < rescaled_delta < 0.0:
        raise ValueError(f"rescaled put delta out of range (-1, 0); have {rescaled_delta}")

    sigma_root_t = lognormal_vol * np.sqrt(time_to_expiry)
    rescaled_spot = spot * np.exp(cost_of_carry * time_to_expiry)
    sign = 1.0 if is_call else -1.0
    d1 = sign * norm.ppf(sign * rescaled_delta)
    return rescaled_spot * np.exp(-d1 * sigma_root_t + 0.5 * sigma_root_t * sigma_root_t)


@ieee_float
def dual_delta(spot: float, strike: float, time_to_expiry: float, lognormal_vol: float,
               interest_rate: float, cost_of_carry: float, is_call: bool) -> float:
    """Strike delta dP/dK."""
    _check_inputs(spot, strike, time_to_expiry, lognormal_vol, interest_rate, cost_of_carry)

    if -interest_rate > LARGE:
        if is_call:
            return -np.inf
        return 0.0 if cost_of_carry > LARGE else np.inf
    if interest_rate > LARGE:
        return 0.0
    discount = _discount(interest_rate, time_to_expiry)

    if spot > LARGE * strike:
        return -discount if is_call else 0.0
    if spot < SMALL * strike:
        return 0.0 if is_call else discount

    sign = 1.0 if is_call else -1.0
    root_t = np.sqrt(time_to_expiry)
    sigma_root_t = _sigma_root_t(root_t, lognormal_vol)
    factor = np.exp(cost_of_carry * time_to_expiry)
    if np.isnan(factor):
        factor = 1.0
    rescaled_spot = spot * factor

    if _near(spot, strike) or sigma_root_t > LARGE:
        d2 = _d_drift(cost_of_carry, lognormal_vol, root_t, -0.5)
    else:
        if sigma_root_t < SMALL:
            if is_call:
                return -discount if rescaled_spot > strike else 0.0
            return discount if rescaled_spot < strike else 0.0
        d2 = _d_general(spot, strike, sigma_root_t, cost_of_carry, lognormal_vol, root_t, -0.5)
    n = norm.cdf(sign * d2)
    return 0.0 if n < SMALL else -sign * discount * n


# ---------------------------------------------------------------------------
# Gamma family
# ---------------------------------------------------------------------------
@ieee_float
def gamma(spot: float, strike: float, time_to_expiry: float, lognormal_vol: float,
          interest_rate: float, cost_of_carry: float) -> float:
    """d2P/dS2, identical for calls and puts."""
    _check_inputs(spot, strike, time_to_expiry, lognormal_vol, interest_rate, cost_of_carry)

    coef, beyond = _carry_coef(interest_rate, cost_of_carry, time_to_expiry)
    if beyond == 1:
        return 0.0 if cost_of_carry > LARGE else np.inf
    if beyond == -1:
        return 0.0

    root_t = np.sqrt(time_to_expiry)
    sigma_root_t = _sigma_root_t(root_t, lognormal_vol)
    if spot > LARGE * strike or spot < SMALL * strike or sigma_root_t > LARGE:
        return 0.0

    d1 = _d_density(spot, strike, root_t, sigma_root_t, lognormal_vol, cost_of_carry, 0.5)
    n = norm.pdf(d1)
    res = 0.0 if n < SMALL else coef * n / spot / sigma_root_t
    return np.inf if np.isnan(res) else res


@ieee_float
def dual_gamma(spot: float, strike: float, time_to_expiry: float, lognormal_vol: float,
               interest_rate: float, cost_of_carry: float) -> float:
    """d2P/dK2, identical for calls and puts."""
    _check_inputs(spot, strike, time_to_expiry, lognormal_vol, interest_rate, cost_of_carry)

    if -interest_rate > LARGE:
        return 0.0 if cost_of_carry > LARGE else np.inf
    if interest_rate > LARGE:
        return 0.0
    discount = _discount(interest_rate, time_to_expiry)

    root_t = np.sqrt(time_to_expiry)
    sigma_root_t = _sigma_root_t(root_t, lognormal_vol)
    if spot > LARGE * strike or spot < SMALL * strike or sigma_root_t > LARGE:
        return 0.0

    d2 = _d_density(spot, strike, root_t, sigma_root_t, lognormal_vol, cost_of_carry, -0.5)
    n = norm.pdf(d2)
    res = 0.0 if n < SMALL else discount * n / strike / sigma_root_t
    return np.inf if np.isnan(res) else res


@ieee_float
def cross_gamma(spot: float, strike: float, time_to_expiry: float, lognormal_vol: float,
                interest_rate: float, cost_of_carry: float) -> float:
    """d2P/dS dK, identical for calls and puts."""
    _check_inputs(spot, strike, time_to_expiry, lognormal_vol, interest_rate, cost_of_carry)

    if -interest_rate > LARGE:
        return 0.0 if cost_of_carry > LARGE else -np.inf
    if interest_rate > LARGE:
        return 0.0
    discount = _discount(interest_rate, time_to_expiry)

    root_t = np.sqrt(time_to_expiry)
    sigma_root_t = _sigma_root_t(root_t, lognormal_vol)
    if spot > LARGE * strike or spot < SMALL * strike or sigma_root_t > LARGE:
        return 0.0

    d2 = _d_density(spot, strike, root_t, sigma_root_t, lognormal_vol, cost_of_carry, -0.5)
    n = norm.pdf(d2)
    res = 0.0 if n < SMALL else -discount * n / spot / sigma_root_t
    return -np.inf if np.isnan(res) else res


# ---------------------------------------------------------------------------
# Theta
# ---------------------------------------------------------------------------
@ieee_float
def theta(spot: float, strike: float, time_to_expiry: float, lognormal_vol: float,
          interest_rate: float, cost_of_carry: float, is_call: bool) -> float:
    """Minus the derivative of the price with respect to time to expiry."""
    _check_inputs(spot, strike, time_to_expiry, lognormal_vol, interest_rate, cost_of_carry)

    if abs(interest_rate) > LARGE:
        return 0.0
    discount = _discount(interest_rate, time_to_expiry)

    if cost_of_carry > LARGE:
        return -np.inf if is_call else 0.0
    if -cost_of_carry > LARGE:
        res = 0.0 if is_call else (strike * discount * interest_rate if discount > SMALL else 0.0)
        return discount if np.isnan(res) else res

    if spot > LARGE * strike:
        tmp = np.exp((cost_of_carry - interest_rate) * time_to_expiry)
        if is_call:
            res = -(cost_of_carry - interest_rate) * spot * tmp if tmp > SMALL else 0.0
        else:
            res = 0.0
        return tmp if np.isnan(res) else res
    if LARGE * spot < strike:
        res = 0.0 if is_call else (strike * discount * interest_rate if discount > SMALL else 0.0)
        return discount if np.isnan(res) else res
    if spot > LARGE and strike > LARGE:
        return np.inf

    root_t = np.sqrt(time_to_expiry)
    sigma_root_t = _sigma_root_t(root_t, lognormal_vol)
    sign = 1.0 if is_call else -1.0

    if abs(spot - strike) < SMALL or sigma_root_t > LARGE:
        d1 = _d_drift(cost_of_carry, lognormal_vol, root_t, 0.5, guard="small", signed=True)
        d2 = _d_drift(cost_of_carry, lognormal_vol, root_t, -0.5, guard="small", signed=True)
    elif sigma_root_t < SMALL:
        d1 = (np.log(spot / strike) / root_t + cost_of_carry * root_t) / lognormal_vol
        d2 = d1
    else:
        if abs(cost_of_carry) < SMALL and lognormal_vol < SMALL:
            tmp = root_t
        elif abs(cost_of_carry) < SMALL and root_t > LARGE:
            tmp = 1.0 / lognormal_vol
        else:
            tmp = cost_of_carry / lognormal_vol * root_t
        d1 = np.log(spot / strike) / sigma_root_t + tmp + 0.5 * sigma_root_t
        d2 = d1 - sigma_root_t

    n = norm.pdf(d1)
    rescaled_spot = np.exp((cost_of_carry - interest_rate) * time_to_expiry) * spot
    rescaled_strike = discount * strike
    n_spot = norm.cdf(sign * d1)
    n_strike = norm.cdf(sign * d2)
    carry = cost_of_carry - interest_rate
    if n_spot < SMALL:
        spot_term = 0.0
    elif np.isnan(rescaled_spot):
        spot_term = -sign * np.sign(carry) * rescaled_spot
    else:
        spot_term = -sign * carry * rescaled_spot * n_spot
    if n_strike < SMALL:
        strike_term = 0.0
    elif np.isnan(rescaled_spot):
        strike_term = sign * (-np.sign(interest_rate) * discount)
    else:
        strike_term = sign * (-interest_rate * rescaled_strike * n_strike)

    coef = rescaled_spot * lognormal_vol / root_t
    if np.isnan(coef):
        coef = 1.0
    dl_term = 0.0 if n < SMALL else -0.5 * n * coef

    res = dl_term + spot_term + strike_term
    return 0.0 if np.isnan(res) else res


# ---------------------------------------------------------------------------
# Vega family
# ---------------------------------------------------------------------------
@ieee_float
def vega(spot: float, strike: float, time_to_expiry: float, lognormal_vol: float,
         interest_rate: float, cost_of_carry: float) -> float:
    """dP/d(sigma), identical for calls and puts."""
    _check_inputs(spot, strike, time_to_expiry, lognormal_vol, interest_rate, cost_of_carry)

    coef, beyond = _carry_coef(interest_rate, cost_of_carry, time_to_expiry)
    if beyond == 1:
        return 0.0 if cost_of_carry > LARGE else np.inf
    if beyond == -1:
        return 0.0

    root_t = np.sqrt(time_to_expiry)
    sigma_root_t = _sigma_root_t(root_t, lognormal_vol)

    if _near(spot, strike) or sigma_root_t > LARGE:
        d1 = _d_drift(cost_of_carry, lognormal_vol, root_t, 0.5, guard="small")
    elif sigma_root_t < SMALL or spot > LARGE * strike or strike > LARGE * spot:
        d1 = _d_vanishing_vol(spot, strike, cost_of_carry, lognormal_vol, root_t)
    else:
        d1 = _d_general(spot, strike, sigma_root_t, cost_of_carry, lognormal_vol, root_t, 0.5)
    n = norm.pdf(d1)
    res = 0.0 if n < SMALL else coef * n * spot * root_t
    return np.inf if np.isnan(res) else res


@ieee_float
def vanna(spot: float, strike: float, time_to_expiry: float, lognormal_vol: float,
          interest_rate: float, cost_of_carry: float) -> float:
    """d2P/dS d(sigma) = -e^{(b-r)T} n(d1) d2 / sigma."""
    _check_inputs(spot, strike, time_to_expiry, lognormal_vol, interest_rate, cost_of_carry)

    root_t = np.sqrt(time_to_expiry)
    sigma_root_t = _sigma_root_t(root_t, lognormal_vol)
    d1, d2 = _d_pair_snapped(spot, strike, root_t, sigma_root_t, lognormal_vol, cost_of_carry)

    coef, beyond = _carry_coef(interest_rate, cost_of_carry, time_to_expiry)
    if beyond == 1:
        if cost_of_carry > LARGE:
            return 0.0
        return -np.inf if d2 >= 0.0 else np.inf
    if beyond == -1:
        return 0.0

    n = norm.pdf(d1)
    tmp = d2 * coef / lognormal_vol
    if np.isnan(tmp):
        tmp = coef
    return 0.0 if n < SMALL else -n * tmp


@ieee_float
def dual_vanna(spot: float, strike: float, time_to_expiry: float, lognormal_vol: float,
               interest_rate: float, cost_of_carry: float) -> float:
    """d2P/dK d(sigma) = e^{-rT} n(d2) d1 / sigma."""
    _check_inputs(spot, strike, time_to_expiry, lognormal_vol, interest_rate, cost_of_carry)

    root_t = np.sqrt(time_to_expiry)
    sigma_root_t = _sigma_root_t(root_t, lognormal_vol)
    d1, d2 = _d_pair_snapped(spot, strike, root_t, sigma_root_t, lognormal_vol, cost_of_carry)

    coef = np.exp(-interest_rate * time_to_expiry)
    if coef < SMALL:
        return 0.0
    if np.isnan(coef):
        coef = 1.0

    n = norm.pdf(d2)
    tmp = d1 * coef / lognormal_vol
    if np.isnan(tmp):
        tmp = coef
    return 0.0 if n < SMALL else n * tmp


@ieee_float
def vomma(spot: float, strike: float, time_to_expiry: float, lognormal_vol: float,
          interest_rate: float, cost_of_carry: float) -> float:
    """d2P/d(sigma)2 = vega d1 d2 / sigma."""
    _check_inputs(spot, strike, time_to_expiry, lognormal_vol, interest_rate, cost_of_carry)

    root_t = np.sqrt(time_to_expiry)
    sigma_root_t = _sigma_root_t(root_t, lognormal_vol)
    if spot > LARGE * strike or strike > LARGE * spot or root_t < SMALL:
        return 0.0

    if _near(spot, strike) or root_t > LARGE:
        if abs(cost_of_carry) < SMALL and lognormal_vol < SMALL:
            cost_over_vol = np.sign(cost_of_carry)
        else:
            cost_over_vol = cost_of_carry / lognormal_vol
        tmp_d1 = (cost_over_vol + 0.5 * lognormal_vol) * root_t
        tmp_mod = ((cost_over_vol * cost_over_vol / lognormal_vol - 0.25 * lognormal_vol)
                   * root_t * time_to_expiry)
        d1 = 0.0 if np.isnan(tmp_d1) else tmp_d1
        d1d2_mod = 1.0 if np.isnan(tmp_mod) else tmp_mod
    elif lognormal_vol > LARGE:
        d1 = 0.5 * sigma_root_t
        d1d2_mod = -0.25 * sigma_root_t * time_to_expiry
    elif lognormal_vol < SMALL:
        tmp_d1 = (np.log(spot / strike) / root_t + cost_of_carry * root_t) / lognormal_vol
        d1 = 1.0 if np.isnan(tmp_d1) else tmp_d1
        d1d2_mod = d1 * d1 * root_t / lognormal_vol
    else:
        tmp = np.log(spot / strike) / sigma_root_t + cost_of_carry * root_t / lognormal_vol
        d1 = tmp + 0.5 * sigma_root_t
        d1d2_mod = (tmp * tmp - 0.25 * sigma_root_t * sigma_root_t) * root_t / lognormal_vol

    coef, beyond = _carry_coef(interest_rate, cost_of_carry, time_to_expiry)
    if beyond == 1:
        if cost_of_carry > LARGE:
            return 0.0
        return np.inf if d1d2_mod >= 0.0 else -np.inf
    if beyond == -1:
        return 0.0

    n = norm.pdf(d1)
    tmp = d1d2_mod * spot * coef
    if np.isnan(tmp):
        tmp = coef
    return 0.0 if n < SMALL else n * tmp


# ---------------------------------------------------------------------------
# Rate sensitivities
# ---------------------------------------------------------------------------
@ieee_float
def rho(spot: float, strike: float, time_to_expiry: float, lognormal_vol: float,
        interest_rate: float, cost_of_carry: float, is_call: bool) -> float:
    """dP/dr with the cost of carry moving one for one with the rate (b = r - q)."""
    _check_inputs(spot, strike, time_to_expiry, lognormal_vol, interest_rate, cost_of_carry)

    if -interest_rate > LARGE:
        return np.inf if is_call else -np.inf
    if interest_rate > LARGE:
        return 0.0
    discount = _discount(interest_rate, time_to_expiry)

    if LARGE * spot < strike or time_to_expiry > LARGE:
        res = 0.0 if is_call else -discount * strike * time_to_expiry
        return -discount if np.isnan(res) else res
    if spot > LARGE * strike or time_to_expiry < SMALL:
        res = discount * strike * time_to_expiry if is_call else 0.0
        return discount if np.isnan(res) else res

    sign = 1.0 if is_call else -1.0
    root_t = np.sqrt(time_to_expiry)
    sigma_root_t = lognormal_vol * root_t
    rescaled_spot = spot * np.exp(cost_of_carry * time_to_expiry)

    if _near(spot, strike) or sigma_root_t > LARGE:
        d2 = _d_drift(cost_of_carry, lognormal_vol, root_t, -0.5)
    else:
        if sigma_root_t < SMALL:
            if is_call:
                return discount * strike * time_to_expiry if rescaled_spot > strike else 0.0
            return -discount * strike * time_to_expiry if rescaled_spot < strike else 0.0
        d2 = _d_general(spot, strike, sigma_root_t, cost_of_carry, lognormal_vol, root_t, -0.5)
    n = norm.cdf(sign * d2)
    res = 0.0 if n < SMALL else sign * discount * strike * time_to_expiry * n
    return sign * discount if np.isnan(res) else res


@ieee_float
def carry_rho(spot: float, strike: float, time_to_expiry: float, lognormal_vol: float,
              interest_rate: float, cost_of_carry: float, is_call: bool) -> float:
    """dP/db with the interest rate held fixed."""
    _check_inputs(spot, strike, time_to_expiry, lognormal_vol, interest_rate, cost_of_carry)

    coef, beyond = _carry_coef(interest_rate, cost_of_carry, time_to_expiry)
    if beyond == 1:
        if is_call:
            return np.inf
        return 0.0 if cost_of_carry > LARGE else -np.inf
    if beyond == -1:
        return 0.0

    if spot > LARGE * strike or time_to_expiry > LARGE:
        res = coef * spot * time_to_expiry if is_call else 0.0
        return coef if np.isnan(res) else res
    if LARGE * spot < strike or time_to_expiry < SMALL:
        res = 0.0 if is_call else -coef * spot * time_to_expiry
        return -coef if np.isnan(res) else res

    sign = 1.0 if is_call else -1.0
    root_t = np.sqrt(time_to_expiry)
    sigma_root_t = lognormal_vol * root_t
    rescaled_spot = spot * np.exp(cost_of_carry * time_to_expiry)

    if _near(spot, strike) or sigma_root_t > LARGE:
        d1 = _d_drift(cost_of_carry, lognormal_vol, root_t, 0.5)
    else:
        if sigma_root_t < SMALL:
            if is_call:
                return coef * time_to_expiry * spot if rescaled_spot > strike else 0.0
            return -coef * time_to_expiry * spot if rescaled_spot < strike else 0.0
        d1 = _d_general(spot, strike, sigma_root_t, cost_of_carry, lognormal_vol, root_t, 0.5)
    n = norm.cdf(sign * d1)
    res = 0.0 if n < SMALL else sign * coef * time_to_expiry * spot * n
    return sign * coef if np.isnan(res) else res
