"""
================================================================================
UNIT TESTS: BLACK-SCHOLES FORMULA REPOSITORY
================================================================================
Run: pytest tests/test_black_scholes.py -v
================================================================================
"""

import itertools

import numpy as np
import pytest

from qfanalytics.pricing import black, black_scholes as bs

S, K, T, VOL, R, B = 100.0, 95.0, 0.75, 0.3, 0.03, 0.01

GREEKS_WITH_SIDE = (bs.price, bs.delta, bs.dual_delta, bs.theta, bs.rho, bs.carry_rho)
GREEKS = (bs.gamma, bs.dual_gamma, bs.cross_gamma, bs.vega, bs.vanna, bs.dual_vanna, bs.vomma)


def _fd(func, x, eps):
    return (func(x + eps) - func(x - eps)) / (2 * eps)


@pytest.fixture
def args():
    return S, K, T, VOL, R, B


class TestPrice:
    def test_put_call_parity(self, args):
        call = bs.price(*args, True)
        put = bs.price(*args, False)
        assert call - put == pytest.approx(S * np.exp((B - R) * T) - K * np.exp(-R * T), abs=1e-10)

    def test_matches_discounted_black(self, args):
        forward = S * np.exp(B * T)
        expected = np.exp(-R * T) * black.price(forward, K, T, VOL, True)
        assert bs.price(*args, True) == pytest.approx(expected, rel=1e-12)

    def test_zero_vol(self):
        value = bs.price(S, K, T, 0.0, R, B, True)
        expected = np.exp(-R * T) * (S * np.exp(B * T) - K)
        assert value == pytest.approx(expected)
        assert bs.price(S, K, T, 0.0, R, B, False) == 0.0

    @pytest.mark.parametrize("bad", [
        (-1.0, K, T, VOL, R, B), (S, -1.0, T, VOL, R, B), (S, K, -1.0, VOL, R, B),
        (S, K, T, -0.3, R, B), (S, K, T, VOL, np.nan, B), (S, K, T, VOL, R, np.nan),
    ])
    def test_invalid_inputs(self, bad):
        with pytest.raises(ValueError):
            bs.price(*bad, True)
        with pytest.raises(ValueError):
            bs.vega(*bad)


class TestNeverNan:
    """Every repository function returns a limiting value on extreme inputs."""

    SPOTS = [0.0, 1e-12, 100.0, 1e12, np.inf]
    STRIKES = [0.0, 1e-12, 100.0, 1e12, np.inf]
    TIMES = [0.0, 1e-12, 4.5, 1e12, np.inf]
    VOLS = [0.0, 1e-12, 0.2, 1e12, np.inf]
    RATES = [-np.inf, -1e12, -1e-12, 0.0, 1e-12, 0.03, 1e12, np.inf]
    CARRIES = [-np.inf, -1e12, -1e-12, 0.0, 1e-12, 0.05, 1e12, np.inf]

    def _grid(self):
        return itertools.product(self.SPOTS, self.STRIKES, self.TIMES,
                                 self.VOLS, self.RATES, self.CARRIES)

    def test_price_non_negative(self):
        for point in self._grid():
            for is_call in (True, False):
                value = bs.price(*point, is_call)
                assert not np.isnan(value), point
                assert value >= 0.0, point

    def test_greeks(self):
        for point in self._grid():
            for func in GREEKS_WITH_SIDE[1:]:
                for is_call in (True, False):
                    assert not np.isnan(func(*point, is_call)), (func.__name__, point, is_call)
            for func in GREEKS:
                assert not np.isnan(func(*point)), (func.__name__, point)


class TestGreeks:
    @pytest.mark.parametrize("is_call", [True, False])
    def test_first_order(self, is_call):
        price = lambda s=S, k=K, t=T, v=VOL, r=R, b=B: bs.price(s, k, t, v, r, b, is_call)
        assert bs.delta(S, K, T, VOL, R, B, is_call) == pytest.approx(
            _fd(lambda x: price(s=x), S, 1e-4), rel=1e-7)
        assert bs.dual_delta(S, K, T, VOL, R, B, is_call) == pytest.approx(
            _fd(lambda x: price(k=x), K, 1e-4), rel=1e-7)
        assert bs.theta(S, K, T, VOL, R, B, is_call) == pytest.approx(
            -_fd(lambda x: price(t=x), T, 1e-6), rel=1e-6)
        assert bs.vega(S, K, T, VOL, R, B) == pytest.approx(
            _fd(lambda x: price(v=x), VOL, 1e-6), rel=1e-7)
        assert bs.rho(S, K, T, VOL, R, B, is_call) == pytest.approx(
            _fd(lambda x: price(r=x, b=B + x - R), R, 1e-6), rel=1e-6)
        assert bs.carry_rho(S, K, T, VOL, R, B, is_call) == pytest.approx(
            _fd(lambda x: price(b=x), B, 1e-6), rel=1e-6)

    def test_second_order(self):
        delta = lambda s=S, k=K, v=VOL: bs.delta(s, k, T, v, R, B, True)
        dual_delta = lambda k=K, v=VOL: bs.dual_delta(S, k, T, v, R, B, True)
        assert bs.gamma(S, K, T, VOL, R, B) == pytest.approx(
            _fd(lambda x: delta(s=x), S, 1e-4), rel=1e-6)
        assert bs.cross_gamma(S, K, T, VOL, R, B) == pytest.approx(
            _fd(lambda x: delta(k=x), K, 1e-4), rel=1e-6)
        assert bs.dual_gamma(S, K, T, VOL, R, B) == pytest.approx(
            _fd(lambda x: dual_delta(k=x), K, 1e-4), rel=1e-6)
        assert bs.vanna(S, K, T, VOL, R, B) == pytest.approx(
            _fd(lambda x: delta(v=x), VOL, 1e-6), rel=1e-6)
        assert bs.dual_vanna(S, K, T, VOL, R, B) == pytest.approx(
            _fd(lambda x: dual_delta(v=x), VOL, 1e-6), rel=1e-6)
        assert bs.vomma(S, K, T, VOL, R, B) == pytest.approx(
            _fd(lambda x: bs.vega(S, K, T, x, R, B), VOL, 1e-6), rel=1e-6)

    def test_zero_vol_steps(self):
        assert bs.delta(S, K, T, 0.0, R, B, True) == pytest.approx(np.exp((B - R) * T))
        assert bs.delta(S, K, T, 0.0, R, B, False) == 0.0
        assert bs.gamma(S, K, T, 0.0, R, B) == 0.0


class TestStrikeForDelta:
    @pytest.mark.parametrize("strike", [60.0, 95.0, 100.0, 140.0])
    @pytest.mark.parametrize("is_call", [True, False])
    def test_inverse_of_delta(self, strike, is_call):
        d = bs.delta(S, strike, T, VOL, R, B, is_call)
        recovered = bs.strike_for_delta(S, d, T, VOL, R, B, is_call)
        assert recovered == pytest.approx(strike, rel=1e-8)

    def test_out_of_range_delta(self):
        with pytest.raises(ValueError):
            bs.strike_for_delta(S, 1.5, T, VOL, R, B, True)
        with pytest.raises(ValueError):
            bs.strike_for_delta(S, 0.3, T, VOL, R, B, False)
