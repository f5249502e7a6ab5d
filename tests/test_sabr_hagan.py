"""
================================================================================
UNIT TESTS: HAGAN SABR VOLATILITY AND ITS ADJOINTS
================================================================================
Run: pytest tests/test_sabr_hagan.py -v
================================================================================
"""

import numpy as np
import pytest

from qfanalytics.config import SabrConfig
from qfanalytics.errors import DomainLimitError
from qfanalytics.models import SabrFormulaData, SabrHaganVolatilityFunctionProvider
from qfanalytics.models.sabr_hagan import ALPHA_ZERO_SENSITIVITY

FORWARD = 0.05
EXPIRY = 2.0


@pytest.fixture
def hagan():
    return SabrHaganVolatilityFunctionProvider()


def _bump_parameter(data, index, eps):
    up = data.with_parameter(index, data.parameter(index) + eps)
    down = data.with_parameter(index, data.parameter(index) - eps)
    return up, down


EDGE_CASES = {
    "beta_zero": SabrFormulaData.of(0.05, 0.0, -0.25, 0.4),
    "beta_one": SabrFormulaData.of(0.05, 1.0, -0.25, 0.4),
    "nu_zero": SabrFormulaData.of(0.05, 0.5, -0.25, 0.0),
    "rho_minus_one": SabrFormulaData.of(0.05, 0.5, -1.0, 0.4),
    "rho_one": SabrFormulaData.of(0.05, 0.5, 1.0, 0.4),
    "rho_near_one": SabrFormulaData.of(0.05, 0.5, 1.0 - 1e-7, 0.4),
    "small_alpha": SabrFormulaData.of(1e-4, 0.5, -0.25, 0.4),
}


class TestVolatility:
    def test_atm_level(self, hagan, sabr_data):
        vol = hagan.volatility(FORWARD, FORWARD, EXPIRY, sabr_data)
        # leading order alpha / F^(1 - beta)
        assert vol == pytest.approx(0.05 / FORWARD ** 0.5, rel=0.05)

    def test_skew_sign(self, hagan, sabr_data):
        low = hagan.volatility(FORWARD, 0.03, EXPIRY, sabr_data)
        high = hagan.volatility(FORWARD, 0.07, EXPIRY, sabr_data)
        assert low > high

    def test_continuous_across_atm(self, hagan, sabr_data):
        atm = hagan.volatility(FORWARD, FORWARD, EXPIRY, sabr_data)
        near = hagan.volatility(FORWARD, FORWARD * (1 + 1e-5), EXPIRY, sabr_data)
        assert near == pytest.approx(atm, rel=1e-4)

    def test_alpha_zero(self, hagan, sabr_data):
        assert hagan.volatility(FORWARD, 0.04, EXPIRY, sabr_data.with_alpha(0.0)) == 0.0

    def test_beta_one_branch_matches_general(self, hagan, sabr_data):
        lognormal = sabr_data.with_beta(1.0)
        almost = sabr_data.with_beta(1.0 - 1e-6)
        for k in (0.02, 0.045, 0.09):
            np.testing.assert_allclose(hagan.volatility(FORWARD, k, EXPIRY, lognormal),
                                       hagan.volatility(FORWARD, k, EXPIRY, almost),
                                       rtol=1e-4)

    def test_beta_zero_branch_close_to_general(self, hagan, sabr_data):
        normal = sabr_data.with_beta(0.0).with_alpha(0.01)
        almost = normal.with_beta(1e-6)
        np.testing.assert_allclose(hagan.volatility(FORWARD, 0.04, EXPIRY, normal),
                                   hagan.volatility(FORWARD, 0.04, EXPIRY, almost),
                                   rtol=1e-3)

    @pytest.mark.parametrize("data", [
        SabrFormulaData.of(0.05, 1.0, 1.0, 1.0),
        SabrFormulaData.of(0.05, 0.5, 1.0 - 1e-6, 0.4),
    ])
    def test_rho_one_large_z_raises(self, hagan, data):
        # forward ten times the strike puts z well above one
        forward, strike = 0.1, 0.01
        with pytest.raises(DomainLimitError):
            hagan.volatility(forward, strike, EXPIRY, data)
        with pytest.raises(DomainLimitError):
            hagan.volatility_adjoint(forward, strike, EXPIRY, data)
        with pytest.raises(DomainLimitError):
            hagan.volatility_adjoint2(forward, strike, EXPIRY, data)
        assert issubclass(DomainLimitError, ArithmeticError)

    def test_rho_one_small_z_finite(self, hagan):
        data = SabrFormulaData.of(0.05, 1.0, 1.0, 0.1)
        vol = hagan.volatility(0.05, 0.045, EXPIRY, data)
        assert np.isfinite(vol) and vol > 0.0

    def test_rho_minus_one_finite(self, hagan, sabr_data):
        data = sabr_data.with_rho(-1.0)
        for k in (0.02, 0.04, 0.07):
            vol = hagan.volatility(FORWARD, k, EXPIRY, data)
            assert np.isfinite(vol) and vol > 0.0

    def test_zero_strike_floored(self, hagan, sabr_data):
        vol = hagan.volatility(FORWARD, 0.0, EXPIRY, sabr_data)
        assert np.isfinite(vol) and vol > 0.0

    def test_zero_vol_of_vol(self, hagan, sabr_data):
        vol = hagan.volatility(FORWARD, 0.04, EXPIRY, sabr_data.with_nu(0.0))
        assert np.isfinite(vol) and vol > 0.0

    @pytest.mark.parametrize("strike", [0.02, FORWARD, 0.09])
    def test_lognormal_without_vol_of_vol_returns_alpha(self, hagan, strike):
        data = SabrFormulaData.of(0.3, 1.0, -0.25, 0.0)
        assert hagan.volatility(FORWARD, strike, EXPIRY, data) == 0.3
        assert hagan.volatility_adjoint(FORWARD, strike, EXPIRY, data).value == 0.3
        near = [data.with_nu(1e-6), data.with_beta(1.0 - 1e-6)]
        for d in near:
            assert hagan.volatility(FORWARD, strike, EXPIRY, d) == pytest.approx(0.3, rel=1e-5)

    @pytest.mark.parametrize("forward,strike,expiry", [
        (0.0, 0.04, 1.0),
        (-0.01, 0.04, 1.0),
        (0.05, -0.01, 1.0),
        (0.05, 0.04, -1.0),
    ])
    def test_invalid_inputs(self, hagan, sabr_data, forward, strike, expiry):
        with pytest.raises(ValueError):
            hagan.volatility(forward, strike, expiry, sabr_data)

    def test_wrong_data_type(self, hagan):
        with pytest.raises(ValueError):
            hagan.volatility(FORWARD, 0.04, EXPIRY, [0.05, 0.5, 0.0, 0.3])

    def test_volatility_vector(self, hagan, sabr_data):
        strikes = np.array([0.03, 0.05, 0.07])
        vols = hagan.volatility_vector(FORWARD, strikes, EXPIRY, sabr_data)
        expected = [hagan.volatility(FORWARD, k, EXPIRY, sabr_data) for k in strikes]
        np.testing.assert_allclose(vols, expected)

    def test_config_cutoff(self):
        provider = SabrHaganVolatilityFunctionProvider(SabrConfig(rho_cutoff=1e-3))
        assert provider.rho_cutoff == 1e-3


class TestRhoCutoff:
    """Both x(z) branches agree on either side of the rho -> 1 cutoff."""

    EPS = 1e-5
    STRIKE = 0.045

    @pytest.fixture
    def data(self):
        return SabrFormulaData.of(0.05, 0.5, 0.5, 0.3)

    def _pair(self, data):
        return data.with_rho(1.0 - 1.5 * self.EPS), data.with_rho(1.0 - 0.5 * self.EPS)

    def test_volatility(self, hagan, data):
        general, regular = self._pair(data)
        v_general = hagan.volatility(FORWARD, self.STRIKE, EXPIRY, general)
        v_regular = hagan.volatility(FORWARD, self.STRIKE, EXPIRY, regular)
        v_one = hagan.volatility(FORWARD, self.STRIKE, EXPIRY, data.with_rho(1.0))
        assert v_general == pytest.approx(v_regular, rel=2e-3)
        assert v_general == pytest.approx(v_one, abs=1e-5)
        assert v_regular == pytest.approx(v_one, abs=1e-5)

    def test_first_adjoint(self, hagan, data):
        general, regular = self._pair(data)
        d_general = hagan.volatility_adjoint(FORWARD, self.STRIKE, EXPIRY, general).derivatives
        d_regular = hagan.volatility_adjoint(FORWARD, self.STRIKE, EXPIRY, regular).derivatives
        scale = np.abs(d_general).max()
        np.testing.assert_allclose(d_regular, d_general, atol=2e-3 * scale)

    def test_second_adjoint(self, hagan, data):
        general, regular = self._pair(data)
        a_general = hagan.volatility_adjoint2(FORWARD, self.STRIKE, EXPIRY, general)
        a_regular = hagan.volatility_adjoint2(FORWARD, self.STRIKE, EXPIRY, regular)
        assert a_regular.value == pytest.approx(a_general.value, rel=2e-3)
        scale = np.abs(a_general.second).max()
        np.testing.assert_allclose(a_regular.second, a_general.second, atol=2e-3 * scale)


class TestAdjoint:
    @pytest.mark.parametrize("strike", [0.04, 0.07])
    def test_value_matches_volatility(self, hagan, sabr_data, strike):
        adj = hagan.volatility_adjoint(FORWARD, strike, EXPIRY, sabr_data)
        assert adj.value == pytest.approx(
            hagan.volatility(FORWARD, strike, EXPIRY, sabr_data), rel=1e-12)
        assert adj.derivatives.shape == (6,)

    @pytest.mark.parametrize("strike", [0.04, 0.07])
    def test_forward_strike_finite_difference(self, hagan, sabr_data, strike):
        adj = hagan.volatility_adjoint(FORWARD, strike, EXPIRY, sabr_data)
        eps = 1e-7
        d_f = (hagan.volatility(FORWARD + eps, strike, EXPIRY, sabr_data)
               - hagan.volatility(FORWARD - eps, strike, EXPIRY, sabr_data)) / (2 * eps)
        d_k = (hagan.volatility(FORWARD, strike + eps, EXPIRY, sabr_data)
               - hagan.volatility(FORWARD, strike - eps, EXPIRY, sabr_data)) / (2 * eps)
        np.testing.assert_allclose(adj.derivative(0), d_f, rtol=1e-5)
        np.testing.assert_allclose(adj.derivative(1), d_k, rtol=1e-5)

    @pytest.mark.parametrize("strike", [0.04, 0.07])
    def test_parameter_finite_difference(self, hagan, sabr_data, strike):
        adj = hagan.volatility_adjoint(FORWARD, strike, EXPIRY, sabr_data)
        eps = 1e-6
        for i in range(4):
            up, down = _bump_parameter(sabr_data, i, eps)
            fd = (hagan.volatility(FORWARD, strike, EXPIRY, up)
                  - hagan.volatility(FORWARD, strike, EXPIRY, down)) / (2 * eps)
            np.testing.assert_allclose(adj.derivative(2 + i), fd, rtol=1e-5, atol=1e-9)

    @pytest.mark.parametrize("data", EDGE_CASES.values(), ids=list(EDGE_CASES))
    @pytest.mark.parametrize("strike", [0.04, 0.07])
    def test_edge_case_finite_difference(self, hagan, data, strike):
        adj = hagan.volatility_adjoint(FORWARD, strike, EXPIRY, data)
        value = lambda f=FORWARD, k=strike, d=data: hagan.volatility_adjoint(f, k, EXPIRY, d).value
        eps = 1e-7
        np.testing.assert_allclose(
            adj.derivative(0), (value(f=FORWARD + eps) - value(f=FORWARD - eps)) / (2 * eps),
            rtol=1e-5)
        np.testing.assert_allclose(
            adj.derivative(1), (value(k=strike + eps) - value(k=strike - eps)) / (2 * eps),
            rtol=1e-5)
        for i in range(4):
            # the rho -> 1 value form does not vary with rho
            if i == SabrFormulaData.RHO and data.rho > 1.0 - 1e-5:
                continue
            p = data.parameter(i)
            h = min(1e-6, 1e-3 * p) if i == SabrFormulaData.ALPHA else 1e-6
            if data.is_allowed(i, p - h) and data.is_allowed(i, p + h):
                up, down = _bump_parameter(data, i, h)
                fd = (value(d=up) - value(d=down)) / (2 * h)
                np.testing.assert_allclose(adj.derivative(2 + i), fd, rtol=1e-5, atol=1e-9)
            else:
                h = 1e-5 if data.is_allowed(i, p + 1e-5) else -1e-5
                fd = (value(d=data.with_parameter(i, p + h)) - value()) / h
                np.testing.assert_allclose(adj.derivative(2 + i), fd, rtol=1e-3, atol=1e-6)

    def test_alpha_zero_sensitivity(self, hagan, sabr_data):
        data = sabr_data.with_alpha(0.0)
        off = hagan.volatility_adjoint(FORWARD, 0.04, EXPIRY, data)
        assert off.value == 0.0
        assert off.derivative(2) == ALPHA_ZERO_SENSITIVITY
        atm = hagan.volatility_adjoint(FORWARD, FORWARD, EXPIRY, data)
        assert atm.derivative(2) == pytest.approx(
            (1 + (2 - 3 * 0.25 ** 2) * 0.4 ** 2 / 24 * EXPIRY) / FORWARD ** 0.5)

    def test_model_adjoint_rows(self, hagan, sabr_data):
        strikes = np.array([0.03, 0.04, 0.07])
        jac = hagan.model_adjoint(FORWARD, strikes, EXPIRY, sabr_data)
        assert jac.shape == (3, 4)
        expected = hagan.volatility_adjoint(FORWARD, 0.04, EXPIRY, sabr_data).derivatives[2:]
        np.testing.assert_allclose(jac[1], expected)


class TestAdjoint2:
    @pytest.mark.parametrize("strike", [0.04, 0.07])
    def test_first_order_matches_adjoint(self, hagan, sabr_data, strike):
        first = hagan.volatility_adjoint(FORWARD, strike, EXPIRY, sabr_data)
        second = hagan.volatility_adjoint2(FORWARD, strike, EXPIRY, sabr_data)
        assert second.value == pytest.approx(first.value, rel=1e-10)
        np.testing.assert_allclose(second.derivatives, first.derivatives, rtol=1e-6, atol=1e-12)

    @pytest.mark.parametrize("strike", [0.04, 0.07])
    def test_hessian_finite_difference(self, hagan, sabr_data, strike):
        res = hagan.volatility_adjoint2(FORWARD, strike, EXPIRY, sabr_data)
        eps = 1e-7
        up_f = hagan.volatility_adjoint(FORWARD + eps, strike, EXPIRY, sabr_data).derivatives
        dn_f = hagan.volatility_adjoint(FORWARD - eps, strike, EXPIRY, sabr_data).derivatives
        up_k = hagan.volatility_adjoint(FORWARD, strike + eps, EXPIRY, sabr_data).derivatives
        dn_k = hagan.volatility_adjoint(FORWARD, strike - eps, EXPIRY, sabr_data).derivatives
        np.testing.assert_allclose(res.second[0, 0], (up_f[0] - dn_f[0]) / (2 * eps), rtol=1e-3)
        np.testing.assert_allclose(res.second[0, 1], (up_k[0] - dn_k[0]) / (2 * eps), rtol=1e-3)
        np.testing.assert_allclose(res.second[1, 1], (up_k[1] - dn_k[1]) / (2 * eps), rtol=1e-3)
        assert res.second[0, 1] == res.second[1, 0]

    def test_strike_floor_from_config(self, hagan, sabr_data):
        assert SabrConfig().adjoint2_min_strike == 1e-6
        floored = SabrHaganVolatilityFunctionProvider(SabrConfig(adjoint2_min_strike=1e-3))
        at_zero = floored.volatility_adjoint2(FORWARD, 0.0, EXPIRY, sabr_data)
        at_floor = hagan.volatility_adjoint2(FORWARD, 1e-3, EXPIRY, sabr_data)
        assert at_zero.value == pytest.approx(at_floor.value, rel=1e-14)
        np.testing.assert_allclose(at_zero.second, at_floor.second, rtol=1e-12)
        default_zero = hagan.volatility_adjoint2(FORWARD, 0.0, EXPIRY, sabr_data)
        assert default_zero.value != pytest.approx(at_zero.value, rel=1e-3)
        with pytest.raises(ValueError):
            SabrConfig(adjoint2_min_strike=0.0)

    def test_alpha_zero(self, hagan, sabr_data):
        res = hagan.volatility_adjoint2(FORWARD, 0.04, EXPIRY, sabr_data.with_alpha(0.0))
        assert res.value == 0.0
        np.testing.assert_array_equal(res.second, np.zeros((2, 2)))
