"""
================================================================================
UNIT TESTS: SABR SMILE CALIBRATION
================================================================================
Run: pytest tests/test_smile_fitter.py -v
================================================================================
"""

import numpy as np
import pandas as pd
import pytest

from qfanalytics.calibration import SabrModelFitter
from qfanalytics.models.sabr_hagan import DEFAULT as HAGAN


@pytest.fixture
def exact_fitter(smile_market):
    m = smile_market
    vols = HAGAN.volatility_vector(m["forward"], m["strikes"], m["expiry"], m["truth"])
    errors = np.full(len(vols), 1e-4)
    return SabrModelFitter(m["forward"], m["strikes"], m["expiry"], vols, errors)


class TestSabrModelFitter:
    @pytest.mark.parametrize("start", [
        [0.03, 0.4, 0.1, 0.3],
        [0.05, 0.6, -0.5, 0.1],
    ])
    def test_recovers_exact_smile(self, exact_fitter, smile_market, start):
        result = exact_fitter.solve(start)
        assert result.chi_sq < 1e-10
        np.testing.assert_allclose(result.model_parameters, smile_market["truth"].parameters,
                                   atol=1e-6)

    def test_fixed_beta(self, exact_fitter, smile_market):
        result = exact_fitter.solve([0.03, 0.5, 0.0, 0.3], fixed=[False, True, False, False])
        assert result.model_parameters[1] == 0.5
        assert result.chi_sq < 1e-10
        np.testing.assert_allclose(result.model_parameters, smile_market["truth"].parameters,
                                   rtol=1e-6, atol=1e-8)
        sens = result.model_parameter_sensitivity_to_data
        assert sens.shape == (4, len(smile_market["strikes"]))
        np.testing.assert_array_equal(sens[1], np.zeros(sens.shape[1]))

    def test_fixed_beta_at_wrong_value(self, exact_fitter):
        result = exact_fitter.solve([0.03, 0.9, 0.0, 0.3], fixed=[False, True, False, False])
        assert result.model_parameters[1] == 0.9
        assert result.chi_sq > 0.0

    def test_sensitivity_to_market_data(self, smile_market):
        m = smile_market
        vols = HAGAN.volatility_vector(m["forward"], m["strikes"], m["expiry"], m["truth"])
        errors = np.full(len(vols), 1e-4)
        fixed = [False, True, False, False]
        start = [0.05, 0.5, -0.3, 0.2]
        base = SabrModelFitter(m["forward"], m["strikes"], m["expiry"], vols, errors).solve(
            start, fixed)
        bump, j = 1e-5, 4
        bumped_vols = vols.copy()
        bumped_vols[j] += bump
        bumped = SabrModelFitter(m["forward"], m["strikes"], m["expiry"], bumped_vols,
                                 errors).solve(start, fixed)
        fd = (bumped.model_parameters - base.model_parameters) / bump
        np.testing.assert_allclose(base.model_parameter_sensitivity_to_data[:, j], fd,
                                   rtol=1e-3, atol=1e-6)

    def test_noisy_smile(self, smile_market):
        m = smile_market
        rng = np.random.default_rng(42)
        vols = HAGAN.volatility_vector(m["forward"], m["strikes"], m["expiry"], m["truth"])
        noisy = vols + rng.normal(0.0, 1e-3, len(vols))
        fitter = SabrModelFitter(m["forward"], m["strikes"], m["expiry"], noisy,
                                 np.full(len(vols), 1e-3))
        result = fitter.solve([0.03, 0.5, 0.0, 0.3], fixed=[False, True, False, False])
        alpha, _, rho, nu = result.model_parameters
        assert alpha == pytest.approx(0.05, rel=0.05)
        assert rho == pytest.approx(-0.3, abs=0.1)
        assert nu == pytest.approx(0.2, abs=0.1)
        assert result.chi_sq < 5 * len(vols)

    def test_smile_frame(self, exact_fitter):
        result = exact_fitter.solve([0.03, 0.5, 0.0, 0.3], fixed=[False, True, False, False])
        frame = exact_fitter.smile_frame(result)
        assert isinstance(frame, pd.DataFrame)
        assert list(frame.columns) == ["strike", "market_vol", "model_vol",
                                       "residual", "weighted_residual"]
        assert len(frame) == len(exact_fitter.strikes)
        assert frame["residual"].abs().max() < 1e-8

    def test_transform_respects_fixed(self, exact_fitter):
        tr = exact_fitter.get_transform([0.03, 0.5, 0.0, 0.3], [True, False, False, True])
        assert tr.number_of_fitting_parameters == 2

    def test_invalid_start(self, exact_fitter):
        with pytest.raises(ValueError):
            exact_fitter.solve([0.03, 1.5, 0.0, 0.3])


class TestFitterValidation:
    STRIKES = np.array([0.01, 0.02, 0.03])
    VOLS = np.array([0.3, 0.25, 0.22])
    ERRORS = np.full(3, 1e-3)

    @pytest.mark.parametrize("forward,expiry,strikes,vols,errors", [
        (0.0, 1.0, STRIKES, VOLS, ERRORS),
        (0.02, 0.0, STRIKES, VOLS, ERRORS),
        (0.02, 1.0, np.array([]), np.array([]), np.array([])),
        (0.02, 1.0, STRIKES, VOLS[:2], ERRORS),
        (0.02, 1.0, STRIKES[::-1], VOLS, ERRORS),
        (0.02, 1.0, STRIKES, VOLS, np.zeros(3)),
    ])
    def test_invalid_inputs(self, forward, expiry, strikes, vols, errors):
        with pytest.raises(ValueError):
            SabrModelFitter(forward, strikes, expiry, vols, errors)

    def test_missing_model(self):
        with pytest.raises(ValueError):
            SabrModelFitter(0.02, self.STRIKES, 1.0, self.VOLS, self.ERRORS, model=None)


class TestJacobian:
    def test_analytic_jacobian_matches_finite_difference(self, exact_fitter, smile_market):
        p = np.asarray(smile_market["truth"].parameters, dtype=float)
        func = exact_fitter.model_value_function()
        analytic = exact_fitter.model_jacobian_function()(p)
        assert analytic.shape == (len(smile_market["strikes"]), 4)
        eps = 1e-6
        for j in range(4):
            up, down = p.copy(), p.copy()
            up[j] += eps
            down[j] -= eps
            fd = (func(up) - func(down)) / (2 * eps)
            np.testing.assert_allclose(analytic[:, j], fd, atol=2e-2)
            np.testing.assert_allclose(analytic[:, j], fd, rtol=1e-4, atol=1e-7)
