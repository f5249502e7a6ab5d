"""Shared fixtures for the analytics test-suite."""

import numpy as np
import pytest

from qfanalytics.credit import (
    CdsAnalytic, CreditCurveCalibrator, IntrinsicIndexDataBundle, IsdaCompliantYieldCurve,
)
from qfanalytics.models import SabrFormulaData


@pytest.fixture
def sabr_data():
    return SabrFormulaData.of(0.05, 0.5, -0.25, 0.4)


@pytest.fixture
def smile_market():
    """Exact Hagan smile for known parameters."""
    return {
        "forward": 0.03,
        "expiry": 7.0,
        "strikes": np.linspace(0.005, 0.10, 10),
        "truth": SabrFormulaData.of(0.05, 0.5, -0.3, 0.2),
    }


@pytest.fixture
def yield_curve():
    return IsdaCompliantYieldCurve([0.5, 1.0, 2.0, 5.0, 10.0],
                                   [0.010, 0.012, 0.015, 0.020, 0.025])


@pytest.fixture
def pillar_cds():
    step_in, cash_settle, acc_start = 1.0 / 365, 3.0 / 365, -0.05
    return [CdsAnalytic.make(step_in, cash_settle, acc_start, t)
            for t in (1.0, 3.0, 5.0, 7.0, 10.0)]


@pytest.fixture
def pillar_spreads():
    return np.array([0.0060, 0.0085, 0.0110, 0.0125, 0.0135])


@pytest.fixture
def credit_curve(pillar_cds, yield_curve, pillar_spreads):
    return CreditCurveCalibrator(pillar_cds, yield_curve).calibrate(pillar_spreads)


@pytest.fixture
def index_data(credit_curve):
    curves = [credit_curve.with_rates(credit_curve.knot_zero_rates * m)
              for m in (0.6, 0.9, 1.0, 1.4, 2.5)]
    recoveries = np.array([0.4, 0.4, 0.35, 0.4, 0.25])
    return IntrinsicIndexDataBundle(curves, recoveries)
