"""
================================================================================
UNIT TESTS: LOGGING, CONFIGURATION AND NUMERICAL HELPERS
================================================================================
Run: pytest tests/test_utils.py -v
================================================================================
"""

import dataclasses
import logging

import numpy as np
import pytest

from qfanalytics.config import DEFAULT_SABR_CONFIG, SabrConfig, SolverConfig
from qfanalytics.errors import CalibrationError, DomainLimitError, ParameterIndexError
from qfanalytics.utils import epsilon, epsilon_p, get_logger, ieee_float, timeit


class TestLogging:
    def test_handlers_added_once(self):
        first = get_logger("qfanalytics.tests.once")
        second = get_logger("qfanalytics.tests.once")
        assert first is second
        assert len(second.handlers) == 1

    def test_file_handler(self, tmp_path):
        log = get_logger("qfanalytics.tests.file", level="INFO", log_dir=str(tmp_path))
        assert log.level == logging.INFO
        assert len(log.handlers) == 2
        log.info("bootstrap finished")
        for h in log.handlers:
            h.flush()
        files = list(tmp_path.glob("qfanalytics_*.log"))
        assert len(files) == 1
        assert "bootstrap finished" in files[0].read_text()

    def test_timeit_logs_and_returns(self, caplog):
        @timeit
        def square(x):
            return x * x

        with caplog.at_level(logging.DEBUG, logger=__name__):
            assert square(3) == 9
        assert "completed in" in caplog.text
        assert square.__name__ == "square"


class TestConfig:
    def test_defaults(self):
        assert DEFAULT_SABR_CONFIG.rho_cutoff > 0.0
        assert SolverConfig().max_evaluations > 0

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            DEFAULT_SABR_CONFIG.rho_cutoff = 1e-3

    @pytest.mark.parametrize("cutoff", [0.0, -1e-5, 1.0])
    def test_invalid_cutoff(self, cutoff):
        with pytest.raises(ValueError):
            SabrConfig(rho_cutoff=cutoff)
        with pytest.raises(ValueError):
            SabrConfig(rho_cutoff_negative=cutoff)


class TestEpsilon:
    @pytest.mark.parametrize("x", [-0.5, -1e-3, 2e-5, 0.1, 3.0])
    def test_epsilon(self, x):
        assert epsilon(x) == pytest.approx(np.expm1(x) / x, rel=1e-12)

    def test_epsilon_at_zero(self):
        assert epsilon(0.0) == 1.0
        assert epsilon_p(0.0) == 0.5

    @pytest.mark.parametrize("x", [-1e-5, 1e-5])
    def test_series_continuous_at_switch(self, x):
        inside, outside = x * (1 - 1e-9), x * (1 + 1e-9)
        assert epsilon(inside) == pytest.approx(epsilon(outside), rel=1e-9)
        assert epsilon_p(inside) == pytest.approx(epsilon_p(outside), rel=1e-6)

    @pytest.mark.parametrize("x", [-0.7, -2e-6, 0.0, 3e-6, 0.4])
    def test_epsilon_p_is_derivative(self, x):
        h = 1e-4
        fd = (epsilon(x + h) - epsilon(x - h)) / (2 * h)
        assert epsilon_p(x) == pytest.approx(fd, rel=1e-6)


class TestIeeeFloat:
    def test_division_by_zero_is_inf(self):
        @ieee_float
        def ratio(a, b):
            return a / b

        assert ratio(1.0, 0.0) == np.inf
        assert ratio(-1, 0) == -np.inf
        assert ratio(a=3.0, b=2.0) == 1.5
        assert type(ratio(1.0, 2.0)) is float


class TestErrors:
    def test_taxonomy(self):
        assert issubclass(ParameterIndexError, ValueError)
        assert issubclass(ParameterIndexError, IndexError)
        assert issubclass(DomainLimitError, ArithmeticError)
        assert issubclass(CalibrationError, RuntimeError)
        assert not issubclass(DomainLimitError, ValueError)
