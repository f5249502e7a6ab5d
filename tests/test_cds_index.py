"""
================================================================================
UNIT TESTS: INTRINSIC CDS INDEX VALUATION AND RISK
================================================================================
Run: pytest tests/test_cds_index.py -v
================================================================================
"""

import numpy as np
import pytest

from qfanalytics.credit import (
    AnalyticCdsPricer, CdsAnalytic, CdsIndexCalculator, CdsPriceType, IntrinsicIndexDataBundle,
)

COUPON = 0.01
CASH_SETTLE = 3.0 / 365


@pytest.fixture
def pricer():
    return AnalyticCdsPricer()


@pytest.fixture
def calc(pricer):
    return CdsIndexCalculator(pricer)


@pytest.fixture
def index_cds(pillar_cds):
    return pillar_cds[2]


def _single_name_sum(pricer, cds, yc, data, price_type=CdsPriceType.CLEAN):
    return sum(data.weights[i] * pricer.pv(cds.with_recovery_rate(data.recovery_rates[i]), yc,
                                           data.credit_curves[i], COUPON, price_type)
               for i in data.alive())


class TestDataBundle:
    def test_defaults(self, index_data):
        np.testing.assert_allclose(index_data.weights, np.full(5, 0.2))
        assert index_data.index_factor == pytest.approx(1.0)
        assert index_data.index_size == 5
        assert index_data.num_defaults == 0
        assert index_data.lgd(4) == pytest.approx(0.75)

    def test_with_default(self, index_data):
        d = index_data.with_default(1, 3)
        assert d.index_factor == pytest.approx(0.6)
        assert d.is_defaulted(1) and not d.is_defaulted(0)
        np.testing.assert_array_equal(d.alive(), [0, 2, 4])
        assert not index_data.is_defaulted(1)
        with pytest.raises(ValueError):
            d.with_default(3)
        with pytest.raises(IndexError):
            d.with_default(5)

    def test_all_defaulted(self, index_data):
        assert index_data.with_default(0, 1, 2, 3, 4).all_defaulted()

    def test_invalid(self, credit_curve):
        curves = [credit_curve, credit_curve]
        with pytest.raises(ValueError):
            IntrinsicIndexDataBundle([], [])
        with pytest.raises(ValueError):
            IntrinsicIndexDataBundle(curves, [0.4])
        with pytest.raises(ValueError):
            IntrinsicIndexDataBundle(curves, [0.4, 1.2])
        with pytest.raises(ValueError):
            IntrinsicIndexDataBundle(curves, [0.4, 0.4], weights=[0.6, -0.1])
        with pytest.raises(ValueError):
            IntrinsicIndexDataBundle([credit_curve, None], [0.4, 0.4])

    def test_missing_curve_allowed_for_defaulted_name(self, credit_curve):
        d = IntrinsicIndexDataBundle([credit_curve, None], [0.4, 0.4], defaulted=[False, True])
        assert d.index_factor == pytest.approx(0.5)

    def test_replacements(self, index_data, credit_curve):
        d = index_data.with_recovery_rates(np.zeros(5))
        assert d.lgd(2) == 1.0
        d = index_data.with_credit_curves([credit_curve] * 5)
        assert d.credit_curves[4] is credit_curve


class TestIndexValue:
    def test_puf_is_weighted_sum_of_names(self, calc, pricer, index_cds, yield_curve, index_data):
        expected = _single_name_sum(pricer, index_cds, yield_curve, index_data)
        assert calc.index_puf(index_cds, COUPON, yield_curve, index_data) == pytest.approx(
            expected, rel=1e-12)
        dirty = _single_name_sum(pricer, index_cds, yield_curve, index_data, CdsPriceType.DIRTY)
        assert calc.index_pv(index_cds, COUPON, yield_curve, index_data,
                             CdsPriceType.DIRTY) == pytest.approx(dirty, rel=1e-12)

    def test_puf_after_defaults(self, calc, pricer, index_cds, yield_curve, index_data):
        data = index_data.with_default(0, 4)
        pv = calc.index_pv(index_cds, COUPON, yield_curve, data)
        assert pv == pytest.approx(_single_name_sum(pricer, index_cds, yield_curve, data),
                                   rel=1e-12)
        assert calc.index_puf(index_cds, COUPON, yield_curve, data) == pytest.approx(pv / 0.6)

    def test_valuation_time(self, calc, pricer, index_cds, yield_curve, index_data):
        vt = 0.5
        expected = sum(index_data.weights[i] * pricer.annuity(
            index_cds, yield_curve, index_data.credit_curves[i], CdsPriceType.CLEAN, vt)
            for i in index_data.alive())
        assert calc.index_annuity(index_cds, yield_curve, index_data,
                                  valuation_time=vt) == pytest.approx(expected, rel=1e-12)
        pv = calc.index_pv(index_cds, COUPON, yield_curve, index_data)
        pv_settle = calc.index_pv(index_cds, COUPON, yield_curve, index_data,
                                  valuation_time=CASH_SETTLE)
        assert pv_settle == pytest.approx(pv, rel=1e-12)

    def test_intrinsic_spread_prices_to_par(self, calc, index_cds, yield_curve, index_data):
        s = calc.intrinsic_index_spread(index_cds, yield_curve, index_data)
        assert calc.index_puf(index_cds, s, yield_curve, index_data) == pytest.approx(0.0, abs=1e-14)

    def test_average_spread(self, calc, pricer, index_cds, yield_curve, index_data):
        expected = sum(index_data.weights[i] * pricer.par_spread(
            index_cds.with_recovery_rate(index_data.recovery_rates[i]), yield_curve,
            index_data.credit_curves[i]) for i in index_data.alive())
        assert calc.average_spread(index_cds, yield_curve, index_data) == pytest.approx(
            expected, rel=1e-12)
        # the intrinsic spread weights each name by its annuity instead
        intrinsic = calc.intrinsic_index_spread(index_cds, yield_curve, index_data)
        assert intrinsic == pytest.approx(expected, rel=0.1)
        assert intrinsic != pytest.approx(expected, rel=1e-8)

    def test_implied_index_curve(self, calc, pricer, pillar_cds, yield_curve, index_data):
        data = index_data.with_default(3)
        curve = calc.implied_index_curve(pillar_cds, COUPON, yield_curve, data)
        for c in pillar_cds:
            expected = calc.index_pv(c, COUPON, yield_curve, data) / data.index_factor
            assert pricer.pv(c, yield_curve, curve, COUPON) == pytest.approx(expected, abs=1e-12)

    def test_fully_defaulted_index(self, calc, pillar_cds, index_cds, yield_curve, index_data):
        data = index_data.with_default(0, 1, 2, 3, 4)
        assert calc.index_pv(index_cds, COUPON, yield_curve, data) == 0.0
        with pytest.raises(ValueError):
            calc.index_puf(index_cds, COUPON, yield_curve, data)
        with pytest.raises(ValueError):
            calc.intrinsic_index_spread(index_cds, yield_curve, data)
        with pytest.raises(ValueError):
            calc.average_spread(index_cds, yield_curve, data)
        with pytest.raises(ValueError):
            calc.implied_index_curve(pillar_cds, COUPON, yield_curve, data)


class TestForwardIndex:
    TTE = 0.4

    @pytest.fixture
    def fwd_cds(self):
        return CdsAnalytic.make(self.TTE + 2.0 / 365, CASH_SETTLE, self.TTE, 5.0)

    def test_expected_default_settlement(self, calc, index_data):
        data = index_data.with_default(4)
        expected = 0.2 * 0.75
        for i in range(4):
            q = data.credit_curves[i].survival_probability(self.TTE)
            expected += 0.2 * data.lgd(i) * (1.0 - q)
        assert calc.expected_default_settlement_value(self.TTE, data) == pytest.approx(expected)
        assert calc.expected_default_settlement_value(0.0, index_data) == 0.0

    def test_default_adjusted_value(self, calc, fwd_cds, yield_curve, index_data):
        value = calc.default_adjusted_forward_index_value(fwd_cds, self.TTE, yield_curve,
                                                          COUPON, index_data)
        pv = calc.index_pv(fwd_cds, COUPON, yield_curve, index_data)
        settle = calc.expected_default_settlement_value(self.TTE, index_data)
        assert value == pytest.approx(pv + settle, rel=1e-12)

    def test_default_adjusted_spread(self, calc, fwd_cds, yield_curve, index_data):
        adjusted = calc.default_adjusted_forward_spread(fwd_cds, self.TTE, yield_curve, index_data)
        plain = calc.intrinsic_index_spread(fwd_cds, yield_curve, index_data)
        assert adjusted > plain
        # at the adjusted spread the default-adjusted value is zero
        value = calc.default_adjusted_forward_index_value(fwd_cds, self.TTE, yield_curve,
                                                          adjusted, index_data)
        assert value == pytest.approx(0.0, abs=1e-14)

    def test_requires_forward_start(self, calc, index_cds, fwd_cds, yield_curve, index_data):
        with pytest.raises(ValueError):
            calc.default_adjusted_forward_spread(index_cds, self.TTE, yield_curve, index_data)
        with pytest.raises(ValueError):
            calc.default_adjusted_forward_index_value(fwd_cds, -0.1, yield_curve, COUPON,
                                                      index_data)


class TestSensitivities:
    def test_parallel_ir01(self, calc, index_cds, yield_curve, index_data):
        ir01 = calc.parallel_ir01(index_cds, COUPON, yield_curve, index_data)
        bumped = yield_curve.with_rates(yield_curve.knot_zero_rates + 1e-4)
        expected = (calc.index_pv(index_cds, COUPON, bumped, index_data, CdsPriceType.DIRTY)
                    - calc.index_pv(index_cds, COUPON, yield_curve, index_data, CdsPriceType.DIRTY))
        assert ir01 == pytest.approx(expected, rel=1e-12)
        buckets = calc.bucketed_ir01(index_cds, COUPON, yield_curve, index_data)
        assert buckets.shape == (5,)
        # a 5y index does not see the 10y node
        assert buckets[4] == pytest.approx(0.0, abs=1e-15)
        assert buckets.sum() == pytest.approx(ir01, rel=5e-3)

    def test_recovery01(self, calc, index_cds, yield_curve, index_data):
        data = index_data.with_default(2)
        rec01 = calc.recovery01(index_cds, COUPON, yield_curve, data)
        assert rec01[2] == 0.0
        assert np.all(rec01[data.alive()] < 0.0)
        zero_rr = calc.index_prot_leg(index_cds, yield_curve, data.with_recovery_rates(np.zeros(5)))
        assert rec01.sum() == pytest.approx(-zero_rr, rel=1e-12)
        # value is linear in each recovery rate
        rr = data.recovery_rates.copy()
        rr[0] += 0.01
        bumped = calc.index_pv(index_cds, COUPON, yield_curve, data.with_recovery_rates(rr))
        base = calc.index_pv(index_cds, COUPON, yield_curve, data)
        assert (bumped - base) / 0.01 == pytest.approx(rec01[0], rel=1e-8)

    def test_jump_to_default(self, calc, pricer, index_cds, yield_curve, index_data):
        data = index_data.with_default(1)
        jtd = calc.jump_to_default(index_cds, COUPON, yield_curve, data)
        assert jtd[1] == 0.0
        for i in data.alive():
            pv_i = pricer.pv(index_cds, yield_curve, data.credit_curves[i], COUPON)
            assert jtd[i] == pytest.approx(data.weights[i] * (data.lgd(i) - pv_i), rel=1e-12)
        # name 0 shares the index recovery rate: its default removes its PV and pays its loss
        after = calc.index_pv(index_cds, COUPON, yield_curve, data.with_default(0))
        before = calc.index_pv(index_cds, COUPON, yield_curve, data)
        assert after + 0.2 * data.lgd(0) - before == pytest.approx(jtd[0], rel=1e-10)
