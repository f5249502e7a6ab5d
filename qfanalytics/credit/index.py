"""
================================================================================
CDS INDEX ANALYTICS
================================================================================
An index is valued intrinsically, as the weighted sum of its constituents
priced on their own credit curves with the index coupon and schedule:

    PtL_index = sum_{i alive} w_i LGD_i PtL_i(R = 0)
    A_index   = sum_{i alive} w_i A_i
    PV_index  = PtL_index - c A_index
    PUF       = PV_index / f,          f = sum_{i alive} w_i  (index factor)

Defaulted names leave the index. Before an option expiry they contribute
to the expected default settlement instead:

    D(t_e) = sum_i w_i LGD_i (1 - Q_i(t_e))      (1 for a defaulted name)

Sensitivities are bump-and-reprice: IR01 bumps zero rates by 1bp on the
dirty PV, recovery01 and jump-to-default are per constituent.
================================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from qfanalytics.credit.calibrator import CreditCurveCalibrator
from qfanalytics.credit.cds_analytic import CdsAnalytic
from qfanalytics.credit.isda_curve import IsdaCompliantCreditCurve, IsdaCompliantYieldCurve
from qfanalytics.credit.pricer import AnalyticCdsPricer, CdsPriceType
from qfanalytics.utils import get_logger

log = get_logger(__name__)

ONE_BP = 1e-4


@dataclass(frozen=True)
class IntrinsicIndexDataBundle:
    """
    Constituent data of a CDS index.

    Attributes:
        credit_curves: One credit curve per name
        recovery_rates: Recovery rate per name, in [0, 1]
        weights: Weight per name; equal weights summing to one by default
        defaulted: True for names that have already defaulted
    """
    credit_curves: Sequence[IsdaCompliantCreditCurve]
    recovery_rates: np.ndarray
    weights: Optional[np.ndarray] = None
    defaulted: Optional[np.ndarray] = None
    index_factor: float = field(init=False)

    def __post_init__(self):
        n = len(self.credit_curves)
        if n == 0:
            raise ValueError("an index needs at least one name")
        rr = np.asarray(self.recovery_rates, dtype=float)
        weights = np.full(n, 1.0 / n) if self.weights is None else np.asarray(self.weights, dtype=float)
        defaulted = np.zeros(n, dtype=bool) if self.defaulted is None \
            else np.asarray(self.defaulted, dtype=bool)
        if len(rr) != n or len(weights) != n or len(defaulted) != n:
            raise ValueError(
                f"{n} credit curves need {n} recovery rates, weights and default flags")
        if np.any((rr < 0.0) | (rr > 1.0)):
            raise ValueError("recovery rates must be in [0, 1]")
        if np.any(weights < 0.0):
            raise ValueError("weights must be non-negative")
        for i, curve in enumerate(self.credit_curves):
            if curve is None and not defaulted[i]:
                raise ValueError(f"missing credit curve for live name {i}")
        object.__setattr__(self, "credit_curves", tuple(self.credit_curves))
        object.__setattr__(self, "recovery_rates", rr)
        object.__setattr__(self, "weights", weights)
        object.__setattr__(self, "defaulted", defaulted)
        object.__setattr__(self, "index_factor", float(weights[~defaulted].sum()))

    @property
    def index_size(self) -> int:
        return len(self.credit_curves)

    @property
    def num_defaults(self) -> int:
        return int(self.defaulted.sum())

    def lgd(self, index: int) -> float:
        return 1.0 - self.recovery_rates[index]

    def is_defaulted(self, index: int) -> bool:
        return bool(self.defaulted[index])

    def all_defaulted(self) -> bool:
        return self.num_defaults == self.index_size

    def with_default(self, *indices: int) -> "IntrinsicIndexDataBundle":
        """Copy with the given names marked as defaulted."""
        defaulted = self.defaulted.copy()
        for i in indices:
            if not 0 <= i < self.index_size:
                raise IndexError(f"name index {i} outside [0, {self.index_size})")
            if defaulted[i]:
                raise ValueError(f"name {i} has already defaulted")
            defaulted[i] = True
        return IntrinsicIndexDataBundle(self.credit_curves, self.recovery_rates,
                                        self.weights, defaulted)

    def with_credit_curves(self, credit_curves) -> "IntrinsicIndexDataBundle":
        return IntrinsicIndexDataBundle(credit_curves, self.recovery_rates,
                                        self.weights, self.defaulted)

    def with_recovery_rates(self, recovery_rates) -> "IntrinsicIndexDataBundle":
        return IntrinsicIndexDataBundle(self.credit_curves, recovery_rates,
                                        self.weights, self.defaulted)

    def alive(self):
        """Indices of the names that have not defaulted."""
        return np.flatnonzero(~self.defaulted)


def _check_forward_start(fwd_cds: CdsAnalytic, time_to_expiry: float):
    if not time_to_expiry >= 0.0:
        raise ValueError(f"time_to_expiry must be non-negative, got {time_to_expiry}")
    if fwd_cds.effective_protection_start < time_to_expiry:
        raise ValueError(
            f"effective protection start of {fwd_cds.effective_protection_start} is less "
            f"than time to expiry of {time_to_expiry}; a forward starting CDS is required")


class CdsIndexCalculator:
    """Intrinsic valuation and risk of a CDS index."""

    def __init__(self, pricer: Optional[AnalyticCdsPricer] = None):
        self.pricer = pricer or AnalyticCdsPricer()

    # ------------------------------------------------------------------
    # Legs and value
    # ------------------------------------------------------------------
    def index_prot_leg(self, index_cds: CdsAnalytic, yield_curve: IsdaCompliantYieldCurve,
                       data: IntrinsicIndexDataBundle,
                       valuation_time: Optional[float] = None) -> float:
        if valuation_time is None:
            valuation_time = index_cds.cash_settle_time
        cds = index_cds.with_recovery_rate(0.0)
        prot = 0.0
        for i in data.alive():
            prot += data.weights[i] * data.lgd(i) * self.pricer.protection_leg(
                cds, yield_curve, data.credit_curves[i], 0.0)
        return prot / yield_curve.discount_factor(valuation_time)

    def index_annuity(self, index_cds: CdsAnalytic, yield_curve: IsdaCompliantYieldCurve,
                      data: IntrinsicIndexDataBundle,
                      price_type: CdsPriceType = CdsPriceType.CLEAN,
                      valuation_time: Optional[float] = None) -> float:
        if valuation_time is None:
            valuation_time = index_cds.cash_settle_time
        a = 0.0
        for i in data.alive():
            a += data.weights[i] * self.pricer.annuity(index_cds, yield_curve,
                                                       data.credit_curves[i], price_type, 0.0)
        return a / yield_curve.discount_factor(valuation_time)

    def index_pv(self, index_cds: CdsAnalytic, index_coupon: float,
                 yield_curve: IsdaCompliantYieldCurve, data: IntrinsicIndexDataBundle,
                 price_type: CdsPriceType = CdsPriceType.CLEAN,
                 valuation_time: Optional[float] = None) -> float:
        """Intrinsic PV per unit initial notional."""
        prot = self.index_prot_leg(index_cds, yield_curve, data, valuation_time)
        annuity = self.index_annuity(index_cds, yield_curve, data, price_type, valuation_time)
        return prot - index_coupon * annuity

    def index_puf(self, index_cds: CdsAnalytic, index_coupon: float,
                  yield_curve: IsdaCompliantYieldCurve, data: IntrinsicIndexDataBundle) -> float:
        """Points upfront per unit of current (post-default) notional."""
        if data.all_defaulted():
            raise ValueError("index completely defaulted - not possible to rescale for PUF")
        return self.index_pv(index_cds, index_coupon, yield_curve, data) / data.index_factor

    def intrinsic_index_spread(self, index_cds: CdsAnalytic,
                               yield_curve: IsdaCompliantYieldCurve,
                               data: IntrinsicIndexDataBundle) -> float:
        """Coupon at which the intrinsic index PV is zero."""
        if data.all_defaulted():
            raise ValueError("every name in the index is defaulted - cannot calculate a spread")
        prot = self.index_prot_leg(index_cds, yield_curve, data)
        return prot / self.index_annuity(index_cds, yield_curve, data)

    def average_spread(self, index_cds: CdsAnalytic, yield_curve: IsdaCompliantYieldCurve,
                       data: IntrinsicIndexDataBundle) -> float:
        """Weighted average of the constituents' par spreads."""
        if data.all_defaulted():
            raise ValueError("every name in the index is defaulted - cannot calculate a spread")
        cds = index_cds.with_recovery_rate(0.0)
        total = 0.0
        for i in data.alive():
            curve = data.credit_curves[i]
            prot = data.lgd(i) * self.pricer.protection_leg(cds, yield_curve, curve)
            total += data.weights[i] * prot / self.pricer.annuity(cds, yield_curve, curve)
        return total / data.index_factor

    def implied_index_curve(self, pillar_cds: Sequence[CdsAnalytic], index_coupon: float,
                            yield_curve: IsdaCompliantYieldCurve,
                            data: IntrinsicIndexDataBundle) -> IsdaCompliantCreditCurve:
        """Single credit curve that reprices the intrinsic index at every pillar."""
        if data.all_defaulted():
            raise ValueError("every name in the index is defaulted - cannot calculate implied index curve")
        puf = [self.index_pv(c, index_coupon, yield_curve, data) / data.index_factor
               for c in pillar_cds]
        calibrator = CreditCurveCalibrator(pillar_cds, yield_curve, self.pricer)
        return calibrator.calibrate(np.full(len(pillar_cds), index_coupon), puf)

    # ------------------------------------------------------------------
    # Options on the index
    # ------------------------------------------------------------------
    def expected_default_settlement_value(self, time_to_expiry: float,
                                          data: IntrinsicIndexDataBundle) -> float:
        """Expected loss settled at expiry for names defaulting before it."""
        d = 0.0
        for i in range(data.index_size):
            if data.is_defaulted(i):
                q_bar = 1.0
            else:
                q_bar = 1.0 - data.credit_curves[i].survival_probability(time_to_expiry)
            d += data.weights[i] * data.lgd(i) * q_bar
        return d

    def default_adjusted_forward_index_value(self, fwd_cds: CdsAnalytic, time_to_expiry: float,
                                             yield_curve: IsdaCompliantYieldCurve,
                                             index_coupon: float,
                                             data: IntrinsicIndexDataBundle) -> float:
        """Forward index PV plus the expected default settlement at expiry."""
        _check_forward_start(fwd_cds, time_to_expiry)
        pv = self.index_pv(fwd_cds, index_coupon, yield_curve, data)
        return pv + self.expected_default_settlement_value(time_to_expiry, data)

    def default_adjusted_forward_spread(self, fwd_cds: CdsAnalytic, time_to_expiry: float,
                                        yield_curve: IsdaCompliantYieldCurve,
                                        data: IntrinsicIndexDataBundle) -> float:
        """Forward spread that includes the default settlement."""
        _check_forward_start(fwd_cds, time_to_expiry)
        prot = self.index_prot_leg(fwd_cds, yield_curve, data)
        settle = self.expected_default_settlement_value(time_to_expiry, data)
        return (prot + settle) / self.index_annuity(fwd_cds, yield_curve, data)

    # ------------------------------------------------------------------
    # Risk
    # ------------------------------------------------------------------
    def parallel_ir01(self, index_cds: CdsAnalytic, index_coupon: float,
                      yield_curve: IsdaCompliantYieldCurve,
                      data: IntrinsicIndexDataBundle) -> float:
        """Change in dirty PV for a 1bp parallel bump of the zero rates."""
        pv = self.index_pv(index_cds, index_coupon, yield_curve, data, CdsPriceType.DIRTY)
        bumped = yield_curve.with_rates(yield_curve.knot_zero_rates + ONE_BP)
        pv_up = self.index_pv(index_cds, index_coupon, bumped, data, CdsPriceType.DIRTY)
        return pv_up - pv

    def bucketed_ir01(self, index_cds: CdsAnalytic, index_coupon: float,
                      yield_curve: IsdaCompliantYieldCurve,
                      data: IntrinsicIndexDataBundle) -> np.ndarray:
        """Change in dirty PV for a 1bp bump of each zero rate in turn."""
        base = self.index_pv(index_cds, index_coupon, yield_curve, data, CdsPriceType.DIRTY)
        res = np.zeros(yield_curve.number_of_knots)
        for i in range(yield_curve.number_of_knots):
            bumped = yield_curve.with_rate(yield_curve.zero_rate_at_index(i) + ONE_BP, i)
            res[i] = self.index_pv(index_cds, index_coupon, bumped, data,
                                   CdsPriceType.DIRTY) - base
        return res

    def recovery01(self, index_cds: CdsAnalytic, index_coupon: float,
                   yield_curve: IsdaCompliantYieldCurve,
                   data: IntrinsicIndexDataBundle) -> np.ndarray:
        """dPV/d(recovery rate) of each name; zero for defaulted names."""
        zero_rr = index_cds.with_recovery_rate(0.0)
        res = np.zeros(data.index_size)
        for i in data.alive():
            res[i] = -self.pricer.protection_leg(zero_rr, yield_curve,
                                                 data.credit_curves[i]) * data.weights[i]
        return res

    def jump_to_default(self, index_cds: CdsAnalytic, index_coupon: float,
                        yield_curve: IsdaCompliantYieldCurve,
                        data: IntrinsicIndexDataBundle) -> np.ndarray:
        """Value change if each name defaulted now; zero for defaulted names."""
        res = np.zeros(data.index_size)
        for i in data.alive():
            single_name_pv = self.pricer.pv(index_cds, yield_curve, data.credit_curves[i],
                                            index_coupon)
            res[i] = data.weights[i] * (data.lgd(i) - single_name_pv)
        log.debug("Jump to default computed for %d live names", len(data.alive()))
        return res
