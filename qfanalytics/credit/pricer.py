"""
================================================================================
ANALYTIC CDS PRICER (ISDA STANDARD MODEL)
================================================================================
With piecewise-linear r t on both the yield curve (r) and the credit curve
(h), the legs integrate exactly between the union of the curve knots:

    Protection leg:
        PtL = LGD * integral_{t_s}^{T} P(t) Q(t) h(t) dt
            = LGD * sum_k dH_k (B_{k-1} - B_k) / (dH_k + dR_k)

    Premium leg per unit spread (risky annuity, RPV01):
        A = sum_i delta_i P(pay_i) Q(end_i)  +  accrual paid on default

where B = P Q is the risky discount factor. The ratio (1 - e^{-x}) / x is
evaluated through ``epsilon`` when x is small.

The accrual-on-default integral uses either the original ISDA formula
(with its half-day offset) or the Markit fix.

Values are per unit notional and rolled forward to the cash-settle time
unless a valuation time is given.

References:
    ISDA CDS Standard Model, version 1.8.2.
    O'Kane, D. (2008). Modelling Single-name and Multi-name Credit Derivatives.
================================================================================
"""

from enum import Enum
from typing import Optional

import numpy as np

from qfanalytics.credit.cds_analytic import CdsAnalytic, CdsCoupon
from qfanalytics.credit.isda_curve import IsdaCompliantCreditCurve, IsdaCompliantYieldCurve
from qfanalytics.utils import epsilon, epsilon_p

HALFDAY = 1.0 / 730.0
SMALL_EXPONENT = 1e-5


class CdsPriceType(Enum):
    """Clean prices exclude the premium accrued up to step-in."""
    CLEAN = "clean"
    DIRTY = "dirty"


class AccrualOnDefaultFormula(Enum):
    ORIGINAL_ISDA = "original_isda"
    MARKIT_FIX = "markit_fix"


def integration_points(start: float, end: float, yield_curve, credit_curve) -> np.ndarray:
    """Sorted union of both curves' knots inside (start, end), plus the end points."""
    knots = np.union1d(yield_curve.knot_times, credit_curve.knot_times)
    inner = knots[(knots > start) & (knots < end)]
    return np.concatenate([[start], inner, [end]])


def _truncate(start: float, end: float, points: np.ndarray) -> np.ndarray:
    inner = points[(points > start) & (points < end)]
    return np.concatenate([[start], inner, [end]])


class AnalyticCdsPricer:
    """
    Protection leg, risky annuity, PV and par spread of a CDS.

    Args:
        formula: Accrual-on-default formula; the original ISDA formula uses a
            half-day offset, the Markit fix none
    """

    def __init__(self, formula: AccrualOnDefaultFormula = AccrualOnDefaultFormula.ORIGINAL_ISDA):
        self.formula = formula
        self.omega = HALFDAY if formula is AccrualOnDefaultFormula.ORIGINAL_ISDA else 0.0

    # ------------------------------------------------------------------
    # PV and spread
    # ------------------------------------------------------------------
    def pv(self, cds: CdsAnalytic, yield_curve: IsdaCompliantYieldCurve,
           credit_curve: IsdaCompliantCreditCurve, fractional_spread: float,
           price_type: CdsPriceType = CdsPriceType.CLEAN,
           valuation_time: Optional[float] = None) -> float:
        """
        Protection-buyer PV: protection leg - spread * RPV01.

        Without ``valuation_time`` the value is for the cash-settle time.
        Expired contracts are worth zero.
        """
        if cds.is_expired():
            return 0.0
        if valuation_time is None:
            rpv01 = self.annuity(cds, yield_curve, credit_curve, price_type)
            pro_leg = self.protection_leg(cds, yield_curve, credit_curve)
            return pro_leg - fractional_spread * rpv01
        rpv01 = self.annuity(cds, yield_curve, credit_curve, price_type, 0.0)
        pro_leg = self.protection_leg(cds, yield_curve, credit_curve, 0.0)
        df = yield_curve.discount_factor(valuation_time)
        return (pro_leg - fractional_spread * rpv01) / df

    def puf(self, cds: CdsAnalytic, yield_curve: IsdaCompliantYieldCurve,
            credit_curve: IsdaCompliantCreditCurve, premium: float) -> float:
        """Points upfront: the clean PV for a standard premium."""
        return self.pv(cds, yield_curve, credit_curve, premium, CdsPriceType.CLEAN)

    def par_spread(self, cds: CdsAnalytic, yield_curve: IsdaCompliantYieldCurve,
                   credit_curve: IsdaCompliantCreditCurve) -> float:
        """Spread that makes the clean PV zero."""
        if cds.is_expired():
            raise ValueError("CDS has expired - cannot compute a par spread for it")
        rpv01 = self.annuity(cds, yield_curve, credit_curve, CdsPriceType.CLEAN, 0.0)
        pro_leg = self.protection_leg(cds, yield_curve, credit_curve, 0.0)
        return pro_leg / rpv01

    # ------------------------------------------------------------------
    # Legs
    # ------------------------------------------------------------------
    def protection_leg(self, cds: CdsAnalytic, yield_curve: IsdaCompliantYieldCurve,
                       credit_curve: IsdaCompliantCreditCurve,
                       valuation_time: Optional[float] = None) -> float:
        if cds.is_expired():
            return 0.0
        if valuation_time is None:
            valuation_time = cds.cash_settle_time
        schedule = integration_points(cds.effective_protection_start, cds.protection_end,
                                      yield_curve, credit_curve)
        ht0 = credit_curve.rt(schedule[0])
        rt0 = yield_curve.rt(schedule[0])
        b0 = np.exp(-ht0 - rt0)
        pv = 0.0
        for t in schedule[1:]:
            ht1 = credit_curve.rt(t)
            rt1 = yield_curve.rt(t)
            b1 = np.exp(-ht1 - rt1)
            dht = ht1 - ht0
            dhrt = dht + rt1 - rt0
            if abs(dhrt) < SMALL_EXPONENT:
                pv += dht * b0 * epsilon(-dhrt)
            else:
                pv += (b0 - b1) * dht / dhrt
            ht0, rt0, b0 = ht1, rt1, b1
        pv *= cds.lgd
        return float(pv / yield_curve.discount_factor(valuation_time))

    def dirty_annuity(self, cds: CdsAnalytic, yield_curve: IsdaCompliantYieldCurve,
                      credit_curve: IsdaCompliantCreditCurve) -> float:
        """Risky annuity including accrued premium, discounted to time zero."""
        if cds.is_expired():
            return 0.0
        pv = 0.0
        for c in cds.coupons:
            q = credit_curve.survival_probability(c.effective_end)
            p = yield_curve.discount_factor(c.payment_time)
            pv += c.year_frac * p * q
        if cds.pay_acc_on_default:
            start = cds.effective_protection_start if cds.num_payments == 1 else cds.accrual_start
            schedule = integration_points(start, cds.protection_end, yield_curve, credit_curve)
            for c in cds.coupons:
                pv += self._accrual_on_default(c, cds.effective_protection_start, schedule,
                                               yield_curve, credit_curve)
        return float(pv)

    def annuity(self, cds: CdsAnalytic, yield_curve: IsdaCompliantYieldCurve,
                credit_curve: IsdaCompliantCreditCurve,
                price_type: CdsPriceType = CdsPriceType.CLEAN,
                valuation_time: Optional[float] = None) -> float:
        """
        Risky annuity (RPV01) rolled to ``valuation_time`` (default: cash
        settle). The clean annuity nets off the accrued premium.
        """
        if valuation_time is None:
            valuation_time = cds.cash_settle_time
        pv = self.dirty_annuity(cds, yield_curve, credit_curve)
        val_df = yield_curve.discount_factor(valuation_time)
        if price_type is CdsPriceType.CLEAN:
            cs_time = cds.cash_settle_time
            prot_start = cds.effective_protection_start
            cs_df = val_df if valuation_time == cs_time else yield_curve.discount_factor(cs_time)
            q = 1.0 if prot_start == 0.0 else credit_curve.survival_probability(prot_start)
            pv -= cds.accrued_year_fraction * cs_df * q
        return float(pv / val_df)

    def _accrual_on_default(self, coupon: CdsCoupon, effective_start: float,
                            points: np.ndarray, yield_curve, credit_curve) -> float:
        start = max(coupon.effective_start, effective_start)
        if start >= coupon.effective_end:
            return 0.0
        knots = _truncate(start, coupon.effective_end, points)
        markit = self.formula is AccrualOnDefaultFormula.MARKIT_FIX

        t = knots[0]
        ht0 = credit_curve.rt(t)
        rt0 = yield_curve.rt(t)
        b0 = np.exp(-rt0 - ht0)
        t0 = t - coupon.effective_start + self.omega
        pv = 0.0
        for j in range(1, len(knots)):
            t = knots[j]
            ht1 = credit_curve.rt(t)
            rt1 = yield_curve.rt(t)
            b1 = np.exp(-rt1 - ht1)
            dt = knots[j] - knots[j - 1]
            dht = ht1 - ht0
            dhrt = dht + rt1 - rt0
            if markit:
                if abs(dhrt) < SMALL_EXPONENT:
                    pv += dht * dt * b0 * epsilon_p(-dhrt)
                else:
                    pv += dht * dt / dhrt * ((b0 - b1) / dhrt - b1)
            else:
                t1 = t - coupon.effective_start + self.omega
                if abs(dhrt) < SMALL_EXPONENT:
                    pv += dht * b0 * (t0 * epsilon(-dhrt) + dt * epsilon_p(-dhrt))
                else:
                    pv += dht / dhrt * (t0 * b0 - t1 * b1 + dt / dhrt * (b0 - b1))
                t0 = t1
            ht0, rt0, b0 = ht1, rt1, b1
        return coupon.yf_ratio * pv
