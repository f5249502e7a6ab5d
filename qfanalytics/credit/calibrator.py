"""
================================================================================
CREDIT CURVE BOOTSTRAP
================================================================================
Sequential bootstrap of a piecewise-constant hazard rate from a strip of
CDS quotes. Knots sit at the pillar protection ends; the hazard rate on
segment k is solved (Brent) so that pillar k reprices:

    PV_k(lambda_1, ..., lambda_k) = PUF_k         (coupon, points-upfront)
    PV_k(lambda_1, ..., lambda_k) = 0             (par spread as coupon)

with the hazard rates of the earlier segments held fixed.
================================================================================
"""

from typing import Optional, Sequence

import numpy as np
from scipy.optimize import brentq

from qfanalytics.credit.cds_analytic import CdsAnalytic
from qfanalytics.credit.isda_curve import IsdaCompliantCreditCurve, IsdaCompliantYieldCurve
from qfanalytics.credit.pricer import AnalyticCdsPricer, CdsPriceType
from qfanalytics.errors import CalibrationError
from qfanalytics.utils import get_logger, timeit

log = get_logger(__name__)

MAX_HAZARD = 100.0


class CreditCurveCalibrator:
    """
    Bootstrap an ISDA credit curve from pillar CDSs.

    Args:
        pillar_cds: CDSs with strictly increasing protection ends
        yield_curve: Discount curve
        pricer: Pricer used to reprice the pillars (default: original ISDA)
    """

    def __init__(self, pillar_cds: Sequence[CdsAnalytic],
                 yield_curve: IsdaCompliantYieldCurve,
                 pricer: Optional[AnalyticCdsPricer] = None):
        if len(pillar_cds) == 0:
            raise ValueError("at least one pillar CDS is required")
        if yield_curve is None:
            raise ValueError("yield_curve must not be None")
        knots = np.array([c.protection_end for c in pillar_cds], dtype=float)
        if not knots[0] > 0.0:
            raise ValueError("first pillar has already expired")
        if np.any(np.diff(knots) <= 0.0):
            raise ValueError("pillar protection ends must be strictly increasing")
        self.pillar_cds = list(pillar_cds)
        self.yield_curve = yield_curve
        self.pricer = pricer or AnalyticCdsPricer()
        self.knots = knots

    @timeit
    def calibrate(self, premiums, points_upfront=None) -> IsdaCompliantCreditCurve:
        """
        Solve the hazard rates pillar by pillar.

        Args:
            premiums: Running coupon of each pillar (fractional, e.g. 0.01)
            points_upfront: Clean upfront of each pillar; zeros mean the
                premiums are par spreads

        Returns:
            IsdaCompliantCreditCurve with knots at the pillar maturities.
        """
        n = len(self.pillar_cds)
        premiums = np.asarray(premiums, dtype=float)
        puf = np.zeros(n) if points_upfront is None else np.asarray(points_upfront, dtype=float)
        if len(premiums) != n or len(puf) != n:
            raise ValueError(
                f"need {n} premiums and points upfront, got {len(premiums)} and {len(puf)}")

        hazards = np.zeros(n)
        for k in range(n):
            cds = self.pillar_cds[k]

            def objective(lam, k=k, cds=cds):
                trial = hazards[:k + 1].copy()
                trial[k] = lam
                curve = IsdaCompliantCreditCurve.from_hazard_rates(self.knots[:k + 1], trial)
                return self.pricer.pv(cds, self.yield_curve, curve, premiums[k],
                                      CdsPriceType.CLEAN) - puf[k]

            lo, hi = self._bracket(objective, k)
            hazards[k] = brentq(objective, lo, hi, xtol=1e-14, rtol=1e-14)
            log.debug("Pillar %d (T=%.4f): hazard rate %.8f", k, self.knots[k], hazards[k])

        curve = IsdaCompliantCreditCurve.from_hazard_rates(self.knots, hazards)
        log.info("Bootstrapped credit curve on %d pillars", n)
        return curve

    def calibrate_par_spreads(self, par_spreads) -> IsdaCompliantCreditCurve:
        return self.calibrate(par_spreads)

    @staticmethod
    def _bracket(objective, k):
        lo, hi = 0.0, 1.0
        # a steeply inverted quote curve needs a negative forward hazard
        while objective(lo) > 0.0:
            lo -= 0.5
            if lo < -MAX_HAZARD:
                raise CalibrationError(f"no hazard rate reprices pillar {k}")
        while objective(hi) < 0.0:
            hi *= 2.0
            if hi > MAX_HAZARD:
                raise CalibrationError(f"no hazard rate reprices pillar {k}")
        return lo, hi
