"""
ISDA standard-model credit analytics: curves, CDS pricing, curve bootstrap
and intrinsic index valuation. Times are year fractions.
"""

from qfanalytics.credit.isda_curve import (
    IsdaCompliantCreditCurve,
    IsdaCompliantCurve,
    IsdaCompliantYieldCurve,
)
from qfanalytics.credit.cds_analytic import CdsAnalytic, CdsCoupon
from qfanalytics.credit.pricer import AccrualOnDefaultFormula, AnalyticCdsPricer, CdsPriceType
from qfanalytics.credit.calibrator import CreditCurveCalibrator
from qfanalytics.credit.index import CdsIndexCalculator, IntrinsicIndexDataBundle

__all__ = [
    "IsdaCompliantCurve", "IsdaCompliantYieldCurve", "IsdaCompliantCreditCurve",
    "CdsAnalytic", "CdsCoupon",
    "AccrualOnDefaultFormula", "AnalyticCdsPricer", "CdsPriceType",
    "CreditCurveCalibrator",
    "CdsIndexCalculator", "IntrinsicIndexDataBundle",
]
