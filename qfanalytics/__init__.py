"""
Quant Finance Analytics
=======================
SABR smile models with analytic adjoint derivatives, smile calibration,
closed-form Black / Bachelier / Black-Scholes formula repositories and
ISDA standard-model credit analytics.
"""

from qfanalytics.models import (
    EuropeanVanillaOption, PutCall, SabrFormulaData, SmileModelData,
    SabrHaganVolatilityFunctionProvider, SabrInArrearsVolatilityFunction,
    ValueDerivatives, ValueDerivatives2, VolatilityFunctionProvider,
)
from qfanalytics.pricing import NormalFunctionData, NormalPriceFunction
from qfanalytics.calibration import (
    LeastSquareResults, LeastSquareResultsWithTransform, NonLinearLeastSquare,
    SabrModelFitter, SmileModelFitter, UncoupledParameterTransforms,
)
from qfanalytics.credit import (
    AnalyticCdsPricer, CdsAnalytic, CdsIndexCalculator, CdsPriceType,
    CreditCurveCalibrator, IntrinsicIndexDataBundle,
    IsdaCompliantCreditCurve, IsdaCompliantYieldCurve,
)
from qfanalytics.errors import CalibrationError, DomainLimitError, ParameterIndexError

__version__ = "1.0.0"

__all__ = [
    "EuropeanVanillaOption", "PutCall", "SabrFormulaData", "SmileModelData",
    "SabrHaganVolatilityFunctionProvider", "SabrInArrearsVolatilityFunction",
    "ValueDerivatives", "ValueDerivatives2", "VolatilityFunctionProvider",
    "NormalFunctionData", "NormalPriceFunction",
    "LeastSquareResults", "LeastSquareResultsWithTransform", "NonLinearLeastSquare",
    "SabrModelFitter", "SmileModelFitter", "UncoupledParameterTransforms",
    "AnalyticCdsPricer", "CdsAnalytic", "CdsIndexCalculator", "CdsPriceType",
    "CreditCurveCalibrator", "IntrinsicIndexDataBundle",
    "IsdaCompliantCreditCurve", "IsdaCompliantYieldCurve",
    "CalibrationError", "DomainLimitError", "ParameterIndexError",
]
