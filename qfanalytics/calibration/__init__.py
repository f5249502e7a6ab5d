"""
Smile calibration: parameter transforms, weighted least squares and fitters.
"""

from qfanalytics.calibration.transforms import (
    DoubleRangeLimitTransform,
    LimitType,
    NullTransform,
    ParameterLimitsTransform,
    SingleRangeLimitTransform,
    UncoupledParameterTransforms,
)
from qfanalytics.calibration.least_squares import (
    LeastSquareResults,
    LeastSquareResultsWithTransform,
    NonLinearLeastSquare,
)
from qfanalytics.calibration.smile_fitter import SabrModelFitter, SmileModelFitter

__all__ = [
    "DoubleRangeLimitTransform", "LimitType", "NullTransform",
    "ParameterLimitsTransform", "SingleRangeLimitTransform",
    "UncoupledParameterTransforms",
    "LeastSquareResults", "LeastSquareResultsWithTransform", "NonLinearLeastSquare",
    "SabrModelFitter", "SmileModelFitter",
]
