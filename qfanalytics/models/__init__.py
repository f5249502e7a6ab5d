"""
Smile model data types and volatility-function providers.
"""

from qfanalytics.models.value_derivatives import ValueDerivatives, ValueDerivatives2
from qfanalytics.models.option import EuropeanVanillaOption, PutCall
from qfanalytics.models.smile_data import SmileModelData, SabrFormulaData
from qfanalytics.models.volatility_function import VolatilityFunctionProvider
from qfanalytics.models.sabr_hagan import SabrHaganVolatilityFunctionProvider
from qfanalytics.models.sabr_in_arrears import SabrInArrearsVolatilityFunction

__all__ = [
    "ValueDerivatives", "ValueDerivatives2",
    "EuropeanVanillaOption", "PutCall",
    "SmileModelData", "SabrFormulaData",
    "VolatilityFunctionProvider",
    "SabrHaganVolatilityFunctionProvider",
    "SabrInArrearsVolatilityFunction",
]
