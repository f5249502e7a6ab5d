"""
Closed-form option formula repositories.

    black          Black (1976) on a log-normal forward, undiscounted
    normal         Bachelier on a normal forward, numeraire-scaled
    black_scholes  Spot Black-Scholes with interest rate and cost of carry
"""

from qfanalytics.pricing import black, black_scholes, normal
from qfanalytics.pricing.normal import NormalFunctionData, NormalPriceFunction

__all__ = ["black", "black_scholes", "normal", "NormalFunctionData", "NormalPriceFunction"]
