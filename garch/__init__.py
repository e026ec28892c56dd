"""
GARCH modeling package for volatility analysis.
Fits GARCH(p, q) models and produces conditional variance forecasts.
"""

from .estimator import GARCHEstimator, VolatilityFit

__all__ = ['GARCHEstimator', 'VolatilityFit']
