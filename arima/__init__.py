"""
ARIMA mean-model fitting and comparison.
"""

from .estimator import ARIMAEstimator

__all__ = ['ARIMAEstimator']
