"""
Statistical diagnostics: stationarity, autocorrelation and heteroscedasticity.
"""

from .stationarity import StationarityTester
from .autocorrelation import AutocorrelationDiagnostics
from .heteroscedasticity import HeteroscedasticityTester

__all__ = ['StationarityTester', 'AutocorrelationDiagnostics', 'HeteroscedasticityTester']
