"""
Data management package for equity time-series analysis.
Handles price loading, validation, caching and return preparation.
"""

from .data_loader import PriceLoader
from .data_validator import PriceValidator
from .database import PriceStore
from .data_prep import ReturnTransformer

__all__ = ['PriceLoader', 'PriceValidator', 'PriceStore', 'ReturnTransformer']
