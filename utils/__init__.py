"""Utility functions and classes for time-series analysis"""

from .progress import ProgressMonitor
from .visualization import SeriesVisualizer

__all__ = ['ProgressMonitor', 'SeriesVisualizer']
