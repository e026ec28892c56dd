"""
Configuration package for the analysis pipeline.
"""

from .model_config import AnalysisConfig

__all__ = ['AnalysisConfig']
