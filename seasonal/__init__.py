"""
Seasonal adjustment of monthly price patterns.
"""

from .adjuster import SeasonalAdjuster, SeasonalAdjustment

__all__ = ['SeasonalAdjuster', 'SeasonalAdjustment']
