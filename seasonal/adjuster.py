"""
Monthly seasonality indices and multiplicative seasonal adjustment.

Two index constructions are supported and directly comparable:

- moving_average: monthly mean / 2x12 centred moving average, averaged per
  calendar month across years.
- ratio_to_mean: calendar-month mean / mean of the twelve calendar-month means.

Calendar months backed by fewer than two years of data still get an index;
the estimate is noisier and a warning is logged.
"""

import logging
from dataclasses import dataclass
from typing import Dict

import numpy as np
import pandas as pd

from exceptions import InvalidInput

logger = logging.getLogger(__name__)

MONTHS = pd.RangeIndex(1, 13, name='month')

METHODS = ('moving_average', 'ratio_to_mean')


def _apply_index(series: pd.Series, index: pd.Series, op) -> pd.Series:
    factors = index.reindex(series.index.month).to_numpy(dtype=float)
    if np.isnan(factors).any():
        missing = sorted(set(series.index.month[np.isnan(factors)]))
        raise InvalidInput("seasonal index has no value for months", months=missing)
    return pd.Series(op(series.to_numpy(dtype=float), factors), index=series.index, name=series.name)


@dataclass(frozen=True)
class SeasonalAdjustment:
    """Index and deseasonalized series produced by one method"""
    method: str
    index: pd.Series  # calendar month 1..12 -> multiplier
    deseasonalized: pd.Series

    def reseasonalize(self) -> pd.Series:
        return _apply_index(self.deseasonalized, self.index, np.multiply)


class SeasonalAdjuster:
    """Computes monthly seasonal indices and divides them out of a series"""

    def __init__(self, window: int = 12, tolerance: float = 0.05):
        """
        Args:
            window: Months in the centred moving average
            tolerance: Allowed distance of the index mean from 1.0 before warning
        """
        if window % 2:
            raise ValueError(f"Centred moving average needs an even window: {window}")
        self.window = window
        self.tolerance = tolerance

    def monthly_means(self, prices: pd.Series) -> pd.Series:
        """Mean price per month; months without data stay NaN to keep spacing"""
        return prices.resample('MS').mean()

    def centered_moving_average(self, monthly: pd.Series) -> pd.Series:
        """2 x window centred moving average, NaN for the first and last window/2 months"""
        half = self.window // 2
        trailing = monthly.rolling(self.window).mean()
        return (trailing.shift(-(half - 1)) + trailing.shift(-half)) / 2

    def index_moving_average(self, prices: pd.Series) -> pd.Series:
        """Method A: average ratio of monthly mean to its centred moving average"""
        monthly = self.monthly_means(prices)
        factors = (monthly / self.centered_moving_average(monthly)).dropna()

        if factors.empty:
            raise InvalidInput(
                f"moving-average index needs more than {self.window} months of data",
                n_months=int(monthly.notna().sum())
            )

        index = factors.groupby(factors.index.month).mean().reindex(MONTHS)
        years = factors.groupby(factors.index.month).size().reindex(MONTHS, fill_value=0)
        return self._finalize(index, years, 'moving_average')

    def index_ratio_to_mean(self, prices: pd.Series) -> pd.Series:
        """
        Method B: calendar-month mean over the mean of the twelve month means.

        The denominator is the mean of the month means, not the mean of every
        price in the series. The two differ when months hold unequal numbers
        of observations; this one makes the twelve indices average exactly 1.0.
        """
        months = prices.index.month
        month_means = prices.groupby(months).mean().reindex(MONTHS)
        index = month_means / month_means.mean()

        years = pd.Series(prices.index.year, index=prices.index).groupby(months).nunique()
        return self._finalize(index, years.reindex(MONTHS, fill_value=0), 'ratio_to_mean')

    def _finalize(self, index: pd.Series, years: pd.Series, method: str) -> pd.Series:
        missing = index.index[index.isna()].tolist()
        if missing:
            raise InvalidInput(f"no usable data for calendar months", method=method, months=missing)

        sparse = years.index[years < 2].tolist()
        if sparse:
            logger.warning(f"{method} index: months {sparse} rely on fewer than two years of data")

        mean = index.mean()
        if abs(mean - 1.0) > self.tolerance:
            logger.warning(f"{method} index averages {mean:.4f}, expected close to 1.0")

        index = index.rename('seasonal_index')
        logger.info(
            f"{method} seasonal index: "
            + ", ".join(f"{m}={v:.4f}" for m, v in index.items())
        )
        return index

    def deseasonalize(self, prices: pd.Series, index: pd.Series) -> pd.Series:
        """Price at t divided by the index of t's calendar month"""
        return _apply_index(prices, index, np.divide)

    def reseasonalize(self, series: pd.Series, index: pd.Series) -> pd.Series:
        return _apply_index(series, index, np.multiply)

    def adjust(self, prices: pd.Series, method: str = 'moving_average') -> SeasonalAdjustment:
        """Build the index with one method and deseasonalize the series"""
        if method == 'moving_average':
            index = self.index_moving_average(prices)
        elif method == 'ratio_to_mean':
            index = self.index_ratio_to_mean(prices)
        else:
            raise ValueError(f"Unknown seasonal method: {method}. Expected one of: {METHODS}")

        return SeasonalAdjustment(
            method=method,
            index=index,
            deseasonalized=self.deseasonalize(prices, index).rename('deseasonalized'),
        )

    def adjust_all(self, prices: pd.Series) -> Dict[str, SeasonalAdjustment]:
        """Both methods, keyed by method name"""
        return {method: self.adjust(prices, method) for method in METHODS}
